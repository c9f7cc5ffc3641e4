"""
Testing infrastructure with mock services for the interview system.
"""
import heapq
import itertools
from concurrent.futures import Future
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .context import SessionContext
from .engine import AnswerScorer, FollowUpGenerator
from .events import InterviewEventBus, InterviewMetrics
from .models import (
    AnswerSubmission, CompetencyScores, InterviewDefinition, InterviewOptions, JobContext,
    QuestionItem, RecordingClip, ScoreResult
)
from .orchestrator import RecordingOrchestrator
from .services import (
    SpeechCaptureAdapter, SpeechOutputService, MediaCaptureService, upload_event_reporter
)
from ..errors import FollowUpError, LLMError, ScoringError
from ..infrastructure.data.database import create_db_engine, init_db
from ..infrastructure.data.gateway import Identity, PersistenceGateway, StaticIdentityProvider
from ..infrastructure.media.tracks import AudioConstraints, MediaTrack
from ..infrastructure.speech.voices import Voice
from ..infrastructure.storage.uploads import ClipUploader


class _FakeTimer:
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: Tuple[Any, ...]):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "_FakeTimer") -> bool:
        return (self.when, self.seq) < (other.when, other.seq)


class FakeScheduler:
    """
    Virtual-time scheduler.

    Nothing runs until the test calls run_ready() or advance(). Timers due at
    the same time fire in the order they were scheduled.
    """

    def __init__(self):
        self.now = 0.0
        self._timers: List[_FakeTimer] = []
        self._ready: List[Tuple[Callable[..., Any], Tuple[Any, ...]]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _FakeTimer:
        timer = _FakeTimer(self.now + max(0.0, delay), next(self._seq), callback, args)
        heapq.heappush(self._timers, timer)
        return timer

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        self._ready.append((callback, args))

    @property
    def pending_timers(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def run_ready(self) -> None:
        """Run queued call_soon callbacks, including ones they queue."""
        while self._ready:
            callback, args = self._ready.pop(0)
            callback(*args)

    def advance(self, seconds: float) -> None:
        """Move virtual time forward, firing every timer that comes due."""
        target = self.now + seconds
        self.run_ready()
        while self._timers and self._timers[0].when <= target:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self.now = timer.when
            timer.callback(*timer.args)
            self.run_ready()
        self.now = target


class MockRecognitionProvider:
    """Recognizer driven by the test: emit results, errors and session ends by hand."""

    def __init__(self, available: bool = True):
        self._available = available
        self.starts: List[str] = []
        self.stops = 0
        # (on_result, on_error, on_end) per provider session, oldest first
        self.sessions: List[Tuple[Callable, Callable, Callable]] = []
        self._callbacks = None

    @property
    def available(self) -> bool:
        return self._available

    @property
    def active(self) -> bool:
        return self._callbacks is not None

    def start(self, language_tag, on_result, on_error, on_end) -> None:
        self.starts.append(language_tag)
        self._callbacks = (on_result, on_error, on_end)
        self.sessions.append(self._callbacks)

    def stop(self) -> None:
        self.stops += 1
        self._callbacks = None

    def emit_result(self, segments: Sequence[str]) -> None:
        if self._callbacks is not None:
            self._callbacks[0](list(segments))

    def emit_error(self, code: str) -> None:
        if self._callbacks is not None:
            self._callbacks[1](code)

    def end(self) -> None:
        """End the current provider session the way a silence timeout would."""
        if self._callbacks is not None:
            callbacks, self._callbacks = self._callbacks, None
            callbacks[2]()


def recognition_response(text: str, is_final: bool = True) -> SimpleNamespace:
    """A streaming_recognize response carrying one result."""
    alternative = SimpleNamespace(transcript=text)
    return SimpleNamespace(results=[SimpleNamespace(is_final=is_final, alternatives=[alternative])])


class MockSpeechClient:
    """
    Stand-in for speech.SpeechClient.

    streaming_recognize reads ``read_requests`` audio requests, then yields the
    canned responses and raises ``error`` if one is set.
    """

    def __init__(self, responses: Sequence[Any] = (), error: Optional[BaseException] = None,
                 read_requests: int = 0):
        self.responses = list(responses)
        self.error = error
        self.read_requests = read_requests
        self.audio: List[bytes] = []
        self.config = None

    def streaming_recognize(self, config, requests):
        self.config = config
        if self.read_requests:
            for request in requests:
                self.audio.append(request.audio_content)
                if len(self.audio) == self.read_requests:
                    break
        return self._responses()

    def _responses(self):
        for response in self.responses:
            yield response
        if self.error is not None:
            raise self.error


class MockSynthesizer:
    """Records what it was asked to say. finish() completes the current utterance."""

    def __init__(self, voices: Optional[List[Voice]] = None, available: bool = True,
                 auto_finish: bool = False):
        self._voices = voices if voices is not None else [
            Voice(name="Samantha", lang="en-US", gender="female"),
            Voice(name="Daniel", lang="en-GB", gender="male"),
        ]
        self._available = available
        self.auto_finish = auto_finish
        self.spoken: List[Tuple[str, Optional[Voice]]] = []
        self.cancels = 0
        self._pending: Optional[Callable[[Optional[str]], None]] = None

    @property
    def available(self) -> bool:
        return self._available

    @property
    def speaking(self) -> bool:
        return self._pending is not None

    def voices(self) -> List[Voice]:
        return list(self._voices)

    def speak(self, text: str, voice: Optional[Voice], on_done: Callable[[Optional[str]], None]) -> None:
        self.spoken.append((text, voice))
        if self.auto_finish:
            on_done(None)
            return
        self._pending = on_done

    def finish(self, error: Optional[str] = None) -> None:
        on_done, self._pending = self._pending, None
        if on_done is not None:
            on_done(error)

    def cancel(self) -> None:
        self.cancels += 1
        self._pending = None


class MockMicrophone:
    """Callable microphone for MediaCaptureService. Hands out one audio track."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0
        self.track: Optional[MediaTrack] = None

    def __call__(self, constraints: AudioConstraints) -> Optional[MediaTrack]:
        self.calls += 1
        if self.fail:
            raise OSError("Permission denied")
        self.track = MediaTrack("audio", "mock microphone", constraints)
        return self.track


class MockStorage:
    """Clip storage that keeps uploads in memory. Calls listed in ``fail_on`` (1-based) fail."""

    def __init__(self, fail: bool = False, fail_on: Sequence[int] = (),
                 base_url: str = "https://storage.example.com/interview-videos"):
        self.fail = fail
        self.fail_on = set(fail_on)
        self.base_url = base_url
        self.uploads: Dict[str, RecordingClip] = {}
        self.calls = 0

    def upload(self, clip: RecordingClip, path: str) -> Optional[str]:
        self.calls += 1
        if self.fail or self.calls in self.fail_on:
            return None
        self.uploads[path] = clip
        return f"{self.base_url}/{path}"


class InlineExecutor:
    """Executor that runs each job immediately on the calling thread."""

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor:
    """Executor that holds jobs until run_all() is called."""

    def __init__(self):
        self.jobs: List[Tuple[Future, Callable[..., Any], Tuple[Any, ...], Dict[str, Any]]] = []

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        jobs, self.jobs = self.jobs, []
        for future, fn, args, kwargs in jobs:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


class MockLLMClient:
    """JSON generator returning scripted responses. An Exception entry is raised."""

    def __init__(self, responses: Sequence[Union[Any, Exception]]):
        self.responses = list(responses)
        self.current_response_idx = 0
        self.request_history: List[Dict[str, Any]] = []

    def generate_json(self, prompt: str, temperature: float = 0.0) -> Any:
        self.request_history.append({"prompt": prompt, "temperature": temperature})
        if self.current_response_idx >= len(self.responses):
            raise LLMError("No more mock responses")
        response = self.responses[self.current_response_idx]
        self.current_response_idx += 1
        if isinstance(response, Exception):
            raise response
        return response


def make_score(rating: int = 4) -> ScoreResult:
    return ScoreResult(
        rating=rating,
        competencies=CompetencyScores(rating, rating, rating, rating),
        praise="Clear structure.",
        correction="Add a concrete example.",
        tip="Lead with the result.",
        suggested_answer="A stronger answer would name the trade-offs.",
    )


SAMPLE_SCORE_RESPONSE = {
    "rating": 4,
    "competencies": {
        "technicalKnowledge": 4,
        "communicationClarity": 5,
        "problemSolving": 3,
        "relevance": 4,
    },
    "strengths": " Clear and structured. ",
    "improvements": "Quantify the impact.",
    "tip": "Use the STAR format.",
    "suggestedAnswer": "In my last role I cut latency by 40%...",
}


def make_submission(parent_answer_id: Optional[int] = None, text: str = "My answer") -> AnswerSubmission:
    return AnswerSubmission(question="Why Python?", model_answer="Because.", captured_text=text,
                            language="en", difficulty="senior", parent_answer_id=parent_answer_id)


class MockScorer(AnswerScorer):
    """Scorer with fixed ratings. Calls listed in ``fail_on`` (1-based) raise."""

    def __init__(self, ratings: Sequence[int] = (4,), fail_on: Sequence[int] = ()):
        # Don't call super().__init__, there is no LLM client
        self.ratings = list(ratings)
        self.fail_on = set(fail_on)
        self.calls: List[Tuple[str, str, str, str, str]] = []

    def score(self, question, model_answer, user_answer, language, difficulty) -> ScoreResult:
        self.calls.append((question, model_answer, user_answer, language, difficulty))
        if len(self.calls) in self.fail_on:
            raise ScoringError("Could not score answer: mock failure")
        return make_score(self.ratings[(len(self.calls) - 1) % len(self.ratings)])


class MockFollowUps(FollowUpGenerator):
    """Follow-up generator returning numbered questions, or failing."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Tuple[str, str, str, str]] = []

    def generate(self, question, model_answer, user_answer, language) -> str:
        self.calls.append((question, model_answer, user_answer, language))
        if self.fail:
            raise FollowUpError("Could not generate follow-up: mock failure")
        return f"Follow-up {len(self.calls)}: can you give an example?"


def sample_questions(count: int = 5) -> List[QuestionItem]:
    return [
        QuestionItem(question=f"Question {i + 1}: tell me about topic {i + 1}.",
                     answer=f"Model answer {i + 1}.")
        for i in range(count)
    ]


def create_mock_interview_setup(question_count: int = 5,
                                follow_ups: bool = True,
                                follow_up_fails: bool = False,
                                fail_scoring_on: Sequence[int] = (),
                                speech_available: bool = False,
                                recognition_available: bool = True,
                                microphone_fails: bool = False,
                                fail_uploads_on: Sequence[int] = (),
                                executor=None) -> Dict[str, Any]:
    """Create a complete orchestrator wired to mocks and an in-memory database."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    identity = StaticIdentityProvider(Identity(user_id="user-1", email="candidate@example.com"))
    gateway = PersistenceGateway(engine, identity)

    job = JobContext(job_position="Backend Engineer", job_desc="Python, SQL, APIs", job_experience="3")
    options = InterviewOptions(question_count=5 if question_count not in (3, 5, 10) else question_count)
    mock_id = gateway.create_interview(job, sample_questions(question_count), options)
    interview = gateway.get_interview(mock_id)

    scheduler = FakeScheduler()
    event_bus = InterviewEventBus()
    metrics = InterviewMetrics()
    event_bus.subscribe_all(metrics.handle_event)

    context = SessionContext(language="en", voice_gender="female")
    synthesizer = MockSynthesizer(available=speech_available)
    recognizer = MockRecognitionProvider(available=recognition_available)
    microphone = MockMicrophone(fail=microphone_fails)
    storage = MockStorage(fail_on=fail_uploads_on)
    scorer = MockScorer(fail_on=fail_scoring_on)
    follow_up_generator = MockFollowUps(fail=follow_up_fails) if follow_ups else None

    capture = SpeechCaptureAdapter(recognizer, scheduler)
    speech = SpeechOutputService(context, local=synthesizer)
    media = MediaCaptureService(microphone)
    uploader = ClipUploader(storage, gateway, executor=InlineExecutor(),
                            on_complete=upload_event_reporter(event_bus, mock_id))

    orchestrator = RecordingOrchestrator(
        interview,
        scorer=scorer,
        follow_ups=follow_up_generator,
        gateway=gateway,
        speech=speech,
        capture=capture,
        media=media,
        uploader=uploader,
        scheduler=scheduler,
        context=context,
        event_bus=event_bus,
        executor=executor,
        clock=lambda: scheduler.now,
    )

    return {
        "orchestrator": orchestrator,
        "interview": interview,
        "gateway": gateway,
        "engine": engine,
        "scheduler": scheduler,
        "event_bus": event_bus,
        "metrics": metrics,
        "synthesizer": synthesizer,
        "recognizer": recognizer,
        "microphone": microphone,
        "storage": storage,
        "scorer": scorer,
        "follow_ups": follow_up_generator,
        "capture": capture,
        "media": media,
        "uploader": uploader,
    }
