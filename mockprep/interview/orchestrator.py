"""
Recording orchestrator: drives the user through an interview one question at a time.

Per question the sequence is: speak the question, count down 3-2-1, capture
the answer (speech + media), submit it for scoring, then (for root questions
only) ask one follow-up before moving on.

Everything that can happen (user actions, timers, synthesis completion,
background job results) is an event. Events are queued and handled one at a
time by dispatch(); an event that is not valid in the current state is
ignored. Timer and synthesis events carry the cycle number of the
speak/countdown sequence that produced them, job results carry the
submission number, and stale ones are dropped.
"""
import logging
import time
from collections import deque
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .context import SessionContext
from .engine import AnswerScorer, FollowUpGenerator
from .events import (
    InterviewEventBus, InterviewStartedEvent, QuestionPresentedEvent, StateChangedEvent,
    AnswerScoredEvent, FollowUpGeneratedEvent, FollowUpFailedEvent, CaptureStoppedEvent,
    InterviewCompletedEvent, ErrorOccurredEvent
)
from .models import AnswerSubmission, FollowUp, InterviewDefinition, ScoreResult
from .services import SpeechCaptureAdapter, SpeechOutputService, MediaCaptureService
from ..config import (
    COUNTDOWN_START, COUNTDOWN_TICK_SECONDS, SPEECH_TIMEOUT_FLOOR,
    SPEECH_SECONDS_PER_CHAR, SPEECH_TIMEOUT_MARGIN
)
from ..errors import CaptureUnavailableError, MockPrepError
from ..utils.scheduling import Scheduler, TimerHandle

logger = logging.getLogger("orchestrator")


class RecorderState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    COUNTING_DOWN = "counting_down"
    CAPTURING = "capturing"
    SUBMITTING = "submitting"
    FOLLOW_UP_PENDING = "follow_up_pending"
    ADVANCING = "advancing"
    FINISHED = "finished"


class EventKind(str, Enum):
    START = "start"
    SPEECH_DONE = "speech_done"
    SPEECH_TIMEOUT = "speech_timeout"
    COUNTDOWN_TICK = "countdown_tick"
    TOGGLE = "toggle"
    SUBMIT = "submit"
    SUBMISSION_DONE = "submission_done"
    FOLLOW_UP_DONE = "follow_up_done"
    SKIP_FOLLOW_UP = "skip_follow_up"
    TRANSCRIPT = "transcript"
    CAPTURE_STOPPED = "capture_stopped"


@dataclass(frozen=True)
class OrchestratorEvent:
    kind: EventKind
    cycle: Optional[int] = None
    submission: Optional[int] = None
    payload: Any = None


@dataclass(frozen=True)
class JobOutcome:
    """Result of a background job: a value or an error message."""
    value: Any = None
    error: Optional[str] = None


S = RecorderState
_ANSWERING = frozenset({S.IDLE, S.SPEAKING, S.COUNTING_DOWN, S.CAPTURING})

# event -> (states it is valid in, handler method)
TRANSITIONS: Dict[EventKind, Tuple[FrozenSet[RecorderState], str]] = {
    EventKind.START: (frozenset({S.IDLE}), "_handle_start"),
    EventKind.SPEECH_DONE: (frozenset({S.SPEAKING}), "_handle_speech_finished"),
    EventKind.SPEECH_TIMEOUT: (frozenset({S.SPEAKING}), "_handle_speech_finished"),
    EventKind.COUNTDOWN_TICK: (frozenset({S.COUNTING_DOWN}), "_handle_countdown_tick"),
    EventKind.TOGGLE: (_ANSWERING, "_handle_toggle"),
    EventKind.SUBMIT: (_ANSWERING, "_handle_submit"),
    EventKind.SUBMISSION_DONE: (frozenset({S.SUBMITTING}), "_handle_submission_done"),
    EventKind.FOLLOW_UP_DONE: (frozenset({S.FOLLOW_UP_PENDING}), "_handle_follow_up_done"),
    EventKind.SKIP_FOLLOW_UP: (_ANSWERING | {S.FOLLOW_UP_PENDING}, "_handle_skip_follow_up"),
    EventKind.TRANSCRIPT: (frozenset({S.CAPTURING}), "_handle_transcript"),
    EventKind.CAPTURE_STOPPED: (frozenset({S.CAPTURING}), "_handle_capture_stopped"),
}


def _outcome_of(future: Future) -> JobOutcome:
    """The job's outcome, or an error outcome when the job itself raised."""
    if future.cancelled():
        return JobOutcome(error="cancelled")
    error = future.exception()
    if error is not None:
        logger.error(f"Background job crashed: {error!r}")
        return JobOutcome(error=str(error) or type(error).__name__)
    return future.result()


def speech_timeout(text: str) -> float:
    """Upper bound on how long reading ``text`` aloud may take."""
    return max(SPEECH_TIMEOUT_FLOOR, SPEECH_SECONDS_PER_CHAR * len(text)) + SPEECH_TIMEOUT_MARGIN


class RecordingOrchestrator:
    """
    State machine for one interview run.

    Only a scoring or storage failure blocks progress: the orchestrator goes
    back to IDLE on the same question with ``error`` set and keeps the answer
    text and clip so the user can retry. Capture, synthesis, follow-up and
    upload problems are logged and the interview carries on.
    """

    def __init__(self,
                 interview: InterviewDefinition,
                 *,
                 scorer: AnswerScorer,
                 follow_ups: Optional[FollowUpGenerator],
                 gateway,
                 speech: SpeechOutputService,
                 capture: SpeechCaptureAdapter,
                 media: MediaCaptureService,
                 uploader,
                 scheduler: Scheduler,
                 context: SessionContext,
                 event_bus: Optional[InterviewEventBus] = None,
                 executor: Optional[Executor] = None,
                 clock: Callable[[], float] = time.time):
        self.interview = interview
        self.scorer = scorer
        self.follow_ups = follow_ups
        self.gateway = gateway
        self.speech = speech
        self.capture = capture
        self.media = media
        self.uploader = uploader
        self.scheduler = scheduler
        self.context = context
        self.event_bus = event_bus or InterviewEventBus()
        self.executor = executor
        self.clock = clock

        self._state = RecorderState.IDLE
        self._started = False
        self._torn_down = False
        self._index = 0
        self._follow_up: Optional[FollowUp] = None
        self._answer_text = ""
        self._countdown = 0
        self._error: Optional[str] = None
        self._pending_clip = None
        self._last_score: Optional[ScoreResult] = None
        self._recorded_ids: List[int] = []
        self._follow_up_ids: List[int] = []

        self._cycle = 0
        self._submission = 0
        self._timers: List[TimerHandle] = []
        self._queue: deque = deque()
        self._dispatching = False

        self.capture.on_transcript = lambda text: self.dispatch(
            OrchestratorEvent(EventKind.TRANSCRIPT, payload=text))
        self.capture.on_stopped = lambda reason: self.dispatch(
            OrchestratorEvent(EventKind.CAPTURE_STOPPED, payload=reason))

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def question_index(self) -> int:
        return self._index

    @property
    def total_questions(self) -> int:
        return len(self.interview.questions)

    @property
    def is_follow_up(self) -> bool:
        return self._follow_up is not None

    @property
    def current_question(self) -> Optional[str]:
        if self._follow_up is not None:
            return self._follow_up.question
        if self._index < len(self.interview.questions):
            return self.interview.questions[self._index].question
        return None

    @property
    def answer_text(self) -> str:
        return self._answer_text

    @property
    def countdown(self) -> int:
        return self._countdown

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_listening(self) -> bool:
        return self.capture.is_listening

    @property
    def last_score(self) -> Optional[ScoreResult]:
        return self._last_score

    @property
    def recorded_answer_ids(self) -> List[int]:
        return list(self._recorded_ids)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.dispatch(OrchestratorEvent(EventKind.START))

    def toggle_capture(self) -> None:
        self.dispatch(OrchestratorEvent(EventKind.TOGGLE))

    def submit_answer(self) -> None:
        self.dispatch(OrchestratorEvent(EventKind.SUBMIT))

    def skip_follow_up(self) -> None:
        self.dispatch(OrchestratorEvent(EventKind.SKIP_FOLLOW_UP))

    def set_answer_text(self, text: str) -> None:
        """Replace the answer text (typed input). Ignored while not answering."""
        if self._torn_down or self._state not in _ANSWERING:
            return
        self._answer_text = text

    def teardown(self) -> None:
        """Release everything; every later event is ignored."""
        if self._torn_down:
            return
        self._torn_down = True
        self._queue.clear()
        self._cancel_timers()
        self.speech.cancel()
        self.capture.stop_capture()
        self.media.release()
        logger.info(f"Orchestrator torn down in state {self._state.value}")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, event: OrchestratorEvent) -> None:
        """Queue an event and, unless already dispatching, drain the queue."""
        if self._torn_down:
            return
        self._queue.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue and not self._torn_down:
                self._process(self._queue.popleft())
        finally:
            self._dispatching = False

    def _process(self, event: OrchestratorEvent) -> None:
        allowed, handler = TRANSITIONS[event.kind]
        if not self._started and event.kind != EventKind.START:
            logger.debug(f"Ignoring {event.kind.value} before start")
            return
        if self._state not in allowed:
            logger.debug(f"Ignoring {event.kind.value} in state {self._state.value}")
            return
        if event.cycle is not None and event.cycle != self._cycle:
            logger.debug(f"Dropping stale {event.kind.value} (cycle {event.cycle} != {self._cycle})")
            return
        if event.submission is not None and event.submission != self._submission:
            logger.debug(f"Dropping stale {event.kind.value} (submission {event.submission})")
            return
        getattr(self, handler)(event)

    def _set_state(self, new_state: RecorderState) -> None:
        if new_state == self._state:
            return
        old_state, self._state = self._state, new_state
        logger.debug(f"State {old_state.value} -> {new_state.value}")
        self.event_bus.emit(StateChangedEvent(self.interview.mock_id, self.clock(),
                                              old_state.value, new_state.value))

    def _schedule(self, delay: float, kind: EventKind) -> None:
        cycle = self._cycle
        handle = self.scheduler.call_later(delay, self.dispatch, OrchestratorEvent(kind, cycle=cycle))
        self._timers.append(handle)

    def _cancel_timers(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers = []

    def _cancel_sequence(self) -> None:
        """Abandon the current speak/countdown sequence."""
        self._cycle += 1
        self._cancel_timers()
        self._countdown = 0
        self.speech.cancel()

    def _run_job(self, job: Callable[[], JobOutcome], kind: EventKind) -> None:
        """Run blocking work inline or on the executor and feed the result back as an event."""
        submission = self._submission

        def deliver(outcome: JobOutcome) -> None:
            self.dispatch(OrchestratorEvent(kind, submission=submission, payload=outcome))

        if self.executor is None:
            try:
                outcome = job()
            except Exception as e:
                logger.error(f"Job crashed: {e!r}")
                outcome = JobOutcome(error=str(e) or type(e).__name__)
            deliver(outcome)
            return
        future = self.executor.submit(job)
        future.add_done_callback(lambda f: self.scheduler.call_soon(deliver, _outcome_of(f)))

    def _emit_error(self, error_type: str, message: str, component: str) -> None:
        self.event_bus.emit(ErrorOccurredEvent(self.interview.mock_id, self.clock(),
                                               error_type, message, component))

    # ------------------------------------------------------------------
    # Question presentation
    # ------------------------------------------------------------------

    def _handle_start(self, event: OrchestratorEvent) -> None:
        if self._started:
            return
        self._started = True
        self.media.open()
        self.event_bus.emit(InterviewStartedEvent(self.interview.mock_id, self.clock(),
                                                  self.total_questions))
        if not self.interview.questions:
            self._finish()
            return
        self._present()

    def _present(self) -> None:
        """Read the current (root or follow-up) question aloud."""
        self._cycle += 1
        self._cancel_timers()
        self._error = None
        self._answer_text = ""
        text = self.current_question or ""
        self.event_bus.emit(QuestionPresentedEvent(self.interview.mock_id, self.clock(),
                                                   self._index, text, self.is_follow_up))
        self._set_state(RecorderState.SPEAKING)

        cycle = self._cycle
        if self.speech.available:
            started = self.speech.speak(
                text,
                lambda error: self.dispatch(OrchestratorEvent(EventKind.SPEECH_DONE, cycle=cycle, payload=error)),
            )
            if started:
                self._schedule(speech_timeout(text), EventKind.SPEECH_TIMEOUT)
                return
        self._begin_countdown()

    def _handle_speech_finished(self, event: OrchestratorEvent) -> None:
        if event.kind == EventKind.SPEECH_TIMEOUT:
            logger.warning("Speech did not finish in time, continuing")
            self.speech.cancel()
        elif event.payload:
            logger.warning(f"Speech synthesis failed: {event.payload}")
        self._begin_countdown()

    def _begin_countdown(self) -> None:
        self._cancel_timers()
        self._countdown = COUNTDOWN_START
        self._set_state(RecorderState.COUNTING_DOWN)
        self._schedule(COUNTDOWN_TICK_SECONDS, EventKind.COUNTDOWN_TICK)

    def _handle_countdown_tick(self, event: OrchestratorEvent) -> None:
        self._timers = []
        self._countdown -= 1
        if self._countdown > 0:
            self._schedule(COUNTDOWN_TICK_SECONDS, EventKind.COUNTDOWN_TICK)
            return
        self._begin_capture()

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def _begin_capture(self) -> None:
        self._cancel_timers()
        self._countdown = 0
        self._answer_text = ""
        self.capture.reset()
        if self.capture.supported:
            try:
                self.capture.start_capture(self.context.language_tag)
            except CaptureUnavailableError as e:
                logger.warning(f"Speech capture unavailable: {e}")
        if not self.media.begin():
            logger.debug("Recording not started (no audio track)")
        self._set_state(RecorderState.CAPTURING)

    def _stop_capture(self) -> None:
        if self.capture.is_listening:
            self.capture.stop_capture()

    def _handle_toggle(self, event: OrchestratorEvent) -> None:
        if self._state in (RecorderState.SPEAKING, RecorderState.COUNTING_DOWN):
            self._cancel_sequence()
            self._begin_capture()
        elif self._state == RecorderState.CAPTURING:
            self._stop_capture()
            self.media.discard()
            self._set_state(RecorderState.IDLE)
        else:
            self._begin_capture()

    def _handle_transcript(self, event: OrchestratorEvent) -> None:
        self._answer_text = event.payload

    def _handle_capture_stopped(self, event: OrchestratorEvent) -> None:
        logger.info(f"Speech capture ended ({event.payload}); typing still possible")
        self.event_bus.emit(CaptureStoppedEvent(self.interview.mock_id, self.clock(), event.payload))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _build_submission(self, text: str) -> AnswerSubmission:
        root = self.interview.questions[self._index]
        options = self.interview.options
        if self._follow_up is not None:
            return AnswerSubmission(
                question=self._follow_up.question,
                model_answer=root.answer,
                captured_text=text,
                language=self.context.language,
                difficulty=options.difficulty,
                parent_answer_id=self._follow_up.parent_answer_id,
            )
        return AnswerSubmission(
            question=root.question,
            model_answer=root.answer,
            captured_text=text,
            language=self.context.language,
            difficulty=options.difficulty,
        )

    def _score_and_record(self, submission: AnswerSubmission) -> JobOutcome:
        try:
            score = self.scorer.score(
                submission.question, submission.model_answer, submission.captured_text,
                submission.language, submission.difficulty,
            )
            answer_id = self.gateway.record_answer(self.interview.mock_id, submission, score)
        except (MockPrepError, SQLAlchemyError, ValueError) as e:
            logger.error(f"Submission failed: {e}")
            return JobOutcome(error=str(e))
        return JobOutcome(value=(submission, answer_id, score))

    def _handle_submit(self, event: OrchestratorEvent) -> None:
        text = (self._answer_text or self.capture.transcript).strip()
        if self._state in (RecorderState.SPEAKING, RecorderState.COUNTING_DOWN):
            self._cancel_sequence()
            if not text:
                logger.info("Empty submit while presenting, waiting for an answer")
                self._set_state(RecorderState.IDLE)
                return
        if not text:
            logger.info("Ignoring submit of an empty answer")
            return

        self._cancel_sequence()
        self._stop_capture()
        clip = self.media.finish()
        if clip is not None:
            self._pending_clip = clip

        submission = self._build_submission(text)
        self._answer_text = text
        self._error = None
        self._submission += 1
        self._set_state(RecorderState.SUBMITTING)
        self._run_job(lambda: self._score_and_record(submission), EventKind.SUBMISSION_DONE)

    def _handle_submission_done(self, event: OrchestratorEvent) -> None:
        outcome: JobOutcome = event.payload
        if outcome.error is not None:
            self._error = outcome.error
            self._emit_error("submission", outcome.error, "orchestrator")
            self._set_state(RecorderState.IDLE)
            return

        submission, answer_id, score = outcome.value
        self._last_score = score
        if submission.parent_answer_id is None:
            self._recorded_ids.append(answer_id)
        else:
            self._follow_up_ids.append(answer_id)
        self.event_bus.emit(AnswerScoredEvent(self.interview.mock_id, self.clock(), answer_id,
                                              self._index, score.rating,
                                              submission.parent_answer_id is not None))

        clip, self._pending_clip = self._pending_clip, None
        if clip is not None and self.uploader is not None:
            self.uploader.submit(clip, self.interview.mock_id, answer_id)

        if submission.parent_answer_id is None and self.follow_ups is not None:
            self._set_state(RecorderState.FOLLOW_UP_PENDING)
            self._submission += 1
            self._run_job(lambda: self._request_follow_up(submission, answer_id),
                          EventKind.FOLLOW_UP_DONE)
            return
        self._advance()

    # ------------------------------------------------------------------
    # Follow-ups and advancing
    # ------------------------------------------------------------------

    def _request_follow_up(self, submission: AnswerSubmission, answer_id: int) -> JobOutcome:
        try:
            question = self.follow_ups.generate(
                submission.question, submission.model_answer,
                submission.captured_text, submission.language,
            )
        except Exception as e:
            # any failure here just moves the interview on
            logger.warning(f"Follow-up generation failed: {e!r}")
            return JobOutcome(value=answer_id, error=str(e))
        return JobOutcome(value=(answer_id, question))

    def _handle_follow_up_done(self, event: OrchestratorEvent) -> None:
        outcome: JobOutcome = event.payload
        if outcome.error is not None:
            self.event_bus.emit(FollowUpFailedEvent(self.interview.mock_id, self.clock(),
                                                    outcome.value, outcome.error))
            self._advance()
            return

        parent_answer_id, question = outcome.value
        self._follow_up = FollowUp(question=question, parent_answer_id=parent_answer_id,
                                   root_index=self._index)
        self.event_bus.emit(FollowUpGeneratedEvent(self.interview.mock_id, self.clock(),
                                                   parent_answer_id, question))
        self._present()

    def _handle_skip_follow_up(self, event: OrchestratorEvent) -> None:
        if self._follow_up is None and self._state != RecorderState.FOLLOW_UP_PENDING:
            return
        logger.info("Follow-up skipped")
        self._submission += 1
        self._cancel_sequence()
        self._stop_capture()
        self.media.discard()
        self._pending_clip = None
        self._advance()

    def _advance(self) -> None:
        self._set_state(RecorderState.ADVANCING)
        self._follow_up = None
        self._pending_clip = None
        self._answer_text = ""
        self._error = None
        if self._index + 1 < len(self.interview.questions):
            self._index += 1
            self._present()
        else:
            self._finish()

    def _finish(self) -> None:
        self._cancel_timers()
        self._stop_capture()
        self.media.release()
        self._set_state(RecorderState.FINISHED)
        self.event_bus.emit(InterviewCompletedEvent(self.interview.mock_id, self.clock(),
                                                    len(self._recorded_ids), len(self._follow_up_ids)))
        logger.info(f"Interview {self.interview.mock_id} finished: "
                    f"{len(self._recorded_ids)} answers, {len(self._follow_up_ids)} follow-ups")
