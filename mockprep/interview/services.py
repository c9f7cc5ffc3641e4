"""
Service classes for the interview system.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from .context import SessionContext
from .engine import QuestionGenerator
from .events import InterviewEventBus, ClipUploadedEvent, ClipUploadFailedEvent
from .models import JobContext, InterviewOptions, RecordingClip
from ..config import MAX_CAPTURE_RESTARTS, CAPTURE_RESTART_DELAY
from ..errors import CaptureUnavailableError, RecordingError
from ..infrastructure.media.recorder import RecordingSession, ChunkRecorder, RecorderFactory
from ..infrastructure.media.tracks import AudioConstraints, MediaTrack
from ..infrastructure.speech.stt import RECOVERABLE_ERRORS
from ..infrastructure.speech.voices import Voice, select_voice, classify_voice_gender
from ..utils.scheduling import Scheduler, TimerHandle

logger = logging.getLogger("services")


class RecognitionProvider(Protocol):
    """A continuous speech recognizer (one provider session at a time)."""

    @property
    def available(self) -> bool: ...

    def start(self, language_tag: str,
              on_result: Callable[[List[str]], None],
              on_error: Callable[[str], None],
              on_end: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class CaptureHandle:
    """Identifies one capture started by start_capture()."""
    id: int
    language_tag: str


class SpeechCaptureAdapter:
    """
    Continuous speech capture on top of a recognizer that ends on its own.

    Provider sessions end after silence or on transient errors; the adapter
    restarts them (up to ``max_restarts`` times per capture) and keeps one
    transcript across all of them. Final segments are only ever appended.
    Fatal errors stop capture at once and are reported through ``on_stopped``.
    """

    def __init__(self,
                 provider: Optional[RecognitionProvider],
                 scheduler: Scheduler,
                 max_restarts: int = MAX_CAPTURE_RESTARTS,
                 restart_delay: float = CAPTURE_RESTART_DELAY):
        self.provider = provider
        self.scheduler = scheduler
        self.max_restarts = max_restarts
        self.restart_delay = restart_delay
        self.supported = bool(provider is not None and provider.available)

        self.on_transcript: Optional[Callable[[str], None]] = None
        self.on_stopped: Optional[Callable[[str], None]] = None

        self._committed: List[str] = []
        self._session_segments: List[str] = []
        self._handle: Optional[CaptureHandle] = None
        self._next_handle_id = 0
        self._session_token = 0
        self._restart_count = 0
        self._restart_timer: Optional[TimerHandle] = None

    @property
    def is_listening(self) -> bool:
        return self._handle is not None

    @property
    def restart_count(self) -> int:
        return self._restart_count

    @property
    def transcript(self) -> str:
        return " ".join(s for s in self._committed + self._session_segments if s)

    def start_capture(self, language_tag: str) -> CaptureHandle:
        """
        Start a new capture, stopping any capture still running.

        Raises:
            CaptureUnavailableError: If no recognizer is available
        """
        if not self.supported:
            raise CaptureUnavailableError("Speech recognition is not available")

        if self._handle is not None:
            self.stop_capture()

        self._committed = []
        self._session_segments = []
        self._restart_count = 0
        self._next_handle_id += 1
        self._handle = CaptureHandle(id=self._next_handle_id, language_tag=language_tag)
        self._start_session()
        logger.info(f"Speech capture {self._handle.id} started ({language_tag})")
        return self._handle

    def stop_capture(self, handle: Optional[CaptureHandle] = None) -> str:
        """Stop capture and return the transcript. A stale handle is a no-op."""
        if self._handle is None or (handle is not None and handle.id != self._handle.id):
            return self.transcript
        self._terminate()
        logger.info("Speech capture stopped")
        return self.transcript

    def reset(self) -> None:
        """Clear the accumulated transcript."""
        self._committed = []
        self._session_segments = []

    def _start_session(self) -> None:
        self._session_token += 1
        token = self._session_token
        self._session_segments = []
        self.provider.start(
            self._handle.language_tag,
            lambda segments: self._on_result(token, segments),
            lambda code: self._on_error(token, code),
            lambda: self._on_end(token),
        )

    def _fold_session(self) -> None:
        self._committed.extend(self._session_segments)
        self._session_segments = []

    def _terminate(self) -> None:
        # Invalidate callbacks from the provider session being stopped
        self._session_token += 1
        if self._restart_timer is not None:
            self._restart_timer.cancel()
            self._restart_timer = None
        self.provider.stop()
        self._fold_session()
        self._handle = None

    def _stop_with(self, reason: str) -> None:
        self._terminate()
        logger.warning(f"Speech capture stopped: {reason}")
        if self.on_stopped is not None:
            self.on_stopped(reason)

    def _on_result(self, token: int, segments: List[str]) -> None:
        if token != self._session_token or self._handle is None:
            return
        self._session_segments = [s.strip() for s in segments]
        if self.on_transcript is not None:
            self.on_transcript(self.transcript)

    def _on_error(self, token: int, code: str) -> None:
        if token != self._session_token or self._handle is None:
            return
        if code in RECOVERABLE_ERRORS:
            logger.debug(f"Recognizer reported {code}, waiting for session end")
            return
        self._stop_with(code)

    def _on_end(self, token: int) -> None:
        if token != self._session_token or self._handle is None:
            return
        self._session_token += 1
        self._fold_session()

        if self._restart_count >= self.max_restarts:
            self._stop_with("restart-limit")
            return

        self._restart_count += 1
        handle_id = self._handle.id
        logger.debug(f"Restarting recognition ({self._restart_count}/{self.max_restarts})")
        self._restart_timer = self.scheduler.call_later(self.restart_delay, self._restart, handle_id)

    def _restart(self, handle_id: int) -> None:
        self._restart_timer = None
        if self._handle is None or self._handle.id != handle_id:
            return
        self._start_session()


class Synthesizer(Protocol):
    @property
    def available(self) -> bool: ...

    def voices(self) -> List[Voice]: ...

    def speak(self, text: str, voice: Optional[Voice], on_done: Callable[[Optional[str]], None]) -> None: ...

    def cancel(self) -> None: ...


class SpeechOutputService:
    """
    Reads questions aloud.

    A local voice is used when one matches the preferred gender; otherwise the
    best remote voice; otherwise whatever the local engine offers.
    """

    def __init__(self,
                 context: SessionContext,
                 local: Optional[Synthesizer] = None,
                 remote: Optional[Synthesizer] = None):
        self.context = context
        self.local = local if local is not None and local.available else None
        self.remote = remote if remote is not None and remote.available else None
        self._voices_loaded = False

    @property
    def available(self) -> bool:
        return self.local is not None or self.remote is not None

    def load_voices(self) -> None:
        """Ask the providers for their voices once per session."""
        if self._voices_loaded:
            return
        if self.local is not None:
            self.context.local_voices = list(self.local.voices())
        if self.remote is not None:
            self.context.remote_voices = list(self.remote.voices())
        self._voices_loaded = True
        logger.debug(f"Loaded {len(self.context.local_voices)} local and "
                     f"{len(self.context.remote_voices)} remote voices")

    def choose(self):
        """Return (synthesizer, voice) for the current language and gender."""
        self.load_voices()
        gender = self.context.voice_gender
        language = self.context.language

        local_voice = None
        if self.local is not None:
            local_voice = select_voice(self.context.local_voices, gender, language)
            if local_voice is not None and classify_voice_gender(local_voice) == gender:
                return self.local, local_voice

        if self.remote is not None:
            remote_voice = select_voice(self.context.remote_voices, gender, language)
            if remote_voice is not None:
                return self.remote, remote_voice

        if self.local is not None:
            return self.local, local_voice
        return None, None

    def speak(self, text: str, on_done: Callable[[Optional[str]], None]) -> bool:
        """Start speaking. Returns False when nothing can speak."""
        synthesizer, voice = self.choose()
        if synthesizer is None:
            return False
        logger.debug(f"Speaking with {voice.name if voice else 'default voice'}")
        synthesizer.speak(text, voice, on_done)
        return True

    def cancel(self) -> None:
        for synthesizer in (self.local, self.remote):
            if synthesizer is not None:
                synthesizer.cancel()


class MediaCaptureService:
    """
    Owns the shared microphone track and the per-answer recording session.

    The microphone is requested once, in open(), and reused for every
    question. The camera track is read from ``video_source`` each time a
    recording begins.
    """

    def __init__(self,
                 microphone: Callable[[AudioConstraints], Optional[MediaTrack]],
                 video_source: Callable[[], Optional[MediaTrack]] = lambda: None,
                 recorder_factory: RecorderFactory = ChunkRecorder,
                 is_type_supported: Callable[[str], bool] = ChunkRecorder.is_type_supported):
        self.microphone = microphone
        self.video_source = video_source
        self.recorder_factory = recorder_factory
        self.is_type_supported = is_type_supported
        self.audio_track: Optional[MediaTrack] = None
        self._opened = False
        self._session: Optional[RecordingSession] = None
        self._video_tracks: List[MediaTrack] = []

    def open(self) -> Optional[MediaTrack]:
        """Acquire the microphone (first call only) and return it."""
        if self._opened:
            return self.audio_track
        self._opened = True
        try:
            self.audio_track = self.microphone(AudioConstraints(
                echo_cancellation=True, noise_suppression=True, auto_gain_control=True
            ))
        except OSError as e:
            logger.warning(f"Microphone unavailable, recording disabled: {e}")
            self.audio_track = None
        return self.audio_track

    @property
    def recording(self) -> bool:
        return self._session is not None and self._session.is_active()

    def begin(self) -> bool:
        """Start recording a new answer. Returns False when there is no audio."""
        if self._session is not None and self._session.is_active():
            self._session.cleanup()
        self._session = None

        if self.audio_track is None:
            return False

        video_track = self.video_source()
        if video_track is not None and video_track not in self._video_tracks:
            self._video_tracks.append(video_track)

        session = RecordingSession(video_track, self.audio_track,
                                   recorder_factory=self.recorder_factory,
                                   is_type_supported=self.is_type_supported)
        session.start()
        self._session = session
        return session.is_active()

    def finish(self) -> Optional[RecordingClip]:
        """Stop recording and return the clip, or None if nothing was recording."""
        session, self._session = self._session, None
        if session is None or not session.is_active():
            return None
        try:
            return session.stop()
        except RecordingError as e:
            logger.warning(f"Could not finish recording: {e}")
            return None

    def discard(self) -> None:
        if self._session is not None:
            self._session.cleanup()
            self._session = None

    def release(self) -> None:
        """Stop recording and every held track."""
        self.discard()
        for track in self._video_tracks:
            track.stop()
        self._video_tracks = []
        if self.audio_track is not None:
            self.audio_track.stop()
            self.audio_track = None
        logger.info("Media tracks released")


def upload_event_reporter(event_bus: InterviewEventBus, interview_id: str,
                          scheduler: Optional[Scheduler] = None,
                          clock: Callable[[], float] = time.time) -> Callable[[int, Optional[str]], None]:
    """
    Build a ClipUploader ``on_complete`` callback that reports on the event bus.

    With a scheduler the event is posted to the loop thread (uploads finish on
    worker threads); without one it is emitted directly.
    """
    def emit(answer_id: int, url: Optional[str]) -> None:
        if url:
            event_bus.emit(ClipUploadedEvent(interview_id, clock(), answer_id, url))
        else:
            event_bus.emit(ClipUploadFailedEvent(interview_id, clock(), answer_id))

    def on_complete(answer_id: int, url: Optional[str]) -> None:
        if scheduler is None:
            emit(answer_id, url)
        else:
            scheduler.call_soon(emit, answer_id, url)

    return on_complete


class InterviewSetupService:
    """Generates a question set and stores it as a new interview."""

    def __init__(self, generator: QuestionGenerator, gateway):
        self.generator = generator
        self.gateway = gateway

    def create(self, job: JobContext, options: InterviewOptions) -> str:
        """
        Create an interview and return its id.

        Raises:
            NotAuthenticatedError: Without a signed-in user (checked before generating)
            GenerationError: If no usable question set comes back
        """
        self.gateway.require_user()
        questions = self.generator.generate(job, options)
        mock_id = self.gateway.create_interview(job, questions, options)
        logger.info(f"Interview {mock_id} ready: {len(questions)} {options.interview_type} "
                    f"questions at {options.difficulty} level")
        return mock_id
