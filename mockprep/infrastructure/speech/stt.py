"""
Speech-to-text functionality using Google Cloud Speech streaming recognition.

The recognizer reads PCM chunks from a shared microphone MediaTrack and
reports final transcript segments, errors and session ends as short error
codes ("no-speech", "network", ...). All callbacks are posted through the
scheduler.
"""
import logging
import queue
import threading
from typing import Callable, Iterator, List, Optional

from google.api_core import exceptions as gexc
from google.auth import exceptions as auth_exceptions
from google.cloud import speech

from ..media.tracks import MediaTrack
from ...config import RECOGNITION_SAMPLE_RATE
from ...utils.scheduling import Scheduler

logger = logging.getLogger("speech_stt")

# The session ended on its own; capture should resume.
RECOVERABLE_ERRORS = frozenset({"no-speech", "aborted"})

# Capture cannot continue.
FATAL_ERRORS = frozenset({
    "not-allowed", "service-not-allowed", "audio-capture",
    "network", "language-not-supported",
})

_EXCEPTION_CODES = (
    ((gexc.OutOfRange, gexc.Aborted, gexc.Cancelled), "aborted"),
    ((gexc.DeadlineExceeded,), "no-speech"),
    ((gexc.PermissionDenied, gexc.Unauthenticated), "not-allowed"),
    ((gexc.ResourceExhausted,), "service-not-allowed"),
    ((gexc.InvalidArgument,), "language-not-supported"),
    ((gexc.ServiceUnavailable,), "network"),
)


def classify_capture_error(exc: BaseException) -> str:
    """Map a recognition exception onto a capture error code."""
    for types, code in _EXCEPTION_CODES:
        if isinstance(exc, types):
            return code
    if isinstance(exc, auth_exceptions.GoogleAuthError):
        return "not-allowed"
    if isinstance(exc, OSError):
        return "audio-capture"
    return "unknown"


def is_recoverable(code: Optional[str]) -> bool:
    """None (a clean end) and the recoverable codes restart capture."""
    return code is None or code in RECOVERABLE_ERRORS


class _StreamingSession:
    """One streaming_recognize call fed by one track subscription."""

    def __init__(self, recognizer: "GoogleStreamingRecognizer", language_tag: str,
                 on_result, on_error, on_end):
        self.recognizer = recognizer
        self.language_tag = language_tag
        self.on_result = on_result
        self.on_error = on_error
        self.on_end = on_end
        self.segments: List[str] = []
        self.stopped = False
        self._chunks: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._unsubscribe = None
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._unsubscribe = self.recognizer.audio_track.subscribe(self._chunks.put)
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()

    def stop(self) -> None:
        self.stopped = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._chunks.put(None)

    def _requests(self) -> Iterator[speech.StreamingRecognizeRequest]:
        while True:
            chunk = self._chunks.get()
            if chunk is None or self.stopped:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def _post(self, callback, *args) -> None:
        if not self.stopped:
            self.recognizer.scheduler.call_soon(callback, *args)

    def _run(self) -> None:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=RECOGNITION_SAMPLE_RATE,
            language_code=self.language_tag,
            enable_automatic_punctuation=True,
        )
        streaming_config = speech.StreamingRecognitionConfig(config=config, interim_results=False)

        try:
            responses = self.recognizer.client.streaming_recognize(
                config=streaming_config, requests=self._requests()
            )
            for response in responses:
                for result in response.results:
                    if result.is_final and result.alternatives:
                        self.segments.append(result.alternatives[0].transcript.strip())
                        self._post(self.on_result, list(self.segments))
        except (gexc.GoogleAPICallError, auth_exceptions.GoogleAuthError, OSError) as e:
            code = classify_capture_error(e)
            logger.info(f"Recognition session ended with {code}: {e}")
            self._post(self.on_error, code)
        finally:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            self._post(self.on_end)


class GoogleStreamingRecognizer:
    """Continuous recognition over a shared microphone track."""

    def __init__(self, audio_track: Optional[MediaTrack], scheduler: Scheduler, client=None):
        self.audio_track = audio_track
        self.scheduler = scheduler
        self.client = client
        if self.client is None and audio_track is not None:
            try:
                self.client = speech.SpeechClient()
            except auth_exceptions.DefaultCredentialsError as e:
                logger.warning(f"Google Speech unavailable: {e}")
                self.client = None
        self._session: Optional[_StreamingSession] = None

    @property
    def available(self) -> bool:
        return self.client is not None and self.audio_track is not None and not self.audio_track.ended

    def start(self,
              language_tag: str,
              on_result: Callable[[List[str]], None],
              on_error: Callable[[str], None],
              on_end: Callable[[], None]) -> None:
        self.stop()
        self._session = _StreamingSession(self, language_tag, on_result, on_error, on_end)
        self._session.start()
        logger.debug(f"Recognition session started ({language_tag})")

    def stop(self) -> None:
        if self._session is not None:
            self._session.stop()
            self._session = None
