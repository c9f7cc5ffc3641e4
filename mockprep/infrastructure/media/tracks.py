"""
Media tracks and recording format negotiation.

A MediaTrack is a live source of encoded chunks (microphone PCM, camera
frames). Consumers subscribe; producers push. Stopping a track ends it for
every consumer.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from ...config import MIME_CANDIDATES

logger = logging.getLogger("media")

ChunkCallback = Callable[[bytes], None]


@dataclass(frozen=True)
class AudioConstraints:
    """Processing requested when the microphone is acquired."""
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True


class MediaTrack:
    """A single audio or video source shared by several consumers."""

    def __init__(self, kind: str, label: str = "", constraints: Optional[AudioConstraints] = None):
        if kind not in ("audio", "video"):
            raise ValueError(f"Unknown track kind: {kind}")
        self.kind = kind
        self.label = label
        self.constraints = constraints
        self._subscribers: List[ChunkCallback] = []
        self._ended = False
        self._lock = threading.Lock()

    @property
    def ended(self) -> bool:
        return self._ended

    def subscribe(self, callback: ChunkCallback) -> Callable[[], None]:
        """Register a chunk consumer. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def push(self, chunk: bytes) -> None:
        """Deliver a chunk to every current subscriber. Ignored once ended."""
        with self._lock:
            if self._ended:
                return
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(chunk)

    def stop(self) -> None:
        with self._lock:
            if self._ended:
                return
            self._ended = True
            self._subscribers.clear()
        logger.debug(f"Stopped {self.kind} track '{self.label}'")


def select_mime_type(is_supported: Callable[[str], bool]) -> str:
    """First supported candidate format, or "" to let the recorder choose."""
    for mime in MIME_CANDIDATES:
        if is_supported(mime):
            return mime
    return ""
