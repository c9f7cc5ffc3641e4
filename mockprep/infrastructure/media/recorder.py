"""
Per-answer recording sessions over the shared audio track and the camera.
"""
import logging
from typing import Callable, List, Optional, Sequence

from .tracks import MediaTrack, select_mime_type
from ...config import DEFAULT_CLIP_TYPE
from ...errors import RecordingError
from ...interview.models import RecordingClip

logger = logging.getLogger("recorder")


class ChunkRecorder:
    """
    Collects encoded chunks from a set of tracks.

    Tracks deliver already-encoded data; the recorder keeps them in arrival
    order and hands each one to ``on_data``.
    """

    SUPPORTED_PREFIXES = ("video/webm", "video/mp4")

    def __init__(self, tracks: Sequence[MediaTrack], mime_type: str = ""):
        self.tracks = list(tracks)
        self.mime_type = mime_type or DEFAULT_CLIP_TYPE
        self.state = "inactive"
        self.on_data: Optional[Callable[[bytes], None]] = None
        self._unsubscribers: List[Callable[[], None]] = []

    @classmethod
    def is_type_supported(cls, mime_type: str) -> bool:
        return mime_type.startswith(cls.SUPPORTED_PREFIXES)

    def _deliver(self, chunk: bytes) -> None:
        if self.state == "recording" and self.on_data is not None:
            self.on_data(chunk)

    def start(self) -> None:
        if self.state == "recording":
            return
        self._unsubscribers = [track.subscribe(self._deliver) for track in self.tracks]
        self.state = "recording"

    def stop(self) -> None:
        if self.state == "inactive":
            raise RecordingError("Recorder not active")
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.state = "inactive"


RecorderFactory = Callable[[Sequence[MediaTrack], str], ChunkRecorder]


class RecordingSession:
    """One recording of one answer."""

    def __init__(self,
                 video_track: Optional[MediaTrack],
                 audio_track: Optional[MediaTrack],
                 recorder_factory: RecorderFactory = ChunkRecorder,
                 is_type_supported: Callable[[str], bool] = ChunkRecorder.is_type_supported):
        self.video_track = video_track
        self.audio_track = audio_track
        self.recorder_factory = recorder_factory
        self.is_type_supported = is_type_supported
        self._recorder: Optional[ChunkRecorder] = None
        self._chunks: List[bytes] = []
        self._active = False

    def _on_data(self, chunk: bytes) -> None:
        if len(chunk) > 0:
            self._chunks.append(chunk)

    def start(self) -> None:
        """Start recording. Does nothing without an audio track."""
        if self.audio_track is None:
            logger.debug("No audio track, recording skipped")
            return

        tracks = [t for t in (self.video_track, self.audio_track) if t is not None]
        mime_type = select_mime_type(self.is_type_supported)
        self._chunks = []
        self._recorder = self.recorder_factory(tracks, mime_type)
        self._recorder.on_data = self._on_data
        self._recorder.start()
        self._active = True
        logger.debug(f"Recording started ({self._recorder.mime_type})")

    def stop(self) -> RecordingClip:
        """
        Stop and return the recorded clip.

        Raises:
            RecordingError: If no recording is active
        """
        recorder = self._recorder
        if recorder is None or recorder.state == "inactive":
            self._active = False
            raise RecordingError("Recorder not active")

        recorder.stop()
        clip = RecordingClip(data=b"".join(self._chunks),
                             content_type=recorder.mime_type or DEFAULT_CLIP_TYPE)
        self._active = False
        self._chunks = []
        self._recorder = None
        logger.debug(f"Recording stopped, {clip.size} bytes")
        return clip

    def is_active(self) -> bool:
        return self._active

    def cleanup(self) -> None:
        """Force-stop without producing a clip."""
        if self._recorder is not None and self._recorder.state != "inactive":
            try:
                self._recorder.stop()
            except RecordingError:
                pass
        self._active = False
        self._chunks = []
        self._recorder = None
