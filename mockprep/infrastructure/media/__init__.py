"""Microphone/camera tracks and per-answer recording sessions."""

from .tracks import MediaTrack, AudioConstraints, select_mime_type
from .recorder import ChunkRecorder, RecordingSession
from .microphone import PyAudioMicrophone

__all__ = [
    "MediaTrack", "AudioConstraints", "select_mime_type",
    "ChunkRecorder", "RecordingSession", "PyAudioMicrophone",
]
