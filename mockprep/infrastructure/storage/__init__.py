"""Object storage for recorded answer clips."""

from .uploads import ClipStorage, ClipUploader, clip_path

__all__ = ["ClipStorage", "ClipUploader", "clip_path"]
