"""
Background upload of answer clips to Google Cloud Storage.
"""
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Protocol

from google.api_core import exceptions as gexc
from google.auth import exceptions as auth_exceptions
from google.cloud import storage
from sqlalchemy.exc import SQLAlchemyError

from ...config import VIDEO_BUCKET, UPLOAD_WORKERS
from ...errors import MockPrepError
from ...interview.models import RecordingClip

logger = logging.getLogger("uploads")


def clip_path(interview_id: str, answer_id: int, clip: RecordingClip) -> str:
    return f"{interview_id}/{answer_id}.{clip.extension}"


class ClipStorage:
    """Uploads clips into one bucket and returns their public URL."""

    def __init__(self, bucket_name: str = VIDEO_BUCKET, client: Optional[storage.Client] = None):
        self.bucket_name = bucket_name
        self._client = client
        self._bucket = None

    def _get_bucket(self):
        if self._bucket is None:
            if self._client is None:
                self._client = storage.Client()
            self._bucket = self._client.bucket(self.bucket_name)
        return self._bucket

    def upload(self, clip: RecordingClip, path: str) -> Optional[str]:
        """Upload (overwriting) and return the public URL, or None on failure."""
        try:
            blob = self._get_bucket().blob(path)
            blob.upload_from_string(clip.data, content_type=clip.content_type or "video/webm")
            return blob.public_url
        except (gexc.GoogleAPICallError, auth_exceptions.GoogleAuthError, OSError) as e:
            logger.error(f"Video upload failed for {path}: {e}")
            return None


class AnswerPatcher(Protocol):
    def attach_clip_url(self, answer_id: int, url: str) -> None: ...


class ClipUploader:
    """
    Runs clip uploads off the interview loop.

    The clip is owned by the uploader once handed over. On success the answer
    row is patched with the clip URL. Failures are logged and reported through
    ``on_complete`` but never raised; completion order is unspecified.
    """

    def __init__(self,
                 storage_backend: ClipStorage,
                 gateway: AnswerPatcher,
                 executor: Optional[Executor] = None,
                 on_complete: Optional[Callable[[int, Optional[str]], None]] = None):
        self.storage = storage_backend
        self.gateway = gateway
        self.executor = executor or ThreadPoolExecutor(max_workers=UPLOAD_WORKERS,
                                                       thread_name_prefix="clip-upload")
        self.on_complete = on_complete
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    def submit(self, clip: RecordingClip, interview_id: str, answer_id: int) -> Future:
        path = clip_path(interview_id, answer_id, clip)
        logger.debug(f"Queued upload of {clip.size} bytes to {path}")
        future = self.executor.submit(self._upload, clip, path, answer_id)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def _upload(self, clip: RecordingClip, path: str, answer_id: int) -> Optional[str]:
        url = self.storage.upload(clip, path)
        if url:
            try:
                self.gateway.attach_clip_url(answer_id, url)
                logger.info(f"Clip for answer {answer_id} uploaded to {url}")
            except (SQLAlchemyError, MockPrepError) as e:
                logger.error(f"Failed to attach clip URL to answer {answer_id}: {e}")
                url = None
        if self.on_complete is not None:
            self.on_complete(answer_id, url)
        return url

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every queued upload has finished."""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        if isinstance(self.executor, ThreadPoolExecutor):
            self.executor.shutdown(wait=wait)
