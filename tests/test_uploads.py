from unittest.mock import Mock

from google.api_core import exceptions as gexc

from mockprep.infrastructure.storage import ClipStorage, ClipUploader, clip_path
from mockprep.interview.events import EventType, InterviewEventBus
from mockprep.interview.models import RecordingClip
from mockprep.interview.services import upload_event_reporter
from mockprep.interview.testing import InlineExecutor, MockStorage, make_score, make_submission


def test_clip_path():
    assert clip_path("abc", 7, RecordingClip(b"x", "video/webm;codecs=vp9,opus")) == "abc/7.webm"
    assert clip_path("abc", 8, RecordingClip(b"x", "video/mp4")) == "abc/8.mp4"


def test_clip_storage_uploads_blob():
    blob = Mock(public_url="https://storage.googleapis.com/interview-videos/abc/7.webm")
    client = Mock()
    client.bucket.return_value.blob.return_value = blob

    url = ClipStorage("interview-videos", client=client).upload(RecordingClip(b"data"), "abc/7.webm")

    assert url == blob.public_url
    client.bucket.assert_called_once_with("interview-videos")
    client.bucket.return_value.blob.assert_called_once_with("abc/7.webm")
    blob.upload_from_string.assert_called_once_with(b"data", content_type="video/webm")


def test_clip_storage_failure_returns_none():
    client = Mock()
    client.bucket.return_value.blob.return_value.upload_from_string.side_effect = \
        gexc.ServiceUnavailable("unavailable")
    assert ClipStorage(client=client).upload(RecordingClip(b"data"), "abc/7.webm") is None


def test_uploader_attaches_url(gateway, mock_id):
    answer_id = gateway.record_answer(mock_id, make_submission(), make_score())
    completed = []
    uploader = ClipUploader(MockStorage(), gateway, executor=InlineExecutor(),
                            on_complete=lambda *args: completed.append(args))

    future = uploader.submit(RecordingClip(b"clip"), mock_id, answer_id)

    url = f"https://storage.example.com/interview-videos/{mock_id}/{answer_id}.webm"
    assert future.result() == url
    assert completed == [(answer_id, url)]
    assert gateway.list_answers(mock_id)[0].video_url == url


def test_uploader_failure_is_reported_not_raised(gateway, mock_id):
    answer_id = gateway.record_answer(mock_id, make_submission(), make_score())
    completed = []
    uploader = ClipUploader(MockStorage(fail=True), gateway, executor=InlineExecutor(),
                            on_complete=lambda *args: completed.append(args))

    assert uploader.submit(RecordingClip(b"clip"), mock_id, answer_id).result() is None
    assert completed == [(answer_id, None)]
    assert gateway.list_answers(mock_id)[0].video_url is None


def test_uploader_with_thread_pool(gateway, mock_id):
    answer_id = gateway.record_answer(mock_id, make_submission(), make_score())
    storage = MockStorage()
    uploader = ClipUploader(storage, gateway)
    uploader.submit(RecordingClip(b"clip"), mock_id, answer_id)
    uploader.wait(timeout=5)
    uploader.shutdown()
    assert f"{mock_id}/{answer_id}.webm" in storage.uploads


def test_upload_event_reporter(scheduler):
    bus = InterviewEventBus()
    events = []
    bus.subscribe_all(events.append)

    report = upload_event_reporter(bus, "abc", scheduler, clock=lambda: 1.0)
    report(7, "https://example.com/7.webm")
    report(8, None)
    assert events == []

    scheduler.run_ready()
    assert [e.event_type for e in events] == [EventType.CLIP_UPLOADED, EventType.CLIP_UPLOAD_FAILED]
    assert events[0].data == {"answer_id": 7, "url": "https://example.com/7.webm"}
