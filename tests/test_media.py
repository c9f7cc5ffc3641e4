import pytest

from mockprep.errors import RecordingError
from mockprep.infrastructure.media import (
    AudioConstraints, ChunkRecorder, MediaTrack, RecordingSession, select_mime_type
)
from mockprep.interview.models import RecordingClip
from mockprep.interview.services import MediaCaptureService
from mockprep.interview.testing import MockMicrophone


def test_track_push_and_unsubscribe():
    track = MediaTrack("audio", "mic")
    received = []
    unsubscribe = track.subscribe(received.append)
    track.push(b"a")
    unsubscribe()
    track.push(b"b")
    assert received == [b"a"]


def test_stopped_track_ignores_pushes():
    track = MediaTrack("video", "camera")
    received = []
    track.subscribe(received.append)
    track.stop()
    track.push(b"frame")
    assert track.ended
    assert received == []


def test_track_kind_validated():
    with pytest.raises(ValueError):
        MediaTrack("screen")


def test_select_mime_type():
    assert select_mime_type(ChunkRecorder.is_type_supported) == "video/webm;codecs=vp9,opus"
    assert select_mime_type(lambda mime: mime == "video/webm") == "video/webm"
    assert select_mime_type(lambda mime: False) == ""


def test_session_without_audio_does_nothing():
    session = RecordingSession(MediaTrack("video"), None)
    session.start()
    assert not session.is_active()
    with pytest.raises(RecordingError):
        session.stop()


def test_session_collects_chunks_from_both_tracks():
    video, audio = MediaTrack("video"), MediaTrack("audio")
    session = RecordingSession(video, audio)
    session.start()
    video.push(b"V1")
    audio.push(b"")
    audio.push(b"A1")
    clip = session.stop()
    assert clip.data == b"V1A1"
    assert clip.content_type == "video/webm;codecs=vp9,opus"
    assert not session.is_active()
    with pytest.raises(RecordingError):
        session.stop()


def test_session_falls_back_to_default_type():
    audio = MediaTrack("audio")
    session = RecordingSession(None, audio, is_type_supported=lambda mime: False)
    session.start()
    audio.push(b"x")
    assert session.stop().content_type == "video/webm"


def test_cleanup_discards_recording():
    audio = MediaTrack("audio")
    session = RecordingSession(None, audio)
    session.start()
    audio.push(b"x")
    session.cleanup()
    assert not session.is_active()
    with pytest.raises(RecordingError):
        session.stop()


def test_clip_extension():
    assert RecordingClip(b"", "video/mp4").extension == "mp4"
    assert RecordingClip(b"", "video/webm;codecs=vp8,opus").extension == "webm"


def test_microphone_acquired_once_with_processing():
    microphone = MockMicrophone()
    media = MediaCaptureService(microphone)
    track = media.open()
    assert media.open() is track
    assert microphone.calls == 1
    assert track.constraints == AudioConstraints(True, True, True)


def test_begin_cleans_up_previous_session():
    microphone = MockMicrophone()
    media = MediaCaptureService(microphone)
    media.open()
    assert media.begin()
    microphone.track.push(b"first")
    assert media.begin()
    microphone.track.push(b"second")
    clip = media.finish()
    assert clip.data == b"second"
    assert media.finish() is None


def test_microphone_failure_disables_recording():
    media = MediaCaptureService(MockMicrophone(fail=True))
    assert media.open() is None
    assert not media.begin()
    assert not media.recording
    assert media.finish() is None


def test_release_stops_all_tracks():
    microphone = MockMicrophone()
    camera = MediaTrack("video", "camera")
    media = MediaCaptureService(microphone, video_source=lambda: camera)
    media.open()
    media.begin()
    camera.push(b"frame")
    media.release()
    assert camera.ended
    assert microphone.track.ended
    assert not media.recording
