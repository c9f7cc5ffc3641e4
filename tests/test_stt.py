import pytest

from google.api_core import exceptions as gexc

from mockprep.infrastructure.media import MediaTrack
from mockprep.infrastructure.speech.stt import GoogleStreamingRecognizer
from mockprep.interview.services import SpeechCaptureAdapter
from mockprep.interview.testing import MockSpeechClient, recognition_response as final


class Callbacks:
    def __init__(self):
        self.results = []
        self.errors = []
        self.ends = 0

    def on_end(self):
        self.ends += 1


def run_session(recognizer, scheduler, language_tag="en-US"):
    calls = Callbacks()
    recognizer.start(language_tag, calls.results.append, calls.errors.append, calls.on_end)
    recognizer._session.thread.join(timeout=5)
    scheduler.run_ready()
    return calls


@pytest.fixture
def track():
    return MediaTrack("audio", "mic")


def test_finals_then_deadline_reports_no_speech(track, scheduler):
    client = MockSpeechClient(
        responses=[final(" Hello there. "), final("thinking", is_final=False), final("I built APIs.")],
        error=gexc.DeadlineExceeded("stream timed out"),
    )
    recognizer = GoogleStreamingRecognizer(track, scheduler, client=client)

    calls = run_session(recognizer, scheduler, "en-GB")

    assert calls.results == [["Hello there."], ["Hello there.", "I built APIs."]]
    assert calls.errors == ["no-speech"]
    assert calls.ends == 1
    assert client.config.config.language_code == "en-GB"
    assert not client.config.interim_results


def test_permission_denied_reports_not_allowed(track, scheduler):
    client = MockSpeechClient(responses=[final("Hi")], error=gexc.PermissionDenied("no access"))
    recognizer = GoogleStreamingRecognizer(track, scheduler, client=client)

    calls = run_session(recognizer, scheduler)

    assert calls.results == [["Hi"]]
    assert calls.errors == ["not-allowed"]
    assert calls.ends == 1


def test_track_audio_is_streamed(track, scheduler):
    client = MockSpeechClient(responses=[final("ok")], read_requests=2)
    recognizer = GoogleStreamingRecognizer(track, scheduler, client=client)
    calls = Callbacks()

    recognizer.start("en-US", calls.results.append, calls.errors.append, calls.on_end)
    track.push(b"\x00\x01")
    track.push(b"\x02\x03")
    recognizer._session.thread.join(timeout=5)
    scheduler.run_ready()

    assert client.audio == [b"\x00\x01", b"\x02\x03"]
    assert calls.results == [["ok"]]
    assert calls.errors == []
    assert calls.ends == 1


def test_stopped_session_posts_nothing(track, scheduler):
    client = MockSpeechClient(responses=[final("late")], read_requests=1)
    recognizer = GoogleStreamingRecognizer(track, scheduler, client=client)
    calls = Callbacks()

    recognizer.start("en-US", calls.results.append, calls.errors.append, calls.on_end)
    session = recognizer._session
    recognizer.stop()
    session.thread.join(timeout=5)
    scheduler.run_ready()

    assert client.audio == []
    assert calls.results == [] and calls.errors == [] and calls.ends == 0


def test_unavailable_without_live_track(scheduler):
    client = MockSpeechClient()
    assert not GoogleStreamingRecognizer(None, scheduler, client=client).available

    track = MediaTrack("audio", "mic")
    recognizer = GoogleStreamingRecognizer(track, scheduler, client=client)
    assert recognizer.available
    track.stop()
    assert not recognizer.available


def test_adapter_collects_streamed_transcript(track, scheduler):
    client = MockSpeechClient(responses=[final("I led"), final("a migration")])
    recognizer = GoogleStreamingRecognizer(track, scheduler, client=client)
    adapter = SpeechCaptureAdapter(recognizer, scheduler)
    assert adapter.supported

    adapter.start_capture("en-US")
    recognizer._session.thread.join(timeout=5)
    scheduler.run_ready()

    assert adapter.transcript == "I led a migration"
    assert adapter.is_listening
    assert adapter.stop_capture() == "I led a migration"


def test_adapter_stops_on_permission_denied(track, scheduler):
    client = MockSpeechClient(error=gexc.PermissionDenied("microphone blocked"))
    recognizer = GoogleStreamingRecognizer(track, scheduler, client=client)
    adapter = SpeechCaptureAdapter(recognizer, scheduler)
    stopped = []
    adapter.on_stopped = stopped.append

    adapter.start_capture("en-US")
    session = recognizer._session
    session.thread.join(timeout=5)
    scheduler.run_ready()

    assert stopped == ["not-allowed"]
    assert not adapter.is_listening
    assert scheduler.pending_timers == 0
