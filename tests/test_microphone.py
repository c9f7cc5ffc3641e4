from types import SimpleNamespace

import pytest

from mockprep.infrastructure.media import AudioConstraints, PyAudioMicrophone
from mockprep.infrastructure.speech.stt import GoogleStreamingRecognizer
from mockprep.interview.services import MediaCaptureService
from mockprep.interview.testing import MockSpeechClient, recognition_response as final


class FakeStream:
    def __init__(self):
        self.started = False
        self.stopped = False
        self.closed = False

    def start_stream(self):
        self.started = True

    def stop_stream(self):
        self.stopped = True

    def close(self):
        self.closed = True


class FakePyAudio:
    def __init__(self, open_error=None):
        self.open_error = open_error
        self.open_kwargs = None
        self.stream = FakeStream()
        self.terminated = False

    def get_device_info_by_index(self, index):
        return {"index": index, "name": "USB Headset"}

    def open(self, **kwargs):
        if self.open_error is not None:
            raise self.open_error
        self.open_kwargs = kwargs
        return self.stream

    def terminate(self):
        self.terminated = True


def fake_module(pa):
    return SimpleNamespace(PyAudio=lambda: pa, paInt16=8, paContinue=0, paComplete=1)


@pytest.fixture
def pa():
    return FakePyAudio()


def test_opens_mono_input_stream(pa):
    mic = PyAudioMicrophone(device_index=3, sample_rate=16000, frames_per_buffer=1600,
                            pyaudio_module=fake_module(pa))
    track = mic(AudioConstraints())

    assert track.kind == "audio"
    assert track.label == "USB Headset"
    assert mic.track is track
    assert pa.stream.started
    kwargs = pa.open_kwargs
    assert kwargs["format"] == 8
    assert kwargs["channels"] == 1
    assert kwargs["rate"] == 16000
    assert kwargs["input"] is True
    assert kwargs["input_device_index"] == 3
    assert kwargs["frames_per_buffer"] == 1600


def test_default_device_label(pa):
    track = PyAudioMicrophone(pyaudio_module=fake_module(pa))(AudioConstraints())
    assert track.label == "default microphone"
    assert pa.open_kwargs["input_device_index"] is None


def test_callback_pushes_pcm_until_closed(pa):
    mic = PyAudioMicrophone(pyaudio_module=fake_module(pa))
    track = mic(AudioConstraints())
    on_audio = pa.open_kwargs["stream_callback"]
    received = []
    track.subscribe(received.append)

    assert on_audio(b"\x01\x02", 1, None, 0) == (None, 0)
    assert received == [b"\x01\x02"]

    mic.close()
    assert track.ended
    assert pa.stream.stopped and pa.stream.closed
    assert pa.terminated
    assert on_audio(b"\x03\x04", 1, None, 0) == (None, 1)
    assert received == [b"\x01\x02"]


def test_open_failure_disables_capture():
    pa = FakePyAudio(open_error=OSError("Invalid input device"))
    mic = PyAudioMicrophone(pyaudio_module=fake_module(pa))

    with pytest.raises(OSError):
        mic(AudioConstraints())
    assert pa.terminated
    assert mic.track is None

    pa = FakePyAudio(open_error=OSError("Invalid input device"))
    media = MediaCaptureService(PyAudioMicrophone(pyaudio_module=fake_module(pa)))
    assert media.open() is None


def test_microphone_feeds_recognition(pa, scheduler):
    media = MediaCaptureService(PyAudioMicrophone(pyaudio_module=fake_module(pa)))
    track = media.open()
    client = MockSpeechClient(responses=[final("Hello")], read_requests=1)
    recognizer = GoogleStreamingRecognizer(track, scheduler, client=client)
    results = []

    recognizer.start("en-US", results.append, lambda code: None, lambda: None)
    pa.open_kwargs["stream_callback"](b"\x10\x00", 1, None, 0)
    recognizer._session.thread.join(timeout=5)
    scheduler.run_ready()

    assert client.audio == [b"\x10\x00"]
    assert results == [["Hello"]]
