"""
Microphone capture through PyAudio.

16-bit mono PCM at the recognition sample rate is pushed into a MediaTrack
from PyAudio's callback thread. pyaudio is imported on first use, so the rest
of the package works on machines without PortAudio.
"""
import logging
from typing import Optional

from .tracks import AudioConstraints, MediaTrack
from ...config import RECOGNITION_SAMPLE_RATE, MIC_FRAMES_PER_BUFFER

logger = logging.getLogger("microphone")


class PyAudioMicrophone:
    """
    Microphone source for MediaCaptureService: calling it opens the input
    stream and returns the live track.
    """

    def __init__(self,
                 device_index: Optional[int] = None,
                 sample_rate: int = RECOGNITION_SAMPLE_RATE,
                 frames_per_buffer: int = MIC_FRAMES_PER_BUFFER,
                 pyaudio_module=None):
        self.device_index = device_index
        self.sample_rate = sample_rate
        self.frames_per_buffer = frames_per_buffer
        self._pyaudio = pyaudio_module
        self._pa = None
        self._stream = None
        self.track: Optional[MediaTrack] = None

    def _module(self):
        if self._pyaudio is None:
            import pyaudio
            self._pyaudio = pyaudio
        return self._pyaudio

    def __call__(self, constraints: AudioConstraints) -> MediaTrack:
        """
        Open the input stream.

        Raises:
            OSError: If PortAudio cannot open the device
        """
        pyaudio = self._module()
        self._pa = pyaudio.PyAudio()
        try:
            label = "default microphone"
            if self.device_index is not None:
                info = self._pa.get_device_info_by_index(self.device_index)
                label = str(info.get("name", label))
            track = MediaTrack("audio", label, constraints)

            def on_audio(in_data, frame_count, time_info, status):
                if track.ended:
                    return None, pyaudio.paComplete
                if in_data:
                    track.push(in_data)
                return None, pyaudio.paContinue

            self._stream = self._pa.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.frames_per_buffer,
                stream_callback=on_audio,
            )
            self._stream.start_stream()
        except OSError as e:
            logger.error(f"Could not open microphone: {e}")
            self.close()
            raise

        # PortAudio has no built-in echo cancellation; constraints are recorded on the track only
        self.track = track
        logger.info(f"Microphone '{label}' open at {self.sample_rate} Hz")
        return track

    def close(self) -> None:
        """Stop the track and release PortAudio."""
        if self.track is not None:
            self.track.stop()
        if self._stream is not None:
            try:
                self._stream.stop_stream()
            finally:
                self._stream.close()
                self._stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
