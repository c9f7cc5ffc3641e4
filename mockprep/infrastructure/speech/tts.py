"""
Text-to-speech for reading questions aloud.

Two providers share one surface (``available``, ``voices()``, ``speak()``,
``cancel()``): a local pyttsx3 engine and Google Cloud Text-to-Speech played
through the system audio player. Playback runs on worker threads; completion
is reported through the scheduler so it lands on the interview loop.
"""
import logging
import os
import queue
import subprocess
import tempfile
import threading
from typing import Callable, List, Optional

import pyttsx3
from google.api_core import exceptions as gexc
from google.auth import exceptions as auth_exceptions
from google.cloud import texttospeech

from .voices import Voice
from ...config import TTS_RATE_WPM, RECOGNITION_SAMPLE_RATE
from ...utils.scheduling import Scheduler

logger = logging.getLogger("speech_tts")

# on_done(error) - error is None on normal completion
SpeechCallback = Callable[[Optional[str]], None]


def _gender_from_label(label) -> Optional[str]:
    if not label:
        return None
    text = str(label).lower()
    if "female" in text:
        return "female"
    if "male" in text:
        return "male"
    return None


def _language_from_pyttsx3(languages) -> str:
    for lang in languages or []:
        if isinstance(lang, bytes):
            # espeak reports b"\x05en-us"
            lang = lang.decode("utf-8", errors="ignore").lstrip("\x00\x01\x02\x03\x04\x05")
        if lang:
            return str(lang).replace("_", "-")
    return ""


class LocalSynthesizer:
    """pyttsx3 engine fed from a queue by a single daemon thread."""

    def __init__(self, scheduler: Scheduler, rate_wpm: int = TTS_RATE_WPM):
        self.scheduler = scheduler
        self._engine = None
        try:
            self._engine = pyttsx3.init()
            self._engine.setProperty("rate", rate_wpm)
        except (RuntimeError, OSError, ImportError) as e:
            logger.warning(f"Local TTS engine unavailable: {e}")
            self._engine = None

        self._queue: "queue.Queue" = queue.Queue(maxsize=10)
        self._current = 0
        self._lock = threading.Lock()
        self._thread = None
        if self._engine is not None:
            self._thread = threading.Thread(target=self._tts_loop, daemon=True)
            self._thread.start()

    @property
    def available(self) -> bool:
        return self._engine is not None

    def voices(self) -> List[Voice]:
        if self._engine is None:
            return []
        result = []
        for v in self._engine.getProperty("voices") or []:
            result.append(Voice(
                name=v.name or v.id,
                lang=_language_from_pyttsx3(getattr(v, "languages", None)),
                local_service=True,
                voice_id=v.id,
                gender=_gender_from_label(getattr(v, "gender", None)),
            ))
        return result

    def speak(self, text: str, voice: Optional[Voice], on_done: SpeechCallback) -> None:
        if self._engine is None:
            self.scheduler.call_soon(on_done, "synthesis-unavailable")
            return
        with self._lock:
            self._current += 1
            token = self._current
        try:
            self._queue.put_nowait((token, text, voice, on_done))
        except queue.Full:
            self.scheduler.call_soon(on_done, "synthesis-busy")

    def cancel(self) -> None:
        with self._lock:
            self._current += 1
        if self._engine is not None:
            self._engine.stop()

    def shutdown(self) -> None:
        if self._thread is not None:
            self.cancel()
            self._queue.put(None)
            self._thread.join(timeout=2)
            self._thread = None

    def _is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._current

    def _tts_loop(self):
        """Thread function to handle the TTS queue."""
        while True:
            item = self._queue.get()
            if item is None:
                break
            token, text, voice, on_done = item
            if not self._is_current(token):
                continue

            error = None
            try:
                if voice is not None and voice.voice_id:
                    self._engine.setProperty("voice", voice.voice_id)
                self._engine.say(text)
                self._engine.runAndWait()
            except (RuntimeError, OSError) as e:
                logger.error(f"TTS error: {e}")
                error = "synthesis-failed"

            if self._is_current(token):
                self.scheduler.call_soon(on_done, error)


class CloudSynthesizer:
    """Google Cloud Text-to-Speech, played with afplay (macOS) or aplay (Linux)."""

    def __init__(self, scheduler: Scheduler, client=None):
        self.scheduler = scheduler
        self._client = client
        if self._client is None:
            try:
                self._client = texttospeech.TextToSpeechClient()
            except auth_exceptions.DefaultCredentialsError as e:
                logger.warning(f"Google TTS unavailable: {e}")
                self._client = None
        self._process: Optional[subprocess.Popen] = None
        self._current = 0
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self._client is not None

    def voices(self, language_code: Optional[str] = None) -> List[Voice]:
        if self._client is None:
            return []
        try:
            response = self._client.list_voices(language_code=language_code or "")
        except gexc.GoogleAPICallError as e:
            logger.warning(f"Could not list Google TTS voices: {e}")
            return []

        result = []
        for v in response.voices:
            gender = texttospeech.SsmlVoiceGender(v.ssml_gender).name
            result.append(Voice(
                name=v.name,
                lang=v.language_codes[0] if v.language_codes else "",
                local_service=False,
                voice_id=v.name,
                gender=_gender_from_label(gender),
            ))
        return result

    def speak(self, text: str, voice: Optional[Voice], on_done: SpeechCallback) -> None:
        if self._client is None:
            self.scheduler.call_soon(on_done, "synthesis-unavailable")
            return
        with self._lock:
            self._current += 1
            token = self._current
        threading.Thread(
            target=self._speak_worker, args=(token, text, voice, on_done), daemon=True
        ).start()

    def cancel(self) -> None:
        with self._lock:
            self._current += 1
            process = self._process
        if process is not None and process.poll() is None:
            process.terminate()

    def _is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._current

    def _synthesize(self, text: str, voice: Optional[Voice]) -> bytes:
        language_code = voice.lang if voice is not None and voice.lang else "en-US"
        if voice is not None and voice.voice_id:
            voice_params = texttospeech.VoiceSelectionParams(language_code=language_code, name=voice.voice_id)
        else:
            voice_params = texttospeech.VoiceSelectionParams(language_code=language_code)
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
            sample_rate_hertz=RECOGNITION_SAMPLE_RATE,
        )
        response = self._client.synthesize_speech(
            input=texttospeech.SynthesisInput(text=text),
            voice=voice_params,
            audio_config=audio_config,
        )
        return response.audio_content

    def _play(self, token: int, wav_path: str) -> None:
        for player in (["afplay", wav_path], ["aplay", "-q", wav_path]):
            try:
                process = subprocess.Popen(player, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            except FileNotFoundError:
                continue
            with self._lock:
                if token != self._current:
                    process.terminate()
                    return
                self._process = process
            process.wait()
            return
        raise OSError("No audio player found (tried afplay, aplay)")

    def _speak_worker(self, token: int, text: str, voice: Optional[Voice], on_done: SpeechCallback):
        error = None
        wav_path = None
        try:
            audio = self._synthesize(text, voice)
            if not self._is_current(token):
                return
            with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp_file:
                wav_path = tmp_file.name
                tmp_file.write(audio)
            self._play(token, wav_path)
        except gexc.GoogleAPICallError as e:
            logger.error(f"Google TTS failed: {e}")
            error = "synthesis-failed"
        except OSError as e:
            logger.error(f"Audio playback failed: {e}")
            error = "audio-busy"
        finally:
            if wav_path is not None:
                try:
                    os.unlink(wav_path)
                except OSError:
                    pass

        if self._is_current(token):
            self.scheduler.call_soon(on_done, error)
