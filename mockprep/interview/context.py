"""
Session-wide settings shared by the interview components.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import LANGUAGE, LANGUAGE_TAGS, SUPPORTED_LANGUAGES, VOICE_GENDER, PREFERENCES_FILE
from ..infrastructure.speech.voices import Voice, VOICE_GENDERS

logger = logging.getLogger("context")


@dataclass
class SessionContext:
    """
    The user's current language and voice preference, plus the voice lists
    reported by the synthesis providers (loaded once per session).
    """
    language: str = LANGUAGE
    voice_gender: str = VOICE_GENDER
    local_voices: List[Voice] = field(default_factory=list)
    remote_voices: List[Voice] = field(default_factory=list)

    def __post_init__(self):
        if self.language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {self.language}")
        if self.voice_gender not in VOICE_GENDERS:
            raise ValueError(f"Voice gender must be one of {VOICE_GENDERS}")

    @property
    def language_tag(self) -> str:
        return LANGUAGE_TAGS[self.language]


class PreferenceStore:
    """Small JSON file holding the user's language and voice choice."""

    def __init__(self, path: str = PREFERENCES_FILE):
        self.path = path

    def load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def voice_gender(self, default: str = VOICE_GENDER) -> str:
        stored = self.load().get("voice_gender")
        return stored if stored in VOICE_GENDERS else default

    def language(self, default: str = LANGUAGE) -> str:
        stored = self.load().get("language")
        return stored if stored in SUPPORTED_LANGUAGES else default

    def set_voice_gender(self, gender: str) -> None:
        if gender not in VOICE_GENDERS:
            raise ValueError(f"Voice gender must be one of {VOICE_GENDERS}")
        data = self.load()
        data["voice_gender"] = gender
        self._save(data)

    def set_language(self, language: str) -> None:
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        data = self.load()
        data["language"] = language
        self._save(data)

    def session_context(self, language: Optional[str] = None,
                        voice_gender: Optional[str] = None) -> SessionContext:
        """Context built from stored preferences; explicit arguments win."""
        return SessionContext(
            language=language or self.language(),
            voice_gender=voice_gender or self.voice_gender(),
        )
