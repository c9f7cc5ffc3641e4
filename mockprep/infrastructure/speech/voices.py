"""
Voice classification and selection for spoken questions.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

VOICE_GENDERS = ("male", "female")

# Name fragments used when the provider does not report a gender.
# Matched as whole words, so "ava" does not match "Java".
FEMALE_NAMES = [
    "jenny", "zira", "aria", "sara", "samantha", "karen", "moira", "tessa",
    "fiona", "victoria", "ava", "susan", "hazel", "catherine", "kate",
    "emily", "siri female", "google uk english female", "female",
]

MALE_NAMES = [
    "guy", "david", "mark", "james", "daniel", "george", "alex", "fred",
    "tom", "ralph", "bruce", "lee", "ryan", "rishi", "aaron",
    "siri male", "google uk english male", "male",
]


def _word_pattern(fragments: List[str]) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(f) for f in fragments) + r")\b")


_FEMALE_PATTERN = _word_pattern(FEMALE_NAMES)
_MALE_PATTERN = _word_pattern(MALE_NAMES)


@dataclass(frozen=True)
class Voice:
    """A synthesis voice as reported by a speech provider."""
    name: str
    lang: str
    local_service: bool = True
    voice_id: Optional[str] = None
    gender: Optional[str] = None


def classify_voice_gender(voice: Voice) -> Optional[str]:
    """Return "female", "male" or None when the voice cannot be classified."""
    if voice.gender in VOICE_GENDERS:
        return voice.gender

    name = voice.name.lower()
    if _FEMALE_PATTERN.search(name):
        return "female"
    if _MALE_PATTERN.search(name):
        return "male"
    return None


def score_voice_quality(voice: Voice) -> int:
    """Heuristic quality score; higher sounds better."""
    name = voice.name.lower()
    score = 0
    if "online" in name or "neural" in name:
        score += 20
    if "premium" in name:
        score += 15
    if not voice.local_service or "enhanced" in name:
        score += 10
    if "microsoft" in name:
        score += 5
    if "google" in name:
        score += 3
    return score


def _best(voices: List[Voice]) -> Voice:
    # sorted() is stable, so ties keep provider order
    return sorted(voices, key=score_voice_quality, reverse=True)[0]


def select_voice(voices: Iterable[Voice], gender: str, language: str = "en") -> Optional[Voice]:
    """
    Pick the best voice for a language and preferred gender.

    Voices whose language tag starts with ``language`` form the pool. The best
    gender match wins; failing that the best unclassified voice; failing that
    the best voice in the pool. Returns None for an empty pool.
    """
    pool = [v for v in voices if v.lang.lower().startswith(language.lower())]
    if not pool:
        return None

    matched = [v for v in pool if classify_voice_gender(v) == gender]
    if matched:
        return _best(matched)

    unclassified = [v for v in pool if classify_voice_gender(v) is None]
    if unclassified:
        return _best(unclassified)

    return _best(pool)
