"""
Speech infrastructure: recognition, synthesis and voice selection.
"""

from .voices import Voice, classify_voice_gender, score_voice_quality, select_voice
from .tts import LocalSynthesizer, CloudSynthesizer
from .stt import (
    GoogleStreamingRecognizer, classify_capture_error, is_recoverable,
    RECOVERABLE_ERRORS, FATAL_ERRORS
)

__all__ = [
    'Voice', 'classify_voice_gender', 'score_voice_quality', 'select_voice',
    'LocalSynthesizer', 'CloudSynthesizer',
    'GoogleStreamingRecognizer', 'classify_capture_error', 'is_recoverable',
    'RECOVERABLE_ERRORS', 'FATAL_ERRORS',
]
