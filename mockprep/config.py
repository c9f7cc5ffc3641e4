"""
MockPrep Configuration System
=============================

This file contains ALL configuration for the MockPrep interview system.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize MockPrep's behavior
# =============================================================================

# REQUIRED: Set your Google Cloud project
GOOGLE_CLOUD_PROJECT = "your-project-id"  # Change this!
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Interview settings
QUESTION_COUNT = 5
INTERVIEW_TYPE = "general"
DIFFICULTY = "mid"
LANGUAGE = "en"

# Speech settings
ENABLE_TTS = True
VOICE_GENDER = "female"
TTS_RATE_WPM = 170

# Storage
DATABASE_URL = "sqlite:///./_mockprep/mockprep.db"
VIDEO_BUCKET = "interview-videos"
PREFERENCES_FILE = "./_mockprep/preferences.json"

# Logging
LOG_FILE = "./_mockprep/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Interview options
INTERVIEW_TYPES = ("general", "behavioral", "technical", "system-design")
DIFFICULTIES = ("junior", "mid", "senior")
QUESTION_COUNTS = (3, 5, 10)
SUPPORTED_LANGUAGES = ("en", "ko")
LANGUAGE_TAGS = {
    "en": "en-US",
    "ko": "ko-KR",
}

# Recording orchestrator timings (seconds)
COUNTDOWN_START = 3
COUNTDOWN_TICK_SECONDS = 1.0
SPEECH_TIMEOUT_FLOOR = 3.0
SPEECH_SECONDS_PER_CHAR = 0.08
SPEECH_TIMEOUT_MARGIN = 2.0

# Speech capture
MAX_CAPTURE_RESTARTS = 5
CAPTURE_RESTART_DELAY = 0.3
RECOGNITION_SAMPLE_RATE = 16000
MIC_FRAMES_PER_BUFFER = 1600  # 100 ms at 16 kHz

# Media recording
MIME_CANDIDATES = (
    "video/webm;codecs=vp9,opus",
    "video/webm;codecs=vp8,opus",
    "video/webm",
)
DEFAULT_CLIP_TYPE = "video/webm"
UPLOAD_WORKERS = 2

# Documents
MAX_DOCUMENT_BYTES = 5 * 1024 * 1024

# LLM
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-2.5-flash-lite"
LLM_TIMEOUT = 60
MAX_OUTPUT_TOKENS = 2048
GENERATION_TEMPERATURE = 1.0
SCORING_TEMPERATURE = 0.2
FOLLOW_UP_TEMPERATURE = 0.7


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    google_cloud_project: str
    google_application_credentials: Optional[str] = None
    database_url: str = DATABASE_URL
    video_bucket: str = VIDEO_BUCKET
    preferences_file: str = PREFERENCES_FILE
    user_email: Optional[str] = None
    language: str = LANGUAGE
    voice_gender: str = VOICE_GENDER
    question_count: int = QUESTION_COUNT
    interview_type: str = INTERVIEW_TYPE
    difficulty: str = DIFFICULTY
    enable_tts: bool = ENABLE_TTS
    tts_rate_wpm: int = TTS_RATE_WPM
    vertex_location: str = VERTEX_LOCATION
    model_name: str = MODEL_NAME
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    @property
    def language_tag(self) -> str:
        return LANGUAGE_TAGS.get(self.language, LANGUAGE_TAGS["en"])


def get_config() -> Config:
    """Load configuration."""
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    credentials = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS

    if project == "your-project-id":
        raise ValueError("Please set GOOGLE_CLOUD_PROJECT in config.py or as environment variable")

    language = os.getenv("MOCKPREP_LANGUAGE", LANGUAGE)
    if language not in SUPPORTED_LANGUAGES:
        raise ValueError(f"Unsupported MOCKPREP_LANGUAGE: {language}")

    return Config(
        google_cloud_project=project,
        google_application_credentials=credentials,
        database_url=os.getenv("MOCKPREP_DATABASE_URL", DATABASE_URL),
        video_bucket=os.getenv("MOCKPREP_VIDEO_BUCKET", VIDEO_BUCKET),
        user_email=os.getenv("MOCKPREP_USER_EMAIL"),
        language=language,
        voice_gender=os.getenv("MOCKPREP_VOICE_GENDER", VOICE_GENDER),
        log_file=os.getenv("MOCKPREP_LOG_FILE", LOG_FILE),
        log_level=os.getenv("MOCKPREP_LOG_LEVEL", LOG_LEVEL),
    )
