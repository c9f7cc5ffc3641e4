"""Infrastructure components for the MockPrep system.

This module contains low-level technical components that provide
foundational capabilities for the interview system.
"""

# LLM infrastructure
from .llm import VertexRestClient

# Speech infrastructure
from .speech import (
    Voice, select_voice, LocalSynthesizer, CloudSynthesizer, GoogleStreamingRecognizer
)

# Media capture
from .media import MediaTrack, AudioConstraints, RecordingSession

# Storage and persistence
from .storage import ClipStorage, ClipUploader
from .data import PersistenceGateway, create_db_engine, init_db

# Documents
from .documents import extract_text_from_pdf

__all__ = [
    # LLM client
    "VertexRestClient",

    # Speech services
    "Voice", "select_voice", "LocalSynthesizer", "CloudSynthesizer",
    "GoogleStreamingRecognizer",

    # Media
    "MediaTrack", "AudioConstraints", "RecordingSession",

    # Storage
    "ClipStorage", "ClipUploader", "PersistenceGateway", "create_db_engine", "init_db",

    # Documents
    "extract_text_from_pdf",
]
