"""
Exception types shared across the interview system.
"""


class MockPrepError(Exception):
    """Base class for all MockPrep errors."""


class CaptureUnavailableError(MockPrepError):
    """Raised when speech capture is requested but no recognizer exists."""


class RecordingError(MockPrepError):
    """Raised when a recording session is stopped while inactive."""


class LLMError(MockPrepError, RuntimeError):
    """Raised when the text-generation endpoint fails or returns garbage."""


class GenerationError(MockPrepError):
    """Raised when a question set cannot be generated or parsed."""


class ScoringError(MockPrepError):
    """Raised when an answer cannot be scored. The user must retry."""


class FollowUpError(MockPrepError):
    """Raised when a follow-up question cannot be generated."""


class NotAuthenticatedError(MockPrepError, PermissionError):
    """Raised by every gateway call made without an authenticated user."""


class DocumentError(MockPrepError, ValueError):
    """Raised when an uploaded document is rejected or unreadable."""
