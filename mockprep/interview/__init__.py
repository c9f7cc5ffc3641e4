"""Interview system components.

This module contains the business logic for running AI mock interviews:
the recording orchestrator, question generation and scoring, the speech and
media services it drives, and the feedback report.
"""

# Core orchestrator class
from .orchestrator import RecordingOrchestrator, RecorderState, speech_timeout

# Data models
from .models import (
    QuestionItem, JobContext, InterviewOptions, AnswerSubmission, AnswerKind,
    RecordingClip, CompetencyScores, ScoreResult, StructuredFeedback,
    LegacyFeedback, InterviewDefinition, StoredAnswer, FollowUp
)

# Response schemas and feedback codec
from .schemas import (
    parse_question_set, parse_score, parse_follow_up,
    encode_feedback, decode_feedback
)

# Session settings
from .context import SessionContext, PreferenceStore

# Service classes
from .services import (
    SpeechCaptureAdapter, CaptureHandle, SpeechOutputService,
    MediaCaptureService, InterviewSetupService, upload_event_reporter
)

# Generation engine
from .engine import QuestionGenerator, AnswerScorer, FollowUpGenerator
from .prompts import InterviewPrompts, PromptFormatter

# Report and export
from .report import InterviewReport, ReportEntry, build_report, render_text
from .export import export_pdf

# Event system
from .events import (
    InterviewEventBus, EventLogger, InterviewMetrics,
    EventType, InterviewEvent, InterviewStartedEvent,
    QuestionPresentedEvent, StateChangedEvent, AnswerScoredEvent,
    FollowUpGeneratedEvent, FollowUpFailedEvent, CaptureStoppedEvent,
    ClipUploadedEvent, ClipUploadFailedEvent,
    InterviewCompletedEvent, ErrorOccurredEvent
)

# Testing infrastructure
from .testing import (
    FakeScheduler, MockRecognitionProvider, MockSynthesizer, MockMicrophone,
    MockStorage, MockLLMClient, MockScorer, MockFollowUps,
    create_mock_interview_setup
)

__all__ = [
    # Orchestrator
    "RecordingOrchestrator", "RecorderState", "speech_timeout",

    # Data models
    "QuestionItem", "JobContext", "InterviewOptions", "AnswerSubmission", "AnswerKind",
    "RecordingClip", "CompetencyScores", "ScoreResult", "StructuredFeedback",
    "LegacyFeedback", "InterviewDefinition", "StoredAnswer", "FollowUp",

    # Schemas
    "parse_question_set", "parse_score", "parse_follow_up",
    "encode_feedback", "decode_feedback",

    # Session settings
    "SessionContext", "PreferenceStore",

    # Services
    "SpeechCaptureAdapter", "CaptureHandle", "SpeechOutputService",
    "MediaCaptureService", "InterviewSetupService", "upload_event_reporter",

    # Engine
    "QuestionGenerator", "AnswerScorer", "FollowUpGenerator",
    "InterviewPrompts", "PromptFormatter",

    # Report
    "InterviewReport", "ReportEntry", "build_report", "render_text", "export_pdf",

    # Events
    "InterviewEventBus", "EventLogger", "InterviewMetrics",
    "EventType", "InterviewEvent", "InterviewStartedEvent",
    "QuestionPresentedEvent", "StateChangedEvent", "AnswerScoredEvent",
    "FollowUpGeneratedEvent", "FollowUpFailedEvent", "CaptureStoppedEvent",
    "ClipUploadedEvent", "ClipUploadFailedEvent",
    "InterviewCompletedEvent", "ErrorOccurredEvent",

    # Testing
    "FakeScheduler", "MockRecognitionProvider", "MockSynthesizer", "MockMicrophone",
    "MockStorage", "MockLLMClient", "MockScorer", "MockFollowUps",
    "create_mock_interview_setup",
]
