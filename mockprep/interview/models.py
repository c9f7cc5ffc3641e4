"""
Data models for the interview system.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Literal, Optional, Tuple, Union

from ..config import (
    INTERVIEW_TYPES, DIFFICULTIES, QUESTION_COUNTS, SUPPORTED_LANGUAGES,
    LANGUAGE_TAGS, QUESTION_COUNT, DIFFICULTY, INTERVIEW_TYPE, LANGUAGE,
    DEFAULT_CLIP_TYPE
)


@dataclass(frozen=True)
class QuestionItem:
    """One generated interview question with its model answer."""
    question: str
    answer: str


@dataclass(frozen=True)
class JobContext:
    """What the user told us about the job they are preparing for."""
    job_position: str
    job_desc: str = ""
    job_experience: str = ""


@dataclass(frozen=True)
class InterviewOptions:
    """Knobs for question generation."""
    interview_type: str = INTERVIEW_TYPE
    difficulty: str = DIFFICULTY
    question_count: int = QUESTION_COUNT
    language: str = LANGUAGE
    reference_content: Optional[str] = None
    resume_text: Optional[str] = None

    def __post_init__(self):
        if self.interview_type not in INTERVIEW_TYPES:
            raise ValueError(f"Unknown interview type: {self.interview_type}")
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(f"Unknown difficulty: {self.difficulty}")
        if self.question_count not in QUESTION_COUNTS:
            raise ValueError(f"Question count must be one of {QUESTION_COUNTS}")
        if self.language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {self.language}")

    @property
    def language_tag(self) -> str:
        return LANGUAGE_TAGS[self.language]


class AnswerKind(str, Enum):
    """Whether an answer belongs to a root question or to its follow-up."""
    ROOT = "root"
    FOLLOW_UP = "follow_up"


@dataclass(frozen=True)
class AnswerSubmission:
    """An answer handed from the orchestrator to scoring and persistence."""
    question: str
    model_answer: str
    captured_text: str
    language: str
    difficulty: str
    parent_answer_id: Optional[int] = None

    @property
    def kind(self) -> AnswerKind:
        return AnswerKind.ROOT if self.parent_answer_id is None else AnswerKind.FOLLOW_UP


@dataclass
class RecordingClip:
    """Encoded media for one answer. Handed off whole to the uploader."""
    data: bytes
    content_type: str = DEFAULT_CLIP_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return "mp4" if "mp4" in self.content_type else "webm"


@dataclass(frozen=True)
class CompetencyScores:
    """The four dimensions every structured score carries (1..5 each)."""
    technical_knowledge: int
    communication_clarity: int
    problem_solving: int
    relevance: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "technical_knowledge": self.technical_knowledge,
            "communication_clarity": self.communication_clarity,
            "problem_solving": self.problem_solving,
            "relevance": self.relevance,
        }


@dataclass(frozen=True)
class ScoreResult:
    """Parsed answer-scoring response."""
    rating: int
    competencies: CompetencyScores
    praise: str
    correction: str
    tip: str
    suggested_answer: str


@dataclass(frozen=True)
class StructuredFeedback:
    """Stored feedback that carries competency scores."""
    competencies: CompetencyScores
    praise: str
    correction: str
    tip: str
    suggested_answer: str
    kind: Literal["structured"] = "structured"


@dataclass(frozen=True)
class LegacyFeedback:
    """Plain-text feedback from rows written before competency scoring."""
    text: str
    kind: Literal["legacy"] = "legacy"


Feedback = Union[StructuredFeedback, LegacyFeedback]


@dataclass
class InterviewDefinition:
    """A persisted interview as read back from the gateway."""
    mock_id: str
    job: JobContext
    options: InterviewOptions
    questions: Tuple[QuestionItem, ...]
    created_by: str
    created_at: Optional[datetime] = None


@dataclass
class StoredAnswer:
    """A persisted answer as read back from the gateway."""
    id: int
    interview_id: str
    question: str
    model_answer: Optional[str]
    user_answer: Optional[str]
    rating: int
    feedback: Feedback
    language: str
    difficulty: str
    parent_answer_id: Optional[int] = None
    video_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def kind(self) -> AnswerKind:
        return AnswerKind.ROOT if self.parent_answer_id is None else AnswerKind.FOLLOW_UP


@dataclass
class FollowUp:
    """A pending follow-up question tied to its recorded parent answer."""
    question: str
    parent_answer_id: int
    root_index: int
