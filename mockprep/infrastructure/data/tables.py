"""
Relational tables for interviews and recorded answers.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MockInterview(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    mock_id: str = Field(index=True, unique=True)
    json_mock_resp: str  # JSON array of {question, answer}
    job_position: str
    job_desc: str = Field(default="")
    job_experience: str = Field(default="")
    interview_type: str = Field(default="general")
    difficulty: str = Field(default="mid")
    language: str = Field(default="en")
    question_count: int = Field(default=5)
    created_by: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)


class UserAnswer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    mock_id_ref: str = Field(index=True)
    question: str
    correct_ans: Optional[str] = Field(default=None)
    user_ans: Optional[str] = Field(default=None)
    feedback: Optional[str] = Field(default=None)  # JSON for structured feedback, plain text for older rows
    rating: int
    user_email: str = Field(index=True)
    language: str = Field(default="en")
    difficulty: str = Field(default="mid")
    parent_answer_id: Optional[int] = Field(default=None, foreign_key="useranswer.id")
    video_url: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
