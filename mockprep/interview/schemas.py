"""
Response schemas for the text-generation endpoint and the stored feedback codec.

Every LLM response is validated strictly: a response that does not match the
documented shape is rejected, never guessed at.
"""
import json
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import (
    QuestionItem, CompetencyScores, ScoreResult,
    StructuredFeedback, LegacyFeedback, Feedback
)


class GeneratedQuestion(BaseModel):
    """One question/answer pair from the generation endpoint."""
    question: str = Field(min_length=1)
    answer: str = ""

    @field_validator("question", "answer", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class QuestionSetEnvelope(BaseModel):
    """Object form of a question set: {"questions": [...]}."""
    model_config = ConfigDict(extra="forbid")

    questions: List[GeneratedQuestion]


class CompetencySchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    technical_knowledge: int = Field(ge=1, le=5, alias="technicalKnowledge")
    communication_clarity: int = Field(ge=1, le=5, alias="communicationClarity")
    problem_solving: int = Field(ge=1, le=5, alias="problemSolving")
    relevance: int = Field(ge=1, le=5)


class ScoreResponse(BaseModel):
    """Structured rating and critique for one answer."""
    model_config = ConfigDict(populate_by_name=True)

    rating: int = Field(ge=1, le=5)
    competencies: CompetencySchema
    strengths: str
    improvements: str
    tip: str
    suggested_answer: str = Field(alias="suggestedAnswer")


class FollowUpResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    follow_up_question: str = Field(min_length=1, alias="followUpQuestion")


def parse_question_set(data: Any, limit: int) -> List[QuestionItem]:
    """
    Validate a generated question set.

    Accepts a JSON array of {question, answer} objects, or an object whose only
    key is "questions" holding that array.

    Raises:
        ValueError: If the payload has any other shape or yields no questions
    """
    if isinstance(data, list):
        items = [GeneratedQuestion.model_validate(item) for item in data]
    elif isinstance(data, dict):
        items = QuestionSetEnvelope.model_validate(data).questions
    else:
        raise ValueError(f"Expected a question array, got {type(data).__name__}")

    if not items:
        raise ValueError("Question set is empty")

    return [QuestionItem(question=item.question, answer=item.answer) for item in items[:limit]]


def _competencies(schema: CompetencySchema) -> CompetencyScores:
    return CompetencyScores(
        technical_knowledge=schema.technical_knowledge,
        communication_clarity=schema.communication_clarity,
        problem_solving=schema.problem_solving,
        relevance=schema.relevance,
    )


def parse_score(data: Any) -> ScoreResult:
    """Validate a scoring response. Raises ValueError on any mismatch."""
    if not isinstance(data, dict):
        raise ValueError(f"Expected a score object, got {type(data).__name__}")
    parsed = ScoreResponse.model_validate(data)
    return ScoreResult(
        rating=parsed.rating,
        competencies=_competencies(parsed.competencies),
        praise=parsed.strengths.strip(),
        correction=parsed.improvements.strip(),
        tip=parsed.tip.strip(),
        suggested_answer=parsed.suggested_answer.strip(),
    )


def parse_follow_up(data: Any) -> str:
    if not isinstance(data, dict):
        raise ValueError(f"Expected a follow-up object, got {type(data).__name__}")
    question = FollowUpResponse.model_validate(data).follow_up_question.strip()
    if not question:
        raise ValueError("Follow-up question is blank")
    return question


# =============================================================================
# Stored feedback codec
# =============================================================================

def encode_feedback(score: ScoreResult) -> str:
    """Serialize a score's critique for the answer table's feedback column."""
    return json.dumps({
        "competencies": {
            "technicalKnowledge": score.competencies.technical_knowledge,
            "communicationClarity": score.competencies.communication_clarity,
            "problemSolving": score.competencies.problem_solving,
            "relevance": score.competencies.relevance,
        },
        "strengths": score.praise,
        "improvements": score.correction,
        "tip": score.tip,
        "suggestedAnswer": score.suggested_answer,
    }, ensure_ascii=False)


def decode_feedback(raw: str) -> Feedback:
    """
    Turn a stored feedback column into its tagged variant.

    Rows carrying a "competencies" object decode to StructuredFeedback;
    anything else (older plain-text rows) decodes to LegacyFeedback.
    """
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return LegacyFeedback(text=raw or "")

    if not isinstance(data, dict) or "competencies" not in data:
        return LegacyFeedback(text=raw)

    try:
        competencies = CompetencySchema.model_validate(data["competencies"])
    except ValidationError:
        return LegacyFeedback(text=raw)

    return StructuredFeedback(
        competencies=_competencies(competencies),
        praise=str(data.get("strengths") or ""),
        correction=str(data.get("improvements") or ""),
        tip=str(data.get("tip") or ""),
        suggested_answer=str(data.get("suggestedAnswer") or ""),
    )
