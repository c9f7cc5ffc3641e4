"""
Per-user persistence for interviews and answers.

Every call resolves the current identity first and fails with
NotAuthenticatedError when there is none. Rows belonging to other users are
invisible: lookups behave exactly as if they did not exist.
"""
import json
import logging
import os
import uuid
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from sqlalchemy.engine import Engine
from sqlmodel import select

from .database import session_scope
from .tables import MockInterview, UserAnswer
from ...errors import NotAuthenticatedError
from ...interview.models import (
    AnswerSubmission, InterviewDefinition, InterviewOptions, JobContext,
    QuestionItem, ScoreResult, StoredAnswer
)
from ...interview.schemas import encode_feedback, decode_feedback

logger = logging.getLogger("gateway")


@dataclass(frozen=True)
class Identity:
    """The authenticated caller."""
    user_id: str
    email: str


class IdentityProvider(Protocol):
    def current_user(self) -> Optional[Identity]: ...


class StaticIdentityProvider:
    """Fixed identity, or none at all."""

    def __init__(self, identity: Optional[Identity] = None):
        self.identity = identity

    def current_user(self) -> Optional[Identity]:
        return self.identity


class EnvironmentIdentityProvider:
    """Identity taken from an environment variable (the console runner's login)."""

    def __init__(self, variable: str = "MOCKPREP_USER_EMAIL"):
        self.variable = variable

    def current_user(self) -> Optional[Identity]:
        email = (os.getenv(self.variable) or "").strip()
        if not email:
            return None
        return Identity(user_id=email, email=email)


def _to_definition(row: MockInterview) -> InterviewDefinition:
    items = json.loads(row.json_mock_resp)
    return InterviewDefinition(
        mock_id=row.mock_id,
        job=JobContext(job_position=row.job_position, job_desc=row.job_desc,
                       job_experience=row.job_experience),
        options=InterviewOptions(interview_type=row.interview_type, difficulty=row.difficulty,
                                 question_count=row.question_count, language=row.language),
        questions=tuple(QuestionItem(question=i["question"], answer=i.get("answer", "")) for i in items),
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _to_stored_answer(row: UserAnswer) -> StoredAnswer:
    return StoredAnswer(
        id=row.id,
        interview_id=row.mock_id_ref,
        question=row.question,
        model_answer=row.correct_ans,
        user_answer=row.user_ans,
        rating=row.rating,
        feedback=decode_feedback(row.feedback or ""),
        language=row.language,
        difficulty=row.difficulty,
        parent_answer_id=row.parent_answer_id,
        video_url=row.video_url,
        created_at=row.created_at,
    )


class PersistenceGateway:
    """Interview and answer storage scoped to the authenticated user."""

    def __init__(self, engine: Engine, identity: IdentityProvider):
        self.engine = engine
        self.identity = identity

    def require_user(self) -> Identity:
        user = self.identity.current_user()
        if user is None or not user.email:
            raise NotAuthenticatedError("Not authenticated")
        return user

    # ------------------------------------------------------------------
    # Interviews
    # ------------------------------------------------------------------

    def create_interview(self, job: JobContext, questions: Sequence[QuestionItem],
                         options: InterviewOptions) -> str:
        user = self.require_user()
        mock_id = str(uuid.uuid4())
        row = MockInterview(
            mock_id=mock_id,
            json_mock_resp=json.dumps(
                [{"question": q.question, "answer": q.answer} for q in questions],
                ensure_ascii=False,
            ),
            job_position=job.job_position,
            job_desc=job.job_desc,
            job_experience=job.job_experience,
            interview_type=options.interview_type,
            difficulty=options.difficulty,
            language=options.language,
            question_count=options.question_count,
            created_by=user.email,
        )
        with session_scope(self.engine) as session:
            session.add(row)
        logger.info(f"Created interview {mock_id} with {len(questions)} questions")
        return mock_id

    def get_interview(self, mock_id: str) -> Optional[InterviewDefinition]:
        user = self.require_user()
        with session_scope(self.engine) as session:
            row = session.exec(
                select(MockInterview)
                .where(MockInterview.mock_id == mock_id)
                .where(MockInterview.created_by == user.email)
            ).first()
            return _to_definition(row) if row is not None else None

    def list_interviews(self) -> List[InterviewDefinition]:
        """The caller's interviews, newest first."""
        user = self.require_user()
        with session_scope(self.engine) as session:
            rows = session.exec(
                select(MockInterview)
                .where(MockInterview.created_by == user.email)
                .order_by(MockInterview.created_at.desc(), MockInterview.id.desc())
            ).all()
            return [_to_definition(row) for row in rows]

    def delete_interview(self, mock_id: str) -> bool:
        """Delete an interview and its answers. Returns False if it was not found."""
        user = self.require_user()
        with session_scope(self.engine) as session:
            row = session.exec(
                select(MockInterview)
                .where(MockInterview.mock_id == mock_id)
                .where(MockInterview.created_by == user.email)
            ).first()
            if row is None:
                return False

            answers = session.exec(
                select(UserAnswer)
                .where(UserAnswer.mock_id_ref == mock_id)
                .where(UserAnswer.user_email == user.email)
            ).all()
            # follow-ups first, they reference their parents
            for follow_ups_pass in (True, False):
                for answer in answers:
                    if (answer.parent_answer_id is not None) == follow_ups_pass:
                        session.delete(answer)
                session.flush()
            session.delete(row)
        logger.info(f"Deleted interview {mock_id} ({len(answers)} answers)")
        return True

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    def record_answer(self, interview_id: str, submission: AnswerSubmission, score: ScoreResult) -> int:
        """
        Store a scored answer and return its id.

        Raises:
            NotAuthenticatedError: Without an authenticated user
            ValueError: If the follow-up's parent answer is not the caller's
        """
        user = self.require_user()
        with session_scope(self.engine) as session:
            if submission.parent_answer_id is not None:
                parent = session.exec(
                    select(UserAnswer)
                    .where(UserAnswer.id == submission.parent_answer_id)
                    .where(UserAnswer.user_email == user.email)
                ).first()
                if parent is None or parent.parent_answer_id is not None:
                    raise ValueError(f"Invalid parent answer {submission.parent_answer_id}")

            row = UserAnswer(
                mock_id_ref=interview_id,
                question=submission.question,
                correct_ans=submission.model_answer,
                user_ans=submission.captured_text,
                feedback=encode_feedback(score),
                rating=score.rating,
                user_email=user.email,
                language=submission.language,
                difficulty=submission.difficulty,
                parent_answer_id=submission.parent_answer_id,
            )
            session.add(row)
            session.flush()
            answer_id = row.id
        logger.info(f"Recorded {submission.kind.value} answer {answer_id} (rating {score.rating})")
        return answer_id

    def attach_clip_url(self, answer_id: int, url: str) -> None:
        user = self.require_user()
        with session_scope(self.engine) as session:
            row = session.exec(
                select(UserAnswer)
                .where(UserAnswer.id == answer_id)
                .where(UserAnswer.user_email == user.email)
            ).first()
            if row is None:
                logger.warning(f"Cannot attach clip: answer {answer_id} not found")
                return
            row.video_url = url
            session.add(row)

    def list_answers(self, interview_id: str) -> List[StoredAnswer]:
        """The caller's answers for an interview, in recording order."""
        user = self.require_user()
        with session_scope(self.engine) as session:
            rows = session.exec(
                select(UserAnswer)
                .where(UserAnswer.mock_id_ref == interview_id)
                .where(UserAnswer.user_email == user.email)
                .order_by(UserAnswer.id)
            ).all()
            return [_to_stored_answer(row) for row in rows]
