"""
Question generation, answer scoring and follow-up generation.

All three talk to the text-generation endpoint and validate what comes back
strictly; each raises its own error type so callers can decide what blocks
the interview and what is merely logged.
"""
import logging
from typing import List, Protocol, Any

from .models import QuestionItem, JobContext, InterviewOptions, ScoreResult
from .prompts import InterviewPrompts, PromptFormatter
from .schemas import parse_question_set, parse_score, parse_follow_up
from ..config import GENERATION_TEMPERATURE, SCORING_TEMPERATURE, FOLLOW_UP_TEMPERATURE
from ..errors import GenerationError, ScoringError, FollowUpError, LLMError

logger = logging.getLogger("engine")


class JSONGenerator(Protocol):
    """What the engine needs from an LLM client."""

    def generate_json(self, prompt: str, temperature: float = 0.0) -> Any: ...


class QuestionGenerator:
    """Generates the ordered question set for a new interview."""

    def __init__(self, llm_client: JSONGenerator):
        self.llm_client = llm_client

    def build_prompt(self, job: JobContext, options: InterviewOptions) -> str:
        job_context = PromptFormatter.format_job_context(
            job.job_position, job.job_desc, job.job_experience, options.reference_content
        )
        return InterviewPrompts.question_generation(
            job_context=job_context,
            interview_type_guidance=InterviewPrompts.interview_type_guidance()[options.interview_type],
            difficulty_guidance=InterviewPrompts.difficulty_guidance()[options.difficulty],
            question_count=options.question_count,
            language_instruction=PromptFormatter.language_instruction(options.language),
            resume_text=options.resume_text,
        )

    def generate(self, job: JobContext, options: InterviewOptions) -> List[QuestionItem]:
        """
        Generate questions for the given job.

        Raises:
            GenerationError: If the request fails or the response is not a question array
        """
        prompt = self.build_prompt(job, options)
        try:
            data = self.llm_client.generate_json(prompt, temperature=GENERATION_TEMPERATURE)
        except LLMError as e:
            logger.error("Question generation request failed: %s", e)
            raise GenerationError(f"Question generation failed: {e}") from e

        try:
            questions = parse_question_set(data, limit=options.question_count)
        except ValueError as e:
            logger.error("Question set rejected: %s", e)
            raise GenerationError(f"Unexpected question set shape: {e}") from e

        if len(questions) < options.question_count:
            logger.warning("Asked for %d questions, got %d", options.question_count, len(questions))
        logger.info(f"Generated {len(questions)} questions for '{job.job_position}'")
        return questions


class AnswerScorer:
    """Rates one answer and produces structured critique."""

    def __init__(self, llm_client: JSONGenerator):
        self.llm_client = llm_client

    def score(self, question: str, model_answer: str, user_answer: str,
              language: str, difficulty: str) -> ScoreResult:
        """
        Score an answer.

        Raises:
            ScoringError: On network failure or an unparseable response
        """
        prompt = InterviewPrompts.answer_scoring(
            question=question,
            model_answer=model_answer,
            user_answer=user_answer,
            difficulty_guidance=InterviewPrompts.difficulty_guidance().get(difficulty, difficulty),
            language_instruction=PromptFormatter.language_instruction(language),
        )
        try:
            data = self.llm_client.generate_json(prompt, temperature=SCORING_TEMPERATURE)
            result = parse_score(data)
        except (LLMError, ValueError) as e:
            logger.error("Scoring failed: %s", e)
            raise ScoringError(f"Could not score answer: {e}") from e

        logger.info(f"Answer scored {result.rating}/5")
        return result


class FollowUpGenerator:
    """Asks for one probing follow-up question. Best-effort."""

    def __init__(self, llm_client: JSONGenerator):
        self.llm_client = llm_client

    def generate(self, question: str, model_answer: str, user_answer: str, language: str) -> str:
        prompt = InterviewPrompts.follow_up(
            question=question,
            model_answer=model_answer,
            user_answer=user_answer,
            language_instruction=PromptFormatter.language_instruction(language),
        )
        try:
            data = self.llm_client.generate_json(prompt, temperature=FOLLOW_UP_TEMPERATURE)
            return parse_follow_up(data)
        except (LLMError, ValueError) as e:
            raise FollowUpError(f"Could not generate follow-up: {e}") from e
