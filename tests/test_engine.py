import pytest

from mockprep.config import GENERATION_TEMPERATURE, SCORING_TEMPERATURE
from mockprep.errors import FollowUpError, GenerationError, LLMError, ScoringError
from mockprep.interview.engine import AnswerScorer, FollowUpGenerator, QuestionGenerator
from mockprep.interview.models import InterviewOptions, JobContext
from mockprep.interview.testing import MockLLMClient, SAMPLE_SCORE_RESPONSE as SCORE_PAYLOAD


QUESTIONS = [{"question": f"Question {i}?", "answer": f"Answer {i}."} for i in range(1, 4)]


def test_generate_questions(job):
    client = MockLLMClient([QUESTIONS])
    options = InterviewOptions(interview_type="behavioral", question_count=3, resume_text="Led a team of 5.")
    questions = QuestionGenerator(client).generate(job, options)

    assert [q.question for q in questions] == ["Question 1?", "Question 2?", "Question 3?"]
    request = client.request_history[0]
    assert request["temperature"] == GENERATION_TEMPERATURE
    assert "Job position: Backend Engineer" in request["prompt"]
    assert "Led a team of 5." in request["prompt"]
    assert "exactly 3 interview questions" in request["prompt"]


def test_reference_content_replaces_job_details():
    job = JobContext(job_position="Data Analyst", job_desc="SQL, dashboards")
    options = InterviewOptions(question_count=3, reference_content="Chapter 4: window functions")
    prompt = QuestionGenerator(MockLLMClient([])).build_prompt(job, options)
    assert "Chapter 4: window functions" in prompt
    assert "SQL, dashboards" not in prompt


def test_korean_instruction_in_prompt(job):
    options = InterviewOptions(question_count=3, language="ko")
    prompt = QuestionGenerator(MockLLMClient([])).build_prompt(job, options)
    english = QuestionGenerator(MockLLMClient([])).build_prompt(job, InterviewOptions(question_count=3))
    assert prompt != english


def test_generation_failures(job, options):
    with pytest.raises(GenerationError):
        QuestionGenerator(MockLLMClient([LLMError("timeout")])).generate(job, options)
    with pytest.raises(GenerationError):
        QuestionGenerator(MockLLMClient([{"question": "not a list"}])).generate(job, options)
    with pytest.raises(GenerationError):
        QuestionGenerator(MockLLMClient([[]])).generate(job, options)


def test_short_question_set_is_accepted(job, options):
    questions = QuestionGenerator(MockLLMClient([QUESTIONS[:2]])).generate(job, options)
    assert len(questions) == 2


def test_score_answer():
    client = MockLLMClient([SCORE_PAYLOAD])
    score = AnswerScorer(client).score("Q?", "Model.", "Mine.", "en", "junior")
    assert score.rating == 4
    assert client.request_history[0]["temperature"] == SCORING_TEMPERATURE
    assert '"Mine."' in client.request_history[0]["prompt"]


@pytest.mark.parametrize("response", [LLMError("503"), {"rating": "great"}, ["not", "an", "object"]])
def test_scoring_failures(response):
    with pytest.raises(ScoringError):
        AnswerScorer(MockLLMClient([response])).score("Q?", "Model.", "Mine.", "en", "mid")


def test_follow_up():
    client = MockLLMClient([{"followUpQuestion": "What would you change?"}])
    assert FollowUpGenerator(client).generate("Q?", "Model.", "Mine.", "en") == "What would you change?"


@pytest.mark.parametrize("response", [LLMError("503"), {"followUpQuestion": ""}, {}])
def test_follow_up_failures(response):
    with pytest.raises(FollowUpError):
        FollowUpGenerator(MockLLMClient([response])).generate("Q?", "Model.", "Mine.", "en")
