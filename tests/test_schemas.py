import pytest

from mockprep.interview.models import LegacyFeedback, QuestionItem, StructuredFeedback
from mockprep.interview.schemas import (
    decode_feedback, encode_feedback, parse_follow_up, parse_question_set, parse_score
)
from mockprep.interview.testing import SAMPLE_SCORE_RESPONSE as SCORE_PAYLOAD, make_score


def test_question_array():
    data = [{"question": " What is a mutex? ", "answer": "A lock."}, {"question": "Why?"}]
    assert parse_question_set(data, limit=5) == [
        QuestionItem(question="What is a mutex?", answer="A lock."),
        QuestionItem(question="Why?", answer=""),
    ]


def test_question_envelope_and_truncation():
    data = {"questions": [{"question": f"Q{i}", "answer": "A"} for i in range(7)]}
    questions = parse_question_set(data, limit=5)
    assert [q.question for q in questions] == ["Q0", "Q1", "Q2", "Q3", "Q4"]


@pytest.mark.parametrize("data", [
    [],
    {"questions": []},
    "five questions",
    {"items": [{"question": "Q", "answer": "A"}]},
    {"questions": [{"question": "Q"}], "extra": True},
    [{"answer": "no question"}],
    [{"question": "", "answer": "blank"}],
])
def test_bad_question_sets_rejected(data):
    with pytest.raises(ValueError):
        parse_question_set(data, limit=5)


def test_parse_score():
    score = parse_score(SCORE_PAYLOAD)
    assert score.rating == 4
    assert score.competencies.communication_clarity == 5
    assert score.competencies.problem_solving == 3
    assert score.praise == "Clear and structured."
    assert score.correction == "Quantify the impact."
    assert score.suggested_answer.startswith("In my last role")


@pytest.mark.parametrize("change", [
    {"rating": 6},
    {"rating": 0},
    {"competencies": {"technicalKnowledge": 4}},
    {"tip": None},
])
def test_bad_scores_rejected(change):
    with pytest.raises(ValueError):
        parse_score({**SCORE_PAYLOAD, **change})


def test_score_must_be_object():
    with pytest.raises(ValueError):
        parse_score([SCORE_PAYLOAD])


def test_parse_follow_up():
    assert parse_follow_up({"followUpQuestion": " How would you scale it? "}) == "How would you scale it?"
    with pytest.raises(ValueError):
        parse_follow_up({"followUpQuestion": "   "})
    with pytest.raises(ValueError):
        parse_follow_up({"question": "wrong key"})
    with pytest.raises(ValueError):
        parse_follow_up("How would you scale it?")


def test_feedback_codec():
    feedback = decode_feedback(encode_feedback(make_score(2)))
    assert isinstance(feedback, StructuredFeedback)
    assert feedback.competencies.technical_knowledge == 2
    assert feedback.praise == "Clear structure."
    assert feedback.suggested_answer == "A stronger answer would name the trade-offs."


@pytest.mark.parametrize("raw", [
    "Nice answer.",
    "",
    '["not", "an", "object"]',
    '{"text": "no competencies"}',
    '{"competencies": {"technicalKnowledge": 9}}',
])
def test_legacy_feedback(raw):
    assert decode_feedback(raw) == LegacyFeedback(text=raw)
