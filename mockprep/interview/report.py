"""
Feedback report: aggregates an interview's stored answers for display and export.
"""
import logging
import textwrap
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .models import InterviewDefinition, StoredAnswer, StructuredFeedback, LegacyFeedback

logger = logging.getLogger("report")

COMPETENCY_LABELS = {
    "technical_knowledge": "Technical",
    "communication_clarity": "Communication",
    "problem_solving": "Problem Solving",
    "relevance": "Relevance",
}


def rating_band(rating: float) -> str:
    """Band a rating: "strong" (4+), "fair" (3+) or "weak"."""
    if rating >= 4:
        return "strong"
    if rating >= 3:
        return "fair"
    return "weak"


@dataclass
class ReportEntry:
    """One root question, its answer and any follow-up answers."""
    number: int
    answer: StoredAnswer
    follow_ups: List[StoredAnswer] = field(default_factory=list)

    @property
    def structured(self) -> Optional[StructuredFeedback]:
        fb = self.answer.feedback
        return fb if isinstance(fb, StructuredFeedback) else None

    @property
    def suggested_answer(self) -> Optional[str]:
        """The scorer's improved answer, falling back to the model answer."""
        if self.structured is not None and self.structured.suggested_answer:
            return self.structured.suggested_answer
        return self.answer.model_answer or None


@dataclass
class InterviewReport:
    interview: InterviewDefinition
    entries: List[ReportEntry]
    overall_rating: float
    answered_count: int
    competency_averages: Dict[str, float]

    @property
    def question_count(self) -> int:
        return len(self.interview.questions)

    @property
    def follow_up_count(self) -> int:
        return sum(len(e.follow_ups) for e in self.entries)

    @property
    def overall_rating_text(self) -> str:
        return f"{self.overall_rating:.1f}"


def build_report(interview: InterviewDefinition, answers: Sequence[StoredAnswer]) -> InterviewReport:
    """
    Group answers into root entries with nested follow-ups.

    The overall rating is the mean rating of root answers (to one decimal,
    0.0 when there are none); competency averages cover root answers with
    structured feedback.
    """
    roots = [a for a in answers if a.parent_answer_id is None]
    entries = [ReportEntry(number=i + 1, answer=a) for i, a in enumerate(roots)]
    by_id = {e.answer.id: e for e in entries}

    for answer in answers:
        if answer.parent_answer_id is None:
            continue
        entry = by_id.get(answer.parent_answer_id)
        if entry is None:
            logger.warning(f"Follow-up answer {answer.id} has no parent in this interview")
            continue
        entry.follow_ups.append(answer)

    overall = round(sum(a.rating for a in roots) / len(roots), 1) if roots else 0.0
    answered = sum(1 for a in roots if (a.user_answer or "").strip())

    totals: Dict[str, List[int]] = {key: [] for key in COMPETENCY_LABELS}
    for entry in entries:
        if entry.structured is None:
            continue
        for key, value in entry.structured.competencies.as_dict().items():
            totals[key].append(value)
    averages = {key: round(sum(v) / len(v), 1) for key, v in totals.items() if v}

    return InterviewReport(
        interview=interview,
        entries=entries,
        overall_rating=overall,
        answered_count=answered,
        competency_averages=averages,
    )


def _block(label: str, text: str, width: int = 78) -> List[str]:
    lines = [f"  {label}:"]
    for paragraph in text.splitlines() or [""]:
        lines.extend(textwrap.wrap(paragraph, width=width, initial_indent="    ",
                                   subsequent_indent="    ") or ["    "])
    return lines


def _answer_lines(answer: StoredAnswer, suggested: Optional[str]) -> List[str]:
    lines = []
    fb = answer.feedback
    if isinstance(fb, StructuredFeedback):
        for key, value in fb.competencies.as_dict().items():
            bar = "#" * value + "." * (5 - value)
            lines.append(f"  {COMPETENCY_LABELS[key]:<16}[{bar}] {value}/5")
        if fb.praise:
            lines.extend(_block("Strengths", fb.praise))
        if fb.correction:
            lines.extend(_block("Areas to Improve", fb.correction))
    lines.extend(_block("Your Answer", answer.user_answer or "No answer recorded"))
    if suggested:
        label = "Suggested Answer" if isinstance(fb, StructuredFeedback) and fb.suggested_answer else "Ideal Answer"
        lines.extend(_block(label, suggested))
    if isinstance(fb, StructuredFeedback) and fb.tip:
        lines.extend(_block("Tip", fb.tip))
    if isinstance(fb, LegacyFeedback) and fb.text:
        lines.extend(_block("Feedback", fb.text))
    return lines


def render_text(report: InterviewReport) -> str:
    """Plain-text rendering of the report for the console."""
    job = report.interview.job
    out = [
        "Interview Feedback Report",
        "=" * 40,
        f"Position: {job.job_position}",
        f"Overall rating: {report.overall_rating_text}/5 ({rating_band(report.overall_rating)})",
        f"Questions: {report.question_count} | Answered: {report.answered_count}/{report.question_count}"
        f" | Follow-ups: {report.follow_up_count}",
    ]
    if report.competency_averages:
        averages = ", ".join(f"{COMPETENCY_LABELS[k]} {v:.1f}" for k, v in report.competency_averages.items())
        out.append(f"Competencies: {averages}")

    for entry in report.entries:
        out.append("")
        out.append(f"Question #{entry.number}: {entry.answer.question}  [{entry.answer.rating}/5]")
        out.extend(_answer_lines(entry.answer, entry.suggested_answer))
        for follow_up in entry.follow_ups:
            out.append(f"  Follow-up: {follow_up.question}  [{follow_up.rating}/5]")
            out.extend("  " + line for line in _answer_lines(follow_up, None))
    return "\n".join(out)
