"""
PDF export of the feedback report (reportlab canvas).
"""
import logging
from datetime import datetime
from io import BytesIO
from typing import Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfgen import canvas

from .models import StoredAnswer, StructuredFeedback, LegacyFeedback
from .report import InterviewReport, ReportEntry, COMPETENCY_LABELS

logger = logging.getLogger("export")

RGB = Tuple[int, int, int]

NAVY: RGB = (15, 23, 42)
INDIGO: RGB = (99, 102, 241)
EMERALD: RGB = (22, 163, 74)
AMBER: RGB = (217, 119, 6)
RED: RGB = (220, 38, 38)
BLUE: RGB = (37, 99, 235)
EMERALD_BG: RGB = (240, 253, 244)
AMBER_BG: RGB = (255, 251, 235)
RED_BG: RGB = (254, 242, 242)
BLUE_BG: RGB = (239, 246, 255)
SLATE_BG: RGB = (248, 250, 252)
SLATE_TRACK: RGB = (226, 232, 240)
TEXT_MED: RGB = (71, 85, 105)
TEXT_LIGHT: RGB = (148, 163, 184)
WHITE: RGB = (255, 255, 255)

KOREAN_FONT = "HYSMyeongJo-Medium"


def rating_color(rating: float) -> RGB:
    if rating >= 4:
        return EMERALD
    if rating >= 3:
        return AMBER
    return RED


class _ReportCanvas:
    """Canvas with a top-down cursor, page breaks and page-number footers."""

    def __init__(self, buffer: BytesIO, font: str, bold_font: str):
        self.pdf = canvas.Canvas(buffer, pagesize=A4)
        self.width, self.height = A4
        self.mx = 16 * mm
        self.cw = self.width - 2 * self.mx
        self.font = font
        self.bold_font = bold_font
        self.page = 1
        self.y = self.height - 16 * mm

    def fill(self, color: RGB) -> None:
        self.pdf.setFillColorRGB(*(c / 255.0 for c in color))

    def text(self, x: float, y: float, value: str, size: float = 9, bold: bool = False,
             color: RGB = NAVY, align: str = "left") -> None:
        self.fill(color)
        self.pdf.setFont(self.bold_font if bold else self.font, size)
        if align == "right":
            self.pdf.drawRightString(x, y, value)
        elif align == "center":
            self.pdf.drawCentredString(x, y, value)
        else:
            self.pdf.drawString(x, y, value)

    def footer(self) -> None:
        self.text(self.width / 2, 8 * mm, f"Page {self.page}", size=7, color=TEXT_LIGHT, align="center")

    def check_page(self, needed: float) -> None:
        if self.y - needed < 16 * mm:
            self.footer()
            self.pdf.showPage()
            self.page += 1
            self.y = self.height - 16 * mm

    def section(self, label: str, content: str, background: RGB, accent: RGB) -> None:
        lines = simpleSplit(content, self.font, 8, self.cw - 18 * mm)
        line_h = 4 * mm
        h = 8 * mm + len(lines) * line_h
        self.check_page(h + 2 * mm)
        top = self.y
        self.fill(background)
        self.pdf.roundRect(self.mx, top - h, self.cw, h, 2 * mm, stroke=0, fill=1)
        self.fill(accent)
        self.pdf.rect(self.mx, top - h, 1.2 * mm, h, stroke=0, fill=1)
        self.text(self.mx + 7 * mm, top - 5.5 * mm, label.upper(), size=7, bold=True, color=accent)
        y = top - 10.5 * mm
        for line in lines:
            self.text(self.mx + 7 * mm, y, line, size=8, color=TEXT_MED)
            y -= line_h
        self.y = top - h - 3 * mm

    def competency_bars(self, feedback: StructuredFeedback) -> None:
        self.check_page(28 * mm)
        top = self.y
        self.fill(SLATE_BG)
        self.pdf.roundRect(self.mx, top - 26 * mm, self.cw, 26 * mm, 2 * mm, stroke=0, fill=1)
        bar_x = self.mx + 30 * mm
        bar_w = self.cw - 48 * mm
        bar_y = top - 7.5 * mm
        for key, score in feedback.competencies.as_dict().items():
            self.text(self.mx + 4 * mm, bar_y + 0.8 * mm, COMPETENCY_LABELS[key], size=7, color=TEXT_MED)
            self.fill(SLATE_TRACK)
            self.pdf.roundRect(bar_x, bar_y, bar_w, 3.5 * mm, 1.5 * mm, stroke=0, fill=1)
            self.fill(rating_color(score))
            self.pdf.roundRect(bar_x, bar_y, max(2 * mm, score / 5.0 * bar_w), 3.5 * mm,
                               1.5 * mm, stroke=0, fill=1)
            self.text(self.width - self.mx - 4 * mm, bar_y + 0.8 * mm, f"{score}/5",
                      size=7, bold=True, color=TEXT_MED, align="right")
            bar_y -= 5.5 * mm
        self.y = top - 28 * mm

    def save(self) -> None:
        self.footer()
        self.pdf.save()


def _fonts(language: str) -> Tuple[str, str]:
    if language == "ko":
        pdfmetrics.registerFont(UnicodeCIDFont(KOREAN_FONT))
        return KOREAN_FONT, KOREAN_FONT
    return "Helvetica", "Helvetica-Bold"


def _draw_header(doc: _ReportCanvas, report: InterviewReport, generated: datetime) -> None:
    doc.text(doc.mx, doc.height - 22 * mm, "Interview Feedback Report", size=18, bold=True)
    doc.text(doc.mx, doc.height - 30 * mm, report.interview.job.job_position, size=9, color=TEXT_MED)
    doc.text(doc.mx, doc.height - 35 * mm, generated.strftime("%B %d, %Y"), size=8, color=TEXT_LIGHT)

    cx, cy = doc.width - doc.mx - 16 * mm, doc.height - 25 * mm
    doc.fill(rating_color(report.overall_rating))
    doc.pdf.circle(cx, cy, 12 * mm, stroke=0, fill=1)
    doc.text(cx, cy - 1.5 * mm, report.overall_rating_text, size=16, bold=True, color=WHITE, align="center")
    doc.text(cx, cy - 7 * mm, "out of 5", size=6, color=WHITE, align="center")

    # stats bar
    top = doc.height - 44 * mm
    doc.fill(SLATE_BG)
    doc.pdf.roundRect(doc.mx, top - 15 * mm, doc.cw, 15 * mm, 2 * mm, stroke=0, fill=1)
    columns = [doc.mx + 14 * mm, doc.mx + doc.cw / 3 + 6 * mm, doc.mx + doc.cw * 2 / 3]
    labels = ["QUESTIONS", "ANSWERED", "AVG RATING"]
    values = [
        str(report.question_count),
        f"{report.answered_count}/{report.question_count}",
        report.overall_rating_text,
    ]
    for x, label, value in zip(columns, labels, values):
        doc.text(x, top - 5.5 * mm, label, size=6, bold=True, color=TEXT_LIGHT)
        doc.text(x, top - 11.5 * mm, value, size=11, bold=True, color=INDIGO)
    doc.y = top - 22 * mm


def _draw_answer(doc: _ReportCanvas, answer: StoredAnswer, label: str,
                 suggested: Optional[str]) -> None:
    doc.check_page(16 * mm)
    top = doc.y
    color = rating_color(answer.rating)
    doc.fill(color)
    doc.pdf.circle(doc.mx + 4.5 * mm, top - 4 * mm, 4 * mm, stroke=0, fill=1)
    doc.text(doc.mx + 4.5 * mm, top - 5.2 * mm, label, size=8, bold=True, color=WHITE, align="center")

    lines = simpleSplit(answer.question, doc.bold_font, 10, doc.cw - 38 * mm)
    y = top - 3.5 * mm
    for line in lines:
        doc.text(doc.mx + 13 * mm, y, line, size=10, bold=True)
        y -= 5 * mm
    doc.text(doc.width - doc.mx, top - 5 * mm, f"{answer.rating}/5", size=9, bold=True,
             color=color, align="right")
    doc.y = min(y, top - 10 * mm) - 2 * mm

    feedback = answer.feedback
    structured = feedback if isinstance(feedback, StructuredFeedback) else None
    if structured is not None:
        doc.competency_bars(structured)
        if structured.praise:
            doc.section("Strengths", structured.praise, EMERALD_BG, EMERALD)
        if structured.correction:
            doc.section("Areas to Improve", structured.correction, AMBER_BG, AMBER)

    doc.section("Your Answer", answer.user_answer or "No answer recorded", RED_BG, RED)

    if suggested:
        title = "Suggested Answer" if structured is not None and structured.suggested_answer else "Ideal Answer"
        doc.section(title, suggested, BLUE_BG, BLUE)
    if structured is not None and structured.tip:
        doc.section("Tip", structured.tip, SLATE_BG, INDIGO)
    if isinstance(feedback, LegacyFeedback) and feedback.text:
        doc.section("Feedback", feedback.text, BLUE_BG, BLUE)


def _draw_entry(doc: _ReportCanvas, entry: ReportEntry, last: bool) -> None:
    _draw_answer(doc, entry.answer, str(entry.number), entry.suggested_answer)
    for follow_up in entry.follow_ups:
        _draw_answer(doc, follow_up, "F", None)

    if not last:
        doc.check_page(6 * mm)
        doc.pdf.setStrokeColorRGB(*(c / 255.0 for c in SLATE_TRACK))
        doc.pdf.setLineWidth(0.8)
        doc.pdf.line(doc.mx + 20 * mm, doc.y, doc.width - doc.mx - 20 * mm, doc.y)
        doc.y -= 6 * mm


def export_pdf(report: InterviewReport, generated: Optional[datetime] = None) -> bytes:
    """Render the report as a PDF document and return its bytes."""
    font, bold_font = _fonts(report.interview.options.language)
    buffer = BytesIO()
    doc = _ReportCanvas(buffer, font, bold_font)

    _draw_header(doc, report, generated or datetime.now())
    for i, entry in enumerate(report.entries):
        _draw_entry(doc, entry, last=(i == len(report.entries) - 1))

    doc.save()
    logger.info(f"Exported report for {report.interview.mock_id} ({doc.page} page(s))")
    return buffer.getvalue()
