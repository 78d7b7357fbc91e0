"""PDF rendering of a transcript with reportlab.

Layout: header (meeting details), summary, transcript lines, analytics.
Rendering is CPU-bound and synchronous, so ``render`` offloads it to a
worker thread via asyncio.to_thread to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import io
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer

from src.transcript_sync.core.errors import RenderError
from src.transcript_sync.transcripts.schemas import TranscriptDetail

logger = structlog.get_logger(__name__)

BRAND_COLOR = colors.HexColor("#2E4A6B")
TEXT_COLOR = colors.HexColor("#333333")
MUTED_COLOR = colors.HexColor("#666666")
RULE_COLOR = colors.HexColor("#CCCCCC")

DOCUMENT_TITLE = "CUSTOMER CALL TRANSCRIPT"


def format_time(seconds: float) -> str:
    """Format an offset in seconds as ``m:ss``."""
    total = int(max(seconds or 0, 0))
    return f"{total // 60}:{total % 60:02d}"


def _as_list(value: list[str] | str | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [line.strip() for line in value.splitlines() if line.strip()]
    return [str(item) for item in value if str(item).strip()]


class PdfRenderer:
    """Renders a TranscriptDetail into PDF bytes."""

    def __init__(self) -> None:
        base = getSampleStyleSheet()
        self._styles = {
            "title": ParagraphStyle(
                "TranscriptTitle", parent=base["Title"], fontSize=20,
                textColor=BRAND_COLOR, alignment=TA_LEFT, spaceAfter=12,
            ),
            "section": ParagraphStyle(
                "Section", parent=base["Heading2"], fontSize=16,
                textColor=BRAND_COLOR, spaceBefore=14, spaceAfter=6,
            ),
            "label": ParagraphStyle(
                "Label", parent=base["Normal"], fontSize=12, textColor=TEXT_COLOR, leading=16,
            ),
            "body": ParagraphStyle(
                "Body", parent=base["Normal"], fontSize=11, textColor=TEXT_COLOR, leading=14,
            ),
            "line": ParagraphStyle(
                "Line", parent=base["Normal"], fontSize=10, textColor=TEXT_COLOR,
                leading=13, spaceAfter=4,
            ),
            "muted": ParagraphStyle(
                "Muted", parent=base["Normal"], fontSize=12, textColor=MUTED_COLOR,
            ),
        }

    async def render(self, transcript: TranscriptDetail) -> bytes:
        """Render the transcript to PDF bytes.

        Raises:
            RenderError: reportlab failed to build the document.
        """
        try:
            content = await asyncio.to_thread(self.render_sync, transcript)
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(f"PDF rendering failed for {transcript.id}: {exc}") from exc

        logger.debug("renderer.pdf_rendered", transcript_id=transcript.id, size_bytes=len(content))
        return content

    def render_sync(self, transcript: TranscriptDetail) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=72,
            rightMargin=72,
            topMargin=50,
            bottomMargin=50,
            title=transcript.title or DOCUMENT_TITLE,
        )
        story: list = []
        story += self._header(transcript)
        story += self._summary(transcript)
        story += self._transcript(transcript)
        story += self._analytics(transcript)
        doc.build(story)
        return buffer.getvalue()

    # ── Sections ────────────────────────────────────────────────────────────

    def _field(self, label: str, value: str) -> Paragraph:
        return Paragraph(f"<b>{escape(label)}:</b> {escape(value)}", self._styles["label"])

    def _rule(self, thick: bool = True) -> HRFlowable:
        return HRFlowable(
            width="100%",
            thickness=2 if thick else 1,
            color=BRAND_COLOR if thick else RULE_COLOR,
            spaceBefore=6,
            spaceAfter=6,
        )

    def _header(self, transcript: TranscriptDetail) -> list:
        date = transcript.date
        date_text = date.strftime("%A, %B %d, %Y %I:%M %p") if date else (transcript.date_string or "Unknown")
        duration = transcript.duration_minutes or 0
        flowables = [
            Paragraph(DOCUMENT_TITLE, self._styles["title"]),
            self._field("Meeting", transcript.title or "N/A"),
            self._field("Date", date_text),
            self._field("Duration", f"{duration:g} minutes"),
            self._field("Host", transcript.host_email or "N/A"),
        ]
        if transcript.participants:
            flowables.append(self._field("Participants", ", ".join(transcript.participants)))
        flowables.append(self._rule())
        return flowables

    def _summary(self, transcript: TranscriptDetail) -> list:
        summary = transcript.summary
        if summary is None:
            return []

        flowables: list = [Paragraph("SUMMARY", self._styles["section"]), self._rule(thick=False)]
        if summary.overview:
            flowables.append(self._field("Overview", summary.overview))
            flowables.append(Spacer(1, 8))

        action_items = _as_list(summary.action_items)
        if action_items:
            flowables.append(Paragraph("<b>Action Items:</b>", self._styles["label"]))
            for number, item in enumerate(action_items, start=1):
                flowables.append(Paragraph(f"{number}. {escape(item)}", self._styles["body"]))
            flowables.append(Spacer(1, 8))

        keywords = _as_list(summary.keywords)
        if keywords:
            flowables.append(self._field("Keywords", ", ".join(keywords)))

        flowables.append(self._rule())
        return flowables

    def _transcript(self, transcript: TranscriptDetail) -> list:
        flowables: list = [Paragraph("TRANSCRIPT", self._styles["section"]), self._rule(thick=False)]
        if not transcript.sentences:
            flowables.append(Paragraph("No transcript sentences available.", self._styles["muted"]))
        for sentence in transcript.sentences:
            speaker = escape(sentence.speaker_name or "Unknown")
            flowables.append(
                Paragraph(
                    f'<font color="#666666"><b>[{format_time(sentence.start_time)}] {speaker}:</b></font> '
                    f"{escape(sentence.text)}",
                    self._styles["line"],
                )
            )
        flowables.append(self._rule())
        return flowables

    def _analytics(self, transcript: TranscriptDetail) -> list:
        analytics = transcript.analytics
        if analytics is None:
            return []

        flowables: list = [Paragraph("ANALYTICS", self._styles["section"]), self._rule(thick=False)]
        if analytics.speakers:
            flowables.append(Paragraph("<b>Speaker Statistics:</b>", self._styles["label"]))
            for speaker in analytics.speakers:
                flowables.append(
                    Paragraph(
                        f"&bull; {escape(speaker.name or 'Unknown')}: "
                        f"{round(speaker.duration)} minutes, {speaker.word_count} words",
                        self._styles["body"],
                    )
                )
        if analytics.sentiments:
            sentiments = analytics.sentiments
            flowables.append(Spacer(1, 8))
            flowables.append(Paragraph("<b>Sentiment Analysis:</b>", self._styles["label"]))
            for label, value in (
                ("Positive", sentiments.positive_pct),
                ("Neutral", sentiments.neutral_pct),
                ("Negative", sentiments.negative_pct),
            ):
                flowables.append(Paragraph(f"&bull; {label}: {round(value)}%", self._styles["body"]))
        return flowables
