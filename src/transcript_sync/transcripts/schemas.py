"""Pydantic v2 schemas for upstream meeting transcripts.

TranscriptSummary is what a listing call returns; TranscriptDetail adds the
utterances, synopsis and analytics and is only fetched for transcripts that
are selected for processing. Both are frozen: the pipeline reads them, never
mutates them. Upstream (Fireflies) field names are accepted as aliases.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of an upstream timestamp to an aware datetime.

    Accepts datetimes, epoch milliseconds and ISO-8601 strings (with or
    without a trailing ``Z``). Returns None for anything unparseable.
    Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ── Transcript Content Models ────────────────────────────────────────────────


class Sentence(BaseModel):
    """A single transcribed utterance."""

    model_config = ConfigDict(frozen=True)

    index: int = 0
    speaker_name: str | None = None
    speaker_id: str | int | None = None
    text: str = ""
    start_time: float = 0.0
    end_time: float = 0.0

    @field_validator("text", mode="before")
    @classmethod
    def _none_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _none_time(cls, value: Any) -> Any:
        return 0.0 if value is None else value


class MeetingSynopsis(BaseModel):
    """Provider-generated summary. Fields arrive as either lists or free text."""

    model_config = ConfigDict(frozen=True)

    overview: str | None = None
    action_items: list[str] | str | None = None
    keywords: list[str] | str | None = None


class Sentiments(BaseModel):
    """Sentiment split in percent."""

    model_config = ConfigDict(frozen=True)

    negative_pct: float = 0.0
    neutral_pct: float = 0.0
    positive_pct: float = 0.0

    @field_validator("negative_pct", "neutral_pct", "positive_pct", mode="before")
    @classmethod
    def _none_pct(cls, value: Any) -> Any:
        return 0.0 if value is None else value


class SpeakerStats(BaseModel):
    """Talk-time statistics for one speaker."""

    model_config = ConfigDict(frozen=True)

    speaker_id: str | int | None = None
    name: str | None = None
    duration: float = 0.0
    word_count: int = 0

    @field_validator("duration", "word_count", mode="before")
    @classmethod
    def _none_number(cls, value: Any) -> Any:
        return 0 if value is None else value


class MeetingAnalytics(BaseModel):
    """Analytics block attached to a transcript."""

    model_config = ConfigDict(frozen=True)

    sentiments: Sentiments | None = None
    speakers: list[SpeakerStats] = Field(default_factory=list)

    @field_validator("speakers", mode="before")
    @classmethod
    def _none_speakers(cls, value: Any) -> Any:
        return [] if value is None else value


# ── Transcript Models ────────────────────────────────────────────────────────


class TranscriptSummary(BaseModel):
    """Listing-level view of one completed meeting transcript."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str = ""
    date_string: str | None = Field(None, alias="dateString")
    duration_minutes: float = Field(0.0, alias="duration")
    participants: list[str] = Field(default_factory=list)
    host_email: str | None = None
    organizer_email: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("title", mode="before")
    @classmethod
    def _none_title(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("date_string", mode="before")
    @classmethod
    def _date_to_string(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def _none_duration(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("participants", mode="before")
    @classmethod
    def _none_participants(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def date(self) -> datetime | None:
        """Meeting start as an aware datetime, or None if upstream sent garbage."""
        return parse_timestamp(self.date_string)


class TranscriptDetail(TranscriptSummary):
    """Full transcript: summary fields plus utterances, synopsis and analytics."""

    transcript_url: str | None = None
    sentences: list[Sentence] = Field(default_factory=list)
    summary: MeetingSynopsis | None = None
    analytics: MeetingAnalytics | None = None

    @field_validator("sentences", mode="before")
    @classmethod
    def _none_sentences(cls, value: Any) -> Any:
        return [] if value is None else value
