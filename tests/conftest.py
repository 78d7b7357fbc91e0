"""Shared test fixtures for the transcript sync orchestrator.

Provides:
- Sample transcript summaries/details built from Fireflies-shaped payloads
- In-memory fakes for the transcript source, renderer and delivery target
- A recording sleep so pipeline pacing is asserted without real waits
- Settings built explicitly (never from the developer's .env)
"""

from __future__ import annotations

import asyncio

import pytest

from src.transcript_sync.config import DeliveryTargetKind, Settings
from src.transcript_sync.core.errors import (
    DeliveryError,
    RenderError,
    TranscriptNotFoundError,
)
from src.transcript_sync.delivery.base import DeliveryReceipt, DeliveryTarget
from src.transcript_sync.pipeline.processor import TranscriptProcessor
from src.transcript_sync.transcripts.schemas import TranscriptDetail, TranscriptSummary


def detail_payload(transcript_id: str = "T1", **overrides) -> dict:
    """Fireflies-shaped transcript payload."""
    payload = {
        "id": transcript_id,
        "title": "Acme call",
        "dateString": "2024-03-15T14:30:00.000Z",
        "duration": 42,
        "host_email": "host@ourco.com",
        "organizer_email": "host@ourco.com",
        "participants": ["host@ourco.com", "jane@acme.com"],
        "transcript_url": f"https://app.fireflies.ai/view/{transcript_id}",
        "sentences": [
            {"index": 0, "speaker_name": "Jane", "text": "Hello there.", "start_time": 3.2, "end_time": 4.0},
            {"index": 1, "speaker_name": "Host", "text": "Hi Jane.", "start_time": 65.0, "end_time": 66.5},
        ],
        "summary": {
            "overview": "Discussed the renewal.",
            "action_items": ["Send quote", "Book follow-up"],
            "keywords": ["renewal", "pricing"],
        },
        "analytics": {
            "sentiments": {"negative_pct": 5, "neutral_pct": 60, "positive_pct": 35},
            "speakers": [{"speaker_id": 1, "name": "Jane", "duration": 12.4, "word_count": 300}],
        },
    }
    payload.update(overrides)
    return payload


def make_detail(transcript_id: str = "T1", **overrides) -> TranscriptDetail:
    return TranscriptDetail.model_validate(detail_payload(transcript_id, **overrides))


def make_summary(transcript_id: str, title: str = "Acme call") -> TranscriptSummary:
    return TranscriptSummary.model_validate(
        {"id": transcript_id, "title": title, "dateString": "2024-03-15T14:30:00.000Z"}
    )


class FakeSource:
    """Transcript source backed by dicts; unknown ids are not found."""

    def __init__(self, details=None, listing=None, list_error=None, fetch_errors=None):
        self.details = {d.id: d for d in (details or [])}
        self.listing = list(listing or [])
        self.list_error = list_error
        self.fetch_errors = dict(fetch_errors or {})
        self.fetched: list[str] = []
        self.list_calls: list = []
        self.list_gate: asyncio.Event | None = None
        self.connected = True

    async def get_transcript(self, transcript_id):
        self.fetched.append(transcript_id)
        if transcript_id in self.fetch_errors:
            raise self.fetch_errors[transcript_id]
        if transcript_id not in self.details:
            raise TranscriptNotFoundError(transcript_id)
        return self.details[transcript_id]

    async def list_transcripts(self, since):
        self.list_calls.append(since)
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        return list(self.listing)

    async def test_connection(self):
        return self.connected


class FakeRenderer:
    def __init__(self, fail_ids=()):
        self.fail_ids = set(fail_ids)
        self.rendered: list[str] = []

    async def render(self, transcript):
        if transcript.id in self.fail_ids:
            raise RenderError(f"cannot render {transcript.id}")
        self.rendered.append(transcript.id)
        return b"%PDF-1.4 fake " + transcript.id.encode()


class FakeTarget(DeliveryTarget):
    kind = DeliveryTargetKind.local

    def __init__(self, fail_ids=()):
        self.fail_ids = set(fail_ids)
        self.uploads: list[tuple[str, bytes, str]] = []
        self.connected = True
        self.closed = False

    async def upload(self, file_name, content, transcript):
        if transcript.id in self.fail_ids:
            raise DeliveryError(f"disk full for {file_name}")
        self.uploads.append((file_name, content, transcript.id))
        return DeliveryReceipt(target=self.kind, id=file_name, name=file_name, path=f"/tmp/{file_name}")

    async def test_connection(self):
        return self.connected

    async def aclose(self):
        self.closed = True


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        await asyncio.sleep(0)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def fake_target():
    return FakeTarget()


@pytest.fixture
def fake_renderer():
    return FakeRenderer()


@pytest.fixture
def fake_source():
    """Source knowing T1 and T3; T2 is unknown upstream."""
    return FakeSource(
        details=[make_detail("T1"), make_detail("T3", title="Initech sync")],
        listing=[make_summary("T1"), make_summary("T2", "Ghost meeting")],
    )


@pytest.fixture
def processor(fake_source, fake_renderer, fake_target, sleep_recorder):
    return TranscriptProcessor(
        source=fake_source,
        renderer=fake_renderer,
        target=fake_target,
        item_delay_seconds=2.0,
        sleep=sleep_recorder,
    )


@pytest.fixture
def settings(tmp_path):
    """Valid settings for the local target, isolated from any .env file."""
    return Settings(
        _env_file=None,
        FIREFLIES_API_KEY="ff-test-key",
        DELIVERY_TARGET=DeliveryTargetKind.local,
        LOCAL_STORAGE_PATH=str(tmp_path / "transcripts"),
        INTER_ITEM_DELAY_SECONDS=0,
    )

