"""Processing pipeline: fetch -> name -> render -> deliver, one transcript at a time.

Each step is a failure-isolation boundary. ``process_transcript`` never
raises: not-found ids, upstream errors, render failures and delivery
failures all become a failed ProcessingOutcome tagged with the stage.
Batches run strictly sequentially in listing order with a fixed pause
after every item (success or failure) to stay under upstream and
downstream rate limits. There is no retry and no dedup ledger: the next
scan's overlapping window is the only second chance.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import structlog

from src.transcript_sync.core.errors import (
    DeliveryError,
    RenderError,
    TranscriptNotFoundError,
    TranscriptSourceError,
)
from src.transcript_sync.core.monitoring import (
    transcript_processing_seconds,
    transcripts_processed_total,
)
from src.transcript_sync.delivery.base import DeliveryTarget
from src.transcript_sync.pipeline.schemas import PipelineStage, ProcessingOutcome, RunReport
from src.transcript_sync.transcripts.naming import generate_file_name
from src.transcript_sync.transcripts.schemas import TranscriptDetail, TranscriptSummary

logger = structlog.get_logger(__name__)

DEFAULT_ITEM_DELAY_SECONDS = 2.0


class TranscriptSource(Protocol):
    async def get_transcript(self, transcript_id: str) -> TranscriptDetail: ...

    async def list_transcripts(self, since: datetime) -> list[TranscriptSummary]: ...


class ArtifactRenderer(Protocol):
    async def render(self, transcript: TranscriptDetail) -> bytes: ...


Namer = Callable[[Any, str | None, Sequence[Any] | None], str]


class TranscriptProcessor:
    """Turns transcript ids into delivered artifacts.

    Args:
        source: Upstream transcript client.
        renderer: Produces artifact bytes for a transcript.
        target: The one delivery target of this process.
        namer: Pure filename function (timestamp, title, participants).
        item_delay_seconds: Pause after every item of a batch.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        source: TranscriptSource,
        renderer: ArtifactRenderer,
        target: DeliveryTarget,
        namer: Namer = generate_file_name,
        item_delay_seconds: float = DEFAULT_ITEM_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._source = source
        self._renderer = renderer
        self._target = target
        self._namer = namer
        self._item_delay = item_delay_seconds
        self._sleep = sleep

    @property
    def source(self) -> TranscriptSource:
        return self._source

    @property
    def target(self) -> DeliveryTarget:
        return self._target

    def _fail(
        self,
        transcript_id: str,
        stage: PipelineStage,
        reason: str,
        title: str | None = None,
        file_name: str | None = None,
    ) -> ProcessingOutcome:
        transcripts_processed_total.labels(status="failed", stage=stage.value).inc()
        return ProcessingOutcome(
            transcript_id=transcript_id,
            title=title,
            succeeded=False,
            file_name=file_name,
            failure_reason=reason,
            failed_stage=stage,
        )

    async def process_transcript(self, transcript_id: str) -> ProcessingOutcome:
        """Run one transcript through the pipeline. Never raises."""
        log = logger.bind(transcript_id=transcript_id)
        log.info("pipeline.transcript_started")
        start = time.perf_counter()

        # 1. Fetch
        try:
            transcript = await self._source.get_transcript(transcript_id)
        except TranscriptNotFoundError as exc:
            log.warning("pipeline.transcript_not_found")
            return self._fail(transcript_id, PipelineStage.FETCH, str(exc))
        except TranscriptSourceError as exc:
            log.error("pipeline.fetch_failed", error=str(exc))
            return self._fail(transcript_id, PipelineStage.FETCH, str(exc))
        except Exception as exc:
            log.error("pipeline.fetch_failed", error=str(exc), exc_info=True)
            return self._fail(transcript_id, PipelineStage.FETCH, f"Unexpected fetch error: {exc}")

        # 2. Name (pure, falls back internally)
        file_name = self._namer(transcript.date_string, transcript.title, transcript.participants)
        log = log.bind(file_name=file_name)
        log.info("pipeline.file_named")

        # 3. Render
        try:
            artifact = await self._renderer.render(transcript)
        except Exception as exc:
            reason = str(exc) if isinstance(exc, RenderError) else f"Unexpected render error: {exc}"
            log.error("pipeline.render_failed", error=reason, exc_info=not isinstance(exc, RenderError))
            return self._fail(transcript_id, PipelineStage.RENDER, reason, transcript.title, file_name)

        # 4. Deliver
        try:
            receipt = await self._target.upload(file_name, artifact, transcript)
        except Exception as exc:
            reason = str(exc) if isinstance(exc, DeliveryError) else f"Unexpected delivery error: {exc}"
            log.error(
                "pipeline.delivery_failed",
                error=reason,
                target=self._target.kind.value,
                exc_info=not isinstance(exc, DeliveryError),
            )
            return self._fail(transcript_id, PipelineStage.DELIVER, reason, transcript.title, file_name)

        # 5. Record
        duration = time.perf_counter() - start
        transcript_processing_seconds.observe(duration)
        transcripts_processed_total.labels(status="succeeded", stage="complete").inc()
        log.info(
            "pipeline.transcript_delivered",
            target=receipt.target.value,
            receipt_id=receipt.id,
            link=receipt.link,
            duration_s=round(duration, 2),
        )
        return ProcessingOutcome(
            transcript_id=transcript_id,
            title=transcript.title,
            succeeded=True,
            file_name=file_name,
            receipt=receipt,
        )

    async def process_batch(self, transcripts: Sequence[TranscriptSummary | str]) -> RunReport:
        """Process items sequentially in the given order.

        Produces exactly one outcome per item. The inter-item delay follows
        every item, including failed ones.
        """
        outcomes: list[ProcessingOutcome] = []
        for item in transcripts:
            transcript_id = item if isinstance(item, str) else item.id
            outcome = await self.process_transcript(transcript_id)
            if outcome.title is None and not isinstance(item, str):
                outcome = outcome.model_copy(update={"title": item.title})
            outcomes.append(outcome)
            await self._sleep(self._item_delay)
        return RunReport(outcomes=outcomes)

    async def process_recent(self, lookback_hours: float) -> RunReport:
        """List transcripts since ``now - lookback_hours`` and process them.

        Raises:
            TranscriptSourceError: the listing call failed; nothing was processed.
        """
        since = datetime.now(timezone.utc) - timedelta(hours=lookback_hours)
        logger.info("pipeline.scan_started", lookback_hours=lookback_hours, since=since.isoformat())

        summaries = await self._source.list_transcripts(since)
        logger.info("pipeline.scan_listed", count=len(summaries))

        report = await self.process_batch(summaries)
        report = report.model_copy(update={"lookback_hours": lookback_hours, "since": since})
        logger.info(
            "pipeline.scan_completed",
            processed=report.processed,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        return report
