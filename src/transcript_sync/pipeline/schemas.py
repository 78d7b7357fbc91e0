"""Result records produced by the processing pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.transcript_sync.delivery.base import DeliveryReceipt


class PipelineStage(str, Enum):
    """Step at which a transcript failed."""

    FETCH = "fetch"
    RENDER = "render"
    DELIVER = "deliver"


class ProcessingOutcome(BaseModel):
    """Result of one pipeline invocation for one transcript id."""

    model_config = ConfigDict(frozen=True)

    transcript_id: str
    title: str | None = None
    succeeded: bool
    file_name: str | None = None
    receipt: DeliveryReceipt | None = None
    failure_reason: str | None = None
    failed_stage: PipelineStage | None = None


class RunReport(BaseModel):
    """Ordered outcomes of one scan or manual run."""

    outcomes: list[ProcessingOutcome] = Field(default_factory=list)
    lookback_hours: float | None = None
    since: datetime | None = None

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed(self) -> int:
        return self.processed - self.succeeded

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    def to_summary(self) -> dict:
        """JSON-ready report used by the CLI and the /trigger endpoint."""
        return {
            "success": self.all_succeeded,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "lookback_hours": self.lookback_hours,
            "since": self.since.isoformat() if self.since else None,
            "results": [outcome.model_dump(mode="json") for outcome in self.outcomes],
        }
