"""Manual trigger endpoint.

Runs the pipeline synchronously for one transcript id or for a lookback
window and returns the outcome. Manual runs do not consult the RunGuard.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from src.transcript_sync.core.errors import TranscriptSourceError

logger = structlog.get_logger(__name__)

DEFAULT_TRIGGER_LOOKBACK_HOURS = 24.0

router = APIRouter(tags=["trigger"])


class TriggerRequest(BaseModel):
    """Either a single transcript id or a lookback window in hours."""

    model_config = ConfigDict(populate_by_name=True)

    transcript_id: str | None = Field(default=None, alias="transcriptId", min_length=1)
    hours: float | None = Field(default=None, gt=0)


def _get_processor(request: Request) -> Any:
    """Retrieve TranscriptProcessor from app.state, 503 if not available."""
    processor = getattr(request.app.state, "processor", None)
    if processor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Transcript processor not initialized",
        )
    return processor


@router.post("/trigger")
async def manual_trigger(request: Request, body: TriggerRequest | None = None):
    """Process one transcript or every transcript from the last N hours."""
    processor = _get_processor(request)
    body = body or TriggerRequest()

    if body.transcript_id:
        logger.info("trigger.single_requested", transcript_id=body.transcript_id)
        outcome = await processor.process_transcript(body.transcript_id)
        return {
            "success": outcome.succeeded,
            "transcriptId": body.transcript_id,
            "outcome": outcome.model_dump(mode="json"),
        }

    hours = body.hours or DEFAULT_TRIGGER_LOOKBACK_HOURS
    logger.info("trigger.scan_requested", lookback_hours=hours)
    try:
        report = await processor.process_recent(hours)
    except TranscriptSourceError as exc:
        logger.error("trigger.scan_failed", error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )
    return report.to_summary()
