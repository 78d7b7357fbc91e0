"""Webhook receiver endpoints.

Only known providers are routed. The handler answers immediately once the
notification is authenticated and carries a transcript id; processing
continues in a background task owned by the EventIntake.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from src.transcript_sync.core.errors import MalformedEventError, WebhookUnauthorizedError
from src.transcript_sync.core.monitoring import webhook_events_total

logger = structlog.get_logger(__name__)

KNOWN_PROVIDERS = frozenset({"fireflies"})

router = APIRouter(tags=["webhooks"])


def _get_intake(request: Request) -> Any:
    """Retrieve EventIntake from app.state, 503 if not available."""
    intake = getattr(request.app.state, "intake", None)
    if intake is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook intake not initialized",
        )
    return intake


@router.post("/webhook/{provider}")
async def receive_webhook(provider: str, request: Request):
    """Transcript-ready notification receiver."""
    if provider not in KNOWN_PROVIDERS:
        logger.warning("webhook.unknown_provider", provider=provider)
        webhook_events_total.labels(provider="unknown", result="unknown_provider").inc()
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": f"Unknown webhook provider: {provider}"},
        )

    intake = _get_intake(request)

    # A non-JSON body is reported as malformed, after the secret check.
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    try:
        transcript_id = intake.accept(request.headers, payload, provider=provider)
    except WebhookUnauthorizedError as exc:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": str(exc)})
    except MalformedEventError as exc:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    return {
        "message": "Webhook received, processing transcript",
        "transcriptId": transcript_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
