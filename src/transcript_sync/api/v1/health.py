"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). Liveness never
touches the network; readiness probes the transcript source and the
delivery target.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

SERVICE_NAME = "transcript-sync"

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Basic liveness check.

    Reports whether a scheduled scan is currently running; false when the
    scheduler is not enabled in this process.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "scheduler_busy": bool(scheduler is not None and scheduler.busy),
    }


async def _check_dependencies(request: Request) -> dict:
    """Probe the transcript source and the delivery target. Returns check results dict."""
    checks: dict = {"source": "ok", "target": "ok"}

    processor = getattr(request.app.state, "processor", None)
    if processor is None:
        return {"source": "not_initialized", "target": "not_initialized"}

    try:
        if not await processor.source.test_connection():
            checks["source"] = "error"
    except Exception as e:
        checks["source"] = "error"
        checks["source_error"] = str(e)

    try:
        if not await processor.target.test_connection():
            checks["target"] = "error"
    except Exception as e:
        checks["target"] = "error"
        checks["target_error"] = str(e)

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 when both the source and the target answer, 503 otherwise."""
    checks = await _check_dependencies(request)
    all_healthy = checks.get("source") == "ok" and checks.get("target") == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
