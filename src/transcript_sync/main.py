"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, Sentry,
lifespan events wiring the pipeline, webhook intake and optional
in-process scheduler, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.transcript_sync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.transcript_sync.api.v1.router import router as v1_router
from src.transcript_sync.config import get_settings
from src.transcript_sync.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.transcript_sync.pipeline.factory import build_processor
from src.transcript_sync.scheduling.scheduler import IngestionScheduler, default_schedules
from src.transcript_sync.webhooks.intake import EventIntake


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire components on startup, drain them on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog(settings)

    # Fatal: a misconfigured process must not accept webhooks.
    settings.validate_for_startup()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    processor = build_processor(settings)
    app.state.processor = processor
    app.state.intake = EventIntake(
        processor=processor,
        secret=settings.WEBHOOK_SECRET,
        settle_delay_seconds=settings.WEBHOOK_SETTLE_DELAY_SECONDS,
    )
    if not settings.WEBHOOK_SECRET:
        log.warning("webhook.secret_not_configured", hint="all webhook requests will be accepted")

    app.state.scheduler = None
    if settings.ENABLE_SCHEDULER:
        scheduler = IngestionScheduler(processor=processor, schedules=default_schedules(settings))
        scheduler.start()
        app.state.scheduler = scheduler

    log.info(
        "app.started",
        target=processor.target.kind.value,
        scheduler_enabled=settings.ENABLE_SCHEDULER,
    )

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    grace = settings.SHUTDOWN_GRACE_SECONDS
    if app.state.scheduler is not None:
        await app.state.scheduler.shutdown(grace)
    await app.state.intake.drain(grace)
    await processor.target.aclose()
    log.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Transcript Sync",
        version="0.1.0",
        description="Meeting transcript sync and delivery orchestrator",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    # Include v1 API router (health, webhooks, trigger)
    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
