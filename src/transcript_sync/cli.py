"""Command-line entry point.

Usage:
    transcript-sync run [--id TRANSCRIPT_ID | --hours N]
    transcript-sync schedule [--cron EXPR [--hours N]]
    transcript-sync serve [--host HOST] [--port PORT]
    transcript-sync check

``run`` and ``check`` print a JSON report on stdout. Exit code 0 on full
success, 1 if any item failed or a fatal error (configuration, listing)
occurred.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import structlog
from apscheduler.triggers.cron import CronTrigger

from src.transcript_sync.api.middleware.logging import configure_structlog
from src.transcript_sync.config import Settings, get_settings
from src.transcript_sync.core.errors import ConfigurationError, TranscriptSourceError
from src.transcript_sync.core.monitoring import init_sentry
from src.transcript_sync.pipeline.factory import build_processor
from src.transcript_sync.pipeline.processor import TranscriptProcessor
from src.transcript_sync.scheduling.scheduler import (
    IngestionScheduler,
    default_schedules,
    run_until_signalled,
)

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return number


def _emit(report: dict[str, Any]) -> None:
    print(json.dumps(report, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transcript-sync",
        description="Sync meeting transcripts into PDF documents on a storage target",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Process transcripts once and print a JSON report")
    group = run.add_mutually_exclusive_group()
    group.add_argument("--id", dest="transcript_id", help="Process a single transcript by id")
    group.add_argument("--hours", type=_positive_float, help="Process transcripts from the last N hours")

    schedule = sub.add_parser("schedule", help="Run scheduled scans until interrupted")
    schedule.add_argument("--cron", help="Custom cron expression replacing the built-in schedules")
    schedule.add_argument("--hours", type=_positive_float, help="Lookback for the custom schedule (default 2)")

    serve = sub.add_parser("serve", help="Run the webhook and trigger HTTP server")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default WEBHOOK_PORT)")

    sub.add_parser("check", help="Probe the transcript source and the delivery target")

    return parser


async def _run_once(processor: TranscriptProcessor, args: argparse.Namespace, settings: Settings) -> int:
    if args.transcript_id:
        outcome = await processor.process_transcript(args.transcript_id)
        _emit(
            {
                "success": outcome.succeeded,
                "transcriptId": args.transcript_id,
                "outcome": outcome.model_dump(mode="json"),
            }
        )
        return EXIT_OK if outcome.succeeded else EXIT_FAILURE

    hours = args.hours or settings.LOOKBACK_HOURS
    try:
        report = await processor.process_recent(hours)
    except TranscriptSourceError as exc:
        logger.error("cli.scan_failed", error=str(exc))
        _emit({"success": False, "error": str(exc)})
        return EXIT_FAILURE

    _emit(report.to_summary())
    return EXIT_OK if report.all_succeeded else EXIT_FAILURE


async def _check(processor: TranscriptProcessor) -> int:
    source_ok = await processor.source.test_connection()
    target_ok = await processor.target.test_connection()
    _emit(
        {
            "success": source_ok and target_ok,
            "source": source_ok,
            "target": {"kind": processor.target.kind.value, "ok": target_ok},
        }
    )
    return EXIT_OK if source_ok and target_ok else EXIT_FAILURE


def _schedule(args: argparse.Namespace, settings: Settings, processor: TranscriptProcessor) -> int:
    if args.hours and not args.cron:
        logger.warning("cli.hours_ignored", reason="--hours only applies to --cron")
    if args.cron:
        try:
            CronTrigger.from_crontab(args.cron)
        except ValueError as exc:
            logger.error("cli.invalid_schedule", cron=args.cron, error=str(exc))
            _emit({"success": False, "error": f"Invalid cron expression: {exc}"})
            return EXIT_FAILURE

    schedules = default_schedules(settings, custom_cron=args.cron, custom_lookback_hours=args.hours)
    scheduler = IngestionScheduler(processor=processor, schedules=schedules)
    asyncio.run(run_until_signalled(scheduler, settings.SHUTDOWN_GRACE_SECONDS))
    return EXIT_OK


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    port = args.port or settings.WEBHOOK_PORT
    logger.info("cli.serve_starting", host=args.host, port=port)
    uvicorn.run("src.transcript_sync.main:app", host=args.host, port=port, log_config=None)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_structlog(settings)

    try:
        settings.validate_for_startup()
        processor = build_processor(settings)
    except ConfigurationError as exc:
        logger.error("cli.configuration_invalid", problems=exc.problems)
        _emit({"success": False, "error": str(exc)})
        return EXIT_FAILURE

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    if args.command == "run":
        return asyncio.run(_run_once(processor, args, settings))
    if args.command == "check":
        return asyncio.run(_check(processor))
    if args.command == "schedule":
        return _schedule(args, settings, processor)
    return _serve(args, settings)


if __name__ == "__main__":
    sys.exit(main())
