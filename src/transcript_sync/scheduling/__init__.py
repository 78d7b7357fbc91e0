"""Scheduled scans and the single-flight run guard."""

from src.transcript_sync.scheduling.guard import RunGuard
from src.transcript_sync.scheduling.scheduler import (
    IngestionScheduler,
    ScheduleSpec,
    default_schedules,
    run_until_signalled,
)

__all__ = [
    "IngestionScheduler",
    "RunGuard",
    "ScheduleSpec",
    "default_schedules",
    "run_until_signalled",
]
