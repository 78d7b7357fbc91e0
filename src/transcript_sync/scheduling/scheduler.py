"""Background scheduler for periodic transcript scans.

Provides an APScheduler wrapper with one cron job per ScheduleSpec:
- Frequent poll (default hourly, 2h lookback)
- Daily catch-up (default 9:00 AM, 25h lookback)
- Or a single operator-supplied custom schedule replacing both

Every firing goes through the RunGuard: if a scheduled scan is already in
flight the firing is skipped, not queued.

Exports:
    ScheduleSpec: Name, cron expression and lookback for one timer.
    default_schedules: Build the timers from settings or a custom override.
    IngestionScheduler: Async scheduler driving TranscriptProcessor.process_recent.
    run_until_signalled: Block on the scheduler until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.transcript_sync.config import Settings
from src.transcript_sync.core.monitoring import scheduled_runs_total
from src.transcript_sync.pipeline.processor import TranscriptProcessor
from src.transcript_sync.pipeline.schemas import RunReport
from src.transcript_sync.scheduling.guard import RunGuard

logger = structlog.get_logger(__name__)

DEFAULT_CUSTOM_LOOKBACK_HOURS = 2.0

# Two weeks holds a full weekly cycle even when the first firing is days away.
INTERVAL_HORIZON = timedelta(days=15)
INTERVAL_MAX_SAMPLES = 2000


@dataclass(frozen=True)
class ScheduleSpec:
    name: str
    cron: str
    lookback_hours: float


def default_schedules(
    settings: Settings,
    custom_cron: str | None = None,
    custom_lookback_hours: float | None = None,
) -> list[ScheduleSpec]:
    """Timers for this process.

    A custom cron expression replaces the poll and catch-up timers.
    """
    if custom_cron:
        lookback = custom_lookback_hours or DEFAULT_CUSTOM_LOOKBACK_HOURS
        return [ScheduleSpec(name="custom", cron=custom_cron, lookback_hours=lookback)]
    return [
        ScheduleSpec(name="poll", cron=settings.POLL_CRON, lookback_hours=settings.POLL_LOOKBACK_HOURS),
        ScheduleSpec(
            name="catchup",
            cron=settings.CATCHUP_CRON,
            lookback_hours=settings.CATCHUP_LOOKBACK_HOURS,
        ),
    ]


def firing_interval(
    trigger: CronTrigger,
    now: datetime | None = None,
    horizon: timedelta = INTERVAL_HORIZON,
) -> timedelta | None:
    """Largest gap between consecutive fire times within ``horizon`` from now.

    Irregular expressions (weekdays only, specific days of month) have
    uneven gaps, so the whole horizon is walked rather than the next pair.
    Returns None if the trigger fires fewer than twice in the horizon.
    """
    now = now or datetime.now(trigger.timezone)
    end = now + horizon
    previous = trigger.get_next_fire_time(None, now)
    largest: timedelta | None = None
    for _ in range(INTERVAL_MAX_SAMPLES):
        if previous is None or previous > end:
            break
        following = trigger.get_next_fire_time(previous, previous + timedelta(seconds=1))
        if following is None or following > end:
            break
        gap = following - previous
        if largest is None or gap > largest:
            largest = gap
        previous = following
    return largest


class IngestionScheduler:
    """Runs scheduled scans on an AsyncIOScheduler, one at a time.

    Args:
        processor: Pipeline invoked with each schedule's lookback.
        schedules: Timers to register.
        guard: Single-flight guard; a fresh one is created when omitted.
    """

    def __init__(
        self,
        processor: TranscriptProcessor,
        schedules: list[ScheduleSpec],
        guard: RunGuard | None = None,
    ) -> None:
        self._processor = processor
        self._schedules = list(schedules)
        self._guard = guard or RunGuard()
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False
        self._in_flight: set[asyncio.Task] = set()

    @property
    def guard(self) -> RunGuard:
        return self._guard

    @property
    def busy(self) -> bool:
        return self._guard.busy

    @property
    def schedules(self) -> list[ScheduleSpec]:
        return list(self._schedules)

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Register one cron job per schedule and start firing.

        Must be called from within a running event loop.

        Raises:
            ValueError: a cron expression is invalid.
        """
        self._scheduler = AsyncIOScheduler()

        for spec in self._schedules:
            trigger = CronTrigger.from_crontab(spec.cron)
            self._warn_on_coverage_gap(spec, trigger)
            self._scheduler.add_job(
                self.run_scheduled,
                trigger=trigger,
                args=[spec],
                id=f"transcript_scan_{spec.name}",
                name=f"Transcript scan ({spec.name}, {spec.lookback_hours}h lookback)",
                # The RunGuard decides about overlap, not APScheduler.
                max_instances=len(self._schedules) + 1,
                coalesce=True,
                misfire_grace_time=300,
            )

        self._scheduler.start()
        self._started = True
        logger.info(
            "scheduler.started",
            jobs=[
                {"name": s.name, "cron": s.cron, "lookback_hours": s.lookback_hours}
                for s in self._schedules
            ],
        )

    def _warn_on_coverage_gap(self, spec: ScheduleSpec, trigger: CronTrigger) -> None:
        interval = firing_interval(trigger)
        if interval is None:
            return
        interval_hours = interval.total_seconds() / 3600
        if spec.lookback_hours < interval_hours:
            logger.warning(
                "scheduler.coverage_gap_possible",
                schedule=spec.name,
                cron=spec.cron,
                lookback_hours=spec.lookback_hours,
                interval_hours=round(interval_hours, 2),
            )

    async def run_scheduled(self, spec: ScheduleSpec) -> RunReport | None:
        """One timer firing. Returns None when skipped or when the scan failed."""
        if not self._guard.try_acquire():
            logger.info("scheduler.run_skipped", schedule=spec.name, reason="scan already in progress")
            scheduled_runs_total.labels(schedule=spec.name, result="skipped").inc()
            return None

        task = asyncio.current_task()
        if task is not None:
            self._in_flight.add(task)
        try:
            logger.info("scheduler.run_started", schedule=spec.name, lookback_hours=spec.lookback_hours)
            report = await self._processor.process_recent(spec.lookback_hours)
        except Exception as exc:
            logger.error("scheduler.run_failed", schedule=spec.name, error=str(exc), exc_info=True)
            scheduled_runs_total.labels(schedule=spec.name, result="failed").inc()
            return None
        finally:
            self._guard.release()
            if task is not None:
                self._in_flight.discard(task)

        logger.info(
            "scheduler.run_completed",
            schedule=spec.name,
            processed=report.processed,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        scheduled_runs_total.labels(schedule=spec.name, result="completed").inc()
        return report

    def stop(self) -> None:
        """Stop issuing firings. In-flight scans keep running.

        The APScheduler instance is only paused here: shutting it down
        cancels the executor's pending job tasks, which are the scans.
        """
        if self._scheduler is not None and self._started:
            self._scheduler.pause()
            self._started = False
            logger.info("scheduler.stopped")

    async def wait_idle(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for in-flight scans. True when none remain."""
        pending = {task for task in self._in_flight if not task.done()}
        if not pending:
            return True
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            logger.warning("scheduler.shutdown_grace_expired", in_flight=len(still_pending))
            return False
        return True

    async def shutdown(self, grace_seconds: float) -> bool:
        """Stop firing, give an in-flight scan a bounded grace period, then tear down.

        Returns True when no scan was still running at the end of the grace
        period. A scan still running past it is cancelled with the executor.
        """
        self.stop()
        idle = await self.wait_idle(grace_seconds)
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        return idle


async def run_until_signalled(scheduler: IngestionScheduler, grace_seconds: float) -> None:
    """Start the scheduler and block until SIGINT or SIGTERM, then shut down."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    scheduler.start()
    try:
        await stop_event.wait()
        logger.info("scheduler.signal_received")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await scheduler.shutdown(grace_seconds)
