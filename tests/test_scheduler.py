"""Tests for the single-flight guard and the ingestion scheduler.

Most firings are invoked directly through run_scheduled. The lifecycle tests
also force a real cron job through the APScheduler executor to check that
shutdown drains it.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from apscheduler.triggers.cron import CronTrigger

from conftest import make_summary
from src.transcript_sync.core.errors import TranscriptSourceError
from src.transcript_sync.scheduling.guard import RunGuard
from src.transcript_sync.scheduling.scheduler import (
    IngestionScheduler,
    ScheduleSpec,
    default_schedules,
    firing_interval,
)

POLL = ScheduleSpec(name="poll", cron="0 * * * *", lookback_hours=2)
CATCHUP = ScheduleSpec(name="catchup", cron="0 9 * * *", lookback_hours=25)


# ── RunGuard ─────────────────────────────────────────────────────────────────


class TestRunGuard:
    def test_acquire_release_cycle(self):
        guard = RunGuard()

        assert guard.busy is False
        assert guard.try_acquire() is True
        assert guard.busy is True
        assert guard.try_acquire() is False
        guard.release()
        assert guard.busy is False
        assert guard.try_acquire() is True

    def test_release_when_free_is_harmless(self):
        guard = RunGuard()
        guard.release()

        assert guard.busy is False
        assert guard.try_acquire() is True


# ── Schedule Construction ────────────────────────────────────────────────────


class TestDefaultSchedules:
    def test_builtin_poll_and_catchup(self, settings):
        schedules = default_schedules(settings)

        assert schedules == [
            ScheduleSpec(name="poll", cron="0 * * * *", lookback_hours=2),
            ScheduleSpec(name="catchup", cron="0 9 * * *", lookback_hours=25),
        ]

    def test_custom_replaces_builtins(self, settings):
        schedules = default_schedules(settings, custom_cron="*/15 * * * *", custom_lookback_hours=1)

        assert schedules == [ScheduleSpec(name="custom", cron="*/15 * * * *", lookback_hours=1)]

    def test_custom_lookback_defaults_to_two_hours(self, settings):
        (spec,) = default_schedules(settings, custom_cron="0 */6 * * *")

        assert spec.lookback_hours == 2

    def test_firing_interval_hourly_and_daily(self):
        now = datetime(2024, 3, 15, 10, 30)
        hourly = CronTrigger.from_crontab("0 * * * *", timezone="UTC")
        daily = CronTrigger.from_crontab("0 9 * * *", timezone="UTC")

        assert firing_interval(hourly, now.replace(tzinfo=hourly.timezone)) == timedelta(hours=1)
        assert firing_interval(daily, now.replace(tzinfo=daily.timezone)) == timedelta(days=1)

    def test_firing_interval_finds_weekend_gap(self):
        monday = datetime(2024, 3, 11, 10, 0)
        weekdays = CronTrigger.from_crontab("0 9 * * 1-5", timezone="UTC")

        assert firing_interval(weekdays, monday.replace(tzinfo=weekdays.timezone)) == timedelta(days=3)


# ── Firings ──────────────────────────────────────────────────────────────────


class TestRunScheduled:
    """Each firing honors the guard and never raises."""

    @pytest.mark.asyncio
    async def test_firing_runs_scan_with_schedule_lookback(self, processor, fake_source):
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL])

        report = await scheduler.run_scheduled(POLL)

        assert report is not None
        assert report.lookback_hours == 2
        assert report.processed == 2
        assert len(fake_source.list_calls) == 1
        assert scheduler.busy is False

    @pytest.mark.asyncio
    async def test_busy_guard_skips_firing(self, processor, fake_source):
        guard = RunGuard()
        guard.try_acquire()
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL], guard=guard)

        result = await scheduler.run_scheduled(POLL)

        assert result is None
        assert fake_source.list_calls == []
        assert guard.busy is True

    @pytest.mark.asyncio
    async def test_overlapping_firings_second_is_skipped(self, processor, fake_source):
        fake_source.list_gate = asyncio.Event()
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL, CATCHUP])

        first = asyncio.create_task(scheduler.run_scheduled(POLL))
        await asyncio.sleep(0)
        assert scheduler.busy is True

        second = await scheduler.run_scheduled(CATCHUP)
        fake_source.list_gate.set()
        first_report = await first

        assert second is None
        assert first_report is not None
        assert first_report.processed == 2
        assert len(fake_source.list_calls) == 1
        assert scheduler.busy is False

    @pytest.mark.asyncio
    async def test_listing_failure_is_caught_and_guard_released(self, processor, fake_source):
        fake_source.list_error = TranscriptSourceError("Fireflies request failed: timeout")
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL])

        assert await scheduler.run_scheduled(POLL) is None
        assert scheduler.busy is False

        fake_source.list_error = None
        assert await scheduler.run_scheduled(POLL) is not None

    @pytest.mark.asyncio
    async def test_wait_idle_waits_for_in_flight_scan(self, processor, fake_source):
        fake_source.list_gate = asyncio.Event()
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL])

        task = asyncio.create_task(scheduler.run_scheduled(POLL))
        await asyncio.sleep(0)

        assert await scheduler.wait_idle(timeout=0.01) is False

        fake_source.list_gate.set()
        assert await scheduler.wait_idle(timeout=1) is True
        assert task.done()

    @pytest.mark.asyncio
    async def test_wait_idle_when_nothing_runs(self, processor):
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL])

        assert await scheduler.wait_idle(timeout=0) is True


# ── Lifecycle ────────────────────────────────────────────────────────────────


class TestSchedulerLifecycle:
    @pytest.mark.asyncio
    async def test_start_registers_one_job_per_schedule(self, processor):
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL, CATCHUP])

        scheduler.start()
        try:
            jobs = scheduler._scheduler.get_jobs()
            assert {job.id for job in jobs} == {"transcript_scan_poll", "transcript_scan_catchup"}
            assert scheduler.running is True
        finally:
            await scheduler.shutdown(grace_seconds=1)

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_short_lookback_logs_coverage_gap_but_keeps_lookback(self, processor):
        spec = ScheduleSpec(name="custom", cron="0 */6 * * *", lookback_hours=1)
        scheduler = IngestionScheduler(processor=processor, schedules=[spec])

        with patch("src.transcript_sync.scheduling.scheduler.logger") as mock_logger:
            scheduler.start()
        try:
            warned = [c for c in mock_logger.warning.call_args_list if c.args[0] == "scheduler.coverage_gap_possible"]
            assert len(warned) == 1
            assert warned[0].kwargs["lookback_hours"] == 1
            assert warned[0].kwargs["interval_hours"] == 6
            assert scheduler.schedules[0].lookback_hours == 1
        finally:
            await scheduler.shutdown(grace_seconds=1)

    @pytest.mark.asyncio
    async def test_overlapping_lookback_has_no_gap_warning(self, processor):
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL, CATCHUP])

        with patch("src.transcript_sync.scheduling.scheduler.logger") as mock_logger:
            scheduler.start()
        try:
            events = [c.args[0] for c in mock_logger.warning.call_args_list]
            assert "scheduler.coverage_gap_possible" not in events
        finally:
            await scheduler.shutdown(grace_seconds=1)


    @pytest.mark.asyncio
    async def test_weekday_cron_warns_about_weekend_gap(self, processor):
        spec = ScheduleSpec(name="custom", cron="0 9 * * 1-5", lookback_hours=25)
        scheduler = IngestionScheduler(processor=processor, schedules=[spec])

        with patch("src.transcript_sync.scheduling.scheduler.logger") as mock_logger:
            scheduler.start()
        try:
            warned = [c for c in mock_logger.warning.call_args_list if c.args[0] == "scheduler.coverage_gap_possible"]
            assert len(warned) == 1
            assert warned[0].kwargs["interval_hours"] == 72
        finally:
            await scheduler.shutdown(grace_seconds=1)

    @pytest.mark.asyncio
    async def test_shutdown_drains_scan_fired_by_cron_job(self, processor, fake_source, fake_target):
        fake_source.listing = [make_summary("T1")]
        fake_source.list_gate = asyncio.Event()
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL])
        scheduler.start()

        scheduler._scheduler.modify_job("transcript_scan_poll", next_run_time=datetime.now(timezone.utc))
        for _ in range(200):
            if fake_source.list_calls:
                break
            await asyncio.sleep(0.01)
        assert len(fake_source.list_calls) == 1
        assert scheduler.busy is True

        asyncio.get_running_loop().call_later(0.2, fake_source.list_gate.set)
        idle = await scheduler.shutdown(grace_seconds=2)

        assert idle is True
        assert [upload[2] for upload in fake_target.uploads] == ["T1"]
        assert scheduler.busy is False
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_shutdown_reports_scan_outliving_grace(self, processor, fake_source):
        fake_source.list_gate = asyncio.Event()
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL])
        scheduler.start()

        scheduler._scheduler.modify_job("transcript_scan_poll", next_run_time=datetime.now(timezone.utc))
        for _ in range(200):
            if fake_source.list_calls:
                break
            await asyncio.sleep(0.01)

        assert await scheduler.shutdown(grace_seconds=0.05) is False
        assert scheduler.running is False
    @pytest.mark.asyncio
    async def test_invalid_cron_raises_value_error(self, processor):
        scheduler = IngestionScheduler(
            processor=processor,
            schedules=[ScheduleSpec(name="custom", cron="not a cron", lookback_hours=2)],
        )

        with pytest.raises(ValueError):
            scheduler.start()

    @pytest.mark.asyncio
    async def test_listing_is_empty_when_nothing_new(self, processor, fake_source):
        fake_source.listing = []
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL])

        report = await scheduler.run_scheduled(POLL)

        assert report.processed == 0
        assert report.all_succeeded is True

    @pytest.mark.asyncio
    async def test_each_schedule_uses_its_own_lookback(self, processor, fake_source):
        fake_source.listing = [make_summary("T1")]
        scheduler = IngestionScheduler(processor=processor, schedules=[POLL, CATCHUP])

        poll_report = await scheduler.run_scheduled(POLL)
        catchup_report = await scheduler.run_scheduled(CATCHUP)

        assert poll_report.lookback_hours == 2
        assert catchup_report.lookback_hours == 25
        poll_since, catchup_since = fake_source.list_calls
        assert poll_since - catchup_since > timedelta(hours=22)
