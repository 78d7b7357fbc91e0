"""Tests for the transcript-sync command line.

Settings and the processor are patched into the cli module so no real
upstream or storage is touched. Reports are read back from stdout.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeRenderer, FakeSource, FakeTarget, SleepRecorder, make_detail, make_summary
from src.transcript_sync.cli import main
from src.transcript_sync.config import Settings
from src.transcript_sync.core.errors import TranscriptSourceError
from src.transcript_sync.pipeline.processor import TranscriptProcessor


def _processor(source: FakeSource, target: FakeTarget | None = None) -> TranscriptProcessor:
    return TranscriptProcessor(
        source=source,
        renderer=FakeRenderer(),
        target=target or FakeTarget(),
        item_delay_seconds=0,
        sleep=SleepRecorder(),
    )


def _run_cli(argv, settings, processor, capsys):
    with patch("src.transcript_sync.cli.get_settings", return_value=settings), patch(
        "src.transcript_sync.cli.build_processor", return_value=processor
    ):
        code = main(argv)
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


# ── run ──────────────────────────────────────────────────────────────────────


class TestRunCommand:
    def test_partial_failure_exits_one(self, settings, capsys):
        source = FakeSource(
            details=[make_detail("T1")],
            listing=[make_summary("T1"), make_summary("T2", "Ghost meeting")],
        )

        code, report = _run_cli(["run", "--hours", "24"], settings, _processor(source), capsys)

        assert code == 1
        assert report["success"] is False
        assert report["processed"] == 2
        assert report["succeeded"] == 1
        assert report["failed"] == 1
        assert report["results"][1]["failure_reason"] == "Transcript not found: T2"

    def test_full_success_exits_zero(self, settings, capsys):
        source = FakeSource(details=[make_detail("T1")], listing=[make_summary("T1")])

        code, report = _run_cli(["run"], settings, _processor(source), capsys)

        assert code == 0
        assert report["success"] is True
        assert report["lookback_hours"] == settings.LOOKBACK_HOURS

    def test_nothing_new_exits_zero(self, settings, capsys):
        code, report = _run_cli(["run", "--hours", "1"], settings, _processor(FakeSource()), capsys)

        assert code == 0
        assert report["processed"] == 0

    def test_single_id(self, settings, capsys):
        target = FakeTarget()
        source = FakeSource(details=[make_detail("T1")])

        code, report = _run_cli(["run", "--id", "T1"], settings, _processor(source, target), capsys)

        assert code == 0
        assert report["transcriptId"] == "T1"
        assert report["outcome"]["file_name"] == "Acme_03-15-24_02-30 PM.pdf"
        assert [upload[2] for upload in target.uploads] == ["T1"]

    def test_single_unknown_id_exits_one(self, settings, capsys):
        code, report = _run_cli(["run", "--id", "nope"], settings, _processor(FakeSource()), capsys)

        assert code == 1
        assert report["success"] is False

    def test_listing_failure_exits_one(self, settings, capsys):
        source = FakeSource(list_error=TranscriptSourceError("GraphQL errors: unauthorized"))

        code, report = _run_cli(["run"], settings, _processor(source), capsys)

        assert code == 1
        assert report == {"success": False, "error": "GraphQL errors: unauthorized"}

    def test_id_and_hours_are_exclusive(self, settings, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run_cli(["run", "--id", "T1", "--hours", "2"], settings, _processor(FakeSource()), capsys)

        assert exc_info.value.code == 2

    def test_non_positive_hours_rejected(self, settings, capsys):
        with pytest.raises(SystemExit):
            _run_cli(["run", "--hours", "0"], settings, _processor(FakeSource()), capsys)


# ── Configuration ────────────────────────────────────────────────────────────


class TestConfiguration:
    def test_missing_api_key_exits_one_before_work(self, capsys):
        settings = Settings(_env_file=None, FIREFLIES_API_KEY="", DELIVERY_TARGET="local")
        source = FakeSource(listing=[make_summary("T1")])

        code, report = _run_cli(["run"], settings, _processor(source), capsys)

        assert code == 1
        assert "FIREFLIES_API_KEY" in report["error"]
        assert source.list_calls == []


# ── check ────────────────────────────────────────────────────────────────────


class TestCheckCommand:
    def test_all_reachable(self, settings, capsys):
        code, report = _run_cli(["check"], settings, _processor(FakeSource()), capsys)

        assert code == 0
        assert report == {"success": True, "source": True, "target": {"kind": "local", "ok": True}}

    def test_unreachable_target(self, settings, capsys):
        target = FakeTarget()
        target.connected = False

        code, report = _run_cli(["check"], settings, _processor(FakeSource(), target), capsys)

        assert code == 1
        assert report["target"]["ok"] is False


# ── schedule / serve ─────────────────────────────────────────────────────────


class TestScheduleCommand:
    def test_invalid_cron_exits_one(self, settings, capsys):
        with patch("src.transcript_sync.cli.run_until_signalled", new_callable=AsyncMock) as mock_run:
            code, report = _run_cli(["schedule", "--cron", "every tuesday"], settings, _processor(FakeSource()), capsys)

        assert code == 1
        assert "Invalid cron expression" in report["error"]
        mock_run.assert_not_called()

    def test_custom_cron_replaces_builtins(self, settings, capsys):
        with patch("src.transcript_sync.cli.run_until_signalled", new_callable=AsyncMock) as mock_run:
            code, _ = _run_cli(
                ["schedule", "--cron", "*/30 * * * *", "--hours", "1"], settings, _processor(FakeSource()), capsys
            )

        assert code == 0
        scheduler = mock_run.call_args.args[0]
        assert [(s.name, s.cron, s.lookback_hours) for s in scheduler.schedules] == [("custom", "*/30 * * * *", 1.0)]

    def test_builtin_schedules_by_default(self, settings, capsys):
        with patch("src.transcript_sync.cli.run_until_signalled", new_callable=AsyncMock) as mock_run:
            code, _ = _run_cli(["schedule"], settings, _processor(FakeSource()), capsys)

        assert code == 0
        scheduler = mock_run.call_args.args[0]
        assert [s.name for s in scheduler.schedules] == ["poll", "catchup"]


class TestServeCommand:
    def test_serve_runs_uvicorn_on_webhook_port(self, settings, capsys):
        with patch("uvicorn.run") as mock_uvicorn:
            code, _ = _run_cli(["serve"], settings, _processor(FakeSource()), capsys)

        assert code == 0
        mock_uvicorn.assert_called_once()
        assert mock_uvicorn.call_args.args[0] == "src.transcript_sync.main:app"
        assert mock_uvicorn.call_args.kwargs["port"] == settings.WEBHOOK_PORT
        assert mock_uvicorn.call_args.kwargs["host"] == "0.0.0.0"
