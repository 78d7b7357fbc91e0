"""Plain local filesystem target partitioned by year/month.

For deployments with no cloud sync at all. Files land in
``<base_path>/<YYYY>/<MM>/<file_name>``; re-delivering the same transcript
overwrites the previous file atomically.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from src.transcript_sync.config import DeliveryTargetKind
from src.transcript_sync.core.errors import DeliveryError
from src.transcript_sync.delivery.base import (
    DeliveryReceipt,
    DeliveryTarget,
    probe_directory,
    write_file_atomically,
    year_month_parts,
)
from src.transcript_sync.transcripts.schemas import TranscriptDetail

logger = structlog.get_logger(__name__)


class LocalStorageTarget(DeliveryTarget):
    """Writes artifacts under a local directory tree."""

    kind = DeliveryTargetKind.local

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path).expanduser()

    @property
    def base_path(self) -> Path:
        return self._base_path

    async def upload(
        self,
        file_name: str,
        content: bytes,
        transcript: TranscriptDetail,
    ) -> DeliveryReceipt:
        year, month = year_month_parts(transcript)
        file_path = self._base_path / year / month / file_name

        try:
            await asyncio.to_thread(write_file_atomically, file_path, content)
        except OSError as exc:
            raise DeliveryError(f"Could not write {file_path}: {exc}") from exc

        logger.info(
            "local_storage.transcript_saved",
            transcript_id=transcript.id,
            path=str(file_path),
        )
        return DeliveryReceipt(
            target=self.kind,
            id=file_name,
            name=file_name,
            link=file_path.resolve().as_uri(),
            path=str(file_path),
        )

    async def test_connection(self) -> bool:
        try:
            await asyncio.to_thread(probe_directory, self._base_path)
        except OSError as exc:
            logger.warning("local_storage.probe_failed", path=str(self._base_path), error=str(exc))
            return False
        logger.info("local_storage.probe_ok", path=str(self._base_path))
        return True
