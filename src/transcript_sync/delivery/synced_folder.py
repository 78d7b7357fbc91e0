"""Locally-synced Google Drive folder target.

Writes artifacts straight into a directory watched by the Google Drive
desktop client. Delivery means a durable local write; propagation to the
cloud is the sync agent's job and is not verified here.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

from src.transcript_sync.config import DeliveryTargetKind
from src.transcript_sync.core.errors import DeliveryError
from src.transcript_sync.delivery.base import (
    DeliveryReceipt,
    DeliveryTarget,
    probe_directory,
    write_file_atomically,
)
from src.transcript_sync.transcripts.schemas import TranscriptDetail

logger = structlog.get_logger(__name__)

DRIVE_FOLDER_NAMES = ("Google Drive", "GoogleDrive", "My Drive")


def find_google_drive_path(home: Path | None = None) -> Path:
    """Locate the Google Drive desktop folder under the user's home.

    Falls back to the current working directory when nothing is found.
    """
    home = home or Path(os.environ.get("HOME") or os.environ.get("USERPROFILE") or Path.home())
    for name in DRIVE_FOLDER_NAMES:
        candidate = home / name
        if candidate.is_dir():
            logger.info("synced_folder.drive_found", path=str(candidate))
            return candidate

    cwd = Path.cwd()
    logger.warning("synced_folder.drive_not_found", fallback=str(cwd))
    return cwd


class SyncedFolderTarget(DeliveryTarget):
    """Writes artifacts into ``<base_path>/<target_folder>`` (flat, no partitioning).

    Args:
        base_path: Google Drive root on disk. Auto-detected when empty.
        target_folder: Sub-folder inside the drive; empty writes to the root.
    """

    kind = DeliveryTargetKind.synced_folder

    def __init__(self, base_path: str | Path | None = None, target_folder: str = "") -> None:
        self._base_path = Path(base_path).expanduser() if base_path else find_google_drive_path()
        target_folder = (target_folder or "").strip()
        self._full_path = self._base_path / target_folder if target_folder else self._base_path

    @property
    def full_path(self) -> Path:
        return self._full_path

    async def upload(
        self,
        file_name: str,
        content: bytes,
        transcript: TranscriptDetail,
    ) -> DeliveryReceipt:
        file_path = self._full_path / file_name

        try:
            await asyncio.to_thread(write_file_atomically, file_path, content)
        except OSError as exc:
            raise DeliveryError(f"Could not write {file_path}: {exc}") from exc

        logger.info(
            "synced_folder.transcript_saved",
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
            await asyncio.to_thread(probe_directory, self._full_path)
        except OSError as exc:
            logger.warning(
                "synced_folder.probe_failed",
                path=str(self._full_path),
                error=str(exc),
                hint="check write access to the Google Drive folder",
            )
            return False
        logger.info("synced_folder.probe_ok", path=str(self._full_path))
        return True
