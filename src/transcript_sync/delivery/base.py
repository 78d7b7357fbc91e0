"""Delivery target abstract base class and shared receipt model.

Every storage backend (Google Drive API, locally-synced folder, plain local
storage, Dropbox) implements this ABC. Exactly one target is built at
start-up by ``build_delivery_target`` and used for the lifetime of the
process.

Contract shared by all variants:
- ``upload`` may be re-invoked for the same transcript without corrupting
  what was written before (overwrite or new name, never a partial file).
- ``test_connection`` performs a minimal side-effecting probe and returns a
  boolean without raising.
"""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from src.transcript_sync.config import DeliveryTargetKind
from src.transcript_sync.transcripts.schemas import TranscriptDetail

ARTIFACT_MIME_TYPE = "application/pdf"


class DeliveryReceipt(BaseModel):
    """Proof of delivery returned by a target."""

    model_config = ConfigDict(frozen=True)

    target: DeliveryTargetKind
    id: str
    name: str
    link: str | None = None
    path: str | None = None


class DeliveryTarget(ABC):
    """Abstract interface for artifact destinations.

    Methods:
        upload: Store one rendered artifact, return a receipt.
        test_connection: Probe reachability, return True/False.
    """

    kind: DeliveryTargetKind

    @abstractmethod
    async def upload(
        self,
        file_name: str,
        content: bytes,
        transcript: TranscriptDetail,
    ) -> DeliveryReceipt:
        """Store the artifact. Raises DeliveryError on failure."""
        ...

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return True if the destination accepts writes. Never raises."""
        ...

    async def aclose(self) -> None:
        """Release any held resources. No-op by default."""
        return None


def year_month_parts(transcript: TranscriptDetail) -> tuple[str, str]:
    """``("2024", "03")`` from the transcript date, current UTC date if missing."""
    moment = transcript.date or datetime.now(timezone.utc)
    return f"{moment.year:04d}", f"{moment.month:02d}"


def write_file_atomically(path: Path, content: bytes) -> None:
    """Write ``content`` to ``path`` so readers never observe a partial file.

    Writes into a temporary sibling, fsyncs, then renames over the target.
    An existing file with the same name is replaced.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def probe_directory(directory: Path) -> None:
    """Write then delete a sentinel file. Raises OSError when not writable."""
    directory.mkdir(parents=True, exist_ok=True)
    sentinel = directory / ".transcript_sync_probe"
    sentinel.write_text(f"probe {datetime.now(timezone.utc).isoformat()}", encoding="utf-8")
    sentinel.unlink()
