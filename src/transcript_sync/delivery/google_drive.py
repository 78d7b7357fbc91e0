"""Google Drive API target using service account credentials.

Credentials and the Drive v3 service are built once and cached to avoid
redundant credential builds per upload. All Google API calls are wrapped in
asyncio.to_thread() because googleapiclient is blocking, and they run one at a
time because the cached service shares an httplib2 connection that is not
thread-safe.
"""

from __future__ import annotations

import asyncio
import io
from typing import Any

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload

from src.transcript_sync.config import DeliveryTargetKind
from src.transcript_sync.core.errors import DeliveryError
from src.transcript_sync.delivery.base import ARTIFACT_MIME_TYPE, DeliveryReceipt, DeliveryTarget
from src.transcript_sync.transcripts.schemas import TranscriptDetail

logger = structlog.get_logger(__name__)

# drive.file only grants access to files this service account created
DRIVE_SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
]

UPLOAD_FIELDS = "id,name,webViewLink,webContentLink"


class DriveAuthManager:
    """Builds and caches the Drive API service for a service account."""

    def __init__(self, service_account_file: str) -> None:
        self._service_account_file = service_account_file
        self._service: Any = None

    def get_drive_service(self) -> Any:
        """Get the cached Drive API v3 service instance."""
        if self._service is None:
            logger.info("building_drive_service")
            credentials = service_account.Credentials.from_service_account_file(
                self._service_account_file,
                scopes=DRIVE_SCOPES,
            )
            self._service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        return self._service


class GoogleDriveTarget(DeliveryTarget):
    """Uploads PDFs into a Drive folder and returns the web view link.

    Args:
        auth_manager: Provides the Drive service.
        folder_id: Parent folder id; None uploads to the service account's root.
    """

    kind = DeliveryTargetKind.google_drive

    def __init__(self, auth_manager: DriveAuthManager, folder_id: str | None = None) -> None:
        self._auth = auth_manager
        self._folder_id = folder_id or None
        # One Drive call in flight at a time per shared service.
        self._lock = asyncio.Lock()

    def _metadata(self, file_name: str, transcript: TranscriptDetail) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "name": file_name,
            "mimeType": ARTIFACT_MIME_TYPE,
            "description": f"Transcript from {transcript.title} on {transcript.date_string}",
            "appProperties": {"transcriptId": transcript.id},
        }
        if self._folder_id:
            metadata["parents"] = [self._folder_id]
        return metadata

    async def upload(
        self,
        file_name: str,
        content: bytes,
        transcript: TranscriptDetail,
    ) -> DeliveryReceipt:
        metadata = self._metadata(file_name, transcript)

        def _create() -> dict:
            service = self._auth.get_drive_service()
            media = MediaIoBaseUpload(io.BytesIO(content), mimetype=ARTIFACT_MIME_TYPE, resumable=False)
            return (
                service.files()
                .create(body=metadata, media_body=media, fields=UPLOAD_FIELDS)
                .execute()
            )

        try:
            async with self._lock:
                result = await asyncio.to_thread(_create)
        except Exception as exc:
            raise DeliveryError(f"Google Drive upload failed for {file_name}: {exc}") from exc

        logger.info(
            "google_drive.transcript_uploaded",
            transcript_id=transcript.id,
            file_id=result.get("id"),
            link=result.get("webViewLink"),
        )
        return DeliveryReceipt(
            target=self.kind,
            id=result.get("id", ""),
            name=result.get("name", file_name),
            link=result.get("webViewLink"),
        )

    async def test_connection(self) -> bool:
        def _about() -> dict:
            service = self._auth.get_drive_service()
            return service.about().get(fields="user").execute()

        try:
            async with self._lock:
                about = await asyncio.to_thread(_about)
        except Exception as exc:
            logger.warning("google_drive.connection_failed", error=str(exc))
            return False

        logger.info(
            "google_drive.connected",
            user=(about.get("user") or {}).get("displayName"),
        )
        return True
