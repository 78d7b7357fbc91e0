"""Dropbox target over the HTTP API.

Uploads to ``<folder_path>/<YYYY>/<MM>/<file_name>`` with ``autorename`` so
re-delivery creates a new name instead of clobbering. A public shared link
is requested afterwards on a best-effort basis: if that call fails the
receipt is still returned, just without a link.

Upload calls use the same tenacity retry policy as the Fireflies client.
"""

from __future__ import annotations

import json

import httpx
import structlog

from src.transcript_sync.config import DeliveryTargetKind
from src.transcript_sync.core.errors import DeliveryError
from src.transcript_sync.core.retry import http_retry
from src.transcript_sync.delivery.base import DeliveryReceipt, DeliveryTarget, year_month_parts
from src.transcript_sync.transcripts.schemas import TranscriptDetail

logger = structlog.get_logger(__name__)

CONTENT_URL = "https://content.dropboxapi.com/2"
API_URL = "https://api.dropboxapi.com/2"


class DropboxTarget(DeliveryTarget):
    """Uploads artifacts to Dropbox with a bearer access token.

    Args:
        access_token: Dropbox OAuth2 access token.
        folder_path: Root folder inside the Dropbox account.
        timeout: Per-request timeout in seconds.
    """

    kind = DeliveryTargetKind.dropbox

    def __init__(
        self,
        access_token: str,
        folder_path: str = "/Fireflies Transcripts",
        timeout: float = 60.0,
    ) -> None:
        self._access_token = access_token
        self._folder_path = "/" + folder_path.strip("/") if folder_path.strip("/") else ""
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self._access_token}"},
            timeout=self._timeout,
        )

    def build_path(self, file_name: str, transcript: TranscriptDetail) -> str:
        year, month = year_month_parts(transcript)
        return f"{self._folder_path}/{year}/{month}/{file_name}"

    @http_retry
    async def _upload_file(self, path: str, content: bytes) -> dict:
        # Dropbox-API-Arg must be ASCII; json.dumps escapes everything else
        api_arg = json.dumps({"path": path, "mode": "add", "autorename": True})
        async with self._client() as client:
            response = await client.post(
                f"{CONTENT_URL}/files/upload",
                content=content,
                headers={
                    "Content-Type": "application/octet-stream",
                    "Dropbox-API-Arg": api_arg,
                },
            )
            response.raise_for_status()
            return response.json()

    async def _create_shared_link(self, path: str) -> str | None:
        async with self._client() as client:
            response = await client.post(
                f"{API_URL}/sharing/create_shared_link_with_settings",
                json={"path": path, "settings": {"requested_visibility": "public"}},
            )
            response.raise_for_status()
            return response.json().get("url")

    async def upload(
        self,
        file_name: str,
        content: bytes,
        transcript: TranscriptDetail,
    ) -> DeliveryReceipt:
        path = self.build_path(file_name, transcript)

        try:
            uploaded = await self._upload_file(path, content)
        except (httpx.HTTPError, ValueError) as exc:
            raise DeliveryError(f"Dropbox upload failed for {path}: {exc}") from exc

        # autorename may have changed the final path
        final_path = uploaded.get("path_display") or path

        link = None
        try:
            link = await self._create_shared_link(final_path)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "dropbox.shared_link_failed",
                transcript_id=transcript.id,
                path=final_path,
                error=str(exc),
            )

        logger.info(
            "dropbox.transcript_uploaded",
            transcript_id=transcript.id,
            path=final_path,
            has_link=link is not None,
        )
        return DeliveryReceipt(
            target=self.kind,
            id=uploaded.get("id", ""),
            name=uploaded.get("name", file_name),
            link=link,
            path=final_path,
        )

    async def test_connection(self) -> bool:
        try:
            async with self._client() as client:
                # get_current_account takes no arguments: the body must be JSON null
                response = await client.post(
                    f"{API_URL}/users/get_current_account",
                    content=b"null",
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                account = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            logger.warning(
                "dropbox.connection_failed",
                error=str(exc),
                invalid_token=status_code == 401,
            )
            return False

        logger.info(
            "dropbox.connected",
            user=(account.get("name") or {}).get("display_name"),
        )
        return True
