"""Async GraphQL client for the Fireflies.ai transcript API.

Provides FirefliesClient with the shared tenacity retry policy (3 attempts,
exponential backoff 1-10s; transport failures, 429 and 5xx only).
All methods are async and log with structlog for observability.

Errors are normalised into the orchestrator's taxonomy:
TranscriptNotFoundError for unknown ids, TranscriptSourceError for
everything else.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from src.transcript_sync.core.errors import TranscriptNotFoundError, TranscriptSourceError
from src.transcript_sync.core.retry import http_retry
from src.transcript_sync.transcripts.schemas import TranscriptDetail, TranscriptSummary

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.fireflies.ai/graphql"
DEFAULT_LIST_LIMIT = 50

GET_TRANSCRIPT_QUERY = """
query GetTranscript($transcriptId: String!) {
  transcript(id: $transcriptId) {
    id
    title
    dateString
    duration
    host_email
    organizer_email
    participants
    transcript_url
    sentences {
      index
      speaker_name
      speaker_id
      text
      start_time
      end_time
    }
    summary {
      keywords
      action_items
      overview
    }
    analytics {
      sentiments {
        negative_pct
        neutral_pct
        positive_pct
      }
      speakers {
        speaker_id
        name
        duration
        word_count
      }
    }
  }
}
"""

LIST_TRANSCRIPTS_QUERY = """
query GetRecentTranscripts($fromDate: DateTime, $limit: Int) {
  transcripts(fromDate: $fromDate, limit: $limit, mine: true) {
    id
    title
    dateString
    duration
    host_email
    organizer_email
    participants
  }
}
"""

CURRENT_USER_QUERY = "query { user { name email } }"


def _is_not_found(errors: list[dict]) -> bool:
    for error in errors:
        code = (error.get("extensions") or {}).get("code", "")
        message = str(error.get("message", "")).lower()
        if code == "object_not_found" or "not found" in message:
            return True
    return False


class FirefliesClient:
    """Async client for the Fireflies.ai GraphQL API.

    Args:
        api_key: Fireflies API key (sent as a bearer token).
        base_url: GraphQL endpoint.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client with the configured timeout."""
        return httpx.AsyncClient(headers=self._headers, timeout=self._timeout)

    @http_retry
    async def _post(self, query: str, variables: dict[str, Any] | None = None) -> dict:
        async with self._client() as client:
            response = await client.post(
                self._base_url,
                json={"query": query, "variables": variables or {}},
            )
            response.raise_for_status()
            return response.json()

    async def _execute(self, query: str, variables: dict[str, Any] | None = None) -> dict:
        """Run a GraphQL operation, translating transport failures."""
        try:
            return await self._post(query, variables)
        except httpx.HTTPError as exc:
            raise TranscriptSourceError(f"Fireflies request failed: {exc}") from exc
        except ValueError as exc:
            raise TranscriptSourceError(f"Fireflies returned invalid JSON: {exc}") from exc

    async def get_transcript(self, transcript_id: str) -> TranscriptDetail:
        """Fetch one transcript with sentences, summary and analytics.

        Raises:
            TranscriptNotFoundError: Fireflies has no transcript with this id.
            TranscriptSourceError: Any other upstream failure.
        """
        payload = await self._execute(GET_TRANSCRIPT_QUERY, {"transcriptId": transcript_id})

        errors = payload.get("errors") or []
        if errors:
            if _is_not_found(errors):
                raise TranscriptNotFoundError(transcript_id)
            raise TranscriptSourceError(f"GraphQL errors: {errors}")

        data = (payload.get("data") or {}).get("transcript")
        if not data:
            raise TranscriptNotFoundError(transcript_id)

        try:
            transcript = TranscriptDetail.model_validate(data)
        except ValidationError as exc:
            raise TranscriptSourceError(f"Unexpected transcript shape: {exc}") from exc

        logger.info(
            "fireflies.transcript_retrieved",
            transcript_id=transcript.id,
            sentence_count=len(transcript.sentences),
        )
        return transcript

    async def list_transcripts(
        self,
        since: datetime,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[TranscriptSummary]:
        """List transcripts dated at or after ``since``, in upstream order.

        Raises:
            TranscriptSourceError: The listing call failed.
        """
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        from_date = since.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

        payload = await self._execute(
            LIST_TRANSCRIPTS_QUERY,
            {"fromDate": from_date, "limit": limit},
        )
        errors = payload.get("errors") or []
        if errors:
            raise TranscriptSourceError(f"GraphQL errors: {errors}")

        items = (payload.get("data") or {}).get("transcripts") or []
        try:
            transcripts = [TranscriptSummary.model_validate(item) for item in items]
        except ValidationError as exc:
            raise TranscriptSourceError(f"Unexpected transcript listing shape: {exc}") from exc

        logger.info(
            "fireflies.transcripts_listed",
            since=from_date,
            count=len(transcripts),
        )
        return transcripts

    async def test_connection(self) -> bool:
        """Lightweight identity probe. Never raises."""
        try:
            payload = await self._execute(CURRENT_USER_QUERY)
        except TranscriptSourceError as exc:
            logger.warning("fireflies.connection_failed", error=str(exc))
            return False

        user = (payload.get("data") or {}).get("user")
        if not user:
            logger.warning("fireflies.connection_failed", errors=payload.get("errors"))
            return False
        logger.info("fireflies.connected", user=user.get("email") or user.get("name"))
        return True
