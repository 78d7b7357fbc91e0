"""Webhook event intake: authenticate, extract the transcript id, hand off.

The HTTP layer answers as soon as ``accept`` returns. Processing happens in
a tracked background task that waits a short settle delay (the provider
may notify before the transcript is queryable) and then runs the pipeline
for that single id. These runs do not consult the RunGuard.
"""

from __future__ import annotations

import asyncio
import hmac
import re
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog

from src.transcript_sync.core.errors import MalformedEventError, WebhookUnauthorizedError
from src.transcript_sync.core.monitoring import webhook_events_total, webhook_tasks_in_flight
from src.transcript_sync.pipeline.processor import TranscriptProcessor

logger = structlog.get_logger(__name__)

DEFAULT_SETTLE_DELAY_SECONDS = 5.0

_BEARER_PREFIX = re.compile(r"^bearer\s+", re.IGNORECASE)

# First match wins.
_TOP_LEVEL_ID_KEYS = ("transcriptId", "transcript_id", "id", "meetingId", "meeting_id")
_DATA_ID_KEYS = ("transcriptId", "transcript_id", "id")


def extract_secret(headers: Mapping[str, str]) -> str | None:
    """Secret presented by the caller: X-Webhook-Secret, else Authorization."""
    lowered = {key.lower(): value for key, value in headers.items()}
    raw = lowered.get("x-webhook-secret") or lowered.get("authorization")
    if not raw:
        return None
    return _BEARER_PREFIX.sub("", raw.strip())


def verify_secret(provided: str | None, expected: str) -> bool:
    """Constant-time comparison. An empty ``expected`` accepts anything."""
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def _scalar_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)):
        return str(value)
    return None


def extract_transcript_id(payload: Any) -> str:
    """Pull the transcript id out of a loosely-shaped notification body.

    Raises:
        MalformedEventError: no recognizable identifier anywhere.
    """
    if not isinstance(payload, dict):
        raise MalformedEventError("Webhook payload must be a JSON object")

    for key in _TOP_LEVEL_ID_KEYS:
        found = _scalar_id(payload.get(key))
        if found:
            return found

    data = payload.get("data")
    if isinstance(data, dict):
        for key in _DATA_ID_KEYS:
            found = _scalar_id(data.get(key))
            if found:
                return found

    transcript = payload.get("transcript")
    if isinstance(transcript, dict):
        found = _scalar_id(transcript.get("id"))
        if found:
            return found

    raise MalformedEventError("No transcript ID found in webhook payload")


class EventIntake:
    """Turns authenticated webhook notifications into background pipeline runs.

    Args:
        processor: Pipeline used for the single-id run.
        secret: Shared secret; empty disables the check.
        settle_delay_seconds: Wait before fetching the transcript.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        processor: TranscriptProcessor,
        secret: str = "",
        settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._processor = processor
        self._secret = secret
        self._settle_delay = settle_delay_seconds
        self._sleep = sleep
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def authorize(self, headers: Mapping[str, str]) -> None:
        """Raises WebhookUnauthorizedError when a secret is set and not matched."""
        if not verify_secret(extract_secret(headers), self._secret):
            raise WebhookUnauthorizedError("Invalid webhook secret")

    def accept(
        self,
        headers: Mapping[str, str],
        payload: Any,
        provider: str = "fireflies",
    ) -> str:
        """Validate one notification and schedule its processing.

        Returns:
            The transcript id that will be processed.

        Raises:
            WebhookUnauthorizedError: bad or missing secret.
            MalformedEventError: payload carries no transcript id.
        """
        try:
            self.authorize(headers)
        except WebhookUnauthorizedError:
            logger.warning("webhook.unauthorized", provider=provider)
            webhook_events_total.labels(provider=provider, result="unauthorized").inc()
            raise

        try:
            transcript_id = extract_transcript_id(payload)
        except MalformedEventError as exc:
            logger.warning("webhook.malformed_event", provider=provider, error=str(exc))
            webhook_events_total.labels(provider=provider, result="malformed").inc()
            raise

        logger.info("webhook.event_accepted", provider=provider, transcript_id=transcript_id)
        webhook_events_total.labels(provider=provider, result="accepted").inc()
        self.dispatch(transcript_id)
        return transcript_id

    def dispatch(self, transcript_id: str) -> asyncio.Task:
        """Spawn the tracked background run for one id."""
        task = asyncio.create_task(self._run(transcript_id), name=f"webhook-{transcript_id}")
        self._tasks.add(task)
        webhook_tasks_in_flight.inc()
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        webhook_tasks_in_flight.dec()

    async def _run(self, transcript_id: str) -> None:
        log = logger.bind(transcript_id=transcript_id)
        try:
            await self._sleep(self._settle_delay)
            outcome = await self._processor.process_transcript(transcript_id)
        except asyncio.CancelledError:
            log.warning("webhook.task_cancelled")
            raise
        except Exception as exc:
            log.error("webhook.task_failed", error=str(exc), exc_info=True)
            return

        if outcome.succeeded:
            log.info("webhook.task_completed", file_name=outcome.file_name)
        else:
            log.warning(
                "webhook.task_completed_with_failure",
                failed_stage=outcome.failed_stage.value if outcome.failed_stage else None,
                reason=outcome.failure_reason,
            )

    async def drain(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for outstanding tasks. True when all finished."""
        pending = {task for task in self._tasks if not task.done()}
        if not pending:
            return True
        logger.info("webhook.draining", pending=len(pending))
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            logger.warning("webhook.drain_timeout", pending=len(still_pending))
            return False
        return True
