"""Exception hierarchy for the sync and delivery orchestrator.

Per-item errors (source, render, delivery) are caught by the processing
pipeline and turned into failure outcomes. Intake errors map to 4xx
responses. ConfigurationError is fatal at start-up.
"""

from __future__ import annotations


class TranscriptSyncError(Exception):
    """Base class for all orchestrator errors."""


class TranscriptSourceError(TranscriptSyncError):
    """Upstream transcript provider call failed (network, auth, GraphQL)."""


class TranscriptNotFoundError(TranscriptSourceError):
    """Upstream provider has no transcript with the requested id."""

    def __init__(self, transcript_id: str) -> None:
        super().__init__(f"Transcript not found: {transcript_id}")
        self.transcript_id = transcript_id


class RenderError(TranscriptSyncError):
    """Artifact rendering failed for one transcript."""


class DeliveryError(TranscriptSyncError):
    """Delivery target rejected or failed an upload."""


class WebhookUnauthorizedError(TranscriptSyncError):
    """Webhook secret missing or mismatched."""


class MalformedEventError(TranscriptSyncError):
    """Webhook payload carries no recognizable transcript identifier."""


class ConfigurationError(TranscriptSyncError):
    """Required configuration is missing or invalid."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems
