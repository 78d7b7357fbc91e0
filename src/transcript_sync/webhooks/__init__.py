"""Inbound webhook intake -- secret check, id extraction, background dispatch."""

from src.transcript_sync.webhooks.intake import (
    EventIntake,
    extract_secret,
    extract_transcript_id,
    verify_secret,
)

__all__ = ["EventIntake", "extract_secret", "extract_transcript_id", "verify_secret"]
