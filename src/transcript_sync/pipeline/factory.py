"""Wire the processing pipeline from settings."""

from __future__ import annotations

from src.transcript_sync.config import Settings
from src.transcript_sync.delivery.factory import build_delivery_target
from src.transcript_sync.pipeline.processor import TranscriptProcessor
from src.transcript_sync.transcripts.fireflies_client import FirefliesClient
from src.transcript_sync.transcripts.renderer import PdfRenderer


def build_processor(settings: Settings) -> TranscriptProcessor:
    """Fireflies source, PDF renderer and the configured delivery target.

    Raises:
        ConfigurationError: the selected target is missing credentials.
    """
    source = FirefliesClient(
        api_key=settings.FIREFLIES_API_KEY,
        base_url=settings.FIREFLIES_API_URL,
        timeout=settings.FIREFLIES_TIMEOUT,
    )
    return TranscriptProcessor(
        source=source,
        renderer=PdfRenderer(),
        target=build_delivery_target(settings),
        item_delay_seconds=settings.INTER_ITEM_DELAY_SECONDS,
    )
