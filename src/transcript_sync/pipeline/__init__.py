"""Processing pipeline -- per-transcript fetch/name/render/deliver and batch reports."""

from src.transcript_sync.pipeline.processor import TranscriptProcessor
from src.transcript_sync.pipeline.schemas import PipelineStage, ProcessingOutcome, RunReport

__all__ = ["PipelineStage", "ProcessingOutcome", "RunReport", "TranscriptProcessor"]
