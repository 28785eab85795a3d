"""Domain models and deterministic rules for ingestion."""

from src.ingestion.domain.models import Batch, BatchProgress, BookmarkInput, ContentRecord, IngestionItem, ItemOutcome
from src.ingestion.domain.rules import generate_preview, make_filename, sanitize_filename, truncate_error

__all__ = [
    "Batch",
    "BatchProgress",
    "BookmarkInput",
    "ContentRecord",
    "generate_preview",
    "IngestionItem",
    "ItemOutcome",
    "make_filename",
    "sanitize_filename",
    "truncate_error",
]
