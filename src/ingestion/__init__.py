"""Ingestion package."""

from src.ingestion.ingest import IngestRunResult, load_bookmarks, run_ingest, run_ingest_async

__all__ = [
    "IngestRunResult",
    "load_bookmarks",
    "run_ingest",
    "run_ingest_async",
]
