"""Infrastructure adapters for ingestion."""

from src.ingestion.infrastructure.fs_sink import JsonContentSink
from src.ingestion.infrastructure.page_fetcher import AiohttpPageFetcher, FetchConfig
from src.ingestion.infrastructure.pdf_extractor import PdfConfig, PyMuPdfExtractor
from src.ingestion.infrastructure.readability_extractor import ReadabilityExtractor
from src.ingestion.infrastructure.registry_sqlite import SQLiteIngestionRepository

__all__ = [
    "AiohttpPageFetcher",
    "FetchConfig",
    "JsonContentSink",
    "PdfConfig",
    "PyMuPdfExtractor",
    "ReadabilityExtractor",
    "SQLiteIngestionRepository",
]
