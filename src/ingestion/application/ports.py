from typing import Protocol, Sequence, runtime_checkable

from src.ingestion.application.contracts import ExtractedArticle, FetchedPage, PdfDocument
from src.ingestion.domain.models import (
    Batch,
    BatchStatus,
    BookmarkInput,
    ContentRecord,
    IngestionItem,
)


@runtime_checkable
class PageFetcherPort(Protocol):
    async def fetch(self, url: str) -> FetchedPage: ...
    """Fetch a page; raises FetchError on timeout, oversize body or non-success status."""


@runtime_checkable
class ReadableExtractorPort(Protocol):
    async def extract(self, html: str, url: str) -> ExtractedArticle | None: ...
    """Isolate the main readable content; None means no confident extraction."""


@runtime_checkable
class PdfExtractorPort(Protocol):
    async def extract_from_url(self, url: str) -> PdfDocument: ...
    """Download and extract a PDF; raises PdfExtractionError."""

    async def extract_from_bytes(self, data: bytes, url: str) -> PdfDocument: ...
    """Extract an already downloaded PDF; raises PdfExtractionError."""


@runtime_checkable
class IngestionRepositoryPort(Protocol):
    def create_batch(self, user_id: str, total: int) -> Batch: ...

    def get_batch(self, user_id: str, batch_id: str) -> Batch | None: ...

    def add_items(self, user_id: str, batch_id: str, items: Sequence[BookmarkInput]) -> int: ...

    def set_batch_status(self, batch_id: str, status: BatchStatus) -> None: ...

    def finalize_import(self, batch_id: str) -> Batch: ...

    def refresh_batch_counts(self, batch_id: str) -> Batch: ...

    def list_pending(self, batch_id: str, limit: int) -> list[IngestionItem]: ...

    def count_pending(self, batch_id: str) -> int: ...

    def mark_fetching(self, item_ids: Sequence[int]) -> None: ...

    def mark_completed(self, item_id: int, content_id: int) -> None: ...

    def mark_failed(self, item_id: int, error: str) -> None: ...

    def reset_in_flight(self, batch_id: str) -> int: ...

    def reset_failed(self, batch_id: str) -> int: ...

    def save_content(self, record: ContentRecord) -> ContentRecord: ...

    def find_existing_urls(self, user_id: str, urls: Sequence[str]) -> set[str]: ...

    def close(self) -> None: ...


@runtime_checkable
class ContentSinkPort(Protocol):
    def write_record(self, record: ContentRecord) -> object: ...
    """Export one stored content record."""
