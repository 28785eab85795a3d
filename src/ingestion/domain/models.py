from dataclasses import dataclass, field
from typing import Any, Literal

ItemStatus = Literal["pending", "fetching", "completed", "failed"]
BatchStatus = Literal["importing", "fetching_content", "completed"]

ITEM_STATUSES: tuple[ItemStatus, ...] = ("pending", "fetching", "completed", "failed")
TERMINAL_STATUSES: tuple[ItemStatus, ...] = ("completed", "failed")


@dataclass(frozen=True)
class BookmarkInput:
    url: str
    title: str | None = None
    folder_path: str | None = None
    added_at: str | None = None


@dataclass(frozen=True)
class IngestionItem:
    id: int
    user_id: str
    batch_id: str
    url: str
    title: str
    folder_path: str | None
    added_at: str
    status: ItemStatus
    error: str | None = None
    content_id: int | None = None
    fetched_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "batch_id": self.batch_id,
            "url": self.url,
            "title": self.title,
            "folder_path": self.folder_path,
            "added_at": self.added_at,
            "status": self.status,
            "error": self.error,
            "content_id": self.content_id,
            "fetched_at": self.fetched_at,
        }


@dataclass(frozen=True)
class Batch:
    id: str
    user_id: str
    total: int
    imported_count: int
    fetch_pending: int
    fetch_in_progress: int
    fetch_completed: int
    fetch_failed: int
    status: BatchStatus
    created_at: str
    completed_at: str | None = None

    @property
    def counts_consistent(self) -> bool:
        accounted = self.fetch_pending + self.fetch_in_progress + self.fetch_completed + self.fetch_failed
        return accounted == self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "total": self.total,
            "imported_count": self.imported_count,
            "fetch_pending": self.fetch_pending,
            "fetch_in_progress": self.fetch_in_progress,
            "fetch_completed": self.fetch_completed,
            "fetch_failed": self.fetch_failed,
            "status": self.status,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
        }


@dataclass(frozen=True)
class BatchProgress:
    batch_id: str
    total: int
    imported: int
    pending: int
    in_progress: int
    completed: int
    failed: int
    percent_complete: int
    status: BatchStatus
    is_complete: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "imported": self.imported,
            "pending": self.pending,
            "in_progress": self.in_progress,
            "completed": self.completed,
            "failed": self.failed,
            "percent_complete": self.percent_complete,
            "status": self.status,
            "is_complete": self.is_complete,
        }


@dataclass(frozen=True)
class ContentRecord:
    user_id: str
    item_id: int
    title: str
    content_text: str
    preview: str
    content_type: str
    source_url: str
    source_hostname: str
    source_title: str
    created_at: str
    byline: str | None = None
    site_name: str | None = None
    is_readable: bool = False
    quality_score: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "item_id": self.item_id,
            "title": self.title,
            "content_text": self.content_text,
            "preview": self.preview,
            "content_type": self.content_type,
            "source_url": self.source_url,
            "source_hostname": self.source_hostname,
            "source_title": self.source_title,
            "byline": self.byline,
            "site_name": self.site_name,
            "is_readable": self.is_readable,
            "quality_score": self.quality_score,
            "metadata": self.metadata,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class ItemOutcome:
    item_id: int
    success: bool
    record: ContentRecord | None = None
    error: str | None = None


@dataclass(frozen=True)
class OrchestratorRunSummary:
    batch_id: str
    slices: int
    processed: int
    completed: int
    failed: int
    status: Literal["completed", "aborted"]
