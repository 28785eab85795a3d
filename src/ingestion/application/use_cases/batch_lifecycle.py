from typing import Sequence

from src.config.logger_config import logger
from src.ingestion.application.ports import IngestionRepositoryPort
from src.ingestion.application.workflows.batch_orchestrator import BatchOrchestrator
from src.ingestion.domain.errors import BatchNotFoundError
from src.ingestion.domain.models import Batch, BatchProgress, BookmarkInput


class BatchService:
    """Create, fill, complete and retry bookmark import batches for one user at a time."""

    def __init__(self, repository: IngestionRepositoryPort, orchestrator: BatchOrchestrator) -> None:
        self.repository = repository
        self.orchestrator = orchestrator

    def create_batch(self, user_id: str, total: int) -> Batch:
        if total < 0:
            raise ValueError("total must be non-negative")
        batch = self.repository.create_batch(user_id, total)
        logger.info("Created batch {} for user {} ({} bookmarks declared)", batch.id, user_id, total)
        return batch

    def submit_items(self, user_id: str, batch_id: str, items: Sequence[BookmarkInput]) -> int:
        self._require_batch(user_id, batch_id)
        inserted = self.repository.add_items(user_id, batch_id, items)
        logger.info("Imported {} of {} bookmarks into batch {}", inserted, len(items), batch_id)
        return inserted

    def complete_batch(self, user_id: str, batch_id: str) -> Batch:
        self._require_batch(user_id, batch_id)
        batch = self.repository.finalize_import(batch_id)
        logger.info("Import of batch {} finished with {} items, starting content fetch", batch_id, batch.total)
        self.orchestrator.start(user_id, batch_id)
        return batch

    def retry_failed(self, user_id: str, batch_id: str) -> int:
        self._require_batch(user_id, batch_id)
        reset = self.repository.reset_failed(batch_id)
        if reset > 0:
            self.repository.set_batch_status(batch_id, "fetching_content")
            self.repository.refresh_batch_counts(batch_id)
            logger.info("Retrying {} failed items in batch {}", reset, batch_id)
            self.orchestrator.start(user_id, batch_id)
        return reset

    def get_progress(self, user_id: str, batch_id: str) -> BatchProgress:
        self._require_batch(user_id, batch_id)
        batch = self.repository.refresh_batch_counts(batch_id)
        finished = batch.fetch_completed + batch.fetch_failed
        percent = round(finished / batch.total * 100) if batch.total else 0
        return BatchProgress(
            batch_id=batch.id,
            total=batch.total,
            imported=batch.imported_count,
            pending=batch.fetch_pending,
            in_progress=batch.fetch_in_progress,
            completed=batch.fetch_completed,
            failed=batch.fetch_failed,
            percent_complete=percent,
            status=batch.status,
            is_complete=batch.status == "completed",
        )

    def find_duplicate_urls(self, user_id: str, urls: Sequence[str]) -> list[str]:
        existing = self.repository.find_existing_urls(user_id, urls)
        return [url for url in dict.fromkeys(urls) if url in existing]

    def _require_batch(self, user_id: str, batch_id: str) -> Batch:
        batch = self.repository.get_batch(user_id, batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch
