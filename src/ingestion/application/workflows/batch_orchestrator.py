import asyncio
from dataclasses import dataclass

from tqdm import tqdm

from src.config.logger_config import logger
from src.ingestion.application.ports import ContentSinkPort, IngestionRepositoryPort
from src.ingestion.application.workflows.item_pipeline import ItemPipeline
from src.ingestion.domain.models import ContentRecord, IngestionItem, ItemOutcome, OrchestratorRunSummary
from src.ingestion.domain.rules import truncate_error


@dataclass(frozen=True)
class OrchestratorConfig:
    slice_size: int = 5
    slice_delay_seconds: float = 2.0
    item_timeout_seconds: float = 90.0
    show_progress: bool = True


class BatchOrchestrator:
    def __init__(
        self,
        repository: IngestionRepositoryPort,
        pipeline: ItemPipeline,
        sink: ContentSinkPort | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.repository = repository
        self.pipeline = pipeline
        self.sink = sink
        self.config = config or OrchestratorConfig()
        self._busy = False
        self._task: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    def start(self, user_id: str, batch_id: str) -> asyncio.Task | None:
        """Schedule a background run; returns ``None`` if a run is already active."""
        if self._busy or (self._task is not None and not self._task.done()):
            logger.info("Orchestrator already running, not starting batch {}", batch_id)
            return None
        self._task = asyncio.create_task(self.run(user_id, batch_id), name=f"ingest-{batch_id}")
        return self._task

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def run(self, user_id: str, batch_id: str) -> OrchestratorRunSummary | None:
        if self._busy:
            logger.info("Orchestrator busy, skipping run for batch {}", batch_id)
            return None
        self._busy = True
        try:
            return await self._run(user_id, batch_id)
        finally:
            self._busy = False

    async def _run(self, user_id: str, batch_id: str) -> OrchestratorRunSummary:
        slices = processed = completed = failed = 0
        resumed = self.repository.reset_in_flight(batch_id)
        if resumed:
            logger.info("Resuming batch {}: {} interrupted items returned to pending", batch_id, resumed)

        with tqdm(
            total=self.repository.count_pending(batch_id),
            desc=f"Batch {batch_id[:8]}",
            unit="item",
            leave=True,
            disable=not self.config.show_progress,
        ) as progress:
            while True:
                try:
                    items = self.repository.list_pending(batch_id, self.config.slice_size)
                except Exception as exc:
                    logger.exception("Failed to list pending items for batch {}: {}", batch_id, exc)
                    return OrchestratorRunSummary(batch_id, slices, processed, completed, failed, "aborted")

                try:
                    if not items:
                        self._finish(batch_id)
                        break

                    slices += 1
                    logger.info(
                        "Batch {} slice {}: processing {} items for user {}", batch_id, slices, len(items), user_id
                    )
                    self.repository.mark_fetching([item.id for item in items])
                    unsaved: list[int] = []
                    outcomes = await asyncio.gather(*(self._process_item(item, unsaved) for item in items))
                    processed += len(outcomes)
                    succeeded = sum(1 for outcome in outcomes if outcome.success)
                    completed += succeeded
                    failed += len(outcomes) - succeeded
                    progress.update(len(outcomes))
                    logger.info("Slice {} done: {} completed, {} failed", slices, succeeded, len(outcomes) - succeeded)
                    if unsaved:
                        # Unsaved items stay in flight and return to pending on the next run.
                        logger.error("Batch {} aborted: {} item outcomes could not be stored", batch_id, len(unsaved))
                        return OrchestratorRunSummary(batch_id, slices, processed, completed, failed, "aborted")

                    self.repository.refresh_batch_counts(batch_id)
                    if self.repository.count_pending(batch_id) == 0:
                        self._finish(batch_id)
                        break
                except Exception as exc:
                    logger.exception("Storage failure while processing batch {}: {}", batch_id, exc)
                    return OrchestratorRunSummary(batch_id, slices, processed, completed, failed, "aborted")
                await asyncio.sleep(self.config.slice_delay_seconds)

        return OrchestratorRunSummary(batch_id, slices, processed, completed, failed, "completed")

    def _finish(self, batch_id: str) -> None:
        self.repository.set_batch_status(batch_id, "completed")
        batch = self.repository.refresh_batch_counts(batch_id)
        logger.info(
            "Batch {} completed: {} completed, {} failed of {}",
            batch_id,
            batch.fetch_completed,
            batch.fetch_failed,
            batch.total,
        )

    async def _process_item(self, item: IngestionItem, unsaved: list[int]) -> ItemOutcome:
        try:
            outcome = await asyncio.wait_for(self.pipeline.process(item), timeout=self.config.item_timeout_seconds)
        except asyncio.TimeoutError:
            outcome = ItemOutcome(
                item.id,
                success=False,
                error=f"Timed out after {self.config.item_timeout_seconds}s",
            )

        try:
            if outcome.success and outcome.record is not None:
                stored = self.repository.save_content(outcome.record)
                self.repository.mark_completed(item.id, stored.id)
                self._export(stored)
                return ItemOutcome(item.id, success=True, record=stored)
            self.repository.mark_failed(item.id, truncate_error(outcome.error or "Unknown error"))
        except Exception as exc:
            logger.exception("Failed to persist outcome for item {}: {}", item.id, exc)
            error = truncate_error(str(exc))
            try:
                self.repository.mark_failed(item.id, error)
            except Exception as mark_exc:
                logger.error("Could not mark item {} failed: {}", item.id, mark_exc)
                unsaved.append(item.id)
            return ItemOutcome(item.id, success=False, error=error)
        return ItemOutcome(item.id, success=False, error=outcome.error)

    def _export(self, record: ContentRecord) -> None:
        if self.sink is None:
            return
        try:
            path = self.sink.write_record(record)
            logger.debug("Exported content {} to {}", record.id, path)
        except Exception as exc:
            logger.warning("Failed to export content {}: {}", record.id, exc)
