import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import aiohttp

from src.classification.application.content_type_classifier import ContentTypeClassifier
from src.classification.infrastructure.anthropic_label_service import AnthropicLabelService
from src.cleaning.application.post_processor import PostProcessor
from src.cleaning.application.rule_engine import RuleEngine
from src.config.logger_config import logger
from src.config.settings import Settings
from src.ingestion.application.use_cases.batch_lifecycle import BatchService
from src.ingestion.application.workflows.batch_orchestrator import BatchOrchestrator, OrchestratorConfig
from src.ingestion.application.workflows.item_pipeline import ItemPipeline
from src.ingestion.domain.models import BatchProgress, BookmarkInput
from src.ingestion.infrastructure.fs_sink import JsonContentSink
from src.ingestion.infrastructure.page_fetcher import AiohttpPageFetcher, FetchConfig
from src.ingestion.infrastructure.pdf_extractor import PdfConfig, PyMuPdfExtractor
from src.ingestion.infrastructure.readability_extractor import ReadabilityExtractor
from src.ingestion.infrastructure.registry_sqlite import SQLiteIngestionRepository
from src.metrics.aggregator import MetricsAggregator
from src.scoring.quality_scorer import QualityScorer


@dataclass(frozen=True)
class IngestRunResult:
    batch_id: str
    progress: BatchProgress
    skipped_duplicates: tuple[str, ...] = ()
    metrics: dict[str, Any] = field(default_factory=dict)


def _bookmark_from(entry: Any) -> BookmarkInput | None:
    if isinstance(entry, str):
        return BookmarkInput(url=entry.strip()) if entry.strip() else None
    if not isinstance(entry, dict):
        return None
    url = str(entry.get("url") or "").strip()
    if not url:
        return None
    folder = entry.get("folder_path") or entry.get("folderPath") or entry.get("folder")
    if isinstance(folder, list):
        folder = "/".join(str(part) for part in folder)
    return BookmarkInput(
        url=url,
        title=entry.get("title"),
        folder_path=str(folder) if folder else None,
        added_at=entry.get("added_at") or entry.get("addedAt") or entry.get("dateAdded"),
    )


def load_bookmarks(path: str | Path) -> list[BookmarkInput]:
    """Read bookmarks from a JSON list (or ``{"bookmarks": [...]}``) of URLs or objects with a ``url`` key."""
    with Path(path).open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("bookmarks", [])
    if not isinstance(data, list):
        raise ValueError(f"Unsupported bookmarks file layout: {path}")
    bookmarks = [bookmark for bookmark in (_bookmark_from(entry) for entry in data) if bookmark is not None]
    logger.info("Loaded {} bookmarks from {}", len(bookmarks), path)
    return bookmarks


async def run_ingest_async(
    bookmarks: Iterable[BookmarkInput],
    *,
    user_id: str,
    settings: Settings | None = None,
    db_path: str | Path | None = None,
    export_dir: str | Path | None = None,
    skip_duplicates: bool = True,
    show_progress: bool = True,
) -> IngestRunResult:
    settings = settings or Settings.from_env()
    bookmarks = list(bookmarks)
    export_dir = export_dir or settings.export_dir

    metrics = MetricsAggregator()
    repository = SQLiteIngestionRepository(db_path or settings.db_path)
    fetcher = AiohttpPageFetcher(
        FetchConfig(
            timeout_seconds=settings.fetch_timeout_seconds,
            max_bytes=settings.fetch_max_bytes,
            user_agent=settings.user_agent,
        )
    )
    async with aiohttp.ClientSession() as session:
        label_service = None
        if settings.anthropic_api_key:
            label_service = AnthropicLabelService(
                api_key=settings.anthropic_api_key,
                model=settings.classifier_model,
                endpoint=settings.classifier_endpoint,
                timeout_seconds=settings.classifier_timeout_seconds,
                session=session,
            )
        else:
            logger.warning("ANTHROPIC_API_KEY is not set; pages without a URL rule get the default label")

        pipeline = ItemPipeline(
            fetcher=fetcher,
            classifier=ContentTypeClassifier(label_service, timeout_seconds=settings.classifier_timeout_seconds),
            rule_engine=RuleEngine(metrics=metrics),
            extractor=ReadabilityExtractor(),
            post_processor=PostProcessor(),
            scorer=QualityScorer(metrics=metrics),
            pdf_extractor=PyMuPdfExtractor(
                PdfConfig(
                    max_bytes=settings.pdf_max_bytes,
                    max_pages=settings.pdf_max_pages,
                    user_agent=settings.user_agent,
                ),
                session=session,
            ),
        )
        orchestrator = BatchOrchestrator(
            repository=repository,
            pipeline=pipeline,
            sink=JsonContentSink(export_dir) if export_dir else None,
            config=OrchestratorConfig(
                slice_size=settings.slice_size,
                slice_delay_seconds=settings.slice_delay_seconds,
                item_timeout_seconds=settings.item_timeout_seconds,
                show_progress=show_progress,
            ),
        )
        service = BatchService(repository, orchestrator)

        try:
            skipped: list[str] = []
            if skip_duplicates:
                skipped = service.find_duplicate_urls(user_id, [bookmark.url for bookmark in bookmarks])
                if skipped:
                    logger.info("Skipping {} bookmarks that were already imported", len(skipped))
                    duplicates = set(skipped)
                    bookmarks = [bookmark for bookmark in bookmarks if bookmark.url not in duplicates]

            batch = service.create_batch(user_id, len(bookmarks))
            service.submit_items(user_id, batch.id, bookmarks)
            service.complete_batch(user_id, batch.id)
            await orchestrator.wait()

            progress = service.get_progress(user_id, batch.id)
            metrics.log_summary()
            return IngestRunResult(
                batch_id=batch.id,
                progress=progress,
                skipped_duplicates=tuple(skipped),
                metrics=metrics.export(),
            )
        finally:
            await fetcher.close()
            repository.close()


def run_ingest(
    bookmarks: Iterable[BookmarkInput],
    *,
    user_id: str,
    settings: Settings | None = None,
    db_path: str | Path | None = None,
    export_dir: str | Path | None = None,
    skip_duplicates: bool = True,
    show_progress: bool = True,
) -> IngestRunResult:
    return asyncio.run(
        run_ingest_async(
            bookmarks,
            user_id=user_id,
            settings=settings,
            db_path=db_path,
            export_dir=export_dir,
            skip_duplicates=skip_duplicates,
            show_progress=show_progress,
        )
    )
