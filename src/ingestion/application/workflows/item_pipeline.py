import asyncio
from typing import Any

from src.classification.application.content_type_classifier import ContentTypeClassifier
from src.classification.domain.url_rules import is_pdf_response, is_pdf_url
from src.cleaning.application.post_processor import PostProcessor
from src.cleaning.application.rule_engine import RuleEngine, light_clean
from src.cleaning.domain.rules import hostname_of
from src.config.logger_config import logger
from src.ingestion.application.contracts import FetchedPage, PdfDocument
from src.ingestion.application.ports import PageFetcherPort, PdfExtractorPort, ReadableExtractorPort
from src.ingestion.domain.errors import ExtractionError, PdfExtractionError
from src.ingestion.domain.models import ContentRecord, IngestionItem, ItemOutcome
from src.ingestion.domain.rules import (
    NO_READABLE_CONTENT,
    PDF_ERROR_PREFIX,
    generate_preview,
    truncate_error,
    utc_now_iso,
)
from src.scoring.quality_scorer import QualityScorer


class ItemPipeline:
    """Turn one ingestion item into a content record.

    PDFs (by URL or by sniffed response) go to the PDF extractor. Pages
    classified ``article`` run through cleaning, readable extraction,
    normalization and scoring; every other label keeps lightly cleaned HTML
    plus extracted metadata. Errors never escape :meth:`process`; they come
    back as a failed :class:`ItemOutcome`.
    """

    def __init__(
        self,
        fetcher: PageFetcherPort,
        classifier: ContentTypeClassifier,
        rule_engine: RuleEngine,
        extractor: ReadableExtractorPort,
        post_processor: PostProcessor,
        scorer: QualityScorer,
        pdf_extractor: PdfExtractorPort | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.classifier = classifier
        self.rule_engine = rule_engine
        self.extractor = extractor
        self.post_processor = post_processor
        self.scorer = scorer
        self.pdf_extractor = pdf_extractor

    async def process(self, item: IngestionItem) -> ItemOutcome:
        try:
            record = await self._build_record(item)
        except PdfExtractionError as exc:
            logger.warning("PDF extraction failed for {}: {}", item.url, exc)
            return ItemOutcome(item.id, success=False, error=truncate_error(f"{PDF_ERROR_PREFIX}{exc}"))
        except Exception as exc:
            logger.warning("Failed to process {}: {}", item.url, exc)
            return ItemOutcome(item.id, success=False, error=truncate_error(str(exc) or type(exc).__name__))
        return ItemOutcome(item.id, success=True, record=record)

    async def _build_record(self, item: IngestionItem) -> ContentRecord:
        if is_pdf_url(item.url):
            logger.info("Detected PDF URL: {}", item.url)
            return self._pdf_record(item, await self._require_pdf_extractor().extract_from_url(item.url))

        page = await self.fetcher.fetch(item.url)
        if is_pdf_response(page.content_type, page.head):
            logger.info("Response for {} is a PDF ({})", item.url, page.content_type or "sniffed")
            return self._pdf_record(item, await self._require_pdf_extractor().extract_from_bytes(page.body, item.url))

        html = page.text
        classification = await self.classifier.classify(item.url, html)
        logger.debug("Content type for {}: {} ({})", item.url, classification.label, classification.source)
        if classification.label == "article":
            return await self._article_record(item, page, html)
        return await self._metadata_record(item, html, classification.label, classification.source)

    def _require_pdf_extractor(self) -> PdfExtractorPort:
        if self.pdf_extractor is None:
            raise PdfExtractionError("no PDF extractor configured")
        return self.pdf_extractor

    async def _article_record(self, item: IngestionItem, page: FetchedPage, html: str) -> ContentRecord:
        cleaning = await asyncio.to_thread(self.rule_engine.clean, html, item.url)
        if not cleaning.success:
            logger.warning("Cleaning failed for {}, using original HTML: {}", item.url, cleaning.error)
        else:
            logger.info("Cleaned HTML for {}: {}% element reduction", item.url, cleaning.report.reduction_percent)
        cleaned_html = cleaning.html if cleaning.success else html

        article = await self.extractor.extract(cleaned_html, item.url)
        if article is None or not article.content_html:
            raise ExtractionError(NO_READABLE_CONTENT)

        normalized = await asyncio.to_thread(self.post_processor.process, article.content_html, item.url)
        final_text = normalized.text if normalized.success else article.content_html
        quality = await asyncio.to_thread(self.scorer.score, final_text, item.url)
        logger.info("Content quality score for {}: {}/100", item.url, quality.overall)

        metadata: dict[str, Any] = {
            "content_type": "article",
            "final_url": page.final_url,
            "excerpt": article.excerpt,
            "cleaning": {
                "success": cleaning.success,
                "error": cleaning.error,
                "reduction_percent": cleaning.report.reduction_percent,
                "applied_rules": list(cleaning.report.applied_rules),
                "rule_errors": list(cleaning.report.errors),
            },
            "normalization": {
                "success": normalized.success,
                "error": normalized.error,
                "steps": list(normalized.steps),
            },
            "quality": quality.to_dict(),
        }
        return ContentRecord(
            user_id=item.user_id,
            item_id=item.id,
            title=article.title or item.title,
            content_text=final_text,
            preview=generate_preview(final_text),
            content_type="article",
            source_url=item.url,
            source_hostname=hostname_of(item.url),
            source_title=item.title,
            created_at=utc_now_iso(),
            byline=article.byline,
            site_name=article.site_name,
            is_readable=True,
            quality_score=quality.overall,
            metadata=metadata,
        )

    async def _metadata_record(self, item: IngestionItem, html: str, label: str, source: str) -> ContentRecord:
        page_metadata = await asyncio.to_thread(self.classifier.extract_metadata, html, label)
        content = await asyncio.to_thread(light_clean, html)
        metadata = {
            **page_metadata.to_dict(),
            "content_type": label,
            "classification_source": source,
            "preserved_html": True,
        }
        logger.info("Preserved {} content for {} ({} metadata keys)", label, item.url, len(metadata))
        return ContentRecord(
            user_id=item.user_id,
            item_id=item.id,
            title=page_metadata.title or item.title,
            content_text=content,
            preview=page_metadata.description or page_metadata.title or item.title,
            content_type=label,
            source_url=item.url,
            source_hostname=hostname_of(item.url),
            source_title=item.title,
            created_at=utc_now_iso(),
            site_name=page_metadata.extra.get("platform") or None,
            is_readable=False,
            metadata=metadata,
        )

    def _pdf_record(self, item: IngestionItem, document: PdfDocument) -> ContentRecord:
        return ContentRecord(
            user_id=item.user_id,
            item_id=item.id,
            title=document.title or item.title,
            content_text=document.text,
            preview=document.preview,
            content_type="pdf",
            source_url=item.url,
            source_hostname=hostname_of(item.url),
            source_title=item.title,
            created_at=utc_now_iso(),
            is_readable=True,
            metadata={"content_type": "pdf", "pdf_info": {**document.metadata, "extracted_at": utc_now_iso()}},
        )
