import asyncio
import re
from dataclasses import dataclass

from src.classification.application.ports import LabelServicePort
from src.classification.domain.metadata import PageMetadata, extract_metadata
from src.classification.domain.snippet import extract_snippet
from src.classification.domain.types import (
    DEFAULT_LABEL,
    REMOTE_LABELS,
    ClassificationSource,
    ContentTypeLabel,
)
from src.classification.domain.url_rules import is_pdf_url, matching_rule
from src.config.logger_config import logger


@dataclass(frozen=True)
class ClassificationResult:
    label: ContentTypeLabel
    source: ClassificationSource
    rule_id: str | None = None
    detail: str | None = None


def normalize_label(raw: str | None) -> ContentTypeLabel | None:
    if not raw:
        return None
    words = raw.strip().lower().split()
    if not words:
        return None
    token = re.sub(r"[^a-z]", "", words[0])
    return token if token in REMOTE_LABELS else None


class ContentTypeClassifier:
    def __init__(
        self,
        label_service: LabelServicePort | None = None,
        default_label: ContentTypeLabel = DEFAULT_LABEL,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.label_service = label_service
        self.default_label = default_label
        self.timeout_seconds = timeout_seconds

    async def classify(self, url: str, html: str | None = None) -> ClassificationResult:
        try:
            if is_pdf_url(url):
                return ClassificationResult(label="pdf", source="pdf")

            rule = matching_rule(url)
            if rule is not None:
                logger.debug("Content type for {} from URL rule {}: {}", url, rule.rule_id, rule.label)
                return ClassificationResult(label=rule.label, source="url", rule_id=rule.rule_id)

            if self.label_service is None:
                return self._default("label_service_unavailable")

            snippet = extract_snippet(html or "")
            try:
                raw = await asyncio.wait_for(self.label_service.label(url, snippet), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("Label service timed out after {}s for {}", self.timeout_seconds, url)
                return self._default("label_service_timeout")
            except Exception as exc:
                logger.warning("Label service failed for {}: {}", url, exc)
                return self._default(f"label_service_error:{type(exc).__name__}")

            label = normalize_label(raw)
            if label is None:
                logger.info("Label service returned unusable label {!r} for {}", raw, url)
                return self._default("invalid_label")
            logger.debug("Content type for {} from label service: {}", url, label)
            return ClassificationResult(label=label, source="remote")
        except Exception as exc:
            logger.exception("Content type classification failed for {}: {}", url, exc)
            return self._default(f"classifier_error:{type(exc).__name__}")

    def extract_metadata(self, html: str, label: ContentTypeLabel) -> PageMetadata:
        return extract_metadata(html, label)

    def _default(self, detail: str) -> ClassificationResult:
        return ClassificationResult(label=self.default_label, source="default", detail=detail)
