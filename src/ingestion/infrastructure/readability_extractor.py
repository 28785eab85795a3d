import asyncio
import re

from bs4 import BeautifulSoup
from readability import Document

from src.config.logger_config import logger
from src.ingestion.application.contracts import ExtractedArticle

MIN_TEXT_LENGTH = 100


def _meta_content(soup: BeautifulSoup, *keys: str) -> str | None:
    for key in keys:
        tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
        if tag is not None:
            content = str(tag.get("content") or "").strip()
            if content:
                return content
    return None


class ReadabilityExtractor:
    """Main-content extraction backed by readability-lxml, run off the event loop."""

    def __init__(self, timeout_seconds: float = 15.0, min_text_length: int = MIN_TEXT_LENGTH) -> None:
        self.timeout_seconds = timeout_seconds
        self.min_text_length = min_text_length

    async def extract(self, html: str, url: str) -> ExtractedArticle | None:
        if not html or not html.strip():
            return None
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._extract_sync, html, url),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Readable extraction timed out for {}", url)
            return None
        except Exception as exc:
            logger.warning("Readable extraction failed for {}: {}", url, exc)
            return None

    def _extract_sync(self, html: str, url: str) -> ExtractedArticle | None:
        document = Document(html, url=url or None)
        content_html = document.summary(html_partial=True)
        text = re.sub(r"\s+", " ", BeautifulSoup(content_html, "lxml").get_text(" ")).strip()
        if len(text) < self.min_text_length:
            logger.debug("Readable extraction for {} produced only {} chars", url, len(text))
            return None

        page = BeautifulSoup(html, "lxml")
        return ExtractedArticle(
            title=document.short_title() or "",
            content_html=content_html,
            text=text,
            byline=_meta_content(page, "author", "article:author"),
            site_name=_meta_content(page, "og:site_name"),
            excerpt=_meta_content(page, "description", "og:description"),
        )
