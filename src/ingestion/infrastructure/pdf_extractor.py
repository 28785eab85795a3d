"""PDF text extraction with PyMuPDF.

Downloads are capped in size and time, only the first ``max_pages`` pages are
read, and encrypted documents are rejected. The raw page text goes through a
deterministic cleanup that repairs hyphenation, drops page numbers and
``Page n`` headers, and rebuilds paragraphs.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote, urlparse

import aiohttp
import fitz
from aiohttp import ClientConnectorError, ClientPayloadError, ServerDisconnectedError

from src.config.logger_config import logger
from src.config.settings import DEFAULT_USER_AGENT
from src.ingestion.application.contracts import PdfDocument
from src.ingestion.domain.errors import PdfExtractionError

PREVIEW_LENGTH = 300
ENCRYPTED_MESSAGE = "PDF is password-protected or encrypted"


@dataclass(frozen=True)
class PdfConfig:
    max_bytes: int = 10 * 1024 * 1024
    max_pages: int = 100
    timeout_seconds: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT


def clean_pdf_text(text: str) -> str:
    if not text:
        return ""
    cleaned = re.sub(r"(\w+)-\n(\w+)", r"\1\2", text)
    cleaned = re.sub(r"^\s*\d+\s*$", "", cleaned, flags=re.M)
    cleaned = re.sub(r"^Page \d+.*$", "", cleaned, flags=re.M)
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned).strip()
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)

    paragraphs = (re.sub(r"\s+", " ", paragraph.strip()) for paragraph in cleaned.split("\n\n"))
    return "\n\n".join(paragraph for paragraph in paragraphs if len(paragraph) > 10)


def pdf_preview(text: str, max_length: int = PREVIEW_LENGTH) -> str:
    if not text:
        return ""
    paragraphs = [paragraph for paragraph in text.split("\n\n") if len(paragraph.strip()) > 50]
    if paragraphs:
        first = paragraphs[0]
        preview = first[:max_length]
        return preview + ("..." if len(preview) < len(first) else "")
    return text[:max_length] + ("..." if len(text) > max_length else "")


def filename_from_url(url: str) -> str:
    try:
        name = urlparse(url).path.rsplit("/", 1)[-1]
    except ValueError:
        return "document.pdf"
    return unquote(name) or "document.pdf"


class PyMuPdfExtractor:
    def __init__(self, config: PdfConfig | None = None, session: aiohttp.ClientSession | None = None) -> None:
        self.config = config or PdfConfig()
        self.session = session

    async def extract_from_url(self, url: str) -> PdfDocument:
        data = await self._download(url)
        return await self.extract_from_bytes(data, url)

    async def extract_from_bytes(self, data: bytes, url: str) -> PdfDocument:
        if len(data) > self.config.max_bytes:
            raise PdfExtractionError(self._too_large_message(len(data)))
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._extract_sync, data, url),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise PdfExtractionError(f"Timed out extracting {filename_from_url(url)}") from exc

    def _too_large_message(self, size: int) -> str:
        limit_mb = round(self.config.max_bytes / 1024 / 1024)
        return f"PDF too large: {round(size / 1024 / 1024)}MB exceeds {limit_mb}MB limit"

    async def _download(self, url: str) -> bytes:
        if self.session is not None:
            return await self._download_with(self.session, url)
        async with aiohttp.ClientSession() as session:
            return await self._download_with(session, url)

    async def _download_with(self, session: aiohttp.ClientSession, url: str) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        headers = {"User-Agent": self.config.user_agent}
        try:
            async with session.get(url, headers=headers, timeout=timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise PdfExtractionError(f"HTTP {resp.status}")

                content_type = resp.headers.get("Content-Type", "")
                if content_type and "pdf" not in content_type.lower():
                    logger.warning("Content-Type for {} is {}, not PDF", url, content_type)

                declared = resp.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > self.config.max_bytes:
                    raise PdfExtractionError(self._too_large_message(int(declared)))

                chunks: list[bytes] = []
                received = 0
                async for chunk in resp.content.iter_chunked(64 * 1024):
                    received += len(chunk)
                    if received > self.config.max_bytes:
                        raise PdfExtractionError(self._too_large_message(received))
                    chunks.append(chunk)
                return b"".join(chunks)
        except asyncio.TimeoutError as exc:
            raise PdfExtractionError(f"Timed out downloading {url}") from exc
        except (ClientConnectorError, ServerDisconnectedError, ClientPayloadError) as exc:
            raise PdfExtractionError(f"Failed to download PDF: {exc}") from exc

    def _extract_sync(self, data: bytes, url: str) -> PdfDocument:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise PdfExtractionError(f"Unreadable PDF: {exc}") from exc

        try:
            if doc.needs_pass:
                raise PdfExtractionError(ENCRYPTED_MESSAGE)

            page_count = doc.page_count
            pages_read = min(page_count, self.config.max_pages)
            text_parts: list[str] = []
            for index in range(pages_read):
                page = doc.load_page(index)
                # blocks are (x0, y0, x1, y1, text, block_no, block_type); type 0 is text
                blocks = [block[4] for block in page.get_text("blocks") if block[6] == 0]
                page_text = "\n\n".join(block.strip() for block in blocks if block.strip())
                if page_text:
                    text_parts.append(page_text)
            info = {key: value for key, value in (doc.metadata or {}).items() if value}
        finally:
            doc.close()

        text = clean_pdf_text("\n\n".join(text_parts))
        if not text:
            raise PdfExtractionError("No extractable text in PDF")

        metadata: dict[str, Any] = {
            "pages": page_count,
            "pages_read": pages_read,
            "file_size": len(data),
            "info": info,
            "extraction_method": "partial" if pages_read < page_count else "full",
        }
        logger.info(
            "Extracted {} chars from {} ({} of {} pages)",
            len(text),
            filename_from_url(url),
            pages_read,
            page_count,
        )
        return PdfDocument(
            text=text,
            preview=pdf_preview(text),
            title=info.get("title") or None,
            page_count=page_count,
            byte_size=len(data),
            metadata=metadata,
        )
