from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class FetchedPage:
    url: str
    final_url: str
    status: int
    content_type: str
    body: bytes
    encoding: str | None = None

    @property
    def head(self) -> bytes:
        return self.body[:1024]

    @property
    def text(self) -> str:
        return self.body.decode(self.encoding or "utf-8", errors="replace")


@dataclass(frozen=True)
class ExtractedArticle:
    title: str
    content_html: str
    text: str
    byline: str | None = None
    site_name: str | None = None
    excerpt: str | None = None


@dataclass(frozen=True)
class PdfDocument:
    text: str
    preview: str
    title: str | None = None
    page_count: int = 0
    byte_size: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
