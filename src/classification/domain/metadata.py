import re
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup, Tag

from src.classification.domain.types import ContentTypeLabel

PRICE_AMOUNT = re.compile(r"\$(\d+\.?\d*)")


@dataclass(frozen=True)
class PageMetadata:
    title: str = ""
    description: str = ""
    image: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "description": self.description, "image": self.image, **self.extra}


def _meta(soup: BeautifulSoup, *, name: str | None = None, prop: str | None = None) -> str | None:
    attrs = {"name": name} if name else {"property": prop}
    for tag in soup.find_all("meta", attrs=attrs):
        content = tag.get("content")
        if isinstance(content, str) and content.strip():
            return content.strip()
    return None


def _title(soup: BeautifulSoup) -> str:
    title = soup.find("title")
    return title.get_text().strip() if isinstance(title, Tag) else ""


def extract_price(soup: BeautifulSoup, html: str) -> str | None:
    amount = _meta(soup, prop="product:price:amount")
    if amount:
        return amount
    for span in soup.find_all("span"):
        classes = " ".join(span.get("class") or ())
        if "price" in classes:
            text = span.get_text().strip()
            if text:
                return text
    match = PRICE_AMOUNT.search(html)
    return match.group(1) if match else None


def extract_metadata(html: str, label: ContentTypeLabel) -> PageMetadata:
    html = html or ""
    soup = BeautifulSoup(html, "lxml")
    extra: dict[str, Any] = {}
    if label == "product":
        extra["price"] = extract_price(soup, html)
        extra["availability"] = _meta(soup, prop="product:availability") or "unknown"
    elif label == "social":
        extra["author"] = _meta(soup, name="author") or _meta(soup, prop="article:author")
        extra["platform"] = _meta(soup, prop="og:site_name") or ""
    elif label == "video":
        extra["duration"] = _meta(soup, prop="video:duration")
        extra["channel"] = _meta(soup, prop="video:series")

    return PageMetadata(
        title=_title(soup),
        description=_meta(soup, name="description") or "",
        image=_meta(soup, prop="og:image") or "",
        extra=extra,
    )
