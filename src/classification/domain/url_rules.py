import re
from dataclasses import dataclass
from typing import Pattern
from urllib.parse import urlparse

from src.classification.domain.types import ContentTypeLabel


@dataclass(frozen=True)
class UrlRule:
    rule_id: str
    label: ContentTypeLabel
    host: Pattern[str] | None = None
    path: Pattern[str] | None = None

    def matches(self, hostname: str, path: str) -> bool:
        if self.host is not None and not self.host.search(hostname):
            return False
        if self.path is not None and not self.path.search(path):
            return False
        return self.host is not None or self.path is not None


def _host(domain: str) -> Pattern[str]:
    return re.compile(rf"(^|\.){re.escape(domain)}$", re.I)


# Evaluated in order; the first match wins.
URL_RULES: tuple[UrlRule, ...] = (
    UrlRule("twitter", "social", host=_host("twitter.com")),
    UrlRule("x", "social", host=_host("x.com")),
    UrlRule("reddit", "social", host=_host("reddit.com")),
    UrlRule("linkedin_posts", "social", host=_host("linkedin.com"), path=re.compile(r"^/(posts|feed)(/|$)", re.I)),
    UrlRule("facebook", "social", host=_host("facebook.com")),
    UrlRule("instagram", "social", host=_host("instagram.com")),
    UrlRule("youtube", "video", host=_host("youtube.com")),
    UrlRule("youtu_be", "video", host=_host("youtu.be")),
    UrlRule("vimeo", "video", host=_host("vimeo.com")),
    UrlRule("twitch", "video", host=_host("twitch.tv")),
    UrlRule("tiktok", "video", host=_host("tiktok.com")),
    UrlRule("amazon", "product", host=_host("amazon.com")),
    UrlRule("ebay", "product", host=_host("ebay.com")),
    UrlRule("etsy", "product", host=_host("etsy.com")),
    UrlRule("shopify", "product", host=_host("shopify.com")),
    UrlRule("clothing", "product", host=re.compile(r"clothing\.com$", re.I)),
    UrlRule("product_path", "product", path=re.compile(r"/products?/", re.I)),
    UrlRule("shop_path", "product", path=re.compile(r"/(shop|store)/", re.I)),
    UrlRule("collections_path", "product", path=re.compile(r"/collections/", re.I)),
    UrlRule("medium", "article", host=_host("medium.com")),
    UrlRule("substack", "article", host=_host("substack.com")),
    UrlRule("article_path", "article", path=re.compile(r"/(blog|article|news|post)/", re.I)),
)

PDF_URL_MARKERS: tuple[str, ...] = (".pdf", "/pdf/", "type=pdf", "format=pdf")
PDF_CONTENT_TYPES: tuple[str, ...] = ("application/pdf", "application/x-pdf")
PDF_MAGIC = b"%PDF-"


def _split_url(url: str) -> tuple[str, str]:
    try:
        parsed = urlparse(url or "")
    except ValueError:
        return "", ""
    return (parsed.hostname or "").lower(), parsed.path or "/"


def matching_rule(url: str) -> UrlRule | None:
    hostname, path = _split_url(url)
    for rule in URL_RULES:
        if rule.matches(hostname, path):
            return rule
    return None


def detect_from_url(url: str) -> ContentTypeLabel | None:
    """Return the label of the first URL rule that matches, or ``None`` when inconclusive."""
    rule = matching_rule(url)
    return rule.label if rule is not None else None


def is_pdf_url(url: str) -> bool:
    lowered = (url or "").lower()
    return any(marker in lowered for marker in PDF_URL_MARKERS)


def is_pdf_response(content_type: str | None, head: bytes = b"") -> bool:
    if content_type and content_type.split(";")[0].strip().lower() in PDF_CONTENT_TYPES:
        return True
    return head.lstrip()[: len(PDF_MAGIC)] == PDF_MAGIC
