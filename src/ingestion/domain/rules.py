import re
from datetime import datetime, timezone

from pathvalidate import sanitize_filename as lib_sanitize

MAX_ERROR_LENGTH = 500
PREVIEW_LENGTH = 200
PDF_ERROR_PREFIX = "PDF extraction failed: "
NO_READABLE_CONTENT = "Could not extract content from page"
DEFAULT_TITLE = "Untitled"

MARKDOWN_CHARS = re.compile(r"[#*`]")
MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def sanitize_filename(title: str) -> str:
    safe_name = lib_sanitize(title or "", replacement_text="_")
    if not safe_name:
        return "untitled"
    return safe_name[:120]


def make_filename(title: str, record_id: int) -> str:
    return f"{sanitize_filename(title)}_{record_id}.json"


def truncate_error(message: str, limit: int = MAX_ERROR_LENGTH) -> str:
    return (message or "")[:limit]


def generate_preview(text: str, max_length: int = PREVIEW_LENGTH) -> str:
    if not text:
        return ""
    plain = MARKDOWN_LINK.sub(r"\1", MARKDOWN_CHARS.sub("", text))
    plain = re.sub(r"\s+", " ", plain).strip()
    if len(plain) <= max_length:
        return plain

    truncated = plain[:max_length]
    last_period = truncated.rfind(".")
    if last_period > 100:
        return plain[: last_period + 1]
    last_space = truncated.rfind(" ")
    if last_space > 100:
        return plain[:last_space] + "..."
    return truncated + "..."
