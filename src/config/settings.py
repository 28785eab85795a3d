# Runtime configuration read from the environment (.env supported)

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; BookmarkIngest/1.0; +https://example.invalid/bot)"


@dataclass(frozen=True)
class Settings:
    anthropic_api_key: str | None = None
    classifier_model: str = "claude-3-5-haiku-20241022"
    classifier_endpoint: str = "https://api.anthropic.com/v1/messages"
    classifier_timeout_seconds: float = 10.0
    db_path: str = "artifacts/ingest/ingest.db"
    export_dir: str | None = None
    slice_size: int = 5
    slice_delay_seconds: float = 2.0
    item_timeout_seconds: float = 90.0
    fetch_timeout_seconds: float = 10.0
    fetch_max_bytes: int = 5 * 1024 * 1024
    pdf_max_bytes: int = 10 * 1024 * 1024
    pdf_max_pages: int = 100
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            classifier_model=os.getenv("CLASSIFIER_MODEL", cls.classifier_model),
            classifier_endpoint=os.getenv("CLASSIFIER_ENDPOINT", cls.classifier_endpoint),
            classifier_timeout_seconds=_env_float("CLASSIFIER_TIMEOUT_SECONDS", cls.classifier_timeout_seconds),
            db_path=os.getenv("INGEST_DB_PATH", cls.db_path),
            export_dir=os.getenv("INGEST_EXPORT_DIR") or None,
            slice_size=_env_int("INGEST_SLICE_SIZE", cls.slice_size),
            slice_delay_seconds=_env_float("INGEST_SLICE_DELAY_SECONDS", cls.slice_delay_seconds),
            item_timeout_seconds=_env_float("INGEST_ITEM_TIMEOUT_SECONDS", cls.item_timeout_seconds),
            fetch_timeout_seconds=_env_float("FETCH_TIMEOUT_SECONDS", cls.fetch_timeout_seconds),
            fetch_max_bytes=_env_int("FETCH_MAX_BYTES", cls.fetch_max_bytes),
            pdf_max_bytes=_env_int("PDF_MAX_BYTES", cls.pdf_max_bytes),
            pdf_max_pages=_env_int("PDF_MAX_PAGES", cls.pdf_max_pages),
            user_agent=os.getenv("FETCH_USER_AGENT", cls.user_agent),
        )
