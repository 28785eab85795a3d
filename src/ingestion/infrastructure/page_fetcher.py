import asyncio
from dataclasses import dataclass

import aiohttp
from aiohttp import ClientConnectorError, ClientPayloadError, ServerDisconnectedError

from src.config.logger_config import logger
from src.config.settings import DEFAULT_USER_AGENT
from src.ingestion.application.contracts import FetchedPage
from src.ingestion.domain.errors import FetchError

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,application/pdf;q=0.8,*/*;q=0.5"


@dataclass(frozen=True)
class FetchConfig:
    timeout_seconds: float = 10.0
    max_bytes: int = 5 * 1024 * 1024
    retries: int = 3
    backoff_seconds: float = 1.0
    user_agent: str = DEFAULT_USER_AGENT


class AiohttpPageFetcher:
    """Download raw pages with a bounded size, a total timeout and retries on transient failures."""

    def __init__(self, config: FetchConfig | None = None, session: aiohttp.ClientSession | None = None) -> None:
        self.config = config or FetchConfig()
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.config.user_agent, "Accept": ACCEPT_HEADER}
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def fetch(self, url: str) -> FetchedPage:
        session = self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        retries = max(1, self.config.retries)

        for attempt in range(1, retries + 1):
            try:
                async with session.get(url, timeout=timeout, allow_redirects=True) as resp:
                    if resp.status >= 500 or resp.status == 429:
                        logger.warning("Server error {} for {}. Attempt {}/{}", resp.status, url, attempt, retries)
                        if attempt == retries:
                            raise FetchError(f"HTTP {resp.status}", resp.status)
                        await asyncio.sleep(self._backoff(attempt))
                        continue

                    if not 200 <= resp.status < 300:
                        raise FetchError(f"HTTP {resp.status}", resp.status)

                    body = await self._read_body(resp, url)
                    return FetchedPage(
                        url=url,
                        final_url=str(resp.url),
                        status=resp.status,
                        content_type=resp.headers.get("Content-Type", ""),
                        body=body,
                        encoding=resp.charset,
                    )
            except asyncio.TimeoutError as exc:
                raise FetchError(f"Timed out after {self.config.timeout_seconds}s fetching {url}") from exc
            except (ClientConnectorError, ServerDisconnectedError, ClientPayloadError) as exc:
                if attempt == retries:
                    logger.error("Failed to fetch {} after {} attempts: {}", url, retries, exc)
                    raise FetchError(f"Connection failed: {exc}") from exc
                wait_time = self._backoff(attempt)
                logger.warning("Connection unstable for {} ({}). Retrying in {}s...", url, exc, wait_time)
                await asyncio.sleep(wait_time)

        raise FetchError(f"Failed to fetch {url}")

    def _backoff(self, attempt: int) -> float:
        return self.config.backoff_seconds * 2 ** (attempt - 1)

    async def _read_body(self, resp: aiohttp.ClientResponse, url: str) -> bytes:
        limit = self.config.max_bytes
        declared = resp.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise FetchError(f"Response too large ({declared} bytes) for {url}")

        chunks: list[bytes] = []
        received = 0
        async for chunk in resp.content.iter_chunked(64 * 1024):
            received += len(chunk)
            if received > limit:
                raise FetchError(f"Response exceeded {limit} bytes for {url}")
            chunks.append(chunk)
        return b"".join(chunks)
