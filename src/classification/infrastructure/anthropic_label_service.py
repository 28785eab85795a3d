import asyncio
from typing import Any

import aiohttp
from aiohttp import ClientConnectorError, ClientPayloadError, ContentTypeError, ServerDisconnectedError

from src.classification.domain.snippet import build_prompt
from src.classification.infrastructure.circuit_breaker import CircuitBreaker
from src.config.logger_config import logger

SYSTEM_PROMPT = (
    "You are a webpage classifier. Respond with ONLY one word: article, product, social, video, or other."
)
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicLabelService:
    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-haiku-20241022",
        endpoint: str = "https://api.anthropic.com/v1/messages",
        timeout_seconds: float = 10.0,
        retries: int = 2,
        backoff_seconds: float = 0.5,
        session: aiohttp.ClientSession | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("An API key is required for the label service")
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.retries = max(1, retries)
        self.backoff_seconds = backoff_seconds
        self.session = session
        self.breaker = breaker or CircuitBreaker("anthropic-label-service")

    def _payload(self, url: str, snippet: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": build_prompt(url, snippet)}],
            "max_tokens": 10,
            "temperature": 0,
        }

    def _headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def label(self, url: str, snippet: str) -> str | None:
        if not self.breaker.is_available:
            logger.debug("Label service circuit is open, skipping {}", url)
            return None
        if self.session is not None:
            return await self._request(self.session, url, snippet)
        async with aiohttp.ClientSession() as session:
            return await self._request(session, url, snippet)

    async def _request(self, session: aiohttp.ClientSession, url: str, snippet: str) -> str | None:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        payload = self._payload(url, snippet)
        for attempt in range(1, self.retries + 1):
            try:
                async with session.post(self.endpoint, json=payload, headers=self._headers(), timeout=timeout) as resp:
                    if resp.status >= 500 or resp.status == 429:
                        logger.warning("Label service returned {}. Attempt {}/{}", resp.status, attempt, self.retries)
                        if attempt == self.retries:
                            self.breaker.record_failure()
                            return None
                        await asyncio.sleep(self.backoff_seconds * 2 ** (attempt - 1))
                        continue
                    if resp.status != 200:
                        body = await resp.text()
                        logger.error("Label service HTTP {}: {}", resp.status, body[:200])
                        self.breaker.record_failure()
                        return None
                    data = await resp.json()
            except (ClientConnectorError, ServerDisconnectedError, ClientPayloadError, asyncio.TimeoutError) as exc:
                if attempt == self.retries:
                    logger.error("Label service failed after {} attempts: {}", self.retries, exc)
                    self.breaker.record_failure()
                    return None
                logger.warning("Label service connection unstable ({}). Retrying...", exc)
                await asyncio.sleep(self.backoff_seconds * 2 ** (attempt - 1))
                continue
            except (ContentTypeError, ValueError) as exc:
                logger.error("Label service returned an unreadable body: {}", exc)
                self.breaker.record_failure()
                return None

            self.breaker.record_success()
            return self._text_of(data)
        return None

    @staticmethod
    def _text_of(data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        for block in data.get("content") or ():
            if isinstance(block, dict) and block.get("type", "text") == "text":
                text = block.get("text")
                if isinstance(text, str):
                    return text
        return None
