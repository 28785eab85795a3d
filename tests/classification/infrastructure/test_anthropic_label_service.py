import asyncio
import unittest
from unittest.mock import AsyncMock, patch

from src.classification.infrastructure.anthropic_label_service import AnthropicLabelService
from src.classification.infrastructure.circuit_breaker import CircuitBreaker, CircuitState


def reply(text):
    return {"content": [{"type": "text", "text": text}]}


class FakeResponse:
    def __init__(self, status=200, json_data=None, text_data=""):
        self.status = status
        self._json_data = json_data
        self._text_data = text_data

    async def json(self):
        if isinstance(self._json_data, Exception):
            raise self._json_data
        return self._json_data

    async def text(self):
        return self._text_data

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.requests = []

    def post(self, url, **kwargs):
        if not self._responses:
            raise AssertionError("No more fake responses configured")
        self.requests.append((url, kwargs))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class AnthropicLabelServiceTests(unittest.IsolatedAsyncioTestCase):
    def make_service(self, session, **kwargs):
        return AnthropicLabelService(api_key="test-key", session=session, **kwargs)

    async def test_success_returns_first_text_block(self):
        session = FakeSession([FakeResponse(json_data=reply("article"))])
        service = self.make_service(session)

        self.assertEqual(await service.label("https://example.com/a", "<head></head>"), "article")
        url, kwargs = session.requests[0]
        self.assertEqual(url, "https://api.anthropic.com/v1/messages")
        self.assertEqual(kwargs["headers"]["x-api-key"], "test-key")
        self.assertEqual(kwargs["json"]["max_tokens"], 10)
        self.assertIn("https://example.com/a", kwargs["json"]["messages"][0]["content"])
        self.assertEqual(service.breaker.state, CircuitState.CLOSED)

    async def test_retries_server_errors_then_succeeds(self):
        session = FakeSession([FakeResponse(status=503), FakeResponse(json_data=reply("video"))])
        with patch("src.classification.infrastructure.anthropic_label_service.asyncio.sleep", new=AsyncMock()):
            result = await self.make_service(session).label("https://example.com/v", "")

        self.assertEqual(result, "video")
        self.assertEqual(len(session.requests), 2)

    async def test_retries_timeouts(self):
        session = FakeSession([asyncio.TimeoutError(), FakeResponse(json_data=reply("social"))])
        with patch("src.classification.infrastructure.anthropic_label_service.asyncio.sleep", new=AsyncMock()):
            result = await self.make_service(session).label("https://example.com/s", "")
        self.assertEqual(result, "social")

    async def test_exhausted_retries_open_the_breaker(self):
        breaker = CircuitBreaker("test", failure_threshold=1)
        session = FakeSession([FakeResponse(status=429), FakeResponse(status=429)])
        service = self.make_service(session, retries=2, breaker=breaker)

        with patch("src.classification.infrastructure.anthropic_label_service.asyncio.sleep", new=AsyncMock()):
            self.assertIsNone(await service.label("https://example.com/a", ""))
        self.assertEqual(breaker.state, CircuitState.OPEN)

        self.assertIsNone(await service.label("https://example.com/b", ""))
        self.assertEqual(len(session.requests), 2)

    async def test_client_errors_and_bad_bodies_return_none(self):
        session = FakeSession(
            [
                FakeResponse(status=401, text_data="invalid x-api-key"),
                FakeResponse(json_data=ValueError("not json")),
                FakeResponse(json_data={"content": []}),
            ]
        )
        service = self.make_service(session, breaker=CircuitBreaker("test", failure_threshold=5))

        self.assertIsNone(await service.label("https://example.com/a", ""))
        self.assertIsNone(await service.label("https://example.com/b", ""))
        self.assertIsNone(await service.label("https://example.com/c", ""))
        self.assertEqual(len(session.requests), 3)

    def test_api_key_required(self):
        with self.assertRaises(ValueError):
            AnthropicLabelService(api_key="")


if __name__ == "__main__":
    unittest.main()
