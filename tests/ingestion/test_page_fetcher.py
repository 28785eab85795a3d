import asyncio
import unittest
from unittest.mock import AsyncMock, patch

from src.ingestion.domain.errors import FetchError
from src.ingestion.infrastructure.page_fetcher import AiohttpPageFetcher, FetchConfig
from tests.fixtures.http_fakes import FakeSession, FakeStreamResponse

URL = "https://timberstudio.example/blog/walnut"


def ok_response(chunks=(b"<html>", b"<p>walnut</p></html>"), **kwargs):
    kwargs.setdefault("headers", {"Content-Type": "text/html; charset=utf-8"})
    kwargs.setdefault("charset", "utf-8")
    kwargs.setdefault("url", URL + "/")
    return FakeStreamResponse(status=200, chunks=chunks, **kwargs)


class PageFetcherTests(unittest.IsolatedAsyncioTestCase):
    async def test_fetch_returns_body_and_response_details(self):
        session = FakeSession([ok_response()])
        page = await AiohttpPageFetcher(session=session).fetch(URL)

        self.assertEqual(page.url, URL)
        self.assertEqual(page.final_url, URL + "/")
        self.assertEqual(page.status, 200)
        self.assertEqual(page.content_type, "text/html; charset=utf-8")
        self.assertEqual(page.body, b"<html><p>walnut</p></html>")
        self.assertEqual(page.text, "<html><p>walnut</p></html>")
        self.assertTrue(session.calls[0][1]["allow_redirects"])

    async def test_retries_server_errors_with_backoff(self):
        session = FakeSession([FakeStreamResponse(status=503), FakeStreamResponse(status=429), ok_response()])
        sleep = AsyncMock()
        with patch("src.ingestion.infrastructure.page_fetcher.asyncio.sleep", new=sleep):
            page = await AiohttpPageFetcher(FetchConfig(backoff_seconds=1.0), session=session).fetch(URL)

        self.assertEqual(page.status, 200)
        self.assertEqual(len(session.calls), 3)
        self.assertEqual([call.args[0] for call in sleep.await_args_list], [1.0, 2.0])

    async def test_exhausted_retries_raise_with_status(self):
        session = FakeSession([FakeStreamResponse(status=500) for _ in range(3)])
        with patch("src.ingestion.infrastructure.page_fetcher.asyncio.sleep", new=AsyncMock()):
            with self.assertRaises(FetchError) as ctx:
                await AiohttpPageFetcher(session=session).fetch(URL)

        self.assertEqual(ctx.exception.status, 500)
        self.assertEqual(str(ctx.exception), "HTTP 500")

    async def test_client_errors_are_not_retried(self):
        session = FakeSession([FakeStreamResponse(status=404)])
        with self.assertRaises(FetchError) as ctx:
            await AiohttpPageFetcher(session=session).fetch(URL)

        self.assertEqual(ctx.exception.status, 404)
        self.assertEqual(len(session.calls), 1)

    async def test_timeout_becomes_fetch_error(self):
        session = FakeSession([asyncio.TimeoutError()])
        with self.assertRaises(FetchError) as ctx:
            await AiohttpPageFetcher(FetchConfig(timeout_seconds=5), session=session).fetch(URL)
        self.assertIn("Timed out after 5s", str(ctx.exception))

    async def test_oversized_bodies_are_rejected(self):
        declared = FakeSession([ok_response(headers={"Content-Length": "999"})])
        with self.assertRaises(FetchError):
            await AiohttpPageFetcher(FetchConfig(max_bytes=100), session=declared).fetch(URL)

        streamed = FakeSession([ok_response(chunks=(b"x" * 60, b"y" * 60))])
        with self.assertRaises(FetchError) as ctx:
            await AiohttpPageFetcher(FetchConfig(max_bytes=100), session=streamed).fetch(URL)
        self.assertIn("exceeded 100 bytes", str(ctx.exception))

    async def test_close_leaves_injected_session_open(self):
        session = FakeSession([])
        fetcher = AiohttpPageFetcher(session=session)
        await fetcher.close()
        self.assertFalse(session.closed)


if __name__ == "__main__":
    unittest.main()
