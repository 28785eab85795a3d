import json
import unittest
from unittest.mock import patch

from src.config.settings import Settings
from src.ingestion.domain.models import BookmarkInput
from src.ingestion.ingest import load_bookmarks, run_ingest_async
from tests.fixtures.ingestion import ArticleTagExtractor, FakeFetcher, html_page
from tests.fixtures.pages import ARTICLE_URL, CART_POPUP_PAGE, PRODUCT_URL
from tests.utils.tempdir import managed_temp_dir


class ClosingFakeFetcher(FakeFetcher):
    closed = False

    async def close(self):
        self.closed = True


class LoadBookmarksTests(unittest.TestCase):
    def test_accepts_urls_objects_and_wrapped_lists(self):
        entries = [
            "https://example.com/plain",
            {"url": "https://example.com/obj", "title": "Obj", "folderPath": ["Bar", "Reading"], "dateAdded": "2024-02-01"},
            {"url": "  "},
            {"title": "no url"},
            42,
        ]
        with managed_temp_dir("load_bookmarks") as tmp:
            listed = tmp / "list.json"
            wrapped = tmp / "wrapped.json"
            listed.write_text(json.dumps(entries), encoding="utf-8")
            wrapped.write_text(json.dumps({"bookmarks": entries}), encoding="utf-8")

            for path in (listed, wrapped):
                self.assertEqual(
                    load_bookmarks(path),
                    [
                        BookmarkInput(url="https://example.com/plain"),
                        BookmarkInput(
                            url="https://example.com/obj",
                            title="Obj",
                            folder_path="Bar/Reading",
                            added_at="2024-02-01",
                        ),
                    ],
                )

    def test_rejects_unknown_layout(self):
        with managed_temp_dir("load_bookmarks_bad") as tmp:
            path = tmp / "bad.json"
            path.write_text('"just a string"', encoding="utf-8")
            with self.assertRaises(ValueError):
                load_bookmarks(path)


class RunIngestTests(unittest.IsolatedAsyncioTestCase):
    async def test_end_to_end_run_and_duplicate_skipping(self):
        fetcher = ClosingFakeFetcher(
            {
                ARTICLE_URL: html_page(ARTICLE_URL, CART_POPUP_PAGE),
                PRODUCT_URL: html_page(PRODUCT_URL, CART_POPUP_PAGE),
            }
        )
        bookmarks = [BookmarkInput(url=ARTICLE_URL, title="Desk organizer"), BookmarkInput(url=PRODUCT_URL)]

        with managed_temp_dir("run_ingest") as tmp:
            settings = Settings(db_path=str(tmp / "ingest.db"), slice_delay_seconds=0)
            with patch("src.ingestion.ingest.AiohttpPageFetcher", return_value=fetcher), patch(
                "src.ingestion.ingest.ReadabilityExtractor", return_value=ArticleTagExtractor()
            ):
                first = await run_ingest_async(
                    bookmarks,
                    user_id="user-1",
                    settings=settings,
                    export_dir=tmp / "export",
                    show_progress=False,
                )
                second = await run_ingest_async(bookmarks, user_id="user-1", settings=settings, show_progress=False)

            self.assertEqual((first.progress.completed, first.progress.failed), (2, 0))
            self.assertTrue(first.progress.is_complete)
            self.assertEqual(first.skipped_duplicates, ())
            self.assertEqual(len(list((tmp / "export").glob("*.json"))), 2)
            self.assertEqual(first.metrics["summary"]["total_operations"], 1)
            self.assertEqual(first.metrics["summary"]["scorings"], 1)
            self.assertTrue(fetcher.closed)

            self.assertEqual(second.skipped_duplicates, (ARTICLE_URL, PRODUCT_URL))
            self.assertEqual(second.progress.total, 0)
            self.assertTrue(second.progress.is_complete)


if __name__ == "__main__":
    unittest.main()
