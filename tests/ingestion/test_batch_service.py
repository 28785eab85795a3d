import unittest

from src.ingestion.application.use_cases.batch_lifecycle import BatchService
from src.ingestion.application.workflows.batch_orchestrator import BatchOrchestrator, OrchestratorConfig
from src.ingestion.domain.errors import BatchNotFoundError
from src.ingestion.domain.models import BookmarkInput
from src.ingestion.infrastructure.registry_sqlite import SQLiteIngestionRepository
from tests.fixtures.ingestion import ScriptedPipeline
from tests.utils.tempdir import managed_temp_dir

USER = "user-1"
FAST = OrchestratorConfig(slice_size=2, slice_delay_seconds=0, item_timeout_seconds=2, show_progress=False)


def bookmarks(*urls):
    return [BookmarkInput(url=url, title=url.rsplit("/", 1)[-1]) for url in urls]


class BatchServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp_context = managed_temp_dir("batch_service")
        tmp = self._tmp_context.__enter__()
        self.repo = SQLiteIngestionRepository(tmp / "ingest.db")
        self.pipeline = ScriptedPipeline()
        self.orchestrator = BatchOrchestrator(self.repo, self.pipeline, config=FAST)
        self.service = BatchService(self.repo, self.orchestrator)

    async def asyncTearDown(self):
        self.repo.close()
        self._tmp_context.__exit__(None, None, None)

    async def test_import_then_fetch_reaches_completion(self):
        batch = self.service.create_batch(USER, 3)
        inserted = self.service.submit_items(
            USER,
            batch.id,
            bookmarks("https://example.com/a", "https://example.com/b", "https://example.com/fail"),
        )
        self.assertEqual(inserted, 3)

        progress = self.service.get_progress(USER, batch.id)
        self.assertEqual((progress.total, progress.pending, progress.percent_complete), (3, 3, 0))
        self.assertFalse(progress.is_complete)

        completed = self.service.complete_batch(USER, batch.id)
        self.assertEqual(completed.status, "fetching_content")
        await self.orchestrator.wait()

        progress = self.service.get_progress(USER, batch.id)
        self.assertEqual((progress.completed, progress.failed, progress.pending), (2, 1, 0))
        self.assertEqual(progress.percent_complete, 100)
        self.assertEqual(progress.status, "completed")
        self.assertTrue(progress.is_complete)
        self.assertEqual(progress.to_dict()["imported"], 3)

    async def test_progress_counts_declared_but_unsubmitted_items(self):
        batch = self.service.create_batch(USER, 4)
        self.service.submit_items(USER, batch.id, bookmarks("https://example.com/a", "https://example.com/b"))

        progress = self.service.get_progress(USER, batch.id)
        self.assertEqual((progress.total, progress.imported, progress.pending), (4, 0, 4))
        self.assertEqual(progress.status, "importing")

    async def test_retry_failed_reprocesses_only_failed_items(self):
        batch = self.service.create_batch(USER, 3)
        self.service.submit_items(
            USER,
            batch.id,
            bookmarks("https://example.com/a", "https://example.com/fail_once", "https://example.com/b"),
        )
        self.service.complete_batch(USER, batch.id)
        await self.orchestrator.wait()
        progress = self.service.get_progress(USER, batch.id)
        self.assertEqual((progress.completed, progress.failed, progress.percent_complete), (2, 1, 100))

        before = progress
        reset = self.service.retry_failed(USER, batch.id)
        self.assertEqual(reset, 1)
        # The re-run task is scheduled but has not started until the next await.
        progress = self.service.get_progress(USER, batch.id)
        self.assertEqual(progress.failed, before.failed - reset)
        self.assertEqual(progress.pending, before.pending + reset)
        self.assertEqual(progress.completed, before.completed)
        self.assertEqual(progress.status, "fetching_content")
        self.assertFalse(progress.is_complete)
        await self.orchestrator.wait()

        progress = self.service.get_progress(USER, batch.id)
        self.assertEqual((progress.completed, progress.failed), (3, 0))
        self.assertTrue(progress.is_complete)
        self.assertEqual(self.pipeline.seen.count("https://example.com/fail_once"), 2)
        self.assertEqual(self.pipeline.seen.count("https://example.com/a"), 1)

        self.assertEqual(self.service.retry_failed(USER, batch.id), 0)

    async def test_partial_progress_is_rounded(self):
        batch = self.service.create_batch(USER, 3)
        self.service.submit_items(USER, batch.id, bookmarks("https://example.com/a", "https://example.com/b", "https://example.com/c"))
        self.repo.finalize_import(batch.id)
        first = self.repo.list_pending(batch.id, 1)[0]
        self.repo.mark_failed(first.id, "HTTP 500")

        progress = self.service.get_progress(USER, batch.id)
        self.assertEqual(progress.percent_complete, 33)
        self.assertFalse(progress.is_complete)

    async def test_batches_are_scoped_to_their_owner(self):
        batch = self.service.create_batch(USER, 1)
        with self.assertRaises(BatchNotFoundError):
            self.service.submit_items("someone-else", batch.id, bookmarks("https://example.com/a"))
        with self.assertRaises(BatchNotFoundError):
            self.service.get_progress(USER, "missing")
        with self.assertRaises(BatchNotFoundError):
            self.service.complete_batch("someone-else", batch.id)
        with self.assertRaises(ValueError):
            self.service.create_batch(USER, -1)

    async def test_find_duplicate_urls(self):
        batch = self.service.create_batch(USER, 2)
        self.service.submit_items(USER, batch.id, bookmarks("https://example.com/a", "https://example.com/b"))

        duplicates = self.service.find_duplicate_urls(
            USER,
            ["https://example.com/b", "https://example.com/new", "https://example.com/a", "https://example.com/b"],
        )
        self.assertEqual(duplicates, ["https://example.com/b", "https://example.com/a"])
        self.assertEqual(self.service.find_duplicate_urls("someone-else", ["https://example.com/a"]), [])


if __name__ == "__main__":
    unittest.main()
