import unittest

from src.ingestion.domain.errors import BatchNotFoundError
from src.ingestion.domain.models import BookmarkInput, ContentRecord
from src.ingestion.infrastructure.registry_sqlite import SQLiteIngestionRepository
from tests.utils.tempdir import managed_temp_dir

USER = "user-1"


def bookmarks(count: int, prefix: str = "https://example.com/page") -> list[BookmarkInput]:
    return [BookmarkInput(url=f"{prefix}-{index}", title=f"Page {index}") for index in range(count)]


def make_record(item_id: int, url: str, user_id: str = USER) -> ContentRecord:
    return ContentRecord(
        user_id=user_id,
        item_id=item_id,
        title="Walnut",
        content_text="# Walnut",
        preview="Walnut",
        content_type="article",
        source_url=url,
        source_hostname="example.com",
        source_title="Walnut",
        created_at="2024-01-01T00:00:00+00:00",
        is_readable=True,
        quality_score=88,
        metadata={"quality": {"overall": 88}},
    )


class IngestionRegistryTests(unittest.TestCase):
    def test_batch_lifecycle_keeps_counts_consistent(self):
        with managed_temp_dir("registry_lifecycle") as tmp:
            repo = SQLiteIngestionRepository(tmp / "ingest.db")
            try:
                batch = repo.create_batch(USER, 5)
                self.assertEqual((batch.total, batch.fetch_pending, batch.status), (5, 5, "importing"))
                self.assertTrue(batch.counts_consistent)

                added = repo.add_items(USER, batch.id, bookmarks(3) + [BookmarkInput(url="")])
                self.assertEqual(added, 3)
                self.assertTrue(repo.refresh_batch_counts(batch.id).counts_consistent)

                batch = repo.finalize_import(batch.id)
                self.assertEqual((batch.total, batch.imported_count, batch.fetch_pending), (3, 3, 3))
                self.assertEqual(batch.status, "fetching_content")

                items = repo.list_pending(batch.id, limit=2)
                self.assertEqual([item.url for item in items], ["https://example.com/page-0", "https://example.com/page-1"])
                repo.mark_fetching([item.id for item in items])
                repo.mark_completed(items[0].id, content_id=42)
                batch = repo.refresh_batch_counts(batch.id)
                self.assertEqual(
                    (batch.fetch_pending, batch.fetch_in_progress, batch.fetch_completed, batch.fetch_failed),
                    (1, 1, 1, 0),
                )
                self.assertTrue(batch.counts_consistent)
                self.assertEqual(repo.get_item(items[0].id).content_id, 42)
            finally:
                repo.close()

    def test_untitled_bookmarks_get_default_title(self):
        with managed_temp_dir("registry_titles") as tmp:
            repo = SQLiteIngestionRepository(tmp / "ingest.db")
            try:
                batch = repo.create_batch(USER, 1)
                repo.add_items(USER, batch.id, [BookmarkInput(url="https://example.com/x", title="  ")])
                item = repo.list_items(batch.id)[0]
                self.assertEqual(item.title, "Untitled")
                self.assertTrue(item.added_at)
            finally:
                repo.close()

    def test_reset_failed_moves_exactly_the_failed_items(self):
        with managed_temp_dir("registry_reset_failed") as tmp:
            repo = SQLiteIngestionRepository(tmp / "ingest.db")
            try:
                batch = repo.create_batch(USER, 4)
                repo.add_items(USER, batch.id, bookmarks(4))
                repo.finalize_import(batch.id)
                first, second, third, _ = repo.list_items(batch.id)
                repo.mark_failed(first.id, "HTTP 500")
                repo.mark_failed(second.id, "x" * 900)
                repo.mark_completed(third.id, content_id=1)

                self.assertEqual(len(repo.get_item(second.id).error), 500)
                self.assertEqual(repo.reset_failed(batch.id), 2)

                statuses = {item.id: (item.status, item.error) for item in repo.list_items(batch.id)}
                self.assertEqual(statuses[first.id], ("pending", None))
                self.assertEqual(statuses[second.id], ("pending", None))
                self.assertEqual(statuses[third.id][0], "completed")
                self.assertEqual(repo.count_pending(batch.id), 3)
                self.assertEqual(repo.reset_failed(batch.id), 0)
            finally:
                repo.close()

    def test_reset_in_flight_returns_fetching_items_to_pending(self):
        with managed_temp_dir("registry_reset_in_flight") as tmp:
            repo = SQLiteIngestionRepository(tmp / "ingest.db")
            try:
                batch = repo.create_batch(USER, 2)
                repo.add_items(USER, batch.id, bookmarks(2))
                repo.mark_fetching([item.id for item in repo.list_pending(batch.id, 10)])
                self.assertEqual(repo.count_pending(batch.id), 0)

                self.assertEqual(repo.reset_in_flight(batch.id), 2)
                self.assertEqual(repo.count_pending(batch.id), 2)
            finally:
                repo.close()

    def test_content_records_round_trip_and_duplicate_lookup(self):
        with managed_temp_dir("registry_content") as tmp:
            repo = SQLiteIngestionRepository(tmp / "ingest.db")
            try:
                batch = repo.create_batch(USER, 1)
                repo.add_items(USER, batch.id, [BookmarkInput(url="https://example.com/queued")])
                stored = repo.save_content(make_record(1, "https://example.com/stored"))
                repo.save_content(make_record(2, "https://example.com/other-user", user_id="user-2"))

                self.assertIsNotNone(stored.id)
                loaded = repo.get_content(stored.id)
                self.assertEqual(loaded.metadata, {"quality": {"overall": 88}})
                self.assertTrue(loaded.is_readable)
                self.assertEqual(loaded.quality_score, 88)

                found = repo.find_existing_urls(
                    USER,
                    [
                        "https://example.com/queued",
                        "https://example.com/stored",
                        "https://example.com/other-user",
                        "https://example.com/new",
                        "",
                    ],
                )
                self.assertEqual(found, {"https://example.com/queued", "https://example.com/stored"})
            finally:
                repo.close()

    def test_unknown_batches(self):
        with managed_temp_dir("registry_unknown") as tmp:
            repo = SQLiteIngestionRepository(tmp / "ingest.db")
            try:
                batch = repo.create_batch(USER, 0)
                self.assertIsNone(repo.get_batch("someone-else", batch.id))
                self.assertEqual(repo.get_batch(USER, batch.id).id, batch.id)
                with self.assertRaises(BatchNotFoundError):
                    repo.finalize_import("missing")
                with self.assertRaises(BatchNotFoundError):
                    repo.refresh_batch_counts("missing")
            finally:
                repo.close()


if __name__ == "__main__":
    unittest.main()
