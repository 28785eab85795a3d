import json
import sqlite3
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from src.ingestion.domain.errors import BatchNotFoundError
from src.ingestion.domain.models import Batch, BatchStatus, BookmarkInput, ContentRecord, IngestionItem
from src.ingestion.domain.rules import DEFAULT_TITLE, truncate_error, utc_now_iso

_IN_CHUNK = 500


class SQLiteIngestionRepository:
    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.init_schema()

    def init_schema(self) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS batches (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                total INTEGER NOT NULL DEFAULT 0,
                imported_count INTEGER NOT NULL DEFAULT 0,
                fetch_pending INTEGER NOT NULL DEFAULT 0,
                fetch_in_progress INTEGER NOT NULL DEFAULT 0,
                fetch_completed INTEGER NOT NULL DEFAULT 0,
                fetch_failed INTEGER NOT NULL DEFAULT 0,
                status TEXT NOT NULL DEFAULT 'importing',
                created_at TEXT NOT NULL,
                completed_at TEXT
            )
            """
        )
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                batch_id TEXT NOT NULL REFERENCES batches(id),
                url TEXT NOT NULL,
                title TEXT NOT NULL,
                folder_path TEXT,
                added_at TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                error TEXT,
                content_id INTEGER,
                fetched_at TEXT
            )
            """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_items_batch_status ON items (batch_id, status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_items_user_url ON items (user_id, url)")
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS content_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                item_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                content_text TEXT NOT NULL,
                preview TEXT,
                content_type TEXT NOT NULL,
                source_url TEXT NOT NULL,
                source_hostname TEXT,
                source_title TEXT,
                byline TEXT,
                site_name TEXT,
                is_readable INTEGER NOT NULL DEFAULT 0,
                quality_score INTEGER,
                metadata TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_content_user_url ON content_records (user_id, source_url)")
        self.conn.commit()

    # batches

    def create_batch(self, user_id: str, total: int) -> Batch:
        batch_id = uuid.uuid4().hex
        total = max(0, int(total))
        self.conn.execute(
            """
            INSERT INTO batches (id, user_id, total, fetch_pending, status, created_at)
            VALUES (?, ?, ?, ?, 'importing', ?)
            """,
            (batch_id, user_id, total, total, utc_now_iso()),
        )
        self.conn.commit()
        return self._require_batch(batch_id)

    def get_batch(self, user_id: str, batch_id: str) -> Batch | None:
        row = self.conn.execute(
            "SELECT * FROM batches WHERE id = ? AND user_id = ?",
            (batch_id, user_id),
        ).fetchone()
        return self._batch_from_row(row) if row is not None else None

    def set_batch_status(self, batch_id: str, status: BatchStatus) -> None:
        completed_at = utc_now_iso() if status == "completed" else None
        self.conn.execute(
            "UPDATE batches SET status = ?, completed_at = ? WHERE id = ?",
            (status, completed_at, batch_id),
        )
        self.conn.commit()

    def finalize_import(self, batch_id: str) -> Batch:
        cursor = self.conn.cursor()
        try:
            cursor.execute("BEGIN IMMEDIATE")
            imported = cursor.execute("SELECT COUNT(*) FROM items WHERE batch_id = ?", (batch_id,)).fetchone()[0]
            cursor.execute(
                """
                UPDATE batches
                SET total = ?, imported_count = ?, status = 'fetching_content', completed_at = NULL
                WHERE id = ?
                """,
                (imported, imported, batch_id),
            )
            if cursor.rowcount == 0:
                raise BatchNotFoundError(batch_id)
            self._write_counts(cursor, batch_id)
            self.conn.commit()
        except (sqlite3.Error, BatchNotFoundError):
            self.conn.rollback()
            raise
        return self._require_batch(batch_id)

    def refresh_batch_counts(self, batch_id: str) -> Batch:
        cursor = self.conn.cursor()
        try:
            cursor.execute("BEGIN IMMEDIATE")
            self._write_counts(cursor, batch_id)
            self.conn.commit()
        except (sqlite3.Error, BatchNotFoundError):
            self.conn.rollback()
            raise
        return self._require_batch(batch_id)

    def _write_counts(self, cursor: sqlite3.Cursor, batch_id: str) -> None:
        counts = {
            row[0]: int(row[1])
            for row in cursor.execute(
                "SELECT status, COUNT(*) FROM items WHERE batch_id = ? GROUP BY status",
                (batch_id,),
            ).fetchall()
        }
        row = cursor.execute("SELECT total FROM batches WHERE id = ?", (batch_id,)).fetchone()
        if row is None:
            raise BatchNotFoundError(batch_id)
        in_progress = counts.get("fetching", 0)
        completed = counts.get("completed", 0)
        failed = counts.get("failed", 0)
        # Declared-but-not-yet-imported items count as pending.
        total = max(int(row[0]), sum(counts.values()))
        pending = total - in_progress - completed - failed
        cursor.execute(
            """
            UPDATE batches
            SET total = ?, fetch_pending = ?, fetch_in_progress = ?, fetch_completed = ?, fetch_failed = ?
            WHERE id = ?
            """,
            (total, pending, in_progress, completed, failed, batch_id),
        )

    def _require_batch(self, batch_id: str) -> Batch:
        row = self.conn.execute("SELECT * FROM batches WHERE id = ?", (batch_id,)).fetchone()
        if row is None:
            raise BatchNotFoundError(batch_id)
        return self._batch_from_row(row)

    @staticmethod
    def _batch_from_row(row: sqlite3.Row) -> Batch:
        return Batch(
            id=row["id"],
            user_id=row["user_id"],
            total=row["total"],
            imported_count=row["imported_count"],
            fetch_pending=row["fetch_pending"],
            fetch_in_progress=row["fetch_in_progress"],
            fetch_completed=row["fetch_completed"],
            fetch_failed=row["fetch_failed"],
            status=row["status"],
            created_at=row["created_at"],
            completed_at=row["completed_at"],
        )

    # items

    def add_items(self, user_id: str, batch_id: str, items: Sequence[BookmarkInput]) -> int:
        now = utc_now_iso()
        rows = [
            (
                user_id,
                batch_id,
                item.url,
                (item.title or "").strip() or DEFAULT_TITLE,
                item.folder_path,
                item.added_at or now,
            )
            for item in items
            if item.url
        ]
        cursor = self.conn.cursor()
        try:
            cursor.execute("BEGIN IMMEDIATE")
            cursor.executemany(
                """
                INSERT INTO items (user_id, batch_id, url, title, folder_path, added_at, status)
                VALUES (?, ?, ?, ?, ?, ?, 'pending')
                """,
                rows,
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise
        return len(rows)

    def get_item(self, item_id: int) -> IngestionItem | None:
        row = self.conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
        return self._item_from_row(row) if row is not None else None

    def list_items(self, batch_id: str) -> list[IngestionItem]:
        rows = self.conn.execute("SELECT * FROM items WHERE batch_id = ? ORDER BY id", (batch_id,)).fetchall()
        return [self._item_from_row(row) for row in rows]

    def list_pending(self, batch_id: str, limit: int) -> list[IngestionItem]:
        rows = self.conn.execute(
            "SELECT * FROM items WHERE batch_id = ? AND status = 'pending' ORDER BY id LIMIT ?",
            (batch_id, limit),
        ).fetchall()
        return [self._item_from_row(row) for row in rows]

    def count_pending(self, batch_id: str) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM items WHERE batch_id = ? AND status = 'pending'",
            (batch_id,),
        ).fetchone()
        return int(row[0])

    def mark_fetching(self, item_ids: Sequence[int]) -> None:
        self.conn.executemany(
            "UPDATE items SET status = 'fetching', error = NULL WHERE id = ? AND status = 'pending'",
            [(item_id,) for item_id in item_ids],
        )
        self.conn.commit()

    def mark_completed(self, item_id: int, content_id: int) -> None:
        self.conn.execute(
            """
            UPDATE items SET status = 'completed', content_id = ?, error = NULL, fetched_at = ?
            WHERE id = ?
            """,
            (content_id, utc_now_iso(), item_id),
        )
        self.conn.commit()

    def mark_failed(self, item_id: int, error: str) -> None:
        self.conn.execute(
            "UPDATE items SET status = 'failed', error = ?, fetched_at = ? WHERE id = ?",
            (truncate_error(error), utc_now_iso(), item_id),
        )
        self.conn.commit()

    def reset_in_flight(self, batch_id: str) -> int:
        cursor = self.conn.execute(
            "UPDATE items SET status = 'pending' WHERE batch_id = ? AND status = 'fetching'",
            (batch_id,),
        )
        self.conn.commit()
        return cursor.rowcount

    def reset_failed(self, batch_id: str) -> int:
        cursor = self.conn.execute(
            """
            UPDATE items SET status = 'pending', error = NULL, fetched_at = NULL
            WHERE batch_id = ? AND status = 'failed'
            """,
            (batch_id,),
        )
        self.conn.commit()
        return cursor.rowcount

    @staticmethod
    def _item_from_row(row: sqlite3.Row) -> IngestionItem:
        return IngestionItem(
            id=row["id"],
            user_id=row["user_id"],
            batch_id=row["batch_id"],
            url=row["url"],
            title=row["title"],
            folder_path=row["folder_path"],
            added_at=row["added_at"],
            status=row["status"],
            error=row["error"],
            content_id=row["content_id"],
            fetched_at=row["fetched_at"],
        )

    # content records

    def save_content(self, record: ContentRecord) -> ContentRecord:
        cursor = self.conn.execute(
            """
            INSERT INTO content_records (
                user_id, item_id, title, content_text, preview, content_type, source_url,
                source_hostname, source_title, byline, site_name, is_readable, quality_score,
                metadata, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.user_id,
                record.item_id,
                record.title,
                record.content_text,
                record.preview,
                record.content_type,
                record.source_url,
                record.source_hostname,
                record.source_title,
                record.byline,
                record.site_name,
                int(record.is_readable),
                record.quality_score,
                json.dumps(record.metadata, ensure_ascii=False, default=str),
                record.created_at,
            ),
        )
        self.conn.commit()
        return replace(record, id=int(cursor.lastrowid))

    def get_content(self, content_id: int) -> ContentRecord | None:
        row = self.conn.execute("SELECT * FROM content_records WHERE id = ?", (content_id,)).fetchone()
        if row is None:
            return None
        return ContentRecord(
            id=row["id"],
            user_id=row["user_id"],
            item_id=row["item_id"],
            title=row["title"],
            content_text=row["content_text"],
            preview=row["preview"] or "",
            content_type=row["content_type"],
            source_url=row["source_url"],
            source_hostname=row["source_hostname"] or "",
            source_title=row["source_title"] or "",
            byline=row["byline"],
            site_name=row["site_name"],
            is_readable=bool(row["is_readable"]),
            quality_score=row["quality_score"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=row["created_at"],
        )

    def find_existing_urls(self, user_id: str, urls: Sequence[str]) -> set[str]:
        unique = list(dict.fromkeys(url for url in urls if url))
        found: set[str] = set()
        for start in range(0, len(unique), _IN_CHUNK):
            chunk = unique[start : start + _IN_CHUNK]
            placeholders = ", ".join("?" for _ in chunk)
            for query in (
                f"SELECT DISTINCT url FROM items WHERE user_id = ? AND url IN ({placeholders})",
                f"SELECT DISTINCT source_url FROM content_records WHERE user_id = ? AND source_url IN ({placeholders})",
            ):
                found.update(row[0] for row in self.conn.execute(query, (user_id, *chunk)).fetchall())
        return found

    def close(self) -> None:
        self.conn.close()
