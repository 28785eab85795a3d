import argparse
import json

from src.ingestion.ingest import load_bookmarks, run_ingest


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="python -m src.ingestion", description="Import bookmarks and fetch their content.")
    parser.add_argument("bookmarks", help="JSON file with the bookmarks to import")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--db", dest="db_path", default=None, help="SQLite database path (default: INGEST_DB_PATH)")
    parser.add_argument("--export-dir", default=None, help="write each stored content record as JSON here")
    parser.add_argument("--keep-duplicates", action="store_true", help="re-import URLs that were already imported")
    parser.add_argument("--no-progress", action="store_true")
    return parser.parse_args()


# python -m src.ingestion bookmarks.json --user-id me
if __name__ == "__main__":
    args = _parse_args()
    result = run_ingest(
        load_bookmarks(args.bookmarks),
        user_id=args.user_id,
        db_path=args.db_path,
        export_dir=args.export_dir,
        skip_duplicates=not args.keep_duplicates,
        show_progress=not args.no_progress,
    )
    print(json.dumps(result.progress.to_dict(), indent=2))
