import json
from pathlib import Path

from src.ingestion.domain.models import ContentRecord
from src.ingestion.domain.rules import make_filename


class JsonContentSink:
    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write_record(self, record: ContentRecord) -> Path:
        if record.id is None:
            raise ValueError("Only stored content records (with an id) can be exported")
        file_path = self.output_dir / make_filename(record.title, record.id)
        with file_path.open("w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, ensure_ascii=False, indent=2)
        return file_path
