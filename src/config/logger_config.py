import os
import sys
from pathlib import Path

from loguru import logger

log_dir = Path(os.getenv("LOG_DIR", "logs"))
log_file = log_dir / "ingest_{time}.log"
log_level = os.getenv("LOG_LEVEL", "INFO").upper()

logger.remove()
logger.add(sys.stderr, level=log_level)
logger.add(
    log_file,
    rotation="256 MB",
    retention="10 days",
    compression="zip",
    encoding="utf-8",
    level="DEBUG",
    enqueue=True,  # cleaning runs in worker threads
)
