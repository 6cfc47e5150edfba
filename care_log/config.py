"""Runtime configuration loaded from the environment (and an optional .env file)."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

load_dotenv(override=False)

DB_PATH = Path(os.getenv("CARE_LOG_DB_PATH", Path(__file__).parent / "care_log.db"))

# Calendar days are bounded in this zone when matching POC validity windows
TIMEZONE = os.getenv("CARE_LOG_TIMEZONE", "America/New_York")

DEFAULT_CREATED_BY = os.getenv("CARE_LOG_DEFAULT_CREATED_BY", "office")

DEBUG = os.getenv("CARE_LOG_DEBUG", "False").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("CARE_LOG_LOG_LEVEL", "INFO").upper()

HOST = os.getenv("CARE_LOG_HOST", "127.0.0.1")
PORT = int(os.getenv("CARE_LOG_PORT", "8000"))


def configure_logging(level: str | None = None) -> None:
    """Install a rich console handler on the root logger (entry points only)."""
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
