"""Runtime settings read from the environment (and a ``.env`` file, if present)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_WORKBOOK = "portfolio.xlsx"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class Settings:
    """Settings shared by the CLI commands.

    Attributes:
        workbook_path: Workbook used when a command is given no file (FOLIO_WORKBOOK).
        cache_dir: Root directory of the price cache (FOLIO_CACHE_DIR).
        log_level: Logging level name (FOLIO_LOG_LEVEL).
    """
    workbook_path: Path
    cache_dir: Path
    log_level: str = DEFAULT_LOG_LEVEL


def load_settings() -> Settings:
    """Load settings from environment variables, after reading ``.env``."""
    load_dotenv()

    cache_dir = os.getenv("FOLIO_CACHE_DIR")
    return Settings(
        workbook_path=Path(os.getenv("FOLIO_WORKBOOK", DEFAULT_WORKBOOK)),
        cache_dir=Path(cache_dir) if cache_dir else Path.cwd() / ".cache",
        log_level=os.getenv("FOLIO_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )
