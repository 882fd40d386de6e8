"""Common CLI helper utilities."""

from __future__ import annotations

import logging
import os


def setup_logging(level: str | None = None) -> None:
    """Configure standard logging format for CLI tools.

    Args:
        level: Log level name; defaults to the LOG_LEVEL env var, then INFO.
    """
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(threadName)s - %(message)s",
    )
