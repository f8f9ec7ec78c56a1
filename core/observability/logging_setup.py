"""
Bookstore logging setup

- One root handler writing to stderr
- Level from LOG_LEVEL (default INFO)
- Module loggers (logging.getLogger(__name__)) inherit it
"""
from __future__ import annotations
from typing import Optional
import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the root logger once and return it."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(numeric)
    return root
