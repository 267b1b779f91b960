# file: backend/config.py
"""
Backend configuration.

Values come from the environment; a ``backend/.env`` file is loaded
first when present. Read once at import time.
"""
from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)

BOARD_DB_PATH = os.environ.get("BOARD_DB_PATH", "board.db")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
BOARD_ID = os.environ.get("BOARD_ID", "default")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Attach one stdout handler to the root logger."""
    root = logging.getLogger()
    root.setLevel(level)

    # Prevent duplicate handlers if called more than once
    if any(getattr(h, "_board_handler", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._board_handler = True
    root.addHandler(handler)
