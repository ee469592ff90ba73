"""Logging setup for the command line tool."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging"]

LOG_FILE_NAME = "linemark.log"
_DEFAULT_LOG_DIR = Path.home() / ".linemark" / "logs"


def setup_logging(level: int = logging.INFO, *, log_dir: Path | str | None = None) -> Path:
    """Send linemark records to a rotating log file and stderr.

    ``LINEMARK_LOG_DIR`` overrides the default directory when ``log_dir`` is
    not given. Returns the log file path.
    """

    directory = Path(log_dir or os.environ.get("LINEMARK_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILE_NAME

    formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    console_handler = logging.StreamHandler()
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[file_handler, console_handler], force=True)
    logging.getLogger("asyncio").setLevel(max(level, logging.WARNING))
    return log_path
