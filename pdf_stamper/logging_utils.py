"""Process-wide logging: a rotating log file, plus the console in debug mode."""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional

from .config import LOG_DIR_ENV

LOG_FILE_NAME = "pdf_stamper.log"
HANDLER_NAME = "pdf_stamper"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _candidate_dirs() -> Iterator[Path]:
    env_dir = os.environ.get(LOG_DIR_ENV)
    if env_dir:
        # An explicit directory is used as is, even if it cannot be created
        yield Path(env_dir)
        return
    yield Path.cwd() / "logs"
    for var in ("LOCALAPPDATA", "APPDATA"):
        if os.environ.get(var):
            yield Path(os.environ[var]) / "pdf_stamper" / "logs"
    yield Path.home() / ".pdf_stamper" / "logs"


def default_log_path() -> Path:
    """First writable log location: $PDF_STAMPER_LOG_DIR, ./logs, then the user's app data."""
    last_error: Optional[OSError] = None
    for directory in _candidate_dirs():
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            last_error = e
            continue
        return directory / LOG_FILE_NAME
    raise last_error


def _our_handlers(root: logging.Logger):
    return [h for h in root.handlers if h.get_name() == HANDLER_NAME]


def configure_logging(*, debug: bool = False, log_path: Optional[str] = None) -> None:
    """Attach the file (and, with ``debug``, console) handlers to the root logger.

    Calling it again only adjusts the level; handlers are added once per process.
    """
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)

    existing = _our_handlers(root)
    if existing:
        for handler in existing:
            handler.setLevel(level)
        return

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)
    handlers = [
        RotatingFileHandler(log_path or default_log_path(), maxBytes=1_000_000, backupCount=3, encoding="utf-8"),
    ]
    if debug:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.set_name(HANDLER_NAME)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)
