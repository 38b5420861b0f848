"""Runtime logging configuration with bounded retention."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from story_chain.config import int_env, str_env

_CONFIGURED = False
_DEFAULT_LOG_PATH = "work/logs/story_chain.log"


def _level_env(name: str, default: int) -> int:
    level_name = os.environ.get(name, "").strip().upper()
    level = getattr(logging, level_name, None) if level_name else None
    return level if isinstance(level, int) else default


def configure_runtime_logging(*, verbose: bool = False) -> None:
    """Configure console + rotating file logs once per process.

    ``verbose`` forces DEBUG on the story_chain loggers regardless of
    ``STORY_CHAIN_LOG_LEVEL``.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    level = _level_env("STORY_CHAIN_LOG_LEVEL", logging.INFO)
    log_path = Path(str_env("STORY_CHAIN_LOG_PATH", _DEFAULT_LOG_PATH))
    max_bytes = int_env(
        "STORY_CHAIN_LOG_MAX_BYTES",
        default=5 * 1024 * 1024,
        minimum=64 * 1024,
        maximum=100 * 1024 * 1024,
    )
    backup_count = int_env("STORY_CHAIN_LOG_BACKUP_COUNT", default=10, minimum=1, maximum=120)

    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        filename=log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(stream_handler)
    root.addHandler(file_handler)
    if verbose:
        logging.getLogger("story_chain").setLevel(logging.DEBUG)

    # httpx logs every request line at INFO.
    http_level = _level_env("STORY_CHAIN_HTTP_LOG_LEVEL", logging.WARNING)
    logging.getLogger("httpx").setLevel(http_level)
    logging.getLogger("httpcore").setLevel(http_level)

    _CONFIGURED = True
