from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from story_chain.adapters import observability


def test_configure_runtime_logging_uses_env_limits(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    log_path = tmp_path / "logs" / "run.log"
    monkeypatch.setattr(observability, "_CONFIGURED", False)
    monkeypatch.setenv("STORY_CHAIN_LOG_PATH", str(log_path))
    monkeypatch.setenv("STORY_CHAIN_LOG_MAX_BYTES", "1")
    monkeypatch.setenv("STORY_CHAIN_LOG_BACKUP_COUNT", "bogus")
    monkeypatch.setenv("STORY_CHAIN_LOG_LEVEL", "warning")

    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    story_logger = logging.getLogger("story_chain")
    saved_story_level = story_logger.level
    try:
        observability.configure_runtime_logging(verbose=True)
        file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]

        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 64 * 1024
        assert file_handlers[0].backupCount == 10
        assert Path(file_handlers[0].baseFilename) == log_path
        assert root.level == logging.WARNING
        assert story_logger.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        story_logger.setLevel(saved_story_level)
