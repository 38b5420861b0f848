"""JSON persistence for story chains."""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from story_chain.core.story_chain import StoryChain
from story_chain.domain.errors import ChainIntegrityError, PersistenceFailure

logger = logging.getLogger(__name__)


def partial_output_path(path: Path) -> Path:
    """Sibling path used for best-effort saves of an unfinished run."""
    return path.with_name(f"{path.stem}.partial{path.suffix or '.json'}")


def write_json_atomic(path: Path, payload: Any, *, label: str) -> None:
    """Write indented UTF-8 JSON through a sibling temp file and rename."""
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2) + "\n",
            encoding="utf-8",
        )
        os.replace(temp_path, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise PersistenceFailure(f"Could not write {label} to {path}: {exc}") from exc


def save_chain_json(path: Path, chain: StoryChain) -> Path:
    """Write the chain atomically as readable JSON and return the path."""
    write_json_atomic(path, chain.to_payload(), label="story chain")
    logger.info("chain.saved path=%s nodes=%s", path, len(chain))
    return path


def load_chain_json(path: Path) -> StoryChain:
    """Load and validate a persisted chain."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PersistenceFailure(f"Could not read story chain from {path}: {exc}") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ChainIntegrityError(f"Story chain file {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ChainIntegrityError(f"Story chain file {path} must contain a JSON object.")
    return StoryChain.from_payload(payload)
