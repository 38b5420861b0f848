"""Run settings with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from story_chain.adapters.ollama_client import DEFAULT_ENDPOINT, DEFAULT_MODEL
from story_chain.core.prompt_builder import DEFAULT_MAX_CONTEXT_CHARS, DEFAULT_WINDOW_SIZE
from story_chain.domain.models import InferenceOptions


@dataclass(frozen=True)
class GenerationSettings:
    """Every knob a generation run reads."""

    epochs: int = 5
    output_path: Path = field(default_factory=lambda: Path("story.json"))
    audit_log_path: Path = field(default_factory=lambda: Path("ai_responses.log"))
    endpoint: str = DEFAULT_ENDPOINT
    model: str = DEFAULT_MODEL
    timeout_seconds: float = 300.0
    max_attempts: int = 3
    backoff_seconds: float = 2.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0
    parse_attempts: int = 3
    window_size: int = DEFAULT_WINDOW_SIZE
    max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS
    temperature: float | None = None
    top_p: float | None = None
    num_predict: int | None = None
    seed: int | None = None
    stream: bool = False
    partial_save: bool = True

    def __post_init__(self) -> None:
        if self.epochs < 1:
            raise ValueError("epochs must be at least 1.")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.parse_attempts < 1:
            raise ValueError("parse_attempts must be at least 1.")

    def inference_options(self) -> InferenceOptions:
        return InferenceOptions(
            model=self.model,
            temperature=self.temperature,
            top_p=self.top_p,
            num_predict=self.num_predict,
            seed=self.seed,
        )

    @classmethod
    def from_env(cls) -> GenerationSettings:
        """Build settings from ``STORY_CHAIN_*`` variables, ignoring invalid values."""
        defaults = cls()
        return cls(
            epochs=int_env("STORY_CHAIN_EPOCHS", default=defaults.epochs, minimum=1, maximum=1000),
            output_path=Path(str_env("STORY_CHAIN_OUTPUT_PATH", str(defaults.output_path))),
            audit_log_path=Path(
                str_env("STORY_CHAIN_AUDIT_LOG_PATH", str(defaults.audit_log_path))
            ),
            endpoint=str_env("STORY_CHAIN_ENDPOINT", defaults.endpoint),
            model=str_env("STORY_CHAIN_MODEL", defaults.model),
            timeout_seconds=float_env(
                "STORY_CHAIN_TIMEOUT_SECONDS",
                default=defaults.timeout_seconds,
                minimum=1.0,
                maximum=3600.0,
            ),
            max_attempts=int_env(
                "STORY_CHAIN_MAX_ATTEMPTS", default=defaults.max_attempts, minimum=1, maximum=20
            ),
            backoff_seconds=float_env(
                "STORY_CHAIN_BACKOFF_SECONDS",
                default=defaults.backoff_seconds,
                minimum=0.0,
                maximum=600.0,
            ),
            parse_attempts=int_env(
                "STORY_CHAIN_PARSE_ATTEMPTS", default=defaults.parse_attempts, minimum=1, maximum=20
            ),
            window_size=int_env(
                "STORY_CHAIN_WINDOW_SIZE", default=defaults.window_size, minimum=1, maximum=50
            ),
            max_context_chars=int_env(
                "STORY_CHAIN_MAX_CONTEXT_CHARS",
                default=defaults.max_context_chars,
                minimum=500,
                maximum=500_000,
            ),
            stream=bool_env("STORY_CHAIN_STREAM", default=defaults.stream),
            partial_save=bool_env("STORY_CHAIN_PARTIAL_SAVE", default=defaults.partial_save),
        )


def str_env(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def int_env(name: str, *, default: int, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def float_env(name: str, *, default: float, minimum: float, maximum: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


def bool_env(name: str, *, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default
