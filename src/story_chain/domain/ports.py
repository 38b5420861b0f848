"""Ports for inference and audit collaborators."""

from __future__ import annotations

from typing import Protocol

from story_chain.domain.models import InferenceOptions


class InferenceProvider(Protocol):
    """Turns one prompt into one raw model response."""

    def generate(
        self,
        prompt: str,
        options: InferenceOptions | None = None,
        *,
        epoch_index: int | None = None,
    ) -> str:
        ...


class ExchangeRecorder(Protocol):
    """Receives every raw inference exchange for post-hoc inspection."""

    def record(
        self,
        *,
        prompt: str,
        model: str,
        attempt: int,
        response: str | None,
        error: str | None = None,
        status_code: int | None = None,
        elapsed_ms: int = 0,
        epoch_index: int | None = None,
    ) -> None:
        ...
