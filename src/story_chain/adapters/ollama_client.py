"""Inference client for Ollama-compatible local model servers."""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final, Literal

import httpx

from story_chain.domain.errors import (
    GenerationCancelled,
    InferenceRejected,
    InferenceUnavailable,
    PersistenceFailure,
)
from story_chain.domain.models import InferenceOptions
from story_chain.domain.ports import ExchangeRecorder

DEFAULT_ENDPOINT: Final[str] = "http://127.0.0.1:11434"
DEFAULT_MODEL: Final[str] = "deepseek-r1:32b"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 300.0
DEFAULT_MAX_ATTEMPTS: Final[int] = 3
_RETRYABLE_CLIENT_STATUSES: Final[frozenset[int]] = frozenset({408, 429})
_CLOSE_TAG_RE = re.compile(r"</(think|thinking)>", re.IGNORECASE)

logger = logging.getLogger(__name__)


class _InvalidResponseBody(ValueError):
    """Raised when a server reply lacks the generated text."""


@dataclass(frozen=True)
class AttemptOutcome:
    """Classified result of one request to the inference server."""

    kind: Literal["success", "retryable", "terminal"]
    text: str | None = None
    error: str | None = None
    status_code: int | None = None
    cause: BaseException | None = None


class OllamaClient:
    """Sends prompts to ``/api/generate`` with bounded retries and auditing."""

    def __init__(
        self,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        audit_log: ExchangeRecorder | None = None,
        client: httpx.Client | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = 2.0,
        backoff_multiplier: float = 2.0,
        max_backoff_seconds: float = 30.0,
        stream: bool = False,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._base_url = endpoint.rstrip("/")
        self._model = model
        self._audit_log = audit_log
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._backoff_multiplier = backoff_multiplier
        self._max_backoff_seconds = max_backoff_seconds
        self._stream = stream
        self._cancel_event = cancel_event
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self._model

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> OllamaClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def check_health(self) -> None:
        """Fail fast when the server is not reachable."""
        url = f"{self._base_url}/api/tags"
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise InferenceUnavailable(
                f"Cannot reach inference server at {url}. Ensure it is running. Error: {exc}"
            ) from exc

    def generate(
        self,
        prompt: str,
        options: InferenceOptions | None = None,
        *,
        epoch_index: int | None = None,
    ) -> str:
        """Return raw generated text, retrying transient failures."""
        resolved = options or InferenceOptions(model=self._model)
        payload: dict[str, Any] = {
            "model": resolved.model,
            "prompt": prompt,
            "stream": self._stream,
        }
        sampling = resolved.sampling_payload()
        if sampling:
            payload["options"] = sampling

        last: AttemptOutcome | None = None
        for attempt in range(1, self._max_attempts + 1):
            self._raise_if_cancelled()
            logger.info(
                "inference.request model=%s attempt=%s/%s epoch=%s prompt_chars=%s",
                resolved.model,
                attempt,
                self._max_attempts,
                epoch_index,
                len(prompt),
            )
            started = time.monotonic()
            outcome = self._attempt(payload)
            elapsed_ms = int((time.monotonic() - started) * 1000)
            self._record(prompt, resolved.model, attempt, outcome, elapsed_ms, epoch_index)

            if outcome.kind == "success" and outcome.text is not None:
                logger.info(
                    "inference.success model=%s attempt=%s elapsed_ms=%s response_chars=%s",
                    resolved.model,
                    attempt,
                    elapsed_ms,
                    len(outcome.text),
                )
                return outcome.text
            if outcome.kind == "terminal":
                logger.error(
                    "inference.rejected model=%s status=%s error=%s",
                    resolved.model,
                    outcome.status_code,
                    outcome.error,
                )
                raise InferenceRejected(
                    f"Inference server rejected the request: {outcome.error}",
                    status_code=outcome.status_code,
                ) from outcome.cause

            last = outcome
            logger.warning(
                "inference.retryable model=%s attempt=%s/%s error=%s",
                resolved.model,
                attempt,
                self._max_attempts,
                outcome.error,
            )
            if attempt < self._max_attempts:
                self._pause(self._backoff_delay(attempt))

        detail = last.error if last is not None else "no attempts made"
        raise InferenceUnavailable(
            f"Inference failed after {self._max_attempts} attempts: {detail}"
        ) from (last.cause if last is not None else None)

    def _record(
        self,
        prompt: str,
        model: str,
        attempt: int,
        outcome: AttemptOutcome,
        elapsed_ms: int,
        epoch_index: int | None,
    ) -> None:
        if self._audit_log is None:
            return
        try:
            self._audit_log.record(
                prompt=prompt,
                model=model,
                attempt=attempt,
                response=outcome.text,
                error=outcome.error,
                status_code=outcome.status_code,
                elapsed_ms=elapsed_ms,
                epoch_index=epoch_index,
            )
        except OSError as exc:
            raise PersistenceFailure(f"Could not record inference exchange: {exc}") from exc

    def _attempt(self, payload: dict[str, Any]) -> AttemptOutcome:
        try:
            if self._stream:
                text = self._post_streaming(payload)
            else:
                text = self._post(payload)
        except httpx.TimeoutException as exc:
            return AttemptOutcome(kind="retryable", error=f"timeout: {exc}", cause=exc)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = f"HTTP {status}: {_error_detail(exc.response)}"
            if 400 <= status < 500 and status not in _RETRYABLE_CLIENT_STATUSES:
                return AttemptOutcome(
                    kind="terminal", error=message, status_code=status, cause=exc
                )
            return AttemptOutcome(kind="retryable", error=message, status_code=status, cause=exc)
        except httpx.RequestError as exc:
            return AttemptOutcome(kind="retryable", error=f"connection: {exc}", cause=exc)
        except ValueError as exc:
            return AttemptOutcome(kind="retryable", error=f"invalid body: {exc}", cause=exc)
        return AttemptOutcome(kind="success", text=text, status_code=200)

    def _post(self, payload: dict[str, Any]) -> str:
        response = self._client.post(f"{self._base_url}/api/generate", json=payload)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise _InvalidResponseBody("response was not a JSON object")
        text = data.get("response")
        if not isinstance(text, str):
            raise _InvalidResponseBody("response object missing 'response' text")
        return _with_thinking(text, data.get("thinking"))

    def _post_streaming(self, payload: dict[str, Any]) -> str:
        pieces: list[str] = []
        thinking: list[str] = []
        with self._client.stream(
            "POST", f"{self._base_url}/api/generate", json=payload
        ) as response:
            if response.is_error:
                response.read()
            response.raise_for_status()
            for line in response.iter_lines():
                if not line.strip():
                    continue
                chunk = json.loads(line)
                if not isinstance(chunk, dict):
                    raise _InvalidResponseBody("stream chunk was not a JSON object")
                if "error" in chunk:
                    raise _InvalidResponseBody(f"stream reported error: {chunk['error']}")
                piece = chunk.get("response")
                if isinstance(piece, str):
                    pieces.append(piece)
                thought = chunk.get("thinking")
                if isinstance(thought, str):
                    thinking.append(thought)
                if chunk.get("done"):
                    break
        return _with_thinking("".join(pieces), "".join(thinking))

    def _backoff_delay(self, attempt: int) -> float:
        delay = self._backoff_seconds * (self._backoff_multiplier ** (attempt - 1))
        return min(self._max_backoff_seconds, delay)

    def _pause(self, delay: float) -> None:
        if delay <= 0:
            return
        if self._cancel_event is not None:
            if self._cancel_event.wait(delay):
                raise GenerationCancelled("Cancelled while waiting to retry inference.")
            return
        self._sleep(delay)

    def _raise_if_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise GenerationCancelled("Cancelled before inference request.")


def _with_thinking(text: str, thinking: object) -> str:
    if not isinstance(thinking, str) or not thinking.strip():
        return text
    if _CLOSE_TAG_RE.search(text):
        return text
    return f"<think>\n{thinking.strip()}\n</think>\n{text}"


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return response.text.strip() or response.reason_phrase
