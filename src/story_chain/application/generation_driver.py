"""Epoch-by-epoch generation loop and its state machine."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal, NoReturn

from story_chain.adapters.audit_log import AuditLog
from story_chain.adapters.chain_store import partial_output_path, save_chain_json
from story_chain.adapters.ollama_client import OllamaClient
from story_chain.config import GenerationSettings
from story_chain.core.prompt_builder import PromptBuilder
from story_chain.core.response_parser import ParseResult, parse_response
from story_chain.core.story_chain import StoryChain
from story_chain.domain.errors import (
    GenerationCancelled,
    GenerationFailed,
    MalformedResponse,
    PersistenceFailure,
    StoryChainError,
)
from story_chain.domain.models import InferenceOptions, Premise
from story_chain.domain.ports import InferenceProvider

logger = logging.getLogger(__name__)


class GenerationState(str, Enum):
    IDLE = "idle"
    PROMPTING = "prompting"
    INVOKING = "invoking"
    PARSING = "parsing"
    APPENDING = "appending"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[GenerationState, set[GenerationState]] = {
    GenerationState.IDLE: {GenerationState.PROMPTING, GenerationState.FAILED},
    GenerationState.PROMPTING: {GenerationState.INVOKING, GenerationState.FAILED},
    GenerationState.INVOKING: {GenerationState.PARSING, GenerationState.FAILED},
    GenerationState.PARSING: {
        GenerationState.APPENDING,
        GenerationState.INVOKING,
        GenerationState.FAILED,
    },
    GenerationState.APPENDING: {
        GenerationState.PROMPTING,
        GenerationState.PERSISTING,
        GenerationState.FAILED,
    },
    GenerationState.PERSISTING: {GenerationState.COMPLETED, GenerationState.FAILED},
    GenerationState.COMPLETED: set(),
    GenerationState.FAILED: set(),
}


@dataclass(frozen=True)
class StateTransition:
    """One recorded state change of a generation run."""

    source: GenerationState
    target: GenerationState
    epoch_index: int | None


@dataclass(frozen=True)
class ParseAttempt:
    """Typed outcome of parsing one raw response."""

    kind: Literal["success", "retryable"]
    result: ParseResult | None = None
    error: MalformedResponse | None = None


@dataclass(frozen=True)
class GenerationResult:
    """Outputs of a completed run."""

    chain: StoryChain
    output_path: Path
    epochs_completed: int
    inference_calls: int
    elapsed_seconds: float


class GenerationDriver:
    """Grows one linear chain from a premise and persists it on completion."""

    def __init__(
        self,
        premise: Premise,
        client: InferenceProvider,
        *,
        epochs: int = 5,
        output_path: Path = Path("story.json"),
        prompt_builder: PromptBuilder | None = None,
        options: InferenceOptions | None = None,
        parse_attempts: int = 3,
        partial_save: bool = True,
        cancel_event: threading.Event | None = None,
        save: Callable[[Path, StoryChain], Path] = save_chain_json,
    ) -> None:
        if epochs < 1:
            raise ValueError("epochs must be at least 1.")
        if parse_attempts < 1:
            raise ValueError("parse_attempts must be at least 1.")
        self._premise = premise
        self._client = client
        self._epochs = epochs
        self._output_path = output_path
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._options = options
        self._parse_attempts = parse_attempts
        self._partial_save = partial_save
        self._cancel_event = cancel_event
        self._save = save
        self._chain = StoryChain()
        self._state = GenerationState.IDLE
        self._transitions: list[StateTransition] = []
        self._inference_calls = 0

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def transitions(self) -> list[StateTransition]:
        return list(self._transitions)

    @property
    def chain(self) -> StoryChain:
        return self._chain

    def run(self) -> GenerationResult:
        if self._state is not GenerationState.IDLE:
            raise RuntimeError("A generation driver can only run once.")
        started = time.perf_counter()
        logger.info(
            "generation.start title=%s epochs=%s output=%s",
            self._premise.title,
            self._epochs,
            self._output_path,
        )
        epoch_index: int | None = None
        try:
            for epoch_index in range(self._epochs):
                self._raise_if_cancelled()
                self._run_epoch(epoch_index)
            epoch_index = None
            self._transition(GenerationState.PERSISTING, None)
            output_path = self._save(self._output_path, self._chain)
        except StoryChainError as exc:
            self._fail(epoch_index, exc)
        except KeyboardInterrupt:
            self._fail(epoch_index, GenerationCancelled("Interrupted by user."))

        self._transition(GenerationState.COMPLETED, None)
        elapsed = time.perf_counter() - started
        logger.info(
            "generation.completed nodes=%s inference_calls=%s elapsed_seconds=%.2f",
            len(self._chain),
            self._inference_calls,
            elapsed,
        )
        return GenerationResult(
            chain=self._chain,
            output_path=output_path,
            epochs_completed=len(self._chain),
            inference_calls=self._inference_calls,
            elapsed_seconds=elapsed,
        )

    def _run_epoch(self, epoch_index: int) -> None:
        epoch_started = time.perf_counter()
        self._transition(GenerationState.PROMPTING, epoch_index)
        prior_nodes = self._chain.tail_window(self._prompt_builder.window_size)
        prompt = self._prompt_builder.build(self._premise, prior_nodes, epoch_index)
        parsed = self._generate_scene(prompt, epoch_index)
        self._transition(GenerationState.APPENDING, epoch_index)
        node_id = self._chain.append(parsed.content, parsed.reasoning)
        logger.info(
            "generation.epoch epoch=%s/%s node=%s parse=%s content_chars=%s elapsed_seconds=%.2f",
            epoch_index + 1,
            self._epochs,
            node_id,
            parsed.kind,
            len(parsed.content),
            time.perf_counter() - epoch_started,
        )

    def _generate_scene(self, prompt: str, epoch_index: int) -> ParseResult:
        last_error: MalformedResponse | None = None
        for attempt in range(1, self._parse_attempts + 1):
            self._transition(GenerationState.INVOKING, epoch_index)
            raw_text = self._client.generate(prompt, self._options, epoch_index=epoch_index)
            self._inference_calls += 1
            self._transition(GenerationState.PARSING, epoch_index)
            outcome = _parse_attempt(raw_text)
            if outcome.kind == "success" and outcome.result is not None:
                if outcome.result.kind == "degraded":
                    logger.warning(
                        "generation.degraded_parse epoch=%s attempt=%s", epoch_index, attempt
                    )
                return outcome.result
            last_error = outcome.error
            logger.warning(
                "generation.malformed_response epoch=%s attempt=%s/%s error=%s",
                epoch_index,
                attempt,
                self._parse_attempts,
                last_error,
            )
            self._raise_if_cancelled()
        raise MalformedResponse(
            f"No usable scene after {self._parse_attempts} attempts: {last_error}"
        ) from last_error

    def _fail(self, epoch_index: int | None, cause: StoryChainError) -> NoReturn:
        partial_path: Path | None = None
        if (
            self._partial_save
            and self._state is not GenerationState.PERSISTING
            and len(self._chain) > 0
        ):
            try:
                partial_path = self._save(partial_output_path(self._output_path), self._chain)
            except PersistenceFailure as save_error:
                logger.error("generation.partial_save_failed error=%s", save_error)
        self._transition(GenerationState.FAILED, epoch_index)
        logger.error(
            "generation.failed epoch=%s kind=%s nodes=%s error=%s",
            epoch_index,
            type(cause).__name__,
            len(self._chain),
            cause,
        )
        raise GenerationFailed(
            epoch_index=epoch_index,
            cause=cause,
            partial_output_path=partial_path,
        ) from cause

    def _transition(self, target: GenerationState, epoch_index: int | None) -> None:
        if target not in _ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid generation transition {self._state.value} -> {target.value}.")
        self._transitions.append(
            StateTransition(source=self._state, target=target, epoch_index=epoch_index)
        )
        logger.debug(
            "generation.transition %s->%s epoch=%s", self._state.value, target.value, epoch_index
        )
        self._state = target

    def _raise_if_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise GenerationCancelled("Generation cancelled between epochs.")


def _parse_attempt(raw_text: str) -> ParseAttempt:
    try:
        return ParseAttempt(kind="success", result=parse_response(raw_text))
    except MalformedResponse as exc:
        return ParseAttempt(kind="retryable", error=exc)


def run_generation(
    premise: Premise,
    settings: GenerationSettings,
    *,
    cancel_event: threading.Event | None = None,
) -> GenerationResult:
    """Wire the audit log, inference client, and driver for one run.

    The audit log and HTTP client are scoped to the run and closed on every
    exit path, including failures. An audit log that cannot be opened fails
    the run before any inference request is made.
    """
    audit_log = AuditLog(settings.audit_log_path)
    try:
        audit_log.open()
    except PersistenceFailure as exc:
        logger.error("generation.failed epoch=None kind=%s error=%s", type(exc).__name__, exc)
        raise GenerationFailed(epoch_index=None, cause=exc) from exc

    with audit_log, OllamaClient(
        endpoint=settings.endpoint,
        model=settings.model,
        audit_log=audit_log,
        timeout_seconds=settings.timeout_seconds,
        max_attempts=settings.max_attempts,
        backoff_seconds=settings.backoff_seconds,
        backoff_multiplier=settings.backoff_multiplier,
        max_backoff_seconds=settings.max_backoff_seconds,
        stream=settings.stream,
        cancel_event=cancel_event,
    ) as client:
        driver = GenerationDriver(
            premise,
            client,
            epochs=settings.epochs,
            output_path=settings.output_path,
            prompt_builder=PromptBuilder(
                window_size=settings.window_size,
                max_context_chars=settings.max_context_chars,
            ),
            options=settings.inference_options(),
            parse_attempts=settings.parse_attempts,
            partial_save=settings.partial_save,
            cancel_event=cancel_event,
        )
        return driver.run()
