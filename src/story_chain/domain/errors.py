"""Error taxonomy shared by the generation pipeline."""

from __future__ import annotations

from pathlib import Path


class StoryChainError(RuntimeError):
    """Base class for every story_chain failure."""


class InferenceUnavailable(StoryChainError):
    """Raised when the inference server stays unreachable after all retries."""


class InferenceRejected(StoryChainError):
    """Raised when the inference server refuses a request as misconfigured."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(StoryChainError):
    """Raised when no usable scene content can be extracted from a response."""


class PersistenceFailure(StoryChainError):
    """Raised when a chain cannot be written to durable storage."""


class ChainIntegrityError(StoryChainError):
    """Raised when a chain violates its linkage invariants."""


class GenerationCancelled(StoryChainError):
    """Raised when a run is cancelled cooperatively."""


class PremiseError(StoryChainError):
    """Raised when a premise file is missing or fails validation."""


class GenerationFailed(StoryChainError):
    """Terminal run failure with the epoch and error kind that ended it."""

    def __init__(
        self,
        *,
        epoch_index: int | None,
        cause: BaseException,
        partial_output_path: Path | None = None,
    ) -> None:
        self.epoch_index = epoch_index
        self.cause = cause
        self.kind = type(cause).__name__
        self.partial_output_path = partial_output_path
        where = "persistence" if epoch_index is None else f"epoch {epoch_index}"
        super().__init__(f"Generation failed at {where} ({self.kind}): {cause}")


class ArtifactError(StoryChainError):
    """Raised when a stored artifact is unreadable or fails validation."""
