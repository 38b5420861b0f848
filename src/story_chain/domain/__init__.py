"""Domain models, errors, and ports for story generation."""

from story_chain.domain.errors import (
    ArtifactError,
    ChainIntegrityError,
    GenerationCancelled,
    GenerationFailed,
    InferenceRejected,
    InferenceUnavailable,
    MalformedResponse,
    PersistenceFailure,
    PremiseError,
    StoryChainError,
)
from story_chain.domain.models import (
    Artifact,
    ArtifactType,
    InferenceOptions,
    Premise,
    PremiseCharacter,
    StoryNode,
)
from story_chain.domain.ports import ExchangeRecorder, InferenceProvider

__all__ = [
    "Artifact",
    "ArtifactError",
    "ArtifactType",
    "ChainIntegrityError",
    "ExchangeRecorder",
    "GenerationCancelled",
    "GenerationFailed",
    "InferenceOptions",
    "InferenceProvider",
    "InferenceRejected",
    "InferenceUnavailable",
    "MalformedResponse",
    "PersistenceFailure",
    "Premise",
    "PremiseCharacter",
    "PremiseError",
    "StoryChainError",
    "StoryNode",
]
