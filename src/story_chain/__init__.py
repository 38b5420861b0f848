"""Linear story generation against a local LLM inference server."""

from story_chain.application.generation_driver import (
    GenerationDriver,
    GenerationResult,
    run_generation,
)
from story_chain.config import GenerationSettings
from story_chain.core.story_chain import StoryChain
from story_chain.domain.models import Premise, PremiseCharacter, StoryNode

__all__ = [
    "GenerationDriver",
    "GenerationResult",
    "GenerationSettings",
    "Premise",
    "PremiseCharacter",
    "StoryChain",
    "StoryNode",
    "run_generation",
]
