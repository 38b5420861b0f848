"""Application services that orchestrate generation runs."""

from story_chain.application.generation_driver import (
    GenerationDriver,
    GenerationResult,
    GenerationState,
    StateTransition,
    run_generation,
)

__all__ = [
    "GenerationDriver",
    "GenerationResult",
    "GenerationState",
    "StateTransition",
    "run_generation",
]
