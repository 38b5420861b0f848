"""Pure generation logic: chain structure, prompts, and response parsing."""

from story_chain.core.prompt_builder import PromptBuilder, summarize_premise
from story_chain.core.response_parser import (
    Degraded,
    ParseResult,
    Structured,
    parse,
    parse_response,
)
from story_chain.core.story_chain import ROOT_NODE_ID, StoryChain

__all__ = [
    "Degraded",
    "ParseResult",
    "PromptBuilder",
    "ROOT_NODE_ID",
    "StoryChain",
    "Structured",
    "parse",
    "parse_response",
    "summarize_premise",
]
