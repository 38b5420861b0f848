"""Split raw model output into scene content and reasoning."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from story_chain.domain.errors import MalformedResponse

_OPEN_TAG_RE = re.compile(r"<(think|thinking)>", re.IGNORECASE)
_CLOSE_TAG_RE = re.compile(r"</(think|thinking)>", re.IGNORECASE)


@dataclass(frozen=True)
class Structured:
    """Response carrying an explicit reasoning block."""

    content: str
    reasoning: str
    kind: Literal["structured"] = "structured"


@dataclass(frozen=True)
class Degraded:
    """Response without any reasoning delimiter; all text is content."""

    content: str
    kind: Literal["degraded"] = "degraded"

    @property
    def reasoning(self) -> str:
        return ""


ParseResult = Structured | Degraded


def parse_response(raw_text: str) -> ParseResult:
    """Parse a raw response into a tagged result.

    Reasoning lives inside ``<think>...</think>`` (or ``<thinking>``) blocks;
    everything outside them is content. A closing tag with no opening tag
    marks everything before it as reasoning, and an unterminated opening tag
    swallows the rest of the text.
    """
    if not _OPEN_TAG_RE.search(raw_text) and not _CLOSE_TAG_RE.search(raw_text):
        content = raw_text.strip()
        if not content:
            raise MalformedResponse("Response was empty.")
        return Degraded(content=content)

    reasoning_parts: list[str] = []
    content_parts: list[str] = []
    cursor = raw_text

    first_open = _OPEN_TAG_RE.search(cursor)
    first_close = _CLOSE_TAG_RE.search(cursor)
    if first_close is not None and (first_open is None or first_close.start() < first_open.start()):
        reasoning_parts.append(cursor[: first_close.start()])
        cursor = cursor[first_close.end() :]

    while cursor:
        opening = _OPEN_TAG_RE.search(cursor)
        if opening is None:
            content_parts.append(cursor)
            break
        content_parts.append(cursor[: opening.start()])
        cursor = cursor[opening.end() :]
        closing = _CLOSE_TAG_RE.search(cursor)
        if closing is None:
            reasoning_parts.append(cursor)
            break
        reasoning_parts.append(cursor[: closing.start()])
        cursor = cursor[closing.end() :]

    content = _join_segments(content_parts)
    reasoning = _join_segments(reasoning_parts)
    if not content:
        raise MalformedResponse("Response contained reasoning but no scene content.")
    return Structured(content=content, reasoning=reasoning)


def parse(raw_text: str) -> tuple[str, str]:
    """Return ``(content, reasoning)``; reasoning is empty for degraded output."""
    result = parse_response(raw_text)
    return result.content, result.reasoning


def _join_segments(parts: list[str]) -> str:
    stripped = [_CLOSE_TAG_RE.sub("", part).strip() for part in parts]
    return "\n\n".join(part for part in stripped if part)
