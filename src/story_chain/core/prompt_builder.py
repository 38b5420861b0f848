"""Prompt assembly from the premise and a bounded window of prior scenes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from story_chain.domain.models import Premise, StoryNode

DEFAULT_WINDOW_SIZE: Final[int] = 3
DEFAULT_MAX_CONTEXT_CHARS: Final[int] = 12000

PREAMBLE: Final[str] = (
    "You are a novelist writing a story one scene at a time. "
    "Each reply is exactly one scene written in the style the premise calls for.\n\n"
    "IMPORTANT: Format your response EXACTLY as follows:\n"
    "<think>\n"
    "Your reasoning in a single paragraph, explaining your narrative choices "
    "and how they connect to the premise.\n"
    "</think>\n"
    "Your scene content, written in proper paragraphs."
)

FORMAT_REMINDER: Final[str] = (
    "Remember:\n"
    "- Put your reasoning in a SINGLE paragraph inside <think> tags\n"
    "- Write the scene immediately after the </think> tag\n"
    "- Use proper paragraphs in the scene\n"
    "- Do NOT add any extra formatting or tags"
)


class PromptBuilder:
    """Builds per-epoch prompts with a fixed scene window and character budget."""

    def __init__(
        self,
        *,
        window_size: int = DEFAULT_WINDOW_SIZE,
        max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be at least 1.")
        if max_context_chars < 1:
            raise ValueError("max_context_chars must be at least 1.")
        self._window_size = window_size
        self._max_context_chars = max_context_chars

    @property
    def window_size(self) -> int:
        return self._window_size

    def build(self, premise: Premise, prior_nodes: Sequence[StoryNode], epoch_index: int) -> str:
        sections = [PREAMBLE, "Story Premise:\n" + summarize_premise(premise)]
        if epoch_index == 0 or not prior_nodes:
            sections.append(
                "Write the opening scene of this story. Introduce the setting and "
                "at least one of the characters, and set up the central conflict."
            )
        else:
            scenes = self.context_window(prior_nodes)
            first_number = max(1, epoch_index - len(scenes) + 1)
            rendered = [
                f"Scene {number}:\n{content}"
                for number, content in enumerate(scenes, start=first_number)
            ]
            sections.append("Story so far (most recent scenes):\n\n" + "\n\n".join(rendered))
            sections.append(
                f"Write scene {epoch_index + 1}. Continue directly from the last scene, "
                "keeping the established characters, themes, and plot elements consistent. "
                "Do not repeat earlier scenes."
            )
        sections.append(FORMAT_REMINDER)
        return "\n\n".join(sections)

    def context_window(self, prior_nodes: Sequence[StoryNode]) -> list[str]:
        """Return the trailing scene contents that fit the window and character budget."""
        window = [node.content.strip() for node in prior_nodes[-self._window_size :]]
        while len(window) > 1 and sum(len(content) for content in window) > self._max_context_chars:
            window.pop(0)
        if window and len(window[0]) > self._max_context_chars:
            window[0] = window[0][-self._max_context_chars :]
        return window


def summarize_premise(premise: Premise) -> str:
    lines = [f"Title: {premise.title}"]
    if premise.genre:
        lines.append(f"Genre: {premise.genre}")
    if premise.setting:
        lines.append(f"Setting: {premise.setting}")
    if premise.time_period:
        lines.append(f"Time period: {premise.time_period}")
    lines.append(f"Premise: {premise.premise}")
    if premise.characters:
        lines.append("Characters:")
        for character in premise.characters:
            line = f"- {character.name}"
            if character.description:
                line += f": {character.description}"
            if character.arc:
                line += f" (Arc: {character.arc})"
            lines.append(line)
    if premise.themes:
        lines.append("Themes: " + ", ".join(premise.themes))
    if premise.plot_elements:
        lines.append("Plot elements:")
        lines.extend(f"- {element}" for element in premise.plot_elements)
    return "\n".join(lines)
