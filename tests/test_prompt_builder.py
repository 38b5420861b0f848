from __future__ import annotations

import pytest

from story_chain.core.prompt_builder import PromptBuilder, summarize_premise
from story_chain.domain.models import Premise, StoryNode


def _premise() -> Premise:
    return Premise.model_validate(
        {
            "title": "The Ledger",
            "genre": "Mystery",
            "setting": "A harbour town",
            "time_period": "1890s",
            "premise": "A ledger records a ship that never arrived.",
            "characters": [
                {"name": "Mara", "description": "Lamplighter", "arc": "Learns to trust"}
            ],
            "themes": ["memory", "trust"],
            "plot_elements": ["A storm cuts the town off"],
        }
    )


def _nodes(count: int) -> list[StoryNode]:
    return [
        StoryNode(id=f"n{index}", content=f"content {index}", reasoning=f"secret {index}")
        for index in range(1, count + 1)
    ]


def test_summarize_premise_includes_every_field() -> None:
    summary = summarize_premise(_premise())
    assert "Title: The Ledger" in summary
    assert "Genre: Mystery" in summary
    assert "Setting: A harbour town" in summary
    assert "Time period: 1890s" in summary
    assert "- Mara: Lamplighter (Arc: Learns to trust)" in summary
    assert "Themes: memory, trust" in summary
    assert "- A storm cuts the town off" in summary


def test_opening_prompt_is_premise_only() -> None:
    prompt = PromptBuilder().build(_premise(), [], 0)
    assert "opening scene" in prompt
    assert "Story so far" not in prompt
    assert "<think>" in prompt
    assert "A ledger records a ship that never arrived." in prompt


def test_continuation_prompt_uses_content_window_without_reasoning() -> None:
    builder = PromptBuilder(window_size=2)
    prompt = builder.build(_premise(), _nodes(4), 4)

    assert "content 3" in prompt
    assert "content 4" in prompt
    assert "content 1" not in prompt
    assert "content 2" not in prompt
    assert "secret" not in prompt
    assert "Scene 3:\ncontent 3" in prompt
    assert "Write scene 5." in prompt
    assert prompt.index("content 3") < prompt.index("content 4")


def test_context_window_drops_oldest_scenes_over_budget() -> None:
    builder = PromptBuilder(window_size=3, max_context_chars=25)
    nodes = [
        StoryNode(id="a", content="a" * 10, reasoning=""),
        StoryNode(id="b", content="b" * 10, reasoning=""),
        StoryNode(id="c", content="c" * 10, reasoning=""),
    ]
    assert builder.context_window(nodes) == ["b" * 10, "c" * 10]


def test_context_window_trims_single_oversized_scene_to_its_tail() -> None:
    builder = PromptBuilder(window_size=2, max_context_chars=5)
    nodes = [StoryNode(id="a", content="abcdefghij", reasoning="")]
    assert builder.context_window(nodes) == ["fghij"]


def test_builder_rejects_invalid_limits() -> None:
    with pytest.raises(ValueError):
        PromptBuilder(window_size=0)
    with pytest.raises(ValueError):
        PromptBuilder(max_context_chars=0)
