"""Markdown rendering of persisted story chains."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import datetime
from typing import Any


def walk_persisted_chain(payload: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    """Yield node records from ``root_node_id`` along ``successor`` links.

    Stops at a null successor, a missing node, or an already-seen id.
    """
    nodes = payload.get("nodes") or {}
    seen: set[str] = set()
    current = payload.get("root_node_id")
    while isinstance(current, str) and current not in seen:
        node = nodes.get(current)
        if not isinstance(node, Mapping):
            return
        seen.add(current)
        yield node
        current = node.get("successor")


def render_markdown(payload: Mapping[str, Any], *, generated_at: datetime | None = None) -> str:
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    lines = ["# Generated Story", "", f"*Generated on {stamp}*", "", "---", ""]
    for number, node in enumerate(walk_persisted_chain(payload), start=1):
        lines.extend([f"## Scene {number}", "", str(node.get("content", "")).strip(), ""])
        reasoning = str(node.get("reasoning") or "").strip()
        if reasoning:
            lines.extend(
                [
                    "<details>",
                    "<summary>AI's Reasoning</summary>",
                    "",
                    reasoning,
                    "</details>",
                    "",
                ]
            )
        lines.extend(["---", ""])
    return "\n".join(lines)
