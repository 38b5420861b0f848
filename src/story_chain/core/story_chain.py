"""Append-only story chain stored as an id-keyed arena of linked nodes."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from story_chain.domain.errors import ChainIntegrityError
from story_chain.domain.models import StoryNode

ROOT_NODE_ID: Final[str] = "root"
_NODE_ID_RE = re.compile(r"^node_(\d+)$")


class StoryNodeRecord(BaseModel):
    """Persisted form of one story node."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    content: str
    reasoning: str
    predecessor: str | None = None
    successor: str | None = None


class StoryChainDocument(BaseModel):
    """Persisted chain contract consumed by renderers and reloads."""

    model_config = ConfigDict(extra="forbid")

    nodes: dict[str, StoryNodeRecord]
    root_node_id: str = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_keys(self) -> StoryChainDocument:
        for key, record in self.nodes.items():
            if key != record.id:
                raise ValueError(f"Node key '{key}' does not match node id '{record.id}'.")
        if self.root_node_id not in self.nodes:
            raise ValueError(f"Root node '{self.root_node_id}' is not present in nodes.")
        return self


class StoryChain:
    """Linear chain of scenes with bidirectional id links."""

    def __init__(self) -> None:
        self._nodes: dict[str, StoryNode] = {}
        self._root_node_id: str | None = None
        self._tail_node_id: str | None = None
        self._next_index = 0

    @property
    def nodes(self) -> Mapping[str, StoryNode]:
        return MappingProxyType(self._nodes)

    @property
    def root_node_id(self) -> str | None:
        return self._root_node_id

    @property
    def tail_node_id(self) -> str | None:
        return self._tail_node_id

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def get(self, node_id: str) -> StoryNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise ChainIntegrityError(f"Unknown node id '{node_id}'.") from None

    def append(self, content: str, reasoning: str) -> str:
        """Append a scene after the current tail and return its new id."""
        node_id = self._allocate_id()
        node = StoryNode(
            id=node_id,
            content=content,
            reasoning=reasoning,
            predecessor=self._tail_node_id,
            successor=None,
        )
        if self._tail_node_id is None:
            self._root_node_id = node_id
        else:
            previous = self._nodes[self._tail_node_id]
            self._nodes[previous.id] = replace(previous, successor=node_id)
        self._nodes[node_id] = node
        self._tail_node_id = node_id
        return node_id

    def traverse(self) -> Iterator[StoryNode]:
        """Yield nodes from the root along successor links.

        Each call starts a fresh walk. A revisited or dangling id raises
        ChainIntegrityError instead of looping.
        """
        seen: set[str] = set()
        current = self._root_node_id
        while current is not None:
            if current in seen:
                raise ChainIntegrityError(f"Cycle detected at node '{current}'.")
            node = self._nodes.get(current)
            if node is None:
                raise ChainIntegrityError(f"Dangling successor link to '{current}'.")
            seen.add(current)
            yield node
            current = node.successor

    def tail_window(self, size: int) -> list[StoryNode]:
        """Return the last ``size`` nodes in chain order."""
        if size <= 0 or self._tail_node_id is None:
            return []
        window: list[StoryNode] = []
        current: str | None = self._tail_node_id
        while current is not None and len(window) < size:
            node = self.get(current)
            window.append(node)
            current = node.predecessor
        window.reverse()
        return window

    def contents(self) -> list[str]:
        return [node.content for node in self.traverse()]

    def integrity_issues(self) -> list[str]:
        issues: list[str] = []
        if not self._nodes:
            return issues

        roots = [node.id for node in self._nodes.values() if node.predecessor is None]
        if len(roots) != 1:
            issues.append(f"Chain must have exactly one root, found {len(roots)}: {sorted(roots)}.")
        tails = [node.id for node in self._nodes.values() if node.successor is None]
        if len(tails) > 1:
            issues.append(f"Chain must have at most one tail, found {len(tails)}: {sorted(tails)}.")
        if self._root_node_id not in self._nodes:
            issues.append(f"Root node '{self._root_node_id}' is not present in the chain.")
            return issues

        for node in self._nodes.values():
            if node.successor is not None:
                successor = self._nodes.get(node.successor)
                if successor is None:
                    issues.append(f"Node '{node.id}' links to unknown successor '{node.successor}'.")
                elif successor.predecessor != node.id:
                    issues.append(
                        f"Node '{node.successor}' does not point back to predecessor '{node.id}'."
                    )
            if node.predecessor is not None and node.predecessor not in self._nodes:
                issues.append(
                    f"Node '{node.id}' links to unknown predecessor '{node.predecessor}'."
                )

        seen: set[str] = set()
        current: str | None = self._root_node_id
        while current is not None and current in self._nodes:
            if current in seen:
                issues.append(f"Successor links form a cycle at '{current}'.")
                break
            seen.add(current)
            current = self._nodes[current].successor
        unreachable = sorted(set(self._nodes) - seen)
        if unreachable:
            issues.append(f"Nodes unreachable from root: {unreachable}.")
        return issues

    def validate(self) -> None:
        issues = self.integrity_issues()
        if issues:
            raise ChainIntegrityError(" ".join(issues))

    def to_payload(self) -> dict[str, Any]:
        """Serialize into the persisted ``{"nodes", "root_node_id"}`` shape."""
        if self._root_node_id is None:
            raise ChainIntegrityError("Cannot serialize an empty chain.")
        nodes = {
            node.id: {
                "id": node.id,
                "content": node.content,
                "reasoning": node.reasoning,
                "predecessor": node.predecessor,
                "successor": node.successor,
            }
            for node in self.traverse()
        }
        return {"nodes": nodes, "root_node_id": self._root_node_id}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> StoryChain:
        """Rebuild a chain from its persisted shape, validating every link."""
        try:
            document = StoryChainDocument.model_validate(payload)
        except ValidationError as exc:
            raise ChainIntegrityError(f"Invalid story chain document: {exc}") from exc

        chain = cls()
        for key, record in document.nodes.items():
            chain._nodes[key] = StoryNode(
                id=record.id,
                content=record.content,
                reasoning=record.reasoning,
                predecessor=record.predecessor,
                successor=record.successor,
            )
        chain._root_node_id = document.root_node_id
        root = chain._nodes[document.root_node_id]
        if root.predecessor is not None:
            raise ChainIntegrityError(
                f"Root node '{root.id}' must not have a predecessor ('{root.predecessor}')."
            )
        chain.validate()
        chain._tail_node_id = next(
            node.id for node in chain._nodes.values() if node.successor is None
        )
        chain._next_index = _next_index_after(chain._nodes)
        return chain

    def _allocate_id(self) -> str:
        if not self._nodes:
            self._next_index = 1
            return ROOT_NODE_ID
        index = max(self._next_index, len(self._nodes))
        while f"node_{index}" in self._nodes:
            index += 1
        self._next_index = index + 1
        return f"node_{index}"


def _next_index_after(nodes: Mapping[str, StoryNode]) -> int:
    highest = len(nodes)
    for node_id in nodes:
        match = _NODE_ID_RE.match(node_id)
        if match:
            highest = max(highest, int(match.group(1)) + 1)
    return highest
