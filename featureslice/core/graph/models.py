"""Data models for graph operations."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass
class Condensation:
    """The graph with every strongly connected file group collapsed to one node.

    Node ids are indexes into ``members``; ``component_of`` maps a file to its
    node.
    """

    members: list[tuple[str, ...]] = field(default_factory=list)
    component_of: dict[str, int] = field(default_factory=dict)
    successors: dict[int, list[int]] = field(default_factory=dict)

    def node(self, path: str) -> int:
        return self.component_of[path]

    def files(self, node: int) -> tuple[str, ...]:
        return self.members[node]

    def is_cyclic(self, node: int) -> bool:
        return len(self.members[node]) > 1

    def __len__(self) -> int:
        return len(self.members)


@dataclass
class ImportChain:
    """A path of files through the reference graph."""

    files: list[str]

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self) -> Iterator[str]:
        return iter(self.files)

    def __repr__(self) -> str:
        return f"ImportChain({' -> '.join(self.files)})"
