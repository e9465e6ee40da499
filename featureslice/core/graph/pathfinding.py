"""Path finding: BFS shortest import chain."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from featureslice.core.graph.models import ImportChain

if TYPE_CHECKING:
    from featureslice.core.graph.base import UsageGraph


def shortest_path(graph: UsageGraph, from_path: str, to_path: str) -> ImportChain | None:
    """Find the shortest import chain using BFS. O(V + E)."""
    if from_path not in graph or to_path not in graph:
        return None
    if from_path == to_path:
        return ImportChain(files=[from_path])

    queue: deque[str] = deque([from_path])
    parent: dict[str, str] = {}
    visited: set[str] = {from_path}

    while queue:
        current = queue.popleft()
        for successor in graph.successors(current):
            if successor not in visited:
                visited.add(successor)
                parent[successor] = current
                if successor == to_path:
                    return _reconstruct(from_path, to_path, parent)
                queue.append(successor)

    return None


def _reconstruct(from_path: str, to_path: str, parent: dict[str, str]) -> ImportChain:
    files = [to_path]
    current = to_path
    while current != from_path:
        current = parent[current]
        files.append(current)
    files.reverse()
    return ImportChain(files=files)
