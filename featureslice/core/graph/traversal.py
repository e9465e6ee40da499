"""Reachability over the condensation."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from featureslice.core.graph.base import UsageGraph
    from featureslice.core.graph.models import Condensation


def reachable_nodes(condensation: Condensation, start: Iterable[int]) -> set[int]:
    """Condensation nodes reachable from ``start`` (inclusive). BFS, O(V + E)."""
    seen: set[int] = set()
    queue: deque[int] = deque()
    for node in start:
        if node not in seen:
            seen.add(node)
            queue.append(node)

    while queue:
        node = queue.popleft()
        for successor in condensation.successors.get(node, []):
            if successor not in seen:
                seen.add(successor)
                queue.append(successor)
    return seen


def reachable_files(graph: UsageGraph, start: Iterable[str]) -> set[str]:
    """Files reachable from ``start`` (inclusive) over the plain file graph."""
    seen: set[str] = set()
    queue: deque[str] = deque()
    for path in start:
        if path in graph and path not in seen:
            seen.add(path)
            queue.append(path)

    while queue:
        path = queue.popleft()
        for successor in graph.successors(path):
            if successor not in seen:
                seen.add(successor)
                queue.append(successor)
    return seen
