"""Graph analysis: strongly connected components, condensation, cycles."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from featureslice.core.graph.models import Condensation

if TYPE_CHECKING:
    from featureslice.core.graph.base import UsageGraph

logger = logging.getLogger(__name__)


def strongly_connected_components(graph: UsageGraph) -> list[tuple[str, ...]]:
    """Tarjan's algorithm, iterative. O(V + E).

    Components come out in reverse topological order (a component is emitted
    after every component it reaches). Members are sorted.
    """
    index_of: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    components: list[tuple[str, ...]] = []
    counter = 0

    for root in graph.files:
        if root in index_of:
            continue
        work: list[tuple[str, int]] = [(root, 0)]
        while work:
            node, child_pos = work.pop()
            if child_pos == 0:
                index_of[node] = lowlink[node] = counter
                counter += 1
                stack.append(node)
                on_stack.add(node)

            successors = graph.successors(node)
            for pos in range(child_pos, len(successors)):
                child = successors[pos]
                if child not in index_of:
                    work.append((node, pos + 1))
                    work.append((child, 0))
                    break
                if child in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[child])
            else:
                if lowlink[node] == index_of[node]:
                    members = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        members.append(member)
                        if member == node:
                            break
                    components.append(tuple(sorted(members)))
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])

    return components


def condense(graph: UsageGraph) -> Condensation:
    """Collapse each strongly connected group into a single node. O(V + E).

    Cycles are logged, never rejected.
    """
    condensation = Condensation()
    for members in strongly_connected_components(graph):
        node = len(condensation.members)
        condensation.members.append(members)
        for path in members:
            condensation.component_of[path] = node
        if len(members) > 1:
            logger.warning("Import cycle collapsed into one group: %s", " <-> ".join(members))

    for node, members in enumerate(condensation.members):
        targets: list[int] = []
        for path in members:
            for successor in graph.successors(path):
                target = condensation.component_of[successor]
                if target != node and target not in targets:
                    targets.append(target)
        condensation.successors[node] = targets

    return condensation


def find_cycles(graph: UsageGraph) -> list[list[str]]:
    """Files in each import cycle (groups of two or more files)."""
    return [list(c) for c in strongly_connected_components(graph) if len(c) > 1]
