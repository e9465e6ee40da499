"""Feature classifier: partitions files into one Feature or SHARED."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from featureslice.core.config import MigrationScope
from featureslice.core.exceptions import (
    BoundaryViolation,
    DeadCodeWarning,
    MigrationError,
    MissingEntryPoint,
)
from featureslice.core.graph import UsageGraph, condense
from featureslice.core.graph.pathfinding import shortest_path
from featureslice.core.graph.traversal import reachable_files, reachable_nodes
from featureslice.core.models import SHARED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    """File -> Feature name or SHARED. Immutable once built.

    ``reaching`` keeps the set of Features reaching each file, which is the
    only input the decision depends on.
    """

    owners: Mapping[str, str]
    reaching: Mapping[str, frozenset[str]]
    unreached: tuple[str, ...] = ()
    retained: frozenset[str] = frozenset()
    cycles: tuple[tuple[str, ...], ...] = ()
    errors: tuple[MigrationError, ...] = field(default=(), compare=False)

    def owner(self, path: str) -> str | None:
        return self.owners.get(path)

    def is_shared(self, path: str) -> bool:
        return self.owners.get(path) == SHARED

    def feature_of(self, path: str) -> str | None:
        """The owning Feature, or None for SHARED and unclassified files."""
        owner = self.owners.get(path)
        return None if owner in (None, SHARED) else owner

    def files_of(self, owner: str) -> list[str]:
        return [path for path, o in self.owners.items() if o == owner]

    def __len__(self) -> int:
        return len(self.owners)


def classify(scope: MigrationScope, graph: UsageGraph) -> Classification:
    """Classify every file of the graph.

    Reachability runs over the condensation from each Feature's entry points:
    exactly one reaching Feature -> owned, two or more -> SHARED, none ->
    unreached (dead code) unless retained as infrastructure. A cyclic group
    is one condensation node, so its files share one reaching set.
    """
    errors: list[MigrationError] = []
    condensation = condense(graph)

    reaching_nodes: dict[int, set[str]] = {}
    for feature in scope.features:
        starts = []
        for entry in feature.entry_points:
            if entry not in graph:
                errors.append(
                    MissingEntryPoint(
                        f"Entry point {entry} of feature {feature.name!r} is not in the index",
                        [entry],
                    )
                )
                continue
            starts.append(condensation.node(entry))
        for node in reachable_nodes(condensation, starts):
            reaching_nodes.setdefault(node, set()).add(feature.name)

    owners: dict[str, str] = {}
    reaching: dict[str, frozenset[str]] = {}
    for node, members in enumerate(condensation.members):
        features = frozenset(reaching_nodes.get(node, ()))
        for path in members:
            reaching[path] = features
            if len(features) == 1:
                (owners[path],) = features
            elif len(features) > 1:
                owners[path] = SHARED

    retained_roots = [p for p in graph.files if p not in owners and scope.is_retained(p)]
    retained = frozenset(reachable_files(graph, retained_roots) - owners.keys())
    for path in retained:
        owners[path] = SHARED

    unreached = tuple(sorted(p for p in graph.files if p not in owners))
    for path in unreached:
        errors.append(
            DeadCodeWarning(f"{path} is not reachable from any feature entry point", [path])
        )

    for path in sorted(owners):
        for ref in graph.boundary_refs(path):
            errors.append(
                BoundaryViolation(
                    f"{path}:{ref.line} imports '{ref.specifier}' from excluded folder "
                    f"({ref.target})",
                    [path, ref.target or ref.specifier],
                )
            )

    cycles = tuple(
        condensation.files(node)
        for node in range(len(condensation))
        if condensation.is_cyclic(node)
    )

    classification = Classification(
        owners=MappingProxyType(dict(sorted(owners.items()))),
        reaching=MappingProxyType(reaching),
        unreached=unreached,
        retained=retained,
        cycles=cycles,
        errors=tuple(errors),
    )
    logger.info(
        "Classified %d files (%d shared, %d unreached, %d cycles)",
        len(classification),
        len(classification.files_of(SHARED)),
        len(unreached),
        len(cycles),
    )
    return classification


def explain(
    scope: MigrationScope, graph: UsageGraph, classification: Classification, path: str
) -> dict[str, Any]:
    """Why a file got its classification: reaching set, import chains, symbol users."""
    chains: dict[str, list[str]] = {}
    for feature in scope.features:
        if feature.name not in classification.reaching.get(path, ()):
            continue
        for entry in feature.entry_points:
            chain = shortest_path(graph, entry, path)
            if chain is not None:
                chains[feature.name] = chain.files
                break

    return {
        "file": path,
        "classification": classification.owner(path) or "UNREACHED",
        "reaching": sorted(classification.reaching.get(path, ())),
        "retained": path in classification.retained,
        "chains": chains,
        "used_by": {s.name: graph.users_of(s.qualified_name) for s in graph.symbols_of(path)},
    }
