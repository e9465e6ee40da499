"""Target layout planner: deterministic destination paths."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from featureslice.core.classifier import Classification
from featureslice.core.config import MigrationScope
from featureslice.core.exceptions import MigrationError, PlanConflict
from featureslice.core.indexer import SourceIndex
from featureslice.core.models import SHARED, FileMove, SymbolKind

logger = logging.getLogger(__name__)

FEATURES_DIR = "features"


@dataclass(frozen=True)
class LayoutPlan:
    """Planned moves, keyed by source path."""

    moves: Mapping[str, FileMove]
    errors: tuple[MigrationError, ...] = field(default=(), compare=False)

    def __contains__(self, source: object) -> bool:
        return source in self.moves

    def __iter__(self) -> Iterator[FileMove]:
        return iter(self.moves.values())

    def __len__(self) -> int:
        return len(self.moves)

    def get(self, source: str) -> FileMove | None:
        return self.moves.get(source)

    def by_module_path(self) -> dict[str, str]:
        """Destination module path -> source path."""
        return {move.module_path: move.source for move in self.moves.values()}


def destination_for(scope: MigrationScope, source: str, owner: str, kind: SymbolKind) -> str:
    """Feature-owned -> features/<feature>/<bucket>/<name>; SHARED -> <bucket>/<name>."""
    name = posixpath.basename(source)
    bucket = scope.bucket_for(kind)
    if owner == SHARED:
        return f"{bucket}/{name}"
    return f"{FEATURES_DIR}/{owner}/{bucket}/{name}"


def module_path(destination: str, is_asset: bool) -> str:
    """Import path of a destination: extension stripped except for assets."""
    if is_asset:
        return destination
    return posixpath.splitext(destination)[0]


def plan_layout(
    scope: MigrationScope, index: SourceIndex, classification: Classification
) -> LayoutPlan:
    """Map every classified file to its destination.

    Collisions on the destination module path raise PlanConflict naming all
    sources. Files are never renamed to dodge a collision.
    """
    moves: dict[str, FileMove] = {}
    claimed: dict[str, list[str]] = {}

    for source, owner in classification.owners.items():
        source_file = index.get(source)
        if source_file is None:
            continue
        destination = destination_for(scope, source, owner, source_file.kind)
        key = module_path(destination, source_file.is_asset)
        moves[source] = FileMove(
            source=source,
            destination=destination,
            module_path=key,
            owner=owner,
            kind=source_file.kind,
        )
        claimed.setdefault(key, []).append(source)

    errors: list[MigrationError] = []
    for key, sources in sorted(claimed.items()):
        if len(sources) > 1:
            errors.append(
                PlanConflict(
                    f"{len(sources)} files planned to {key}: {', '.join(sorted(sources))}",
                    sorted(sources),
                )
            )

    logger.info("Planned %d moves (%d conflicts)", len(moves), len(errors))
    return LayoutPlan(moves=MappingProxyType(moves), errors=tuple(errors))
