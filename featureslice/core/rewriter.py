"""Import rewriter: points every import at its planned destination."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from featureslice.core.classifier import Classification
from featureslice.core.config import MigrationScope
from featureslice.core.exceptions import CrossFeatureImportError, MigrationError
from featureslice.core.indexer import SourceIndex
from featureslice.core.planner import LayoutPlan

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class TextEdit:
    """Replace ``text[start:end]`` with ``replacement``. Inserts have start == end."""

    start: int
    end: int
    replacement: str


def apply_edits(text: str, edits: Iterable[TextEdit]) -> str:
    """Apply non-overlapping edits right to left, so offsets stay valid.

    Raises ValueError when two edits overlap.
    """
    ordered = sorted(edits)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            raise ValueError(
                f"Overlapping edits at {previous.start}-{previous.end} "
                f"and {current.start}-{current.end}"
            )
    for edit in reversed(ordered):
        text = text[: edit.start] + edit.replacement + text[edit.end :]
    return text


@dataclass(frozen=True)
class ImportRewrite:
    """Specifier edits per source file."""

    edits: Mapping[str, tuple[TextEdit, ...]]
    rewritten: int = 0
    errors: tuple[MigrationError, ...] = field(default=(), compare=False)

    def edits_for(self, source: str) -> tuple[TextEdit, ...]:
        return self.edits.get(source, ())


def target_specifier(scope: MigrationScope, module_path: str) -> str:
    """The aliased import specifier for a destination module path."""
    return f"{scope.target_alias}{module_path}"


def rewrite_imports(
    scope: MigrationScope,
    index: SourceIndex,
    classification: Classification,
    plan: LayoutPlan,
) -> ImportRewrite:
    """Compute specifier edits for every planned file.

    A Feature-owned file importing another Feature's file is a classifier
    defect and raises CrossFeatureImportError; Feature->SHARED and
    SHARED->SHARED imports are always legal. External specifiers and imports
    into excluded folders are left as they are.
    """
    errors: list[MigrationError] = []
    edits: dict[str, tuple[TextEdit, ...]] = {}
    rewritten = 0

    for move in plan:
        source_file = index.get(move.source)
        if source_file is None or source_file.is_asset:
            continue

        file_edits: dict[tuple[int, int], TextEdit] = {}
        for ref in source_file.imports:
            if ref.span in file_edits or ref.target is None:
                continue
            target_move = plan.get(ref.target)
            if target_move is None:
                continue

            try:
                _check_edge(classification, move.source, ref.target)
            except CrossFeatureImportError as e:
                errors.append(e)

            file_edits[ref.span] = TextEdit(
                start=ref.span[0],
                end=ref.span[1],
                replacement=target_specifier(scope, target_move.module_path),
            )

        if file_edits:
            edits[move.source] = tuple(sorted(file_edits.values()))
            rewritten += len(file_edits)

    logger.info("Rewrote %d import specifiers in %d files", rewritten, len(edits))
    return ImportRewrite(edits=MappingProxyType(edits), rewritten=rewritten, errors=tuple(errors))


def _check_edge(classification: Classification, source: str, target: str) -> None:
    source_feature = classification.feature_of(source)
    target_feature = classification.feature_of(target)
    if source_feature and target_feature and source_feature != target_feature:
        raise CrossFeatureImportError(
            f"{source} ({source_feature}) imports {target} ({target_feature})",
            [source, target],
        )
