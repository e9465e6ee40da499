"""Invariant validator: post-rewrite checks run before anything is committed."""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from featureslice.core.classifier import Classification
from featureslice.core.config import MigrationScope
from featureslice.core.exceptions import (
    CrossFeatureImportError,
    MigrationError,
    MissingPage,
    ParseError,
    ResidualPersistence,
    UnreferencedShared,
)
from featureslice.core.models import SHARED, SymbolKind
from featureslice.core.persistence import find_persistence_calls
from featureslice.core.planner import LayoutPlan
from featureslice.languages.base import LanguageParser
from featureslice.languages.typescript import TypeScriptParser, mask_comments, mask_strings

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of the post-pass checks."""

    errors: list[MigrationError] = field(default_factory=list)
    edges: dict[str, list[str]] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return not any(e.fatal for e in self.errors)


class InvariantValidator:
    """Checks the staged (rewritten) sources against the layout invariants.

    1. no cross-feature import edges remain
    2. no Feature-owned file references the local persistence interface,
       apart from call sites already flagged as out of scope
    3. every Feature owns a page reachable from its entry point
    4. SHARED files referenced by no Feature are flagged (non-fatal)
    """

    def __init__(self, scope: MigrationScope) -> None:
        self._scope = scope
        self._parser: LanguageParser = TypeScriptParser()
        identifiers = "|".join(re.escape(i) for i in sorted(scope.persistence.identifiers))
        self._residual = re.compile(rf"(?<![\w$])(?:{identifiers})\b") if identifiers else None

    def validate(
        self,
        classification: Classification,
        plan: LayoutPlan,
        staged: Mapping[str, str],
    ) -> ValidationResult:
        """Run every check. ``staged`` maps source paths to rewritten text."""
        result = ValidationResult()
        result.edges = self._rewritten_edges(plan, staged, result.errors)

        self._check_cross_feature(classification, result)
        self._check_residual_persistence(plan, staged, result)
        self._check_pages(plan, result)
        self._check_shared_referenced(plan, result)

        logger.info(
            "Validation %s (%d findings)",
            "passed" if result.passed else "failed",
            len(result.errors),
        )
        return result

    def _rewritten_edges(
        self, plan: LayoutPlan, staged: Mapping[str, str], errors: list[MigrationError]
    ) -> dict[str, list[str]]:
        """Re-extract imports from the rewritten text and resolve them by alias."""
        alias = self._scope.target_alias
        by_module = plan.by_module_path()
        edges: dict[str, list[str]] = {}
        for source, text in sorted(staged.items()):
            try:
                parsed = self._parser.parse_text(text, source)
            except ParseError as e:
                errors.append(e)
                continue
            targets: list[str] = []
            for imp in parsed.imports:
                if not imp.specifier.startswith(alias):
                    continue
                target = by_module.get(imp.specifier[len(alias) :])
                if target is not None and target not in targets:
                    targets.append(target)
            edges[source] = targets
        return edges

    def _check_cross_feature(
        self, classification: Classification, result: ValidationResult
    ) -> None:
        for source, targets in result.edges.items():
            source_feature = classification.feature_of(source)
            if source_feature is None:
                continue
            for target in targets:
                target_feature = classification.feature_of(target)
                if target_feature is not None and target_feature != source_feature:
                    result.errors.append(
                        CrossFeatureImportError(
                            f"Rewritten {source} ({source_feature}) still imports "
                            f"{target} ({target_feature})",
                            [source, target],
                        )
                    )

    def _check_residual_persistence(
        self, plan: LayoutPlan, staged: Mapping[str, str], result: ValidationResult
    ) -> None:
        if self._residual is None:
            return
        for move in plan:
            if move.owner == SHARED or move.source not in staged:
                continue
            text = staged[move.source]
            allowed = [
                call.span
                for call in find_persistence_calls(text, move.source, self._scope.persistence)
                if call.resource is not None and self._scope.resource_owner(call.resource) is None
            ]
            masked = mask_strings(mask_comments(text, move.source), move.source)
            masked = _blank_spans(masked, allowed)
            for m in self._residual.finditer(masked):
                line = masked.count("\n", 0, m.start()) + 1
                result.errors.append(
                    ResidualPersistence(
                        f"{move.destination}:{line} still references {m.group(0)}",
                        [move.source],
                    )
                )

    def _check_pages(self, plan: LayoutPlan, result: ValidationResult) -> None:
        for feature in self._scope.features:
            entries = []
            for entry in feature.entry_points:
                entry_move = plan.get(entry)
                if entry_move is not None and entry_move.owner == feature.name:
                    entries.append(entry)
            reached = _reachable(result.edges, entries)
            pages = [
                move.source
                for move in plan
                if move.owner == feature.name
                and move.kind == SymbolKind.PAGE
                and move.source in reached
            ]
            if not pages:
                result.errors.append(
                    MissingPage(
                        f"Feature {feature.name!r} owns no page reachable from its entry point",
                        list(feature.entry_points),
                    )
                )

    def _check_shared_referenced(self, plan: LayoutPlan, result: ValidationResult) -> None:
        feature_files = [move.source for move in plan if move.owner != SHARED]
        reached = _reachable(result.edges, feature_files)
        for move in plan:
            if move.owner == SHARED and move.source not in reached:
                result.errors.append(
                    UnreferencedShared(
                        f"{move.destination} is SHARED but no feature references it",
                        [move.source],
                    )
                )


def _reachable(edges: Mapping[str, list[str]], start: Iterable[str]) -> set[str]:
    seen = set(start)
    queue = deque(seen)
    while queue:
        for target in edges.get(queue.popleft(), []):
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


def _blank_spans(text: str, spans: list[tuple[int, int]]) -> str:
    chars = list(text)
    for start, end in spans:
        for i in range(start, end):
            if chars[i] != "\n":
                chars[i] = " "
    return "".join(chars)
