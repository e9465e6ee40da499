"""Run orchestration: index, classify, plan, rewrite, validate, commit."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from featureslice import __version__
from featureslice.core.classifier import Classification, classify, explain
from featureslice.core.config import MigrationScope
from featureslice.core.exceptions import ConfigError, MigrationError, UnmappedPersistenceCall
from featureslice.core.graph import UsageGraph, build_usage_graph
from featureslice.core.indexer import Indexer, ProgressCallback, SourceIndex
from featureslice.core.models import MigrationReport, RunStatus
from featureslice.core.persistence import Substitution, substitute_persistence
from featureslice.core.planner import LayoutPlan, plan_layout
from featureslice.core.rewriter import ImportRewrite, apply_edits, rewrite_imports
from featureslice.core.staging import StagingArea
from featureslice.core.validator import InvariantValidator

logger = logging.getLogger(__name__)

StageCallback = Callable[[str], None]

# Written into every committed tree; only such a tree may be replaced.
OUTPUT_MARKER = ".featureslice"


@dataclass(frozen=True)
class Analysis:
    """Everything computed before any output is written."""

    index: SourceIndex
    graph: UsageGraph
    classification: Classification
    plan: LayoutPlan

    @property
    def errors(self) -> list[MigrationError]:
        return [*self.index.errors, *self.classification.errors, *self.plan.errors]


class Migration:
    """One migration run over one scope.

    Every pass collects its problems instead of stopping at the first one,
    so a failed run reports the complete list. Output is committed only when
    no fatal violation was collected.
    """

    def __init__(self, scope: MigrationScope) -> None:
        self._scope = scope

    @property
    def scope(self) -> MigrationScope:
        return self._scope

    def analyze(self, on_progress: ProgressCallback | None = None) -> Analysis:
        """Index the source tree, then classify and plan every file."""
        index = Indexer(self._scope).index(on_progress=on_progress)
        graph = build_usage_graph(index)
        classification = classify(self._scope, graph)
        plan = plan_layout(self._scope, index, classification)
        return Analysis(index=index, graph=graph, classification=classification, plan=plan)

    def explain(self, path: str, analysis: Analysis | None = None) -> dict[str, Any]:
        """Reaching set and import chains behind one file's classification."""
        if analysis is None:
            analysis = self.analyze()
        if path not in analysis.graph:
            raise ConfigError(f"{path} is not an indexed file under {self._scope.root}")
        return explain(self._scope, analysis.graph, analysis.classification, path)

    def run(
        self,
        destination: Path,
        dry_run: bool = False,
        on_progress: ProgressCallback | None = None,
        on_stage: StageCallback | None = None,
    ) -> MigrationReport:
        """Migrate the source tree into ``destination``.

        Args:
            destination: Directory receiving the feature-sliced tree. Replaced
                as a whole on success, untouched on failure. An existing
                non-empty directory must come from an earlier run.
            dry_run: Compute and validate everything but write nothing.
            on_progress: Optional callback for parse progress (file, current, total)
            on_stage: Optional callback naming each pass as it starts

        Returns:
            MigrationReport with the status and every collected violation
        """
        destination = destination.resolve()
        self._check_destination(destination)

        def stage(name: str) -> None:
            logger.info("Pass: %s", name)
            if on_stage:
                on_stage(name)

        report = MigrationReport(dry_run=dry_run)

        stage("index")
        analysis = self.analyze(on_progress=on_progress)
        for error in analysis.errors:
            report.add(error)
        report.moves = sorted(analysis.plan, key=lambda m: m.source)
        report.unreached = list(analysis.classification.unreached)
        report.cycles = [list(c) for c in analysis.classification.cycles]

        stage("rewrite")
        imports = rewrite_imports(
            self._scope, analysis.index, analysis.classification, analysis.plan
        )
        substitution = substitute_persistence(self._scope, analysis.index, analysis.plan)
        for error in (*imports.errors, *substitution.errors):
            report.add(error)
        _record_calls(report, substitution)
        staged = self._compose(analysis, imports, substitution, report)

        stage("validate")
        validation = InvariantValidator(self._scope).validate(
            analysis.classification, analysis.plan, staged
        )
        for error in validation.errors:
            report.add(error)

        if report.fatal:
            report.status = RunStatus.FAILED
            logger.error("Migration failed with %d fatal violations", len(report.fatal))
            return report

        report.status = RunStatus.SUCCESS
        if dry_run:
            logger.info("Dry run: nothing written")
            return report

        stage("commit")
        self._commit(destination, analysis, staged)
        return report

    def _check_destination(self, destination: Path) -> None:
        """Refuse any destination whose replacement could destroy input or foreign files."""
        root = self._scope.root.resolve()
        if destination == root or root in destination.parents:
            raise ConfigError(f"Destination {destination} is inside the source root {root}")
        if destination in root.parents:
            raise ConfigError(f"Destination {destination} contains the source root {root}")
        config = self._scope.config_path
        if config is not None and destination in config.parents:
            raise ConfigError(f"Destination {destination} contains the config file {config}")
        if not destination.exists():
            return
        if not destination.is_dir():
            raise ConfigError(f"Destination {destination} exists and is not a directory")
        if any(destination.iterdir()) and not (destination / OUTPUT_MARKER).is_file():
            raise ConfigError(
                f"Destination {destination} is not empty and was not written by featureslice"
            )

    def _compose(
        self,
        analysis: Analysis,
        imports: ImportRewrite,
        substitution: Substitution,
        report: MigrationReport,
    ) -> dict[str, str]:
        """Apply both edit sets to each planned source file's original text."""
        staged: dict[str, str] = {}
        for move in analysis.plan:
            source_file = analysis.index.get(move.source)
            if source_file is None or source_file.content is None:
                continue
            edits = (*imports.edits_for(move.source), *substitution.edits_for(move.source))
            try:
                staged[move.source] = apply_edits(source_file.content, edits)
            except ValueError as e:
                report.add(
                    UnmappedPersistenceCall(
                        f"Cannot rewrite {move.source}: {e}", [move.source]
                    )
                )
                staged[move.source] = source_file.content
        return staged

    def _commit(self, destination: Path, analysis: Analysis, staged: dict[str, str]) -> None:
        with StagingArea(destination) as staging:
            for move in analysis.plan:
                if move.source in staged:
                    staging.write_text(move.destination, staged[move.source])
                else:
                    staging.write_bytes(
                        move.destination, (self._scope.root / move.source).read_bytes()
                    )
            staging.write_text(OUTPUT_MARKER, f"featureslice {__version__}\n")
            staging.commit()
        logger.info("Wrote %d files to %s", len(analysis.plan), destination)


def _record_calls(report: MigrationReport, substitution: Substitution) -> None:
    for call, entry in substitution.substituted:
        report.substituted.append(
            {
                "file": call.file,
                "line": call.line,
                "operation": call.operation.value,
                "resource": call.resource,
                "entry": entry.name,
                "signature": entry.signature,
            }
        )
    for call in substitution.flagged:
        report.flagged.append(
            {
                "file": call.file,
                "line": call.line,
                "operation": call.operation.value,
                "resource": call.resource,
            }
        )
