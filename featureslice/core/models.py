"""Data models for featureslice."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from featureslice.core.exceptions import MigrationError

SHARED = "SHARED"


class SymbolKind(Enum):
    """Kinds of exported symbols (and of the files that own them)."""

    COMPONENT = "component"
    PAGE = "page"
    HOOK = "hook"
    CONTEXT = "context"
    TYPE = "type"
    UTIL = "util"
    API_CALL = "api-call"
    ASSET = "asset"


class Operation(Enum):
    """Persistence operations a call site can perform."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    LIST = "list"


class RunStatus(Enum):
    """Completion state of a migration run."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Symbol:
    """An exported symbol, owned by exactly one file."""

    name: str
    file: str
    kind: SymbolKind
    local_name: str | None = None

    @property
    def qualified_name(self) -> str:
        return f"{self.file}#{self.name}"


@dataclass(frozen=True)
class ImportRef:
    """One imported name from one import statement.

    ``name`` is ``default``, a named export, or ``*`` for namespace,
    side-effect and dynamic imports. ``span`` covers the specifier text
    between the quotes.
    """

    source: str
    name: str
    specifier: str
    line: int
    span: tuple[int, int]
    target: str | None = None
    dynamic: bool = False

    @property
    def is_external(self) -> bool:
        return self.target is None


@dataclass(frozen=True)
class SourceFile:
    """An indexed file."""

    path: str
    kind: SymbolKind
    exports: tuple[Symbol, ...] = ()
    imports: tuple[ImportRef, ...] = ()
    content: str | None = None

    @property
    def is_asset(self) -> bool:
        return self.kind == SymbolKind.ASSET

    def exported_names(self) -> set[str]:
        return {s.name for s in self.exports}


@dataclass(frozen=True)
class UsageEdge:
    """A symbol used by a referencing file."""

    symbol: str
    referencing_file: str


@dataclass(frozen=True)
class PersistenceCall:
    """A local persistence call site."""

    operation: Operation
    resource: str | None
    file: str
    line: int
    span: tuple[int, int]
    args: tuple[str, ...] = ()
    callee: str = ""


@dataclass(frozen=True)
class ApiContractEntry:
    """A remote operation a persistence call can bind to."""

    name: str
    operation: Operation
    resource: str
    method: str
    path: str
    params: tuple[str, ...] = ()
    returns: str | None = None
    template: str | None = None

    @property
    def signature(self) -> str:
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class Violation:
    """A collected diagnostic."""

    code: str
    message: str
    fatal: bool
    paths: tuple[str, ...] = ()

    @classmethod
    def from_error(cls, error: MigrationError) -> Violation:
        """Create a Violation from a raised MigrationError."""
        return cls(
            code=type(error).__name__,
            message=str(error),
            fatal=error.fatal,
            paths=error.paths,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "fatal": self.fatal,
            "paths": list(self.paths),
        }


@dataclass(frozen=True)
class FileMove:
    """A planned move of one file."""

    source: str
    destination: str
    module_path: str
    owner: str
    kind: SymbolKind


@dataclass
class MigrationReport:
    """Machine-readable result of one run."""

    status: RunStatus = RunStatus.FAILED
    dry_run: bool = False
    moves: list[FileMove] = field(default_factory=list)
    unreached: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    substituted: list[dict[str, Any]] = field(default_factory=list)
    flagged: list[dict[str, Any]] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)

    def add(self, error: MigrationError) -> None:
        """Record a raised error as a violation."""
        self.violations.append(Violation.from_error(error))

    @property
    def fatal(self) -> list[Violation]:
        return [v for v in self.violations if v.fatal]

    @property
    def warnings(self) -> list[Violation]:
        return [v for v in self.violations if not v.fatal]

    def files_by_owner(self) -> dict[str, list[str]]:
        """Group moved source paths by Feature (or SHARED)."""
        grouped: dict[str, list[str]] = {}
        for move in self.moves:
            grouped.setdefault(move.owner, []).append(move.source)
        return {owner: sorted(paths) for owner, paths in sorted(grouped.items())}

    def to_dict(self) -> dict[str, Any]:
        """Deterministic dict form: sorted, no timestamps."""
        return {
            "status": self.status.value,
            "dry_run": self.dry_run,
            "files": [
                {
                    "source": m.source,
                    "destination": m.destination,
                    "classification": m.owner,
                    "kind": m.kind.value,
                }
                for m in sorted(self.moves, key=lambda m: m.source)
            ],
            "by_owner": self.files_by_owner(),
            "unreached": sorted(self.unreached),
            "cycles": sorted(sorted(c) for c in self.cycles),
            "substituted": sorted(self.substituted, key=lambda c: (c["file"], c["line"])),
            "flagged": sorted(self.flagged, key=lambda c: (c["file"], c["line"])),
            "warnings": [v.to_dict() for v in _sorted_violations(self.warnings)],
            "violations": [v.to_dict() for v in _sorted_violations(self.fatal)],
        }

    def __repr__(self) -> str:
        return (
            f"MigrationReport(status={self.status.value}, files={len(self.moves)}, "
            f"substituted={len(self.substituted)}, warnings={len(self.warnings)}, "
            f"fatal={len(self.fatal)})"
        )


def _sorted_violations(violations: list[Violation]) -> list[Violation]:
    return sorted(violations, key=lambda v: (v.code, v.paths, v.message))
