"""featureslice custom exceptions."""

from __future__ import annotations

from collections.abc import Iterable


class FeatureSliceError(Exception):
    """Base exception for featureslice errors."""


class ConfigError(FeatureSliceError):
    """The migration configuration is invalid."""


class MigrationError(FeatureSliceError):
    """A problem found while migrating.

    Passes raise these per item; the engine collects them into violations.
    Fatal errors block the commit, non-fatal ones are only reported.
    """

    fatal = True

    def __init__(self, message: str, paths: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.paths: tuple[str, ...] = tuple(paths)


class ParseError(MigrationError):
    """Error reading or parsing a source file."""

    fatal = False


class DeadCodeWarning(MigrationError):
    """File is reached by no Feature and is not retained."""

    fatal = False


class OutOfScopePersistenceCall(MigrationError):
    """Persistence call for a resource outside the in-scope Features."""

    fatal = False


class UnreferencedShared(MigrationError):
    """SHARED file that no Feature references after the rewrite."""

    fatal = False


class PlanConflict(MigrationError):
    """Two or more files planned to the same destination."""


class CrossFeatureImportError(MigrationError):
    """A Feature-owned file imports another Feature's file."""


class BoundaryViolation(MigrationError):
    """An in-scope file imports from an excluded collaborator folder."""


class MissingEntryPoint(MigrationError):
    """A Feature entry point is not in the source index."""


class UnmappedPersistenceCall(MigrationError):
    """Persistence call with no matching contract entry."""


class ContractConflict(MigrationError):
    """More than one contract entry for the same operation and resource."""


class ContractShapeMismatch(MigrationError):
    """Call arguments do not match the contract entry's request shape."""


class ResidualPersistence(MigrationError):
    """A Feature file still references the local persistence interface."""


class MissingPage(MigrationError):
    """A Feature owns no page reachable from its entry point."""
