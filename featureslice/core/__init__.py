"""
Core module: scope, data models, exceptions, and the migration passes.

Scope (config.py):
    - MigrationScope: Immutable run configuration loaded from TOML
    - Feature: An in-scope functional area with entry points and resources

Models (models.py):
    - SourceFile / Symbol / ImportRef: The indexed source tree
    - FileMove: One planned move
    - MigrationReport: Machine-readable outcome of a run

Exceptions (exceptions.py):
    - FeatureSliceError: Base exception for all featureslice errors
    - ConfigError: Invalid configuration, raised immediately
    - MigrationError: Per-item problems collected into the report

Engine (engine.py, imported directly to keep this package free of the
language extractors):
    - Migration: index -> classify -> plan -> rewrite -> validate -> commit
"""

from featureslice.core.config import Feature, MigrationScope, load_scope, scope_from_dict
from featureslice.core.exceptions import ConfigError, FeatureSliceError, MigrationError
from featureslice.core.models import (
    SHARED,
    FileMove,
    MigrationReport,
    RunStatus,
    SourceFile,
    SymbolKind,
    Violation,
)

__all__ = [
    # Scope
    "Feature",
    "MigrationScope",
    "load_scope",
    "scope_from_dict",
    # Models
    "SHARED",
    "FileMove",
    "MigrationReport",
    "RunStatus",
    "SourceFile",
    "SymbolKind",
    "Violation",
    # Exceptions
    "ConfigError",
    "FeatureSliceError",
    "MigrationError",
]
