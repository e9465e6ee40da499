"""Data models for language parser results."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from featureslice.core.models import SymbolKind


@dataclass
class ParsedExport:
    """An exported name extracted from source code (before indexing)."""

    name: str
    kind: SymbolKind
    line: int
    declaration: str = ""
    local_name: str | None = None


@dataclass
class ParsedImport:
    """An import statement extracted from source code (before resolution).

    ``names`` holds the imported names: ``default``, named exports, or ``*``.
    ``span`` covers the specifier between its quotes.
    """

    specifier: str
    names: tuple[str, ...]
    line: int
    span: tuple[int, int]
    reexport: bool = False
    dynamic: bool = False


@dataclass
class ParseResult:
    """Result of parsing a file."""

    file: Path
    exports: list[ParsedExport]
    imports: list[ParsedImport]
    kind: SymbolKind
    source: str = ""
