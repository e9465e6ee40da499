"""Source index: discovers, parses and resolves the files of the source tree."""

from __future__ import annotations

import fnmatch
import logging
import posixpath
from collections.abc import Callable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from featureslice.core.config import MigrationScope
from featureslice.core.exceptions import ParseError
from featureslice.core.models import ImportRef, SourceFile, Symbol, SymbolKind
from featureslice.languages.base import LanguageParser
from featureslice.languages.models import ParseResult
from featureslice.languages.typescript import SOURCE_EXTENSIONS, TypeScriptParser

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]

ASSET_EXTENSIONS = (
    ".css",
    ".scss",
    ".sass",
    ".less",
    ".svg",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".json",
)

DEFAULT_EXCLUDES = [
    "node_modules",
    "dist",
    "build",
    "coverage",
    "__snapshots__",
]


@dataclass(frozen=True)
class SourceIndex:
    """Read-only result of indexing: every file, keyed by relative path."""

    root: Path
    files: Mapping[str, SourceFile]
    excluded_paths: frozenset[str]
    errors: tuple[ParseError, ...] = ()

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __iter__(self) -> Iterator[SourceFile]:
        return iter(self.files.values())

    def __len__(self) -> int:
        return len(self.files)

    def get(self, path: str) -> SourceFile | None:
        return self.files.get(path)

    def __repr__(self) -> str:
        return (
            f"SourceIndex(files={len(self.files)}, excluded={len(self.excluded_paths)}, "
            f"errors={len(self.errors)})"
        )


class Indexer:
    """Coordinates discovery, parallel parsing and import resolution."""

    def __init__(self, scope: MigrationScope) -> None:
        """Initialize with a migration scope."""
        self._scope = scope
        self._parser: LanguageParser = TypeScriptParser()

    def index(self, on_progress: ProgressCallback | None = None) -> SourceIndex:
        """Index the scope's source root.

        Uses a two-phase approach:
        1. Parse every source file independently, with bounded parallelism
        2. Resolve import specifiers once every path is known

        Unreadable files are reported as ParseErrors and left out of the index.

        Args:
            on_progress: Optional callback for progress updates (file, current, total)

        Returns:
            SourceIndex with every parsed file
        """
        root = self._scope.root
        in_scope, excluded = self._discover(root)
        sources = [p for p in in_scope if self._parser.supports(root / p)]
        assets = [p for p in in_scope if p.endswith(ASSET_EXTENSIONS)]
        total = len(sources)

        errors: list[ParseError] = []
        results: dict[str, ParseResult] = {}

        with ThreadPoolExecutor(max_workers=self._scope.jobs) as pool:
            futures = {
                path: pool.submit(self._parser.parse, root / path, path) for path in sources
            }
            for i, path in enumerate(sources):
                try:
                    results[path] = futures[path].result()
                except ParseError as e:
                    logger.warning("Excluding unparseable file: %s", e)
                    errors.append(e)
                if on_progress:
                    on_progress(path, i + 1, total)

        known = set(results) | set(assets) | excluded
        files: dict[str, SourceFile] = {}
        for path in sorted(results):
            source_file, unresolved = self._build_file(path, results[path], known)
            files[path] = source_file
            errors.extend(unresolved)
        for path in assets:
            files[path] = SourceFile(path=path, kind=SymbolKind.ASSET)

        index = SourceIndex(
            root=root,
            files=MappingProxyType(dict(sorted(files.items()))),
            excluded_paths=frozenset(excluded),
            errors=tuple(errors),
        )
        logger.info("Indexed %s", index)
        return index

    def _discover(self, root: Path) -> tuple[list[str], set[str]]:
        """List in-scope file paths (sorted) and excluded collaborator paths."""
        in_scope: list[str] = []
        excluded: set[str] = set()
        for file in sorted(root.rglob("*")):
            if not file.is_file():
                continue
            relative = file.relative_to(root).as_posix()
            if self._should_skip(relative):
                continue
            if self._scope.is_excluded(relative):
                excluded.add(relative)
                continue
            if relative.endswith(SOURCE_EXTENSIONS + ASSET_EXTENSIONS):
                in_scope.append(relative)
        return in_scope, excluded

    def _should_skip(self, path: str) -> bool:
        """Check if a path is hidden or matches a default build-folder pattern."""
        for part in path.split("/"):
            # Skip hidden files and directories
            if part.startswith("."):
                return True
            for pattern in DEFAULT_EXCLUDES:
                if fnmatch.fnmatch(part, pattern):
                    return True
        return False

    def _build_file(
        self, path: str, result: ParseResult, known: set[str]
    ) -> tuple[SourceFile, list[ParseError]]:
        """Create the SourceFile for a parse result, resolving its imports."""
        unresolved: list[ParseError] = []
        imports: list[ImportRef] = []
        for parsed in result.imports:
            target = resolve_specifier(parsed.specifier, path, known, self._scope.source_alias)
            if target is None and is_local_specifier(parsed.specifier, self._scope.source_alias):
                unresolved.append(
                    ParseError(
                        f"Cannot resolve '{parsed.specifier}' imported from {path}:{parsed.line}",
                        [path],
                    )
                )
            for name in parsed.names:
                imports.append(
                    ImportRef(
                        source=path,
                        name=name,
                        specifier=parsed.specifier,
                        line=parsed.line,
                        span=parsed.span,
                        target=target,
                        dynamic=parsed.dynamic,
                    )
                )

        exports = tuple(
            Symbol(name=e.name, file=path, kind=e.kind, local_name=e.local_name)
            for e in result.exports
        )
        return (
            SourceFile(
                path=path,
                kind=result.kind,
                exports=exports,
                imports=tuple(imports),
                content=result.source,
            ),
            unresolved,
        )


def is_local_specifier(specifier: str, alias: str) -> bool:
    """Relative and aliased specifiers point into the tree; others are packages."""
    return specifier.startswith((".", "/")) or bool(alias) and specifier.startswith(alias)


def resolve_specifier(specifier: str, importer: str, known: set[str], alias: str) -> str | None:
    """Resolve an import specifier to a known relative path.

    Tries the exact path, then each source extension, then ``/index.*``.
    Returns None for package imports and for paths outside the tree.
    """
    if specifier.startswith("."):
        base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
    elif alias and specifier.startswith(alias):
        base = posixpath.normpath(specifier[len(alias) :])
    else:
        return None
    if base.startswith("..") or base == ".":
        return None

    candidates = [base]
    candidates.extend(base + ext for ext in SOURCE_EXTENSIONS)
    candidates.extend(f"{base}/index{ext}" for ext in SOURCE_EXTENSIONS)
    for candidate in candidates:
        if candidate in known:
            return candidate
    return None
