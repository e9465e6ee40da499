"""TypeScript/JavaScript extractor for exports, imports and call arguments.

This is not a full parser. Comments are blanked out (keeping offsets), then
module-level import/export forms are matched with regular expressions. That
is enough to build a file reference graph and to rewrite specifiers in
place.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from pathlib import Path, PurePosixPath

from featureslice.core.exceptions import ParseError
from featureslice.core.models import SymbolKind
from featureslice.languages.models import ParsedExport, ParsedImport, ParseResult

SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")

_SPEC = r"(?P<quote>['\"])(?P<spec>[^'\"\n]+)(?P=quote)"

_IMPORT_FROM = re.compile(
    r"\bimport\s+(?:type\s+)?"
    r"(?P<clause>[\w$]+(?:\s*,\s*(?:\{[^}]*\}|\*\s*as\s+[\w$]+))?|\{[^}]*\}|\*\s*as\s+[\w$]+)"
    r"\s*from\s*" + _SPEC
)
_EXPORT_FROM = re.compile(
    r"\bexport\s+(?:type\s+)?(?P<clause>\*(?:\s*as\s+[\w$]+)?|\{[^}]*\})\s*from\s*" + _SPEC
)
_SIDE_EFFECT = re.compile(r"\bimport\s*" + _SPEC)
_DYNAMIC = re.compile(r"\b(?:import|require)\s*\(\s*" + _SPEC + r"\s*\)")

_EXPORT_DECL = re.compile(
    r"\bexport\s+(?P<default>default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?"
    r"(?P<decl>(?:function|class|const\s+enum|const|let|var|interface|type|enum)\b(?:\s*\*)?)"
    r"(?:\s*(?<=[\s*])(?P<name>[\w$]+))?"
)
_EXPORT_DEFAULT_NAME = re.compile(
    r"\bexport\s+default\s+(?P<name>[\w$]+)\s*;?[ \t]*\r?$", re.MULTILINE
)
_EXPORT_LIST = re.compile(r"\bexport\s+(?:type\s+)?\{(?P<names>[^}]*)\}(?!\s*from)")
_EXPORT_DEFAULT = re.compile(r"\bexport\s+default\b")

_TYPE_DECLARATIONS = {"interface", "type", "enum", "const enum"}
_NOT_A_NAME = {"extends", "implements", "function", "class", "async"}
_HOOK_NAME = re.compile(r"^use[A-Z0-9]")

# Lower ranks decide a file's kind when it has no default export.
_KIND_RANK = {
    SymbolKind.PAGE: 0,
    SymbolKind.COMPONENT: 1,
    SymbolKind.CONTEXT: 1,
    SymbolKind.HOOK: 1,
    SymbolKind.UTIL: 2,
    SymbolKind.API_CALL: 2,
    SymbolKind.TYPE: 3,
    SymbolKind.ASSET: 4,
}

_DIRECTORY_KINDS = {
    "pages": SymbolKind.PAGE,
    "views": SymbolKind.PAGE,
    "components": SymbolKind.COMPONENT,
    "hooks": SymbolKind.HOOK,
    "context": SymbolKind.CONTEXT,
    "contexts": SymbolKind.CONTEXT,
    "types": SymbolKind.TYPE,
    "utils": SymbolKind.UTIL,
    "lib": SymbolKind.UTIL,
    "api": SymbolKind.API_CALL,
    "services": SymbolKind.API_CALL,
}


class TypeScriptParser:
    """Extractor for TypeScript and JavaScript modules."""

    def supports(self, file: Path) -> bool:
        """Check if this parser supports the given file."""
        return file.suffix in SOURCE_EXTENSIONS

    def parse(self, file: Path, relative: str) -> ParseResult:
        """Read and parse a file. ``relative`` is its path under the source root."""
        try:
            # read_text() would translate CRLF line endings.
            text = file.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"Cannot read {relative}: {e}", [relative]) from e
        return self.parse_text(text, relative)

    def parse_text(self, text: str, relative: str) -> ParseResult:
        """Parse source text."""
        path = PurePosixPath(relative)
        masked = mask_comments(text, relative)
        lines = _LineIndex(masked)

        exports = _extract_exports(masked, path, lines)
        imports = _extract_imports(masked, lines)

        return ParseResult(
            file=Path(relative),
            exports=exports,
            imports=imports,
            kind=file_kind(exports, path),
            source=text,
        )


def infer_kind(name: str, declaration: str, path: PurePosixPath) -> SymbolKind:
    """Infer a symbol's kind from its name, declaration keyword and location."""
    if declaration in _TYPE_DECLARATIONS:
        return SymbolKind.TYPE
    directories = set(path.parts[:-1])
    is_pascal = name[:1].isupper()
    if _HOOK_NAME.match(name):
        return SymbolKind.HOOK
    if is_pascal and (name.endswith("Context") or name.endswith("Provider")):
        return SymbolKind.CONTEXT
    if directories & {"api", "services"}:
        return SymbolKind.API_CALL
    if is_pascal and path.suffix in (".tsx", ".jsx"):
        if directories & {"pages", "views"} or name.endswith("Page"):
            return SymbolKind.PAGE
        return SymbolKind.COMPONENT
    return SymbolKind.UTIL


def file_kind(exports: list[ParsedExport], path: PurePosixPath) -> SymbolKind:
    """The kind of a file: its default export's kind, else its strongest export's.

    A props interface next to a component does not make the file a type
    module; TYPE wins only when every export is a type. Files without exports
    fall back to their directory name, then to their stem.
    """
    for export in exports:
        if export.name == "default":
            return export.kind
    if exports:
        return min(exports, key=lambda e: _KIND_RANK[e.kind]).kind
    for directory in reversed(path.parts[:-1]):
        if directory in _DIRECTORY_KINDS:
            return _DIRECTORY_KINDS[directory]
    return infer_kind(path.stem, "", path)


def mask_comments(text: str, relative: str = "<text>") -> str:
    """Blank out comments, keeping string literals and all offsets."""
    out = list(text)
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch in "'\"`":
            i = skip_string(text, i, relative)
        elif text.startswith("//", i):
            end = text.find("\n", i)
            end = n if end == -1 else end
            _blank(out, i, end)
            i = end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise ParseError(f"Unterminated block comment in {relative}", [relative])
            _blank(out, i, end + 2)
            i = end + 2
        else:
            i += 1
    return "".join(out)


def mask_strings(text: str, relative: str = "<text>") -> str:
    """Blank the contents of string literals, keeping quotes and offsets.

    Template literal text is blanked too, but ``${...}`` expressions are kept
    since they are code. Run it on comment-masked text.
    """
    out = list(text)
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch == "`":
            i = _mask_template(text, out, i, relative)
        elif ch in "'\"":
            end = skip_string(text, i, relative)
            closed = end - 1 > i and text[end - 1] == ch
            _blank(out, i + 1, end - 1 if closed else end)
            i = end
        else:
            i += 1
    return "".join(out)


def _mask_template(text: str, out: list[str], start: int, relative: str) -> int:
    i, n = start + 1, len(text)
    while i < n:
        ch = text[i]
        if ch == "`":
            return i + 1
        if ch == "\\":
            _blank(out, i, min(i + 2, n))
            i += 2
        elif text.startswith("${", i):
            depth = 0
            while i < n:
                c = text[i]
                if c in "'\"`":
                    i = skip_string(text, i, relative)
                    continue
                if c == "{":
                    depth += 1
                elif c == "}":
                    depth -= 1
                    if depth == 0:
                        i += 1
                        break
                i += 1
        else:
            _blank(out, i, i + 1)
            i += 1
    raise ParseError(f"Unterminated template literal in {relative}", [relative])


def skip_string(text: str, start: int, relative: str = "<text>") -> int:
    """Return the offset just past the string literal starting at ``start``."""
    quote = text[start]
    i, n = start + 1, len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            # Not a real string (regex literal or JSX text); stop at the line end.
            return i
        i += 1
    if quote == "`":
        raise ParseError(f"Unterminated template literal in {relative}", [relative])
    return n


def scan_arguments(text: str, open_paren: int) -> tuple[list[tuple[int, int]], int]:
    """Split the call arguments starting at ``text[open_paren] == "("``.

    Returns the stripped span of each top-level argument and the offset of
    the closing parenthesis. Raises ValueError if the call is unbalanced.
    """
    depth = 0
    spans: list[tuple[int, int]] = []
    arg_start = open_paren + 1
    i, n = open_paren, len(text)
    while i < n:
        ch = text[i]
        if ch in "'\"`":
            i = skip_string(text, i)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth == 0:
                _append_span(text, spans, arg_start, i)
                return spans, i
        elif ch == "," and depth == 1:
            _append_span(text, spans, arg_start, i)
            arg_start = i + 1
        i += 1
    raise ValueError(f"Unbalanced call at offset {open_paren}")


def _append_span(text: str, spans: list[tuple[int, int]], start: int, end: int) -> None:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start < end:
        spans.append((start, end))


def _blank(out: list[str], start: int, end: int) -> None:
    for j in range(start, end):
        if out[j] != "\n":
            out[j] = " "


class _LineIndex:
    """Offset to 1-based line number lookups."""

    def __init__(self, text: str) -> None:
        self._newlines = [i for i, ch in enumerate(text) if ch == "\n"]

    def line(self, offset: int) -> int:
        return bisect_right(self._newlines, offset - 1) + 1


def _extract_exports(masked: str, path: PurePosixPath, lines: _LineIndex) -> list[ParsedExport]:
    found: list[tuple[int, ParsedExport]] = []
    seen: set[str] = set()

    def add(offset: int, name: str, declaration: str, local_name: str | None = None) -> None:
        if name in seen:
            return
        seen.add(name)
        kind_name = local_name or name
        if name == "default" and local_name is None:
            kind_name = path.stem
        found.append(
            (
                offset,
                ParsedExport(
                    name=name,
                    kind=infer_kind(kind_name, declaration, path),
                    line=lines.line(offset),
                    declaration=declaration,
                    local_name=local_name,
                ),
            )
        )

    for m in _EXPORT_DECL.finditer(masked):
        declaration = " ".join(m.group("decl").replace("*", "").split())
        name = m.group("name")
        if name in _NOT_A_NAME:
            name = None
        if m.group("default"):
            add(m.start(), "default", declaration, name)
        elif name:
            add(m.start(), name, declaration)

    for m in _EXPORT_DEFAULT_NAME.finditer(masked):
        name = m.group("name")
        if name not in _NOT_A_NAME:
            add(m.start(), "default", "", name)

    for m in _EXPORT_LIST.finditer(masked):
        for local, exported in _clause_names(m.group("names")):
            add(m.start(), exported, "", local)

    bare_default = _EXPORT_DEFAULT.search(masked)
    if bare_default and "default" not in seen:
        add(bare_default.start(), "default", "")

    return [export for _, export in sorted(found, key=lambda item: item[0])]


def _extract_imports(masked: str, lines: _LineIndex) -> list[ParsedImport]:
    found: list[ParsedImport] = []

    for m in _IMPORT_FROM.finditer(masked):
        found.append(_make_import(m, _import_names(m.group("clause")), lines))
    for m in _EXPORT_FROM.finditer(masked):
        clause = m.group("clause")
        if clause.startswith("*"):
            names: tuple[str, ...] = ("*",)
        else:
            names = tuple(local for local, _ in _clause_names(clause.strip("{}")))
        found.append(_make_import(m, names, lines, reexport=True))
    for m in _SIDE_EFFECT.finditer(masked):
        found.append(_make_import(m, ("*",), lines))
    for m in _DYNAMIC.finditer(masked):
        found.append(_make_import(m, ("*",), lines, dynamic=True))

    found.sort(key=lambda imp: imp.span)
    return found


def _make_import(
    m: re.Match[str],
    names: tuple[str, ...],
    lines: _LineIndex,
    reexport: bool = False,
    dynamic: bool = False,
) -> ParsedImport:
    return ParsedImport(
        specifier=m.group("spec"),
        names=names or ("*",),
        line=lines.line(m.start()),
        span=m.span("spec"),
        reexport=reexport,
        dynamic=dynamic,
    )


def _import_names(clause: str) -> tuple[str, ...]:
    """Imported names of an import clause (``X, { A as B }`` -> default, A)."""
    names: list[str] = []
    clause = clause.strip()
    if clause.startswith("{"):
        braces = clause
    elif "," in clause:
        _, braces = clause.split(",", 1)
        names.append("default")
        braces = braces.strip()
    else:
        braces = ""
        names.append("*" if clause.startswith("*") else "default")
    if braces.startswith("*"):
        names.append("*")
    elif braces:
        names.extend(local for local, _ in _clause_names(braces.strip("{}")))
    return tuple(names)


def _clause_names(body: str) -> list[tuple[str, str]]:
    """Parse ``a, b as c, type d`` into (original, exported) pairs."""
    pairs: list[tuple[str, str]] = []
    for part in body.split(","):
        words = part.split()
        if words and words[0] == "type" and len(words) > 1:
            words = words[1:]
        if not words:
            continue
        if len(words) >= 3 and words[1] == "as":
            pairs.append((words[0], words[2]))
        else:
            pairs.append((words[0], words[0]))
    return pairs
