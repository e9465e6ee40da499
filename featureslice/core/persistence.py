"""Persistence substitution: local storage calls -> remote contract calls."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from featureslice.core.config import MigrationScope, PersistenceInterface
from featureslice.core.exceptions import (
    ContractConflict,
    ContractShapeMismatch,
    MigrationError,
    OutOfScopePersistenceCall,
    UnmappedPersistenceCall,
)
from featureslice.core.indexer import SourceIndex
from featureslice.core.models import ApiContractEntry, ImportRef, Operation, PersistenceCall
from featureslice.core.planner import LayoutPlan
from featureslice.core.rewriter import TextEdit
from featureslice.languages.typescript import mask_comments, scan_arguments

logger = logging.getLogger(__name__)

_STRING_LITERAL = re.compile(r"""^(['"`])([^'"`$\\]*)\1$""")
_DIRECTIVE_PROLOGUE = re.compile(r"""\A(?:\s*(['"])use [^'"\n]+\1[ \t]*;?)+""")

BindingKey = tuple[Operation, str]

# What the replaced local call evaluated to; the caller is written against it.
LOCAL_RESULTS = {
    Operation.READ: "string | null",
    Operation.WRITE: "void",
    Operation.DELETE: "void",
    Operation.LIST: "string[]",
}


@dataclass(frozen=True)
class Substitution:
    """Result of binding persistence calls to the contract."""

    edits: Mapping[str, tuple[TextEdit, ...]]
    substituted: tuple[tuple[PersistenceCall, ApiContractEntry], ...] = ()
    flagged: tuple[PersistenceCall, ...] = ()
    errors: tuple[MigrationError, ...] = field(default=(), compare=False)

    def edits_for(self, source: str) -> tuple[TextEdit, ...]:
        return self.edits.get(source, ())


def _call_pattern(interface: PersistenceInterface) -> re.Pattern[str]:
    callees = sorted(interface.calls, key=len, reverse=True)
    alternatives = "|".join(re.escape(c) for c in callees)
    return re.compile(rf"(?<![\w$.])(?:window\.)?(?P<callee>{alternatives})\s*\(")


def find_persistence_calls(
    text: str, path: str, interface: PersistenceInterface
) -> list[PersistenceCall]:
    """Find every call to the local persistence interface in ``text``."""
    masked = mask_comments(text, path)
    calls: list[PersistenceCall] = []
    for m in _call_pattern(interface).finditer(masked):
        try:
            arg_spans, close = scan_arguments(masked, m.end() - 1)
        except ValueError:
            logger.warning("Unbalanced persistence call in %s at offset %d", path, m.start())
            continue
        args = [text[start:end] for start, end in arg_spans]
        operation = interface.calls[m.group("callee")]
        resource = None
        if operation == Operation.LIST:
            # Object.keys(props) is not a storage listing.
            if not args or _storage_object(args[0]) not in interface.identifiers:
                continue
            resource = interface.list_resource
        elif args:
            literal = _STRING_LITERAL.match(args[0])
            if literal:
                resource = literal.group(2)
        calls.append(
            PersistenceCall(
                operation=operation,
                resource=resource,
                file=path,
                line=masked.count("\n", 0, m.start()) + 1,
                span=(m.start(), close + 1),
                args=tuple(args[1:]),
                callee=m.group("callee"),
            )
        )
    return calls


def _storage_object(arg: str) -> str:
    return arg.removeprefix("window.").strip()


def result_shape(text: str | None) -> frozenset[str]:
    """Normalize a declared TS result type: ``null | string`` == ``string|null``."""
    parts = {part.strip() for part in (text or "void").split("|")}
    return frozenset("void" if part in ("undefined", "") else part for part in parts)


def bind_contract(
    contract: tuple[ApiContractEntry, ...],
) -> tuple[dict[BindingKey, ApiContractEntry], list[MigrationError]]:
    """Index contract entries by (operation, resource).

    A pair declared more than once is a ContractConflict and stays unbound,
    so all call sites of a pair always resolve to the same entry.
    """
    grouped: dict[BindingKey, list[ApiContractEntry]] = {}
    for entry in contract:
        grouped.setdefault((entry.operation, entry.resource), []).append(entry)

    binding: dict[BindingKey, ApiContractEntry] = {}
    errors: list[MigrationError] = []
    for (operation, resource), entries in grouped.items():
        if len(entries) > 1:
            names = ", ".join(e.name for e in entries)
            errors.append(
                ContractConflict(
                    f"{len(entries)} contract entries for {operation.value} {resource!r}: {names}"
                )
            )
            continue
        binding[(operation, resource)] = entries[0]
    return binding, errors


def render_call(scope: MigrationScope, entry: ApiContractEntry, call: PersistenceCall) -> str:
    """Render the replacement text, keeping the caller's argument expressions."""
    template = entry.template or scope.persistence.call_template
    return template.format(
        name=entry.name,
        args=", ".join(call.args),
        method=entry.method,
        path=entry.path,
        resource=entry.resource,
    )


def substitute_persistence(
    scope: MigrationScope, index: SourceIndex, plan: LayoutPlan
) -> Substitution:
    """Bind every in-scope persistence call of the planned files to the contract.

    Calls for resources no in-scope Feature owns are left untouched and
    flagged. Calls with no entry, a non-literal key, or an argument list that
    does not match the entry's request shape are fatal.
    """
    binding, errors = bind_contract(scope.contract)
    conflicted = {(e.operation, e.resource) for e in scope.contract} - binding.keys()

    edits: dict[str, tuple[TextEdit, ...]] = {}
    substituted: list[tuple[PersistenceCall, ApiContractEntry]] = []
    flagged: list[PersistenceCall] = []

    for move in plan:
        source_file = index.get(move.source)
        if source_file is None or source_file.content is None:
            continue

        file_edits: list[TextEdit] = []
        for call in find_persistence_calls(
            source_file.content, move.source, scope.persistence
        ):
            try:
                entry = _match(scope, binding, conflicted, call)
            except OutOfScopePersistenceCall as e:
                logger.info("Leaving out-of-scope call untouched: %s", e)
                flagged.append(call)
                errors.append(e)
                continue
            except MigrationError as e:
                errors.append(e)
                continue
            if entry is None:
                continue
            file_edits.append(
                TextEdit(call.span[0], call.span[1], render_call(scope, entry, call))
            )
            substituted.append((call, entry))

        if file_edits:
            import_edit = _client_import_edit(scope, source_file.content, source_file.imports)
            if import_edit is not None:
                file_edits.append(import_edit)
            edits[move.source] = tuple(sorted(file_edits))

    logger.info("Substituted %d persistence calls, flagged %d", len(substituted), len(flagged))
    return Substitution(
        edits=MappingProxyType(edits),
        substituted=tuple(substituted),
        flagged=tuple(flagged),
        errors=tuple(errors),
    )


def _match(
    scope: MigrationScope,
    binding: dict[BindingKey, ApiContractEntry],
    conflicted: set[BindingKey],
    call: PersistenceCall,
) -> ApiContractEntry | None:
    """The contract entry for a call. None when its pair is already in conflict.

    The entry must accept the call's arguments and hand back what the local
    call returned, unless its own template adapts the response.
    """
    where = f"{call.file}:{call.line}"
    if call.resource is None:
        if call.operation == Operation.LIST:
            raise UnmappedPersistenceCall(
                f"{where} {call.callee}() lists storage but no list_resource is declared",
                [call.file],
            )
        raise UnmappedPersistenceCall(
            f"{where} {call.callee}() has a non-literal key and cannot be bound", [call.file]
        )
    if scope.resource_owner(call.resource) is None:
        raise OutOfScopePersistenceCall(
            f"{where} {call.operation.value} of {call.resource!r} is outside the in-scope "
            "features",
            [call.file],
        )
    key = (call.operation, call.resource)
    if key in conflicted:
        return None
    entry = binding.get(key)
    if entry is None:
        raise UnmappedPersistenceCall(
            f"{where} no contract entry for {call.operation.value} {call.resource!r}",
            [call.file],
        )
    if len(call.args) != len(entry.params):
        raise ContractShapeMismatch(
            f"{where} {call.callee}() passes {len(call.args)} argument(s) but "
            f"{entry.name} ({entry.signature}) expects {len(entry.params)}",
            [call.file],
        )
    local = LOCAL_RESULTS[call.operation]
    if entry.template is None and result_shape(entry.returns) != result_shape(local):
        raise ContractShapeMismatch(
            f"{where} {call.callee}() returned {local} but {entry.name} returns "
            f"{entry.returns or 'void'}; give the entry a template that adapts the response",
            [call.file],
        )
    return entry


def _client_import_edit(
    scope: MigrationScope, content: str, imports: Iterable[ImportRef]
) -> TextEdit | None:
    """Insert the API client import after the last static import, once.

    A file without imports gets it after its directive prologue
    (``'use client';``), which must stay first.
    """
    import_line = scope.persistence.import_line
    if not import_line or import_line in content:
        return None
    newline = "\r\n" if "\r\n" in content else "\n"
    static = [ref for ref in imports if not ref.dynamic]
    if static:
        last_end = max(ref.span[1] for ref in static)
    else:
        prologue = _DIRECTIVE_PROLOGUE.match(mask_comments(content))
        if prologue is None:
            return TextEdit(0, 0, import_line + newline)
        last_end = prologue.end()
    line_end = content.find("\n", last_end)
    if line_end == -1:
        return TextEdit(len(content), len(content), newline + import_line)
    return TextEdit(line_end + 1, line_end + 1, import_line + newline)
