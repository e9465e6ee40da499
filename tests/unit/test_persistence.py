"""Unit tests for persistence call discovery and contract binding."""

from pathlib import Path

import pytest

from featureslice.core.classifier import classify
from featureslice.core.config import Feature, MigrationScope, PersistenceInterface
from featureslice.core.exceptions import (
    ContractConflict,
    ContractShapeMismatch,
    OutOfScopePersistenceCall,
    UnmappedPersistenceCall,
)
from featureslice.core.graph import build_usage_graph
from featureslice.core.indexer import Indexer
from featureslice.core.models import ApiContractEntry, Operation
from featureslice.core.persistence import (
    bind_contract,
    find_persistence_calls,
    render_call,
    substitute_persistence,
)
from featureslice.core.planner import plan_layout
from featureslice.core.rewriter import apply_edits

LIST_WORKFLOWS = ApiContractEntry(
    name="listWorkflows",
    operation=Operation.READ,
    resource="workflows",
    method="GET",
    path="/api/v1/workflows",
    returns="Workflow[]",
    template="JSON.stringify(api.{name}({args}))",
)
SAVE_WORKFLOWS = ApiContractEntry(
    name="saveWorkflows",
    operation=Operation.WRITE,
    resource="workflows",
    method="PUT",
    path="/api/v1/workflows",
    params=("body",),
)

HOOK = """\
import { useState } from 'react';

export function useWorkflows() {
  const raw = localStorage.getItem('workflows');
  const warnings = window.localStorage.getItem('employee-warnings');
  localStorage.setItem('workflows', JSON.stringify([raw, warnings]));
  return raw;
}
"""


def run_substitution(root: Path, contract: tuple[ApiContractEntry, ...]):
    scope = MigrationScope(
        root=root,
        features=(Feature("review", ("hooks/useWorkflows.ts",), frozenset({"workflows"})),),
        contract=contract,
    )
    index = Indexer(scope).index()
    plan = plan_layout(scope, index, classify(scope, build_usage_graph(index)))
    return scope, index, substitute_persistence(scope, index, plan)


class TestFindCalls:
    """Tests for persistence call discovery."""

    def test_find_calls(self) -> None:
        calls = find_persistence_calls(HOOK, "hooks/useWorkflows.ts", PersistenceInterface())

        assert [(c.operation, c.resource, c.line) for c in calls] == [
            (Operation.READ, "workflows", 4),
            (Operation.READ, "employee-warnings", 5),
            (Operation.WRITE, "workflows", 6),
        ]
        assert calls[2].args == ("JSON.stringify([raw, warnings])",)
        start, end = calls[0].span
        assert HOOK[start:end] == "localStorage.getItem('workflows')"
        start, _ = calls[1].span
        assert HOOK[start:].startswith("window.localStorage")

    def test_non_literal_key(self) -> None:
        calls = find_persistence_calls(
            "localStorage.getItem(key);\n", "a.ts", PersistenceInterface()
        )
        assert calls[0].resource is None

    def test_template_key_without_placeholders_is_literal(self) -> None:
        calls = find_persistence_calls(
            "localStorage.getItem(`workflows`);\n", "a.ts", PersistenceInterface()
        )
        assert calls[0].resource == "workflows"

    def test_commented_call_ignored(self) -> None:
        calls = find_persistence_calls(
            "// localStorage.getItem('workflows');\n", "a.ts", PersistenceInterface()
        )
        assert calls == []

    def test_custom_interface(self) -> None:
        interface = PersistenceInterface(calls={"storage.load": Operation.READ})
        calls = find_persistence_calls("storage.load('ratings');\n", "a.ts", interface)

        assert calls[0].operation == Operation.READ
        assert calls[0].resource == "ratings"


class TestBindContract:
    """Tests for contract binding."""

    def test_bind(self) -> None:
        binding, errors = bind_contract((LIST_WORKFLOWS, SAVE_WORKFLOWS))

        assert errors == []
        assert binding[(Operation.READ, "workflows")] is LIST_WORKFLOWS
        assert binding[(Operation.WRITE, "workflows")] is SAVE_WORKFLOWS

    def test_duplicate_pair_conflicts(self) -> None:
        duplicate = ApiContractEntry(
            name="fetchWorkflows",
            operation=Operation.READ,
            resource="workflows",
            method="GET",
            path="/api/v2/workflows",
        )

        binding, errors = bind_contract((LIST_WORKFLOWS, duplicate))

        assert binding == {}
        assert len(errors) == 1
        assert isinstance(errors[0], ContractConflict)
        assert "listWorkflows, fetchWorkflows" in str(errors[0])

    def test_render_call_keeps_arguments(self) -> None:
        scope = MigrationScope(root=Path("."), features=())
        calls = find_persistence_calls(
            "localStorage.setItem('workflows', data);\n", "a.ts", PersistenceInterface()
        )

        assert render_call(scope, SAVE_WORKFLOWS, calls[0]) == "api.saveWorkflows(data)"

    def test_render_entry_template(self) -> None:
        scope = MigrationScope(root=Path("."), features=())
        entry = ApiContractEntry(
            name="listWorkflows",
            operation=Operation.READ,
            resource="workflows",
            method="GET",
            path="/api/v1/workflows",
            template="await http.{method}('{path}')",
        )
        calls = find_persistence_calls(
            "localStorage.getItem('workflows');\n", "a.ts", PersistenceInterface()
        )

        assert render_call(scope, entry, calls[0]) == "await http.GET('/api/v1/workflows')"


class TestSubstitute:
    """Tests for substituting calls across the planned files."""

    def test_substitute(self, temp_dir: Path, write_tree) -> None:
        write_tree(temp_dir, {"hooks/useWorkflows.ts": HOOK})

        _, index, result = run_substitution(temp_dir, (LIST_WORKFLOWS, SAVE_WORKFLOWS))

        assert [(c.resource, e.name) for c, e in result.substituted] == [
            ("workflows", "listWorkflows"),
            ("workflows", "saveWorkflows"),
        ]
        assert [c.resource for c in result.flagged] == ["employee-warnings"]
        assert all(isinstance(e, OutOfScopePersistenceCall) for e in result.errors)

        text = apply_edits(
            index.get("hooks/useWorkflows.ts").content,
            result.edits_for("hooks/useWorkflows.ts"),
        )
        assert "const raw = JSON.stringify(api.listWorkflows());" in text
        assert "api.saveWorkflows(JSON.stringify([raw, warnings]));" in text
        assert "window.localStorage.getItem('employee-warnings')" in text
        assert text.startswith(
            "import { useState } from 'react';\nimport { api } from '@/api/client';\n"
        )

    def test_client_import_without_imports(self, temp_dir: Path, write_tree) -> None:
        write_tree(
            temp_dir,
            {"hooks/useWorkflows.ts": "export const useWorkflows = () => localStorage.getItem('workflows');\n"},
        )

        _, index, result = run_substitution(temp_dir, (LIST_WORKFLOWS,))

        text = apply_edits(
            index.get("hooks/useWorkflows.ts").content,
            result.edits_for("hooks/useWorkflows.ts"),
        )
        assert text == (
            "import { api } from '@/api/client';\n"
            "export const useWorkflows = () => JSON.stringify(api.listWorkflows());\n"
        )

    def test_unmapped(self, temp_dir: Path, write_tree) -> None:
        write_tree(temp_dir, {"hooks/useWorkflows.ts": HOOK})

        _, _, result = run_substitution(temp_dir, (LIST_WORKFLOWS,))

        unmapped = [e for e in result.errors if isinstance(e, UnmappedPersistenceCall)]
        assert len(unmapped) == 1
        assert "write 'workflows'" in str(unmapped[0])

    def test_dynamic_key(self, temp_dir: Path, write_tree) -> None:
        write_tree(
            temp_dir,
            {"hooks/useWorkflows.ts": "export const useWorkflows = (k: string) => localStorage.getItem(k);\n"},
        )

        _, _, result = run_substitution(temp_dir, (LIST_WORKFLOWS,))

        assert [type(e) for e in result.errors] == [UnmappedPersistenceCall]
        assert result.substituted == ()

    def test_shape_mismatch(self, temp_dir: Path, write_tree) -> None:
        write_tree(
            temp_dir,
            {"hooks/useWorkflows.ts": "export const save = () => localStorage.setItem('workflows');\n"},
        )

        _, _, result = run_substitution(temp_dir, (SAVE_WORKFLOWS,))

        assert [type(e) for e in result.errors] == [ContractShapeMismatch]
        assert "expects 1" in str(result.errors[0])

    @pytest.mark.parametrize("reads", [1, 3])
    def test_conflict_binds_nothing(self, temp_dir: Path, write_tree, reads: int) -> None:
        body = "localStorage.getItem('workflows');\n" * reads
        write_tree(temp_dir, {"hooks/useWorkflows.ts": "export const x = 1;\n" + body})
        duplicate = ApiContractEntry(
            name="fetchWorkflows",
            operation=Operation.READ,
            resource="workflows",
            method="GET",
            path="/api/v2/workflows",
        )

        _, _, result = run_substitution(temp_dir, (LIST_WORKFLOWS, duplicate))

        assert [type(e) for e in result.errors] == [ContractConflict]
        assert result.substituted == ()
        assert result.edits_for("hooks/useWorkflows.ts") == ()

    def test_client_import_after_directive(self, temp_dir: Path, write_tree) -> None:
        """Test that a 'use client' prologue stays the first statement."""
        write_tree(
            temp_dir,
            {
                "hooks/useWorkflows.ts": (
                    "'use client';\n"
                    "export const useWorkflows = () => localStorage.getItem('workflows');\n"
                )
            },
        )

        _, index, result = run_substitution(temp_dir, (LIST_WORKFLOWS,))

        text = apply_edits(
            index.get("hooks/useWorkflows.ts").content,
            result.edits_for("hooks/useWorkflows.ts"),
        )
        assert text.startswith("'use client';\nimport { api } from '@/api/client';\n")


class TestResultShape:
    """Tests for matching the remote response to what the local call returned."""

    def test_read_returning_other_shape_needs_template(
        self, temp_dir: Path, write_tree
    ) -> None:
        write_tree(temp_dir, {"hooks/useWorkflows.ts": HOOK})
        raw_list = ApiContractEntry(
            name="listWorkflows",
            operation=Operation.READ,
            resource="workflows",
            method="GET",
            path="/api/v1/workflows",
            returns="Workflow[]",
        )

        _, _, result = run_substitution(temp_dir, (raw_list, SAVE_WORKFLOWS))

        mismatches = [e for e in result.errors if isinstance(e, ContractShapeMismatch)]
        assert len(mismatches) == 1
        assert "returned string | null" in str(mismatches[0])
        assert "Workflow[]" in str(mismatches[0])
        assert [e.name for _, e in result.substituted] == ["saveWorkflows"]

    def test_read_returning_same_shape(self, temp_dir: Path, write_tree) -> None:
        write_tree(temp_dir, {"hooks/useWorkflows.ts": HOOK})
        raw_read = ApiContractEntry(
            name="readWorkflows",
            operation=Operation.READ,
            resource="workflows",
            method="GET",
            path="/api/v1/workflows/raw",
            returns="null | string",
        )

        _, _, result = run_substitution(temp_dir, (raw_read, SAVE_WORKFLOWS))

        assert not any(isinstance(e, ContractShapeMismatch) for e in result.errors)
        assert [e.name for _, e in result.substituted] == ["readWorkflows", "saveWorkflows"]

    def test_write_returning_value_needs_template(self, temp_dir: Path, write_tree) -> None:
        write_tree(temp_dir, {"hooks/useWorkflows.ts": HOOK})
        echoing_save = ApiContractEntry(
            name="saveWorkflows",
            operation=Operation.WRITE,
            resource="workflows",
            method="PUT",
            path="/api/v1/workflows",
            params=("body",),
            returns="Workflow[]",
        )

        _, _, result = run_substitution(temp_dir, (LIST_WORKFLOWS, echoing_save))

        mismatches = [e for e in result.errors if isinstance(e, ContractShapeMismatch)]
        assert len(mismatches) == 1
        assert "returned void" in str(mismatches[0])

    def test_write_declared_void(self, temp_dir: Path, write_tree) -> None:
        write_tree(temp_dir, {"hooks/useWorkflows.ts": HOOK})
        void_save = ApiContractEntry(
            name="saveWorkflows",
            operation=Operation.WRITE,
            resource="workflows",
            method="PUT",
            path="/api/v1/workflows",
            params=("body",),
            returns="void",
        )

        _, _, result = run_substitution(temp_dir, (LIST_WORKFLOWS, void_save))

        assert [e.name for _, e in result.substituted] == ["listWorkflows", "saveWorkflows"]


class TestListing:
    """Tests for enumerating the store through a list callee."""

    SOURCE = (
        "export const keys = (props: object) => {\n"
        "  const stored = Object.keys(localStorage);\n"
        "  return stored.concat(Object.keys(props));\n"
        "};\n"
    )

    def test_only_storage_listings_are_calls(self) -> None:
        interface = PersistenceInterface(list_resource="workflows")

        calls = find_persistence_calls(self.SOURCE, "hooks/keys.ts", interface)

        assert [(c.operation, c.resource, c.line) for c in calls] == [
            (Operation.LIST, "workflows", 2),
        ]
        start, end = calls[0].span
        assert self.SOURCE[start:end] == "Object.keys(localStorage)"

    def test_listing_binds_to_list_entry(self, temp_dir: Path, write_tree) -> None:
        write_tree(temp_dir, {"hooks/useWorkflows.ts": self.SOURCE})
        list_ids = ApiContractEntry(
            name="listWorkflowIds",
            operation=Operation.LIST,
            resource="workflows",
            method="GET",
            path="/api/v1/workflows/ids",
            returns="string[]",
        )
        scope = MigrationScope(
            root=temp_dir,
            features=(Feature("review", ("hooks/useWorkflows.ts",), frozenset({"workflows"})),),
            persistence=PersistenceInterface(list_resource="workflows"),
            contract=(list_ids,),
        )
        index = Indexer(scope).index()
        plan = plan_layout(scope, index, classify(scope, build_usage_graph(index)))

        result = substitute_persistence(scope, index, plan)

        assert result.errors == ()
        text = apply_edits(
            index.get("hooks/useWorkflows.ts").content,
            result.edits_for("hooks/useWorkflows.ts"),
        )
        assert "const stored = api.listWorkflowIds();" in text
        assert "Object.keys(props)" in text

    def test_listing_without_list_resource(self, temp_dir: Path, write_tree) -> None:
        write_tree(temp_dir, {"hooks/useWorkflows.ts": self.SOURCE})

        _, _, result = run_substitution(temp_dir, (LIST_WORKFLOWS,))

        assert [type(e) for e in result.errors] == [UnmappedPersistenceCall]
        assert "no list_resource" in str(result.errors[0])
