"""Unit tests for text edits and import rewriting."""

from pathlib import Path
from types import MappingProxyType

import pytest

from featureslice.core.classifier import Classification, classify
from featureslice.core.config import Feature, MigrationScope
from featureslice.core.exceptions import CrossFeatureImportError
from featureslice.core.graph import build_usage_graph
from featureslice.core.indexer import Indexer
from featureslice.core.planner import plan_layout
from featureslice.core.rewriter import TextEdit, apply_edits, rewrite_imports, target_specifier

TREE = {
    "pages/Home.tsx": (
        "import React from 'react';\n"
        "import { Card } from '../components/Card';\n"
        "import { fmt } from '@/utils/fmt';\n"
        "export default function Home() { return null; }\n"
    ),
    "pages/Admin.tsx": (
        "import { Card } from '../components/Card';\n"
        "export default function Admin() { return null; }\n"
    ),
    "components/Card.tsx": "import './Card.css';\nexport const Card = () => null;\n",
    "components/Card.css": ".card {}\n",
    "utils/fmt.ts": "export const fmt = (s: string) => s;\n",
}


@pytest.fixture
def scope(temp_dir: Path, write_tree) -> MigrationScope:
    write_tree(temp_dir, TREE)
    return MigrationScope(
        root=temp_dir,
        features=(Feature("home", ("pages/Home.tsx",)), Feature("admin", ("pages/Admin.tsx",))),
    )


class TestApplyEdits:
    """Tests for right-to-left edit application."""

    def test_edits_any_order(self) -> None:
        text = "import a from './a';\nimport b from './b';\n"
        edits = [
            TextEdit(15, 18, "@/x/a"),
            TextEdit(36, 39, "@/y/b"),
        ]

        assert apply_edits(text, reversed(edits)) == (
            "import a from '@/x/a';\nimport b from '@/y/b';\n"
        )

    def test_insert(self) -> None:
        assert apply_edits("ab", [TextEdit(1, 1, "X")]) == "aXb"

    def test_no_edits(self) -> None:
        assert apply_edits("unchanged", []) == "unchanged"

    def test_overlap_rejected(self) -> None:
        with pytest.raises(ValueError):
            apply_edits("abcdef", [TextEdit(0, 3, "x"), TextEdit(2, 4, "y")])


class TestRewriteImports:
    """Tests for pointing imports at planned destinations."""

    def test_rewrite(self, scope: MigrationScope) -> None:
        index = Indexer(scope).index()
        classification = classify(scope, build_usage_graph(index))
        plan = plan_layout(scope, index, classification)

        result = rewrite_imports(scope, index, classification, plan)

        assert result.errors == ()
        home = apply_edits(index.get("pages/Home.tsx").content, result.edits_for("pages/Home.tsx"))
        assert "from 'react'" in home
        assert "from '@/components/Card'" in home
        assert "from '@/features/home/utils/fmt'" in home
        card = apply_edits(
            index.get("components/Card.tsx").content, result.edits_for("components/Card.tsx")
        )
        assert "import '@/assets/Card.css';" in card

    def test_target_alias(self, scope: MigrationScope) -> None:
        assert target_specifier(scope, "components/Card") == "@/components/Card"

    def test_cross_feature_import_is_reported(self, scope: MigrationScope) -> None:
        """Test that a classification putting Card in another feature is caught."""
        index = Indexer(scope).index()
        classification = Classification(
            owners=MappingProxyType(
                {
                    "pages/Home.tsx": "home",
                    "pages/Admin.tsx": "admin",
                    "components/Card.tsx": "admin",
                    "components/Card.css": "admin",
                    "utils/fmt.ts": "home",
                }
            ),
            reaching=MappingProxyType({}),
        )
        plan = plan_layout(scope, index, classification)

        result = rewrite_imports(scope, index, classification, plan)

        assert len(result.errors) == 1
        error = result.errors[0]
        assert isinstance(error, CrossFeatureImportError)
        assert error.paths == ("pages/Home.tsx", "components/Card.tsx")
