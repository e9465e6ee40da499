"""Shared fixtures: a small flat front-end tree and its migration config."""

import tempfile
from pathlib import Path

import pytest

from featureslice.core.config import MigrationScope, load_scope

SAMPLE_SOURCES = {
    "pages/ReviewWorkflowsPage.tsx": """\
import React from 'react';
import { WorkflowForm } from '../components/WorkflowForm';
import { StatusBadge } from '@/components/StatusBadge';
import { useWorkflows } from '../hooks/useWorkflows';

export default function ReviewWorkflowsPage() {
  const workflows = useWorkflows();
  return (
    <div>
      <StatusBadge status="active" />
      <WorkflowForm workflows={workflows} />
    </div>
  );
}
""",
    "pages/RatingScalesPage.tsx": """\
import React from 'react';
import { StatusBadge } from '../components/StatusBadge';
import type { RatingScale } from '../types';

export default function RatingScalesPage() {
  const scales: RatingScale[] = [];
  return <StatusBadge status={scales.length ? 'active' : 'empty'} />;
}
""",
    "components/WorkflowForm.tsx": """\
import React from 'react';
import type { Workflow } from '../types/workflow';

// Lists the stored workflows
export const WorkflowForm = ({ workflows }: { workflows: Workflow[] }) => {
  return <form>{workflows.length}</form>;
};
""",
    "components/StatusBadge.tsx": """\
import React from 'react';
import './StatusBadge.css';

export const StatusBadge = ({ status }: { status: string }) => <span>{status}</span>;
""",
    "components/StatusBadge.css": ".badge { color: teal; }\n",
    "hooks/useWorkflows.ts": """\
import type { Workflow } from '../types/workflow';

export function useWorkflows(): Workflow[] {
  const raw = localStorage.getItem('workflows');
  const warnings = localStorage.getItem('employee-warnings');
  if (warnings) {
    console.log('pending warnings');
  }
  return raw ? JSON.parse(raw) : [];
}
""",
    "types/workflow.ts": """\
export interface Workflow {
  id: string;
  name: string;
}
""",
    "types/index.ts": """\
export interface RatingScale {
  id: string;
  levels: number;
}
""",
    "utils/legacy.ts": """\
export function formatLegacy(value: string): string {
  return value.trim();
}
""",
    "router.tsx": """\
import ReviewWorkflowsPage from './pages/ReviewWorkflowsPage';
import RatingScalesPage from './pages/RatingScalesPage';

export const routes = [
  { path: '/review-workflows', element: ReviewWorkflowsPage },
  { path: '/rating-scales', element: RatingScalesPage },
];
""",
    "employee-warnings/WarningsPanel.tsx": """\
export const WarningsPanel = () => null;
""",
}

SAMPLE_CONFIG = """\
source_root = "src"
excluded = ["employee-warnings"]
retain = ["router.tsx"]

[features.review-workflows]
entry_points = ["pages/ReviewWorkflowsPage.tsx"]
resources = ["workflows"]

[features.rating-scales]
entry_points = ["pages/RatingScalesPage.tsx"]
resources = ["rating-scales"]

[[contract]]
name = "listWorkflows"
operation = "read"
resource = "workflows"
method = "GET"
path = "/api/v1/workflows"
returns = "Workflow[]"
template = "JSON.stringify(api.{name}({args}))"
"""


def _write_tree(root: Path, files: dict[str, str]) -> None:
    """Write ``files`` (relative path -> text) under ``root``."""
    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def sample_config(temp_dir: Path) -> Path:
    """Write the sample source tree and its config; return the config path."""
    _write_tree(temp_dir / "src", SAMPLE_SOURCES)
    config = temp_dir / "featureslice.toml"
    config.write_text(SAMPLE_CONFIG)
    return config


@pytest.fixture
def sample_scope(sample_config: Path) -> MigrationScope:
    """Load the sample migration scope."""
    return load_scope(sample_config)


@pytest.fixture
def write_tree():
    """Helper writing ``{relative path: text}`` under a root directory."""
    return _write_tree
