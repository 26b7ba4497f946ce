"""Bundled workflow catalog: listings, selection dialog, and copying into a project."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from flownav.core.defaults import TOOL_SCHEMA_VERSION
from flownav.core.errors import ErrorCode, FlownavError, WorkflowNotFoundError
from flownav.core.logging import get_logger
from flownav.core.store.loader import WORKFLOW_FILENAME, discover_workflow_files

logger = get_logger('catalog')

# Shown first in the selection dialog.
PRIMARY_WORKFLOW_IDS: tuple[str, ...] = ('feature-development', 'bug-fix')
# Simpler or specialized alternatives.
SECONDARY_WORKFLOW_IDS: tuple[str, ...] = ('quick-task', 'bug-hunt')

ALL_WORKFLOWS_LABEL = 'All workflows (Recommended)'


def build_workflow_summary(file_id: str, content: dict[str, Any]) -> dict[str, Any]:
    """Summary of raw catalog content (no validation)."""
    return {
        'id': content.get('id') or file_id,
        'name': content.get('name') or content.get('id') or file_id,
        'description': content.get('description') or '',
        'stepCount': len(content.get('nodes') or {}),
    }


def _option(summary: dict[str, Any]) -> dict[str, str]:
    return {
        'label': summary['name'],
        'description': f"{summary['description']} ({summary['stepCount']} steps)",
    }


def build_catalog_selection_options(workflows: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Selection options with the copy-everything choice first."""
    if not workflows:
        return []
    return [
        {
            'label': ALL_WORKFLOWS_LABEL,
            'description': f'Copy all {len(workflows)} workflows to your project',
        },
        *(_option(wf) for wf in workflows),
    ]


def build_catalog_response(workflows: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        'schemaVersion': TOOL_SCHEMA_VERSION,
        'workflows': workflows,
        'selectionOptions': build_catalog_selection_options(workflows),
    }


def build_workflow_selection_dialog(workflows: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Three-panel selection prompt: primary workflows, everything else, docs toggle.

    Known ids missing from `workflows` are left out; unknown ids land in
    the second panel after the secondary ones.
    """
    by_id = {wf['id']: wf for wf in workflows}
    primary = [_option(by_id[wf_id]) for wf_id in PRIMARY_WORKFLOW_IDS if wf_id in by_id]
    secondary = [_option(by_id[wf_id]) for wf_id in SECONDARY_WORKFLOW_IDS if wf_id in by_id]
    known = {*PRIMARY_WORKFLOW_IDS, *SECONDARY_WORKFLOW_IDS}
    other = [_option(wf) for wf in workflows if wf['id'] not in known]

    return {
        'schemaVersion': TOOL_SCHEMA_VERSION,
        'workflows': workflows,
        'dialog': [
            {
                'question': 'Which workflow?',
                'header': 'Primary',
                'multiSelect': False,
                'options': primary,
            },
            {
                'question': 'Or a simpler/specialized workflow?',
                'header': 'Other',
                'multiSelect': False,
                'options': [*secondary, *other],
            },
            {
                'question': 'Include documentation?',
                'header': 'Docs',
                'multiSelect': False,
                'options': [
                    {'label': 'Yes', 'description': 'Generate documentation for the workflow'},
                    {'label': 'No', 'description': 'Skip documentation'},
                ],
            },
        ],
    }


def read_catalog(catalog_dir: Path) -> dict[str, dict[str, Any]]:
    """Raw catalog content by id. Unreadable files are logged and skipped."""
    if not catalog_dir.is_dir():
        raise FlownavError(
            message=f'catalog directory not found: {catalog_dir}',
            code=ErrorCode.CATALOG_NOT_FOUND,
            help_text='check catalog_path in the navigator configuration',
        )
    content: dict[str, dict[str, Any]] = {}
    for wf_id, path in discover_workflow_files(catalog_dir):
        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f'skipping catalog file {path}: {exc}')
            continue
        if is_valid_workflow_for_copy(data):
            content[wf_id] = data
        else:
            logger.warning(f'skipping catalog file {path}: missing nodes or edges')
    return content


def list_catalog(catalog_dir: Path) -> list[dict[str, Any]]:
    return [
        build_workflow_summary(wf_id, data) for wf_id, data in read_catalog(catalog_dir).items()
    ]


def is_valid_workflow_for_copy(content: Any) -> bool:
    return isinstance(content, dict) and bool(content.get('nodes')) and 'edges' in content


def compute_workflows_to_copy(requested: list[str] | None, available: list[str]) -> list[str]:
    """Requested ids, or everything when nothing was requested."""
    return list(requested) if requested else list(available)


FLOW_README = """\
# Flow

Workflow navigation for multi-step agent work.

Work moves through a graph of steps (planning, development, verification,
delivery). Each navigate call reads the task record, computes the next step,
and writes the new position back, so progress survives interruptions.

## Quick start

    flownav list
    flownav navigate --task .flow/tasks/1.json --workflow feature-development \\
        --description "Add user authentication"
    flownav navigate --task .flow/tasks/1.json --result passed

## Layout

    .flow/
    ├── README.md
    ├── tasks/                 # task records ({id}.json)
    └── workflows/
        └── {workflow}/workflow.json

Project workflows override catalog workflows with the same id.

## How it works

1. Navigate computes the next step from the workflow graph
2. Position (current step, retry counters, autonomy) lives in the task record
3. Steps name an agent; the caller decides how to run them
4. Failed steps retry up to maxRetries, then escalate to a human
"""

WORKFLOWS_README = """\
# Flow Workflows

Each subdirectory holds one workflow definition:

    .flow/workflows/
    ├── README.md
    └── {workflow}/
        └── workflow.json      # nodes + edges

## Step instructions

Navigate returns `stepInstructions` built from each node's `name`,
`description` and `instructions`. Nodes without `instructions` get default
guidance based on the step id (analyze, implement, test, review, ...).

Add project-specific guidance with an `instructions` field:

    "implement": {
      "type": "task",
      "name": "Implement Feature",
      "instructions": "Follow the error handling pattern in src/errors.py",
      "agent": "Developer"
    }

Paths starting with `./` in descriptions, instructions and `context_files`
resolve relative to the workflow's own directory.

## Editing

- `nodes`: id -> {type, name, description, agent, stage, maxRetries, ...}
- `edges`: [{from, to, on, label}]

Run `flownav check <id>` after editing to find unreachable steps and retry
budgets without a retry or escalation edge.
"""


@dataclass
class CopyReport:
    copied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    target: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'schemaVersion': TOOL_SCHEMA_VERSION,
            'copied': list(self.copied),
            'skipped': list(self.skipped),
            'target': str(self.target) if self.target else None,
        }


def copy_workflows(
    catalog_dir: Path,
    flow_path: Path,
    workflows_path: Path,
    ids: list[str] | None = None,
    *,
    overwrite: bool = False,
) -> CopyReport:
    """
    Copy catalog workflows into `{workflows_path}/{id}/workflow.json`.

    Existing project copies are kept unless `overwrite` is set. README
    files are written once and never overwritten.
    """
    catalog = read_catalog(catalog_dir)
    wanted = compute_workflows_to_copy(ids, list(catalog))
    unknown = [wf_id for wf_id in wanted if wf_id not in catalog]
    if unknown:
        raise WorkflowNotFoundError(
            message=f'catalog has no workflow(s) {unknown}',
            code=ErrorCode.WORKFLOW_NOT_FOUND,
            notes=[f'catalog: {sorted(catalog)}'],
            workflow_id=unknown[0],
        )

    report = CopyReport(target=workflows_path)
    workflows_path.mkdir(parents=True, exist_ok=True)
    _write_once(flow_path / 'README.md', FLOW_README)
    _write_once(workflows_path / 'README.md', WORKFLOWS_README)

    for wf_id in wanted:
        destination = workflows_path / wf_id / WORKFLOW_FILENAME
        if destination.exists() and not overwrite:
            report.skipped.append(wf_id)
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(
            json.dumps({**catalog[wf_id], 'id': wf_id}, indent=2, ensure_ascii=False) + '\n',
            encoding='utf-8',
        )
        report.copied.append(wf_id)

    logger.info(
        f'copied {len(report.copied)} workflow(s) to {workflows_path}'
        + (f', kept {len(report.skipped)} existing' if report.skipped else '')
    )
    return report


def _write_once(path: Path, content: str) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
