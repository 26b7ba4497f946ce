"""Workflow definition discovery and file loading.

Layouts understood:
- project: `{root}/{id}/workflow.json`
- catalog: flat `{root}/{id}.json`
- a single `*.json` file

The file (or directory) name is the authoritative workflow id.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from pydantic import ValidationError

from flownav.core.errors import (
    ErrorCode,
    FlownavError,
    MultipleValidationErrors,
    WorkflowDefinitionError,
)
from flownav.core.logging import get_logger
from flownav.core.models.workflow import WorkflowDefinition
from flownav.core.types.result import Err, Ok, Result

logger = get_logger('loader')

WORKFLOW_FILENAME = 'workflow.json'


@dataclass(frozen=True)
class LoadFailure:
    """A workflow file that could not be turned into a definition."""

    workflow_id: str
    path: Path
    error: FlownavError

    def to_dict(self) -> dict[str, Any]:
        return {'id': self.workflow_id, 'path': str(self.path), **self.error.to_dict()}


type LoadResult = Result[WorkflowDefinition, LoadFailure]


def _schema_error(workflow_id: str, path: Path, exc: ValidationError) -> WorkflowDefinitionError:
    notes = [f'file: {path}']
    for item in exc.errors()[:10]:
        loc = '.'.join(str(part) for part in item['loc'])
        notes.append(f'{loc}: {item["msg"]}')
    return WorkflowDefinitionError(
        message=f"workflow '{workflow_id}' does not match the workflow schema",
        code=ErrorCode.WORKFLOW_INVALID_SCHEMA,
        notes=notes,
        help_text='each node needs a "type"; edges need "from" and "to"',
        workflow_id=workflow_id,
    )


def parse_definition(
    data: Any,
    workflow_id: str,
    path: Path | None = None,
) -> WorkflowDefinition:
    """
    Validate raw JSON data into a definition.

    Raises WorkflowDefinitionError (or MultipleValidationErrors) on
    schema or structural defects.
    """
    location = path or Path(f'<{workflow_id}>')
    if not isinstance(data, dict):
        raise WorkflowDefinitionError(
            message=f"workflow '{workflow_id}' must be a JSON object",
            code=ErrorCode.WORKFLOW_INVALID_SCHEMA,
            notes=[f'file: {location}', f'got: {type(data).__name__}'],
            workflow_id=workflow_id,
        )

    embedded = data.get('id')
    if embedded is not None and embedded != workflow_id:
        logger.warning(
            f"{location}: embedded id '{embedded}' disagrees with '{workflow_id}', using '{workflow_id}'"
        )
    try:
        return WorkflowDefinition.model_validate({**data, 'id': workflow_id})
    except ValidationError as exc:
        raise _schema_error(workflow_id, location, exc) from exc


def load_workflow_file(path: Path, workflow_id: str | None = None) -> LoadResult:
    """Read and validate one workflow file. Never raises for bad content."""
    wf_id = workflow_id or _id_for_path(path)
    try:
        raw = path.read_text(encoding='utf-8')
        data = json.loads(raw)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        return Err(
            LoadFailure(
                workflow_id=wf_id,
                path=path,
                error=WorkflowDefinitionError(
                    message=f"cannot read workflow '{wf_id}'",
                    code=ErrorCode.WORKFLOW_UNREADABLE,
                    notes=[f'file: {path}', f'{type(exc).__name__}: {exc}'],
                    workflow_id=wf_id,
                ),
            )
        )

    try:
        return Ok(parse_definition(data, wf_id, path))
    except (WorkflowDefinitionError, MultipleValidationErrors) as exc:
        return Err(LoadFailure(workflow_id=wf_id, path=path, error=exc))


def _id_for_path(path: Path) -> str:
    if path.name == WORKFLOW_FILENAME:
        return path.parent.name
    return path.stem


def discover_workflow_files(root: Path) -> Iterator[tuple[str, Path]]:
    """
    Yield `(workflow_id, path)` pairs under `root`, sorted by id.

    Directories containing `workflow.json` win over a flat `{id}.json`
    with the same id.
    """
    if root.is_file():
        yield _id_for_path(root), root
        return
    if not root.is_dir():
        return

    found: dict[str, Path] = {}
    for flat in sorted(root.glob('*.json')):
        found[flat.stem] = flat
    for nested in sorted(root.glob(f'*/{WORKFLOW_FILENAME}')):
        found[nested.parent.name] = nested
    for wf_id in sorted(found):
        yield wf_id, found[wf_id]


def load_directory(root: Path, ids: list[str] | None = None) -> list[LoadResult]:
    """Load every workflow under `root` (optionally restricted to `ids`)."""
    wanted = set(ids) if ids else None
    results: list[LoadResult] = []
    for wf_id, path in discover_workflow_files(root):
        if wanted is not None and wf_id not in wanted:
            continue
        results.append(load_workflow_file(path, wf_id))
    return results
