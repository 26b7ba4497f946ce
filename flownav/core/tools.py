"""Tool surface: named, schema-typed operations over a Navigator.

Every call returns a JSON-ready dict carrying `schemaVersion`. Failures
never raise out of `call_tool`; they come back as
`{schemaVersion, error, code, tool, args}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flownav.core.defaults import TOOL_SCHEMA_VERSION
from flownav.core.errors import ErrorCode, FlownavError
from flownav.core.logging import get_logger
from flownav.core.models.workflow import WorkflowSource
from flownav.core.navigator import Navigator
from flownav.core.types.status import StepResult

logger = get_logger('tools')


class _Args(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='forbid')


class NavigateArgs(_Args):
    task_ref: str | None = Field(
        default=None,
        alias='taskRef',
        description='Task record reference (file path or record key)',
    )
    workflow_type: str | None = Field(
        default=None,
        alias='workflowType',
        description='Workflow id to start when the task has no position yet',
    )
    result: StepResult | None = Field(default=None, description='Outcome of the current step')
    autonomy: bool | None = Field(
        default=None, description='Continue across stage boundaries without stopping'
    )
    description: str | None = Field(default=None, description='Task description (on start)')
    branch: str | None = Field(default=None, description='Fork branch to record')
    child_ref: str | None = Field(
        default=None, alias='childRef', description='Child task handling the branch'
    )
    branch_results: dict[str, StepResult] | None = Field(
        default=None,
        alias='branchResults',
        description='Outcomes for several fork branches at once',
    )
    step_id: str | None = Field(
        default=None, alias='stepId', description='Start at this step instead of the beginning'
    )


class ListWorkflowsArgs(_Args):
    source: WorkflowSource | None = Field(default=None, description='Only this source')


class SelectWorkflowArgs(_Args):
    pass


class InspectWorkflowArgs(_Args):
    id: str = Field(description='Workflow id')


class LoadWorkflowsArgs(_Args):
    path: str | None = Field(
        default=None, description='Directory or file to load (default: project workflows)'
    )
    workflow_ids: list[str] | None = Field(
        default=None, alias='workflowIds', description='Only load these ids'
    )


class CopyWorkflowsArgs(_Args):
    workflow_ids: list[str] | None = Field(
        default=None, alias='workflowIds', description='Catalog ids to copy (default: all)'
    )
    overwrite: bool = Field(default=False, description='Replace existing project copies')


class ListCatalogArgs(_Args):
    pass


class CheckWorkflowArgs(_Args):
    workflow_ids: list[str] | None = Field(
        default=None, alias='workflowIds', description='Ids to check (default: all loaded)'
    )


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: type[_Args]
    handler: Callable[[Navigator, Any], dict[str, Any]]

    def definition(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'inputSchema': self.args_model.model_json_schema(by_alias=True),
        }


def _navigate(nav: Navigator, args: NavigateArgs) -> dict[str, Any]:
    response = nav.navigate(
        task_ref=args.task_ref,
        workflow_id=args.workflow_type,
        result=args.result,
        autonomy=args.autonomy,
        description=args.description,
        branch=args.branch,
        child_ref=args.child_ref,
        branch_results=args.branch_results,
        step_id=args.step_id,
    )
    return {'schemaVersion': TOOL_SCHEMA_VERSION, **response.to_payload()}


def _load(nav: Navigator, args: LoadWorkflowsArgs) -> dict[str, Any]:
    if args.path is None:
        return nav.load_workflows(ids=args.workflow_ids)
    return nav.load_workflows(args.path, args.workflow_ids, WorkflowSource.EXTERNAL)


TOOLS: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            'Navigate',
            'Start, inspect or advance a task through its workflow.',
            NavigateArgs,
            _navigate,
        ),
        ToolSpec(
            'ListWorkflows',
            'List loaded workflows (id, name, description, stepCount, source).',
            ListWorkflowsArgs,
            lambda nav, args: nav.list_workflows(args.source),
        ),
        ToolSpec(
            'SelectWorkflow',
            'Workflow selection dialog for the user.',
            SelectWorkflowArgs,
            lambda nav, args: nav.select_workflow(),
        ),
        ToolSpec(
            'InspectWorkflow',
            'Full definition of one workflow.',
            InspectWorkflowArgs,
            lambda nav, args: nav.inspect_workflow(args.id),
        ),
        ToolSpec(
            'LoadWorkflows',
            'Load workflow definitions from a path into the store.',
            LoadWorkflowsArgs,
            _load,
        ),
        ToolSpec(
            'CopyWorkflows',
            'Copy catalog workflows into the project for customization.',
            CopyWorkflowsArgs,
            lambda nav, args: nav.copy_workflows(args.workflow_ids, overwrite=args.overwrite),
        ),
        ToolSpec(
            'ListCatalog',
            'List bundled catalog workflows with selection options.',
            ListCatalogArgs,
            lambda nav, args: nav.list_catalog(),
        ),
        ToolSpec(
            'CheckWorkflow',
            'Report unreachable steps and incomplete retry/escalation edges.',
            CheckWorkflowArgs,
            lambda nav, args: nav.check(args.workflow_ids),
        ),
    )
}

TOOL_DEFINITIONS: list[dict[str, Any]] = [spec.definition() for spec in TOOLS.values()]


def _error_payload(
    tool: str,
    args: dict[str, Any],
    message: str,
    code: ErrorCode | None,
    **extra: Any,
) -> dict[str, Any]:
    return {
        'schemaVersion': TOOL_SCHEMA_VERSION,
        'error': message,
        'code': code.value if code else None,
        'tool': tool,
        'args': args,
        **extra,
    }


def call_tool(navigator: Navigator, name: str, args: dict[str, Any] | None = None) -> dict[str, Any]:
    """Validate `args` against the tool's schema and run it."""
    raw = dict(args or {})
    spec = TOOLS.get(name)
    if spec is None:
        return _error_payload(
            name,
            raw,
            f'unknown tool {name!r}',
            ErrorCode.CLI_INVALID_ARGS,
            available=sorted(TOOLS),
        )
    try:
        parsed = spec.args_model.model_validate(raw)
    except ValidationError as exc:
        return _error_payload(
            name,
            raw,
            'invalid arguments',
            ErrorCode.CLI_INVALID_ARGS,
            notes=[
                f"{'.'.join(str(p) for p in item['loc'])}: {item['msg']}" for item in exc.errors()
            ],
        )
    try:
        return spec.handler(navigator, parsed)
    except FlownavError as exc:
        logger.warning(f'{name} failed: {exc.message}')
        details = exc.to_dict()
        return _error_payload(
            name,
            raw,
            exc.message,
            exc.code,
            notes=details.get('notes', []),
            help=details.get('help'),
        )
