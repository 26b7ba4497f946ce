"""Navigator: store + engine + persistence behind one object."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from flownav.core import catalog
from flownav.core.defaults import TOOL_SCHEMA_VERSION
from flownav.core.errors import ErrorCode, PersistenceError, TraversalError
from flownav.core.lint import lint_workflow
from flownav.core.logging import get_logger
from flownav.core.models.app import NavigatorConfig
from flownav.core.models.navigation import NavigationResponse
from flownav.core.models.position import TaskPosition
from flownav.core.models.workflow import WorkflowDefinition, WorkflowSource
from flownav.core.navigation.engine import NavigationEngine, Transition
from flownav.core.navigation.presentation import StepPresenter
from flownav.core.persistence.base import TaskRecordAdapter, build_projections
from flownav.core.persistence.json_file import JsonTaskFileAdapter
from flownav.core.store.graph_store import LoadSummary, WorkflowStore
from flownav.core.types.status import NavigationAction, StepResult

logger = get_logger('navigator')


class Navigator:
    """
    Entry point used by the CLI and the tool surface.

    Holds no per-task state: every navigate call reads the task record,
    computes a transition and writes the new position back.
    """

    def __init__(
        self,
        config: NavigatorConfig | None = None,
        *,
        adapter: TaskRecordAdapter | None = None,
        store: WorkflowStore | None = None,
    ) -> None:
        self.config = config or NavigatorConfig()
        self.store = store or WorkflowStore()
        self.engine = NavigationEngine(
            presenter=StepPresenter(
                agent_prefix=self.config.agent_prefix,
                project_root=str(self.config.project_root),
            )
        )
        self.adapter = adapter or self._make_adapter()
        if store is None:
            self.reload()

    def _make_adapter(self) -> TaskRecordAdapter:
        if self.config.persistence == 'sql':
            from flownav.core.persistence.sql import SqlTaskRecordAdapter

            db = self.config.resolved_database()
            if db.url.startswith('sqlite:///'):
                self.config.flow_path.mkdir(parents=True, exist_ok=True)
            return SqlTaskRecordAdapter(db)
        return JsonTaskFileAdapter(base_dir=self.config.project_root)

    # ------------------------------------------------------------------
    # Workflow loading
    # ------------------------------------------------------------------

    def reload(self) -> list[LoadSummary]:
        """Drop every definition and load catalog and project workflows again."""
        self.store.clear()
        summaries: list[LoadSummary] = []
        if self.config.load_catalog:
            summaries.append(
                self.store.load_directory(self.config.catalog_path, WorkflowSource.CATALOG)
            )
        if self.config.load_project and self.config.workflows_path.is_dir():
            summaries.append(
                self.store.load_directory(self.config.workflows_path, WorkflowSource.PROJECT)
            )
        return summaries

    def load_workflows(
        self,
        path: str | Path | None = None,
        ids: list[str] | None = None,
        source: WorkflowSource = WorkflowSource.EXTERNAL,
    ) -> dict[str, Any]:
        """Load definitions from `path` (default: the project workflows dir)."""
        if path is None:
            root = self.config.workflows_path
            source = WorkflowSource.PROJECT
        else:
            root = Path(path)
            if not root.is_absolute():
                root = self.config.project_root / root
        summary = self.store.load_directory(root, source, ids)
        return {'schemaVersion': TOOL_SCHEMA_VERSION, **summary.to_dict()}

    # ------------------------------------------------------------------
    # Listing and inspection
    # ------------------------------------------------------------------

    def list_workflows(self, source: WorkflowSource | None = None) -> dict[str, Any]:
        workflows = self.store.list_workflows(source)
        return {'schemaVersion': TOOL_SCHEMA_VERSION, 'workflows': workflows}

    def select_workflow(self) -> dict[str, Any]:
        return catalog.build_workflow_selection_dialog(self.store.list_workflows())

    def inspect_workflow(self, workflow_id: str) -> dict[str, Any]:
        definition = self.store.resolve(workflow_id)
        source = self.store.source_of(workflow_id)
        return {
            'schemaVersion': TOOL_SCHEMA_VERSION,
            'workflow': definition.to_json_dict(),
            'source': source.value if source else None,
            'sourceRoot': self.store.source_root_of(workflow_id),
        }

    def check(self, ids: list[str] | None = None) -> dict[str, Any]:
        """Lint the given (or every loaded) workflow."""
        results: list[dict[str, Any]] = []
        for wf_id in ids or list(self.store):
            problems = lint_workflow(self.store.resolve(wf_id))
            results.append(
                {
                    'id': wf_id,
                    'ok': not problems,
                    'problems': [p.to_dict() for p in problems],
                }
            )
        return {
            'schemaVersion': TOOL_SCHEMA_VERSION,
            'ok': all(r['ok'] for r in results),
            'results': results,
        }

    def list_catalog(self) -> dict[str, Any]:
        return catalog.build_catalog_response(catalog.list_catalog(self.config.catalog_path))

    def copy_workflows(
        self,
        ids: list[str] | None = None,
        *,
        overwrite: bool = False,
    ) -> dict[str, Any]:
        """Copy catalog workflows into the project and load the copies."""
        report = catalog.copy_workflows(
            self.config.catalog_path,
            self.config.flow_path,
            self.config.workflows_path,
            ids,
            overwrite=overwrite,
        )
        loaded = self.store.load_directory(
            self.config.workflows_path,
            WorkflowSource.PROJECT,
            report.copied + report.skipped,
        )
        return {**report.to_dict(), 'loaded': loaded.loaded}

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate(
        self,
        task_ref: str | None = None,
        workflow_id: str | None = None,
        result: StepResult | None = None,
        autonomy: bool | None = None,
        description: str | None = None,
        branch: str | None = None,
        child_ref: str | None = None,
        branch_results: dict[str, StepResult] | None = None,
        step_id: str | None = None,
    ) -> NavigationResponse:
        """
        One navigate call.

        - no task_ref: stateless start of `workflow_id`, nothing persisted
        - task_ref without a stored position: start `workflow_id` and create
          or fill in the record
        - stored position + branch/branch_results: record fork branch outcomes
        - stored position + result: advance
        - stored position alone: current (read-only)
        """
        if task_ref is None:
            definition = self._require_workflow(workflow_id)
            transition = self.engine.start(
                definition,
                description=description,
                autonomy=bool(autonomy),
                step_id=step_id,
                source_root=self.store.source_root_of(definition.id),
            )
            return transition.response

        position = self._stored_position(task_ref)
        if position is None:
            definition = self._require_workflow(workflow_id)
            transition = self.engine.start(
                definition,
                task_id=self.adapter.canonical_id(task_ref),
                description=description,
                autonomy=bool(autonomy),
                step_id=step_id,
                source_root=self.store.source_root_of(definition.id),
            )
            logger.info(f'{task_ref}: started {definition.id} at {transition.node_id}')
            return self._persist(task_ref, transition)

        if workflow_id is not None and workflow_id != position.workflow_id:
            logger.warning(
                f'{task_ref}: record is on {position.workflow_id!r}, ignoring workflow {workflow_id!r}'
            )
        updates: dict[str, Any] = {}
        if autonomy is not None and autonomy != position.autonomy:
            updates['autonomy'] = autonomy
        if description and not position.description:
            updates['description'] = description
        if updates:
            position = position.model_copy(update=updates)

        definition = self.store.resolve(position.workflow_id)
        source_root = self.store.source_root_of(definition.id)

        if branch is not None or branch_results:
            if branch_results:
                transition = self.engine.record_branches(
                    definition, position, branch_results, source_root=source_root
                )
            else:
                transition = self.engine.record_branch(
                    definition,
                    position,
                    branch,  # type: ignore[arg-type]
                    result=result,
                    child_ref=child_ref,
                    source_root=source_root,
                )
            return self._persist(task_ref, transition)

        if result is not None:
            transition = self.engine.advance(definition, position, result, source_root=source_root)
            return self._persist(task_ref, transition)

        transition = self.engine.current(definition, position, source_root=source_root)
        if updates:
            return self._persist(task_ref, transition)
        return transition.response

    def _require_workflow(self, workflow_id: str | None) -> WorkflowDefinition:
        if workflow_id is None:
            raise TraversalError(
                message='no task position and no workflow to start',
                code=ErrorCode.NAV_MISSING_WORKFLOW,
                help_text='pass a workflow id to start a new task',
            )
        return self.store.resolve(workflow_id)

    def _stored_position(self, task_ref: str) -> TaskPosition | None:
        if not self.adapter.exists(task_ref):
            return None
        try:
            return self.adapter.read_position(task_ref)
        except PersistenceError as exc:
            if exc.code == ErrorCode.TASK_RECORD_NO_POSITION:
                return None
            raise

    def _persist(self, task_ref: str, transition: Transition) -> NavigationResponse:
        position = transition.position
        response = transition.response
        task_id = self.adapter.canonical_id(task_ref)
        projections = build_projections(response, task_id, position.description)
        write_through = self.adapter.write_position(task_ref, position, projections)
        if response.action == NavigationAction.ESCALATE:
            logger.warning(
                f'{task_ref}: escalated to {position.current_step} '
                f'after {response.retry_count}/{response.max_retries} retries'
            )
        return response.model_copy(update={'write_through': write_through})
