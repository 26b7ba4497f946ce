"""End-to-end navigate flows over the bundled catalog with JSON task files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from flownav.core.errors import ErrorCode, PersistenceError, TraversalError
from flownav.core.models.app import NavigatorConfig
from flownav.core.navigator import Navigator
from flownav.core.types.status import (
    BranchStatus,
    NavigationAction,
    StepResult,
    TerminalType,
    WriteThrough,
)

pytestmark = pytest.mark.integration

P = StepResult.PASSED
F = StepResult.FAILED


def _record(project_root: Path, task_ref: str) -> dict[str, Any]:
    return json.loads((project_root / task_ref).read_text(encoding='utf-8'))


class TestQuickTask:
    def test_full_run_with_retries_and_escalation(
        self, navigator: Navigator, project_root: Path
    ) -> None:
        ref = '.flow/tasks/7.json'
        start = navigator.navigate(ref, workflow_id='quick-task', description='Fix typo')
        assert (start.current_step, start.action) == ('understand', NavigationAction.START)
        assert start.write_through == WriteThrough.APPLIED

        assert navigator.navigate(ref, result=P).current_step == 'execute'
        assert navigator.navigate(ref, result=P).current_step == 'verify'

        retry = navigator.navigate(ref, result=F)
        assert (retry.current_step, retry.action) == ('execute', NavigationAction.RETRY)
        assert (retry.retry_count, retry.max_retries) == (1, 2)
        assert retry.retries_incremented

        navigator.navigate(ref, result=P)
        navigator.navigate(ref, result=F)
        at_verify = navigator.navigate(ref, result=P)
        assert at_verify.retry_count == 2

        escalated = navigator.navigate(ref, result=F)
        assert escalated.current_step == 'hitl_blocked'
        assert escalated.action == NavigationAction.ESCALATE
        assert escalated.terminal == TerminalType.HITL
        assert (escalated.retry_count, escalated.max_retries) == (2, 2)

        record = _record(project_root, ref)
        assert record['id'] == '7'
        assert record['subject'].endswith('→ quick-task · hitl_blocked · HITL')
        assert record['activeForm'] == 'HITL - Needs human help'

        resumed = navigator.navigate(ref, result=P)
        assert resumed.current_step == 'execute'
        assert _record(project_root, ref)['metadata']['retryCounts'] == {}

    def test_current_is_read_only(self, navigator: Navigator, project_root: Path) -> None:
        ref = '.flow/tasks/8.json'
        navigator.navigate(ref, workflow_id='quick-task')
        before = (project_root / ref).read_text()

        current = navigator.navigate(ref)
        assert current.action == NavigationAction.CURRENT
        assert current.write_through == WriteThrough.NONE
        assert (project_root / ref).read_text() == before

    def test_existing_record_without_position_is_started(
        self, navigator: Navigator, project_root: Path
    ) -> None:
        path = project_root / 'todo' / '12.json'
        path.parent.mkdir()
        path.write_text(json.dumps({'id': '99', 'subject': 'Rename flag'}), encoding='utf-8')

        response = navigator.navigate('todo/12.json', workflow_id='quick-task')
        assert response.current_step == 'understand'
        record = _record(project_root, 'todo/12.json')
        assert record['id'] == '12'
        assert record['subject'].startswith('#12 quick-task')

    def test_stored_workflow_wins_over_argument(self, navigator: Navigator) -> None:
        ref = '.flow/tasks/9.json'
        navigator.navigate(ref, workflow_id='quick-task')
        response = navigator.navigate(ref, workflow_id='bug-fix', result=P)
        assert response.workflow_id == 'quick-task'

    def test_no_workflow_for_new_task(self, navigator: Navigator) -> None:
        with pytest.raises(TraversalError) as exc_info:
            navigator.navigate('.flow/tasks/1.json')
        assert exc_info.value.code == ErrorCode.NAV_MISSING_WORKFLOW

    def test_corrupt_record_propagates(self, navigator: Navigator, project_root: Path) -> None:
        (project_root / 'bad.json').write_text('{', encoding='utf-8')
        with pytest.raises(PersistenceError) as exc_info:
            navigator.navigate('bad.json', workflow_id='quick-task')
        assert exc_info.value.code == ErrorCode.TASK_RECORD_INVALID


class TestFeatureDevelopment:
    def _to_plan_review(self, navigator: Navigator, ref: str, autonomy: bool) -> None:
        navigator.navigate(ref, workflow_id='feature-development', autonomy=autonomy)
        navigator.navigate(ref, result=P)
        navigator.navigate(ref, result=P)

    def test_stage_boundary_stops_without_autonomy(self, navigator: Navigator) -> None:
        ref = '.flow/tasks/20.json'
        self._to_plan_review(navigator, ref, autonomy=False)

        boundary = navigator.navigate(ref, result=P)
        assert boundary.current_step == 'planning_complete'
        assert boundary.terminal == TerminalType.SUCCESS

        implement = navigator.navigate(ref, result=P)
        assert implement.current_step == 'implement'
        assert implement.action == NavigationAction.ADVANCE

    def test_autonomy_crosses_boundary(self, navigator: Navigator) -> None:
        ref = '.flow/tasks/21.json'
        self._to_plan_review(navigator, ref, autonomy=True)

        response = navigator.navigate(ref, result=P)
        assert response.current_step == 'implement'
        assert response.autonomy_continued
        assert response.terminal is None

    def test_autonomy_switched_on_later(self, navigator: Navigator, project_root: Path) -> None:
        ref = '.flow/tasks/22.json'
        self._to_plan_review(navigator, ref, autonomy=False)

        response = navigator.navigate(ref, result=P, autonomy=True)
        assert response.current_step == 'implement'
        assert _record(project_root, ref)['metadata']['autonomy'] is True

    def test_context_files_resolved_against_catalog(self, navigator: Navigator) -> None:
        response = navigator.navigate(workflow_id='feature-development')
        assert response.current_step == 'analyze'
        assert response.context_files == ['./README.md']
        assert response.orchestrator_instructions is not None
        assert '## Context' in response.orchestrator_instructions
        assert response.source_root == str(navigator.config.catalog_path)


class TestBugHuntFork:
    def test_parent_dispatches_and_resolves(
        self, navigator: Navigator, project_root: Path
    ) -> None:
        ref = '.flow/tasks/30.json'
        navigator.navigate(ref, workflow_id='bug-hunt', description='Flaky login')

        fork = navigator.navigate(ref, result=P)
        assert fork.action == NavigationAction.FORK
        assert fork.write_through == WriteThrough.SKIPPED
        assert fork.fork is not None
        assert [b.branch for b in fork.fork.branches] == [
            'reproduce',
            'code_archaeology',
            'git_forensics',
        ]
        assert fork.fork.max_concurrency == 3
        # Projections still describe triage; only the position moved.
        assert _record(project_root, ref)['activeForm'] == 'Triage (Investigator)'

        dispatched = navigator.navigate(ref, branch='reproduce', child_ref='.flow/tasks/31.json')
        assert dispatched.action == NavigationAction.BRANCH_RECORDED
        state = _record(project_root, ref)['metadata']['forkState']
        assert state['branches']['reproduce']['status'] == BranchStatus.DISPATCHED.value

        resolved = navigator.navigate(
            ref,
            branch_results={'reproduce': F, 'code_archaeology': P, 'git_forensics': F},
        )
        assert resolved.current_step == 'synthesize'
        assert resolved.join is not None
        assert resolved.join.result == P
        assert resolved.write_through == WriteThrough.APPLIED
        assert 'forkState' not in _record(project_root, ref)['metadata']

    def test_all_branches_failed_escalates(self, navigator: Navigator) -> None:
        ref = '.flow/tasks/32.json'
        navigator.navigate(ref, workflow_id='bug-hunt')
        navigator.navigate(ref, result=P)
        resolved = navigator.navigate(
            ref,
            branch_results={'reproduce': F, 'code_archaeology': F, 'git_forensics': F},
        )
        assert resolved.current_step == 'hitl_inconclusive'
        assert resolved.action == NavigationAction.ESCALATE

    def test_advance_at_fork_rejected(self, navigator: Navigator) -> None:
        ref = '.flow/tasks/33.json'
        navigator.navigate(ref, workflow_id='bug-hunt')
        navigator.navigate(ref, result=P)
        with pytest.raises(TraversalError) as exc_info:
            navigator.navigate(ref, result=P)
        assert exc_info.value.code == ErrorCode.NAV_BRANCHES_PENDING

    def test_child_task_runs_branch_to_join(self, navigator: Navigator) -> None:
        ref = '.flow/tasks/31.json'
        child = navigator.navigate(ref, workflow_id='bug-hunt', step_id='reproduce')
        assert child.current_step == 'reproduce'
        assert child.agent == 'Tester'

        at_join = navigator.navigate(ref, result=P)
        assert at_join.current_step == 'join_investigate'
        assert at_join.terminal == TerminalType.JOIN
        assert at_join.write_through == WriteThrough.SKIPPED


class TestProjectWorkflows:
    def test_copied_workflow_takes_precedence(
        self, navigator: Navigator, project_root: Path
    ) -> None:
        navigator.copy_workflows(['quick-task'])
        path = project_root / '.flow' / 'workflows' / 'quick-task' / 'workflow.json'
        data = json.loads(path.read_text())
        data['nodes']['understand']['agent'] = 'Scout'
        path.write_text(json.dumps(data), encoding='utf-8')
        navigator.reload()

        response = navigator.navigate(workflow_id='quick-task')
        assert response.agent == 'Scout'
        assert response.source_root == str(path.parent.resolve())

    def test_project_loaded_on_construction(
        self,
        project_root: Path,
        scenario_data: dict[str, Any],
        write_workflow: Callable[..., Path],
    ) -> None:
        write_workflow(scenario_data, root=project_root / '.flow' / 'workflows')
        nav = Navigator(NavigatorConfig(project_root=project_root, load_catalog=False))

        assert [w['id'] for w in nav.list_workflows()['workflows']] == ['scenario']
        assert nav.check()['ok'] is True

    def test_agent_prefix_applied(self, project_root: Path) -> None:
        nav = Navigator(NavigatorConfig(project_root=project_root, agent_prefix='@flow:'))
        response = nav.navigate(workflow_id='quick-task')
        assert response.agent == '@flow:Developer'
