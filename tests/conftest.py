"""Root test configuration for flownav tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest
from dotenv import load_dotenv

from flownav.core.models.workflow import WorkflowDefinition
from flownav.core.navigation.engine import NavigationEngine

# Load test environment before any test module imports
load_dotenv(dotenv_path=Path(__file__).parent.parent / '.env.test')


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line('markers', 'unit: Unit tests (no database or task records)')
    config.addinivalue_line(
        'markers', 'integration: Integration tests (task record files, sqlite)'
    )


# =============================================================================
# Workflow fixtures
# =============================================================================


def _scenario() -> dict[str, Any]:
    """start -> work -> check(gate, maxRetries=1) -> end_success, with hitl escalation."""
    return {
        'id': 'scenario',
        'name': 'Scenario',
        'nodes': {
            'start': {'type': 'start'},
            'work': {'type': 'task', 'name': 'Do Work', 'agent': 'Developer', 'stage': 'development'},
            'check': {'type': 'gate', 'name': 'Check', 'agent': 'Reviewer', 'maxRetries': 1},
            'end_success': {'type': 'end', 'result': 'success'},
            'hitl_blocked': {'type': 'end', 'result': 'blocked', 'escalation': 'hitl'},
        },
        'edges': [
            {'from': 'start', 'to': 'work'},
            {'from': 'work', 'to': 'check', 'on': 'passed'},
            {'from': 'check', 'to': 'end_success', 'on': 'passed'},
            {'from': 'check', 'to': 'work', 'on': 'failed'},
            {'from': 'check', 'to': 'hitl_blocked', 'on': 'failed'},
            {'from': 'hitl_blocked', 'to': 'work', 'on': 'passed'},
        ],
    }


def _fork(strategy: str = 'all-pass') -> dict[str, Any]:
    """prep -> fork(a, b) -> join -> finish; branch b has two steps."""
    return {
        'id': 'forked',
        'nodes': {
            'start': {'type': 'start'},
            'prep': {'type': 'task', 'agent': 'Planner'},
            'fork_work': {'type': 'fork', 'join': 'join_work', 'maxConcurrency': 2},
            'a_step': {'type': 'task', 'agent': 'Tester', 'stage': 'investigation'},
            'b_step': {'type': 'task', 'agent': 'Developer', 'maxRetries': 2},
            'b_more': {'type': 'task', 'agent': 'Developer'},
            'join_work': {'type': 'join', 'fork': 'fork_work', 'strategy': strategy},
            'finish': {'type': 'task', 'agent': 'Developer'},
            'end_success': {'type': 'end'},
            'hitl_join': {'type': 'end', 'result': 'blocked', 'escalation': 'hitl'},
        },
        'edges': [
            {'from': 'start', 'to': 'prep'},
            {'from': 'prep', 'to': 'fork_work', 'on': 'passed'},
            {'from': 'fork_work', 'to': 'a_step'},
            {'from': 'fork_work', 'to': 'b_step'},
            {'from': 'a_step', 'to': 'join_work'},
            {'from': 'b_step', 'to': 'b_more', 'on': 'passed'},
            {'from': 'b_more', 'to': 'join_work', 'on': 'passed'},
            {'from': 'join_work', 'to': 'finish', 'on': 'passed'},
            {'from': 'join_work', 'to': 'hitl_join', 'on': 'failed'},
            {'from': 'finish', 'to': 'end_success', 'on': 'passed'},
        ],
    }


def _staged() -> dict[str, Any]:
    """plan -> planning_done (stage boundary end) -> build -> end_success."""
    return {
        'id': 'staged',
        'nodes': {
            'start': {'type': 'start'},
            'plan': {'type': 'task', 'agent': 'Architect', 'stage': 'planning'},
            'planning_done': {'type': 'end', 'result': 'success'},
            'build': {'type': 'task', 'agent': 'Developer', 'stage': 'development'},
            'end_success': {'type': 'end', 'result': 'success'},
        },
        'edges': [
            {'from': 'start', 'to': 'plan'},
            {'from': 'plan', 'to': 'planning_done', 'on': 'passed'},
            {'from': 'planning_done', 'to': 'build', 'on': 'passed'},
            {'from': 'build', 'to': 'end_success', 'on': 'passed'},
        ],
    }


@pytest.fixture
def scenario_data() -> dict[str, Any]:
    return _scenario()


@pytest.fixture
def scenario_workflow() -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(_scenario())


@pytest.fixture
def fork_data() -> Callable[[str], dict[str, Any]]:
    return _fork


@pytest.fixture
def fork_workflow() -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(_fork())


@pytest.fixture
def staged_workflow() -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(_staged())


@pytest.fixture
def engine() -> NavigationEngine:
    return NavigationEngine()


@pytest.fixture
def write_workflow(tmp_path: Path) -> Callable[..., Path]:
    """Write workflow data as `{root}/{id}/workflow.json` and return the root."""

    def _write(data: dict[str, Any], root: Path | None = None, wf_id: str | None = None) -> Path:
        base = root or tmp_path / 'workflows'
        target = base / (wf_id or data['id']) / 'workflow.json'
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(data), encoding='utf-8')
        return base

    return _write
