"""Unit tests for the bundled catalog, selection dialog and workflow copying."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from flownav.core.catalog import (
    ALL_WORKFLOWS_LABEL,
    FLOW_README,
    PRIMARY_WORKFLOW_IDS,
    SECONDARY_WORKFLOW_IDS,
    build_catalog_selection_options,
    build_workflow_selection_dialog,
    build_workflow_summary,
    compute_workflows_to_copy,
    copy_workflows,
    is_valid_workflow_for_copy,
    list_catalog,
    read_catalog,
)
from flownav.core.defaults import BUNDLED_CATALOG_PATH
from flownav.core.errors import ErrorCode, FlownavError, WorkflowNotFoundError
from flownav.core.lint import lint_workflow
from flownav.core.navigation.presentation import WORKFLOW_EMOJIS
from flownav.core.store.loader import load_directory
from flownav.core.types.result import is_ok

pytestmark = pytest.mark.unit

CATALOG_IDS = ['bug-fix', 'bug-hunt', 'feature-development', 'quick-task']


class TestBundledCatalog:
    def test_ids(self) -> None:
        assert sorted(read_catalog(BUNDLED_CATALOG_PATH)) == CATALOG_IDS

    def test_presentation_tables_name_only_bundled_workflows(self) -> None:
        bundled = set(read_catalog(BUNDLED_CATALOG_PATH))
        assert set(WORKFLOW_EMOJIS) == bundled
        assert {*PRIMARY_WORKFLOW_IDS, *SECONDARY_WORKFLOW_IDS} == bundled

    def test_every_workflow_loads_and_lints_clean(self) -> None:
        results = load_directory(BUNDLED_CATALOG_PATH)
        assert len(results) == len(CATALOG_IDS)
        for result in results:
            assert is_ok(result), result
            assert lint_workflow(result.ok_value) == []

    def test_list_catalog_summaries(self) -> None:
        summaries = {s['id']: s for s in list_catalog(BUNDLED_CATALOG_PATH)}
        assert summaries['quick-task']['name'] == 'Quick Task'
        assert summaries['quick-task']['stepCount'] == 6
        assert summaries['bug-hunt']['stepCount'] == 16

    def test_missing_catalog_dir(self, tmp_path: Path) -> None:
        with pytest.raises(FlownavError) as exc_info:
            read_catalog(tmp_path / 'nope')
        assert exc_info.value.code == ErrorCode.CATALOG_NOT_FOUND

    def test_invalid_files_skipped(self, tmp_path: Path) -> None:
        (tmp_path / 'broken.json').write_text('{', encoding='utf-8')
        (tmp_path / 'empty.json').write_text('{"nodes": {}}', encoding='utf-8')
        assert read_catalog(tmp_path) == {}


class TestSummaries:
    def test_summary_falls_back_to_file_id(self) -> None:
        summary = build_workflow_summary('file-id', {'nodes': {'a': {}, 'b': {}}})
        assert summary == {
            'id': 'file-id',
            'name': 'file-id',
            'description': '',
            'stepCount': 2,
        }

    def test_selection_options(self) -> None:
        workflows = [
            {'id': 'a', 'name': 'A', 'description': 'first', 'stepCount': 3},
            {'id': 'b', 'name': 'B', 'description': 'second', 'stepCount': 5},
        ]
        options = build_catalog_selection_options(workflows)
        assert options[0] == {
            'label': ALL_WORKFLOWS_LABEL,
            'description': 'Copy all 2 workflows to your project',
        }
        assert options[2] == {'label': 'B', 'description': 'second (5 steps)'}

    def test_no_workflows_no_options(self) -> None:
        assert build_catalog_selection_options([]) == []

    def test_selection_dialog_panels(self) -> None:
        workflows = list_catalog(BUNDLED_CATALOG_PATH)
        dialog = build_workflow_selection_dialog(workflows)['dialog']

        assert [panel['header'] for panel in dialog] == ['Primary', 'Other', 'Docs']
        assert [o['label'] for o in dialog[0]['options']] == ['Feature Development', 'Bug Fix']
        assert [o['label'] for o in dialog[1]['options']] == ['Quick Task', 'Bug Hunt']
        assert [o['label'] for o in dialog[2]['options']] == ['Yes', 'No']

    def test_copy_validity(self) -> None:
        assert is_valid_workflow_for_copy({'nodes': {'a': {}}, 'edges': []})
        assert not is_valid_workflow_for_copy({'nodes': {}, 'edges': []})
        assert not is_valid_workflow_for_copy({'nodes': {'a': {}}})
        assert not is_valid_workflow_for_copy([])

    def test_compute_workflows_to_copy(self) -> None:
        assert compute_workflows_to_copy(None, ['a', 'b']) == ['a', 'b']
        assert compute_workflows_to_copy([], ['a', 'b']) == ['a', 'b']
        assert compute_workflows_to_copy(['b'], ['a', 'b']) == ['b']


class TestCopyWorkflows:
    def test_copies_into_project_layout(self, tmp_path: Path) -> None:
        flow = tmp_path / '.flow'
        report = copy_workflows(BUNDLED_CATALOG_PATH, flow, flow / 'workflows', ['bug-fix'])

        assert report.copied == ['bug-fix']
        copied = json.loads((flow / 'workflows' / 'bug-fix' / 'workflow.json').read_text())
        assert copied['id'] == 'bug-fix'
        assert (flow / 'README.md').read_text() == FLOW_README
        assert (flow / 'workflows' / 'README.md').is_file()
        assert report.to_dict()['target'] == str(flow / 'workflows')

    def test_existing_copy_skipped_unless_overwrite(self, tmp_path: Path) -> None:
        flow = tmp_path / '.flow'
        target = flow / 'workflows' / 'quick-task' / 'workflow.json'
        target.parent.mkdir(parents=True)
        target.write_text('{"customized": true}', encoding='utf-8')

        report = copy_workflows(BUNDLED_CATALOG_PATH, flow, flow / 'workflows', ['quick-task'])
        assert report.skipped == ['quick-task']
        assert json.loads(target.read_text()) == {'customized': True}

        report = copy_workflows(
            BUNDLED_CATALOG_PATH, flow, flow / 'workflows', ['quick-task'], overwrite=True
        )
        assert report.copied == ['quick-task']
        assert json.loads(target.read_text())['id'] == 'quick-task'

    def test_readme_never_overwritten(self, tmp_path: Path) -> None:
        flow = tmp_path / '.flow'
        flow.mkdir()
        (flow / 'README.md').write_text('mine', encoding='utf-8')
        copy_workflows(BUNDLED_CATALOG_PATH, flow, flow / 'workflows', ['bug-fix'], overwrite=True)
        assert (flow / 'README.md').read_text() == 'mine'

    def test_copy_all(self, tmp_path: Path) -> None:
        flow = tmp_path / '.flow'
        report = copy_workflows(BUNDLED_CATALOG_PATH, flow, flow / 'workflows')
        assert sorted(report.copied) == CATALOG_IDS

    def test_unknown_id_raises_before_writing(self, tmp_path: Path) -> None:
        flow = tmp_path / '.flow'
        with pytest.raises(WorkflowNotFoundError) as exc_info:
            copy_workflows(BUNDLED_CATALOG_PATH, flow, flow / 'workflows', ['bug-fix', 'nope'])
        assert exc_info.value.code == ErrorCode.WORKFLOW_NOT_FOUND
        assert not flow.exists()
