"""Unit tests for workflow file discovery and loading."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from flownav.core.errors import ErrorCode, MultipleValidationErrors, WorkflowDefinitionError
from flownav.core.store.loader import (
    discover_workflow_files,
    load_directory,
    load_workflow_file,
    parse_definition,
)
from flownav.core.types.result import is_err, is_ok

pytestmark = pytest.mark.unit


class TestParseDefinition:
    def test_file_id_is_authoritative(self, scenario_data: dict[str, Any]) -> None:
        definition = parse_definition(scenario_data, 'renamed')
        assert definition.id == 'renamed'

    def test_missing_embedded_id_filled_in(self, scenario_data: dict[str, Any]) -> None:
        del scenario_data['id']
        assert parse_definition(scenario_data, 'scenario').id == 'scenario'

    def test_non_object_rejected(self) -> None:
        with pytest.raises(WorkflowDefinitionError, match='must be a JSON object') as exc_info:
            parse_definition(['not', 'a', 'dict'], 'x')
        assert exc_info.value.code == ErrorCode.WORKFLOW_INVALID_SCHEMA

    def test_schema_error_wrapped(self, scenario_data: dict[str, Any]) -> None:
        scenario_data['nodes']['work'] = {'type': 'mystery'}
        with pytest.raises(WorkflowDefinitionError) as exc_info:
            parse_definition(scenario_data, 'scenario')
        assert exc_info.value.code == ErrorCode.WORKFLOW_INVALID_SCHEMA
        assert any('nodes.work' in note for note in exc_info.value.notes)

    def test_structural_errors_pass_through(self, scenario_data: dict[str, Any]) -> None:
        del scenario_data['nodes']['start']
        scenario_data['edges'].append({'from': 'work', 'to': 'ghost'})
        with pytest.raises(MultipleValidationErrors):
            parse_definition(scenario_data, 'scenario')


class TestLoadWorkflowFile:
    def test_ok(self, tmp_path: Path, scenario_data: dict[str, Any]) -> None:
        path = tmp_path / 'scenario.json'
        path.write_text(json.dumps(scenario_data), encoding='utf-8')
        result = load_workflow_file(path)
        assert is_ok(result)
        assert result.ok_value.id == 'scenario'

    def test_nested_id_from_directory(
        self, write_workflow: Callable[..., Path], scenario_data: dict[str, Any]
    ) -> None:
        root = write_workflow(scenario_data, wf_id='custom-flow')
        result = load_workflow_file(root / 'custom-flow' / 'workflow.json')
        assert is_ok(result)
        assert result.ok_value.id == 'custom-flow'

    def test_invalid_json_is_err(self, tmp_path: Path) -> None:
        path = tmp_path / 'broken.json'
        path.write_text('{"nodes": ', encoding='utf-8')
        result = load_workflow_file(path)
        assert is_err(result)
        failure = result.err_value
        assert failure.workflow_id == 'broken'
        assert failure.error.code == ErrorCode.WORKFLOW_UNREADABLE
        assert failure.to_dict()['code'] == 'E013'

    def test_missing_file_is_err(self, tmp_path: Path) -> None:
        result = load_workflow_file(tmp_path / 'absent.json')
        assert is_err(result)
        assert result.err_value.error.code == ErrorCode.WORKFLOW_UNREADABLE

    def test_invalid_definition_is_err(self, tmp_path: Path) -> None:
        path = tmp_path / 'empty.json'
        path.write_text(json.dumps({'nodes': {}, 'edges': []}), encoding='utf-8')
        result = load_workflow_file(path)
        assert is_err(result)
        assert isinstance(result.err_value.error, MultipleValidationErrors)


class TestDiscovery:
    def test_flat_and_nested_layouts(
        self,
        tmp_path: Path,
        write_workflow: Callable[..., Path],
        scenario_data: dict[str, Any],
    ) -> None:
        root = write_workflow(scenario_data, root=tmp_path, wf_id='nested-one')
        (root / 'flat-one.json').write_text(json.dumps(scenario_data), encoding='utf-8')

        ids = [wf_id for wf_id, _ in discover_workflow_files(root)]
        assert ids == ['flat-one', 'nested-one']

    def test_nested_wins_over_flat(
        self,
        tmp_path: Path,
        write_workflow: Callable[..., Path],
        scenario_data: dict[str, Any],
    ) -> None:
        root = write_workflow(scenario_data, root=tmp_path, wf_id='dup')
        (root / 'dup.json').write_text(json.dumps(scenario_data), encoding='utf-8')

        found = dict(discover_workflow_files(root))
        assert found['dup'] == root / 'dup' / 'workflow.json'

    def test_single_file_root(self, tmp_path: Path, scenario_data: dict[str, Any]) -> None:
        path = tmp_path / 'only.json'
        path.write_text(json.dumps(scenario_data), encoding='utf-8')
        assert list(discover_workflow_files(path)) == [('only', path)]

    def test_missing_root_yields_nothing(self, tmp_path: Path) -> None:
        assert list(discover_workflow_files(tmp_path / 'nope')) == []


class TestLoadDirectory:
    def test_bad_file_does_not_block_others(
        self,
        tmp_path: Path,
        write_workflow: Callable[..., Path],
        scenario_data: dict[str, Any],
    ) -> None:
        root = write_workflow(scenario_data)
        (root / 'broken.json').write_text('not json', encoding='utf-8')

        results = load_directory(root)
        assert [is_ok(r) for r in results] == [False, True]

    def test_ids_filter(
        self,
        write_workflow: Callable[..., Path],
        scenario_data: dict[str, Any],
    ) -> None:
        root = write_workflow(scenario_data, wf_id='one')
        write_workflow(scenario_data, root=root, wf_id='two')
        results = load_directory(root, ['two'])
        assert len(results) == 1
        assert is_ok(results[0])
        assert results[0].ok_value.id == 'two'
