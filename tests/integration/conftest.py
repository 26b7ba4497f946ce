"""Integration test fixtures: task record storage and wired navigators."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import pytest

from flownav.core.models.app import DatabaseConfig, NavigatorConfig
from flownav.core.models.task_record_sql import Base
from flownav.core.navigator import Navigator
from flownav.core.persistence.json_file import JsonTaskFileAdapter
from flownav.core.persistence.sql import SqlTaskRecordAdapter


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / 'project'
    root.mkdir()
    return root


@pytest.fixture
def json_adapter(project_root: Path) -> JsonTaskFileAdapter:
    return JsonTaskFileAdapter(base_dir=project_root)


@pytest.fixture(params=['sqlite', 'postgresql'])
def database_url(request: pytest.FixtureRequest, tmp_path: Path) -> str:
    """sqlite always; PostgreSQL when FLOWNAV_TEST_DATABASE_URL is set."""
    if request.param == 'sqlite':
        return f"sqlite:///{tmp_path / 'tasks.db'}"
    url = os.environ.get('FLOWNAV_TEST_DATABASE_URL')
    if not url:
        pytest.skip('FLOWNAV_TEST_DATABASE_URL not set')
    return url


@pytest.fixture
def sql_adapter(database_url: str) -> Generator[SqlTaskRecordAdapter, None, None]:
    adapter = SqlTaskRecordAdapter(DatabaseConfig(url=database_url))
    if not database_url.startswith('sqlite'):
        # Shared database: start from an empty table.
        Base.metadata.drop_all(adapter.engine)
        Base.metadata.create_all(adapter.engine)
    yield adapter
    adapter.close()


@pytest.fixture
def navigator(project_root: Path) -> Navigator:
    """Catalog + project workflows, JSON task files under the project root."""
    return Navigator(NavigatorConfig(project_root=project_root))
