"""Shared default constants for flownav."""

from pathlib import Path

# Project-local directory holding workflows and task records.
DEFAULT_FLOW_DIR: str = '.flow'

# Subdirectories of the flow dir.
WORKFLOWS_SUBDIR: str = 'workflows'
TASKS_SUBDIR: str = 'tasks'

# Catalog shipped inside the package.
BUNDLED_CATALOG_PATH: Path = Path(__file__).resolve().parent.parent / 'catalog' / 'workflows'

# Version stamped on every tool response.
TOOL_SCHEMA_VERSION: int = 2

# sqlite file (inside the flow dir) used when persistence='sql' and no URL is configured.
DEFAULT_SQLITE_FILENAME: str = 'tasks.db'
