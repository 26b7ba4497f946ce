"""Graph store: workflow definition loading and lookup."""

from flownav.core.store.graph_store import LoadSummary, StoredWorkflow, WorkflowStore
from flownav.core.store.loader import (
    LoadFailure,
    discover_workflow_files,
    load_directory,
    load_workflow_file,
    parse_definition,
)

__all__ = [
    'LoadFailure',
    'LoadSummary',
    'StoredWorkflow',
    'WorkflowStore',
    'discover_workflow_files',
    'load_directory',
    'load_workflow_file',
    'parse_definition',
]
