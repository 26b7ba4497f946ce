"""In-memory index of loaded workflow definitions."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from flownav.core.errors import ErrorCode, WorkflowNotFoundError
from flownav.core.logging import get_logger
from flownav.core.models.workflow import WorkflowDefinition, WorkflowSource
from flownav.core.store.loader import LoadFailure, load_directory
from flownav.core.types.result import is_ok

logger = get_logger('store')


@dataclass(frozen=True)
class StoredWorkflow:
    definition: WorkflowDefinition
    source: WorkflowSource
    source_root: str | None = None

    def summary(self) -> dict[str, Any]:
        return {
            'id': self.definition.id,
            'name': self.definition.display_name,
            'description': self.definition.description,
            'stepCount': self.definition.step_count,
            'source': self.source.value,
        }


@dataclass
class LoadSummary:
    """Outcome of loading a directory into the store."""

    source: WorkflowSource
    loaded: list[str] = field(default_factory=list)
    failures: list[LoadFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            'source': self.source.value,
            'loaded': list(self.loaded),
            'failed': [f.to_dict() for f in self.failures],
        }


class WorkflowStore:
    """
    Workflow id -> definition index with per-source precedence.

    - project > external > catalog: resolve() returns the highest source
    - loading the same (id, source) again replaces that entry, never merges
    - the index is rebuilt copy-on-write under a lock and swapped in whole,
      so concurrent readers see either the old or the new index
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._index: dict[str, dict[WorkflowSource, StoredWorkflow]] = {}

    # --- registration ---
    def load_definition(
        self,
        definition: WorkflowDefinition,
        source: WorkflowSource,
        source_root: str | None = None,
    ) -> StoredWorkflow:
        entry = StoredWorkflow(definition=definition, source=source, source_root=source_root)
        with self._lock:
            index = dict(self._index)
            index[definition.id] = {**index.get(definition.id, {}), source: entry}
            self._index = index
        logger.debug(f'registered {definition.id} from {source.value}')
        return entry

    def load_directory(
        self,
        root: Path,
        source: WorkflowSource,
        ids: list[str] | None = None,
    ) -> LoadSummary:
        """Load every valid workflow under `root`; invalid files are logged and skipped."""
        summary = LoadSummary(source=source)
        for result in load_directory(root, ids):
            if is_ok(result):
                definition = result.ok_value
                self.load_definition(definition, source, self._root_for(root, definition.id))
                summary.loaded.append(definition.id)
            else:
                failure = result.err_value
                logger.warning(f'skipping {failure.path}: {failure.error.message}')
                summary.failures.append(failure)

        if ids:
            missing = sorted(set(ids) - set(summary.loaded) - {f.workflow_id for f in summary.failures})
            for wf_id in missing:
                logger.warning(f"workflow '{wf_id}' not found under {root}")
        logger.info(
            f'loaded {len(summary.loaded)} {source.value} workflow(s) from {root}'
            + (f', {len(summary.failures)} failed' if summary.failures else '')
        )
        return summary

    @staticmethod
    def _root_for(root: Path, workflow_id: str) -> str:
        if root.is_file():
            return str(root.parent.resolve())
        nested = root / workflow_id
        if nested.is_dir():
            return str(nested.resolve())
        return str(root.resolve())

    def remove_source(self, source: WorkflowSource) -> None:
        with self._lock:
            index: dict[str, dict[WorkflowSource, StoredWorkflow]] = {}
            for wf_id, entries in self._index.items():
                kept = {s: e for s, e in entries.items() if s != source}
                if kept:
                    index[wf_id] = kept
            self._index = index

    def clear(self) -> None:
        with self._lock:
            self._index = {}

    # --- lookup ---
    def _entry(self, workflow_id: str) -> StoredWorkflow | None:
        entries = self._index.get(workflow_id)
        if not entries:
            return None
        return max(entries.values(), key=lambda e: e.source.precedence)

    def get(self, workflow_id: str) -> StoredWorkflow | None:
        return self._entry(workflow_id)

    def resolve(self, workflow_id: str) -> WorkflowDefinition:
        entry = self._entry(workflow_id)
        if entry is None:
            raise WorkflowNotFoundError(
                message=f"workflow '{workflow_id}' not found",
                code=ErrorCode.WORKFLOW_NOT_FOUND,
                notes=[f'available: {sorted(self._index)}'],
                help_text='load it with LoadWorkflows or copy it from the catalog',
                workflow_id=workflow_id,
            )
        return entry.definition

    def source_of(self, workflow_id: str) -> WorkflowSource | None:
        entry = self._entry(workflow_id)
        return entry.source if entry else None

    def source_root_of(self, workflow_id: str) -> str | None:
        entry = self._entry(workflow_id)
        return entry.source_root if entry else None

    def has_source(self, source: WorkflowSource) -> bool:
        return any(source in entries for entries in self._index.values())

    def list_workflows(self, source_filter: WorkflowSource | None = None) -> list[dict[str, Any]]:
        """Summaries of the effective definition per id, sorted by id."""
        summaries: list[dict[str, Any]] = []
        for wf_id in sorted(self._index):
            entry = self._entry(wf_id)
            if entry is None:
                continue
            if source_filter is not None and entry.source != source_filter:
                continue
            summaries.append(entry.summary())
        return summaries

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._index))

    def __len__(self) -> int:
        return len(self._index)
