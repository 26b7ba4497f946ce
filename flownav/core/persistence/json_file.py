"""Task records stored as one JSON file per task."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from flownav.core.errors import ErrorCode, PersistenceError
from flownav.core.logging import get_logger
from flownav.core.models.position import TaskPosition
from flownav.core.persistence.base import (
    TaskProjections,
    apply_write_through,
    heal_identity,
    missing_record_error,
    position_from_record,
)
from flownav.core.types.status import WriteThrough

logger = get_logger('persistence.json')


class JsonTaskFileAdapter:
    """
    `task_ref` is a path to `{id}.json`; the file stem is the canonical id.

    Writes go to a temp file in the same directory and are moved into
    place with os.replace, so readers never see a half-written record.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = base_dir

    def _path(self, task_ref: str) -> Path:
        path = Path(task_ref)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path

    def canonical_id(self, task_ref: str) -> str:
        return self._path(task_ref).stem

    def exists(self, task_ref: str) -> bool:
        return self._path(task_ref).is_file()

    def read_record(self, task_ref: str) -> dict[str, Any]:
        path = self._path(task_ref)
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            raise missing_record_error(task_ref) from None
        except OSError as exc:
            raise PersistenceError(
                message=f'cannot read task record {task_ref!r}',
                code=ErrorCode.TASK_RECORD_STORAGE_FAILED,
                notes=[f'{type(exc).__name__}: {exc}'],
                task_ref=task_ref,
            ) from exc
        try:
            record = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(
                message=f'task record {task_ref!r} is not valid JSON',
                code=ErrorCode.TASK_RECORD_INVALID,
                notes=[f'line {exc.lineno}, column {exc.colno}: {exc.msg}'],
                task_ref=task_ref,
            ) from exc
        if not isinstance(record, dict):
            raise PersistenceError(
                message=f'task record {task_ref!r} must be a JSON object',
                code=ErrorCode.TASK_RECORD_INVALID,
                task_ref=task_ref,
            )
        return heal_identity(record, self.canonical_id(task_ref), task_ref)

    def read_position(self, task_ref: str) -> TaskPosition:
        record = self.read_record(task_ref)
        return position_from_record(record, self.canonical_id(task_ref), task_ref)

    def write_position(
        self,
        task_ref: str,
        position: TaskPosition,
        projections: TaskProjections | None,
    ) -> WriteThrough:
        record = self.read_record(task_ref) if self.exists(task_ref) else {}
        updated, write_through = apply_write_through(
            record, self.canonical_id(task_ref), task_ref, position, projections
        )
        self._write_atomic(task_ref, updated)
        logger.debug(f'wrote {task_ref} at {position.current_step} ({write_through.value})')
        return write_through

    def _write_atomic(self, task_ref: str, record: dict[str, Any]) -> None:
        path = self._path(task_ref)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f'.{path.stem}.', suffix='.tmp', dir=path.parent)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                    json.dump(record, fh, indent=2, ensure_ascii=False)
                    fh.write('\n')
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(
                message=f'cannot write task record {task_ref!r}',
                code=ErrorCode.TASK_RECORD_STORAGE_FAILED,
                notes=[f'{type(exc).__name__}: {exc}'],
                task_ref=task_ref,
            ) from exc
