"""Task records stored in a SQL table (sqlite or PostgreSQL via psycopg)."""

from __future__ import annotations

from typing import Any

from psycopg import InterfaceError, OperationalError
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from flownav.core.errors import ErrorCode, PersistenceError
from flownav.core.logging import get_logger
from flownav.core.models.app import DatabaseConfig
from flownav.core.models.position import TaskPosition
from flownav.core.models.task_record_sql import Base, TaskRecordModel
from flownav.core.persistence.base import (
    TaskProjections,
    apply_write_through,
    heal_identity,
    missing_record_error,
    position_from_record,
)
from flownav.core.types.status import WriteThrough
from flownav.core.utils.db import storage_error
from flownav.core.utils.url import mask_database_url, to_sqlalchemy_url

logger = get_logger('persistence.sql')

_DRIVER_ERRORS = (SQLAlchemyError, OperationalError, InterfaceError)


class SqlTaskRecordAdapter:
    """
    `task_ref` is a key such as "tasks/7"; the last path segment is the
    canonical id. Each write runs in its own transaction.
    """

    def __init__(self, config: DatabaseConfig, *, create_tables: bool = True) -> None:
        self.config = config
        url = to_sqlalchemy_url(config.url)
        self.engine: Engine = create_engine(
            url,
            echo=config.echo,
            pool_pre_ping=config.pool_pre_ping,
        )
        self.session_factory: sessionmaker[Session] = sessionmaker(
            self.engine, expire_on_commit=False
        )
        if create_tables:
            self.create_tables()
        logger.info(f'SQL task records at {mask_database_url(url)}')

    def create_tables(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except _DRIVER_ERRORS as exc:
            raise storage_error(exc, '<schema>', 'table creation') from exc

    def close(self) -> None:
        self.engine.dispose()

    def canonical_id(self, task_ref: str) -> str:
        return task_ref.rstrip('/').rsplit('/', 1)[-1]

    def exists(self, task_ref: str) -> bool:
        try:
            with self.session_factory() as session:
                return session.get(TaskRecordModel, task_ref) is not None
        except _DRIVER_ERRORS as exc:
            raise storage_error(exc, task_ref, 'lookup') from exc

    def read_record(self, task_ref: str) -> dict[str, Any]:
        try:
            with self.session_factory() as session:
                row = session.get(TaskRecordModel, task_ref)
                record = dict(row.record) if row is not None else None
        except _DRIVER_ERRORS as exc:
            raise storage_error(exc, task_ref, 'read') from exc
        if record is None:
            raise missing_record_error(task_ref)
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
        try:
            with self.session_factory.begin() as session:
                row = session.get(TaskRecordModel, task_ref, with_for_update=True)
                current = dict(row.record) if row is not None else {}
                updated, write_through = apply_write_through(
                    current, self.canonical_id(task_ref), task_ref, position, projections
                )
                if row is None:
                    session.add(
                        TaskRecordModel(
                            task_key=task_ref,
                            record=updated,
                            workflow_type=position.workflow_id,
                            current_step=position.current_step,
                        )
                    )
                else:
                    row.record = updated
                    row.workflow_type = position.workflow_id
                    row.current_step = position.current_step
        except _DRIVER_ERRORS as exc:
            raise storage_error(exc, task_ref, 'write') from exc
        logger.debug(f'wrote {task_ref} at {position.current_step} ({write_through.value})')
        return write_through

    def list_records(self, workflow_id: str | None = None) -> list[dict[str, Any]]:
        """Task key, workflow and step of every stored record."""
        stmt = select(
            TaskRecordModel.task_key,
            TaskRecordModel.workflow_type,
            TaskRecordModel.current_step,
        ).order_by(TaskRecordModel.task_key)
        if workflow_id is not None:
            stmt = stmt.where(TaskRecordModel.workflow_type == workflow_id)
        try:
            with self.session_factory() as session:
                rows = session.execute(stmt).all()
        except _DRIVER_ERRORS as exc:
            raise storage_error(exc, '<all>', 'listing') from exc
        return [
            {'taskRef': key, 'workflowType': wf, 'currentStep': step}
            for key, wf, step in rows
        ]


def put_record(adapter: SqlTaskRecordAdapter, task_ref: str, record: dict[str, Any]) -> None:
    """Store a raw record as-is (imports and test setup)."""
    if not isinstance(record, dict):
        raise PersistenceError(
            message=f'task record {task_ref!r} must be a JSON object',
            code=ErrorCode.TASK_RECORD_INVALID,
            task_ref=task_ref,
        )
    metadata = record.get('metadata') or {}
    try:
        with adapter.session_factory.begin() as session:
            session.merge(
                TaskRecordModel(
                    task_key=task_ref,
                    record=record,
                    workflow_type=metadata.get('workflowType'),
                    current_step=metadata.get('currentStep'),
                )
            )
    except _DRIVER_ERRORS as exc:
        raise storage_error(exc, task_ref, 'write') from exc
