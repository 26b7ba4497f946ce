"""Task record contract shared by every persistence adapter.

A task record is a JSON object owned by the caller:

    {
      "id": "7",
      "subject": "#7 Fix login\\n→ bug-fix · reproduce (@flow:Tester)",
      "activeForm": "Reproduce (@flow:Tester)",
      "description": "<orchestrator instructions>",
      "metadata": {"workflowType": ..., "currentStep": ..., "retryCount": ...,
                   "retryCounts": {...}, "autonomy": ..., "userDescription": ...,
                   "forkState": {...}}
    }

The storage location decides the canonical id; an embedded id that
disagrees is overwritten on every read and write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from flownav.core.errors import ErrorCode, PersistenceError
from flownav.core.logging import get_logger
from flownav.core.models.navigation import NavigationResponse
from flownav.core.models.position import TaskPosition
from flownav.core.navigation.presentation import build_task_active_form, build_task_subject
from flownav.core.types.status import TerminalType, WriteThrough

logger = get_logger('persistence')


@dataclass(frozen=True)
class TaskProjections:
    """Caller-visible text derived from a position."""

    subject: str
    active_form: str
    description: str | None = None


@runtime_checkable
class TaskRecordAdapter(Protocol):
    """Storage for task records addressed by an opaque task reference."""

    def canonical_id(self, task_ref: str) -> str: ...

    def exists(self, task_ref: str) -> bool: ...

    def read_record(self, task_ref: str) -> dict[str, Any]: ...

    def read_position(self, task_ref: str) -> TaskPosition: ...

    def write_position(
        self,
        task_ref: str,
        position: TaskPosition,
        projections: TaskProjections | None,
    ) -> WriteThrough: ...


def is_control_response(response: NavigationResponse) -> bool:
    """Fork and join positions carry no user-facing step identity."""
    return response.fork is not None or response.terminal == TerminalType.JOIN


def build_projections(
    response: NavigationResponse,
    task_id: str,
    user_description: str | None,
) -> TaskProjections | None:
    """Subject/activity/instructions for a response, or None for control nodes."""
    if is_control_response(response):
        return None
    step_name = (
        response.step_instructions.name if response.step_instructions else response.current_step
    )
    subject = build_task_subject(
        task_id=task_id,
        user_description=user_description or response.workflow_id,
        workflow_id=response.workflow_id,
        step_id=response.current_step,
        agent=response.agent,
        terminal=response.terminal,
        max_retries=response.max_retries,
        retry_count=response.retry_count,
    )
    return TaskProjections(
        subject=subject,
        active_form=build_task_active_form(step_name, response.agent, response.terminal),
        description=response.orchestrator_instructions,
    )


def heal_identity(record: dict[str, Any], canonical_id: str, task_ref: str) -> dict[str, Any]:
    """Force the record's embedded id to the storage-derived one."""
    embedded = record.get('id')
    if embedded is not None and str(embedded) != canonical_id:
        logger.warning(
            f'task record {task_ref}: embedded id {embedded!r} disagrees with '
            f'storage id {canonical_id!r}, correcting'
        )
    return {**record, 'id': canonical_id}


def position_from_record(
    record: dict[str, Any],
    canonical_id: str,
    task_ref: str,
) -> TaskPosition:
    metadata = record.get('metadata')
    if not isinstance(metadata, dict) or not metadata.get('currentStep') or not (
        metadata.get('workflowType') or metadata.get('workflowId')
    ):
        raise PersistenceError(
            message=f'task record {task_ref!r} has no workflow position',
            code=ErrorCode.TASK_RECORD_NO_POSITION,
            notes=['metadata needs "workflowType" and "currentStep"'],
            help_text='start the task with a workflow id first',
            task_ref=task_ref,
        )
    try:
        return TaskPosition.from_metadata(canonical_id, metadata)
    except ValidationError as exc:
        raise PersistenceError(
            message=f'task record {task_ref!r} has invalid position metadata',
            code=ErrorCode.TASK_RECORD_INVALID,
            notes=[str(exc).splitlines()[0]],
            task_ref=task_ref,
        ) from exc


def apply_write_through(
    record: dict[str, Any],
    canonical_id: str,
    task_ref: str,
    position: TaskPosition,
    projections: TaskProjections | None,
) -> tuple[dict[str, Any], WriteThrough]:
    """
    New record content for a position write.

    Position metadata is always replaced; subject, activeForm and
    description only when projections are supplied.
    """
    updated = heal_identity(record, canonical_id, task_ref)
    metadata = {
        key: value
        for key, value in (updated.get('metadata') or {}).items()
        if key not in ('forkState', 'workflowId', 'userDescription')
    }
    metadata.update(position.to_metadata())
    updated['metadata'] = metadata

    if projections is None:
        return updated, WriteThrough.SKIPPED

    updated['subject'] = projections.subject
    updated['activeForm'] = projections.active_form
    if projections.description is not None:
        updated['description'] = projections.description
    return updated, WriteThrough.APPLIED


def missing_record_error(task_ref: str) -> PersistenceError:
    return PersistenceError(
        message=f'task record {task_ref!r} not found',
        code=ErrorCode.TASK_RECORD_NOT_FOUND,
        help_text='pass a workflow id to create and start the task',
        task_ref=task_ref,
    )
