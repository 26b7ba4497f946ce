# flownav/core/utils/db.py
"""Classification of storage driver errors into PersistenceError."""

from __future__ import annotations

from psycopg import InterfaceError, OperationalError
from sqlalchemy.exc import DBAPIError, OperationalError as SAOperationalError, SQLAlchemyError

from flownav.core.errors import ErrorCode, PersistenceError


def is_dbapi_disconnect(exc: DBAPIError) -> bool:
    """Check whether a SQLAlchemy DBAPIError represents a connection disconnect."""
    connection_invalidated = bool(getattr(exc, 'connection_invalidated', False))
    is_disconnect = bool(getattr(exc, 'is_disconnect', False))
    return connection_invalidated or is_disconnect


def is_retryable_connection_error(exc: BaseException) -> bool:
    """Transient connection failures a caller may retry.

    Nothing inside flownav retries; the flag is surfaced on the error.
    """
    match exc:
        case OperationalError() | InterfaceError() | SAOperationalError():
            return True
        case DBAPIError() as db_exc if is_dbapi_disconnect(db_exc):
            return True
        case _:
            return False


def storage_error(
    exc: SQLAlchemyError | OperationalError | InterfaceError,
    task_ref: str,
    operation: str,
) -> PersistenceError:
    retryable = is_retryable_connection_error(exc)
    return PersistenceError(
        message=f'task record {operation} failed for {task_ref!r}',
        code=ErrorCode.TASK_RECORD_STORAGE_FAILED,
        notes=[f'{type(exc).__name__}: {exc}'.splitlines()[0]],
        help_text='the database may be unreachable; retry the call' if retryable else None,
        task_ref=task_ref,
        retryable=retryable,
    )
