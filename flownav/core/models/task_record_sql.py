from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for flownav tables"""

    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskRecordModel(Base):
    """
    One caller-owned task record.

    - task_key: str # the task reference as given by the caller, e.g. "tasks/7"
    - record: dict # the full record: id, subject, activeForm, description, metadata
    - workflow_type: str # denormalized metadata.workflowType, for listing
    - current_step: str # denormalized metadata.currentStep, for listing
    - created_at: datetime # when the record was first written
    - updated_at: datetime # when the record was last written
    """

    __tablename__ = 'flownav_task_records'

    task_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    record: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    workflow_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    current_step: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
