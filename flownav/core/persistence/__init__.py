"""Task record persistence adapters."""

from flownav.core.persistence.base import (
    TaskProjections,
    TaskRecordAdapter,
    build_projections,
    is_control_response,
)
from flownav.core.persistence.json_file import JsonTaskFileAdapter

__all__ = [
    'JsonTaskFileAdapter',
    'TaskProjections',
    'TaskRecordAdapter',
    'build_projections',
    'is_control_response',
]
