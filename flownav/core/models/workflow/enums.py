"""Workflow graph enums."""

from __future__ import annotations

from enum import Enum


class NodeType(str, Enum):
    """Node variants of a workflow graph."""

    START = 'start'
    """Entry point (exactly one per workflow)"""

    TASK = 'task'
    """Work performed by an agent or a human"""

    GATE = 'gate'
    """Review/approval checkpoint, usually with a retry budget"""

    END = 'end'
    """Exit point, classified by result and optional escalation"""

    FORK = 'fork'
    """Fan out to parallel branches executed by the caller"""

    JOIN = 'join'
    """Synchronization barrier for the branches of a fork"""

    @property
    def is_control(self) -> bool:
        """Fork/join carry no user-facing step identity."""
        return self in (NodeType.FORK, NodeType.JOIN)


class EndResult(str, Enum):
    """How the workflow concluded at an end node."""

    SUCCESS = 'success'
    FAILURE = 'failure'
    BLOCKED = 'blocked'
    CANCELLED = 'cancelled'


class Escalation(str, Enum):
    """What follows an end node."""

    HITL = 'hitl'
    """Human intervention required"""

    ALERT = 'alert'
    TICKET = 'ticket'


class JoinStrategy(str, Enum):
    """How a join reduces branch outcomes into one result."""

    ALL_PASS = 'all-pass'
    """passed iff every branch passed"""

    ANY_PASS = 'any-pass'
    """passed iff at least one branch passed"""


class WorkflowSource(str, Enum):
    """Where a workflow definition was loaded from.

    Higher precedence wins when two sources define the same id.
    """

    CATALOG = 'catalog'
    EXTERNAL = 'external'
    PROJECT = 'project'

    @property
    def precedence(self) -> int:
        return _SOURCE_PRECEDENCE[self]


_SOURCE_PRECEDENCE: dict[WorkflowSource, int] = {
    WorkflowSource.CATALOG: 0,
    WorkflowSource.EXTERNAL: 1,
    WorkflowSource.PROJECT: 2,
}
