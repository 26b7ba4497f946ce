# core/types/status.py
"""
Navigation enums shared by the engine, persistence layer and tool surface.
This module should not import from other application modules.
"""

from enum import Enum


class StepResult(str, Enum):
    """Outcome a caller reports for the current step"""

    PASSED = 'passed'
    FAILED = 'failed'


class NavigationAction(str, Enum):
    """What the engine did on a navigate call"""

    START = 'start'  # Fresh position at the first work node.
    CURRENT = 'current'  # Read-only view of the stored position.
    ADVANCE = 'advance'  # Forward progress along a passed/unconditional edge.
    RETRY = 'retry'  # Failed with budget left; sent back to the retry target.
    ESCALATE = 'escalate'  # Failed into an end node (budget exhausted or none).
    FORK = 'fork'  # Landed on a fork; caller dispatches the branches.
    BRANCH_RECORDED = 'branch_recorded'  # A branch outcome/child ref was stored.


class TerminalType(str, Enum):
    """Terminal classification of the landed node"""

    START = 'start'
    SUCCESS = 'success'
    HITL = 'hitl'
    FAILURE = 'failure'
    JOIN = 'join'  # A branch task reached its synchronization point.

    @property
    def needs_human(self) -> bool:
        return self in (TerminalType.HITL, TerminalType.FAILURE)


class BranchStatus(str, Enum):
    """Status of one fork branch, tracked in the position's fork state"""

    PENDING = 'pending'
    DISPATCHED = 'dispatched'
    PASSED = 'passed'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        """Whether the branch has reported an outcome."""
        return self in BRANCH_TERMINAL_STATES


BRANCH_TERMINAL_STATES: frozenset[BranchStatus] = frozenset({
    BranchStatus.PASSED,
    BranchStatus.FAILED,
})


class WriteThrough(str, Enum):
    """How the persistence layer treated the caller-visible projections"""

    APPLIED = 'applied'
    SKIPPED = 'skipped'  # Control node (fork/join): position written, projections kept.
    NONE = 'none'  # No task record involved in the call.
