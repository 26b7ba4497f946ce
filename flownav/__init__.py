"""flownav - workflow navigation for multi-step agent work"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.navigator import Navigator
from .core.models.app import NavigatorConfig, DatabaseConfig
from .core.models.workflow import (
    WorkflowDefinition,
    AnyNode,
    Edge,
    StartNode,
    TaskNode,
    GateNode,
    EndNode,
    ForkNode,
    JoinNode,
    NodeType,
    EndResult,
    Escalation,
    JoinStrategy,
    WorkflowSource,
)
from .core.models.position import TaskPosition, ForkState, BranchState
from .core.models.navigation import (
    NavigationResponse,
    StepInstructions,
    ForkDetail,
    BranchDetail,
    JoinDetail,
)
from .core.navigation import NavigationEngine, Transition, StepPresenter, evaluate_join
from .core.store import WorkflowStore, LoadFailure
from .core.lint import lint_workflow
from .core.persistence import JsonTaskFileAdapter, TaskRecordAdapter, TaskProjections
from .core.tools import TOOL_DEFINITIONS, call_tool
from .core.types.status import (
    StepResult,
    NavigationAction,
    TerminalType,
    BranchStatus,
    WriteThrough,
)
from .core.errors import (
    ErrorCode,
    FlownavError,
    WorkflowDefinitionError,
    TraversalError,
    ConfigurationError,
    WorkflowNotFoundError,
    PersistenceError,
    MultipleValidationErrors,
)
from .core.types.result import Result, Ok, Err, is_ok, is_err

__all__ = [
    'Navigator',
    'NavigatorConfig',
    'DatabaseConfig',
    # Workflow model
    'WorkflowDefinition',
    'AnyNode',
    'Edge',
    'StartNode',
    'TaskNode',
    'GateNode',
    'EndNode',
    'ForkNode',
    'JoinNode',
    'NodeType',
    'EndResult',
    'Escalation',
    'JoinStrategy',
    'WorkflowSource',
    # Position and responses
    'TaskPosition',
    'ForkState',
    'BranchState',
    'NavigationResponse',
    'StepInstructions',
    'ForkDetail',
    'BranchDetail',
    'JoinDetail',
    # Engine and store
    'NavigationEngine',
    'Transition',
    'StepPresenter',
    'evaluate_join',
    'WorkflowStore',
    'LoadFailure',
    'lint_workflow',
    # Persistence
    'JsonTaskFileAdapter',
    'TaskRecordAdapter',
    'TaskProjections',
    # Tools
    'TOOL_DEFINITIONS',
    'call_tool',
    # Status enums
    'StepResult',
    'NavigationAction',
    'TerminalType',
    'BranchStatus',
    'WriteThrough',
    # Errors
    'ErrorCode',
    'FlownavError',
    'WorkflowDefinitionError',
    'TraversalError',
    'ConfigurationError',
    'WorkflowNotFoundError',
    'PersistenceError',
    'MultipleValidationErrors',
    # Result type
    'Result',
    'Ok',
    'Err',
    'is_ok',
    'is_err',
]
