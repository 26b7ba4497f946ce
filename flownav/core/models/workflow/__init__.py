"""Workflow graph models.

Public API re-exported from submodules:
- enums.py: NodeType, EndResult, Escalation, JoinStrategy, WorkflowSource
- nodes.py: node variants, AnyNode, Edge
- definition.py: WorkflowDefinition
"""

from .enums import (
    EndResult,
    Escalation,
    JoinStrategy,
    NodeType,
    WorkflowSource,
)
from .nodes import (
    AnyNode,
    Edge,
    EndNode,
    ForkNode,
    GateNode,
    JoinNode,
    StartNode,
    TaskNode,
)
from .definition import WorkflowDefinition

__all__ = [
    'AnyNode',
    'Edge',
    'EndNode',
    'EndResult',
    'Escalation',
    'ForkNode',
    'GateNode',
    'JoinNode',
    'JoinStrategy',
    'NodeType',
    'StartNode',
    'TaskNode',
    'WorkflowDefinition',
    'WorkflowSource',
]
