"""Workflow graph node and edge models."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from flownav.core.types.status import StepResult

from .enums import EndResult, Escalation, JoinStrategy, NodeType


class _NodeBase(BaseModel):
    """Fields every node variant accepts.

    `stage` and `agent` are opaque strings interpreted only by the caller;
    `context_files` are path declarations passed through untouched.
    """

    model_config = ConfigDict(frozen=True, extra='ignore', populate_by_name=True)

    name: str | None = None
    description: str | None = None
    stage: str | None = None
    agent: str | None = None
    instructions: str | None = None
    context_files: tuple[str, ...] = ()
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def node_type(self) -> NodeType:
        return NodeType(getattr(self, 'type'))

    @property
    def max_retries_budget(self) -> int:
        return 0

    def display_name(self, node_id: str) -> str:
        return self.name or node_id


class StartNode(_NodeBase):
    type: Literal['start'] = 'start'


class TaskNode(_NodeBase):
    """Work performed by an agent.

    - maxRetries: failures tolerated (each routed to the retry target)
      before the failed edge to an end node is taken. 0 = no budget.
    """

    type: Literal['task'] = 'task'
    max_retries: int = Field(default=0, ge=0, alias='maxRetries')

    @property
    def max_retries_budget(self) -> int:
        return self.max_retries


class GateNode(TaskNode):
    """Review/approval checkpoint. Same transition rules as a task."""

    type: Literal['gate'] = 'gate'  # type: ignore[assignment]


class EndNode(_NodeBase):
    type: Literal['end'] = 'end'
    result: EndResult = EndResult.SUCCESS
    escalation: Escalation | None = None

    @property
    def is_hitl(self) -> bool:
        return self.escalation == Escalation.HITL

    @property
    def is_success(self) -> bool:
        return self.result == EndResult.SUCCESS and not self.is_hitl


class ForkNode(_NodeBase):
    """Fan out to parallel branches.

    - branches: branch name -> entry step id. When omitted, every outgoing
      edge of the fork is a branch named after its target.
    - join: id of the paired join node
    - maxConcurrency: hint passed through to the caller
    """

    type: Literal['fork'] = 'fork'
    branches: dict[str, str] | None = None
    join: str
    max_concurrency: int | None = Field(default=None, ge=1, alias='maxConcurrency')


class JoinNode(_NodeBase):
    type: Literal['join'] = 'join'
    fork: str | None = None
    strategy: JoinStrategy = JoinStrategy.ALL_PASS


AnyNode = Annotated[
    Union[StartNode, TaskNode, GateNode, EndNode, ForkNode, JoinNode],
    Field(discriminator='type'),
]


class Edge(BaseModel):
    """Directed transition between two nodes.

    - on: result that selects this edge; None = unconditional
    - label: display only
    - condition: informational, never evaluated
    """

    model_config = ConfigDict(frozen=True, extra='ignore', populate_by_name=True)

    source: str = Field(alias='from')
    target: str = Field(alias='to')
    on: StepResult | None = None
    label: str | None = None
    condition: str | None = None

    @property
    def is_unconditional(self) -> bool:
        return self.on is None
