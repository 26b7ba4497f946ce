"""WorkflowDefinition: the immutable graph shared by every navigation."""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from flownav.core.errors import (
    ErrorCode,
    FlownavError,
    ValidationReport,
    WorkflowDefinitionError,
    raise_collected,
)

from .enums import EndResult, NodeType
from .nodes import AnyNode, EndNode, Edge, ForkNode, JoinNode


class WorkflowDefinition(BaseModel):
    """
    A workflow graph: nodes keyed by id plus an ordered edge list.

    Construction performs structural validation only:
    - exactly one start node, at least one end, at least one success end
    - every edge endpoint exists
    - fork/join references resolve and pair up 1:1

    Reachability and retry/escalation completeness are checked on demand by
    `flownav.core.lint`, so imperfect graphs still load and navigate.
    """

    model_config = ConfigDict(frozen=True, extra='ignore', populate_by_name=True)

    id: str
    name: str | None = None
    description: str = ''
    nodes: dict[str, AnyNode]
    edges: tuple[Edge, ...] = Field(default=())

    _outgoing: dict[str, tuple[Edge, ...]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, context: Any, /) -> None:
        outgoing: dict[str, list[Edge]] = {}
        for edge in self.edges:
            outgoing.setdefault(edge.source, []).append(edge)
        self._outgoing = {node_id: tuple(edges) for node_id, edges in outgoing.items()}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def step_count(self) -> int:
        return len(self.nodes)

    @property
    def start_id(self) -> str:
        return next(
            node_id for node_id, node in self.nodes.items() if node.type == NodeType.START
        )

    def node(self, node_id: str) -> AnyNode | None:
        return self.nodes.get(node_id)

    def outgoing(self, node_id: str) -> tuple[Edge, ...]:
        return self._outgoing.get(node_id, ())

    def is_end(self, node_id: str) -> bool:
        return isinstance(self.nodes.get(node_id), EndNode)

    def branches_of(self, fork_id: str) -> dict[str, str]:
        """Branch name -> entry step for a fork node."""
        fork = self.nodes[fork_id]
        assert isinstance(fork, ForkNode)
        if fork.branches:
            return dict(fork.branches)
        return {edge.target: edge.target for edge in self.outgoing(fork_id)}

    def fork_for_join(self, join_id: str) -> str | None:
        join = self.nodes.get(join_id)
        if isinstance(join, JoinNode) and join.fork:
            return join.fork
        for node_id, node in self.nodes.items():
            if isinstance(node, ForkNode) and node.join == join_id:
                return node_id
        return None

    # ------------------------------------------------------------------
    # Structural validation
    # ------------------------------------------------------------------

    @model_validator(mode='after')
    def validate_structure(self) -> Self:
        """Collect every structural defect and raise them together."""
        report = ValidationReport(f'workflow:{self.id}')
        report.extend(self._check_terminals())
        report.extend(self._check_edges())
        report.extend(self._check_fork_join())
        raise_collected(report)
        return self

    def _error(
        self,
        message: str,
        code: ErrorCode,
        notes: list[str] | None = None,
        help_text: str | None = None,
    ) -> WorkflowDefinitionError:
        return WorkflowDefinitionError(
            message=message,
            code=code,
            notes=[f"workflow '{self.id}'", *(notes or [])],
            help_text=help_text,
            workflow_id=self.id,
        )

    def _check_terminals(self) -> list[FlownavError]:
        errors: list[FlownavError] = []
        starts = [nid for nid, n in self.nodes.items() if n.type == NodeType.START]
        ends = [n for n in self.nodes.values() if isinstance(n, EndNode)]

        if not starts:
            errors.append(
                self._error(
                    'workflow has no start node',
                    ErrorCode.WORKFLOW_NO_START,
                    help_text='add exactly one node with "type": "start"',
                )
            )
        elif len(starts) > 1:
            errors.append(
                self._error(
                    'workflow has more than one start node',
                    ErrorCode.WORKFLOW_MULTIPLE_START,
                    notes=[f'start nodes: {starts}'],
                    help_text='keep exactly one node with "type": "start"',
                )
            )

        if not ends:
            errors.append(
                self._error(
                    'workflow has no end node',
                    ErrorCode.WORKFLOW_NO_END,
                    help_text='add an end node, e.g. {"type": "end", "result": "success"}',
                )
            )
        elif not any(n.result == EndResult.SUCCESS for n in ends):
            errors.append(
                self._error(
                    'workflow has no successful end node',
                    ErrorCode.WORKFLOW_NO_SUCCESS_END,
                    help_text='mark at least one end node with "result": "success"',
                )
            )
        return errors

    def _check_edges(self) -> list[FlownavError]:
        errors: list[FlownavError] = []
        for index, edge in enumerate(self.edges):
            missing = [ref for ref in (edge.source, edge.target) if ref not in self.nodes]
            if missing:
                errors.append(
                    self._error(
                        f"edge {edge.source} -> {edge.target} references unknown node(s)",
                        ErrorCode.WORKFLOW_DANGLING_EDGE,
                        notes=[f'edge index {index}', f'unknown: {missing}'],
                        help_text='edge "from"/"to" must name nodes of the same workflow',
                    )
                )
        return errors

    def _check_fork_join(self) -> list[FlownavError]:
        errors: list[FlownavError] = []
        fork_to_join: dict[str, str] = {}

        for fork_id, fork in self.nodes.items():
            if not isinstance(fork, ForkNode):
                continue
            join = self.nodes.get(fork.join)
            if not isinstance(join, JoinNode):
                errors.append(
                    self._error(
                        f"fork '{fork_id}' references missing join node '{fork.join}'",
                        ErrorCode.WORKFLOW_INVALID_FORK,
                        help_text='"join" must name a node with "type": "join"',
                    )
                )
                continue
            fork_to_join[fork_id] = fork.join

            edge_targets = [edge.target for edge in self.edges if edge.source == fork_id]
            branches = fork.branches or {t: t for t in edge_targets}
            if not branches:
                errors.append(
                    self._error(
                        f"fork '{fork_id}' has no branches",
                        ErrorCode.WORKFLOW_INVALID_FORK,
                        help_text='declare "branches" or add outgoing edges from the fork',
                    )
                )
            for branch, entry in branches.items():
                target = self.nodes.get(entry)
                if target is None:
                    errors.append(
                        self._error(
                            f"fork '{fork_id}' branch '{branch}' targets missing node '{entry}'",
                            ErrorCode.WORKFLOW_INVALID_FORK,
                        )
                    )
                elif entry == fork.join:
                    errors.append(
                        self._error(
                            f"fork '{fork_id}' branch '{branch}' targets its own join directly",
                            ErrorCode.WORKFLOW_INVALID_FORK,
                            help_text='a branch needs at least one step before the join',
                        )
                    )
                elif isinstance(target, ForkNode):
                    errors.append(
                        self._error(
                            f"fork '{fork_id}' branch '{branch}' targets another fork '{entry}'",
                            ErrorCode.WORKFLOW_INVALID_FORK,
                            notes=['nested forks are not supported'],
                        )
                    )

        for join_id, join in self.nodes.items():
            if not isinstance(join, JoinNode) or join.fork is None:
                continue
            if not isinstance(self.nodes.get(join.fork), ForkNode):
                errors.append(
                    self._error(
                        f"join '{join_id}' references missing fork node '{join.fork}'",
                        ErrorCode.WORKFLOW_INVALID_JOIN,
                        help_text='"fork" must name a node with "type": "fork"',
                    )
                )
            elif fork_to_join.get(join.fork) != join_id:
                errors.append(
                    self._error(
                        f"join '{join_id}' -> fork '{join.fork}' pair mismatch",
                        ErrorCode.WORKFLOW_FORK_JOIN_MISMATCH,
                        notes=[f"fork '{join.fork}' points to '{fork_to_join.get(join.fork)}'"],
                        help_text='fork.join and join.fork must reference each other',
                    )
                )
        return errors

    def to_json_dict(self) -> dict[str, Any]:
        """Definition in its on-disk layout (camelCase keys, from/to edges)."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)
