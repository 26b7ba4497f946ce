"""Navigation engine: transitions, retries, escalation, fork/join and autonomy.

Every method is a pure computation over an explicitly supplied definition
and position. Nothing here reads or writes a task record; callers persist
`Transition.position` themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flownav.core.errors import ErrorCode, TraversalError
from flownav.core.logging import get_logger
from flownav.core.models.navigation import (
    BranchDetail,
    ForkDetail,
    JoinDetail,
    NavigationResponse,
)
from flownav.core.models.position import BranchState, ForkState, TaskPosition
from flownav.core.models.workflow import (
    AnyNode,
    Edge,
    EndNode,
    ForkNode,
    JoinNode,
    StartNode,
    WorkflowDefinition,
)
from flownav.core.navigation.join import evaluate_join
from flownav.core.navigation.presentation import StepPresenter, terminal_type
from flownav.core.types.status import (
    BranchStatus,
    NavigationAction,
    StepResult,
    TerminalType,
)

logger = get_logger('engine')


@dataclass(frozen=True)
class Transition:
    """Result of one navigate call: the position to persist and the response."""

    position: TaskPosition
    response: NavigationResponse

    @property
    def node_id(self) -> str:
        return self.position.current_step


@dataclass(frozen=True)
class _Landing:
    """Internal: where a transition ended and how it was reached."""

    step_id: str
    action: NavigationAction
    retry_counts: dict[str, int]
    reported_count: int | None = None
    reported_max: int | None = None
    retries_incremented: bool = False
    autonomy_continued: bool = False


def _traversal_error(
    definition: WorkflowDefinition,
    step_id: str | None,
    message: str,
    code: ErrorCode,
    help_text: str | None = None,
) -> TraversalError:
    notes = [f"workflow '{definition.id}'"]
    if step_id is not None:
        notes.append(f"step '{step_id}'")
    return TraversalError(
        message=message,
        code=code,
        notes=notes,
        help_text=help_text,
        workflow_id=definition.id,
        step_id=step_id,
    )


def _first(edges: tuple[Edge, ...], result: StepResult) -> Edge | None:
    """First edge selected by `result`, falling back to the first unconditional edge."""
    for edge in edges:
        if edge.on == result:
            return edge
    for edge in edges:
        if edge.is_unconditional:
            return edge
    return None


@dataclass(frozen=True)
class NavigationEngine:
    """
    Stateless navigator over workflow definitions.

    Safe to share across threads: it holds only the presentation policy.
    """

    presenter: StepPresenter = field(default_factory=StepPresenter)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def start(
        self,
        definition: WorkflowDefinition,
        *,
        task_id: str | None = None,
        description: str | None = None,
        autonomy: bool = False,
        step_id: str | None = None,
        source_root: str | None = None,
    ) -> Transition:
        """
        Fresh position at the first work node.

        With `step_id`, start at that node instead (mid-flow recovery or a
        fork child task beginning at its branch entry).
        """
        position = TaskPosition(
            task_id=task_id,
            workflow_id=definition.id,
            current_step=definition.start_id,
            autonomy=autonomy,
            description=description,
        )

        if step_id is not None:
            node = self._require_node(definition, step_id)
            if isinstance(node, StartNode):
                raise _traversal_error(
                    definition,
                    step_id,
                    'cannot start at the start node itself',
                    ErrorCode.NAV_UNKNOWN_NODE,
                    help_text='omit step_id to start from the beginning',
                )
            target = step_id
        else:
            edges = definition.outgoing(definition.start_id)
            edge = next((e for e in edges if e.is_unconditional), edges[0] if edges else None)
            if edge is None:
                raise _traversal_error(
                    definition,
                    definition.start_id,
                    'start node has no outgoing edge',
                    ErrorCode.NAV_NO_MATCHING_EDGE,
                    help_text='add an edge from the start node to the first step',
                )
            target = edge.target

        landing = _Landing(step_id=target, action=NavigationAction.START, retry_counts={})
        transition = self._land(definition, position, landing, source_root)
        logger.debug(f'{definition.id}: start -> {transition.node_id}')
        return transition

    def current(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        *,
        source_root: str | None = None,
    ) -> Transition:
        """Read-only view of the stored position. Never mutates it."""
        node = self._require_node(definition, position.current_step)
        join = None
        if position.fork_state is not None:
            join = self._join_detail(definition, position.fork_state, result=None)
        response = self._respond(
            definition,
            position,
            node,
            NavigationAction.CURRENT,
            terminal=self._terminal(node),
            source_root=source_root,
            join=join,
        )
        return Transition(position=position, response=response)

    def advance(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        result: StepResult,
        *,
        source_root: str | None = None,
    ) -> Transition:
        """Apply a step result reported for the current node."""
        node = self._require_node(definition, position.current_step)
        if isinstance(node, ForkNode):
            pending = position.fork_state.pending if position.fork_state else []
            raise _traversal_error(
                definition,
                position.current_step,
                'cannot advance a fork directly while branches are outstanding',
                ErrorCode.NAV_BRANCHES_PENDING,
                help_text=(
                    f'report branch outcomes first (pending: {pending})'
                    if pending
                    else 'report branch outcomes with record_branch'
                ),
            )
        landing = self._route(definition, position, node, result)
        transition = self._land(definition, position, landing, source_root)
        log = logger.info if landing.action == NavigationAction.ESCALATE else logger.debug
        log(
            f'{definition.id}: {position.current_step} [{result.value}] '
            f'-> {transition.node_id} ({landing.action.value})'
        )
        return transition

    def record_branch(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        branch: str,
        *,
        result: StepResult | None = None,
        child_ref: str | None = None,
        source_root: str | None = None,
    ) -> Transition:
        """
        Store one branch's outcome or child reference on a fork position.

        When the last outstanding branch reports, the join strategy is
        evaluated and the task advances from the join node in the same call.
        """
        fork_id, fork_state = self._require_fork(definition, position)
        current = fork_state.branches.get(branch)
        if current is None:
            raise _traversal_error(
                definition,
                fork_id,
                f"fork '{fork_id}' has no branch '{branch}'",
                ErrorCode.NAV_UNKNOWN_BRANCH,
                help_text=f'known branches: {sorted(fork_state.branches)}',
            )

        if result is not None:
            status = BranchStatus(result.value)
        elif current.status == BranchStatus.PENDING:
            status = BranchStatus.DISPATCHED
        else:
            status = current.status
        updated = current.model_copy(
            update={'status': status, 'child_ref': child_ref or current.child_ref}
        )
        fork_state = fork_state.with_branch(branch, updated)
        logger.debug(f'{definition.id}: branch {branch} -> {status.value}')
        return self._after_branches(definition, position, fork_id, fork_state, branch, source_root)

    def record_branches(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        results: dict[str, StepResult],
        *,
        source_root: str | None = None,
    ) -> Transition:
        """
        Record several branch outcomes at once (e.g. a complete result set).

        Every outcome is applied before the join is evaluated, so the
        result never depends on the order of `results`.
        """
        fork_id, fork_state = self._require_fork(definition, position)
        unknown = sorted(set(results) - set(fork_state.branches))
        if unknown:
            raise _traversal_error(
                definition,
                fork_id,
                f"fork '{fork_id}' has no branch(es) {unknown}",
                ErrorCode.NAV_UNKNOWN_BRANCH,
                help_text=f'known branches: {sorted(fork_state.branches)}',
            )
        if not results:
            return self.current(definition, position, source_root=source_root)

        for branch, result in results.items():
            current = fork_state.branches[branch]
            fork_state = fork_state.with_branch(
                branch, current.model_copy(update={'status': BranchStatus(result.value)})
            )
        logger.debug(f'{definition.id}: recorded {len(results)} branch outcome(s) on {fork_id}')
        only = next(iter(results)) if len(results) == 1 else None
        return self._after_branches(definition, position, fork_id, fork_state, only, source_root)

    def _after_branches(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        fork_id: str,
        fork_state: ForkState,
        branch: str | None,
        source_root: str | None,
    ) -> Transition:
        """Resolve the join once every branch reported, otherwise stay on the fork."""
        if fork_state.is_complete:
            return self._resolve_join(definition, position, fork_state, source_root)

        new_position = position.model_copy(update={'fork_state': fork_state})
        response = self._respond(
            definition,
            new_position,
            definition.nodes[fork_id],
            NavigationAction.BRANCH_RECORDED,
            source_root=source_root,
            fork=self._fork_detail(definition, fork_id),
            join=self._join_detail(definition, fork_state, result=None),
            branch=branch,
        )
        return Transition(position=new_position, response=response)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _route(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        node: AnyNode,
        result: StepResult,
    ) -> _Landing:
        step_id = position.current_step
        edges = definition.outgoing(step_id)
        counts = dict(position.retry_counts)
        if isinstance(node, EndNode) and node.is_hitl:
            # A human resolved the escalation: budgets start over.
            counts = {}

        if result == StepResult.PASSED:
            edge = _first(edges, StepResult.PASSED)
            if edge is None:
                raise self._no_edge(definition, step_id, result)
            counts.pop(step_id, None)
            return _Landing(step_id=edge.target, action=NavigationAction.ADVANCE, retry_counts=counts)

        budget = node.max_retries_budget
        if budget > 0:
            failed = [e for e in edges if e.on == StepResult.FAILED]
            retry_edge = next((e for e in failed if not definition.is_end(e.target)), None)
            escalation_edge = next((e for e in failed if definition.is_end(e.target)), None)
            used = counts.get(step_id, 0)

            if used < budget and retry_edge is not None:
                counts[step_id] = used + 1
                return _Landing(
                    step_id=retry_edge.target,
                    action=NavigationAction.RETRY,
                    retry_counts=counts,
                    reported_count=used + 1,
                    reported_max=budget,
                    retries_incremented=True,
                )
            if escalation_edge is not None:
                return _Landing(
                    step_id=escalation_edge.target,
                    action=NavigationAction.ESCALATE,
                    retry_counts=counts,
                    reported_count=used,
                    reported_max=budget,
                )
            if not failed:
                raise self._no_edge(definition, step_id, result)
            raise _traversal_error(
                definition,
                step_id,
                f"retry budget of '{step_id}' exhausted ({used}/{budget}) with no escalation edge",
                ErrorCode.NAV_NO_ESCALATION_EDGE,
                help_text='add a "failed" edge from this node to an end node',
            )

        edge = _first(edges, StepResult.FAILED)
        if edge is None:
            raise self._no_edge(definition, step_id, result)
        if edge.on == StepResult.FAILED:
            action = (
                NavigationAction.ESCALATE
                if definition.is_end(edge.target)
                else NavigationAction.RETRY
            )
        else:
            # Unconditional fallback: plain progress unless it hands off to a human.
            target = definition.nodes[edge.target]
            action = (
                NavigationAction.ESCALATE
                if isinstance(target, EndNode) and target.is_hitl
                else NavigationAction.ADVANCE
            )
        return _Landing(
            step_id=edge.target,
            action=action,
            retry_counts=counts,
            reported_count=counts.get(step_id, 0),
            reported_max=0,
        )

    def _no_edge(
        self,
        definition: WorkflowDefinition,
        step_id: str,
        result: StepResult,
    ) -> TraversalError:
        return _traversal_error(
            definition,
            step_id,
            f"no outgoing edge from '{step_id}' matches result '{result.value}'",
            ErrorCode.NAV_NO_MATCHING_EDGE,
            help_text=f'add an edge with "on": "{result.value}" or an unconditional edge',
        )

    def _is_stage_boundary(self, definition: WorkflowDefinition, step_id: str) -> Edge | None:
        """The continuation edge if `step_id` is an end that work may cross."""
        node = definition.nodes[step_id]
        if not isinstance(node, EndNode) or node.is_hitl:
            return None
        for edge in definition.outgoing(step_id):
            if edge.on == StepResult.PASSED and not definition.is_end(edge.target):
                return edge
        return None

    # ------------------------------------------------------------------
    # Landing and response building
    # ------------------------------------------------------------------

    def _land(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        landing: _Landing,
        source_root: str | None,
    ) -> Transition:
        target = landing.step_id
        counts = landing.retry_counts
        continued = False

        self._require_node(definition, target)
        # A boundary always continues to a non-end node, so one hop is enough.
        edge = self._is_stage_boundary(definition, target) if position.autonomy else None
        if edge is not None:
            logger.debug(f'{definition.id}: autonomy continues past {target} -> {edge.target}')
            counts = {}
            continued = True
            target = edge.target
            self._require_node(definition, target)

        node = definition.nodes[target]
        action = landing.action
        fork_state: ForkState | None = None
        fork_detail: ForkDetail | None = None
        if isinstance(node, ForkNode):
            fork_state = self._fresh_fork_state(definition, target, node)
            fork_detail = self._fork_detail(definition, target)
            if action != NavigationAction.START:
                action = NavigationAction.FORK

        reported = landing.reported_count
        reported_max = landing.reported_max
        if continued or reported is None:
            reported = counts.get(target, 0)
            reported_max = None

        new_position = position.model_copy(
            update={
                'current_step': target,
                'retry_counts': counts,
                'retry_count': reported,
                'fork_state': fork_state,
            }
        )
        response = self._respond(
            definition,
            new_position,
            node,
            action,
            terminal=self._terminal(node),
            source_root=source_root,
            max_retries=reported_max,
            retries_incremented=landing.retries_incremented and not continued,
            autonomy_continued=continued,
            fork=fork_detail,
        )
        return Transition(position=new_position, response=response)

    def _resolve_join(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        fork_state: ForkState,
        source_root: str | None,
    ) -> Transition:
        outcomes = fork_state.outcomes()
        result = evaluate_join(fork_state.strategy, outcomes)
        logger.info(
            f'{definition.id}: join {fork_state.join} resolved {result.value} '
            f'({fork_state.strategy.value}, {len(outcomes)} branches)'
        )
        at_join = position.model_copy(
            update={'current_step': fork_state.join, 'fork_state': None}
        )
        join_node = self._require_node(definition, fork_state.join)
        landing = self._route(definition, at_join, join_node, result)
        transition = self._land(definition, at_join, landing, source_root)
        response = transition.response.model_copy(
            update={'join': self._join_detail(definition, fork_state, result=result)}
        )
        return Transition(position=transition.position, response=response)

    def _respond(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
        node: AnyNode,
        action: NavigationAction,
        *,
        terminal: TerminalType | None = None,
        source_root: str | None = None,
        max_retries: int | None = None,
        retries_incremented: bool = False,
        autonomy_continued: bool = False,
        fork: ForkDetail | None = None,
        join: JoinDetail | None = None,
        branch: str | None = None,
    ) -> NavigationResponse:
        step_id = position.current_step
        instructions = self.presenter.step_instructions(step_id, node, source_root)
        if fork is None and isinstance(node, ForkNode):
            fork = self._fork_detail(definition, step_id)
        return NavigationResponse(
            workflow_id=definition.id,
            current_step=step_id,
            action=action,
            terminal=terminal,
            stage=node.stage,
            agent=self.presenter.agent_ref(node.agent),
            step_instructions=instructions,
            orchestrator_instructions=self.presenter.orchestrator_instructions(
                node, instructions, position.description, source_root
            ),
            context_files=list(node.context_files),
            retry_count=position.retry_count,
            max_retries=node.max_retries_budget if max_retries is None else max_retries,
            retries_incremented=retries_incremented,
            autonomy_continued=autonomy_continued,
            fork=fork,
            join=join,
            branch=branch,
            metadata=position.to_metadata(),
            source_root=source_root,
        )

    def _terminal(self, node: AnyNode) -> TerminalType | None:
        if isinstance(node, JoinNode):
            return TerminalType.JOIN
        terminal = terminal_type(node)
        return None if terminal == TerminalType.START else terminal

    # ------------------------------------------------------------------
    # Fork helpers
    # ------------------------------------------------------------------

    def _fresh_fork_state(
        self,
        definition: WorkflowDefinition,
        fork_id: str,
        node: ForkNode,
    ) -> ForkState:
        join = definition.nodes[node.join]
        assert isinstance(join, JoinNode)
        return ForkState(
            fork=fork_id,
            join=node.join,
            strategy=join.strategy,
            branches={
                name: BranchState(entry_step=entry)
                for name, entry in definition.branches_of(fork_id).items()
            },
        )

    def _fork_detail(self, definition: WorkflowDefinition, fork_id: str) -> ForkDetail:
        node = definition.nodes[fork_id]
        assert isinstance(node, ForkNode)
        join = definition.nodes[node.join]
        assert isinstance(join, JoinNode)

        branches: list[BranchDetail] = []
        for name, entry in definition.branches_of(fork_id).items():
            entry_node = definition.nodes[entry]
            instructions = self.presenter.step_instructions(entry, entry_node, None)
            branches.append(
                BranchDetail(
                    branch=name,
                    entry_step=entry,
                    name=entry_node.display_name(entry),
                    stage=entry_node.stage,
                    agent=self.presenter.agent_ref(entry_node.agent),
                    description=entry_node.description,
                    instructions=instructions.guidance if instructions else '',
                    max_retries=entry_node.max_retries_budget,
                    multi_step=self._is_multi_step(definition, entry, node.join),
                    context_files=list(entry_node.context_files),
                )
            )
        return ForkDetail(
            fork=fork_id,
            join=node.join,
            strategy=join.strategy,
            max_concurrency=node.max_concurrency,
            branches=branches,
        )

    def _join_detail(
        self,
        definition: WorkflowDefinition,
        fork_state: ForkState,
        result: StepResult | None,
    ) -> JoinDetail:
        return JoinDetail(
            join=fork_state.join,
            fork=fork_state.fork,
            strategy=fork_state.strategy,
            outcomes=fork_state.outcomes(),
            pending=fork_state.pending,
            result=result,
        )

    def _is_multi_step(self, definition: WorkflowDefinition, entry: str, join_id: str) -> bool:
        """Whether the branch continues past its entry step before reaching the join."""
        for edge in definition.outgoing(entry):
            if edge.on == StepResult.FAILED:
                continue
            if edge.target != join_id and not definition.is_end(edge.target):
                return True
        return False

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_node(self, definition: WorkflowDefinition, step_id: str) -> AnyNode:
        node = definition.node(step_id)
        if node is None:
            raise _traversal_error(
                definition,
                step_id,
                f"step '{step_id}' does not exist in workflow '{definition.id}'",
                ErrorCode.NAV_UNKNOWN_NODE,
                help_text='the task record may predate a workflow change; restart the task',
            )
        return node

    def _require_fork(
        self,
        definition: WorkflowDefinition,
        position: TaskPosition,
    ) -> tuple[str, ForkState]:
        node = self._require_node(definition, position.current_step)
        if not isinstance(node, ForkNode):
            raise _traversal_error(
                definition,
                position.current_step,
                f"step '{position.current_step}' is not a fork",
                ErrorCode.NAV_NOT_AT_FORK,
                help_text='branch outcomes can only be recorded while positioned on a fork',
            )
        fork_state = position.fork_state or self._fresh_fork_state(
            definition, position.current_step, node
        )
        return position.current_step, fork_state
