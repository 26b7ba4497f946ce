"""On-demand diagnostics for loaded workflows.

Checks that load-time validation deliberately leaves out, so imperfect
graphs stay navigable:
- every non-start node is reachable from the start node
- every node with a retry budget has both a retry target (failed edge to
  a non-end node) and an escalation target (failed edge to an end node)
"""

from __future__ import annotations

from collections import deque

from flownav.core.errors import ErrorCode, WorkflowDefinitionError
from flownav.core.models.workflow import ForkNode, WorkflowDefinition
from flownav.core.types.status import StepResult


def reachable_from_start(definition: WorkflowDefinition) -> set[str]:
    """Node ids reachable from start along any edge or fork branch."""
    seen = {definition.start_id}
    queue = deque([definition.start_id])
    while queue:
        node_id = queue.popleft()
        targets = [edge.target for edge in definition.outgoing(node_id)]
        node = definition.nodes.get(node_id)
        if isinstance(node, ForkNode):
            targets.extend(definition.branches_of(node_id).values())
            # Branches rejoin implicitly; the join is reached through the fork.
            targets.append(node.join)
        for target in targets:
            if target in definition.nodes and target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


def lint_workflow(definition: WorkflowDefinition) -> list[WorkflowDefinitionError]:
    errors: list[WorkflowDefinitionError] = []

    reachable = reachable_from_start(definition)
    for node_id in definition.nodes:
        if node_id not in reachable:
            errors.append(
                WorkflowDefinitionError(
                    message=f"node '{node_id}' is unreachable from start",
                    code=ErrorCode.WORKFLOW_UNREACHABLE_NODE,
                    notes=[f"workflow '{definition.id}'"],
                    help_text='connect it with an edge or remove it',
                    workflow_id=definition.id,
                )
            )

    for node_id, node in definition.nodes.items():
        budget = node.max_retries_budget
        if budget <= 0:
            continue
        failed = [e for e in definition.outgoing(node_id) if e.on == StepResult.FAILED]
        if not any(not definition.is_end(e.target) for e in failed):
            errors.append(
                WorkflowDefinitionError(
                    message=f"node '{node_id}' has maxRetries={budget} but no retry target",
                    code=ErrorCode.WORKFLOW_RETRY_WITHOUT_TARGET,
                    notes=[f"workflow '{definition.id}'"],
                    help_text='add a "failed" edge to the step that should be retried',
                    workflow_id=definition.id,
                )
            )
        if not any(definition.is_end(e.target) for e in failed):
            errors.append(
                WorkflowDefinitionError(
                    message=f"node '{node_id}' has maxRetries={budget} but no escalation target",
                    code=ErrorCode.WORKFLOW_RETRY_WITHOUT_ESCALATION,
                    notes=[f"workflow '{definition.id}'"],
                    help_text='add a "failed" edge to an end node (e.g. one with "escalation": "hitl")',
                    workflow_id=definition.id,
                )
            )
    return errors
