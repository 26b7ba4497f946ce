"""TaskPosition: the caller-owned navigation state stored in a task record."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from flownav.core.models.workflow.enums import JoinStrategy
from flownav.core.types.status import BranchStatus, StepResult


class BranchState(BaseModel):
    """One fork branch as tracked by the parent task."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    entry_step: str = Field(alias='entryStep')
    status: BranchStatus = BranchStatus.PENDING
    child_ref: str | None = Field(default=None, alias='childRef')


class ForkState(BaseModel):
    """
    Transient sub-record present while a task sits on a fork.

    Cleared once the paired join resolves.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    fork: str
    join: str
    strategy: JoinStrategy = JoinStrategy.ALL_PASS
    branches: dict[str, BranchState]

    @property
    def pending(self) -> list[str]:
        return [name for name, b in self.branches.items() if not b.status.is_terminal]

    @property
    def is_complete(self) -> bool:
        return not self.pending

    def outcomes(self) -> dict[str, StepResult]:
        """Reported outcomes only (pending branches are omitted)."""
        return {
            name: StepResult(b.status.value)
            for name, b in self.branches.items()
            if b.status.is_terminal
        }

    def with_branch(self, name: str, branch: BranchState) -> ForkState:
        return self.model_copy(update={'branches': {**self.branches, name: branch}})


class TaskPosition(BaseModel):
    """
    Engine input/output position.

    - retry_counts: failures consumed per node id (scoped per node so two
      gates in one workflow never share a budget)
    - retry_count: the count reported for the last transition
    - autonomy: continue across stage-boundary end nodes
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    task_id: str | None = Field(default=None, alias='taskId')
    workflow_id: str = Field(
        alias='workflowType',
        validation_alias=AliasChoices('workflowType', 'workflowId'),
    )
    current_step: str = Field(alias='currentStep')
    retry_count: int = Field(default=0, ge=0, alias='retryCount')
    retry_counts: dict[str, int] = Field(default_factory=dict, alias='retryCounts')
    autonomy: bool = False
    description: str | None = Field(default=None, alias='userDescription')
    fork_state: ForkState | None = Field(default=None, alias='forkState')

    def retries_for(self, node_id: str) -> int:
        return self.retry_counts.get(node_id, 0)

    @classmethod
    def from_metadata(cls, task_id: str | None, metadata: dict[str, Any]) -> TaskPosition:
        """Build a position from a task record's metadata section.

        Records written before per-node counters existed carry only
        `retryCount`; it is attributed to the current step.
        """
        data = dict(metadata)
        data['taskId'] = task_id
        if 'retryCounts' not in data and data.get('retryCount') and data.get('currentStep'):
            data['retryCounts'] = {data['currentStep']: data['retryCount']}
        return cls.model_validate(data)

    def to_metadata(self) -> dict[str, Any]:
        """Metadata section for the task record (task id lives on the record itself)."""
        data = self.model_dump(mode='json', by_alias=True, exclude={'task_id'})
        if self.fork_state is None:
            data.pop('forkState')
        if self.description is None:
            data.pop('userDescription')
        return data
