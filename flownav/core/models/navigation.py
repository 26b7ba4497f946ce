"""Response payloads returned by navigate calls."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from flownav.core.models.workflow.enums import JoinStrategy
from flownav.core.types.status import (
    NavigationAction,
    StepResult,
    TerminalType,
    WriteThrough,
)


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class StepInstructions(_Payload):
    name: str
    description: str | None = None
    guidance: str


class BranchDetail(_Payload):
    """Everything a caller needs to dispatch one branch without another call."""

    branch: str
    entry_step: str = Field(alias='entryStep')
    name: str
    stage: str | None = None
    agent: str | None = None
    description: str | None = None
    instructions: str
    max_retries: int = Field(default=0, alias='maxRetries')
    multi_step: bool = Field(default=False, alias='multiStep')
    context_files: list[str] = Field(default_factory=list, alias='contextFiles')


class ForkDetail(_Payload):
    fork: str
    join: str
    strategy: JoinStrategy
    max_concurrency: int | None = Field(default=None, alias='maxConcurrency')
    branches: list[BranchDetail]


class JoinDetail(_Payload):
    join: str
    fork: str | None = None
    strategy: JoinStrategy
    outcomes: dict[str, StepResult] = Field(default_factory=dict)
    pending: list[str] = Field(default_factory=list)
    result: StepResult | None = None


class NavigationResponse(_Payload):
    """
    Unified response shape for every navigate mode.

    `metadata` mirrors the position fields the caller must persist;
    `write_through` reports what the persistence layer did with the
    caller-visible projections.
    """

    workflow_id: str = Field(alias='workflowType')
    current_step: str = Field(alias='currentStep')
    action: NavigationAction
    terminal: TerminalType | None = None
    stage: str | None = None
    agent: str | None = Field(default=None, alias='subagent')
    step_instructions: StepInstructions | None = Field(default=None, alias='stepInstructions')
    orchestrator_instructions: str | None = Field(default=None, alias='orchestratorInstructions')
    context_files: list[str] = Field(default_factory=list, alias='contextFiles')
    retry_count: int = Field(default=0, alias='retryCount')
    max_retries: int = Field(default=0, alias='maxRetries')
    retries_incremented: bool = Field(default=False, alias='retriesIncremented')
    autonomy_continued: bool = Field(default=False, alias='autonomyContinued')
    fork: ForkDetail | None = None
    join: JoinDetail | None = None
    branch: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    source_root: str | None = Field(default=None, alias='sourceRoot')
    write_through: WriteThrough = Field(default=WriteThrough.NONE, alias='writeThrough')

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)
