"""Join reduction: branch outcomes -> single step result."""

from __future__ import annotations

from collections.abc import Mapping

from flownav.core.models.workflow import JoinStrategy
from flownav.core.types.status import StepResult


def evaluate_join(
    strategy: JoinStrategy,
    outcomes: Mapping[str, StepResult],
) -> StepResult:
    """
    Reduce branch outcomes with the join's strategy.

    Only call once every expected branch has reported.
    - all-pass: passed iff every branch passed
    - any-pass: passed iff at least one branch passed
    """
    passed = [result == StepResult.PASSED for result in outcomes.values()]
    match strategy:
        case JoinStrategy.ALL_PASS:
            ok = all(passed)
        case JoinStrategy.ANY_PASS:
            ok = any(passed)
    return StepResult.PASSED if ok else StepResult.FAILED
