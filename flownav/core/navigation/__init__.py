"""Navigation engine and step presentation."""

from flownav.core.navigation.engine import NavigationEngine, Transition
from flownav.core.navigation.join import evaluate_join
from flownav.core.navigation.presentation import (
    WORKFLOW_EMOJIS,
    StepPresenter,
    build_task_active_form,
    build_task_subject,
    get_baseline_instructions,
)

__all__ = [
    'NavigationEngine',
    'Transition',
    'evaluate_join',
    # Presentation
    'WORKFLOW_EMOJIS',
    'StepPresenter',
    'build_task_active_form',
    'build_task_subject',
    'get_baseline_instructions',
]
