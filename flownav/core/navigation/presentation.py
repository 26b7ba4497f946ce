"""Human-readable projections of a position: step guidance, task subject, spinner label.

None of this feeds back into transition logic; it is derived text for the
caller and for the task record write-through.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from flownav.core.models.navigation import StepInstructions
from flownav.core.models.workflow import AnyNode, EndNode, ForkNode, JoinNode, StartNode
from flownav.core.types.status import TerminalType

WORKFLOW_EMOJIS: dict[str, str] = {
    'feature-development': '✨',
    'bug-fix': '🐛',
    'bug-hunt': '🔎',
    'quick-task': '⚡',
}

# Ordered: first match wins. "plan_review" is a review, not a plan.
_BASELINE_RULES: list[tuple[tuple[str, ...], tuple[str, ...], str]] = [
    (
        ('review',),
        (),
        'Check for correctness, code quality, and adherence to project standards. '
        'Verify the implementation meets requirements.',
    ),
    (
        ('analyze', 'analysis', 'parse', 'requirements'),
        ('analyze',),
        'Review the task requirements carefully. Identify key constraints, dependencies, '
        'and acceptance criteria. Create a clear plan before proceeding.',
    ),
    (
        ('plan', 'design'),
        ('plan',),
        'Design the solution architecture. Consider edge cases, error handling, and how '
        'this fits with existing code. Document your approach.',
    ),
    (
        ('investigate', 'reproduce'),
        (),
        'Gather evidence and understand the root cause. Document reproduction steps and '
        'any patterns observed.',
    ),
    (
        ('implement', 'build', 'develop', 'fix'),
        (),
        'Write clean, well-structured code following project conventions. Keep changes '
        "focused and minimal. Add comments only where the logic isn't self-evident.",
    ),
    (
        ('refactor',),
        (),
        'Improve code structure without changing behavior. Ensure all tests pass before '
        'and after changes.',
    ),
    (
        ('lint', 'format'),
        (),
        'Run linting and formatting checks. Auto-fix issues where possible. Flag any '
        'issues that require manual attention.',
    ),
    (
        ('test', 'verify', 'validate'),
        (),
        'Verify the implementation works correctly. Test happy paths, edge cases, and '
        'error conditions. Document any issues found.',
    ),
    (
        ('document', 'readme'),
        (),
        'Write clear, concise documentation. Focus on what users need to know, not '
        'implementation details.',
    ),
    (
        ('commit',),
        (),
        'Stage relevant changes and create a descriptive commit message. Follow project '
        'commit conventions.',
    ),
    (
        ('pr', 'pull_request', 'pull-request'),
        (),
        'Create a pull request with a clear title and description. Link related issues '
        'and describe what was changed and why.',
    ),
    (
        ('context', 'optimize', 'compress'),
        (),
        'Analyze the current state and identify improvements. Focus on clarity and '
        'efficiency.',
    ),
    (
        ('extract', 'ir_'),
        (),
        'Extract the relevant information systematically. Preserve important details '
        'while filtering noise.',
    ),
]

DEFAULT_GUIDANCE = 'Complete this step thoroughly. Document your findings and any decisions made.'

_PROSE_PATH = re.compile(r'\./[\w\-./]+')


def get_baseline_instructions(step_id: str, step_name: str | None = None) -> str:
    """Default guidance inferred from the step id/name."""
    sid = step_id.lower()
    name = (step_name or '').lower()
    for id_keys, name_keys, guidance in _BASELINE_RULES:
        if any(key in sid for key in id_keys) or any(key in name for key in name_keys):
            return guidance
    return DEFAULT_GUIDANCE


def resolve_context_file(path: str, project_root: str, source_root: str | None) -> str:
    """'./x' is relative to the workflow's source root, anything else to the project."""
    if path.startswith('./') and source_root:
        return os.path.join(source_root, path)
    return os.path.join(project_root, path)


def resolve_prose_refs(text: str | None, source_root: str | None) -> str | None:
    """Rewrite './path' references in prose against the source root."""
    if not text or not source_root:
        return text
    return _PROSE_PATH.sub(lambda m: os.path.join(source_root, m.group(0)), text)


def build_context_block(
    context_files: tuple[str, ...] | list[str],
    project_root: str | None,
    source_root: str | None,
) -> str | None:
    """Markdown section listing declared context files. Files are never opened."""
    if not context_files or not project_root:
        return None
    lines = [
        f'- Read file: {resolve_context_file(f, project_root, source_root)}'
        for f in context_files
    ]
    return '## Context\n\nBefore beginning, load the following:\n' + '\n'.join(lines)


def terminal_type(node: AnyNode) -> TerminalType | None:
    if isinstance(node, StartNode):
        return TerminalType.START
    if isinstance(node, EndNode):
        if node.is_hitl:
            return TerminalType.HITL
        return TerminalType.SUCCESS if node.is_success else TerminalType.FAILURE
    return None


@dataclass(frozen=True)
class StepPresenter:
    """
    Builds step payload text for one navigator configuration.

    - agent_prefix: caller policy for agent namespacing, e.g. '@flow:'.
      None passes agent ids through verbatim.
    - project_root: base for context file paths; None omits the context block
    """

    agent_prefix: str | None = None
    project_root: str | None = None

    def agent_ref(self, agent: str | None) -> str | None:
        if not agent:
            return None
        if self.agent_prefix and not agent.startswith(self.agent_prefix):
            return f'{self.agent_prefix}{agent}'
        return agent

    def step_instructions(
        self,
        step_id: str,
        node: AnyNode,
        source_root: str | None,
    ) -> StepInstructions | None:
        if isinstance(node, (StartNode, EndNode, ForkNode, JoinNode)):
            return None
        return StepInstructions(
            name=node.display_name(step_id),
            description=resolve_prose_refs(node.description, source_root),
            guidance=resolve_prose_refs(node.instructions, source_root)
            or get_baseline_instructions(step_id, node.name),
        )

    def orchestrator_instructions(
        self,
        node: AnyNode,
        instructions: StepInstructions | None,
        task_description: str | None,
        source_root: str | None,
    ) -> str | None:
        """Delegation text written into the task record. None for start, end and control nodes."""
        if instructions is None:
            return None
        agent = self.agent_ref(node.agent)
        prefix = f'Invoke {agent} to complete the following task: ' if agent else ''
        text = f'{prefix}{instructions.guidance}\n\n{task_description or "{task description}"}'
        context = build_context_block(node.context_files, self.project_root, source_root)
        if context:
            text += f'\n\n{context}'
        return text


def build_task_subject(
    task_id: str,
    user_description: str,
    workflow_id: str,
    step_id: str,
    agent: str | None,
    terminal: TerminalType | None,
    max_retries: int,
    retry_count: int,
) -> str:
    """Two-line subject: task title, then workflow position."""
    emoji = WORKFLOW_EMOJIS.get(workflow_id, '')
    line1 = f'#{task_id} {user_description}{f" {emoji}" if emoji else ""}'

    if terminal == TerminalType.SUCCESS:
        line2 = f'→ {workflow_id} · completed ✓'
    elif terminal is not None and terminal.needs_human:
        line2 = f'→ {workflow_id} · {step_id} · HITL'
    else:
        who = f'({agent})' if agent else '(direct)'
        retries = f' · retries: {retry_count}/{max_retries}' if max_retries > 0 else ''
        line2 = f'→ {workflow_id} · {step_id} {who}{retries}'

    return f'{line1}\n{line2}'


def build_task_active_form(
    step_name: str,
    agent: str | None,
    terminal: TerminalType | None,
) -> str:
    """Spinner label shown while the step is in progress."""
    if terminal == TerminalType.SUCCESS:
        return 'Completed'
    if terminal is not None and terminal.needs_human:
        return 'HITL - Needs human help'
    return f'{step_name} ({agent})' if agent else step_name
