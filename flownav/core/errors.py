"""Rust-style error display for flownav definition, traversal and storage errors."""

from __future__ import annotations

import inspect
import linecache
import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Absolute path to the flownav package directory.
# Frames under this directory are library internals, not caller code.
_FLOWNAV_PKG_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class ErrorCode(str, Enum):
    """Error codes for flownav errors.

    Organized by category:
    - E001-E099: Workflow definition errors (load time and lint)
    - E100-E199: Traversal errors (navigate calls)
    - E200-E299: Config/CLI errors
    - E300-E399: Registry errors
    - E400-E499: Task record persistence errors
    """

    # Workflow definition (E001-E099)
    WORKFLOW_INVALID_SCHEMA = 'E001'
    WORKFLOW_NO_START = 'E002'
    WORKFLOW_MULTIPLE_START = 'E003'
    WORKFLOW_NO_END = 'E004'
    WORKFLOW_NO_SUCCESS_END = 'E005'
    WORKFLOW_DANGLING_EDGE = 'E006'
    WORKFLOW_INVALID_FORK = 'E007'
    WORKFLOW_INVALID_JOIN = 'E008'
    WORKFLOW_FORK_JOIN_MISMATCH = 'E009'
    WORKFLOW_UNREACHABLE_NODE = 'E010'
    WORKFLOW_RETRY_WITHOUT_TARGET = 'E011'
    WORKFLOW_RETRY_WITHOUT_ESCALATION = 'E012'
    WORKFLOW_UNREADABLE = 'E013'

    # Traversal (E100-E199)
    NAV_UNKNOWN_NODE = 'E100'
    NAV_NO_MATCHING_EDGE = 'E101'
    NAV_NO_ESCALATION_EDGE = 'E102'
    NAV_NOT_AT_FORK = 'E103'
    NAV_UNKNOWN_BRANCH = 'E104'
    NAV_BRANCHES_PENDING = 'E105'
    NAV_MISSING_WORKFLOW = 'E106'

    # Config/CLI (E200-E299)
    CONFIG_INVALID_DATABASE_URL = 'E200'
    CONFIG_INVALID_PATH = 'E201'
    CONFIG_INVALID_PERSISTENCE = 'E202'
    CONFIG_INVALID_AGENT_PREFIX = 'E203'
    CLI_INVALID_ARGS = 'E206'

    # Registry (E300-E399)
    WORKFLOW_NOT_FOUND = 'E300'
    CATALOG_NOT_FOUND = 'E301'

    # Persistence (E400-E499)
    TASK_RECORD_NOT_FOUND = 'E400'
    TASK_RECORD_INVALID = 'E401'
    TASK_RECORD_NO_POSITION = 'E402'
    TASK_RECORD_STORAGE_FAILED = 'E403'


class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    DIM = '\033[2m'


class _NoColors:
    """No-op color codes for non-TTY output."""

    RESET = ''
    BOLD = ''
    RED = ''
    BLUE = ''
    CYAN = ''
    GREEN = ''
    DIM = ''


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def _should_use_colors() -> bool:
    """Determine if colors should be used in output."""
    if _env_flag('FLOWNAV_FORCE_COLOR'):
        return True
    # https://no-color.org/
    if os.environ.get('NO_COLOR') is not None:
        return False
    return hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()


def _should_show_verbose() -> bool:
    """Determine if the full traceback should follow the formatted error."""
    return _env_flag('FLOWNAV_VERBOSE')


def _should_use_plain_errors() -> bool:
    """Determine if plain Python errors should be used instead of Rust-style."""
    return _env_flag('FLOWNAV_PLAIN_ERRORS')


@dataclass
class SourceLocation:
    """A file/line pair shown under the error header."""

    file: str
    line: int

    @classmethod
    def from_frame(cls, frame: Any) -> SourceLocation:
        return cls(file=frame.f_code.co_filename, line=frame.f_lineno)

    def get_source_line(self) -> str | None:
        """Read the source line from the file."""
        try:
            line = linecache.getline(self.file, self.line)
            return line.rstrip('\n') if line else None
        except Exception:
            return None

    def format_short(self) -> str:
        return f'{self.file}:{self.line}'


@dataclass
class FlownavError(Exception):
    """Base exception for flownav errors.

    Formats as:
        error[E101]: message
          --> file:line
           = note: ...
           = help:
                ...
    """

    message: str
    code: ErrorCode | None = None
    location: SourceLocation | None = None
    notes: list[str] = field(default_factory=lambda: [])
    help_text: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.location is None:
            user_frame = _find_user_frame()
            if user_frame is not None:
                self.location = SourceLocation.from_frame(user_frame)

    def with_note(self, note: str) -> FlownavError:
        """Add a note to the error (fluent API)."""
        self.notes.append(note)
        return self

    def with_help(self, help_text: str) -> FlownavError:
        """Set help text (fluent API)."""
        self.help_text = help_text
        return self

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-ready view used by the tool surface."""
        return {
            'error': self.message,
            'code': self.code.value if self.code else None,
            'notes': list(self.notes),
            'help': self.help_text,
        }

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Format the error in Rust style."""
        if use_colors is None:
            use_colors = _should_use_colors()
        c = _Colors if use_colors else _NoColors

        code_part = f'[{self.code.value}]' if self.code else ''
        lines: list[str] = [
            '',
            f'{c.BOLD}{c.RED}error{code_part}:{c.RESET} {self.message}',
        ]

        if self.location:
            lines.append(
                f'  {c.BLUE}-->{c.RESET} {c.CYAN}{self.location.format_short()}{c.RESET}'
            )
            source_line = self.location.get_source_line()
            if source_line:
                line_num = str(self.location.line)
                padding = ' ' * len(line_num)
                stripped = source_line.lstrip()
                underline = ' ' * (len(source_line) - len(stripped)) + '^' * len(stripped)
                lines.append(f'   {c.BLUE}{padding}|{c.RESET}')
                lines.append(f'   {c.BLUE}{line_num}|{c.RESET} {source_line}')
                lines.append(f'   {c.BLUE}{padding}|{c.RESET} {c.RED}{underline}{c.RESET}')

        for note in self.notes:
            first, *rest = note.split('\n')
            lines.append(f'   {c.BLUE}={c.RESET} {c.BOLD}{c.BLUE}note{c.RESET}: {first}')
            lines.extend(f'          {extra}' for extra in rest)

        if self.help_text:
            lines.append('')
            lines.append(f'   {c.BLUE}={c.RESET} {c.BOLD}{c.GREEN}help{c.RESET}:')
            lines.extend(f'        {help_line}' for help_line in self.help_text.split('\n'))

        return '\n'.join(lines)

    def __str__(self) -> str:
        """Plain text (no ANSI colors), safe for logs and JSON."""
        return self.format_rust_style(use_colors=False)


_original_excepthook = sys.excepthook


def _flownav_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    """Custom exception hook for FlownavError exceptions."""
    if _should_use_plain_errors() or not isinstance(exc_value, FlownavError):
        _original_excepthook(exc_type, exc_value, exc_tb)
        return

    print(exc_value.format_rust_style(), file=sys.stderr)
    if _should_show_verbose():
        c = _Colors if _should_use_colors() else _NoColors
        print(file=sys.stderr)
        print(f'{c.DIM}Full traceback (FLOWNAV_VERBOSE=1):{c.RESET}', file=sys.stderr)
        traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)


def install_error_handler() -> None:
    """Install the custom exception hook for Rust-style error display."""
    sys.excepthook = _flownav_excepthook


def uninstall_error_handler() -> None:
    """Restore the original exception hook."""
    sys.excepthook = _original_excepthook


# =============================================================================
# Specific Error Classes
# =============================================================================


@dataclass
class WorkflowDefinitionError(FlownavError):
    """Raised when a workflow definition is malformed (load time or lint)."""

    workflow_id: str | None = None


@dataclass
class TraversalError(FlownavError):
    """Raised when a navigate call hits a node/edge combination the graph lacks.

    Fatal to the call; no position change is written.
    """

    workflow_id: str | None = None
    step_id: str | None = None


@dataclass
class ConfigurationError(FlownavError):
    """Raised when navigator configuration or CLI arguments are invalid."""

    pass


@dataclass
class WorkflowNotFoundError(FlownavError):
    """Raised when a workflow id is not present in the store."""

    workflow_id: str | None = None


@dataclass
class PersistenceError(FlownavError):
    """Raised when a task record cannot be read or written."""

    task_ref: str | None = None
    retryable: bool = False


# =============================================================================
# Phase-Gated Error Collection
# =============================================================================


class ValidationReport:
    """Collects multiple FlownavError instances within a validation phase."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name: str = phase_name
        self.errors: list[FlownavError] = []

    def add(self, error: FlownavError) -> None:
        self.errors.append(error)

    def extend(self, errors: list[FlownavError]) -> None:
        self.errors.extend(errors)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Format all collected errors, then append an aborting summary."""
        if use_colors is None:
            use_colors = _should_use_colors()
        c = _Colors if use_colors else _NoColors

        parts = [error.format_rust_style(use_colors=use_colors) for error in self.errors]
        parts.append(
            f'\n{c.BOLD}{c.RED}error{c.RESET}: aborting due to {len(self.errors)} previous errors'
        )
        return '\n'.join(parts)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(FlownavError):
    """Wraps a ValidationReport containing 2+ errors.

    Single errors are raised as their original type so callers can keep
    catching the specific class.
    """

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f'aborting due to {len(self.report.errors)} previous errors'
        # Location is per-error in the report
        Exception.__init__(self, self.message)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


def raise_collected(report: ValidationReport) -> None:
    """Raise collected errors.

    - 0 errors: no-op
    - 1 error: raises the original error
    - 2+ errors: raises MultipleValidationErrors wrapping the report
    """
    count = len(report.errors)
    if count == 0:
        return
    if count == 1:
        raise report.errors[0]
    raise MultipleValidationErrors(
        message=f'aborting due to {count} previous errors',
        report=report,
    )


def _find_user_frame() -> Any | None:
    """Find the first frame outside of flownav internals."""
    frame = inspect.currentframe()
    while frame is not None:
        filename = frame.f_code.co_filename
        if (
            not filename.startswith('<')
            and not filename.startswith(_FLOWNAV_PKG_DIR)
            and '/site-packages/' not in filename
        ):
            return frame
        frame = frame.f_back
    return None
