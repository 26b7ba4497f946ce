# flownav/core/cli.py
"""
CLI for navigating tasks and managing workflows.

Every command prints a JSON document on stdout; logs go to stderr.
Configuration comes from FLOWNAV_* variables (and a .env file), with
command-line flags taking precedence.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from flownav.core.errors import ErrorCode, ConfigurationError, FlownavError
from flownav.core.logging import get_logger, setup_logging
from flownav.core.models.app import DatabaseConfig, NavigatorConfig
from flownav.core.models.workflow import WorkflowSource
from flownav.core.navigator import Navigator
from flownav.core.tools import TOOL_DEFINITIONS, call_tool
from flownav.core.types.status import StepResult

_LOGLEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _emit(payload: dict[str, Any] | list[Any]) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _build_navigator(args: argparse.Namespace) -> Navigator:
    overrides: dict[str, Any] = {}
    if args.project_root:
        overrides['project_root'] = Path(args.project_root)
    if args.agent_prefix:
        overrides['agent_prefix'] = args.agent_prefix
    if args.persistence:
        overrides['persistence'] = args.persistence
    if args.database_url:
        overrides['database'] = DatabaseConfig(url=args.database_url)
    if args.no_catalog:
        overrides['load_catalog'] = False
    config = NavigatorConfig.from_env(**overrides)
    config.log_config(get_logger('cli'))
    return Navigator(config)


def _parse_tool_args(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            message='tool arguments are not valid JSON',
            code=ErrorCode.CLI_INVALID_ARGS,
            notes=[f'{e.msg} (column {e.colno})'],
            help_text='pass a JSON object, e.g. \'{"taskRef": ".flow/tasks/1.json"}\'',
        )
    if not isinstance(value, dict):
        raise ConfigurationError(
            message='tool arguments must be a JSON object',
            code=ErrorCode.CLI_INVALID_ARGS,
            notes=[f'got: {type(value).__name__}'],
        )
    return value


def _parse_branch_results(pairs: list[str] | None) -> dict[str, StepResult] | None:
    """'name=passed' pairs -> mapping."""
    if not pairs:
        return None
    results: dict[str, StepResult] = {}
    for pair in pairs:
        name, sep, value = pair.partition('=')
        if not sep or value not in ('passed', 'failed'):
            raise ConfigurationError(
                message=f'invalid branch result {pair!r}',
                code=ErrorCode.CLI_INVALID_ARGS,
                help_text='use NAME=passed or NAME=failed',
            )
        results[name] = StepResult(value)
    return results


def navigate_command(args: argparse.Namespace) -> int:
    nav = _build_navigator(args)
    response = nav.navigate(
        task_ref=args.task,
        workflow_id=args.workflow,
        result=StepResult(args.result) if args.result else None,
        autonomy=args.autonomy,
        description=args.description,
        branch=args.branch,
        child_ref=args.child_ref,
        branch_results=_parse_branch_results(args.branch_result),
        step_id=args.step,
    )
    _emit(response.to_payload())
    return 0


def list_command(args: argparse.Namespace) -> int:
    nav = _build_navigator(args)
    source = WorkflowSource(args.source) if args.source else None
    _emit(nav.list_workflows(source))
    return 0


def inspect_command(args: argparse.Namespace) -> int:
    nav = _build_navigator(args)
    _emit(nav.inspect_workflow(args.workflow_id))
    return 0


def check_command(args: argparse.Namespace) -> int:
    """Lint workflows; exit 1 when any problem is found."""
    nav = _build_navigator(args)
    report = nav.check(args.workflow_ids or None)
    _emit(report)
    return 0 if report['ok'] else 1


def catalog_command(args: argparse.Namespace) -> int:
    nav = _build_navigator(args)
    _emit(nav.list_catalog())
    return 0


def copy_command(args: argparse.Namespace) -> int:
    nav = _build_navigator(args)
    _emit(nav.copy_workflows(args.workflow_ids or None, overwrite=args.overwrite))
    return 0


def tools_command(args: argparse.Namespace) -> int:
    _emit(TOOL_DEFINITIONS)
    return 0


def tool_command(args: argparse.Namespace) -> int:
    nav = _build_navigator(args)
    payload = call_tool(nav, args.name, _parse_tool_args(args.args))
    _emit(payload)
    return 1 if 'error' in payload else 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--project-root',
        help='Project directory containing .flow (default: cwd or FLOWNAV_PROJECT_ROOT)',
    )
    parser.add_argument('--agent-prefix', help="Namespace for agent ids, e.g. '@flow:'")
    parser.add_argument(
        '--persistence',
        choices=['file', 'sql'],
        help='Task record backend (default: file)',
    )
    parser.add_argument('--database-url', help='SQLAlchemy URL for --persistence sql')
    parser.add_argument(
        '--no-catalog',
        action='store_true',
        default=False,
        help='Do not load the bundled catalog',
    )
    parser.add_argument(
        '--loglevel',
        choices=_LOGLEVELS,
        default='WARNING',
        type=str.upper,
        help='Logging level (default: WARNING)',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='flownav',
        description='Workflow navigation for multi-step agent work',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start a task on a workflow
  flownav navigate --task .flow/tasks/7.json --workflow bug-fix --description "Fix login"

  # Report the current step's outcome
  flownav navigate --task .flow/tasks/7.json --result passed

  # Record fork branch outcomes
  flownav navigate --task .flow/tasks/7.json --branch-result reproduce=passed

  # Lint every loaded workflow
  flownav check
""",
    )
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    navigate_parser = subparsers.add_parser('navigate', help='Start, view or advance a task')
    _add_common(navigate_parser)
    navigate_parser.add_argument('--task', help='Task record reference')
    navigate_parser.add_argument('--workflow', help='Workflow id to start')
    navigate_parser.add_argument(
        '--result', choices=['passed', 'failed'], help='Outcome of the current step'
    )
    autonomy = navigate_parser.add_mutually_exclusive_group()
    autonomy.add_argument('--autonomy', dest='autonomy', action='store_true', default=None)
    autonomy.add_argument('--no-autonomy', dest='autonomy', action='store_false')
    navigate_parser.add_argument('--description', help='Task description (on start)')
    navigate_parser.add_argument('--step', help='Start at this step')
    navigate_parser.add_argument('--branch', help='Fork branch to record')
    navigate_parser.add_argument('--child-ref', help='Child task running the branch')
    navigate_parser.add_argument(
        '--branch-result',
        action='append',
        metavar='NAME=RESULT',
        help='Branch outcome; repeatable',
    )

    list_parser = subparsers.add_parser('list', help='List loaded workflows')
    _add_common(list_parser)
    list_parser.add_argument('--source', choices=[s.value for s in WorkflowSource])

    inspect_parser = subparsers.add_parser('inspect', help='Show one workflow definition')
    _add_common(inspect_parser)
    inspect_parser.add_argument('workflow_id')

    check_parser = subparsers.add_parser(
        'check', help='Report unreachable steps and incomplete retry edges'
    )
    _add_common(check_parser)
    check_parser.add_argument('workflow_ids', nargs='*')

    catalog_parser = subparsers.add_parser('catalog', help='List bundled catalog workflows')
    _add_common(catalog_parser)

    copy_parser = subparsers.add_parser('copy', help='Copy catalog workflows into .flow/workflows')
    _add_common(copy_parser)
    copy_parser.add_argument('workflow_ids', nargs='*')
    copy_parser.add_argument('--overwrite', action='store_true', default=False)

    subparsers.add_parser('tools', help='Print tool definitions')

    tool_parser = subparsers.add_parser('tool', help='Call a tool with JSON arguments')
    _add_common(tool_parser)
    tool_parser.add_argument('name', help='Tool name, e.g. Navigate')
    tool_parser.add_argument('args', nargs='?', help='JSON object of tool arguments')

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    logger = get_logger('cli')
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, 'loglevel', None):
        setup_logging(args.loglevel)

    try:
        match args.command:
            case 'navigate':
                code = navigate_command(args)
            case 'list':
                code = list_command(args)
            case 'inspect':
                code = inspect_command(args)
            case 'check':
                code = check_command(args)
            case 'catalog':
                code = catalog_command(args)
            case 'copy':
                code = copy_command(args)
            case 'tools':
                code = tools_command(args)
            case 'tool':
                code = tool_command(args)
            case _:
                parser.print_help()
                sys.exit(1)
    except FlownavError as e:
        print(e.format_rust_style(), file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info('Interrupted by user')
        sys.exit(130)
    sys.exit(code)


if __name__ == '__main__':
    main()
