"""CLI dispatcher.

Builds the subcommand parser and routes parsed arguments to the
command handlers.
"""

import argparse
import sys
from typing import Callable

from .common import add_job_args, create_global_parser

EPILOG = """examples:
    snail-backup run -c system-backup.toml
    snail-backup run -c home-backup.toml --retain-count 3
    snail-backup run -c daily.toml --job-identifier daily --auto-clean true
"""


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="snail-backup",
        description="Incremental, crash-safe rsync snapshot backups",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )
    parent = create_global_parser()

    # run command
    run_parser = subparsers.add_parser(
        "run",
        parents=[parent],
        help="Run one backup of the job",
        description="Lock the job, back up into a new snapshot, then clean up",
    )
    add_job_args(run_parser)
    run_parser.add_argument(
        "--no-root-check",
        action="store_true",
        help="Do not require running as root",
    )

    # prune command
    prune_parser = subparsers.add_parser(
        "prune",
        parents=[parent],
        help="Apply the retention policy",
        description="Purge failed backups and rotate old backups and logs",
    )
    add_job_args(prune_parser)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        parents=[parent],
        help="Show backups of the job",
        description="List snapshot directories and their state",
    )
    add_job_args(list_parser)
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status",
        parents=[parent],
        help="Show lock holder and backup health",
        description="Display the lock holder, latest backup and counts",
    )
    add_job_args(status_parser)

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    validate_parser = config_subs.add_parser(
        "validate",
        parents=[parent],
        help="Validate configuration file",
    )
    validate_parser.add_argument(
        "-c",
        "--config-file",
        metavar="FILE",
        required=True,
        help="Configuration file to validate",
    )

    init_parser = config_subs.add_parser(
        "init",
        parents=[parent],
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    # check command
    subparsers.add_parser(
        "check",
        parents=[parent],
        help="Check that required commands are available",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"snail-backup {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    # Route to appropriate command handler
    handlers: dict[str, Callable] = {
        "run": cmd_run,
        "prune": cmd_prune,
        "list": cmd_list,
        "status": cmd_status,
        "config": cmd_config,
        "check": cmd_check,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Execute run command."""
    from .run import execute_run

    return execute_run(args)


def cmd_prune(args: argparse.Namespace) -> int:
    """Execute prune command."""
    from .prune import execute_prune

    return execute_prune(args)


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command."""
    from .list_cmd import execute_list

    return execute_list(args)


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    from .status import execute_status

    return execute_status(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def cmd_check(args: argparse.Namespace) -> int:
    """Execute check command."""
    from .check import execute_check

    return execute_check(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for snail-backup CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_subcommand_parser()
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)

    return run_subcommand(args)
