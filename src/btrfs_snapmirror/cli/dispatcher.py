"""CLI dispatcher with legacy mode detection.

This module routes between the subcommand CLI and the positional
``btrfs-snapmirror MAIN MIRROR`` form, which is the same as ``run``.
"""

import argparse
import sys
from typing import Callable

from .common import (
    add_policy_args,
    add_verbosity_args,
    add_volume_args,
    create_global_parser,
)

# Known subcommands
SUBCOMMANDS = frozenset({"run", "plan", "status", "config"})


def is_legacy_mode(argv: list[str]) -> bool:
    """Detect if arguments indicate legacy CLI mode.

    Legacy mode is when the first argument looks like a path rather
    than a subcommand::

        btrfs-snapmirror /mnt/main /mnt/mirror

    Args:
        argv: Command line arguments (without program name)

    Returns:
        True if legacy mode should be used
    """
    if not argv:
        return False

    first = argv[0]

    # Explicit subcommand - not legacy
    if first in SUBCOMMANDS:
        return False

    # Option flags - not legacy (let parser handle)
    if first.startswith("-"):
        return False

    # Absolute or relative path - legacy mode
    if first.startswith("/") or first.startswith("./") or first.startswith("../"):
        return True

    # Contains path separator - legacy mode
    return "/" in first


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="btrfs-snapmirror",
        description="Snapshot a btrfs volume, mirror it incrementally and prune old snapshots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Snapshot, mirror and prune",
        description="Scrub if due, snapshot the main volume, send it to the mirror "
        "and apply the retention policy to both volumes",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    add_volume_args(run_parser)
    add_policy_args(run_parser)

    # plan command
    plan_parser = subparsers.add_parser(
        "plan",
        help="Show what the retention policy keeps",
        description="List snapshots of the main volume and whether they would be kept",
    )
    plan_parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )
    add_volume_args(plan_parser, mirror=False)
    add_policy_args(plan_parser)

    # status command
    status_parser = subparsers.add_parser(
        "status",
        help="Show snapshot, pointer and scrub status",
        description="Display snapshot counts, chain pointers and scrub state",
    )
    add_volume_args(status_parser)

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    return parser


def create_legacy_parser() -> argparse.ArgumentParser:
    """Create the parser for ``btrfs-snapmirror MAIN MIRROR [options]``."""
    parser = argparse.ArgumentParser(
        prog="btrfs-snapmirror",
        parents=[create_global_parser()],
        description="Same as 'btrfs-snapmirror run MAIN MIRROR'",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    add_volume_args(parser)
    add_policy_args(parser)
    parser.set_defaults(command="run", version=False)
    return parser


def run_legacy_mode(argv: list[str]) -> int:
    """Treat ``MAIN MIRROR [options]`` as the run command.

    Args:
        argv: Command line arguments

    Returns:
        Exit code
    """
    args = create_legacy_parser().parse_args(argv)
    return run_subcommand(args)


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"btrfs-snapmirror {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    handlers: dict[str, Callable] = {
        "run": cmd_run,
        "plan": cmd_plan,
        "status": cmd_status,
        "config": cmd_config,
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


def cmd_plan(args: argparse.Namespace) -> int:
    """Execute plan command."""
    from .plan import execute_plan

    return execute_plan(args)


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    from .status import execute_status

    return execute_status(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for btrfs-snapmirror CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    if is_legacy_mode(argv):
        return run_legacy_mode(argv)

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)
