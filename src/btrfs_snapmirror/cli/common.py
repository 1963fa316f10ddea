"""Shared CLI utilities and argument parsers."""

import argparse
import dataclasses
import logging
from pathlib import Path

from ..config import (
    Config,
    ConfigError,
    find_config_file,
    load_config,
    validate_config,
)
from ..driver.common import Volume

logger = logging.getLogger(__name__)

RETENTION_OPTIONS = ("keep_last", "keep_daily", "keep_weekly", "keep_monthly")


def create_global_parser() -> argparse.ArgumentParser:
    """Create a parser with global options that can be used as a parent."""
    parser = argparse.ArgumentParser(add_help=False)
    add_verbosity_args(parser)
    return parser


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_volume_args(parser: argparse.ArgumentParser, mirror: bool = True) -> None:
    """Add the positional volume pair (overrides config)."""
    parser.add_argument(
        "main",
        nargs="?",
        metavar="MAIN",
        help="Root of the main btrfs volume (overrides config)",
    )
    if mirror:
        parser.add_argument(
            "mirror",
            nargs="?",
            metavar="MIRROR",
            help="Root of the mirror btrfs volume (overrides config)",
        )


def add_policy_args(parser: argparse.ArgumentParser) -> None:
    """Add retention and scrub overrides."""
    group = parser.add_argument_group("Policy options (override config)")
    for option in RETENTION_OPTIONS:
        group.add_argument(
            f"--{option.replace('_', '-')}",
            type=_non_negative,
            metavar="N",
            dest=option,
        )
    group.add_argument(
        "--scrub-days",
        type=_non_negative,
        metavar="N",
        help="Days between scrubs",
    )
    group.add_argument(
        "--backup-dir",
        metavar="NAME",
        help="Snapshot subvolume name inside each volume root",
    )


def _non_negative(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def resolve_config(
    args: argparse.Namespace, require_mirror: bool = True
) -> tuple[Config, list[str]]:
    """Build the run configuration from the config file and command line.

    A config file is optional when both volumes are given as arguments.

    Raises:
        ConfigError: If the result is not usable
    """
    config_path = find_config_file(getattr(args, "config", None))
    if config_path is not None:
        logger.info("Loading configuration from: %s", config_path)
        config, warnings = load_config(config_path)
    else:
        config, warnings = Config(), []

    overrides = {
        option: getattr(args, option)
        for option in RETENTION_OPTIONS
        if getattr(args, option, None) is not None
    }
    if overrides:
        config.retention = dataclasses.replace(config.retention, **overrides)
    if getattr(args, "scrub_days", None) is not None:
        config.global_config.scrub_days = args.scrub_days
    if getattr(args, "backup_dir", None):
        config.global_config.backup_dir = args.backup_dir
    if getattr(args, "main", None):
        config.volumes.main = args.main
    if getattr(args, "mirror", None):
        config.volumes.mirror = args.mirror

    if require_mirror:
        warnings.extend(validate_config(config))
    elif not config.volumes.main:
        raise ConfigError("No main volume configured")

    return config, warnings


def build_volume(config: Config, label: str) -> Volume:
    """Return the ``main`` or ``mirror`` volume of ``config``.

    Raises:
        ConfigError: If that volume is not configured
    """
    root = getattr(config.volumes, label)
    if not root:
        raise ConfigError(f"No {label} volume configured")
    return Volume(label, Path(root), config.global_config.backup_dir)
