"""Config command: Configuration management."""

import argparse
import logging
from pathlib import Path

from ..__logger__ import create_logger
from ..config import ConfigError, find_config_file, load_config, validate_config
from ..config.loader import generate_example_config
from ..retention import format_retention_summary
from .common import get_log_level

logger = logging.getLogger(__name__)


def execute_config(args: argparse.Namespace) -> int:
    """Execute the config command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    action = getattr(args, "config_action", None)

    if action == "validate":
        return _validate_config(args)
    elif action == "init":
        return _init_config(args)
    else:
        print("Usage: btrfs-snapmirror config <validate|init>")
        return 1


def _validate_config(args: argparse.Namespace) -> int:
    """Validate configuration file."""
    try:
        config_path = find_config_file(getattr(args, "config", None))
        if config_path is None:
            print("No configuration file found.")
            print("Searched locations:")
            print("  ~/.config/btrfs-snapmirror/config.toml")
            print("  /etc/btrfs-snapmirror/config.toml")
            return 1

        print(f"Validating: {config_path}")
        config, warnings = load_config(config_path)
        warnings.extend(validate_config(config))

        if warnings:
            print("")
            print("Warnings:")
            for warning in warnings:
                print(f"  - {warning}")

        print("")
        print("Configuration is valid.")
        print(f"  Main: {config.volumes.main}")
        print(f"  Mirror: {config.volumes.mirror}")
        print(f"  Retention: {format_retention_summary(config.retention)}")
        print(f"  Scrub every: {config.global_config.scrub_days} days")

        return 0

    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1


def _init_config(args: argparse.Namespace) -> int:
    """Generate example configuration."""
    content = generate_example_config()

    output = getattr(args, "output", None)
    if output:
        path = Path(output)
        if path.exists():
            print(f"Refusing to overwrite existing file: {path}")
            return 1
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        print(f"Configuration written to: {path}")
    else:
        print(content, end="")

    return 0
