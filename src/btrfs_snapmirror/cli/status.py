"""Status command: Show chain pointer, snapshot counts and scrub state."""

import argparse
import logging
import time

from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.orchestrator import FailureReason
from ..driver.btrfs import BtrfsDriver
from ..driver.common import Clock, DriverError, Volume
from ..pointer import read_pointer
from ..scrub import is_due
from ..snapshot import decode_all
from .common import build_volume, get_log_level, resolve_config

logger = logging.getLogger(__name__)


def _format_time(timestamp) -> str:
    if timestamp is None:
        return "never"
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(timestamp))


def _volume_status(driver: BtrfsDriver, volume: Volume) -> bool:
    """Print the status of one volume, returning False on problems."""
    healthy = True
    print(f"{volume.label.capitalize()}: {volume.root}")

    try:
        snapshots = decode_all(driver.list_snapshot_names(volume))
    except DriverError as e:
        print(f"  Snapshots: error: {e}")
        return False

    print(f"  Snapshots: {len(snapshots)}")
    if snapshots:
        print(f"  Oldest: {snapshots[0].name}")
        print(f"  Latest: {snapshots[-1].name}")

    pointer = read_pointer(volume.snapshot_area)
    basis = pointer.resolve(snapshots)
    if pointer.target_name is None:
        print("  Chain pointer: none (next transfer is a full send)")
    elif basis is None:
        print(f"  Chain pointer: {pointer.target_name} (dangling)")
        healthy = False
    else:
        print(f"  Chain pointer: {basis.name}")

    try:
        scrub = driver.status(volume)
    except DriverError as e:
        print(f"  Scrub: error: {e}")
        return False
    errors = ", errors found" if scrub.errors_found else ""
    print(f"  Scrub: {scrub.state.value}, last {_format_time(scrub.last_completed)}{errors}")
    if scrub.errors_found:
        healthy = False
    return healthy


def execute_status(args: argparse.Namespace) -> int:
    """Execute the status command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    try:
        config, _ = resolve_config(args)
        main = build_volume(config, "main")
        mirror = build_volume(config, "mirror")
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return FailureReason.CONFIGURATION.value

    driver = BtrfsDriver()

    print("btrfs-snapmirror Status")
    print("=" * 60)
    all_healthy = True
    for volume in (main, mirror):
        all_healthy = _volume_status(driver, volume) and all_healthy
        print("")

    scrub_days = config.global_config.scrub_days
    try:
        last_scrub = driver.status(main).last_completed
    except DriverError:
        last_scrub = None
    if last_scrub is None:
        print("Scrub schedule: disabled (main volume never scrubbed)")
    elif is_due(last_scrub, Clock().now(), scrub_days):
        print(f"Scrub schedule: due (every {scrub_days} days)")
    else:
        print(f"Scrub schedule: not due (every {scrub_days} days)")

    print("=" * 60)
    if all_healthy:
        print("Overall: All systems operational")
    else:
        print("Overall: Some issues detected")

    return 0 if all_healthy else 1
