"""Plan command: show what the retention policy keeps right now."""

import argparse
import json
import logging
import time

from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.orchestrator import FailureReason
from ..driver.btrfs import BtrfsDriver
from ..driver.common import Clock, DriverError
from ..retention import (
    EvaluationContext,
    FutureSnapshotError,
    format_retention_summary,
    plan_retention,
)
from ..pointer import read_pointer
from ..snapshot import decode_all
from .common import build_volume, get_log_level, resolve_config

logger = logging.getLogger(__name__)


def execute_plan(args: argparse.Namespace) -> int:
    """Execute the plan command.

    Lists every snapshot of the main volume with the retention tiers
    that keep it. Nothing is changed.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    try:
        config, _ = resolve_config(args, require_mirror=False)
        main = build_volume(config, "main")
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return FailureReason.CONFIGURATION.value

    ctx = EvaluationContext.create(Clock().now(), config.retention)
    logger.info("Retention: %s", format_retention_summary(config.retention))

    try:
        snapshots = decode_all(BtrfsDriver().list_snapshot_names(main))
        pointer = read_pointer(main.snapshot_area)
        protected = [pointer.target_name] if pointer.target_name else []
        plan = plan_retention(ctx, snapshots, protected=protected)
    except FutureSnapshotError as e:
        logger.error("%s", e)
        return FailureReason.ANOMALY.value
    except DriverError as e:
        logger.error("Cannot list snapshots of %s: %s", main, e)
        return FailureReason.DRIVER_FAILURE.value

    if getattr(args, "json", False):
        _print_json(plan, snapshots)
    else:
        _print_plan(plan, snapshots, main)
    return 0


def _print_plan(plan, snapshots, main) -> None:
    print(f"Snapshots in {main.snapshot_area}:")
    removed = set(plan.remove)
    for i, snap in enumerate(snapshots, 1):
        created = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(snap.timestamp))
        if snap in removed:
            action = "remove"
        else:
            action = "keep (" + ", ".join(plan.reasons.get(snap.name, [])) + ")"
        print(f"  {i:3}. {snap.name:<36} {created}  {action}")
    print("")
    print(f"Keep {len(plan.keep)}, remove {len(plan.remove)}")


def _print_json(plan, snapshots) -> None:
    removed = set(plan.remove)
    data = {
        "keep": len(plan.keep),
        "remove": len(plan.remove),
        "snapshots": [
            {
                "name": snap.name,
                "timestamp": snap.timestamp,
                "action": "remove" if snap in removed else "keep",
                "reasons": plan.reasons.get(snap.name, []),
            }
            for snap in snapshots
        ],
    }
    print(json.dumps(data, indent=2))
