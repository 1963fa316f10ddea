"""Run command: snapshot the main volume, mirror it and prune."""

import argparse
import logging
import time

from .. import __util__
from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.orchestrator import BackupOrchestrator, FailureReason, RunStatus
from ..driver.btrfs import BtrfsDriver
from .common import build_volume, get_log_level, resolve_config

logger = logging.getLogger(__name__)


def execute_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code of the run outcome
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    try:
        config, warnings = resolve_config(args)
        main = build_volume(config, "main")
        mirror = build_volume(config, "mirror")
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return FailureReason.CONFIGURATION.value

    for warning in warnings:
        logger.warning("Config: %s", warning)

    if config.global_config.log_file:
        create_logger(level=log_level, log_file=config.global_config.log_file)

    dry_run = getattr(args, "dry_run", False)
    if dry_run:
        logger.info("Dry run mode - showing what would be done")

    logger.info(__util__.log_heading(f"Started at {time.ctime()}"))
    driver = BtrfsDriver(btrfs_debug=getattr(args, "debug", False))
    outcome = BackupOrchestrator(driver).run(main, mirror, config, dry_run=dry_run)
    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))

    if outcome.status is RunStatus.SUCCESS:
        if outcome.scrubbed:
            logger.info("Both volumes scrubbed")
        logger.info(
            "Snapshot %s mirrored, %d old snapshot(s) %s",
            outcome.snapshot,
            len(outcome.deleted),
            "to remove" if dry_run else "removed",
        )
    elif outcome.status is RunStatus.TRY_LATER:
        logger.warning("%s", outcome.message)
    elif outcome.reason is FailureReason.INCONSISTENT_STATE:
        logger.error("Manual inspection required: %s", outcome.message)

    return outcome.exit_code
