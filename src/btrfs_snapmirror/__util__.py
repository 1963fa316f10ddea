# pyright: standard

"""btrfs-snapmirror: btrfs_snapmirror/__util__.py
Common utility code shared between modules.
"""

import subprocess
from datetime import datetime, timedelta

from .__logger__ import logger


class AbortError(Exception):
    """Exception where btrfs-snapmirror should abort the current run."""


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"--[ {caption} ]--"


def exec_subprocess(command, method="check_output", **kwargs):
    """Run a command using the given subprocess method.

    Raises ``AbortError`` if the command fails or cannot be started.
    """
    logger.debug("Executing: %s", command)
    func = getattr(subprocess, method)
    try:
        return func(command, **kwargs)
    except FileNotFoundError as e:
        logger.error("Command not found: %s", command[0])
        raise AbortError(f"command not found: {command[0]}") from e
    except subprocess.CalledProcessError as e:
        logger.error("Error on command: %s (exit %d)", command, e.returncode)
        raise AbortError(
            f"{' '.join(str(c) for c in command)} failed with exit code {e.returncode}"
        ) from e


def local_datetime(timestamp: int) -> datetime:
    """Naive local wall clock time of ``timestamp``."""
    return datetime.fromtimestamp(timestamp)


def epoch(dt: datetime) -> int:
    """Epoch seconds of the naive local time ``dt``."""
    return int(dt.timestamp())


def shift_days(timestamp: int, days: int) -> int:
    """Move ``timestamp`` by ``days`` calendar days, keeping the wall clock time."""
    return epoch(local_datetime(timestamp) + timedelta(days=days))
