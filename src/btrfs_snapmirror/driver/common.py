# pyright: standard

"""btrfs-snapmirror: btrfs_snapmirror/driver/common.py
Interfaces to the filesystem operations the backup workflow relies on.

Every operation either completes or raises ``DriverError``.
"""

import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .. import __util__


class DriverError(__util__.AbortError):
    """An external filesystem operation failed."""

    def __init__(self, message: str, command=None, returncode: Optional[int] = None):
        super().__init__(message)
        self.command = command
        self.returncode = returncode


@dataclass(frozen=True)
class Volume:
    """One side of the volume pair.

    Attributes:
        label: "main" or "mirror", used in log output
        root: Mount point of the btrfs volume
        backup_dir: Name of the snapshot area below ``root``
    """

    label: str
    root: Path
    backup_dir: str = "backup_snapshots"

    @property
    def snapshot_area(self) -> Path:
        return Path(self.root) / self.backup_dir

    def snapshot_path(self, name: str) -> Path:
        return self.snapshot_area / name

    def __str__(self) -> str:
        return f"{self.label}:{self.root}"


class ScrubState(Enum):
    """State of the last scrub as reported by the filesystem."""

    RUNNING = "running"
    INTERRUPTED = "interrupted"
    ABORTED = "aborted"
    FINISHED = "finished"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "ScrubState":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ScrubStatus:
    """Scrub record of a volume.

    Attributes:
        state: Current scrub state
        last_completed: Epoch seconds of the last scrub, None if never scrubbed
        errors_found: Whether the last scrub reported errors
    """

    state: ScrubState
    last_completed: Optional[int] = None
    errors_found: bool = False


class SnapshotDriver:
    """Creates, deletes and lists snapshots."""

    def ensure_snapshot_area(self, volume: Volume) -> bool:
        """Create the snapshot area of ``volume`` if missing.

        Returns True if it was created.
        """
        raise NotImplementedError

    def create_readonly_snapshot(self, volume: Volume, name: str) -> None:
        raise NotImplementedError

    def delete_snapshot(self, volume: Volume, name: str) -> None:
        raise NotImplementedError

    def list_snapshot_names(self, volume: Volume) -> list[str]:
        raise NotImplementedError


class TransferDriver:
    """Replicates snapshots from the main volume to the mirror."""

    def transfer_full(self, source: Volume, name: str, destination: Volume) -> None:
        raise NotImplementedError

    def transfer_incremental(
        self, source: Volume, basis: str, name: str, destination: Volume
    ) -> None:
        raise NotImplementedError


class ScrubDriver:
    """Inspects and drives the scrub of a volume.

    ``start`` and ``resume`` block until the scrub has ended.
    """

    def status(self, volume: Volume) -> ScrubStatus:
        raise NotImplementedError

    def start(self, volume: Volume) -> None:
        raise NotImplementedError

    def resume(self, volume: Volume) -> None:
        raise NotImplementedError

    def cancel(self, volume: Volume) -> None:
        raise NotImplementedError


class Clock:
    """Wall clock in whole epoch seconds."""

    def now(self) -> int:
        return int(time.time())
