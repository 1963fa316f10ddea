"""btrfs-snapmirror: btrfs_snapmirror/driver/__init__.py."""

from .btrfs import BtrfsDriver
from .common import (
    Clock,
    DriverError,
    ScrubDriver,
    ScrubState,
    ScrubStatus,
    SnapshotDriver,
    TransferDriver,
    Volume,
)

__all__ = [
    "BtrfsDriver",
    "Clock",
    "DriverError",
    "ScrubDriver",
    "ScrubState",
    "ScrubStatus",
    "SnapshotDriver",
    "TransferDriver",
    "Volume",
]
