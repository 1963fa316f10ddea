"""Backup workflow for btrfs-snapmirror.

This module sequences scrubbing, snapshotting, replication to the
mirror, chain pointer updates and pruning of a volume pair.
"""

from .orchestrator import (
    BackupOrchestrator,
    FailureReason,
    Phase,
    RunOutcome,
    RunStatus,
    run,
)

__all__ = [
    "BackupOrchestrator",
    "FailureReason",
    "Phase",
    "RunOutcome",
    "RunStatus",
    "run",
]
