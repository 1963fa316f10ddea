"""Backup run: scrub, snapshot, replicate, advance pointer, prune.

Each phase only starts after the previous one succeeded. Nothing is
retried; a failed run is simply run again later.

A failed transfer removes the snapshot it was sending, so the next run
starts from the same state. There is no rollback once the chain pointer
is being advanced: a failure from then on needs manual inspection.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .. import __util__
from ..config.schema import Config
from ..driver.btrfs import BtrfsDriver
from ..driver.common import (
    Clock,
    DriverError,
    ScrubDriver,
    SnapshotDriver,
    TransferDriver,
    Volume,
)
from ..pointer import PointerError, read_pointer, write_pointer
from ..retention import (
    EvaluationContext,
    FutureSnapshotError,
    RetentionPlan,
    check_future,
    plan_retention,
)
from ..scrub import scrub_if_due
from ..snapshot import Snapshot, decode_all, snapshot_at

logger = logging.getLogger(__name__)

EXIT_TRY_LATER = 75


class RunStatus(Enum):
    SUCCESS = "success"
    TRY_LATER = "try-later"
    FATAL = "fatal"


class FailureReason(Enum):
    """Why a run failed, with the exit code reported for it."""

    DRIVER_FAILURE = 1
    CONFIGURATION = 2
    ANOMALY = 3
    INCONSISTENT_STATE = 4


class Phase(Enum):
    SCRUB_CHECK = "scrub-check"
    SNAPSHOT = "snapshot"
    TRANSFER = "transfer"
    POINTER_ADVANCE = "pointer-advance"
    PRUNE = "prune"
    DONE = "done"


@dataclass
class RunOutcome:
    """Result of a backup run.

    Attributes:
        status: Success, try later or fatal
        reason: Failure category for fatal outcomes
        message: Human readable description
        phase: Phase the run ended in
        snapshot: Name of the snapshot created by this run
        deleted: Snapshots removed (or, in a dry run, to be removed)
        scrubbed: Whether both volumes were scrubbed
        dry_run: Whether nothing was changed
    """

    status: RunStatus
    reason: Optional[FailureReason] = None
    message: str = ""
    phase: Optional[Phase] = None
    snapshot: Optional[str] = None
    deleted: list[str] = field(default_factory=list)
    scrubbed: bool = False
    dry_run: bool = False

    @property
    def exit_code(self) -> int:
        if self.status is RunStatus.TRY_LATER:
            return EXIT_TRY_LATER
        if self.reason is not None:
            return self.reason.value
        return 0

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.SUCCESS


class _RunFailed(Exception):
    def __init__(self, reason: FailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class BackupOrchestrator:
    """Runs the backup workflow against a main and a mirror volume.

    A single driver object may serve as snapshot, transfer and scrub
    driver. Runs against the same volume pair must not overlap.
    """

    def __init__(
        self,
        snapshots: SnapshotDriver,
        transfer: Optional[TransferDriver] = None,
        scrub: Optional[ScrubDriver] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.snapshots = snapshots
        self.transfer = transfer or snapshots
        self.scrub = scrub or snapshots
        self.clock = clock or Clock()
        self.phase = Phase.SCRUB_CHECK

    def run(
        self, main: Volume, mirror: Volume, config: Config, dry_run: bool = False
    ) -> RunOutcome:
        """Execute one backup run and report how it ended."""
        ctx = EvaluationContext.create(self.clock.now(), config.retention)
        new_snapshot = snapshot_at(ctx.now)
        candidate = new_snapshot.name
        outcome = RunOutcome(status=RunStatus.SUCCESS, dry_run=dry_run)
        self.phase = Phase.SCRUB_CHECK

        logger.info(__util__.log_heading(f"Backup {main.root} -> {mirror.root}"))

        pointer = read_pointer(main.snapshot_area)
        if pointer.target_name == candidate:
            logger.warning("%s exists, try later.", candidate)
            outcome.status = RunStatus.TRY_LATER
            outcome.message = f"{candidate} exists, try later"
            outcome.phase = self.phase
            return outcome

        try:
            if not dry_run:
                for volume in (main, mirror):
                    self.snapshots.ensure_snapshot_area(volume)

            main_snapshots = self._list(main)
            check_future(ctx, main_snapshots)

            if dry_run:
                logger.info("Dry run: skipping scrub check")
            else:
                outcome.scrubbed = scrub_if_due(
                    self.scrub, main, mirror, ctx.now, config.global_config.scrub_days
                )

            self.phase = Phase.SNAPSHOT
            basis = pointer.resolve(main_snapshots)
            self._snapshot(main, candidate, dry_run)
            outcome.snapshot = candidate

            self.phase = Phase.TRANSFER
            self._transfer(main, mirror, basis, candidate, dry_run)

            self.phase = Phase.POINTER_ADVANCE
            self._advance_pointers(main, mirror, new_snapshot, dry_run)

            self.phase = Phase.PRUNE
            if dry_run:
                main_snapshots = sorted([*main_snapshots, new_snapshot])
            else:
                main_snapshots = self._list(main)
            plan = plan_retention(ctx, main_snapshots, protected=[candidate])
            outcome.deleted = self._prune(main, mirror, plan, dry_run, outcome)

            self.phase = Phase.DONE
        except FutureSnapshotError as e:
            return self._fail(outcome, FailureReason.ANOMALY, str(e))
        except _RunFailed as e:
            return self._fail(outcome, e.reason, str(e))
        except PointerError as e:
            return self._fail(outcome, FailureReason.INCONSISTENT_STATE, str(e))
        except DriverError as e:
            return self._fail(outcome, FailureReason.DRIVER_FAILURE, str(e))

        outcome.phase = self.phase
        logger.info(
            "Backup finished: %s, %d snapshot(s) removed",
            candidate,
            len(outcome.deleted),
        )
        return outcome

    def _fail(self, outcome: RunOutcome, reason: FailureReason, message: str):
        logger.error("Backup failed during %s: %s", self.phase.value, message)
        outcome.status = RunStatus.FATAL
        outcome.reason = reason
        outcome.message = message
        outcome.phase = self.phase
        return outcome

    def _list(self, volume: Volume) -> list[Snapshot]:
        snapshots = decode_all(self.snapshots.list_snapshot_names(volume))
        logger.debug("%s holds %d snapshot(s)", volume, len(snapshots))
        return snapshots

    def _snapshot(self, main: Volume, name: str, dry_run: bool) -> None:
        if dry_run:
            logger.info("Would create snapshot %s", main.snapshot_path(name))
            return
        logger.info("Creating snapshot %s", name)
        self.snapshots.create_readonly_snapshot(main, name)

    def _transfer(
        self,
        main: Volume,
        mirror: Volume,
        basis: Optional[Snapshot],
        name: str,
        dry_run: bool,
    ) -> None:
        if basis is not None:
            logger.info("Sending %s to %s using parent %s", name, mirror, basis)
        else:
            logger.info("Sending %s to %s in full mode", name, mirror)
        if dry_run:
            return

        try:
            if basis is not None:
                self.transfer.transfer_incremental(main, basis.name, name, mirror)
            else:
                self.transfer.transfer_full(main, name, mirror)
        except DriverError as e:
            logger.error("btrfs send/receive failed: %s", e)
            try:
                self.snapshots.delete_snapshot(main, name)
            except DriverError as cleanup_error:
                logger.error(
                    "Could not remove unsent snapshot %s: %s", name, cleanup_error
                )
                raise _RunFailed(
                    FailureReason.DRIVER_FAILURE,
                    f"transfer failed ({e}) and {name} could not be removed",
                ) from e
            raise

    def _advance_pointers(
        self, main: Volume, mirror: Volume, snapshot: Snapshot, dry_run: bool
    ) -> None:
        if dry_run:
            logger.info("Would point chain pointers at %s", snapshot)
            return
        for volume in (main, mirror):
            write_pointer(volume.snapshot_area, snapshot)
        logger.debug("Chain pointers advanced to %s", snapshot)

    def _prune(
        self,
        main: Volume,
        mirror: Volume,
        plan: RetentionPlan,
        dry_run: bool,
        outcome: RunOutcome,
    ) -> list[str]:
        for snap in plan.keep:
            reasons = ", ".join(plan.reasons.get(snap.name, []))
            logger.debug("Keeping %s (%s)", snap, reasons)
        if not plan.remove:
            return []
        if dry_run:
            for snap in plan.remove:
                logger.info("Would remove %s", snap)
            return [s.name for s in plan.remove]

        mirror_names = set(self.snapshots.list_snapshot_names(mirror))
        deleted = outcome.deleted
        for snap in plan.remove:
            try:
                self.snapshots.delete_snapshot(main, snap.name)
                if snap.name in mirror_names:
                    self.snapshots.delete_snapshot(mirror, snap.name)
                else:
                    logger.warning("%s is not on %s, nothing to remove", snap, mirror)
            except DriverError as e:
                raise _RunFailed(
                    FailureReason.INCONSISTENT_STATE,
                    f"pruning stopped at {snap}: {e}",
                ) from e
            logger.info("Removed %s", snap)
            deleted.append(snap.name)
        return deleted


def run(
    main: Volume,
    mirror: Volume,
    config: Config,
    driver=None,
    clock: Optional[Clock] = None,
    dry_run: bool = False,
) -> RunOutcome:
    """Run one backup of ``main`` to ``mirror`` with the btrfs driver by default."""
    if driver is None:
        driver = BtrfsDriver()
    return BackupOrchestrator(driver, clock=clock).run(main, mirror, config, dry_run)
