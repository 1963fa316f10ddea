# pyright: standard

"""btrfs-snapmirror: btrfs_snapmirror/driver/btrfs.py
Snapshot, transfer and scrub operations implemented with btrfs-progs.
"""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Optional

from filelock import FileLock

from .. import __util__
from ..__logger__ import logger
from .common import (
    DriverError,
    ScrubDriver,
    ScrubState,
    ScrubStatus,
    SnapshotDriver,
    TransferDriver,
    Volume,
)

SCRUB_TIME_FORMAT = "%a %b %d %H:%M:%S %Y"


def parse_scrub_status(output: str) -> ScrubStatus:
    """Interpret the output of ``btrfs scrub status``."""
    if "no stats available" in output:
        return ScrubStatus(state=ScrubState.UNKNOWN, last_completed=None)

    state = ScrubState.UNKNOWN
    started = None
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        if key == "status":
            state = ScrubState.parse(value)
        elif key == "scrub started":
            started = _parse_scrub_time(value)

    return ScrubStatus(
        state=state,
        last_completed=started,
        errors_found="no errors found" not in output,
    )


def _parse_scrub_time(value: str) -> Optional[int]:
    text = " ".join(value.split())
    try:
        return int(time.mktime(time.strptime(text, SCRUB_TIME_FORMAT)))
    except ValueError:
        logger.warning("Could not parse scrub start time: %r", text)
        return None


class BtrfsDriver(SnapshotDriver, TransferDriver, ScrubDriver):
    """Drive btrfs-progs on locally mounted volumes."""

    def __init__(self, btrfs_debug=False) -> None:
        self.btrfs_flags = ["-v"] if btrfs_debug else ["-q"]

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    # snapshots

    def ensure_snapshot_area(self, volume: Volume) -> bool:
        area = volume.snapshot_area
        if area.is_dir():
            return False
        logger.info("Creating snapshot area %s", area)
        self._exec_command(["btrfs", "subvolume", "create", str(area)])
        return True

    def create_readonly_snapshot(self, volume: Volume, name: str) -> None:
        destination = volume.snapshot_path(name)
        logger.info("%s -> %s", volume.root, destination)
        lock_path = volume.snapshot_area / ".btrfs-snapmirror.snapshot.lock"
        with FileLock(str(lock_path)):
            self._exec_command(
                [
                    "btrfs",
                    *self.btrfs_flags,
                    "subvolume",
                    "snapshot",
                    "-r",
                    str(volume.root),
                    str(destination),
                ]
            )

    def delete_snapshot(self, volume: Volume, name: str) -> None:
        path = volume.snapshot_path(name)
        self._exec_command(["btrfs", *self.btrfs_flags, "subvolume", "delete", str(path)])
        logger.info("Deleted snapshot subvolume: %s", path)

    def list_snapshot_names(self, volume: Volume) -> list[str]:
        area = volume.snapshot_area
        if not area.is_dir():
            return []
        try:
            return sorted(
                entry.name
                for entry in area.iterdir()
                if entry.is_dir() and not entry.is_symlink()
            )
        except OSError as e:
            raise DriverError(f"cannot list {area}: {e}") from e

    # transfers

    def transfer_full(self, source: Volume, name: str, destination: Volume) -> None:
        self._send_receive(source.snapshot_path(name), None, destination.snapshot_area)

    def transfer_incremental(
        self, source: Volume, basis: str, name: str, destination: Volume
    ) -> None:
        self._send_receive(
            source.snapshot_path(name),
            source.snapshot_path(basis),
            destination.snapshot_area,
        )

    def _send_receive(self, snapshot: Path, parent: Optional[Path], target: Path):
        send_cmd = ["btrfs", *self.btrfs_flags, "send"]
        if parent is not None:
            send_cmd += ["-p", str(parent)]
        send_cmd.append(str(snapshot))
        receive_cmd = ["btrfs", *self.btrfs_flags, "receive", str(target)]

        log_level = logging.getLogger().getEffectiveLevel()
        stdout = subprocess.DEVNULL if log_level >= logging.WARNING else None

        send_process = self._exec_command(send_cmd, method="Popen", stdout=subprocess.PIPE)
        try:
            receive_process = self._exec_command(
                receive_cmd, method="Popen", stdin=send_process.stdout, stdout=stdout
            )
        except DriverError:
            send_process.kill()
            send_process.wait()
            raise
        # Let send see SIGPIPE if receive dies
        send_process.stdout.close()

        receive_rc = receive_process.wait()
        send_rc = send_process.wait()
        if send_rc != 0:
            raise DriverError(f"btrfs send failed with exit code {send_rc}", send_cmd, send_rc)
        if receive_rc != 0:
            raise DriverError(
                f"btrfs receive failed with exit code {receive_rc}",
                receive_cmd,
                receive_rc,
            )

    # scrubs

    def status(self, volume: Volume) -> ScrubStatus:
        output = self._exec_command(
            ["btrfs", "scrub", "status", str(volume.root)], text=True
        )
        return parse_scrub_status(output)

    def start(self, volume: Volume) -> None:
        self._exec_command(["btrfs", "scrub", "start", "-B", str(volume.root)])

    def resume(self, volume: Volume) -> None:
        self._exec_command(["btrfs", "scrub", "resume", "-B", str(volume.root)])

    def cancel(self, volume: Volume) -> None:
        self._exec_command(["btrfs", "scrub", "cancel", str(volume.root)])

    def _exec_command(self, command, method="check_output", **kwargs):
        if os.geteuid() != 0 and command[0] == "btrfs":
            command = ["sudo", "-n", *command]
        try:
            return __util__.exec_subprocess(command, method=method, **kwargs)
        except __util__.AbortError as e:
            returncode = getattr(e.__cause__, "returncode", None)
            raise DriverError(str(e), command, returncode) from e
        except OSError as e:
            raise DriverError(f"cannot run {command[0]}: {e}", command) from e
