"""Pytest configuration and shared fixtures."""

from datetime import datetime

import pytest

from btrfs_snapmirror.config.schema import Config, RetentionConfig
from btrfs_snapmirror.driver.common import (
    DriverError,
    ScrubDriver,
    ScrubState,
    ScrubStatus,
    SnapshotDriver,
    TransferDriver,
    Volume,
)
from btrfs_snapmirror.snapshot import encode

# Saturday, in the local timezone of the test run
NOW = int(datetime(2026, 10, 17, 13, 0, 0).timestamp())


def ts(*args) -> int:
    """Epoch seconds of a local date and time."""
    return int(datetime(*args).timestamp())


class FixedClock:
    """Clock returning a fixed instant."""

    def __init__(self, now: int = NOW) -> None:
        self.value = now

    def now(self) -> int:
        return self.value


class FakeDriver(SnapshotDriver, TransferDriver, ScrubDriver):
    """In-memory snapshot, transfer and scrub driver.

    Snapshot names are kept per volume label. Mutating calls are recorded
    in ``calls``. ``fail(op, label)`` makes an operation raise DriverError.
    """

    MUTATIONS = frozenset(
        {
            "ensure_snapshot_area",
            "create_readonly_snapshot",
            "delete_snapshot",
            "transfer_full",
            "transfer_incremental",
            "start",
            "resume",
            "cancel",
        }
    )

    def __init__(self) -> None:
        self.names: dict[str, list[str]] = {"main": [], "mirror": []}
        self.calls: list[tuple] = []
        self.failures: set[tuple[str, str]] = set()
        self.scrub_status = {
            "main": ScrubStatus(state=ScrubState.FINISHED, last_completed=None),
            "mirror": ScrubStatus(state=ScrubState.FINISHED, last_completed=None),
        }

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in self.MUTATIONS]

    def fail(self, op: str, label: str = "*") -> None:
        self.failures.add((op, label))

    def _call(self, op: str, volume: Volume, *args) -> None:
        self.calls.append((op, volume.label, *args))
        if (op, volume.label) in self.failures or (op, "*") in self.failures:
            raise DriverError(f"{op} failed on {volume}")

    def ensure_snapshot_area(self, volume: Volume) -> bool:
        if volume.snapshot_area.is_dir():
            return False
        self._call("ensure_snapshot_area", volume)
        volume.snapshot_area.mkdir(parents=True)
        return True

    def create_readonly_snapshot(self, volume: Volume, name: str) -> None:
        self._call("create_readonly_snapshot", volume, name)
        self.names[volume.label].append(name)

    def delete_snapshot(self, volume: Volume, name: str) -> None:
        self._call("delete_snapshot", volume, name)
        if name not in self.names[volume.label]:
            raise DriverError(f"{name} does not exist on {volume}")
        self.names[volume.label].remove(name)

    def list_snapshot_names(self, volume: Volume) -> list[str]:
        self.calls.append(("list_snapshot_names", volume.label))
        return sorted(self.names[volume.label])

    def transfer_full(self, source: Volume, name: str, destination: Volume) -> None:
        self._call("transfer_full", destination, name)
        self.names[destination.label].append(name)

    def transfer_incremental(
        self, source: Volume, basis: str, name: str, destination: Volume
    ) -> None:
        self._call("transfer_incremental", destination, basis, name)
        assert basis in self.names[source.label]
        self.names[destination.label].append(name)

    def status(self, volume: Volume) -> ScrubStatus:
        self.calls.append(("status", volume.label))
        return self.scrub_status[volume.label]

    def start(self, volume: Volume) -> None:
        self._call("start", volume)

    def resume(self, volume: Volume) -> None:
        self._call("resume", volume)

    def cancel(self, volume: Volume) -> None:
        self._call("cancel", volume)


@pytest.fixture
def driver():
    """Fresh in-memory driver."""
    return FakeDriver()


@pytest.fixture
def clock():
    """Clock fixed at NOW."""
    return FixedClock()


@pytest.fixture
def volumes(tmp_path):
    """Main and mirror volumes below tmp_path, snapshot areas created."""
    main = Volume("main", tmp_path / "main")
    mirror = Volume("mirror", tmp_path / "mirror")
    for volume in (main, mirror):
        volume.snapshot_area.mkdir(parents=True)
    return main, mirror


@pytest.fixture
def config():
    """Default configuration."""
    return Config(
        retention=RetentionConfig(
            keep_last=2, keep_daily=7, keep_weekly=4, keep_monthly=24
        )
    )


def seed(driver: FakeDriver, *timestamps: int, mirror: bool = True) -> list[str]:
    """Put snapshots taken at ``timestamps`` on main (and mirror)."""
    names = [encode(t) for t in timestamps]
    driver.names["main"].extend(names)
    if mirror:
        driver.names["mirror"].extend(names)
    return names


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[global]
backup_dir = "snaps"
scrub_days = 14
log_file = "/var/log/btrfs-snapmirror.log"

[retention]
keep_last = 3
keep_daily = 10
keep_weekly = 6
keep_monthly = 12

[volumes]
main = "/mnt/main"
mirror = "/mnt/mirror"
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[volumes]
main = "/mnt/main"
mirror = "/mnt/mirror"
"""


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_config_dir, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_config_dir / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path
