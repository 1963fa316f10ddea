"""Snapshot naming and parsing.

A snapshot name embeds its creation instant (epoch seconds) followed by the
day, month, year and ISO week of that instant in local time::

    1700000000-14-11-2023-46.inc.backup

The epoch is zero padded so plain string sorting matches creation order.
Names that don't match the pattern are not snapshots and are ignored.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

SUFFIX = ".inc.backup"
EPOCH_WIDTH = 10

SNAPSHOT_RE = re.compile(
    r"^(\d+)-(\d+)-(\d+)-(\d+)-(\d+)\.inc\.backup$", re.ASCII
)


@dataclass(frozen=True, order=True)
class Snapshot:
    """Decoded snapshot identity.

    Attributes:
        timestamp: Creation instant in epoch seconds
        day: Day of month at creation
        month: Month at creation
        year: Year at creation
        week: ISO week number at creation
        name: Name as found on disk
    """

    timestamp: int
    day: int = field(compare=False)
    month: int = field(compare=False)
    year: int = field(compare=False)
    week: int = field(compare=False)
    name: str = field(compare=False)

    def __str__(self) -> str:
        return self.name


def snapshot_at(now: int) -> Snapshot:
    """Return the snapshot taken at the instant ``now``."""
    dt = datetime.fromtimestamp(now)
    week = dt.isocalendar()[1]
    name = (
        f"{int(now):0{EPOCH_WIDTH}d}-{dt.day:02d}-{dt.month:02d}-"
        f"{dt.year:04d}-{week:02d}{SUFFIX}"
    )
    return Snapshot(
        timestamp=int(now),
        day=dt.day,
        month=dt.month,
        year=dt.year,
        week=week,
        name=name,
    )


def encode(now: int) -> str:
    """Return the snapshot name for the instant ``now``."""
    return snapshot_at(now).name


def decode(name: str) -> Optional[Snapshot]:
    """Parse ``name``, returning None for anything that isn't a snapshot."""
    match = SNAPSHOT_RE.match(name)
    if not match:
        return None
    timestamp, day, month, year, week = (int(g) for g in match.groups())
    if not (1 <= day <= 31 and 1 <= month <= 12 and 1 <= year <= 9999):
        return None
    if not 1 <= week <= 53:
        return None
    return Snapshot(
        timestamp=timestamp, day=day, month=month, year=year, week=week, name=name
    )


def decode_all(names: Iterable[str]) -> list[Snapshot]:
    """Decode the snapshot names among ``names``, sorted oldest first."""
    snapshots = [s for s in (decode(n) for n in names) if s is not None]
    snapshots.sort()
    return snapshots
