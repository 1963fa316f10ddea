"""Grandfather-father-son retention of dated snapshots.

The keep-set is the union of five independent tiers:

- last: every snapshot of the last ``keep_last`` days
- daily: one snapshot per day-window for ``keep_daily`` windows
- weekly: one snapshot per 8 day window, stepping back a week at a time
  from the Monday of the current week, for ``keep_weekly`` windows
- monthly: one snapshot per calendar month for ``keep_monthly`` months
- yearly: one snapshot per calendar year, from the oldest snapshot's year
  through the current one

Within a window the oldest snapshot wins. All window arithmetic is done on
local wall clock time, so "one day" is a calendar day across DST changes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, Sequence

from . import __util__
from .__util__ import epoch, local_datetime, shift_days
from .config.schema import RetentionConfig
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

# Names this short are never removed, whatever the policy says.
MIN_REMOVABLE_NAME_LENGTH = 11


class FutureSnapshotError(__util__.AbortError):
    """A snapshot is dated after the evaluation time."""

    def __init__(self, snapshots: Sequence[Snapshot], now: int) -> None:
        self.snapshots = list(snapshots)
        self.now = now
        names = ", ".join(s.name for s in self.snapshots)
        super().__init__(f"snapshot(s) dated in the future (now={now}): {names}")


def _add_months(dt: datetime, months: int) -> datetime:
    index = dt.year * 12 + (dt.month - 1) + months
    return dt.replace(year=index // 12, month=index % 12 + 1)


@dataclass(frozen=True)
class EvaluationContext:
    """Everything a retention pass depends on, fixed at the start of a run.

    Attributes:
        now: Evaluation instant in epoch seconds
        retention: Retention configuration for this run
        week_anchor: Local midnight of the Monday on or before ``now``
        month_anchor: Local midnight of the first day of the current month
        year: Current calendar year
    """

    now: int
    retention: RetentionConfig
    week_anchor: datetime
    month_anchor: datetime
    year: int

    @classmethod
    def create(cls, now: int, retention: RetentionConfig) -> "EvaluationContext":
        now_dt = local_datetime(now)
        midnight = now_dt.replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(
            now=int(now),
            retention=retention,
            week_anchor=midnight - timedelta(days=midnight.weekday()),
            month_anchor=midnight.replace(day=1),
            year=now_dt.year,
        )


@dataclass
class RetentionPlan:
    """Result of a retention pass.

    Attributes:
        keep: Snapshots to retain, oldest first
        remove: Snapshots to delete, oldest first
        reasons: Tier names that selected each kept snapshot, by name
    """

    keep: list[Snapshot] = field(default_factory=list)
    remove: list[Snapshot] = field(default_factory=list)
    reasons: dict[str, list[str]] = field(default_factory=dict)


def check_future(ctx: EvaluationContext, snapshots: Iterable[Snapshot]) -> None:
    """Raise FutureSnapshotError if any snapshot is newer than ``ctx.now``."""
    future = [s for s in snapshots if s.timestamp > ctx.now]
    if future:
        raise FutureSnapshotError(future, ctx.now)


def _first_per_window(
    snapshots: Sequence[Snapshot], windows: Iterable[tuple[int, int]]
) -> list[Snapshot]:
    selected = []
    for lower, upper in windows:
        for snap in snapshots:
            if lower <= snap.timestamp < upper:
                if snap not in selected:
                    selected.append(snap)
                break
    return selected


def select_last(ctx: EvaluationContext, snapshots: Sequence[Snapshot]) -> list[Snapshot]:
    """All snapshots in ``[now - keep_last days, now + 1 day)``."""
    if ctx.retention.keep_last <= 0:
        return []
    lower = shift_days(ctx.now, -ctx.retention.keep_last)
    upper = shift_days(ctx.now, 1)
    return [s for s in snapshots if lower <= s.timestamp < upper]


def select_daily(ctx: EvaluationContext, snapshots: Sequence[Snapshot]) -> list[Snapshot]:
    """First snapshot in each of the ``keep_daily`` day-windows ending at now."""
    windows = []
    for j in range(ctx.retention.keep_daily):
        lower = shift_days(ctx.now, -j)
        windows.append((lower, shift_days(lower, 1)))
    return _first_per_window(snapshots, windows)


def select_weekly(
    ctx: EvaluationContext, snapshots: Sequence[Snapshot]
) -> list[Snapshot]:
    """First snapshot in each of the ``keep_weekly`` 8 day week-windows."""
    windows = []
    for j in range(ctx.retention.keep_weekly):
        start = ctx.week_anchor - timedelta(days=7 * j)
        windows.append((epoch(start), epoch(start + timedelta(days=8))))
    return _first_per_window(snapshots, windows)


def select_monthly(
    ctx: EvaluationContext, snapshots: Sequence[Snapshot]
) -> list[Snapshot]:
    """First snapshot in each of the last ``keep_monthly`` calendar months."""
    windows = []
    for j in range(ctx.retention.keep_monthly):
        start = _add_months(ctx.month_anchor, -j)
        windows.append((epoch(start), epoch(_add_months(start, 1))))
    return _first_per_window(snapshots, windows)


def select_yearly(
    ctx: EvaluationContext, snapshots: Sequence[Snapshot]
) -> list[Snapshot]:
    """First snapshot of every year from the oldest one's year until now."""
    if not snapshots:
        return []
    first_year = min(s.year for s in snapshots)
    windows = [
        (epoch(datetime(year, 1, 1)), epoch(datetime(year + 1, 1, 1)))
        for year in range(first_year, ctx.year + 1)
    ]
    return _first_per_window(snapshots, windows)


TIERS: tuple[tuple[str, Callable[..., list[Snapshot]]], ...] = (
    ("last", select_last),
    ("daily", select_daily),
    ("weekly", select_weekly),
    ("monthly", select_monthly),
    ("yearly", select_yearly),
)


def plan_retention(
    ctx: EvaluationContext,
    snapshots: Iterable[Snapshot],
    protected: Iterable[str] = (),
) -> RetentionPlan:
    """Split ``snapshots`` into the ones to keep and the ones to remove.

    Args:
        ctx: Evaluation context of this run
        snapshots: All decoded snapshots of a volume
        protected: Snapshot names kept regardless of the policy

    Returns:
        RetentionPlan with keep and remove lists

    Raises:
        FutureSnapshotError: If any snapshot is newer than ``ctx.now``
    """
    ordered = sorted(snapshots)
    check_future(ctx, ordered)

    reasons: dict[str, list[str]] = {}
    for tier, select in TIERS:
        for snap in select(ctx, ordered):
            reasons.setdefault(snap.name, []).append(tier)
    for name in protected:
        if any(s.name == name for s in ordered):
            reasons.setdefault(name, []).append("pointer")

    plan = RetentionPlan(reasons=reasons)
    for snap in ordered:
        if snap.name in reasons or len(snap.name) < MIN_REMOVABLE_NAME_LENGTH:
            plan.keep.append(snap)
        else:
            plan.remove.append(snap)

    logger.debug(
        "Retention at %d: keeping %d, removing %d",
        ctx.now,
        len(plan.keep),
        len(plan.remove),
    )
    return plan


def compute_keep_set(
    ctx: EvaluationContext,
    snapshots: Iterable[Snapshot],
    protected: Iterable[str] = (),
) -> set[Snapshot]:
    """Return the set of snapshots that survive a cleanup pass."""
    return set(plan_retention(ctx, snapshots, protected).keep)


def format_retention_summary(retention: RetentionConfig) -> str:
    """One line description of a retention configuration."""
    return (
        f"last {retention.keep_last}d, daily {retention.keep_daily}, "
        f"weekly {retention.keep_weekly}, monthly {retention.keep_monthly}, "
        "yearly all"
    )
