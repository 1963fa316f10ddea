"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RetentionConfig:
    """Retention policy configuration.

    Attributes:
        keep_last: Days during which every snapshot is kept
        keep_daily: Number of daily snapshots to keep
        keep_weekly: Number of weekly snapshots to keep
        keep_monthly: Number of monthly snapshots to keep

    One snapshot per calendar year is always kept.
    """

    keep_last: int = 2
    keep_daily: int = 7
    keep_weekly: int = 4
    keep_monthly: int = 24


@dataclass
class VolumesConfig:
    """The volume pair.

    Attributes:
        main: Root of the main btrfs volume
        mirror: Root of the mirror btrfs volume
    """

    main: Optional[str] = None
    mirror: Optional[str] = None


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        backup_dir: Name of the snapshot subvolume inside each volume root
        scrub_days: Days between scrubs of both volumes
        log_file: Path to log file (None for no file logging)
    """

    backup_dir: str = "backup_snapshots"
    scrub_days: int = 30
    log_file: Optional[str] = None


@dataclass
class Config:
    """Root configuration object."""

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    volumes: VolumesConfig = field(default_factory=VolumesConfig)
