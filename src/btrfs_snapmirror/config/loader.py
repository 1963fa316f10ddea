"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any

from .schema import Config, GlobalConfig, RetentionConfig, VolumesConfig


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "btrfs-snapmirror" / "config.toml",
    Path("/etc/btrfs-snapmirror/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _get_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    if value < 0:
        raise ConfigError(f"'{key}' must not be negative, got {value}")
    return value


def _parse_retention(data: dict[str, Any]) -> RetentionConfig:
    """Parse retention configuration from dict."""
    defaults = RetentionConfig()
    return RetentionConfig(
        keep_last=_get_int(data, "keep_last", defaults.keep_last),
        keep_daily=_get_int(data, "keep_daily", defaults.keep_daily),
        keep_weekly=_get_int(data, "keep_weekly", defaults.keep_weekly),
        keep_monthly=_get_int(data, "keep_monthly", defaults.keep_monthly),
    )


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    backup_dir = data.get("backup_dir", "backup_snapshots")
    if not isinstance(backup_dir, str) or not backup_dir or "/" in backup_dir:
        raise ConfigError(f"'backup_dir' must be a plain directory name: {backup_dir!r}")

    return GlobalConfig(
        backup_dir=backup_dir,
        scrub_days=_get_int(data, "scrub_days", 30),
        log_file=data.get("log_file"),
    )


def _parse_volumes(data: dict[str, Any]) -> VolumesConfig:
    """Parse the volume pair from dict."""
    return VolumesConfig(main=data.get("main"), mirror=data.get("mirror"))


def validate_config(config: Config) -> list[str]:
    """Validate a complete configuration.

    Returns:
        List of warnings

    Raises:
        ConfigError: If the volume pair is unusable
    """
    warnings = []
    volumes = config.volumes

    if not volumes.main or not volumes.mirror:
        raise ConfigError("Both a main and a mirror volume must be configured")

    if Path(volumes.main).resolve() == Path(volumes.mirror).resolve():
        raise ConfigError(f"Main and mirror are the same volume: {volumes.main}")

    retention = config.retention
    if not any(
        (
            retention.keep_last,
            retention.keep_daily,
            retention.keep_weekly,
            retention.keep_monthly,
        )
    ):
        warnings.append("Only the yearly retention tier is active")

    if config.global_config.scrub_days == 0:
        warnings.append("scrub_days is 0, both volumes are scrubbed on every run")

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load configuration from TOML file.

    The volume pair may be left out of the file and supplied on the
    command line, so it is checked separately by ``validate_config``.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    config = Config(
        global_config=_parse_global(data.get("global", {})),
        retention=_parse_retention(data.get("retention", {})),
        volumes=_parse_volumes(data.get("volumes", {})),
    )

    warnings = []
    unknown = set(data) - {"global", "retention", "volumes"}
    for section in sorted(unknown):
        warnings.append(f"Unknown section '{section}' ignored")

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# btrfs-snapmirror configuration

[global]
backup_dir = "backup_snapshots"   # snapshot subvolume inside each volume root
scrub_days = 30                   # scrub both volumes every 30 days
# log_file = "/var/log/btrfs-snapmirror.log"

[retention]
keep_last = 2       # Keep every snapshot of the last 2 days
keep_daily = 7      # Then one per day for 7 days
keep_weekly = 4     # Then one per week for 4 weeks
keep_monthly = 24   # Then one per month for 24 months
                    # One per year is always kept

[volumes]
main = "/mnt/backup-main"
mirror = "/mnt/backup-mirror"
"""
