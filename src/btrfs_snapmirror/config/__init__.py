"""Configuration system for btrfs-snapmirror.

This module provides TOML-based configuration loading, validation,
and schema definitions.
"""

from .loader import ConfigError, find_config_file, load_config, validate_config
from .schema import Config, GlobalConfig, RetentionConfig, VolumesConfig

__all__ = [
    "GlobalConfig",
    "RetentionConfig",
    "VolumesConfig",
    "Config",
    "load_config",
    "find_config_file",
    "validate_config",
    "ConfigError",
]
