"""Tests for config loader module."""

from pathlib import Path

import pytest

from btrfs_snapmirror.config.loader import (
    ConfigError,
    find_config_file,
    generate_example_config,
    load_config,
    validate_config,
)
from btrfs_snapmirror.config.schema import (
    Config,
    GlobalConfig,
    RetentionConfig,
    VolumesConfig,
)


class TestFindConfigFile:
    """Tests for find_config_file function."""

    def test_explicit_path_exists(self, config_file):
        """Test finding explicitly specified config file."""
        result = find_config_file(str(config_file))
        assert result == config_file

    def test_explicit_path_not_exists(self, tmp_path):
        """Test error when explicit path doesn't exist."""
        with pytest.raises(ConfigError, match="not found"):
            find_config_file(str(tmp_path / "nonexistent.toml"))

    def test_search_paths_in_order(self, tmp_path, monkeypatch, sample_config_toml):
        """Test the first existing search path wins."""
        user = tmp_path / "user.toml"
        system = tmp_path / "system.toml"
        system.write_text(sample_config_toml)
        monkeypatch.setattr(
            "btrfs_snapmirror.config.loader.CONFIG_PATHS", [user, system]
        )

        assert find_config_file(None) == system

        user.write_text(sample_config_toml)
        assert find_config_file(None) == user

    def test_no_config_found(self, tmp_path, monkeypatch):
        """Test returning None when no search path exists."""
        monkeypatch.setattr(
            "btrfs_snapmirror.config.loader.CONFIG_PATHS", [tmp_path / "none.toml"]
        )
        assert find_config_file(None) is None


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_valid_config(self, config_file):
        """Test loading a valid configuration file."""
        config, warnings = load_config(config_file)

        assert warnings == []
        assert config.global_config.backup_dir == "snaps"
        assert config.global_config.scrub_days == 14
        assert config.global_config.log_file == "/var/log/btrfs-snapmirror.log"
        assert config.volumes.main == "/mnt/main"
        assert config.volumes.mirror == "/mnt/mirror"

    def test_load_with_retention(self, config_file):
        """Test that retention settings are loaded correctly."""
        config, warnings = load_config(config_file)

        assert config.retention == RetentionConfig(
            keep_last=3, keep_daily=10, keep_weekly=6, keep_monthly=12
        )

    def test_load_minimal_config(self, minimal_config_file):
        """Test defaults apply to everything left out."""
        config, warnings = load_config(minimal_config_file)

        assert config.retention == RetentionConfig()
        assert config.global_config == GlobalConfig()
        assert config.volumes.main == "/mnt/main"

    def test_load_without_volumes(self, tmp_config_dir):
        """Test volumes may be supplied later on the command line."""
        path = tmp_config_dir / "novolumes.toml"
        path.write_text("[retention]\nkeep_last = 1\n")

        config, warnings = load_config(path)

        assert config.volumes == VolumesConfig()
        assert config.retention.keep_last == 1

    def test_load_nonexistent_file(self, tmp_path):
        """Test error when loading nonexistent file."""
        with pytest.raises(ConfigError, match="Cannot read config file"):
            load_config(tmp_path / "nonexistent.toml")

    def test_load_invalid_toml(self, tmp_config_dir):
        """Test error when loading invalid TOML."""
        bad_config = tmp_config_dir / "bad.toml"
        bad_config.write_text("this is not valid [ toml")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(bad_config)

    @pytest.mark.parametrize(
        "section,body",
        [
            ("retention", "keep_daily = -1"),
            ("retention", 'keep_weekly = "4"'),
            ("retention", "keep_monthly = true"),
            ("global", "scrub_days = -30"),
            ("global", "scrub_days = 1.5"),
        ],
    )
    def test_load_bad_number(self, tmp_config_dir, section, body):
        """Test retention counts and scrub interval must be non-negative integers."""
        bad_config = tmp_config_dir / "bad_number.toml"
        bad_config.write_text(f"[{section}]\n{body}\n")

        with pytest.raises(ConfigError):
            load_config(bad_config)

    @pytest.mark.parametrize("value", ['""', '"a/b"', "5"])
    def test_load_bad_backup_dir(self, tmp_config_dir, value):
        """Test backup_dir must be a plain directory name."""
        bad_config = tmp_config_dir / "bad_dir.toml"
        bad_config.write_text(f"[global]\nbackup_dir = {value}\n")

        with pytest.raises(ConfigError, match="backup_dir"):
            load_config(bad_config)

    def test_unknown_section_warns(self, tmp_config_dir, sample_config_toml):
        """Test unknown sections are reported but not fatal."""
        path = tmp_config_dir / "extra.toml"
        path.write_text(sample_config_toml + "\n[snapper]\nenabled = true\n")

        config, warnings = load_config(path)

        assert warnings == ["Unknown section 'snapper' ignored"]

    def test_example_config_loads(self, tmp_config_dir):
        """Test the generated example is a valid configuration."""
        path = tmp_config_dir / "example.toml"
        path.write_text(generate_example_config())

        config, warnings = load_config(path)

        assert warnings == []
        assert config.retention == RetentionConfig()
        assert validate_config(config) == []


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid(self):
        """Test a complete configuration has no warnings."""
        config = Config(volumes=VolumesConfig(main="/mnt/a", mirror="/mnt/b"))
        assert validate_config(config) == []

    @pytest.mark.parametrize(
        "volumes",
        [
            VolumesConfig(),
            VolumesConfig(main="/mnt/a"),
            VolumesConfig(mirror="/mnt/b"),
        ],
    )
    def test_missing_volume(self, volumes):
        """Test both volumes are required."""
        with pytest.raises(ConfigError, match="main and a mirror"):
            validate_config(Config(volumes=volumes))

    def test_same_volume(self, tmp_path):
        """Test main and mirror must differ."""
        volumes = VolumesConfig(main=str(tmp_path), mirror=str(tmp_path / "."))
        with pytest.raises(ConfigError, match="same volume"):
            validate_config(Config(volumes=volumes))

    def test_yearly_only_warns(self):
        """Test an all-zero policy is allowed with a warning."""
        config = Config(
            retention=RetentionConfig(0, 0, 0, 0),
            volumes=VolumesConfig(main="/mnt/a", mirror="/mnt/b"),
        )
        assert validate_config(config) == ["Only the yearly retention tier is active"]

    def test_scrub_every_run_warns(self):
        """Test scrub_days of zero is allowed with a warning."""
        config = Config(
            global_config=GlobalConfig(scrub_days=0),
            volumes=VolumesConfig(main="/mnt/a", mirror="/mnt/b"),
        )
        warnings = validate_config(config)
        assert len(warnings) == 1
        assert "scrub_days" in warnings[0]


def test_config_paths_are_absolute():
    """Test search paths do not depend on the working directory."""
    from btrfs_snapmirror.config.loader import CONFIG_PATHS

    assert all(Path(p).is_absolute() for p in CONFIG_PATHS)
