"""
Unit tests for the configuration manager.
"""

import pytest
import json
import yaml
import tempfile
from pathlib import Path
from argparse import Namespace

from foldersort.utils.config_manager import ConfigManager, default_data_dir


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep variables from the developer's shell out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("FOLDERSORT_") or key == "LOG_LEVEL":
            monkeypatch.delenv(key, raising=False)


class TestConfigManager:
    """Test the ConfigManager class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = Path(tempfile.mkdtemp())

        self.json_config = self.temp_dir / "config.json"
        self.yaml_config = self.temp_dir / "config.yaml"

        self.sample_config = {
            "storage": {"data_dir": str(self.temp_dir / "data")},
            "watch": {"debounce_ms": 250, "force_polling": True},
        }

        with open(self.json_config, "w") as f:
            json.dump(self.sample_config, f)

        with open(self.yaml_config, "w") as f:
            yaml.safe_dump(self.sample_config, f)

    def teardown_method(self):
        """Clean up test fixtures."""
        import shutil

        shutil.rmtree(self.temp_dir)

    def test_default_config(self):
        config = ConfigManager(load_env_file=False)

        assert config.get("watch.interval_ms") == 5000
        assert config.get("watch.debounce_ms") == 400
        assert config.get("watch.stability_threshold_ms") == 800
        assert config.get("watch.stability_poll_ms") == 100
        assert config.get("watch.force_polling") is False
        assert config.get("logging.level") == "INFO"
        assert config.get("storage.data_dir") is None

    def test_load_from_json_file(self):
        config = ConfigManager(config_file=self.json_config, load_env_file=False)

        assert config.get("watch.debounce_ms") == 250
        assert config.get("watch.force_polling") is True
        # Defaults are preserved
        assert config.get("watch.interval_ms") == 5000

    def test_load_from_yaml_file(self):
        config = ConfigManager(config_file=self.yaml_config, load_env_file=False)

        assert config.get("watch.debounce_ms") == 250
        assert config.data_dir == self.temp_dir / "data"

    def test_missing_config_file(self):
        with pytest.raises(FileNotFoundError):
            ConfigManager(config_file=self.temp_dir / "nope.yaml", load_env_file=False)

    def test_unsupported_config_format(self):
        ini = self.temp_dir / "config.ini"
        ini.write_text("[watch]\n")

        with pytest.raises(ValueError):
            ConfigManager(config_file=ini, load_env_file=False)

    def test_load_from_env(self, monkeypatch):
        monkeypatch.setenv("FOLDERSORT_WATCH__DEBOUNCE_MS", "150")
        monkeypatch.setenv("FOLDERSORT_WATCH__FORCE_POLLING", "true")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = ConfigManager(load_env_file=False)

        assert config.get("watch.debounce_ms") == 150
        assert config.get("watch.force_polling") is True
        assert config.get("logging.level") == "DEBUG"

    def test_load_from_cli(self):
        cli_args = Namespace(
            data_dir="/tmp/foldersort-data",
            interval_ms=2000,
            force_polling=False,
            log_level="WARNING",
            log_file=None,
        )

        config = ConfigManager(cli_args=cli_args, load_env_file=False)

        assert config.get("storage.data_dir") == "/tmp/foldersort-data"
        assert config.get("watch.interval_ms") == 2000
        assert config.get("watch.force_polling") is False
        assert config.get("logging.level") == "WARNING"

    def test_configuration_precedence(self, monkeypatch):
        """CLI > ENV > File > Default."""
        monkeypatch.setenv("FOLDERSORT_WATCH__DEBOUNCE_MS", "300")
        monkeypatch.setenv("FOLDERSORT_WATCH__INTERVAL_MS", "3000")

        config = ConfigManager(
            config_file=self.json_config,
            cli_args=Namespace(interval_ms=1000),
            load_env_file=False,
        )

        assert config.get("watch.debounce_ms") == 300
        assert config.get("watch.interval_ms") == 1000
        assert config.get("watch.force_polling") is True

    def test_unset_cli_flag_keeps_file_value(self):
        config = ConfigManager(
            config_file=self.json_config,
            cli_args=Namespace(force_polling=False),
            load_env_file=False,
        )

        assert config.get("watch.force_polling") is True

    def test_validation_errors(self, monkeypatch):
        monkeypatch.setenv("FOLDERSORT_WATCH__DEBOUNCE_MS", "0")

        with pytest.raises(ValueError, match="debounce_ms"):
            ConfigManager(load_env_file=False)

    def test_invalid_log_level(self):
        with pytest.raises(ValueError, match="logging level"):
            ConfigManager(cli_args=Namespace(log_level="LOUD"), load_env_file=False)

    def test_get_set_nested(self):
        config = ConfigManager(load_env_file=False)

        config.set("watch.debounce_ms", "900")
        assert config.get("watch.debounce_ms") == 900
        assert config.get("watch.missing", "fallback") == "fallback"

    def test_save_and_reload(self):
        config = ConfigManager(config_file=self.json_config, load_env_file=False)
        saved = self.temp_dir / "saved.yaml"

        config.save(saved, format="yaml")
        reloaded = ConfigManager(config_file=saved, load_env_file=False)

        assert reloaded.config == config.config


class TestDataDir:
    """Test resolution of the data directory."""

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FOLDERSORT_DATA_DIR", str(tmp_path))

        assert default_data_dir() == tmp_path
        assert ConfigManager(load_env_file=False).data_dir == tmp_path

    def test_config_beats_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FOLDERSORT_DATA_DIR", str(tmp_path / "env"))

        config = ConfigManager(
            cli_args=Namespace(data_dir=str(tmp_path / "cli")), load_env_file=False
        )

        assert config.data_dir == tmp_path / "cli"

    def test_xdg_default(self, monkeypatch, tmp_path):
        monkeypatch.setattr("sys.platform", "linux")
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

        assert default_data_dir() == tmp_path / "foldersort" / "data"
