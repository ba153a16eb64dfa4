"""
Configuration management for the folder organizer.
Handles loading, validation, and merging of configurations from defaults,
config files, environment variables, and the command line.
"""

import os
import sys
import json
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
import argparse
from copy import deepcopy

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

APP_NAME = "foldersort"
ENV_PREFIX = "FOLDERSORT_"


def default_data_dir() -> Path:
    """Resolve the per-user data directory for the host platform."""
    override = os.environ.get("FOLDERSORT_DATA_DIR")
    if override:
        return Path(override)

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / APP_NAME / "data"


class ConfigManager:
    """Manage configuration from environment variables, files, and command line."""

    def __init__(
        self,
        config_file: Optional[Path] = None,
        cli_args: Optional[argparse.Namespace] = None,
        load_env_file: bool = True,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Optional path to configuration file (JSON or YAML)
            cli_args: Optional command line arguments
            load_env_file: Whether to read a .env file into the environment
        """
        self.config = self._load_default_config()

        # Load from config file if provided
        if config_file:
            config_file = Path(config_file)
            if not config_file.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            self._load_from_file(config_file)

        # Override with environment variables
        if load_env_file:
            load_dotenv()
        self._load_from_env()

        # Override with command line arguments
        if cli_args:
            self._load_from_cli(cli_args)

        # Validate configuration
        self._validate_config()

        logger.debug("Configuration loaded successfully")

    def _load_default_config(self) -> Dict[str, Any]:
        """Load default configuration."""
        return {
            "storage": {
                "data_dir": None,  # per-user data directory when unset
            },
            "watch": {
                "interval_ms": 5000,  # polling fallback period
                "debounce_ms": 400,
                "stability_threshold_ms": 800,
                "stability_poll_ms": 100,
                "force_polling": False,
            },
            "logging": {
                "level": "INFO",
                "file": None,
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        }

    def _load_from_file(self, config_file: Path):
        """Load configuration from file."""
        logger.info(f"Loading configuration from {config_file}")

        try:
            with open(config_file, "r") as f:
                if config_file.suffix == ".json":
                    file_config = json.load(f)
                elif config_file.suffix in (".yaml", ".yml"):
                    file_config = yaml.safe_load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {config_file}")

            # Deep merge with default config
            self._deep_merge(self.config, file_config)

        except Exception as e:
            logger.error(f"Error loading config file: {e}")
            raise

    def _load_from_env(self):
        """Load configuration from FOLDERSORT_SECTION__KEY variables."""
        for key, value in os.environ.items():
            if key.startswith(ENV_PREFIX) and "__" in key:
                config_path = key[len(ENV_PREFIX) :].lower().split("__")
                self._set_nested_config(self.config, config_path, value)

        if "LOG_LEVEL" in os.environ:
            self.config["logging"]["level"] = os.environ["LOG_LEVEL"].upper()

    def _load_from_cli(self, cli_args: argparse.Namespace):
        """Load configuration from command line arguments."""
        # Map CLI arguments to configuration paths
        cli_mappings = {
            "data_dir": ["storage", "data_dir"],
            "interval_ms": ["watch", "interval_ms"],
            "force_polling": ["watch", "force_polling"],
            "log_level": ["logging", "level"],
            "log_file": ["logging", "file"],
        }

        for arg_name, config_path in cli_mappings.items():
            value = getattr(cli_args, arg_name, None)
            if value is None:
                continue
            # store_true flags that were not given do not override the file
            if value is False and arg_name == "force_polling":
                continue
            self._set_nested_config(self.config, config_path, value)

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]):
        """Deep merge update dictionary into base dictionary."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _set_nested_config(
        self, config_dict: Dict[str, Any], path: List[str], value: Any
    ):
        """Set a value in a nested dictionary using a path."""
        # Convert value to appropriate type if it's a string
        if isinstance(value, str):
            if value.lower() in ("true", "false"):
                value = value.lower() == "true"
            elif value.isdigit():
                value = int(value)
            elif value.replace(".", "", 1).isdigit() and value.count(".") == 1:
                value = float(value)

        # Set value in nested dictionary
        current = config_dict
        for part in path[:-1]:
            if part not in current or not isinstance(current[part], dict):
                current[part] = {}
            current = current[part]
        current[path[-1]] = value

    def _validate_config(self):
        """Validate configuration values."""
        errors = []

        watch = self.config["watch"]
        for key in (
            "interval_ms",
            "debounce_ms",
            "stability_threshold_ms",
            "stability_poll_ms",
        ):
            value = watch.get(key)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                errors.append(f"watch.{key} must be a number")
            elif value <= 0:
                errors.append(f"watch.{key} must be > 0")

        if not isinstance(watch.get("force_polling"), bool):
            errors.append("watch.force_polling must be true or false")

        # Logging configuration
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        level = str(self.config["logging"].get("level", "")).upper()
        if level not in valid_log_levels:
            errors.append(f"logging level must be one of {valid_log_levels}")
        else:
            self.config["logging"]["level"] = level

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

    @property
    def data_dir(self) -> Path:
        """Directory holding rules.json, log.json and watched.json."""
        configured = self.config["storage"].get("data_dir")
        if configured:
            return Path(configured).expanduser()
        return default_data_dir()

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            path: Configuration path (e.g., 'watch.debounce_ms')
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        parts = path.split(".")
        current = self.config

        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def set(self, path: str, value: Any):
        """
        Set configuration value using dot notation.

        Args:
            path: Configuration path (e.g., 'watch.debounce_ms')
            value: Value to set
        """
        self._set_nested_config(self.config, path.split("."), value)

    def save(self, filepath: Path, format: str = "json"):
        """
        Save configuration to file.

        Args:
            filepath: Path to save configuration
            format: File format ('json' or 'yaml')
        """
        logger.info(f"Saving configuration to {filepath}")

        with open(filepath, "w") as f:
            if format == "json":
                json.dump(self.config, f, indent=2)
            elif format in ("yaml", "yml"):
                yaml.safe_dump(deepcopy(self.config), f, default_flow_style=False)
            else:
                raise ValueError(f"Unsupported format: {format}")
