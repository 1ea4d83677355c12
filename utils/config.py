"""
config.py

Configuration management for the sinkhole.
Loads settings from config.yaml and provides access throughout the application.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


DEFAULTS: Dict[str, Any] = {
    "listener": {
        "host": "0.0.0.0",
        "backlog": 128,
        "max_inflight": 256,
        "accept_retry_delay": 1.0,
        "udp_buffer_size": 1024,
        "udp_ack": "true",
    },
    "recorder": {
        "filename_prefix": "sinkholeserver",
        "log_dir": "./logs",
        "max_lines": 100000,
        "rotation_time": 60,
    },
    "logging": {
        "level": "INFO",
        "filename_prefix": "sinkhole",
        "console_output": True,
        "file_output": True,
        "max_log_size_mb": 10,
        "backup_count": 5,
    },
    "paths": {
        "logs_dir": "logs",
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    Singleton configuration manager that loads and provides access to settings.
    """

    _instance = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._load_config()
        return cls._instance

    @staticmethod
    def _locate() -> Optional[Path]:
        """Find config.yaml: $SINKHOLE_CONFIG, then the cwd, then the project root."""
        env_path = os.environ.get("SINKHOLE_CONFIG")
        if env_path:
            return Path(env_path)

        for candidate in (
            Path("config.yaml"),
            Path(__file__).resolve().parent.parent / "config.yaml",
        ):
            if candidate.exists():
                return candidate
        return None

    def _load_config(self) -> None:
        """Load configuration from config.yaml, layered over the defaults."""
        config_path = self._locate()

        if config_path is None:
            self._config = copy.deepcopy(DEFAULTS)
            return

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}")

        if not isinstance(loaded, dict):
            raise ValueError(f"Invalid config in {config_path}: expected a mapping")

        self._config = _merge(DEFAULTS, loaded)

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Example:
            config.get("listener.host")
            config.get("recorder.max_lines")
        """
        keys = key_path.split(".")
        value = self._config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def get_all(self) -> Dict[str, Any]:
        """Return the entire configuration dictionary."""
        return copy.deepcopy(self._config)


# Create a global instance for easy import
config = ConfigManager()
