"""
load the config from config.yaml and .env
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Mapping, Optional


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    # Environment variable mapping
    ENV_MAPPINGS = {
        'ISS_POSITION_URL': ('position', 'url'),
        'FETCH_TIMEOUT': ('position', 'timeout'),
        'FETCH_MAX_ATTEMPTS': ('position', 'max_attempts'),
        'FETCH_BASE_DELAY': ('position', 'base_delay'),
        'TRACKER_POLL_INTERVAL': ('tracker', 'poll_interval'),
        'TRACKER_HISTORY_SIZE': ('tracker', 'history_size'),
        'PASSES_SIMULATED_DELAY': ('passes', 'simulated_delay'),
        'MONGO_URL': ('mongodb', 'uri'),
        'MONGO_DATABASE': ('mongodb', 'database'),
        'MONGO_SERVER_SELECTION_TIMEOUT_MS': ('mongodb', 'server_selection_timeout_ms'),
        'N2YO_API_KEY': ('api_keys', 'n2yo'),
        'OPENCAGE_API_KEY': ('api_keys', 'opencage'),
        'LOG_LEVEL': ('logging', 'level'),
        'LOG_FORMAT': ('logging', 'format'),
        'SERVER_HOST': ('server', 'host'),
        'SERVER_PORT': ('server', 'port'),
    }

    def __init__(self, config_path: str = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, looks for config.yaml
                        in the same directory as this module.
            environ: Mapping used for overrides. Defaults to os.environ.
        """
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"

        self.config_path = Path(config_path)
        self._environ = os.environ if environ is None else environ
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path in self.ENV_MAPPINGS.items():
            env_value = self._environ.get(env_var)
            if env_value is not None and env_value != '':
                current = config
                for key in config_path[:-1]:
                    if not isinstance(current.get(key), dict):
                        current[key] = {}
                    current = current[key]

                current[config_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str):
        """Convert environment variable string to appropriate Python type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, *keys, default=None):
        """Get configuration value by nested keys.

        Args:
            *keys: Configuration keys (e.g., 'mongodb', 'uri')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    @property
    def position(self) -> Dict[str, Any]:
        """Get position endpoint and fetch policy configuration."""
        return self.get('position', default={})

    @property
    def tracker(self) -> Dict[str, Any]:
        """Get live tracker configuration."""
        return self.get('tracker', default={})

    @property
    def passes(self) -> Dict[str, Any]:
        """Get pass search configuration."""
        return self.get('passes', default={})

    @property
    def mongodb(self) -> Dict[str, Any]:
        """Get MongoDB sink configuration."""
        return self.get('mongodb', default={})

    @property
    def api_keys(self) -> Dict[str, Any]:
        """Get third-party API keys (demo fallbacks when unset)."""
        return self.get('api_keys', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={})

    @property
    def server(self) -> Dict[str, Any]:
        """Get HTTP server bind configuration."""
        return self.get('server', default={})

    def as_dict(self) -> Dict[str, Any]:
        return self._config
