"""
Configuration management for the School Signage Display.
Loads settings from YAML files layered over the packaged defaults.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"

# Values that mean "not configured yet"
PLACEHOLDER_VALUES = ("", "YOUR_API_URL_HERE")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Manages application configuration from YAML files."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to a site config file. If None, only the
                packaged default_config.yaml is used.
        """
        self.config_path = Path(config_path) if config_path else None
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load defaults, then the site config file on top of them."""
        with open(DEFAULT_CONFIG_PATH, 'r') as f:
            self._config = yaml.safe_load(f) or {}

        if self.config_path is not None:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Config file not found: {self.config_path}")

            with open(self.config_path, 'r') as f:
                site_config = yaml.safe_load(f) or {}

            if not isinstance(site_config, dict):
                raise ConfigError(f"Config file must contain a mapping: {self.config_path}")

            self._config = _deep_merge(self._config, site_config)

        # Apply environment variable overrides
        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        """Override config values from environment variables."""
        if 'SIGNAGE_API_URL' in os.environ:
            self.set('api.base_url', os.environ['SIGNAGE_API_URL'])

        if 'SIGNAGE_CACHE_DIR' in os.environ:
            self.set('cache.dir', os.environ['SIGNAGE_CACHE_DIR'])

        if 'SIGNAGE_IPC_PORT' in os.environ:
            self.set('ipc.port', int(os.environ['SIGNAGE_IPC_PORT']))

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'api.base_url')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config = Config()
            >>> config.get('stream.reconnect_delay_ms')
            5000
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'api.base_url')
            value: Value to set
        """
        keys = key.split('.')
        config = self._config

        # Navigate to the parent key
        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        # Set the final key
        config[keys[-1]] = value

    def save(self, path: Optional[str] = None) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Path to save to. If None, uses original config_path
        """
        save_path = Path(path) if path else self.config_path
        if save_path is None:
            raise ConfigError("No config path to save to")

        with open(save_path, 'w') as f:
            yaml.dump(self._config, f, default_flow_style=False, indent=2)

    def validate(self) -> None:
        """
        Check that required values are present.

        Raises:
            ConfigError: If the API URL is missing or a placeholder, or an
                interval is not a positive number
        """
        base_url = self.api_base_url
        if base_url in PLACEHOLDER_VALUES:
            raise ConfigError("api.base_url is not configured")
        if not base_url.startswith(("http://", "https://")):
            raise ConfigError(f"api.base_url must be an http(s) URL: {base_url}")

        for key in (
            'stream.reconnect_delay_ms',
            'display.slideshow_interval_ms',
            'livestream.check_interval_ms',
            'schedule.check_interval_ms',
            'health.interval_ms',
            'ipc.republish_interval_ms',
        ):
            value = self.get(key)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{key} must be a positive number, got {value!r}")

    @property
    def api_base_url(self) -> str:
        """Get settings API base URL without a trailing slash."""
        return str(self.get('api.base_url', '') or '').rstrip('/')

    @property
    def stream_url(self) -> str:
        """Get the full settings stream URL."""
        return f"{self.api_base_url}{self.get('stream.path', '/api/settings/stream')}"

    @property
    def reconnect_delay(self) -> float:
        """Get stream reconnect delay in seconds."""
        return self.get('stream.reconnect_delay_ms', 5000) / 1000.0

    @property
    def cache_dir(self) -> Path:
        """Get local cache directory path."""
        return Path(os.path.expanduser(str(self.get('cache.dir', '~/.school-signage'))))

    @property
    def school_name(self) -> str:
        """Get the school name shown before any settings arrive."""
        return self.get('display.school_name', 'School Name')

    def __repr__(self) -> str:
        """String representation."""
        return f"Config(path={self.config_path})"
