"""
load the config from config.yaml and .env
"""

import os
import yaml
from pathlib import Path
from typing import Any, Callable, Dict, Tuple


# Environment variable -> (section, key, type of the value)
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    'ARCHIVE_BASE_URL': ('archive', 'base_url', str),
    'ARCHIVE_PAGE_PATH': ('archive', 'page_path', str),
    'ARCHIVE_START_INDEX': ('archive', 'start_index', int),
    'ARCHIVE_MAX_PAGES': ('archive', 'max_pages', int),
    'MONGODB_URI': ('mongodb', 'uri', str),
    'MONGODB_DATABASE': ('mongodb', 'database', str),
    'MONGODB_COLLECTION': ('mongodb', 'collection', str),
    'FETCHER_USER_AGENT': ('fetcher', 'user_agent', str),
    'FETCHER_TIMEOUT': ('fetcher', 'timeout', float),
    'FETCHER_MAX_RETRIES': ('fetcher', 'max_retries', int),
    'FETCHER_RETRY_DELAY': ('fetcher', 'retry_delay', float),
    'LOG_LEVEL': ('logging', 'level', str),
    'LOG_FORMAT': ('logging', 'format', str),
}


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    def __init__(self, config_path: str = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, uses the config.yaml
                        shipped in the same directory as this module.
        """
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"

        self.config_path = Path(config_path)
        self._config = self._read_yaml()
        self._apply_env_overrides()

    def _read_yaml(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r') as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

    def _apply_env_overrides(self):
        """Overlay set environment variables, coerced to the type their key expects."""
        for env_var, (section, key, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue
            try:
                value = cast(raw)
            except ValueError:
                raise ValueError(f"{env_var}={raw!r} is not a valid {cast.__name__}")
            self.set(section, key, value=value)

    def get(self, *keys, default=None):
        """Get configuration value using dot notation.

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

    def set(self, *keys, value):
        """Set a configuration value, creating missing sections on the way.

        Args:
            *keys: Configuration keys (e.g., 'archive', 'start_index')
            value: New value stored under the last key
        """
        current = self._config
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

    def as_dict(self) -> Dict[str, Any]:
        """Get the whole configuration tree (live, not a copy)."""
        return self._config

    @property
    def archive(self) -> Dict[str, Any]:
        """Get archive location and traversal configuration."""
        return self.get('archive', default={})

    @property
    def mongodb(self) -> Dict[str, Any]:
        """Get MongoDB configuration."""
        return self.get('mongodb', default={})

    @property
    def fetcher(self) -> Dict[str, Any]:
        """Get HTTP fetcher configuration."""
        return self.get('fetcher', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={})

    @property
    def start_index(self) -> int:
        """Get the archive page index the crawl starts from (defaults to 1)."""
        return int(self.get('archive', 'start_index', default=1))

    @property
    def storage_connection(self) -> str:
        """Get the MongoDB connection URI."""
        return self.get('mongodb', 'uri')

    @property
    def base_url(self) -> str:
        """Get the archive base URL."""
        return self.get('archive', 'base_url')
