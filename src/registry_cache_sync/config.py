# SPDX-License-Identifier: MIT
"""Configuration management for registry cache sync."""

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_CACHE_MIN_OVERRIDE,
    DEFAULT_CONCURRENCY,
    DEFAULT_FEED_URL,
    DEFAULT_INACTIVITY_SECONDS,
    DEFAULT_INITIAL_SINCE,
    DEFAULT_NPM_COMMAND,
    DEFAULT_POLL_TIMEOUT_MS,
    DEFAULT_QUEUE_BUFFER,
    DEFAULT_REGISTRY_MAX_RETRIES,
    DEFAULT_REGISTRY_TIMEOUT,
    DEFAULT_REGISTRY_URL,
)
from .enums import CommitPolicy


ENV_PREFIX = "REGISTRY_CACHE_SYNC_"


class FeedConfig(BaseModel):
    """Configuration for the change feed."""

    url: str = Field(DEFAULT_FEED_URL, description="CouchDB database URL to follow")
    initial_since: int = Field(
        DEFAULT_INITIAL_SINCE, description="Cursor used when none is stored"
    )
    inactivity_seconds: int = Field(
        DEFAULT_INACTIVITY_SECONDS,
        ge=1,
        description="Reconnect when the feed is silent for this long",
    )
    poll_timeout_ms: int = Field(
        DEFAULT_POLL_TIMEOUT_MS, ge=1000, description="Long-poll timeout per request"
    )


class RegistryConfig(BaseModel):
    """Configuration for metadata lookups."""

    url: str = Field(DEFAULT_REGISTRY_URL, description="Registry base URL")
    timeout: int = Field(DEFAULT_REGISTRY_TIMEOUT, ge=1, description="Request timeout")
    max_retries: int = Field(
        DEFAULT_REGISTRY_MAX_RETRIES, ge=0, description="Retries for transient errors"
    )


class PoolConfig(BaseModel):
    """Configuration for the sync worker pool."""

    concurrency: int = Field(
        DEFAULT_CONCURRENCY, ge=1, description="Maximum concurrent cache mutations"
    )
    queue_buffer: int = Field(
        DEFAULT_QUEUE_BUFFER, ge=1, description="Items queued beyond the workers"
    )
    max_concurrent_resolutions: int | None = Field(
        None, ge=1, description="Concurrent metadata lookups (defaults to concurrency)"
    )
    commit_policy: CommitPolicy = Field(
        CommitPolicy.ORDERED, description="Checkpoint commit policy"
    )


class CacheConfig(BaseModel):
    """Configuration for the local package cache."""

    npm_command: str = Field(DEFAULT_NPM_COMMAND, description="Package manager binary")
    cache_dir: str = Field(
        str(Path.home() / ".npm"), description="Package manager cache directory"
    )
    tune_cache_min: bool = Field(
        True, description="Override cache-min while the pipeline runs"
    )
    cache_min_override: int = Field(
        DEFAULT_CACHE_MIN_OVERRIDE, ge=0, description="cache-min value while running"
    )


class ReconcileConfig(BaseModel):
    """Configuration for the startup reconciliation scan."""

    enabled: bool = Field(False, description="Scan existing cache entries at startup")


class StorageConfig(BaseModel):
    """Configuration for durable sync state."""

    db_path: str = Field(
        str(Path.cwd() / ".registry-cache-sync" / "state.db"),
        description="SQLite database for cursor and history",
    )


class OutputConfig(BaseModel):
    """Configuration for console output."""

    silent: bool = Field(False, description="Suppress per-item output")
    verbose: bool = Field(False, description="Show internal state transitions")


class AppConfig(BaseModel):
    """Main application configuration."""

    feed: FeedConfig = FeedConfig()
    registry: RegistryConfig = RegistryConfig()
    pool: PoolConfig = PoolConfig()
    cache: CacheConfig = CacheConfig()
    reconcile: ReconcileConfig = ReconcileConfig()
    storage: StorageConfig = StorageConfig()
    output: OutputConfig = OutputConfig()

    @property
    def max_concurrent_resolutions(self) -> int:
        return self.pool.max_concurrent_resolutions or self.pool.concurrency


class ConfigManager:
    """Manages application configuration from files and environment."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or self._find_config_file()
        self._config: AppConfig | None = None

    def _find_config_file(self) -> Path | None:
        """Find configuration file in standard locations."""
        search_paths = [
            Path.cwd() / ".registry-cache-sync" / "config.yaml",
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "registry-cache-sync" / "config.yaml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def load_config(self) -> AppConfig:
        """Load configuration from file or create default."""
        if self._config is not None:
            return self._config

        config_data = self.get_default_config()

        if self.config_path and self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}

            config_data = self._deep_merge_configs(config_data, file_config)

        config_data = self._apply_env_overrides(config_data)

        self._config = AppConfig(**config_data)
        return self._config

    def _deep_merge_configs(
        self, default_config: dict[str, Any], override_config: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge override config into default config, one section deep.

        Example:
            Default: {"pool": {"concurrency": 20, "queue_buffer": 20}}
            Override: {"pool": {"concurrency": 5}}
            Result: {"pool": {"concurrency": 5, "queue_buffer": 20}}
        """
        result = copy.deepcopy(default_config)

        for key, value in override_config.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key].update(value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_data: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to config.

        Example: REGISTRY_CACHE_SYNC_POOL_CONCURRENCY=5 sets pool.concurrency.
        Values are passed through as strings and coerced by pydantic.
        """
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            config_key = key[len(ENV_PREFIX) :].lower()
            section, _, field_name = config_key.partition("_")
            if not field_name or section not in AppConfig.model_fields:
                continue
            config_data.setdefault(section, {})
            config_data[section][field_name] = value

        return config_data

    def get_complete_config_dict(self) -> dict[str, Any]:
        """Get the complete configuration as a dictionary for display."""
        return self.load_config().model_dump(mode="json")

    def show_config(self) -> str:
        """Show the complete configuration in YAML format.

        Returns:
            YAML formatted configuration string
        """
        return yaml.dump(
            self.get_complete_config_dict(), default_flow_style=False, sort_keys=False
        )

    def get_default_config(self) -> dict[str, Any]:
        """Get default configuration as plain data."""
        return AppConfig().model_dump(mode="json")


# Global config manager instance with factory pattern
_config_manager_instance: ConfigManager | None = None


def get_config_manager(config_path: Path | None = None) -> ConfigManager:
    """Get or create the global config manager instance.

    Args:
        config_path: Optional path to config file (only used on first call)

    Returns:
        The global ConfigManager instance
    """
    global _config_manager_instance
    if _config_manager_instance is None:
        _config_manager_instance = ConfigManager(config_path)
    return _config_manager_instance


def set_config_manager(manager: ConfigManager) -> None:
    """Set the config manager instance (primarily for testing).

    Args:
        manager: ConfigManager instance to use globally
    """
    global _config_manager_instance
    _config_manager_instance = manager


def reset_config_manager() -> None:
    """Reset the config manager instance (primarily for testing)."""
    global _config_manager_instance
    _config_manager_instance = None
