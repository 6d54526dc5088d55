# SPDX-License-Identifier: MIT
"""Tests for configuration management."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from registry_cache_sync.config import (
    AppConfig,
    ConfigManager,
    get_config_manager,
    reset_config_manager,
    set_config_manager,
)
from registry_cache_sync.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_FEED_URL,
    DEFAULT_INITIAL_SINCE,
    DEFAULT_REGISTRY_URL,
)
from registry_cache_sync.enums import CommitPolicy


@pytest.fixture
def write_config(tmp_path):
    """Write a YAML config file and return its path."""

    def _write(data, name="custom.yaml"):
        path = tmp_path / name
        path.write_text(yaml.dump(data), encoding="utf-8")
        return path

    return _write


class TestAppConfig:
    """Test cases for AppConfig defaults and validation."""

    def test_defaults(self):
        """Test default configuration values."""
        config = AppConfig()

        assert config.feed.url == DEFAULT_FEED_URL
        assert config.feed.initial_since == DEFAULT_INITIAL_SINCE
        assert config.registry.url == DEFAULT_REGISTRY_URL
        assert config.pool.concurrency == DEFAULT_CONCURRENCY
        assert config.pool.commit_policy == CommitPolicy.ORDERED
        assert config.cache.tune_cache_min is True
        assert config.reconcile.enabled is False
        assert config.output.silent is False
        assert config.output.verbose is False

    def test_max_concurrent_resolutions_defaults_to_concurrency(self):
        """Test that resolution concurrency follows pool concurrency."""
        config = AppConfig(pool={"concurrency": 7})
        assert config.max_concurrent_resolutions == 7

    def test_max_concurrent_resolutions_explicit(self):
        """Test an explicit resolution bound."""
        config = AppConfig(pool={"concurrency": 7, "max_concurrent_resolutions": 3})
        assert config.max_concurrent_resolutions == 3

    def test_invalid_concurrency(self):
        """Test that a concurrency below one is rejected."""
        with pytest.raises(ValidationError):
            AppConfig(pool={"concurrency": 0})

    def test_invalid_commit_policy(self):
        """Test that unknown commit policies are rejected."""
        with pytest.raises(ValidationError):
            AppConfig(pool={"commit_policy": "newest"})


class TestConfigManager:
    """Test cases for ConfigManager."""

    def test_load_without_file(self, tmp_path):
        """Test loading defaults when the config file does not exist."""
        manager = ConfigManager(tmp_path / "missing.yaml")

        config = manager.load_config()

        assert config.pool.concurrency == DEFAULT_CONCURRENCY

    def test_load_merges_file_over_defaults(self, write_config):
        """Test that file values override defaults section by section."""
        path = write_config(
            {"pool": {"concurrency": 5}, "reconcile": {"enabled": True}}
        )

        config = ConfigManager(path).load_config()

        assert config.pool.concurrency == 5
        assert config.pool.queue_buffer == 20
        assert config.reconcile.enabled is True
        assert config.feed.url == DEFAULT_FEED_URL

    def test_load_empty_file(self, tmp_path):
        """Test that an empty YAML file yields defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        config = ConfigManager(path).load_config()

        assert config.registry.url == DEFAULT_REGISTRY_URL

    def test_load_is_cached(self, write_config):
        """Test that the loaded config is reused."""
        manager = ConfigManager(write_config({}))
        assert manager.load_config() is manager.load_config()

    def test_env_overrides(self, write_config, monkeypatch):
        """Test that environment variables override file values."""
        path = write_config({"pool": {"concurrency": 5}})
        monkeypatch.setenv("REGISTRY_CACHE_SYNC_POOL_CONCURRENCY", "9")
        monkeypatch.setenv("REGISTRY_CACHE_SYNC_POOL_COMMIT_POLICY", "max_seen")
        monkeypatch.setenv("REGISTRY_CACHE_SYNC_FEED_INITIAL_SINCE", "100")
        monkeypatch.setenv("REGISTRY_CACHE_SYNC_CACHE_TUNE_CACHE_MIN", "false")

        config = ConfigManager(path).load_config()

        assert config.pool.concurrency == 9
        assert config.pool.commit_policy == CommitPolicy.MAX_SEEN
        assert config.feed.initial_since == 100
        assert config.cache.tune_cache_min is False

    def test_env_overrides_ignore_unknown_sections(self, write_config, monkeypatch):
        """Test that unrelated variables with the prefix are ignored."""
        monkeypatch.setenv("REGISTRY_CACHE_SYNC_NOPE_VALUE", "1")
        monkeypatch.setenv("REGISTRY_CACHE_SYNC_POOL", "1")

        config = ConfigManager(write_config({})).load_config()

        assert config.pool.concurrency == DEFAULT_CONCURRENCY

    def test_deep_merge_keeps_defaults(self):
        """Test merging a partial section into defaults."""
        manager = ConfigManager(Path("/nonexistent/config.yaml"))
        merged = manager._deep_merge_configs(
            {"pool": {"concurrency": 20, "queue_buffer": 20}, "output": {}},
            {"pool": {"concurrency": 5}},
        )

        assert merged == {
            "pool": {"concurrency": 5, "queue_buffer": 20},
            "output": {},
        }

    def test_show_config_is_yaml(self, write_config):
        """Test that show_config dumps all sections as YAML."""
        manager = ConfigManager(write_config({"pool": {"concurrency": 3}}))

        data = yaml.safe_load(manager.show_config())

        assert data["pool"]["concurrency"] == 3
        assert data["pool"]["commit_policy"] == "ordered"
        assert set(data) == {
            "feed",
            "registry",
            "pool",
            "cache",
            "reconcile",
            "storage",
            "output",
        }

    def test_find_config_file_in_cwd(self, tmp_path, monkeypatch):
        """Test discovery of config.yaml in the working directory."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.yaml").write_text("{}", encoding="utf-8")

        manager = ConfigManager()

        assert manager.config_path == tmp_path / "config.yaml"


class TestGlobalConfigManager:
    """Test cases for the global config manager accessors."""

    def test_set_and_get(self, tmp_path):
        """Test that set_config_manager replaces the global instance."""
        manager = ConfigManager(tmp_path / "missing.yaml")
        set_config_manager(manager)
        assert get_config_manager() is manager

    def test_reset_creates_new_instance(self):
        """Test that reset forces a new instance on next access."""
        first = get_config_manager()
        reset_config_manager()
        second = get_config_manager()
        assert first is not second
