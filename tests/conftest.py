# SPDX-License-Identifier: MIT
"""Pytest configuration and shared fixtures."""

import logging
import os

import pytest
import yaml
from fakes import FakeCacheStore, FakeResolver

from registry_cache_sync.config import (
    ENV_PREFIX,
    ConfigManager,
    reset_config_manager,
    set_config_manager,
)
from registry_cache_sync.logging_config import DETAIL_LOGGER_NAME, STATUS_LOGGER_NAME


@pytest.fixture(scope="function", autouse=True)
def isolated_state_db(tmp_path):
    """
    Automatically provide an isolated state database path for every test.

    This prevents tests from touching a state.db in the working directory.
    """
    # Local import to avoid circular dependency
    from registry_cache_sync.storage.schema import init_database

    db_path = tmp_path / "test_state.db"
    init_database(db_path)
    yield db_path


@pytest.fixture(scope="function", autouse=True)
def isolated_config(tmp_path, isolated_state_db, monkeypatch):
    """Install a config manager pointing storage and cache into tmp_path."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.dump(
            {
                "storage": {"db_path": str(isolated_state_db)},
                "cache": {"cache_dir": str(tmp_path / "npm-cache")},
            }
        ),
        encoding="utf-8",
    )
    manager = ConfigManager(config_path)
    set_config_manager(manager)
    yield manager
    reset_config_manager()


@pytest.fixture
def cache_store():
    """Empty in-memory cache store."""
    return FakeCacheStore()


@pytest.fixture
def resolver():
    """Resolver with no known packages."""
    return FakeResolver()


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach handlers added by setup_logging and restore propagation.

    Propagation is restored so that caplog sees records in every test.
    """
    yield
    for name in (DETAIL_LOGGER_NAME, STATUS_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in logger.handlers[:]:
            handler.close()
        logger.handlers.clear()
        logger.propagate = True
