"""Shared test fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from loglens.filter_manager import FilterManager
from loglens.store import MemoryStore

if TYPE_CHECKING:
    from pathlib import Path

SAMPLE_LOG = """\
2023-10-27 10:00:00.000 INFO  [Main] Application started
2023-10-27 10:00:01.000 DEBUG [Main] Loading configuration
2023-10-27 10:00:01.500 INFO  [Network] Connected
2023-10-27 10:00:02.000 ERROR [DB] Connection failed
2023-10-27 10:00:02.100 INFO  [DB] Retrying connection...
2023-10-27 10:00:03.000 ERROR [DB] Connection failed again
2023-10-27 10:00:04.000 INFO  [Main] Shutting down
"""


@pytest.fixture
def sample_log_file(tmp_path: Path) -> Path:
    """Create a temporary log file with the sample content."""
    log_file = tmp_path / "sample.log"
    log_file.write_text(SAMPLE_LOG)
    return log_file


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def manager(store: MemoryStore) -> FilterManager:
    """Filter manager holding only the built-in (disabled) presets."""
    return FilterManager(store, version="0.0.0-test")


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point loglens at an isolated config directory."""
    path = tmp_path / "config"
    monkeypatch.setenv("LOGLENS_CONFIG_DIR", str(path))
    return path
