"""XDG directory management and configuration for loglens."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from platformdirs import user_config_dir

from loglens.models import AppConfig

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_config_dir() -> Path:
    """Get the loglens config directory.

    Respects LOGLENS_CONFIG_DIR environment variable if set.
    """
    if override := os.environ.get("LOGLENS_CONFIG_DIR"):
        return Path(override)
    return Path(user_config_dir("loglens"))


def get_state_path() -> Path:
    """Path of the JSON document holding persisted filter groups."""
    return get_config_dir() / "state.json"


def load_config() -> AppConfig:
    """Load application config from disk, returning defaults if not found."""
    path = get_config_dir() / "config.toml"
    if not path.exists():
        return AppConfig()
    try:
        data: dict[str, Any] = tomllib.loads(path.read_text())
        return AppConfig(**data)
    except (OSError, ValueError, TypeError, KeyError):
        return AppConfig()


def save_config(config: AppConfig) -> None:
    """Save application config to disk."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / "config.toml"
    path.write_bytes(tomli_w.dumps(config.model_dump()).encode())


def configure_logging(level: str | int = logging.WARNING) -> None:
    """Route loglens log records to stderr at the given level."""
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.WARNING)
    root = logging.getLogger("loglens")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(handler)
