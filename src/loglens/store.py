"""Key-value persistence for filter state."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal get/set store keyed by string."""

    def get(self, key: str, default: Any = None) -> Any: ...  # noqa: ANN401

    def set(self, key: str, value: Any) -> None: ...  # noqa: ANN401


class MemoryStore:
    """Store kept in process memory (tests, one-shot CLI runs)."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:  # noqa: ANN401
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        self._data[key] = value


class JsonFileStore:
    """Store persisted as a single JSON object on disk.

    The file is rewritten in full on every set; values must be JSON
    serializable. A corrupt or unreadable file is treated as empty.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable state file %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:  # noqa: ANN401
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        self._data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        tmp.replace(self._path)
