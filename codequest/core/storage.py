from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from codequest.core.constants import STATE_FILE

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Durable key/value storage backing every piece of persisted tracker state."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``. ``None`` removes the key."""


class JsonFileStore(KeyValueStore):
    """Stores all keys in one JSON document. Persists to disk across app restarts.
    File: ~/.codequest/state.json unless another path is given."""

    def __init__(self, file_path: Optional[Path] = None) -> None:
        self._file_path = file_path or STATE_FILE
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        self._data = self._load()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = copy.deepcopy(value)
        self._save()

    def keys(self) -> list[str]:
        return sorted(self._data)

    def _load(self) -> Dict[str, Any]:
        if not self._file_path.exists():
            return {}
        try:
            payload = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not load state from %s: %s", self._file_path, e)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring state file %s: expected a JSON object", self._file_path)
            return {}
        return payload

    def _save(self) -> None:
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._file_path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save state to %s: %s", self._file_path, e)


def read_dict(store: KeyValueStore, key: str) -> Dict[str, Any]:
    """Read a mapping from ``store``; anything that is not a dict reads as empty."""
    value = store.get(key, {})
    if not isinstance(value, dict):
        logger.warning("Ignoring corrupt value for %s: expected a mapping", key)
        return {}
    return value
