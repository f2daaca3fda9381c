"""Key-value persistence backing the site registry."""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional

import orjson

from sitekb.core.config import settings

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Namespaced key-value store."""

    def get(self, namespace: str, key: str) -> Optional[Any]:
        """Return the stored value, or None if absent."""
        raise NotImplementedError

    def set(self, namespace: str, key: str, value: Any) -> None:
        """Store a value, replacing any previous one."""
        raise NotImplementedError

    def delete(self, namespace: str, key: str) -> bool:
        """Remove a key. Returns whether it existed."""
        raise NotImplementedError

    def items(self, namespace: str) -> dict[str, Any]:
        """All entries of a namespace."""
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used in tests and one-off runs."""

    def __init__(self):
        self._data: dict[str, dict[str, Any]] = {}

    def get(self, namespace: str, key: str) -> Optional[Any]:
        return self._data.get(namespace, {}).get(key)

    def set(self, namespace: str, key: str, value: Any) -> None:
        self._data.setdefault(namespace, {})[key] = value

    def delete(self, namespace: str, key: str) -> bool:
        return self._data.get(namespace, {}).pop(key, None) is not None

    def items(self, namespace: str) -> dict[str, Any]:
        return dict(self._data.get(namespace, {}))


class JsonFileKeyValueStore(KeyValueStore):
    """Durable store kept as a single JSON document on disk.

    Every write rewrites the file through a temporary file and an atomic
    rename, so a crash never leaves a half-written registry.
    """

    def __init__(self, path: str = "data/registry.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        raw = self.path.read_bytes()
        if not raw.strip():
            return {}
        return orjson.loads(raw)

    def _save(self, data: dict[str, dict[str, Any]]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved key-value store: {self.path}")

    def get(self, namespace: str, key: str) -> Optional[Any]:
        with self._lock:
            return self._load().get(namespace, {}).get(key)

    def set(self, namespace: str, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data.setdefault(namespace, {})[key] = value
            self._save(data)

    def delete(self, namespace: str, key: str) -> bool:
        with self._lock:
            data = self._load()
            existed = data.get(namespace, {}).pop(key, None) is not None
            if existed:
                self._save(data)
            return existed

    def items(self, namespace: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._load().get(namespace, {}))


def get_store(path: Optional[str] = None) -> KeyValueStore:
    """Get the durable key-value store."""
    return JsonFileKeyValueStore(path=path or settings.registry_path)
