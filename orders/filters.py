"""
Persisted list filters.

Order-list filters (status, payment status, search text, page) survive
between sessions until cleared. Storage is an injected key-value backend,
never a process-wide global, so tests and multiple users can each bring
their own.
"""
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...
    def keys(self) -> Iterable[str]: ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterable[str]:
        return list(self._data)


class JsonFileKeyValueStore:
    """All keys in one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable filter store %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def keys(self) -> Iterable[str]:
        return list(self._load())


class FilterStore:
    """
    JSON values under a namespace, e.g. FilterStore(backend, "orders")
    stores the status filter as "orders.status".
    """

    def __init__(self, backend: KeyValueStore, namespace: str) -> None:
        self.backend = backend
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}.{key}"

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.backend.get(self._key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt filter value for %s, using default", self._key(key))
            return default

    def set(self, key: str, value: Any) -> None:
        self.backend.set(self._key(key), json.dumps(value))

    def remove(self, key: str) -> None:
        self.backend.delete(self._key(key))

    def _own_keys(self) -> list[str]:
        prefix = f"{self.namespace}."
        return [k for k in self.backend.keys() if k.startswith(prefix)]

    def clear(self) -> None:
        for k in self._own_keys():
            self.backend.delete(k)

    def has_data(self) -> bool:
        return bool(self._own_keys())

    def as_dict(self) -> dict[str, Any]:
        prefix_len = len(self.namespace) + 1
        return {k[prefix_len:]: self.get(k[prefix_len:]) for k in self._own_keys()}
