"""Key-value persistence used for history and document snapshots."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Protocol, runtime_checkable

__all__ = ["KeyValueStore", "InMemoryKeyValueStore", "JsonFileKeyValueStore"]

LOGGER = logging.getLogger(__name__)
_STORE_VERSION = 1


@runtime_checkable
class KeyValueStore(Protocol):
    """String-to-string persistence with last-write-wins semantics per key."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Process-local store, handy for tests and ephemeral sessions."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileKeyValueStore:
    """Store persisting every key into a single JSON file.

    Writes go through a temporary file that replaces the target, so a crash
    never leaves a half-written store behind.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        self._cache: Dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._entries().get(key)

    def set(self, key: str, value: str) -> None:
        entries = dict(self._entries())
        entries[key] = value
        self._write(entries)

    def remove(self, key: str) -> None:
        entries = self._entries()
        if key not in entries:
            return
        entries = dict(entries)
        del entries[key]
        self._write(entries)

    def keys(self) -> list[str]:
        return sorted(self._entries())

    def _entries(self) -> Dict[str, str]:
        if self._cache is None:
            self._cache = self._read_payload()
        return self._cache

    def _read_payload(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data: Any = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Key-value store %s is not valid JSON: %s", self._path, exc)
            return {}
        entries = data.get("entries") if isinstance(data, Mapping) else None
        if not isinstance(entries, Mapping):
            return {}
        return {key: value for key, value in entries.items() if isinstance(key, str) and isinstance(value, str)}

    def _write(self, entries: Dict[str, str]) -> None:
        body = json.dumps({"version": _STORE_VERSION, "entries": entries}, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        self._cache = entries
