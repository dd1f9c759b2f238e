"""Durable string-keyed storage for filesystem records.

ONFS persists each filesystem as one JSON string under one key, the
way a browser page would use ``localStorage``.  Two backends:

    - ``MemoryStorage`` — a dict; survives a kernel reboot within one
      Python process (tests, the web UI).
    - ``FileStorage`` — one ``<key>.json`` file per record under a
      directory; survives restarting the program.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol
from urllib.parse import quote

if TYPE_CHECKING:
    from pathlib import Path



class Storage(Protocol):
    """Interface for a durable string → string store."""

    def get_item(self, key: str) -> str | None:
        """Return the value stored under *key*, or None."""
        ...  # pragma: no cover

    def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...  # pragma: no cover

    def remove_item(self, key: str) -> None:
        """Delete *key* (no-op if absent)."""
        ...  # pragma: no cover

    def keys(self) -> list[str]:
        """Return every stored key."""
        ...  # pragma: no cover


class MemoryStorage:
    """Dict-backed storage."""

    def __init__(self) -> None:
        """Create an empty store."""
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        """Return the value stored under *key*, or None."""
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key*."""
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        """Delete *key* if present."""
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        """Return every stored key."""
        return list(self._items)


class FileStorage:
    """Storage that writes each record to ``<directory>/<key>.json``.

    Keys are mapped to file names by percent-encoding (``onfs:main``
    becomes ``onfs%3Amain.json``), so distinct keys never share a file.
    The unescaped key is kept in an index file so ``keys()`` can return it.
    """

    _INDEX = "_keys.txt"

    def __init__(self, directory: Path) -> None:
        """Create (if needed) and use *directory* for records."""
        self._directory = directory
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        """Return the directory records are written to."""
        return self._directory

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}.json"

    def _read_index(self) -> list[str]:
        index = self._directory / self._INDEX
        if not index.exists():
            return []
        return [line for line in index.read_text().splitlines() if line]

    def _write_index(self, keys: list[str]) -> None:
        (self._directory / self._INDEX).write_text("".join(f"{k}\n" for k in keys))

    def get_item(self, key: str) -> str | None:
        """Return the stored record for *key*, or None if there is none."""
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_text()

    def set_item(self, key: str, value: str) -> None:
        """Write *value* to the record file for *key*."""
        self._path_for(key).write_text(value)
        keys = self._read_index()
        if key not in keys:
            keys.append(key)
            self._write_index(keys)

    def remove_item(self, key: str) -> None:
        """Delete the record file for *key* if it exists."""
        self._path_for(key).unlink(missing_ok=True)
        keys = self._read_index()
        if key in keys:
            keys.remove(key)
            self._write_index(keys)

    def keys(self) -> list[str]:
        """Return every stored key."""
        return self._read_index()
