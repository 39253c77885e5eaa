"""Durable key-value storage for JSON blobs.

The contract is deliberately narrow: read a whole blob, write a whole blob.
There are no partial updates and no transactions; a single logical owner per
process is assumed.

Layout of :class:`JsonFileStore` (relative to the data dir, default
``./.insights``)::

    <data_dir>/<key>.json

Atomicity: writes target ``<key>.json.tmp`` first and then ``os.replace`` into
place, so readers never observe a half-written blob.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Protocol

from .config import get_data_dir

_KEY_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def _validate_key(key: str) -> str:
    """Reject keys that could escape the data directory."""

    if not _KEY_RE.fullmatch(key) or key in {".", ".."}:
        raise ValueError(f"Invalid storage key: {key!r} (allowed: letters, digits, '.', '_', '-')")
    return key


class KeyValueStore(Protocol):
    def get_blob(self, key: str) -> str | None: ...

    def set_blob(self, key: str, text: str) -> None: ...


class JsonFileStore:
    """Store each key as one UTF-8 file under ``root``.

    ``root`` defaults to :func:`~statement_insights.config.get_data_dir`, which
    honours ``INSIGHTS_DATA_DIR``. The directory is created on first write.
    """

    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self._root = Path(root).expanduser().resolve() if root is not None else get_data_dir()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        return self._root / f"{_validate_key(key)}.json"

    def get_blob(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_blob(self, key: str, text: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)


class MemoryStore:
    """Dict-backed store for tests and embedding."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.blobs: dict[str, str] = dict(initial or {})
        self.writes = 0

    def get_blob(self, key: str) -> str | None:
        return self.blobs.get(_validate_key(key))

    def set_blob(self, key: str, text: str) -> None:
        self.blobs[_validate_key(key)] = text
        self.writes += 1


__all__ = ["JsonFileStore", "KeyValueStore", "MemoryStore"]
