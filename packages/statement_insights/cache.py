"""Persistent enrichment cache.

Maps a cache key (an extracted merchant name, or the trimmed raw description
when no rule matched) to the last successfully resolved
:class:`~statement_insights.models.EnrichedData`.

Lifecycle
---------
- Construct once per process with a :class:`~statement_insights.storage.KeyValueStore`
  and inject it wherever lookups happen.
- ``load()`` hydrates the in-memory map from storage exactly once. Reads made
  before ``load()`` trigger the same one-time hydration. After that the
  in-memory map is the single source of truth; storage is never re-read.
- ``set()`` writes through: the whole map is serialized back to storage on
  every call (full snapshot, not incremental).

Entries never expire and the map is unbounded. Last writer wins per key.

Blob shape::

    {"schema_version": 1, "entries": {"<key>": {"merchant": ..., "category": ...,
                                                "enriched_info": {...} | null}}}
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import EnrichedData
from .storage import KeyValueStore

# Bump only when the on-disk blob shape changes.
SCHEMA_VERSION: int = 1

DEFAULT_KEY: str = "merchant-cache"

_logger = get_logger("statement_insights.cache")


class EnrichmentCache:
    def __init__(self, store: KeyValueStore, *, key: str = DEFAULT_KEY) -> None:
        self._store = store
        self._key = key
        self._entries: dict[str, EnrichedData] = {}
        self._loaded = False

    # -- lifecycle ---------------------------------------------------------

    def load(self) -> None:
        """Hydrate from storage once; a missing or corrupt blob yields an empty cache."""

        if self._loaded:
            return
        self._loaded = True
        self._entries = self._read_entries()
        _logger.debug("cache:loaded key=%s entries=%d", self._key, len(self._entries))

    def flush(self) -> None:
        """Serialize the full in-memory map to storage.

        A failed write is logged and leaves the in-memory map as it is; the
        next successful flush persists every entry.
        """

        payload: dict[str, Any] = {
            "schema_version": SCHEMA_VERSION,
            "entries": {k: v.model_dump(mode="json") for k, v in self._entries.items()},
        }
        try:
            self._store.set_blob(self._key, json.dumps(payload, ensure_ascii=False))
        except OSError as e:
            _logger.warning(
                "cache:flush_failed key=%s entries=%d error=%s",
                self._key,
                len(self._entries),
                e.__class__.__name__,
            )

    def _read_entries(self) -> dict[str, EnrichedData]:
        try:
            raw_text = self._store.get_blob(self._key)
        except (OSError, UnicodeDecodeError) as e:
            _logger.warning("cache:load_failed key=%s error=%s", self._key, e.__class__.__name__)
            return {}
        if raw_text is None:
            return {}
        try:
            raw = json.loads(raw_text)
        except json.JSONDecodeError:
            _logger.warning("cache:load_failed key=%s error=JSONDecodeError", self._key)
            return {}
        if not isinstance(raw, dict) or raw.get("schema_version") != SCHEMA_VERSION:
            _logger.warning("cache:load_failed key=%s error=schema_mismatch", self._key)
            return {}
        entries = raw.get("entries")
        if not isinstance(entries, dict):
            _logger.warning("cache:load_failed key=%s error=schema_mismatch", self._key)
            return {}

        out: dict[str, EnrichedData] = {}
        skipped = 0
        for cache_key, value in entries.items():
            try:
                out[str(cache_key)] = EnrichedData.model_validate(value)
            except ValidationError:
                skipped += 1
        if skipped:
            _logger.warning("cache:entries_skipped key=%s skipped=%d", self._key, skipped)
        return out

    # -- mapping API -------------------------------------------------------

    def get(self, key: str) -> EnrichedData | None:
        self.load()
        return self._entries.get(key)

    def set(self, key: str, data: EnrichedData) -> None:
        self.load()
        self._entries[key] = data
        self.flush()

    def __contains__(self, key: object) -> bool:
        self.load()
        return key in self._entries

    def __len__(self) -> int:
        self.load()
        return len(self._entries)


__all__ = ["DEFAULT_KEY", "EnrichmentCache", "SCHEMA_VERSION"]
