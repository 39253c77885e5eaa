"""Persisted raw-to-display merchant names with change notification.

Views that show a merchant subscribe for updates instead of polling the
directory; :meth:`MerchantDirectory.set_display_name` persists the mapping
and then notifies every live subscriber with ``(raw, display_name)``.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable
from typing import Any

from .logging_setup import get_logger
from .models import Transaction
from .storage import KeyValueStore

DEFAULT_KEY: str = "merchant-names"
DEFAULT_BATCH_DELAY: float = 1.0

type NameListener = Callable[[str, str], None]
type NameResolver = Callable[[str], str | None]

_logger = get_logger("statement_insights.merchant_names")


class Subscription:
    """Handle returned by :meth:`MerchantDirectory.subscribe`."""

    def __init__(self, directory: MerchantDirectory, callback: NameListener) -> None:
        self._directory = directory
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._directory._listeners.remove(self._callback)


class MerchantDirectory:
    def __init__(self, store: KeyValueStore, *, key: str = DEFAULT_KEY) -> None:
        self._store = store
        self._key = key
        self._names: dict[str, str] = self._read()
        self._listeners: list[NameListener] = []

    def _read(self) -> dict[str, str]:
        try:
            raw_text = self._store.get_blob(self._key)
        except (OSError, UnicodeDecodeError) as e:
            _logger.warning(
                "merchant_names:load_failed key=%s error=%s", self._key, e.__class__.__name__
            )
            return {}
        if raw_text is None:
            return {}
        try:
            raw: Any = json.loads(raw_text)
        except json.JSONDecodeError:
            _logger.warning("merchant_names:load_failed key=%s error=JSONDecodeError", self._key)
            return {}
        if not isinstance(raw, dict):
            _logger.warning("merchant_names:load_failed key=%s error=schema_mismatch", self._key)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str) and v.strip()}

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, raw: object) -> bool:
        return raw in self._names

    def display_name(self, raw: str) -> str:
        return self._names.get(raw, raw)

    def subscribe(self, callback: NameListener) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self, callback)

    def set_display_name(self, raw: str, name: str) -> None:
        name = name.strip()
        if not name:
            raise ValueError("display name must be a non-empty string")
        self._names[raw] = name
        self._store.set_blob(self._key, json.dumps(self._names, ensure_ascii=False))
        for listener in list(self._listeners):
            listener(raw, name)

    def identify(
        self,
        transactions: Iterable[Transaction],
        resolver: NameResolver,
        *,
        batch_size: int = 5,
        batch_delay: float = DEFAULT_BATCH_DELAY,
    ) -> int:
        """Resolve display names for merchants not yet in the directory.

        Unknown merchants are looked up in batches of ``batch_size`` with a
        ``batch_delay``-second pause between batches, which keeps a remote
        resolver under its rate limit. A resolver that fails or answers
        ``None`` leaves that merchant unknown. Returns the number of names
        learned.
        """

        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if batch_delay < 0:
            raise ValueError("batch_delay must be >= 0")
        unknown = list(dict.fromkeys(t.merchant for t in transactions if t.merchant not in self._names))
        if not unknown:
            return 0
        _logger.info("merchant_names:identify unknown=%d batch_size=%d", len(unknown), batch_size)

        learned = 0
        for start in range(0, len(unknown), batch_size):
            if start and batch_delay:
                time.sleep(batch_delay)
            for raw in unknown[start : start + batch_size]:
                try:
                    name = resolver(raw)
                except Exception as e:  # noqa: BLE001
                    _logger.warning(
                        "merchant_names:resolve_failed merchant=%s error=%s", raw, e.__class__.__name__
                    )
                    continue
                if name and name.strip():
                    self.set_display_name(raw, name)
                    learned += 1
        return learned


__all__ = ["DEFAULT_BATCH_DELAY", "DEFAULT_KEY", "MerchantDirectory", "Subscription"]
