"""
Key-value storage interfaces for cached brands and job records.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any


class KeyValueStore(ABC):
    """
    Storage abstraction with optional per-key expiry.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """
        Return the live value for `key`, or None when missing or expired.
        """

    @abstractmethod
    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        """
        Store `value`; entries without a TTL never expire.
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove `key` and return whether a live entry was removed.
        """

    @abstractmethod
    def items(self, prefix: str = "") -> list[tuple[str, Any]]:
        """
        Return live entries whose key starts with `prefix`.
        """

    @abstractmethod
    def clear(self, prefix: str | None = None) -> int:
        """
        Remove all entries (or those under `prefix`) and return the count.
        """


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store. Expired entries are evicted lazily on access.
    """

    def __init__(self, *, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[Any, float | None]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._is_expired(expires_at):
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        expires_at = None if ttl_seconds is None else self._clock() + ttl_seconds
        self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        return entry is not None and not self._is_expired(entry[1])

    def items(self, prefix: str = "") -> list[tuple[str, Any]]:
        live: list[tuple[str, Any]] = []
        for key in list(self._entries):
            if not key.startswith(prefix):
                continue
            value = self.get(key)
            if value is not None:
                live.append((key, value))
        return live

    def clear(self, prefix: str | None = None) -> int:
        if prefix is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def _is_expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and self._clock() >= expires_at
