"""
Session cache.

A TTL cache over a string-valued session storage. Values are stored as JSON
under their key and the write time (milliseconds) under ``key + "_timestamp"``.
Caching is an optimization only: storage and decoding failures are logged and
turn into misses or no-ops.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol

from ..contracts.constants import CACHE_TTL_SECONDS
from ..engine.exceptions import StorageQuotaError
from ..schemas.bases import CanonicalModel

logger = logging.getLogger(__name__)

TIMESTAMP_SUFFIX = "_timestamp"


class CacheKeys:
    """Well-known session cache keys."""
    AUTH_USER_STATE = "authUserState"
    USER_DATA = "userData"
    USER_LANDS = "userLands"
    USER_TRANSACTIONS = "userTransactions"
    USER_DISPUTES = "userDisputes"


class SessionStorage(Protocol):
    """String key/value storage scoped to one session."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemorySessionStorage:
    """
    Process-local session storage.

    Args:
        quota_bytes: Maximum total size of keys and values (UTF-8); None
            means unbounded. A write that would exceed it raises
            ``StorageQuotaError`` and leaves the storage unchanged.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def _size_with(self, key: str, value: str) -> int:
        size = 0
        for existing_key, existing_value in self._items.items():
            if existing_key == key:
                continue
            size += len(existing_key.encode()) + len(existing_value.encode())
        return size + len(key.encode()) + len(value.encode())

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None and self._size_with(key, value) > self.quota_bytes:
            raise StorageQuotaError(
                f"Session storage quota of {self.quota_bytes} bytes exceeded",
                details={"key": key},
            )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


def _encode(value: Any) -> str:
    if isinstance(value, CanonicalModel):
        return value.to_canonical_json()
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


class SessionCache:
    """
    TTL cache over a ``SessionStorage``.

    Args:
        storage: Backing storage; an unbounded in-memory one by default
        ttl_seconds: Entry lifetime, shared by every key
        clock: Seconds since the epoch; injectable for tests

    Example:
        cache = SessionCache()
        cache.set(CacheKeys.USER_DATA, {"name": "Asha"})
        cache.get(CacheKeys.USER_DATA)  # {"name": "Asha"} for the next 5 minutes
    """

    def __init__(
        self,
        storage: Optional[SessionStorage] = None,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage if storage is not None else InMemorySessionStorage()
        self.ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value, or ``default`` when absent or expired."""
        try:
            raw = self.storage.get_item(key)
            written = self.storage.get_item(key + TIMESTAMP_SUFFIX)
            if raw is None or written is None:
                return default
            if self._now_ms() - int(written) >= self.ttl_ms:
                logger.debug("Cache entry %s expired", key)
                return default
            return json.loads(raw)
        except Exception as exc:
            logger.warning("Cache read of %s failed: %s", key, exc)
            return default

    def set(self, key: str, value: Any) -> bool:
        """Store ``value``; returns False when the write was dropped."""
        try:
            payload = _encode(value)
            self.storage.set_item(key, payload)
            self.storage.set_item(key + TIMESTAMP_SUFFIX, str(self._now_ms()))
            return True
        except Exception as exc:
            logger.warning("Cache write of %s dropped: %s", key, exc)
            self._discard(key)
            return False

    def invalidate(self, key: str) -> None:
        self._discard(key)

    def invalidate_all(self) -> None:
        """Clear the whole storage. Synchronous."""
        try:
            self.storage.clear()
            logger.debug("Session cache cleared")
        except Exception as exc:
            logger.warning("Clearing session storage failed: %s", exc)

    def _discard(self, key: str) -> None:
        try:
            self.storage.remove_item(key)
            self.storage.remove_item(key + TIMESTAMP_SUFFIX)
        except Exception as exc:
            logger.warning("Cache removal of %s failed: %s", key, exc)
