"""In-memory, size-bounded LRU cache with a per-entry time-to-live.

:class:`TTLCache` keeps at most ``capacity`` entries. Each entry expires
``ttl_seconds`` after it was last written; expiry is lazy -- an expired
entry is purged only when a lookup touches it, and :meth:`TTLCache.size`
counts expired-but-unpurged entries until then. When an insert would
exceed the capacity the least-recently-used entry is evicted first, so
the bound is never visibly broken.

Recency is the insertion order of an :class:`~collections.OrderedDict`:
every :meth:`~TTLCache.set` and every successful :meth:`~TTLCache.get`
moves the key to the end. Because lookups also mutate (recency bump or
purge), every public method takes the same lock; there is no read path
that skips it.

Cache keys for API calls are built with :func:`make_cache_key`, a SHA-256
of ``endpoint|sorted_params`` so that identical requests resolve to the
same entry regardless of parameter ordering.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")

_MISSING = object()


@dataclass
class CacheEntry(Generic[V]):
    """A stored value and the monotonic instant it stops being valid."""

    key: Hashable
    value: V
    expires_at: float


class TTLCache(Generic[V]):
    """Thread-safe LRU cache whose entries carry their own TTL.

    Args:
        capacity: Maximum number of stored entries (expired entries that
            have not been purged yet still count).
        clock: Zero-argument callable returning the current time in
            seconds. Defaults to :func:`time.monotonic`.

    Raises:
        ValueError: If *capacity* is less than 1.

    Example::

        cache = TTLCache(capacity=100)
        cache.set("boards", boards, ttl_seconds=3600)
        boards = cache.get("boards")
    """

    def __init__(self, capacity: int, clock: Callable[[], float] = time.monotonic) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity}")
        self._capacity = capacity
        self._clock = clock
        self._entries: OrderedDict[Hashable, CacheEntry[V]] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def set(self, key: Hashable, value: V, ttl_seconds: float) -> None:
        """Insert or overwrite *key*, marking it most recently used.

        Overwriting an existing key counts as a use, not a new key, so it
        never triggers an eviction.

        Raises:
            ValueError: If *ttl_seconds* is negative.
        """
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must not be negative, got {ttl_seconds}")
        with self._lock:
            expires_at = self._clock() + ttl_seconds
            if key in self._entries:
                self._entries.move_to_end(key)
            else:
                while len(self._entries) >= self._capacity:
                    self._entries.popitem(last=False)
            self._entries[key] = CacheEntry(key, value, expires_at)

    def get(self, key: Hashable, default: Optional[V] = None) -> Optional[V]:
        """Return the live value for *key*, or *default* if missing or expired.

        A hit marks the entry most recently used; an expired entry is
        purged as a side effect.
        """
        with self._lock:
            value = self._lookup(key)
        return default if value is _MISSING else value

    def has(self, key: Hashable) -> bool:
        """Return whether *key* holds a live entry.

        Same expiry rule and purge side effect as :meth:`get`.
        """
        with self._lock:
            return self._lookup(key) is not _MISSING

    def delete(self, key: Hashable) -> None:
        """Remove *key* if present; a missing key is not an error."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet purged."""
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, Any]:
        """Return ``capacity`` and current ``size`` for diagnostics."""
        with self._lock:
            return {"capacity": self._capacity, "size": len(self._entries)}

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def _lookup(self, key: Hashable) -> Any:
        # Caller holds the lock.
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return _MISSING
        self._entries.move_to_end(key)
        return entry.value


def make_cache_key(endpoint: str, params: Optional[dict[str, Any]] = None) -> str:
    """Generate a deterministic cache key from an endpoint and its params."""
    parts = [endpoint.strip("/")]
    if params:
        parts.append(json.dumps(params, sort_keys=True, default=str))
    raw = "|".join(parts)
    return hashlib.sha256(raw.encode()).hexdigest()
