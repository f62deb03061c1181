"""Lookup cache for slowly-changing tracker data.

Teams, workflow states and identifier-to-id resolutions rarely change,
so the tool surface keeps them in a TTL cache with LRU eviction.
"""

from __future__ import annotations

import hashlib
import json
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass
class CacheEntry:
    """A single cache entry with TTL tracking."""

    value: Any
    created_at: float


class LookupCache:
    """Thread-safe TTL cache with LRU eviction, keyed by namespace + args."""

    def __init__(
        self,
        max_entries: int = 200,
        ttl_seconds: float = 600.0,
    ):
        """Initialize the lookup cache.

        Args:
            max_entries: Maximum number of entries before LRU eviction
            ttl_seconds: Time-to-live for entries in seconds
        """
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = Lock()

    @staticmethod
    def compute_key(namespace: str, *args: Any) -> str:
        """Compute a 16-character cache key for a namespace and arguments."""
        key_data = json.dumps({"ns": namespace, "args": args}, sort_keys=True, default=str)
        return hashlib.sha256(key_data.encode()).hexdigest()[:16]

    def _is_expired(self, entry: CacheEntry) -> bool:
        return time.time() - entry.created_at > self.ttl_seconds

    def _evict_if_needed(self) -> None:
        """Evict oldest entries if cache is full. Caller holds the lock."""
        while len(self._cache) >= self.max_entries:
            self._cache.popitem(last=False)

    def get(self, namespace: str, *args: Any) -> Any | None:
        """Get a cached value, or None if missing or expired."""
        key = self.compute_key(namespace, *args)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if self._is_expired(entry):
                del self._cache[key]
                return None

            self._cache.move_to_end(key)
            return entry.value

    def set(self, namespace: str, *args: Any, value: Any) -> None:
        """Store a value under a namespace and arguments."""
        key = self.compute_key(namespace, *args)
        with self._lock:
            if key not in self._cache:
                self._evict_if_needed()
            self._cache[key] = CacheEntry(
                value=value,
                created_at=time.time(),
            )
            self._cache.move_to_end(key)

    def get_or_load(self, namespace: str, *args: Any, loader: Callable[[], Any]) -> Any:
        """Return the cached value, calling ``loader`` on a miss.

        ``None`` results from the loader are not cached.
        """
        cached = self.get(namespace, *args)
        if cached is not None:
            return cached
        value = loader()
        if value is not None:
            self.set(namespace, *args, value=value)
        return value
