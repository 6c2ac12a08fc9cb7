"""In-memory TTL caches for search results, product details and carriers."""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, Protocol, Set, TypeVar, runtime_checkable

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


@runtime_checkable
class CacheBackend(Protocol[K, V]):
    """What the search and product lookups need from a cache."""

    def __len__(self) -> int: ...

    def get(self, key: K) -> Optional[V]: ...

    def set(self, key: K, value: V) -> None: ...

    async def get_or_fetch(self, key: K, fetch: Callable[[], Awaitable[Optional[V]]]) -> Optional[V]: ...


class InMemoryCache(Generic[K, V]):
    """TTL cache with optional capacity and FIFO eviction.

    Eviction follows insertion order, not access order: reading an entry does
    not protect it. Setting an existing key counts as a fresh insertion.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int | None = None,
        *,
        name: str = "cache",
        clock: Clock = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.name = name
        self._clock = clock
        self._store: Dict[K, tuple[float, V]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._store.pop(key, None)
            if self.max_entries is not None:
                while self._store and len(self._store) >= self.max_entries:
                    oldest = next(iter(self._store))
                    self._store.pop(oldest)
                    logger.debug("%s evicted key=%r", self.name, oldest)
            self._store[key] = (self._clock(), value)

    async def get_or_fetch(self, key: K, fetch: Callable[[], Awaitable[Optional[V]]]) -> Optional[V]:
        """Return the cached value or fetch, store and return it.

        ``None`` results are returned but not stored. Concurrent misses for the
        same key each fetch.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("%s hit key=%r", self.name, key)
            return cached
        value = await fetch()
        if value is not None:
            self.set(key, value)
        return value


CarrierFetcher = Callable[[], Awaitable[Dict[int, str]]]


class CarrierNameCache:
    """Carrier id -> display name, refreshed wholesale.

    A cold cache (or an unknown id) is refreshed inline. An expired but
    populated cache keeps answering with its last names while a background
    task reloads it.
    """

    default_name = "Standard shipping"

    def __init__(self, ttl_seconds: float, *, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._names: Dict[int, str] = {}
        self._loaded_at: float | None = None
        self._refresh_task: asyncio.Task | None = None
        self._background: Set[asyncio.Task] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def _is_fresh(self) -> bool:
        return self._loaded_at is not None and self._clock() - self._loaded_at < self.ttl_seconds

    def _store(self, names: Dict[int, str]) -> None:
        with self._lock:
            self._names = dict(names)
            self._loaded_at = self._clock()

    async def refresh(self, fetch: CarrierFetcher) -> None:
        names = await fetch()
        self._store(names)
        logger.info("carrier cache refreshed carriers=%s", len(names))

    async def _refresh_in_background(self, fetch: CarrierFetcher) -> None:
        try:
            await self.refresh(fetch)
        except Exception as exc:
            logger.warning("carrier cache background refresh failed: %s", exc)

    def _schedule_refresh(self, fetch: CarrierFetcher) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        task = asyncio.create_task(self._refresh_in_background(fetch))
        self._refresh_task = task
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def lookup(self, carrier_id: int, fetch: CarrierFetcher) -> str:
        with self._lock:
            name = self._names.get(carrier_id)
        if name is not None:
            if not self._is_fresh():
                self._schedule_refresh(fetch)
            return name
        # Cold cache, or a carrier added upstream since the last refresh.
        try:
            await self.refresh(fetch)
        except Exception as exc:
            logger.warning("carrier lookup failed carrier_id=%s: %s", carrier_id, exc)
            return self.default_name
        with self._lock:
            return self._names.get(carrier_id, self.default_name)
