"""Bounded TTL cache with FIFO eviction and passive expiry sweeps."""

import random
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from typing import Generic, TypeVar
from urllib.parse import urlencode

import structlog

from cosmic_gateway.cache.models import CacheConfig, CacheEntry, CacheStats
from cosmic_gateway.fetch.client import normalize_params
from cosmic_gateway.fetch.models import ParamValue


logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_CACHE_KEY = "default"


def cache_key(params: Mapping[str, ParamValue] | None) -> str:
    """Build a deterministic key from request parameters.

    Pairs are sorted by name, so the key does not depend on the order the
    caller supplied them in. None values are omitted.

    Args:
        params: Request parameters.

    Returns:
        Form-encoded "name=value" pairs, or "default" when empty.
    """
    normalized = normalize_params(params)
    if not normalized:
        return DEFAULT_CACHE_KEY
    return urlencode(sorted(normalized.items()))


class ResultCache(Generic[T]):
    """Keyed store of successful results, bounded in size and age.

    - A read after expiry is a miss, but does not delete the entry.
    - At capacity, the single oldest-inserted entry is evicted (FIFO, not LRU).
    - A fraction of reads sweep out every expired entry.

    Operations never await, so they are atomic with respect to other tasks.
    """

    def __init__(
        self,
        config: CacheConfig,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the cache.

        Args:
            config: Capacity and TTL settings.
            name: Cache name, for logging and stats.
            clock: Returns the current time in seconds.
            rng: Returns a float in [0, 1); drives sweep sampling.
        """
        self._config = config
        self._name = name
        self._clock = clock
        self._rng = rng
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._log = logger.bind(component="cache", cache=name)

    @property
    def name(self) -> str:
        """Get the cache name."""
        return self._name

    @property
    def config(self) -> CacheConfig:
        """Get the cache configuration."""
        return self._config

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        """Get stored keys, oldest insertion first."""
        return list(self._entries)

    def get(self, key: str) -> T | None:
        """Look up a fresh value.

        Args:
            key: Cache key.

        Returns:
            The cached value, or None on a miss.
        """
        if self._entries and self._rng() < self._config.sweep_probability:
            self.sweep()

        entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(self._clock()):
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def put(self, key: str, value: T) -> None:
        """Store a successful result.

        Re-putting an existing key replaces it and makes it the newest entry.

        Args:
            key: Cache key.
            value: Value to store.
        """
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self._config.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            self._log.debug("cache_evict", key=evicted_key)

        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            inserted_at=now,
            expires_at=now + self._config.ttl_ms / 1000.0,
        )

    def sweep(self) -> int:
        """Remove every expired entry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            self._log.debug("cache_sweep", removed=len(expired))
        return len(expired)

    def clear(self) -> int:
        """Remove all entries.

        Returns:
            Number of entries removed.
        """
        count = len(self._entries)
        self._entries.clear()
        self._log.info("cache_cleared", removed=count)
        return count

    def stats(self) -> CacheStats:
        """Get cache statistics."""
        return CacheStats(
            name=self._name,
            size=len(self._entries),
            max_entries=self._config.max_entries,
            ttl_ms=self._config.ttl_ms,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )
