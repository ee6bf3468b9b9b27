"""
In-memory cache of parsed datasets.

Parsing a dataset means decompressing and streaming two potentially large
files, so the result is memoized per dataset id. Concurrent requests for the
same id share one parse; requests for different ids run independently.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Hashable, List, Optional

from geolens.core.concurrency import SingleFlight
from geolens.core.schemas.documents import CachedDataset
from geolens.utils.logger import get_logger

logger = get_logger(__name__)

DatasetLoader = Callable[[str], CachedDataset]


def default_key(dataset_id: str) -> str:
    return (dataset_id or "").strip().upper()


class DatasetCache:
    """
    Thread-safe, single-flight cache of CachedDataset entries.

    The lifetime and eviction policy are injected: ``ttl_seconds`` expires
    entries after a fixed age (None keeps them for the process lifetime) and
    ``max_entries`` bounds the cache with least-recently-used eviction (None
    means unbounded). Failed loads are not cached.

    Example:
        cache = DatasetCache(loader=service.load_dataset, max_entries=8)
        dataset = cache.get("GSE12345")
    """

    def __init__(
        self,
        loader: DatasetLoader,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        key_fn: Callable[[str], Hashable] = default_key,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._loader = loader
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._key_fn = key_fn
        self._clock = clock

        self._lock = threading.Lock()
        self._entries: "OrderedDict[Hashable, tuple]" = OrderedDict()
        self._generations: Dict[Hashable, int] = {}
        self._flight = SingleFlight()

    def get(self, dataset_id: str) -> CachedDataset:
        """
        Return the parsed dataset, loading it on first use.

        Raises:
            Whatever the loader raises (e.g. CacheMiss, ParseError); the
            error is shared by every caller waiting on the same load.
        """
        key = self._key_fn(dataset_id)
        cached = self._lookup(key)
        if cached is not None:
            logger.debug(f"Cache hit for {key}")
            return cached
        return self._flight.do(key, lambda: self._load(key))

    def peek(self, dataset_id: str) -> Optional[CachedDataset]:
        """Cached entry without triggering a load."""
        return self._lookup(self._key_fn(dataset_id))

    def is_loading(self, dataset_id: str) -> bool:
        return self._flight.in_flight(self._key_fn(dataset_id))

    def invalidate(self, dataset_id: str) -> bool:
        """Drop one entry. Returns True if something was cached."""
        key = self._key_fn(dataset_id)
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            removed = self._entries.pop(key, None) is not None
        logger.debug(f"Invalidated {key} (was cached: {removed})")
        return removed

    def invalidate_all(self) -> None:
        with self._lock:
            for key in list(self._entries) + list(self._generations):
                self._generations[key] = self._generations.get(key, 0) + 1
            self._entries.clear()
        logger.debug("Invalidated all cached datasets")

    def keys(self) -> List[Hashable]:
        with self._lock:
            self._expire_locked()
            return list(self._entries)

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, dataset_id: str) -> bool:
        return self._lookup(self._key_fn(dataset_id)) is not None

    def _lookup(self, key: Hashable) -> Optional[CachedDataset]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            dataset, stored_at = entry
            if self._is_expired(stored_at):
                del self._entries[key]
                logger.debug(f"Cache entry for {key} expired")
                return None
            self._entries.move_to_end(key)
            return dataset

    def _load(self, key: Hashable) -> CachedDataset:
        # A previous leader may have finished between our lookup and join
        cached = self._lookup(key)
        if cached is not None:
            return cached

        with self._lock:
            generation = self._generations.get(key, 0)

        logger.debug(f"Cache miss for {key}, loading")
        dataset = self._loader(key)

        with self._lock:
            if self._generations.get(key, 0) != generation:
                # Invalidated while loading; hand out the result but don't keep it
                return dataset
            self._entries[key] = (dataset, self._clock())
            self._entries.move_to_end(key)
            self._evict_locked()
        return dataset

    def _is_expired(self, stored_at: float) -> bool:
        return self._ttl is not None and self._clock() - stored_at >= self._ttl

    def _expire_locked(self) -> None:
        for key in [k for k, (_, t) in self._entries.items() if self._is_expired(t)]:
            del self._entries[key]

    def _evict_locked(self) -> None:
        if self._max_entries is None:
            return
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted {evicted} from dataset cache")
