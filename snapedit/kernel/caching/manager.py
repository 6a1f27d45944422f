import threading
from typing import Optional, Tuple
from cachetools import LRUCache
from snapedit.kernel.caching.logic import CacheEntry
from snapedit.kernel.system.config import APP_CONFIG
from snapedit.kernel.system.logging import get_logger

logger = get_logger(__name__)


def _entry_kb(entry: CacheEntry) -> int:
    return entry.size_kb


class _RasterLRU(LRUCache):
    """
    KB-weighted LRU that drops the cache's raster references whenever an entry leaves.
    """

    def __init__(self, budget_kb: int) -> None:
        super().__init__(maxsize=budget_kb, getsizeof=_entry_kb)

    def popitem(self) -> Tuple[str, CacheEntry]:
        key, entry = super().popitem()
        logger.debug(f"Evicting {key} from image cache")
        return key, entry

    def __delitem__(self, key: str) -> None:
        entry = super().__getitem__(key)
        super().__delitem__(key)
        for raster in entry.rasters():
            raster.release()


class ImageCache:
    """
    Size-aware LRU of decoded tiers keyed by source id.

    The cache holds its own reference on every raster it stores, so callers
    keep ownership of theirs.
    """

    def __init__(self, budget_kb: int) -> None:
        if budget_kb < 1:
            raise ValueError(f"Cache budget must be positive, got {budget_kb}")
        self._entries = _RasterLRU(int(budget_kb))
        self._lock = threading.RLock()

    @property
    def budget_kb(self) -> int:
        return int(self._entries.maxsize)

    @property
    def size_kb(self) -> int:
        return int(self._entries.currsize)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry: Optional[CacheEntry] = self._entries.get(key)
            if entry is None:
                return None

            if not entry.is_usable:
                logger.debug(f"Dropping stale cache entry for {key}")
                del self._entries[key]
                return None
            return entry

    def put(self, key: str, entry: CacheEntry) -> None:
        """
        Last writer wins. Entries larger than the whole budget are not kept.
        """
        with self._lock:
            self._entries.pop(key, None)

            if not entry.is_usable:
                logger.debug(f"Refusing to cache released rasters for {key}")
                return

            if entry.size_kb > self.budget_kb:
                logger.info(f"Entry for {key} ({entry.size_kb} KB) exceeds cache budget ({self.budget_kb} KB)")
                return

            for raster in entry.rasters():
                raster.retain()
            # Evicts least recently used entries until the new one fits
            self._entries[key] = entry

    def remove(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.pop(key, None)

    def evict_all(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            if count:
                logger.info(f"Evicted {count} cached image(s)")


# Process-wide instance
image_cache = ImageCache(APP_CONFIG.cache_budget_kb)
