"""
LRU (Least Recently Used) cache for decoded images.

Keeps decoded Pillow images in process so repeated requests skip disk I/O and
decoding. Bounded by a total cost budget (estimated decoded bytes) and a count
ceiling.
"""
from collections import OrderedDict
import threading
from typing import Optional

from PIL import Image

from core.constants.sizes import BYTES_PER_PIXEL, MEMORY_CACHE_MAX_ITEMS, MEMORY_CACHE_MAX_MB
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_CACHE

logger = get_logger(__name__)


def make_cache_key(url: str, size_hint: Optional[int] = None) -> str:
    """Build the variant-aware cache key for a resource URL.

    The native rendering is keyed by the bare URL; a downsampled rendering
    gets a ``|max:<N>`` suffix so a thumbnail never satisfies a full-size
    request or the other way round.
    """
    if size_hint is None:
        return url
    return f"{url}|max:{int(size_hint)}"


def estimate_cost(image: Image.Image) -> int:
    """Estimate decoded memory cost: width * height * 4."""
    width, height = image.size
    return max(0, width) * max(0, height) * BYTES_PER_PIXEL


class ImageCache:
    """
    LRU cache for decoded images.

    Features:
    - Cost-accounted: evicts least recently used entries until the total
      estimated cost fits the budget
    - Optional count ceiling
    - Recency is updated by both get() and put()
    - Thread-safe; all bookkeeping happens under one lock so concurrent
      callers cannot double-count cost
    - Hit/miss/eviction counters for get_stats()
    """

    def __init__(
        self,
        max_items: Optional[int] = MEMORY_CACHE_MAX_ITEMS,
        max_memory_mb: float = MEMORY_CACHE_MAX_MB,
        max_memory_bytes: Optional[int] = None,
    ):
        """
        Initialize image cache.

        Args:
            max_items: Maximum number of images to cache (None for no ceiling)
            max_memory_mb: Cost budget in MB
            max_memory_bytes: Cost budget in bytes; overrides max_memory_mb
        """
        self.max_items = max_items
        if max_memory_bytes is not None:
            self.max_memory_bytes = int(max_memory_bytes)
        else:
            self.max_memory_bytes = int(max_memory_mb * 1024 * 1024)

        # key -> (image, cost)
        self._cache: "OrderedDict[str, tuple[Image.Image, int]]" = OrderedDict()
        self._current_memory = 0
        self._hit_count: int = 0
        self._miss_count: int = 0
        self._evict_count: int = 0
        self._lock = threading.RLock()

        logger.info(
            "%s ImageCache initialized: max_items=%s, max_memory=%.1fMB",
            TAG_CACHE,
            max_items,
            self.max_memory_bytes / (1024 * 1024),
        )

    def get(self, key: str) -> Optional[Image.Image]:
        """
        Get an image from cache.

        Args:
            key: Cache key (see make_cache_key)

        Returns:
            Image if found, None otherwise
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                self._cache.move_to_end(key)
                self._hit_count += 1
                if is_verbose_logging():
                    logger.debug(f"{TAG_CACHE} Cache hit: {key}")
                return entry[0]

            self._miss_count += 1
            if is_verbose_logging():
                logger.debug(f"{TAG_CACHE} Cache miss: {key}")
            return None

    def put(self, key: str, image: Image.Image, cost: Optional[int] = None) -> None:
        """
        Add an image to cache, replacing any existing entry wholesale.

        If the cache is over budget afterwards, evicts least recently used
        entries. An image whose cost alone exceeds the budget is not retained.

        Args:
            key: Cache key
            image: Decoded image
            cost: Estimated byte cost; derived from the image size if omitted
        """
        entry_cost = estimate_cost(image) if cost is None else max(0, int(cost))
        with self._lock:
            old = self._cache.pop(key, None)
            if old is not None:
                self._current_memory -= old[1]

            self._cache[key] = (image, entry_cost)
            self._current_memory += entry_cost

            while self._should_evict_locked():
                self._evict_oldest_locked()

            logger.debug(
                f"{TAG_CACHE} Cached: {key} (size={len(self._cache)}/{self.max_items}, "
                f"memory={self._current_memory / (1024*1024):.1f}MB)"
            )

    def contains(self, key: str) -> bool:
        """Check if key is in cache without touching recency."""
        with self._lock:
            return key in self._cache

    def remove(self, key: str) -> bool:
        """
        Remove an entry from cache.

        Returns:
            True if entry was removed, False if not found
        """
        with self._lock:
            entry = self._cache.pop(key, None)
            if entry is None:
                return False
            self._current_memory -= entry[1]
            logger.debug(f"{TAG_CACHE} Removed from cache: {key}")
            return True

    def clear(self) -> None:
        """Clear all cached images."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            self._current_memory = 0
        logger.info(f"{TAG_CACHE} Cache cleared: {count} images removed")

    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def memory_usage(self) -> int:
        """Get total retained cost in bytes."""
        with self._lock:
            return self._current_memory

    def memory_usage_mb(self) -> float:
        with self._lock:
            return self._current_memory / (1024 * 1024)

    def get_stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        with self._lock:
            total_accesses = self._hit_count + self._miss_count
            hit_rate = (self._hit_count / total_accesses * 100.0) if total_accesses > 0 else 0.0
            return {
                'item_count': len(self._cache),
                'max_items': self.max_items,
                'memory_usage_mb': self._current_memory / (1024 * 1024),
                'max_memory_mb': self.max_memory_bytes / (1024 * 1024),
                'hits': self._hit_count,
                'misses': self._miss_count,
                'hit_rate_percent': hit_rate,
                'evictions': self._evict_count,
            }

    def _should_evict_locked(self) -> bool:
        """Check if eviction is needed (caller holds lock)."""
        if not self._cache:
            return False
        if self.max_items is not None and len(self._cache) > self.max_items:
            return True
        return self._current_memory > self.max_memory_bytes

    def _evict_oldest_locked(self) -> None:
        """Evict the least recently used entry (caller holds lock)."""
        key, (_, cost) = self._cache.popitem(last=False)
        self._current_memory -= cost
        self._evict_count += 1
        logger.debug(f"{TAG_CACHE} Evicted from cache: {key}")

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __str__(self) -> str:
        return (f"ImageCache(items={self.size()}/{self.max_items}, "
                f"memory={self.memory_usage_mb():.1f}MB/"
                f"{self.max_memory_bytes / (1024*1024):.0f}MB)")
