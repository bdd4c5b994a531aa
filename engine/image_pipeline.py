"""Image loading pipeline.

Orchestrates the memory cache, disk cache, remote fetcher and decoder behind
a single ``image()`` coroutine:

    1. memory hit  -> return
    2. disk hit    -> decode, insert into memory, return
    3. fetch       -> decode (downsampled to the size hint), insert into
                      memory, write to disk in the background, return

Concurrent requests for the same cache key share one in-flight task, so N
simultaneous callers trigger at most one network request. The pipeline owns
orchestration only; each tier owns its own storage.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, Optional, Set

from PIL import Image

from core.errors import CatFinderError, DecodeError, InvalidMediaError, OfflineError
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_DISK, TAG_OFFLINE, TAG_PIPELINE, TAG_PREFETCH
from utils.disk_cache import DiskImageCache
from utils.image_cache import ImageCache, make_cache_key
from utils.image_fetcher import ImageFetcher
from utils.image_loader import ImageLoader

logger = get_logger(__name__)


class ImagePipeline:
    """Tiered image cache with in-flight request coalescing.

    Construct one per process and pass it to whoever needs images; nothing
    here is global. All coroutines must run on the same event loop.
    """

    def __init__(
        self,
        memory: Optional[ImageCache] = None,
        disk: Optional[DiskImageCache] = None,
        fetcher: Optional[ImageFetcher] = None,
        loader: type[ImageLoader] = ImageLoader,
        is_online: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.memory = memory if memory is not None else ImageCache()
        self.disk = disk if disk is not None else DiskImageCache()
        self.fetcher = fetcher if fetcher is not None else ImageFetcher()
        self.loader = loader
        self._is_online = is_online or (lambda: True)

        self._inflight: Dict[str, asyncio.Task] = {}
        self._pending_writes: Set[asyncio.Task] = set()
        self._network_fetches = 0
        self._disk_hits = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def image(self, url: str, size_hint: Optional[int] = None) -> Image.Image:
        """Return the decoded image for url, loading it through the tiers.

        Raises:
            OfflineError: the image is not cached and connectivity is down.
            NetworkError: the fetch failed.
            InvalidMediaError: the fetched bytes could not be decoded.
        """
        key = make_cache_key(url, size_hint)

        cached = self.memory.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._load(key, url, size_hint), name=f"image-load:{key}")
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._on_load_done(k, t))
        elif is_verbose_logging():
            logger.debug(f"{TAG_PIPELINE} Joining in-flight load: {key}")

        # shield: a cancelled waiter (e.g. a superseded prefetch sweep) must
        # not cancel the shared load other callers are waiting on.
        return await asyncio.shield(task)

    async def prefetch(self, url: str, size_hint: Optional[int] = None) -> None:
        """Warm the tiers for url. Failures are logged and swallowed."""
        try:
            await self.image(url, size_hint)
        except CatFinderError as e:
            logger.debug(f"{TAG_PREFETCH} Prefetch failed for {url}: {e.message}")
        except Exception as e:
            logger.warning(f"{TAG_PREFETCH} Unexpected prefetch failure for {url}: {e}", exc_info=True)

    def is_cached_in_memory(self, url: str, size_hint: Optional[int] = None) -> bool:
        return self.memory.contains(make_cache_key(url, size_hint))

    def clear_memory(self) -> None:
        self.memory.clear()

    async def clear_disk(self) -> None:
        # Let queued writes land first so they cannot repopulate the
        # directory after it is cleared.
        await self.flush()
        await self.disk.clear()

    async def clear_all(self) -> None:
        self.clear_memory()
        await self.clear_disk()

    async def flush(self) -> None:
        """Wait for background disk writes scheduled so far."""
        pending = list(self._pending_writes)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        await self.flush()
        await self.fetcher.aclose()

    def get_stats(self) -> dict:
        stats = dict(self.memory.get_stats())
        stats.update({
            'inflight': len(self._inflight),
            'pending_disk_writes': len(self._pending_writes),
            'network_fetches': self._network_fetches,
            'disk_hits': self._disk_hits,
        })
        return stats

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load(self, key: str, url: str, size_hint: Optional[int]) -> Image.Image:
        image = await self._load_from_disk(key, size_hint)
        if image is not None:
            return image

        if not self._is_online():
            logger.info(f"{TAG_OFFLINE} Not fetching {url}: offline")
            raise OfflineError()

        self._network_fetches += 1
        result = await self.fetcher.fetch(url)
        try:
            image = await asyncio.to_thread(self.loader.decode, result.data, size_hint)
        except DecodeError as e:
            fmt = self.loader.sniff_format(result.data) or result.content_type or "unknown"
            logger.warning(f"{TAG_PIPELINE} Invalid media from {url} (format={fmt}): {e.message}")
            raise InvalidMediaError(url=url) from e

        self.memory.put(key, image)
        self._schedule_disk_write(key, image, result.data)
        return image

    async def _load_from_disk(self, key: str, size_hint: Optional[int]) -> Optional[Image.Image]:
        data = await self.disk.load(key)
        if data is None:
            return None
        try:
            image = await asyncio.to_thread(self.loader.decode, data, size_hint)
        except DecodeError as e:
            # Corrupt entry: treat as a miss; the refetch overwrites it.
            logger.info(f"{TAG_DISK} Ignoring undecodable disk entry for {key}: {e.message}")
            return None
        self._disk_hits += 1
        self.memory.put(key, image)
        return image

    def _schedule_disk_write(self, key: str, image: Image.Image, source: bytes) -> None:
        task = asyncio.create_task(self._write_to_disk(key, image, source), name=f"disk-write:{key}")
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write_to_disk(self, key: str, image: Image.Image, source: bytes) -> None:
        try:
            encoded = await asyncio.to_thread(self.loader.encode, image, source)
            await self.disk.store(key, encoded)
        except Exception as e:
            # Disk is best-effort; never surface.
            logger.warning(f"{TAG_DISK} Background store failed for {key}: {e}")

    def _on_load_done(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved even when every waiter was cancelled.
        if not task.cancelled():
            task.exception()
