"""
Image prefetcher built on ImagePipeline.

- Walks the lookahead buffer head to tail, warming one image at a time
- A new schedule() cancels the previous sweep before starting
- Failures are swallowed by the pipeline's prefetch path
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Iterable, List, Optional

from core.constants.sizes import DEFAULT_SIZE_HINT
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_PREFETCH
from sources.base_provider import Candidate

if TYPE_CHECKING:
    from engine.image_pipeline import ImagePipeline

logger = get_logger(__name__)


class ImagePrefetcher:
    def __init__(self, pipeline: "ImagePipeline", size_hint: Optional[int] = DEFAULT_SIZE_HINT) -> None:
        self._pipeline = pipeline
        self._size_hint = size_hint
        self._task: Optional[asyncio.Task] = None
        self._sweeps_started = 0
        self._items_warmed = 0

    @property
    def size_hint(self) -> Optional[int]:
        return self._size_hint

    @size_hint.setter
    def size_hint(self, value: Optional[int]) -> None:
        self._size_hint = value if value and value > 0 else None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, candidates: Iterable[Candidate]) -> asyncio.Task:
        """Cancel the running sweep and start a new one over candidates."""
        self.cancel()
        urls = [c.url for c in candidates]
        self._sweeps_started += 1
        self._task = asyncio.create_task(
            self._sweep(urls, self._size_hint),
            name=f"prefetch-sweep-{self._sweeps_started}",
        )
        return self._task

    def cancel(self) -> None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            if is_verbose_logging():
                logger.debug(f"{TAG_PREFETCH} Cancelled previous sweep")
        self._task = None

    async def wait(self) -> None:
        """Wait for the current sweep, if any, to finish or be cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _sweep(self, urls: List[str], size_hint: Optional[int]) -> None:
        warmed = 0
        for url in urls:
            # cancel() between items lands here; the pipeline shields the load
            # itself, so an interrupted await never aborts a shared fetch.
            await asyncio.sleep(0)
            await self._pipeline.prefetch(url, size_hint)
            warmed += 1
            self._items_warmed += 1
        if is_verbose_logging():
            logger.debug(f"{TAG_PREFETCH} Sweep complete: {warmed} images (size_hint={size_hint})")

    def get_stats(self) -> dict:
        return {
            'running': self.is_running,
            'sweeps_started': self._sweeps_started,
            'items_warmed': self._items_warmed,
            'size_hint': self._size_hint,
        }
