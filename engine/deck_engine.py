"""
Deck engine - coordinates discovery, decisions and image warming.

Owns one LookaheadQueue and one ImagePrefetcher and wires them to the shared
ImagePipeline, the decision store and the connectivity monitor:

    queue change  -> prefetch sweep over the buffer + deck.buffer_changed
    swipe         -> store update -> queue.advance() -> background top-up,
                     with the store file and favorites export written on a
                     worker thread
    fill failure  -> error_message + deck.error
    back online   -> top-up if the buffer is short

Every method must be called from the event loop that runs the engine.
"""
import asyncio
import hashlib
from pathlib import Path
from typing import Optional, Set, Tuple

from PIL import Image

from core.errors import CatFinderError
from core.events import EventSystem, EventType
from core.logging.logger import get_logger
from core.logging.tags import TAG_DECK, TAG_OFFLINE
from core.settings import SettingsManager
from engine.image_pipeline import ImagePipeline
from engine.image_queue import LookaheadQueue, QueueState
from sources.base_provider import Candidate, CandidateProvider
from sources.cataas_source import DEFAULT_ENDPOINT, CataasSource
from sources.decision_store import DecisionStore
from sources.favorites_export import EXPORT_FILE_NAME, export_favorites
from utils.disk_cache import DiskImageCache
from utils.image_cache import ImageCache
from utils.image_fetcher import ImageFetcher
from utils.image_prefetcher import ImagePrefetcher
from utils.network_monitor import NetworkMonitor

logger = get_logger(__name__)

DECISIONS_FILE_NAME = "decisions.json"

# Pale card backgrounds, RGB 0-255.
CARD_PALETTE: Tuple[Tuple[int, int, int], ...] = (
    (250, 212, 212),
    (250, 230, 199),
    (250, 245, 199),
    (214, 242, 209),
    (199, 237, 242),
    (204, 222, 252),
    (219, 204, 250),
    (245, 209, 242),
    (235, 235, 235),
    (247, 224, 230),
    (224, 242, 230),
    (224, 230, 250),
)


def stable_color(key: str) -> Tuple[int, int, int]:
    """Palette colour for key, identical across runs and processes."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return CARD_PALETTE[int.from_bytes(digest[:4], "big") % len(CARD_PALETTE)]


class DeckEngine:
    """Swipe deck controller."""

    def __init__(
        self,
        provider: CandidateProvider,
        store: DecisionStore,
        pipeline: ImagePipeline,
        monitor: Optional[NetworkMonitor] = None,
        events: Optional[EventSystem] = None,
        depth: Optional[int] = None,
        max_attempts: Optional[int] = None,
        size_hint: Optional[int] = None,
        export_path: Optional[Path] = None,
    ):
        self.provider = provider
        self.store = store
        # Decision files are written from _persist, off the event loop.
        self.store.autosave = False
        self.pipeline = pipeline
        self.monitor = monitor or NetworkMonitor()
        self.events = events or EventSystem()
        self.export_path = Path(export_path) if export_path else None

        queue_kwargs = {}
        if depth is not None:
            queue_kwargs['depth'] = depth
        if max_attempts is not None:
            queue_kwargs['max_attempts'] = max_attempts
        self.queue = LookaheadQueue(
            provider,
            store,
            is_online=self.monitor.is_online,
            on_change=self._on_buffer_changed,
            on_error=self._on_fill_error,
            **queue_kwargs,
        )
        self.prefetcher = ImagePrefetcher(pipeline, size_hint) if size_hint is not None else ImagePrefetcher(pipeline)

        self.is_loading = False
        self.error_message: Optional[str] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe_monitor = self.monitor.subscribe(self._on_connectivity_changed)
        self._persist_lock = asyncio.Lock()
        self._pending_writes: Set[asyncio.Task] = set()
        self._closed = False

    @classmethod
    def from_settings(cls, settings: SettingsManager, monitor: Optional[NetworkMonitor] = None) -> "DeckEngine":
        """Build the full object graph from settings."""
        monitor = monitor or NetworkMonitor()
        base_dir = settings.path.parent

        pipeline = ImagePipeline(
            memory=ImageCache(
                max_items=settings.get_int('cache.memory_max_items', 80),
                max_memory_mb=settings.get_int('cache.memory_max_mb', 64),
            ),
            disk=DiskImageCache(
                cache_dir=settings.get_path('cache.disk_dir'),
                max_size_mb=settings.get_float('cache.disk_max_mb', 250.0),
            ),
            fetcher=ImageFetcher(timeout=settings.get_float('network.fetch_timeout', 30.0)),
            is_online=monitor.is_online,
        )
        provider = CataasSource(
            endpoint=settings.get('discovery.endpoint') or DEFAULT_ENDPOINT,
            timeout=settings.get_float('network.discovery_timeout', 15.0),
        )
        store = DecisionStore(settings.get_path('store.path') or base_dir / DECISIONS_FILE_NAME, autosave=False)
        export_path = settings.get_path('export.favorites_path') or base_dir / EXPORT_FILE_NAME

        return cls(
            provider,
            store,
            pipeline,
            monitor=monitor,
            depth=settings.get_int('deck.lookahead_depth', 11),
            max_attempts=settings.get_int('deck.max_fill_attempts', 40),
            size_hint=settings.get_int('deck.size_hint', 1024),
            export_path=export_path,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current(self) -> Optional[Candidate]:
        return self.queue.current

    @property
    def next(self) -> Optional[Candidate]:
        return self.queue.next

    @property
    def state(self) -> QueueState:
        return self.queue.state

    @property
    def size_hint(self) -> Optional[int]:
        return self.prefetcher.size_hint

    def background_color(self, candidate: Candidate) -> Tuple[int, int, int]:
        return stable_color(candidate.id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Fill the deck unless something is already showing."""
        self._loop = asyncio.get_running_loop()
        if self.current is not None:
            return
        await self._load(force=False)

    async def retry(self) -> None:
        self.error_message = None
        self._loop = asyncio.get_running_loop()
        await self._load(force=True)

    async def _load(self, force: bool) -> None:
        self.is_loading = True
        try:
            if force:
                await self.queue.reload()
            else:
                await self.queue.fill_to_target()
        except CatFinderError as e:
            self._set_error(e)
        finally:
            self.is_loading = False

    async def load_current_image(self) -> Optional[Image.Image]:
        """Foreground load of the current card's image.

        Raises:
            OfflineError, NetworkError, InvalidMediaError: as ImagePipeline.image
        """
        candidate = self.current
        if candidate is None:
            return None
        return await self.pipeline.image(candidate.url, self.prefetcher.size_hint)

    def set_size_hint(self, size_hint: Optional[int]) -> None:
        """Change the size hint and re-warm the buffer at the new size."""
        if size_hint == self.prefetcher.size_hint:
            return
        self.prefetcher.size_hint = size_hint
        logger.debug(f"{TAG_DECK} Size hint now {self.prefetcher.size_hint}")
        snapshot = self.queue.snapshot()
        if snapshot:
            self.prefetcher.schedule(snapshot)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def swipe_left(self) -> Optional[Candidate]:
        """Skip the current card."""
        candidate = self.current
        if candidate is None:
            return None
        self.store.mark_seen(candidate)
        self._schedule_persist(export=False)
        self._publish_decision(candidate, "skip")
        self.queue.advance()
        return candidate

    def swipe_right(self) -> Optional[Candidate]:
        """Favorite the current card."""
        candidate = self.current
        if candidate is None:
            return None
        self.store.add_favorite(candidate)
        self.store.mark_seen(candidate)
        self._schedule_persist(export=True)
        self._publish_decision(candidate, "favorite")
        self.queue.advance()
        return candidate

    def _publish_decision(self, candidate: Candidate, decision: str) -> None:
        logger.info(f"{TAG_DECK} {decision}: {candidate.id}")
        self.events.publish(
            EventType.DECISION,
            data={'candidate': candidate, 'decision': decision},
            source=self,
        )

    def _schedule_persist(self, export: bool) -> None:
        task = asyncio.get_running_loop().create_task(self._persist(export))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _persist(self, export: bool) -> None:
        async with self._persist_lock:
            await asyncio.to_thread(self._write_decisions, export)

    def _write_decisions(self, export: bool) -> None:
        self.store.save()
        if export and self.export_path is not None:
            export_favorites(self.store, self.export_path)

    async def flush(self) -> None:
        """Wait for scheduled decision writes to reach disk."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def purge_local_data(self) -> None:
        """Forget every decision and drop both cache tiers."""
        self.prefetcher.cancel()
        self.store.clear_all()
        await self.flush()
        await self._persist(export=True)
        await self.pipeline.clear_all()
        self.events.publish(EventType.CACHE_PURGED, source=self)
        logger.info(f"{TAG_DECK} Local data purged")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unsubscribe_monitor()
        await self.flush()
        self.prefetcher.cancel()
        await self.prefetcher.wait()
        await self.queue.aclose()
        await self.provider.aclose()
        await self.pipeline.aclose()
        logger.info(f"{TAG_DECK} Deck closed")

    def get_stats(self) -> dict:
        return {
            'queue': self.queue.get_stats(),
            'prefetch': self.prefetcher.get_stats(),
            'pipeline': self.pipeline.get_stats(),
            'store': self.store.get_stats(),
            'online': self.monitor.is_connected,
        }

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _on_buffer_changed(self, snapshot) -> None:
        if snapshot:
            self.prefetcher.schedule(snapshot)
        else:
            self.prefetcher.cancel()
        self.events.publish(
            EventType.BUFFER_CHANGED,
            data={'length': len(snapshot), 'current': snapshot[0] if snapshot else None},
            source=self,
        )

    def _on_fill_error(self, error: CatFinderError) -> None:
        self._set_error(error)

    def _set_error(self, error: CatFinderError) -> None:
        self.error_message = error.message
        self.events.publish(EventType.FILL_FAILED, data={'error': error}, source=self)
        self.events.publish(EventType.DECK_ERROR, data={'message': error.message}, source=self)

    def _on_connectivity_changed(self, connected: bool) -> None:
        # Monitor callbacks may arrive from any thread.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._handle_connectivity, connected)

    def _handle_connectivity(self, connected: bool) -> None:
        self.events.publish(EventType.CONNECTIVITY_CHANGED, data={'connected': connected}, source=self)
        if connected and not self._closed:
            logger.info(f"{TAG_OFFLINE} Back online; topping up deck")
            self.queue.request_top_up()
