"""
Lookahead buffer for the swipe deck.

Keeps an ordered buffer of undecided candidates topped up to a target depth
by repeatedly asking the discovery provider for one candidate at a time,
skipping anything already buffered or already seen.

State machine::

    EMPTY -> FILLING -> READY
               ^          |
               +----------+   (length drops below depth)

Buffer mutations are synchronous list operations, so on a single event loop
they never interleave. Only one fill runs at a time (``_fill_lock``); a
forced reload bumps the fill generation, which the running fill checks
between discovery calls.
"""
import asyncio
from enum import Enum
from typing import Callable, List, Optional, Protocol

from core.constants.sizes import FILL_MAX_ATTEMPTS, LOOKAHEAD_DEPTH
from core.errors import CatFinderError, DiscoveryError, OfflineError
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_OFFLINE, TAG_QUEUE
from sources.base_provider import Candidate, CandidateProvider

logger = get_logger(__name__)


class SeenLookup(Protocol):
    def is_seen(self, candidate_id: str) -> bool: ...


class QueueState(Enum):
    EMPTY = "empty"
    FILLING = "filling"
    READY = "ready"


class LookaheadQueue:
    """
    Ordered, deduplicated buffer of upcoming candidates.

    Args:
        provider: discovery source, one candidate per call
        store: anything with ``is_seen(id)``
        depth: target buffer length
        max_attempts: discovery calls allowed per fill before giving up
        is_online: connectivity check consulted before every discovery call
        on_change: called with a snapshot whenever the buffer changes
        on_error: called with the error when a background top-up fails
    """

    def __init__(
        self,
        provider: CandidateProvider,
        store: SeenLookup,
        depth: int = LOOKAHEAD_DEPTH,
        max_attempts: int = FILL_MAX_ATTEMPTS,
        is_online: Optional[Callable[[], bool]] = None,
        on_change: Optional[Callable[[List[Candidate]], None]] = None,
        on_error: Optional[Callable[[CatFinderError], None]] = None,
    ):
        if depth < 1:
            raise ValueError("depth must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.provider = provider
        self.store = store
        self.depth = depth
        self.max_attempts = max_attempts
        self._is_online = is_online or (lambda: True)
        self.on_change = on_change
        self.on_error = on_error

        self._buffer: List[Candidate] = []
        self._fill_lock = asyncio.Lock()
        self._filling = False
        self._appended = 0
        self._generation = 0
        self._top_up_task: Optional[asyncio.Task] = None
        self.last_error: Optional[CatFinderError] = None

        logger.info(f"{TAG_QUEUE} LookaheadQueue initialized (depth={depth}, max_attempts={max_attempts})")

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> QueueState:
        if self._filling:
            return QueueState.FILLING
        return QueueState.READY if self._buffer else QueueState.EMPTY

    @property
    def current(self) -> Optional[Candidate]:
        return self._buffer[0] if self._buffer else None

    @property
    def next(self) -> Optional[Candidate]:
        return self._buffer[1] if len(self._buffer) > 1 else None

    def snapshot(self) -> List[Candidate]:
        return list(self._buffer)

    def is_full(self) -> bool:
        return len(self._buffer) >= self.depth

    def is_fill_running(self) -> bool:
        return self._filling or (self._top_up_task is not None and not self._top_up_task.done())

    def __len__(self) -> int:
        return len(self._buffer)

    def __contains__(self, candidate_id: str) -> bool:
        return any(c.id == candidate_id for c in self._buffer)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def fill_to_target(self) -> int:
        """Top the buffer up to ``depth``.

        Returns the number of candidates appended. Candidates appended before
        a failure stay in the buffer.

        Raises:
            OfflineError: connectivity is down; no discovery call was made.
            DiscoveryError: discovery failed, or ``max_attempts`` calls
                produced only duplicates.
        """
        async with self._fill_lock:
            generation = self._generation
            self._filling = True
            self._appended = 0
            try:
                added = await self._fill(generation)
                self.last_error = None
                return added
            except CatFinderError as e:
                self.last_error = e
                raise
            finally:
                self._filling = False
                if self._appended:
                    self._notify_change()

    async def _fill(self, generation: int) -> int:
        attempts = 0
        added = 0
        skipped = 0
        while len(self._buffer) < self.depth:
            if generation != self._generation:
                logger.debug(f"{TAG_QUEUE} Fill superseded after {attempts} attempts")
                break
            if attempts >= self.max_attempts:
                logger.warning(
                    f"{TAG_QUEUE} Gave up after {attempts} discovery calls "
                    f"({skipped} duplicates, buffer={len(self._buffer)}/{self.depth})"
                )
                raise DiscoveryError("Couldn't find any new candidates. Try again later.")
            if not self._is_online():
                logger.info(f"{TAG_OFFLINE} Fill stopped: offline (buffer={len(self._buffer)})")
                raise OfflineError()

            attempts += 1
            candidate = await self.provider.fetch_next_candidate()

            if generation != self._generation:
                break
            if self._is_duplicate(candidate):
                skipped += 1
                if is_verbose_logging():
                    logger.debug(f"{TAG_QUEUE} Skipping duplicate/seen candidate {candidate.id}")
                continue

            self._buffer.append(candidate)
            self._appended += 1
            added += 1

        if added:
            logger.debug(
                f"{TAG_QUEUE} Filled {added} candidates in {attempts} calls "
                f"({skipped} skipped), buffer={len(self._buffer)}/{self.depth}"
            )
        return added

    def _is_duplicate(self, candidate: Candidate) -> bool:
        if candidate.id in self:
            return True
        return self.store.is_seen(candidate.id)

    def advance(self) -> Optional[Candidate]:
        """Pop the head of the buffer and schedule a top-up.

        Returns the removed candidate, or None when the buffer is empty.
        """
        if not self._buffer:
            return None
        removed = self._buffer.pop(0)
        self._notify_change()
        self.request_top_up()
        return removed

    def request_top_up(self) -> Optional[asyncio.Task]:
        """Start a background fill unless the buffer is full or a fill is running."""
        if self.is_full() or self.is_fill_running():
            return None
        self._top_up_task = asyncio.create_task(self._background_fill(), name="lookahead-top-up")
        return self._top_up_task

    async def _background_fill(self) -> None:
        try:
            await self.fill_to_target()
        except CatFinderError as e:
            logger.warning(f"{TAG_QUEUE} Background top-up failed: {e.message}")
            if self.on_error is not None:
                self.on_error(e)

    async def reload(self, clear: bool = False) -> int:
        """Supersede any running fill and fill again.

        The running fill stops at its next discovery boundary; ``clear``
        additionally drops the current buffer first.
        """
        self._generation += 1
        if clear and self._buffer:
            self._buffer.clear()
            self._notify_change()
        return await self.fill_to_target()

    def clear(self) -> None:
        self._generation += 1
        if self._buffer:
            self._buffer.clear()
            self._notify_change()

    async def aclose(self) -> None:
        """Cancel any background top-up."""
        self._generation += 1
        task = self._top_up_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._top_up_task = None

    def _notify_change(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self.snapshot())
        except Exception as e:
            logger.error(f"{TAG_QUEUE} Buffer change handler failed: {e}", exc_info=True)

    def get_stats(self) -> dict:
        return {
            'state': self.state.value,
            'length': len(self._buffer),
            'depth': self.depth,
            'fill_running': self.is_fill_running(),
            'last_error': self.last_error.message if self.last_error else None,
        }
