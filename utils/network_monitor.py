"""
Lightweight connectivity signal.

Holds an online/offline flag that fetch paths read before touching the
network. The flag is set by the host (OS reachability callback, a UI toggle,
or the optional probe()) and subscribers are told only when it flips.
"""
import threading
from typing import Callable, List, Optional

import httpx

from core.constants.timing import CONNECTIVITY_PROBE_TIMEOUT_SECONDS
from core.logging.logger import get_logger
from core.logging.tags import TAG_OFFLINE

logger = get_logger(__name__)

DEFAULT_PROBE_URL = "https://cataas.com/"


class NetworkMonitor:
    """Observable online/offline flag."""

    def __init__(self, connected: bool = True):
        self._connected = bool(connected)
        self._lock = threading.Lock()
        self._subscribers: List[Callable[[bool], None]] = []

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    @property
    def status_text(self) -> str:
        return "Online" if self.is_connected else "Offline"

    def is_online(self) -> bool:
        """Callable form of is_connected, handed to the queue and pipeline."""
        return self.is_connected

    def set_connected(self, connected: bool) -> None:
        connected = bool(connected)
        with self._lock:
            changed = connected != self._connected
            self._connected = connected
            subscribers = list(self._subscribers)
        if not changed:
            return

        if connected:
            logger.info("Connectivity restored")
        else:
            logger.info(f"{TAG_OFFLINE} Connectivity lost")
        for callback in subscribers:
            try:
                callback(connected)
            except Exception as e:
                logger.error(f"Error in connectivity subscriber: {e}", exc_info=True)

    def subscribe(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Register callback(connected); returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    async def probe(
        self,
        url: str = DEFAULT_PROBE_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = CONNECTIVITY_PROBE_TIMEOUT_SECONDS,
    ) -> bool:
        """Set the flag from a HEAD request. Any HTTP response counts as online."""
        owns_client = client is None
        client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        try:
            await client.head(url, timeout=timeout)
            online = True
        except httpx.HTTPError as e:
            logger.debug(f"{TAG_OFFLINE} Probe of {url} failed: {e}")
            online = False
        finally:
            if owns_client:
                await client.aclose()
        self.set_connected(online)
        return online
