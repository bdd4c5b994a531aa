"""
Event type definitions for the image feed.
"""
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


@dataclass
class Event:
    """Base event class."""
    event_type: str
    data: Any = None
    source: Any = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    timestamp: float = field(default_factory=time.time)
    is_handled: bool = False

    def mark_handled(self):
        """Stop delivery to lower-priority subscribers."""
        self.is_handled = True


@dataclass
class Subscription:
    """Subscription to an event type."""
    callback: Callable[[Event], None]
    event_type: str
    priority: int = 0
    filter_fn: Optional[Callable[[Event], bool]] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    active: bool = True

    def __call__(self, event: Event) -> None:
        if self.filter_fn is None or self.filter_fn(event):
            self.callback(event)

    def __lt__(self, other: 'Subscription') -> bool:
        """Sort by priority (higher first)."""
        return self.priority > other.priority


class EventType:
    """Event type constants."""
    # Lookahead buffer
    BUFFER_CHANGED = "deck.buffer_changed"
    FILL_FAILED = "deck.fill_failed"

    # Deck decisions
    DECISION = "deck.decision"
    DECK_ERROR = "deck.error"

    # Connectivity
    CONNECTIVITY_CHANGED = "network.connectivity_changed"

    # Administrative
    CACHE_PURGED = "cache.purged"
