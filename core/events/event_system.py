"""
Event system implementation for the image feed.

Provides a publish-subscribe pattern so the deck controller can notify a UI
(or the CLI) about buffer changes, decisions and errors without knowing who
listens.
"""
from typing import Any, Callable, Dict, List, Optional
import threading
from collections import defaultdict
from core.logging.logger import get_logger
from core.events.event_types import Event, Subscription

logger = get_logger('EventSystem')


class EventSystem:
    """
    Centralized event system.

    Thread-safe with priority-based subscription ordering. Callbacks run
    synchronously on the publishing thread/task; a failing callback is logged
    and does not stop delivery to the others.
    """

    def __init__(self, max_history: int = 200):
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._subscription_map: Dict[str, Subscription] = {}
        self._event_history: List[Event] = []
        self._max_history = max_history
        self._lock = threading.RLock()

    def subscribe(
        self,
        event_type: str,
        callback: Callable[[Event], None],
        priority: int = 50,
        filter_fn: Optional[Callable[[Event], bool]] = None,
    ) -> str:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Type of event to subscribe to
            callback: Function to call when event is published
            priority: Priority (higher = called earlier), default 50
            filter_fn: Optional filter function

        Returns:
            str: Subscription ID for unsubscribing

        Raises:
            ValueError: If callback is not callable
        """
        if not callable(callback):
            raise ValueError("Callback must be callable")

        if not isinstance(event_type, str) or not event_type.strip():
            raise ValueError("event_type must be a non-empty string")

        subscription = Subscription(callback, event_type, priority, filter_fn)

        with self._lock:
            self._subscriptions[event_type].append(subscription)
            self._subscription_map[subscription.id] = subscription
            self._subscriptions[event_type].sort()

        logger.debug(f"New subscription: {subscription.id} for {event_type} (priority={priority})")
        return subscription.id

    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription by the ID returned from subscribe()."""
        with self._lock:
            subscription = self._subscription_map.pop(subscription_id, None)
            if subscription is None:
                logger.warning(f"Unsubscribe called with unknown id: {subscription_id}")
                return

            subscription.active = False
            event_type = subscription.event_type
            remaining = [s for s in self._subscriptions.get(event_type, []) if s.id != subscription_id]
            if remaining:
                self._subscriptions[event_type] = remaining
            else:
                self._subscriptions.pop(event_type, None)

        logger.debug(f"Unsubscribed: {subscription_id}")

    def publish(self, event_type: str, data: Any = None, source: Any = None) -> Event:
        """
        Publish an event to all subscribers.

        Returns:
            Event: The published event object
        """
        if not isinstance(event_type, str) or not event_type.strip():
            raise ValueError("event_type must be a non-empty string")

        event = Event(event_type, data, source)

        with self._lock:
            matching_subs = list(self._subscriptions.get(event_type, []))

        for subscription in matching_subs:
            if event.is_handled:
                break
            try:
                subscription(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event_type}: {e}", exc_info=True)

        self._add_to_history(event)
        return event

    def _add_to_history(self, event: Event) -> None:
        with self._lock:
            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history = self._event_history[-self._max_history:]

    def get_event_history(self, limit: int = 100) -> List[Event]:
        """Return up to ``limit`` most recent events."""
        with self._lock:
            return self._event_history[-limit:]

    def clear(self) -> None:
        """Clear all subscriptions and history."""
        with self._lock:
            self._subscriptions.clear()
            self._subscription_map.clear()
            self._event_history.clear()

    def get_subscription_count(self) -> int:
        with self._lock:
            return len(self._subscription_map)
