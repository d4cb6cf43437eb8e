"""Change broadcaster for workflow updates."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)


@dataclass
class ChangeEvent:
    """A change announced to subscribers."""

    event_name: str
    payload: dict[str, Any]
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# Subscriber type
Subscriber = Callable[[ChangeEvent], Coroutine[Any, Any, None]]


@dataclass
class BroadcastStats:
    """Statistics for the change broadcaster."""

    notifications_sent: int = 0
    notifications_unheard: int = 0
    errors: int = 0
    subscribers_by_event: dict[str, int] = field(default_factory=dict)
    last_error: str = ""


class ChangeBroadcaster:
    """Fans workflow change notifications out to subscribers.

    Supports:
    - Multiple subscribers per event name
    - Subscriber priority ordering
    - Error isolation between subscribers
    """

    def __init__(self):
        """Initialize change broadcaster."""
        self._subscribers: dict[str, list[tuple[int, Subscriber]]] = {}
        self._stats = BroadcastStats()

    @property
    def stats(self) -> BroadcastStats:
        """Get broadcaster statistics."""
        return self._stats

    def subscribe(
        self,
        event_name: str,
        subscriber: Subscriber,
        priority: int = 0,
    ) -> None:
        """Register a subscriber for an event name.

        Args:
            event_name: Event to listen for, e.g. "school_calendar.updated"
            subscriber: Async callable receiving the ChangeEvent
            priority: Subscriber priority (higher = notified first)
        """
        subscribers = self._subscribers.setdefault(event_name, [])
        subscribers.append((priority, subscriber))
        # Sort by priority (descending); sort is stable for equal priorities
        subscribers.sort(key=lambda x: -x[0])

        self._stats.subscribers_by_event[event_name] = len(subscribers)

        logger.info(
            f"Registered subscriber for {event_name} "
            f"(priority={priority}, total={len(subscribers)})"
        )

    async def notify(self, event_name: str, payload: dict[str, Any]) -> bool:
        """Announce a change to every subscriber of ``event_name``.

        A failing subscriber is logged and counted; the others still run and
        the caller never sees the error.

        Args:
            event_name: Event name
            payload: Event payload (record ids, records, notification text)

        Returns:
            True if at least one subscriber handled the event
        """
        self._stats.notifications_sent += 1
        subscribers = self._subscribers.get(event_name, [])

        if not subscribers:
            self._stats.notifications_unheard += 1
            logger.debug(f"No subscribers for event: {event_name}")
            return False

        event = ChangeEvent(event_name=event_name, payload=payload)
        handled = False
        for _, subscriber in subscribers:
            try:
                await subscriber(event)
                handled = True
            except Exception as e:
                self._stats.errors += 1
                self._stats.last_error = str(e)
                logger.error(
                    f"Subscriber error for {event_name}: {e}",
                    extra={"event_name": event_name},
                )

        return handled



async def log_notification(event: ChangeEvent) -> None:
    """Log the user-facing message a change carries, if it has one."""
    notification = event.payload.get("notification")
    if not notification:
        return
    logger.info(
        f"[{notification.get('type', 'info')}] {notification['title']}: "
        f"{notification['message']}",
        extra={
            "event_name": event.event_name,
            "audience": notification.get("audience", []),
        },
    )
