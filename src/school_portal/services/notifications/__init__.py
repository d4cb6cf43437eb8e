"""Workflow change notifications."""

from school_portal.services.notifications.broadcaster import (
    BroadcastStats,
    ChangeBroadcaster,
    ChangeEvent,
    Subscriber,
    log_notification,
)

__all__ = [
    "BroadcastStats",
    "ChangeBroadcaster",
    "ChangeEvent",
    "Subscriber",
    "log_notification",
]
