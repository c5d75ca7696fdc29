"""
Notification dispatch (best-effort, after commit).

Delivery itself belongs to an external service. The engine only hands events
to a dispatcher once the transaction has committed; a failing dispatcher is
logged and never undoes the committed change.
"""
import logging
from typing import Any, Dict, List, Optional

from leave_engine.core.config import settings

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Interface for notification delivery."""

    def send(self, recipient_id: Optional[int], event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Default dispatcher: records the notification in the application log."""

    def send(self, recipient_id: Optional[int], event: str, payload: Dict[str, Any]) -> None:
        logger.info("notification: event=%s recipient_id=%s payload=%s", event, recipient_id, payload)


class RecordingNotificationDispatcher(NotificationDispatcher):
    """Keeps sent notifications in memory. Used by tests and dry runs."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    def send(self, recipient_id: Optional[int], event: str, payload: Dict[str, Any]) -> None:
        self.sent.append({"recipient_id": recipient_id, "event": event, "payload": payload})


_dispatcher: NotificationDispatcher = LoggingNotificationDispatcher()


def get_notifier() -> NotificationDispatcher:
    return _dispatcher


def set_notifier(dispatcher: NotificationDispatcher) -> NotificationDispatcher:
    """Swap the process-wide dispatcher; returns the previous one."""
    global _dispatcher
    previous = _dispatcher
    _dispatcher = dispatcher
    return previous


def notify_best_effort(
    recipient_id: Optional[int],
    event: str,
    payload: Dict[str, Any],
    dispatcher: Optional[NotificationDispatcher] = None,
) -> bool:
    """
    Send a notification, swallowing and logging any delivery failure.

    Returns:
        True if the dispatcher accepted the notification
    """
    if not settings.NOTIFICATIONS_ENABLED:
        return False
    target = dispatcher or get_notifier()
    try:
        target.send(recipient_id, event, payload)
        return True
    except Exception as e:
        logger.warning("notification failed: event=%s recipient_id=%s error=%s", event, recipient_id, e)
        return False
