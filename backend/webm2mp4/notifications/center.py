"""
Notification fan-out.

Listeners are called synchronously and must not block. A bounded
history lets polling clients (HTTP) catch up on recent messages.
"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional

from .models import Notification

logger = logging.getLogger(__name__)

NotificationListener = Callable[[Notification], None]

DEFAULT_HISTORY_SIZE = 20


class NotificationCenter:
    """Publishes transient notifications to listeners."""

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        self._listeners: List[NotificationListener] = []
        self._history: Deque[Notification] = deque(maxlen=history_size)

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that removes the listener. Safe to call twice.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, notification: Notification) -> None:
        logger.info(f"[Notify] {notification.title}: {notification.description}")
        self._history.append(notification)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                logger.warning(f"[Notify] Listener failed: {e}")

    def recent(self, limit: Optional[int] = None) -> List[Notification]:
        """Most recent notifications, newest last."""
        items = list(self._history)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items
