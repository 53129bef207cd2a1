"""
Transient user-facing notifications.
"""

from .models import Notification, NotificationKind, NotificationVariant
from .center import NotificationCenter, NotificationListener

__all__ = [
    "Notification",
    "NotificationKind",
    "NotificationVariant",
    "NotificationCenter",
    "NotificationListener",
]
