"""
Notification Application Layer
==============================

Contains:
- Services: the notification relay and its subscription handle
- Inbox: optimistic client-side unread list
- DTOs: Data transfer objects for API serialization
"""

from itsm_portal.notifications.application.dto import NotificationResponse, MarkReadResponse
from itsm_portal.notifications.application.services import (
    NotificationService,
    RelayHandle,
    INotificationRepository,
    IPlatformNotifier,
    NOTIFICATIONS_TABLE,
)
from itsm_portal.notifications.application.inbox import NotificationInbox

__all__ = [
    "NotificationResponse",
    "MarkReadResponse",
    "NotificationService",
    "RelayHandle",
    "NotificationInbox",
    "INotificationRepository",
    "IPlatformNotifier",
    "NOTIFICATIONS_TABLE",
]
