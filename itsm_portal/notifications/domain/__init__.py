"""
Notification Domain Layer
=========================

Contains:
- Entities: ChatNotification
"""

from itsm_portal.notifications.domain.entities import ChatNotification

__all__ = ["ChatNotification"]
