"""
Notification Infrastructure Layer
=================================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer
"""

from itsm_portal.notifications.infrastructure.models import ChatNotificationModel
from itsm_portal.notifications.infrastructure.repositories import SQLAlchemyNotificationRepository

__all__ = [
    "ChatNotificationModel",
    "SQLAlchemyNotificationRepository",
]
