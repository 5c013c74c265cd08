"""
Notification Application DTOs
=============================

Pydantic models for notification API responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from itsm_portal.notifications.domain import ChatNotification


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    session_id: str
    message_id: str
    message_content: str
    sender_name: Optional[str] = None
    is_read: bool
    created_at: datetime
    expires_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, notification: ChatNotification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            user_id=notification.user_id,
            session_id=notification.session_id,
            message_id=notification.message_id,
            message_content=notification.message_content,
            sender_name=notification.sender_name,
            is_read=notification.is_read,
            created_at=notification.created_at,
            expires_at=notification.expires_at,
        )


class MarkReadResponse(BaseModel):
    success: bool
    updated: int = 1
