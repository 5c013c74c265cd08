"""
Notification Domain Entities
============================

Chat notifications raised when a session message arrives for a user.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from itsm_portal.core import ensure_utc, utcnow


@dataclass
class ChatNotification:
    """
    Unread-message marker for one recipient.

    Expired notifications are never listed as unread.
    """

    id: Optional[str]
    user_id: str
    session_id: str
    message_id: str
    message_content: str
    sender_name: Optional[str] = None
    is_read: bool = False
    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    @classmethod
    def new(
        cls,
        user_id: str,
        session_id: str,
        message_id: str,
        message_content: str,
        sender_name: Optional[str] = None,
        ttl_days: int = 7,
        now: Optional[datetime] = None
    ) -> "ChatNotification":
        created = now or utcnow()
        return cls(
            id=None,
            user_id=user_id,
            session_id=session_id,
            message_id=message_id,
            message_content=message_content,
            sender_name=sender_name,
            created_at=created,
            expires_at=created + timedelta(days=ttl_days),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return ensure_utc(self.expires_at) <= (now or utcnow())

    def to_row(self) -> Dict[str, Any]:
        """Change-feed and websocket payload."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "message_id": self.message_id,
            "message_content": self.message_content,
            "sender_name": self.sender_name,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
