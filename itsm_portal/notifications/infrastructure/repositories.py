"""
Notification Infrastructure Repositories
========================================

SQLAlchemy implementation of the notification repository.
"""

from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from itsm_portal.core import ensure_utc
from itsm_portal.notifications.application.services import INotificationRepository
from itsm_portal.notifications.domain import ChatNotification
from itsm_portal.notifications.infrastructure.models import ChatNotificationModel


def _to_entity(model: ChatNotificationModel) -> ChatNotification:
    return ChatNotification(
        id=str(model.id),
        user_id=model.user_id,
        session_id=model.session_id,
        message_id=model.message_id,
        message_content=model.message_content,
        sender_name=model.sender_name,
        is_read=model.is_read,
        created_at=ensure_utc(model.created_at),
        expires_at=ensure_utc(model.expires_at),
    )


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SQLAlchemyNotificationRepository(INotificationRepository):
    """Persistence of chat notifications using async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, notification: ChatNotification) -> ChatNotification:
        model = ChatNotificationModel(
            id=uuid4(),
            user_id=notification.user_id,
            session_id=notification.session_id,
            message_id=notification.message_id,
            message_content=notification.message_content,
            sender_name=notification.sender_name,
            is_read=notification.is_read,
            created_at=notification.created_at,
            expires_at=notification.expires_at,
        )

        self._session.add(model)
        await self._session.flush()

        notification.id = str(model.id)
        return notification

    async def list_unread(self, user_id: str) -> List[ChatNotification]:
        stmt = (
            select(ChatNotificationModel)
            .where(
                ChatNotificationModel.user_id == user_id,
                ChatNotificationModel.is_read == False,  # noqa: E712
            )
            .order_by(ChatNotificationModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        notification_uuid = _parse_uuid(notification_id)
        if notification_uuid is None:
            return False

        stmt = select(ChatNotificationModel).where(
            ChatNotificationModel.id == notification_uuid,
            ChatNotificationModel.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return False

        model.is_read = True
        await self._session.flush()
        return True

    async def mark_all_read(self, user_id: str) -> int:
        stmt = (
            update(ChatNotificationModel)
            .where(
                ChatNotificationModel.user_id == user_id,
                ChatNotificationModel.is_read == False,  # noqa: E712
            )
            .values(is_read=True)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0
