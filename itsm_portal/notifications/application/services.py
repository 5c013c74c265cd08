"""
Notification Application Services
=================================

The notification relay: creates chat notifications, lists and marks
them, and pushes new ones to subscribers through the change feed.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from itsm_portal.core import ResourceNotFoundException, ValidationException, utcnow
from itsm_portal.infrastructure.realtime import ChangeFeed, INSERT, Subscription, TransactionChanges
from itsm_portal.notifications.domain import ChatNotification
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

NOTIFICATIONS_TABLE = "chat_notifications"
PLATFORM_BODY_LIMIT = 100

NotificationCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


# ========== Interfaces (Dependency Inversion) ==========

class INotificationRepository(ABC):
    """Interface for chat notification data access."""

    @abstractmethod
    async def create(self, notification: ChatNotification) -> ChatNotification:
        """Store a notification."""

    @abstractmethod
    async def list_unread(self, user_id: str) -> List[ChatNotification]:
        """Unread notifications, newest first (expiry is filtered by the service)."""

    @abstractmethod
    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        """Set is_read; False when no such notification belongs to the user."""

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> int:
        """Set is_read on every unread notification of the user."""


class IPlatformNotifier(ABC):
    """Native (OS / browser) notification surface of a client."""

    @property
    @abstractmethod
    def permitted(self) -> bool:
        """Whether the user granted notification permission."""

    @abstractmethod
    async def notify(self, title: str, body: str, tag: Optional[str] = None) -> None:
        """Show a notification."""


# ========== Realtime subscription handle ==========

class RelayHandle:
    """
    A running notification subscription.

    Owns the consumer task and the change-feed subscription; both go away
    on ``unsubscribe()``. There is no reconnect or backoff.
    """

    def __init__(self, user_id: str, subscription: Subscription, task: asyncio.Task):
        self.user_id = user_id
        self.subscription = subscription
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def unsubscribe(self) -> List[Dict[str, Any]]:
        """
        Stop delivery.

        Returns:
            Rows that were queued but never delivered
        """
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        return self.subscription.close()


# ========== Application Services ==========

class NotificationService:
    """
    Notification relay over the store and the change feed.

    Writers inside a request pass the feed bound to their transaction;
    subscribing needs the feed itself.
    """

    def __init__(
        self,
        repository: Optional[INotificationRepository],
        change_feed: Optional[Union[ChangeFeed, TransactionChanges]] = None,
        platform_notifier: Optional[IPlatformNotifier] = None,
        ttl_days: int = 7
    ):
        self._repo = repository
        self._change_feed = change_feed
        self._platform_notifier = platform_notifier
        self._ttl_days = ttl_days

    async def create_notification(
        self,
        user_id: str,
        session_id: str,
        message_id: str,
        message_content: str,
        sender_name: Optional[str] = None
    ) -> ChatNotification:
        """Insert a notification and publish it to subscribers."""
        if not user_id or not message_content:
            raise ValidationException("user_id and message_content are required")

        notification = await self._repo.create(ChatNotification.new(
            user_id=user_id,
            session_id=session_id,
            message_id=message_id,
            message_content=message_content,
            sender_name=sender_name,
            ttl_days=self._ttl_days,
        ))

        if self._change_feed is not None:
            self._change_feed.publish(NOTIFICATIONS_TABLE, INSERT, notification.to_row())

        logger.info(
            "Chat notification created",
            extra={"notification_id": notification.id, "session_id": session_id}
        )
        return notification

    async def get_unread_notifications(self, user_id: str) -> List[ChatNotification]:
        now = utcnow()
        return [n for n in await self._repo.list_unread(user_id) if not n.is_expired(now)]

    async def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        if not await self._repo.mark_read(notification_id, user_id):
            raise ResourceNotFoundException("Notification", notification_id)
        return True

    async def mark_all_as_read(self, user_id: str) -> int:
        count = await self._repo.mark_all_read(user_id)
        logger.info("Notifications marked read", extra={"count": count})
        return count

    def subscribe(self, user_id: str, callback: NotificationCallback) -> RelayHandle:
        """
        Deliver every new notification for the user to ``callback``.

        The callback may be sync or async. A callback error is logged and
        delivery continues with the next row.
        """
        if self._change_feed is None:
            raise RuntimeError("Change feed not configured")

        subscription = self._change_feed.subscribe(
            NOTIFICATIONS_TABLE, INSERT, filter={"user_id": user_id}
        )
        task = asyncio.create_task(self._consume(subscription, callback))
        return RelayHandle(user_id, subscription, task)

    async def _consume(self, subscription: Subscription, callback: NotificationCallback) -> None:
        async for row in subscription:
            try:
                result = callback(row)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    "Notification callback failed",
                    extra={"notification_id": row.get("id"), "error": str(e)}
                )
            await self._notify_platform(row)

    async def _notify_platform(self, row: Dict[str, Any]) -> None:
        notifier = self._platform_notifier
        if notifier is None or not notifier.permitted:
            return

        content = row.get("message_content") or ""
        if len(content) > PLATFORM_BODY_LIMIT:
            content = content[:PLATFORM_BODY_LIMIT] + "..."
        try:
            await notifier.notify(
                f"New message from {row.get('sender_name') or 'Support'}",
                content,
                tag=row.get("session_id"),
            )
        except Exception as e:
            logger.warning("Platform notification failed", extra={"error": str(e)})
