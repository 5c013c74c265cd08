"""Tests for the notification relay, inbox and repository."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from itsm_portal.core import ResourceNotFoundException, utcnow
from itsm_portal.infrastructure.realtime import ChangeFeed
from itsm_portal.notifications.application import (
    IPlatformNotifier,
    NotificationInbox,
    NotificationService,
)
from itsm_portal.notifications.domain import ChatNotification
from itsm_portal.notifications.infrastructure import SQLAlchemyNotificationRepository


class RecordingNotifier(IPlatformNotifier):

    def __init__(self, permitted=True):
        self._permitted = permitted
        self.shown = []

    @property
    def permitted(self):
        return self._permitted

    async def notify(self, title, body, tag=None):
        self.shown.append((title, body, tag))


async def _drain():
    for _ in range(5):
        await asyncio.sleep(0)


async def _create(service, user_id="u-1", content="hello", sender="agent-1"):
    return await service.create_notification(
        user_id=user_id,
        session_id="s-1",
        message_id="m-1",
        message_content=content,
        sender_name=sender,
    )


class TestNotificationRepository:

    @pytest.mark.asyncio
    async def test_unread_excludes_expired(self, db_session):
        repo = SQLAlchemyNotificationRepository(db_session)
        service = NotificationService(repo)

        fresh = await _create(service)
        stale = ChatNotification.new("u-1", "s-1", "m-2", "old", now=utcnow() - timedelta(days=8))
        await repo.create(stale)

        unread = await service.get_unread_notifications("u-1")

        assert [n.id for n in unread] == [fresh.id]

    @pytest.mark.asyncio
    async def test_mark_read_is_scoped_to_owner(self, db_session):
        service = NotificationService(SQLAlchemyNotificationRepository(db_session))
        notification = await _create(service)

        with pytest.raises(ResourceNotFoundException):
            await service.mark_as_read(notification.id, "u-2")

        assert await service.mark_as_read(notification.id, "u-1")
        assert await service.get_unread_notifications("u-1") == []

    @pytest.mark.asyncio
    async def test_mark_all_read_counts(self, db_session):
        service = NotificationService(SQLAlchemyNotificationRepository(db_session))
        await _create(service)
        await _create(service)
        await _create(service, user_id="u-2")

        assert await service.mark_all_as_read("u-1") == 2
        assert len(await service.get_unread_notifications("u-2")) == 1


class TestRelay:

    @pytest.mark.asyncio
    async def test_subscriber_receives_only_own_notifications(self, db_session):
        feed = ChangeFeed()
        service = NotificationService(SQLAlchemyNotificationRepository(db_session), feed)
        received = []

        handle = service.subscribe("u-1", received.append)
        await _create(service, user_id="u-2")
        created = await _create(service, user_id="u-1")
        await _drain()

        assert [row["id"] for row in received] == [created.id]
        assert handle.active

        leftover = await handle.unsubscribe()
        assert leftover == []
        assert not handle.active
        assert feed.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_callback_error_does_not_stop_delivery(self):
        feed = ChangeFeed()
        repo = AsyncMock()
        repo.create.side_effect = lambda n: n
        service = NotificationService(repo, feed)
        seen = []

        async def flaky(row):
            seen.append(row["message_content"])
            if len(seen) == 1:
                raise RuntimeError("render failed")

        handle = service.subscribe("u-1", flaky)
        await _create(service, content="first")
        await _create(service, content="second")
        await _drain()
        await handle.unsubscribe()

        assert seen == ["first", "second"]

    @pytest.mark.asyncio
    async def test_platform_notification_truncated(self):
        feed = ChangeFeed()
        repo = AsyncMock()
        repo.create.side_effect = lambda n: n
        notifier = RecordingNotifier()
        service = NotificationService(repo, feed, platform_notifier=notifier)

        handle = service.subscribe("u-1", lambda row: None)
        await _create(service, content="x" * 150, sender="Dana")
        await _drain()
        await handle.unsubscribe()

        title, body, tag = notifier.shown[0]
        assert title == "New message from Dana"
        assert body == "x" * 100 + "..."
        assert tag == "s-1"

    @pytest.mark.asyncio
    async def test_no_platform_notification_without_permission(self):
        feed = ChangeFeed()
        repo = AsyncMock()
        repo.create.side_effect = lambda n: n
        notifier = RecordingNotifier(permitted=False)
        service = NotificationService(repo, feed, platform_notifier=notifier)

        handle = service.subscribe("u-1", lambda row: None)
        await _create(service)
        await _drain()
        await handle.unsubscribe()

        assert notifier.shown == []

    def test_subscribe_requires_change_feed(self):
        with pytest.raises(RuntimeError):
            NotificationService(None).subscribe("u-1", lambda row: None)


class TestInbox:

    @pytest.mark.asyncio
    async def test_failed_mark_read_restores_list(self):
        service = AsyncMock()
        service.mark_as_read.side_effect = ResourceNotFoundException("Notification", "n-1")
        inbox = NotificationInbox(service, "u-1")
        inbox.add({"id": "n-1"})
        inbox.add({"id": "n-2"})

        assert await inbox.mark_as_read("n-1") is False
        assert [i["id"] for i in inbox.items] == ["n-2", "n-1"]

    @pytest.mark.asyncio
    async def test_row_pushed_during_failed_mark_read_survives(self):
        gate = asyncio.Event()

        async def slow_reject(notification_id, user_id):
            await gate.wait()
            raise ResourceNotFoundException("Notification", notification_id)

        service = AsyncMock()
        service.mark_as_read.side_effect = slow_reject
        inbox = NotificationInbox(service, "u-1")
        inbox.add({"id": "n-1"})

        pending = asyncio.create_task(inbox.mark_as_read("n-1"))
        await asyncio.sleep(0)
        assert inbox.items == []

        inbox.add({"id": "n-2"})
        gate.set()

        assert await pending is False
        assert [i["id"] for i in inbox.items] == ["n-2", "n-1"]

    @pytest.mark.asyncio
    async def test_failed_mark_all_keeps_chronological_order(self):
        service = AsyncMock()
        service.mark_all_as_read.return_value = False
        inbox = NotificationInbox(service, "u-1")
        inbox.add({"id": "n-1", "created_at": "2024-01-15T10:00:00+00:00"})
        inbox.add({"id": "n-3", "created_at": "2024-01-15T12:00:00+00:00"})
        inbox.add({"id": "n-2", "created_at": "2024-01-15T11:00:00+00:00"})

        assert await inbox.mark_all_as_read() is False
        assert [i["id"] for i in inbox.items] == ["n-3", "n-2", "n-1"]

    @pytest.mark.asyncio
    async def test_mark_read_removes_item(self):
        service = AsyncMock()
        service.mark_as_read.return_value = True
        inbox = NotificationInbox(service, "u-1")
        inbox.add({"id": "n-1"})
        inbox.add({"id": "n-1"})

        assert inbox.unread_count == 1
        assert await inbox.mark_as_read("n-1") is True
        assert inbox.unread_count == 0

    @pytest.mark.asyncio
    async def test_mark_all_read_clears(self):
        service = AsyncMock()
        service.mark_all_as_read.return_value = 2
        inbox = NotificationInbox(service, "u-1")
        inbox.add({"id": "n-1"})
        inbox.add({"id": "n-2"})

        assert await inbox.mark_all_as_read() is True
        assert inbox.items == []

    @pytest.mark.asyncio
    async def test_load_from_service(self, db_session):
        service = NotificationService(SQLAlchemyNotificationRepository(db_session))
        created = await _create(service)
        inbox = NotificationInbox(service, "u-1")

        items = await inbox.load()

        assert [i["id"] for i in items] == [created.id]
