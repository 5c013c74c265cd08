"""
Realtime Change Feed
====================

In-process push subscriptions on table changes.

A subscriber registers an event type (INSERT/UPDATE/DELETE), a table name
and an optional row filter, and receives every matching row on its own
bounded queue. Subscriptions must be closed explicitly.

Usage:
    subscription = feed.subscribe("chat_notifications", filter={"user_id": uid})
    async for row in subscription:
        ...
    subscription.close()

Writers that run inside a database transaction publish through
`feed.for_transaction(db)`: their rows reach subscribers once the
transaction commits and are discarded on rollback.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import event as sa_event

from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
VALID_EVENTS = (INSERT, UPDATE, DELETE)


class Subscription:
    """
    A single registered listener on the change feed.

    Rows are buffered on a bounded queue; when the queue is full new rows
    are dropped and counted rather than blocking the publisher.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        event: str,
        row_filter: Optional[Dict[str, Any]],
        queue_size: int
    ):
        self._feed = feed
        self.table = table
        self.event = event
        self.row_filter = dict(row_filter or {})
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, table: str, event: str, row: Dict[str, Any]) -> bool:
        """Check table, event type and every filter column."""
        if self._closed or table != self.table or event != self.event:
            return False
        return all(row.get(key) == value for key, value in self.row_filter.items())

    def offer(self, row: Dict[str, Any]) -> bool:
        """Enqueue without blocking. Returns False when the row was dropped."""
        try:
            self._queue.put_nowait(row)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Realtime subscriber queue full, dropping change",
                extra={"table": self.table, "event": self.event, "dropped": self.dropped}
            )
            return False

    async def get(self) -> Dict[str, Any]:
        """Wait for the next matching row."""
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> List[Dict[str, Any]]:
        """
        Unregister and drain.

        Returns rows that were delivered but never consumed.
        """
        if not self._closed:
            self._closed = True
            self._feed._remove(self)

        drained = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return drained

    def __aiter__(self):
        return self

    async def __anext__(self) -> Dict[str, Any]:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        return await self.get()


class ChangeFeed:
    """
    Publish/subscribe hub for row changes.

    Constructed once at application start and handed to the services that
    publish or subscribe; there is no module-level instance.
    """

    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._subscriptions: List[Subscription] = []
        self._total_published = 0
        self._total_delivered = 0

    def subscribe(
        self,
        table: str,
        event: str = INSERT,
        filter: Optional[Dict[str, Any]] = None,
        queue_size: Optional[int] = None
    ) -> Subscription:
        """Register a listener and return its subscription handle."""
        if event not in VALID_EVENTS:
            raise ValueError(f"event must be one of {VALID_EVENTS}")

        subscription = Subscription(
            self, table, event, filter, queue_size or self._queue_size
        )
        self._subscriptions.append(subscription)
        logger.info(
            "Realtime subscription opened",
            extra={"table": table, "event": event, "subscribers": len(self._subscriptions)}
        )
        return subscription

    def publish(self, table: str, event: str, row: Dict[str, Any]) -> int:
        """
        Deliver a changed row to every matching subscription.

        Returns:
            Number of subscriptions the row was delivered to
        """
        self._total_published += 1
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(table, event, row) and subscription.offer(row):
                delivered += 1
        self._total_delivered += delivered
        return delivered

    def for_transaction(self, db_session) -> "TransactionChanges":
        """
        Publisher bound to a database session.

        One buffer per session; repeated calls return the same one.
        """
        sync_session = getattr(db_session, "sync_session", db_session)
        buffer = sync_session.info.get(TRANSACTION_CHANGES_KEY)
        if buffer is None or buffer.feed is not self:
            buffer = TransactionChanges(self, sync_session)
            sync_session.info[TRANSACTION_CHANGES_KEY] = buffer
        return buffer

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.info(
                "Realtime subscription closed",
                extra={"table": subscription.table, "subscribers": len(self._subscriptions)}
            )

    def close_all(self) -> None:
        """Close every open subscription (shutdown)."""
        for subscription in list(self._subscriptions):
            subscription.close()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def stats(self) -> Dict[str, int]:
        return {
            "subscribers": len(self._subscriptions),
            "published": self._total_published,
            "delivered": self._total_delivered,
        }


TRANSACTION_CHANGES_KEY = "realtime_changes"


class TransactionChanges:
    """
    Holds rows published inside a transaction until it commits.

    Subscribers that re-read the store on a change would otherwise look
    before the row is visible to their own connection.
    """

    def __init__(self, feed: ChangeFeed, sync_session):
        self.feed = feed
        self._pending: List[Tuple[str, str, Dict[str, Any]]] = []
        sa_event.listen(sync_session, "after_commit", self._on_commit)
        sa_event.listen(sync_session, "after_rollback", self._on_rollback)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def publish(self, table: str, event: str, row: Dict[str, Any]) -> int:
        """Queue a change for delivery on commit. Returns 0 (nothing delivered yet)."""
        self._pending.append((table, event, row))
        return 0

    def _on_commit(self, session) -> None:
        pending, self._pending = self._pending, []
        for table, event, row in pending:
            self.feed.publish(table, event, row)

    def _on_rollback(self, session) -> None:
        if self._pending:
            logger.info(
                "Discarding changes from rolled back transaction",
                extra={"discarded": len(self._pending)}
            )
        self._pending = []
