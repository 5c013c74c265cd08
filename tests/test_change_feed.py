"""Tests for the in-process change feed."""

import pytest

from itsm_portal.infrastructure.realtime import ChangeFeed, DELETE, INSERT, UPDATE


class TestChangeFeed:

    def test_publish_reaches_matching_subscribers_only(self):
        feed = ChangeFeed()
        mine = feed.subscribe("chat_notifications", INSERT, filter={"user_id": "u-1"})
        theirs = feed.subscribe("chat_notifications", INSERT, filter={"user_id": "u-2"})
        updates = feed.subscribe("chat_notifications", UPDATE)

        delivered = feed.publish("chat_notifications", INSERT, {"id": "n-1", "user_id": "u-1"})

        assert delivered == 1
        assert mine.pending() == 1
        assert theirs.pending() == 0
        assert updates.pending() == 0

    def test_other_tables_are_ignored(self):
        feed = ChangeFeed()
        subscription = feed.subscribe("remote_session_timing")
        assert feed.publish("chat_notifications", INSERT, {"id": "n-1"}) == 0
        assert subscription.pending() == 0

    def test_full_queue_drops_instead_of_blocking(self):
        feed = ChangeFeed(queue_size=2)
        subscription = feed.subscribe("t")

        for i in range(3):
            feed.publish("t", INSERT, {"id": i})

        assert subscription.pending() == 2
        assert subscription.dropped == 1
        assert feed.stats() == {"subscribers": 1, "published": 3, "delivered": 2}

    def test_close_unregisters_and_returns_undelivered(self):
        feed = ChangeFeed()
        subscription = feed.subscribe("t", DELETE)
        feed.publish("t", DELETE, {"id": 1})

        leftover = subscription.close()

        assert leftover == [{"id": 1}]
        assert subscription.closed
        assert feed.subscriber_count == 0
        assert feed.publish("t", DELETE, {"id": 2}) == 0

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            ChangeFeed().subscribe("t", "TRUNCATE")

    @pytest.mark.asyncio
    async def test_async_iteration_yields_rows_in_order(self):
        feed = ChangeFeed()
        subscription = feed.subscribe("t")
        feed.publish("t", INSERT, {"id": 1})
        feed.publish("t", INSERT, {"id": 2})

        received = []
        async for row in subscription:
            received.append(row["id"])
            if len(received) == 2:
                subscription.close()

        assert received == [1, 2]

    def test_close_all(self):
        feed = ChangeFeed()
        feed.subscribe("a")
        feed.subscribe("b")
        feed.close_all()
        assert feed.subscriber_count == 0
