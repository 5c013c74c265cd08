"""Tests for the session timing tracker and the SLA monitor."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from itsm_portal.config import SLAStatus
from itsm_portal.infrastructure.realtime import ChangeFeed, INSERT
from itsm_portal.remote_sessions.application import (
    ITimingSource,
    SessionTimingTracker,
    TimingSnapshot,
    TIMING_EVENTS_TABLE,
)
from itsm_portal.remote_sessions.domain import EscalationPolicy, TimingEvent
from itsm_portal.remote_sessions.infrastructure import ALERT_ESCALATION_RULE, ALERT_SLA_VIOLATED
from itsm_portal.remote_sessions.services import SessionSLAMonitor

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeSource(ITimingSource):
    """Returns a configurable snapshot, or raises when ``error`` is set."""

    def __init__(self, started_at=None, events=None, message_count=0):
        self.snapshot = TimingSnapshot(
            session_id="s-1",
            started_at=started_at,
            events=events or [],
            message_count=message_count,
        )
        self.error = None
        self.calls = 0

    async def load(self, session_id):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.snapshot


def _rules_manager(rules=None):
    manager = MagicMock()
    manager.policy = EscalationPolicy(rules=rules or [])
    return manager


class TestSessionTimingTracker:

    @pytest.mark.asyncio
    async def test_refresh_computes_and_caches(self):
        source = FakeSource(started_at=NOW - timedelta(minutes=25), message_count=4)
        tracker = SessionTimingTracker(source)

        metrics = await tracker.refresh("s-1", now=NOW)

        assert metrics.total_duration == 1500
        assert metrics.sla_status == SLAStatus.AT_RISK
        assert metrics.message_count == 4
        assert not metrics.stale
        assert tracker.get_cached("s-1") is metrics
        assert tracker.tracked_sessions == ["s-1"]

    @pytest.mark.asyncio
    async def test_failed_refresh_returns_stale_cache(self):
        source = FakeSource(started_at=NOW)
        tracker = SessionTimingTracker(source)
        first = await tracker.refresh("s-1", now=NOW)

        source.error = ConnectionError("db gone")
        second = await tracker.refresh("s-1", now=NOW + timedelta(minutes=1))

        assert second.stale
        assert second.total_duration == first.total_duration

    @pytest.mark.asyncio
    async def test_failed_refresh_without_cache_raises(self):
        source = FakeSource()
        source.error = ConnectionError("db gone")
        tracker = SessionTimingTracker(source)

        with pytest.raises(ConnectionError):
            await tracker.refresh("s-1", now=NOW)

    @pytest.mark.asyncio
    async def test_per_call_source_override(self):
        default = FakeSource()
        override = FakeSource(message_count=9)
        tracker = SessionTimingTracker(default)

        metrics = await tracker.refresh("s-1", now=NOW, source=override)

        assert metrics.message_count == 9
        assert default.calls == 0

    @pytest.mark.asyncio
    async def test_closed_session_is_not_cached(self):
        source = FakeSource(started_at=NOW - timedelta(minutes=5))
        tracker = SessionTimingTracker(source)
        await tracker.refresh("s-1", now=NOW)

        source.snapshot.closed = True
        metrics = await tracker.refresh("s-1", now=NOW)

        assert metrics.closed
        assert metrics.total_duration == 300
        assert tracker.get_cached("s-1") is None
        assert tracker.tracked_sessions == []

    @pytest.mark.asyncio
    async def test_forget_clears_cache(self):
        tracker = SessionTimingTracker(FakeSource())
        await tracker.refresh("s-1", now=NOW)
        tracker.forget("s-1")
        assert tracker.get_cached("s-1") is None


class TestSessionSLAMonitor:

    @pytest.mark.asyncio
    async def test_alert_only_when_newly_violated(self):
        source = FakeSource(started_at=NOW - timedelta(minutes=31))
        slack = AsyncMock()
        monitor = SessionSLAMonitor(SessionTimingTracker(source), _rules_manager(), slack)

        first = await monitor.evaluate_session("s-1", now=NOW)
        second = await monitor.evaluate_session("s-1", now=NOW + timedelta(seconds=30))

        assert [a.alert_type for a in first] == [ALERT_SLA_VIOLATED]
        assert second == []
        slack.send_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rule_alert_fires_once_while_triggered(self):
        source = FakeSource(started_at=NOW - timedelta(minutes=11))
        slack = AsyncMock()
        rules = [{
            "name": "ten_minutes",
            "trigger_condition": "session_duration_exceeded",
            "threshold_minutes": 10,
            "escalation_action": "page_on_call",
        }]
        monitor = SessionSLAMonitor(SessionTimingTracker(source), _rules_manager(rules), slack)

        alerts = await monitor.evaluate_session("s-1", now=NOW)
        again = await monitor.evaluate_session("s-1", now=NOW + timedelta(seconds=5))

        assert len(alerts) == 1
        assert alerts[0].alert_type == ALERT_ESCALATION_RULE
        assert alerts[0].rule_name == "ten_minutes"
        assert alerts[0].escalation_action == "page_on_call"
        assert again == []

    @pytest.mark.asyncio
    async def test_stale_metrics_send_nothing(self):
        source = FakeSource(started_at=NOW - timedelta(minutes=5))
        slack = AsyncMock()
        monitor = SessionSLAMonitor(SessionTimingTracker(source), _rules_manager(), slack)
        await monitor.evaluate_session("s-1", now=NOW)

        source.snapshot.started_at = NOW - timedelta(hours=2)
        source.error = ConnectionError("db gone")
        alerts = await monitor.evaluate_session("s-1", now=NOW)

        assert alerts == []
        slack.send_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_evaluation_error_is_logged_not_raised(self):
        source = FakeSource()
        source.error = ConnectionError("db gone")
        monitor = SessionSLAMonitor(SessionTimingTracker(source), _rules_manager(), AsyncMock())

        assert await monitor.evaluate_session("s-1", now=NOW) == []

    @pytest.mark.asyncio
    async def test_poll_evaluates_active_sessions(self):
        source = FakeSource(started_at=NOW - timedelta(minutes=45))
        slack = AsyncMock()
        active = AsyncMock(return_value=["s-1", "s-2"])
        monitor = SessionSLAMonitor(
            SessionTimingTracker(source), _rules_manager(), slack, active_sessions=active
        )

        summary = await monitor.poll()

        assert summary == {"sessions_evaluated": 2, "alerts_sent": 2}

    @pytest.mark.asyncio
    async def test_closing_event_forgets_session(self):
        tracker = SessionTimingTracker(FakeSource(started_at=NOW))
        monitor = SessionSLAMonitor(tracker, _rules_manager(), AsyncMock())
        await monitor.evaluate_session("s-1", now=NOW)

        alerts = await monitor.handle_timing_event(
            {"session_id": "s-1", "event_type": "session_ended"}
        )

        assert alerts == []
        assert tracker.get_cached("s-1") is None

    @pytest.mark.asyncio
    async def test_consumes_timing_inserts_from_change_feed(self):
        feed = ChangeFeed()
        source = FakeSource(started_at=NOW)
        tracker = SessionTimingTracker(source)
        monitor = SessionSLAMonitor(tracker, _rules_manager(), AsyncMock(), change_feed=feed)
        monitor.handle_timing_event = AsyncMock(return_value=[])

        await monitor.start()
        row = TimingEvent(id="e-1", session_id="s-1", event_type="message_response").to_row()
        assert feed.publish(TIMING_EVENTS_TABLE, INSERT, row) == 1

        # Let the consumer task run
        for _ in range(5):
            if monitor.handle_timing_event.await_count:
                break
            await asyncio.sleep(0)
        await monitor.stop()

        monitor.handle_timing_event.assert_awaited_once_with(row)
        assert feed.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_closed_session_state_is_dropped(self):
        source = FakeSource(started_at=NOW - timedelta(minutes=31))
        slack = AsyncMock()
        monitor = SessionSLAMonitor(SessionTimingTracker(source), _rules_manager(), slack)
        await monitor.evaluate_session("s-1", now=NOW)
        assert "s-1" in monitor._last_status

        source.snapshot.closed = True
        alerts = await monitor.evaluate_session("s-1", now=NOW)

        assert alerts == []
        assert "s-1" not in monitor._last_status
        assert "s-1" not in monitor._triggered
