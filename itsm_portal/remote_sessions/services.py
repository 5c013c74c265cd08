"""
Remote Session Monitoring Services
==================================

Coordinates metric refreshes and Slack alerting for active sessions.

Refreshes happen on two triggers:
1. Every timing event insert published on the change feed
2. A fixed-interval poll over all active sessions
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Set

from itsm_portal.config import SLAStatus
from itsm_portal.core import utcnow
from itsm_portal.infrastructure.database import get_session_context
from itsm_portal.infrastructure.realtime import ChangeFeed, INSERT, Subscription
from itsm_portal.remote_sessions.application import SessionTimingTracker, TIMING_EVENTS_TABLE
from itsm_portal.remote_sessions.domain import (
    SessionMetrics,
    SESSION_CANCELLED,
    SESSION_ENDED,
)
from itsm_portal.remote_sessions.infrastructure import (
    ALERT_ESCALATION_RULE,
    ALERT_SLA_VIOLATED,
    EscalationRulesManager,
    SessionAlert,
    SlackClient,
    SQLAlchemyRemoteSessionRepository,
)
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SESSION_CLOSING_EVENTS = (SESSION_ENDED, SESSION_CANCELLED)


async def list_active_session_ids() -> List[str]:
    """Active session ids, read in a session of their own."""
    async with get_session_context() as db:
        return await SQLAlchemyRemoteSessionRepository(db).list_active_ids()


class SessionSLAMonitor:
    """
    Refreshes session metrics and raises alerts.

    An alert goes out when a session's SLA status moves into violated, or
    when an escalation rule triggers that was not triggered on the
    previous refresh. Stale metrics never raise alerts.
    """

    def __init__(
        self,
        tracker: SessionTimingTracker,
        rules_manager: EscalationRulesManager,
        slack_client: SlackClient,
        change_feed: Optional[ChangeFeed] = None,
        active_sessions: Callable[[], Awaitable[List[str]]] = list_active_session_ids
    ):
        self._tracker = tracker
        self._rules_manager = rules_manager
        self._slack_client = slack_client
        self._change_feed = change_feed
        self._active_sessions = active_sessions

        self._last_status: Dict[str, SLAStatus] = {}
        self._triggered: Dict[str, Set[str]] = {}
        self._subscription: Optional[Subscription] = None
        self._consumer: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Subscribe to timing event inserts."""
        if self._change_feed is None or self._consumer is not None:
            return
        self._subscription = self._change_feed.subscribe(TIMING_EVENTS_TABLE, INSERT)
        self._consumer = asyncio.create_task(self._consume())
        logger.info("Session SLA monitor subscribed to timing events")

    async def stop(self) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def _consume(self) -> None:
        async for row in self._subscription:
            await self.handle_timing_event(row)

    async def handle_timing_event(self, row: dict) -> List[SessionAlert]:
        session_id = row.get("session_id")
        if not session_id:
            return []

        if row.get("event_type") in SESSION_CLOSING_EVENTS:
            self.forget(session_id)
            return []

        return await self.evaluate_session(session_id)

    def forget(self, session_id: str) -> None:
        self._tracker.forget(session_id)
        self._last_status.pop(session_id, None)
        self._triggered.pop(session_id, None)

    async def poll(self) -> dict:
        """
        Refresh every active session.

        Returns:
            Summary of the poll
        """
        session_ids = await self._active_sessions()
        alerts_sent = 0
        for session_id in session_ids:
            alerts = await self.evaluate_session(session_id)
            alerts_sent += len(alerts)

        return {"sessions_evaluated": len(session_ids), "alerts_sent": alerts_sent}

    async def evaluate_session(
        self,
        session_id: str,
        now: Optional[datetime] = None
    ) -> List[SessionAlert]:
        """Refresh one session and send whatever alerts are due."""
        now = now or utcnow()
        try:
            metrics = await self._tracker.refresh(session_id, now=now)
        except Exception as e:
            logger.error(
                "Session evaluation skipped",
                extra={"session_id": session_id, "error": str(e)}
            )
            return []

        if metrics.closed:
            self.forget(session_id)
            return []
        if metrics.stale:
            return []

        alerts = self._collect_alerts(metrics, now)
        for alert in alerts:
            await self._slack_client.send_alert(alert)
        return alerts

    def _collect_alerts(self, metrics: SessionMetrics, now: datetime) -> List[SessionAlert]:
        session_id = metrics.session_id
        alerts = []

        previous = self._last_status.get(session_id)
        self._last_status[session_id] = metrics.sla_status
        if metrics.sla_status == SLAStatus.VIOLATED and previous != SLAStatus.VIOLATED:
            alerts.append(self._alert(metrics, ALERT_SLA_VIOLATED, now))

        triggered = self._rules_manager.policy.evaluate(metrics, now)
        already = self._triggered.get(session_id, set())
        for rule in triggered:
            if rule.name not in already:
                alerts.append(self._alert(
                    metrics,
                    ALERT_ESCALATION_RULE,
                    now,
                    rule_name=rule.name,
                    escalation_action=rule.escalation_action,
                ))
        self._triggered[session_id] = {rule.name for rule in triggered}

        return alerts

    @staticmethod
    def _alert(
        metrics: SessionMetrics,
        alert_type: str,
        now: datetime,
        rule_name: Optional[str] = None,
        escalation_action: Optional[str] = None
    ) -> SessionAlert:
        return SessionAlert(
            session_id=metrics.session_id,
            alert_type=alert_type,
            escalation_risk=metrics.escalation_risk.value,
            sla_status=metrics.sla_status.value,
            total_duration=metrics.total_duration,
            avg_response_time=metrics.avg_response_time,
            timestamp=now.isoformat(),
            rule_name=rule_name,
            escalation_action=escalation_action,
        )
