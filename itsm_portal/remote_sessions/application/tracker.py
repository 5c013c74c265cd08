"""
Session Timing Tracker
======================

Computes SLA metrics for remote sessions and keeps the last result per
session, so a failed refresh still leaves the previous numbers visible.
"""

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from itsm_portal.core import utcnow
from itsm_portal.remote_sessions.domain import (
    SessionMetrics,
    SessionSLACalculator,
    TimingEvent,
)
from itsm_portal.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


@dataclass
class TimingSnapshot:
    """Everything the calculator needs about one session."""
    session_id: str
    started_at: Optional[datetime]
    events: List[TimingEvent] = field(default_factory=list)
    message_count: int = 0
    last_activity_at: Optional[datetime] = None
    closed: bool = False


class ITimingSource(ABC):
    """Loads timing snapshots (one store round-trip per refresh)."""

    @abstractmethod
    async def load(self, session_id: str) -> TimingSnapshot:
        """Fetch events newest first, message count and started_at."""


class SessionTimingTracker:
    """
    Per-session metrics with a last-known-good cache.

    A failed refresh is logged and the cached metrics are returned marked
    stale. There is no retry; the next event or poll tries again. With
    nothing cached the error propagates.

    Closed sessions are computed on demand and dropped from the cache.
    """

    def __init__(self, source: ITimingSource):
        self._source = source
        self._cache: Dict[str, SessionMetrics] = {}

    async def refresh(
        self,
        session_id: str,
        now: Optional[datetime] = None,
        source: Optional[ITimingSource] = None
    ) -> SessionMetrics:
        """
        Recompute metrics for a session.

        Args:
            source: loader to use instead of the default one for this call
                (request handlers pass one bound to their own db session)
        """
        try:
            with log_latency(logger, "session_metrics_refresh", session_id=session_id):
                snapshot = await (source or self._source).load(session_id)
        except Exception as e:
            cached = self._cache.get(session_id)
            logger.error(
                "Session metrics refresh failed",
                extra={"session_id": session_id, "error": str(e), "has_cached": cached is not None}
            )
            if cached is None:
                raise
            stale = dataclasses.replace(cached, stale=True)
            self._cache[session_id] = stale
            return stale

        metrics = SessionSLACalculator.calculate(
            session_id=session_id,
            events=snapshot.events,
            started_at=snapshot.started_at,
            message_count=snapshot.message_count,
            now=now or utcnow(),
            last_activity_at=snapshot.last_activity_at,
        )
        if snapshot.closed:
            self._cache.pop(session_id, None)
            return dataclasses.replace(metrics, closed=True)

        self._cache[session_id] = metrics
        return metrics

    def get_cached(self, session_id: str) -> Optional[SessionMetrics]:
        return self._cache.get(session_id)

    def forget(self, session_id: str) -> None:
        self._cache.pop(session_id, None)

    @property
    def tracked_sessions(self) -> List[str]:
        return list(self._cache)
