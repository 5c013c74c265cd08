"""
Remote Session Value Objects
============================

Immutable rules for remote support sessions:

- SessionLifecycle: allowed status transitions
- SessionSLACalculator: timing metrics and risk classification
- EscalationRule / EscalationPolicy: YAML-configured escalation triggers
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field

from itsm_portal.config import (
    EscalationRisk,
    SessionStatus,
    SLAStatus,
    TriggerCondition,
)
from itsm_portal.core import InvalidTransitionException, ensure_utc

if TYPE_CHECKING:
    from itsm_portal.remote_sessions.domain.entities import TimingEvent


class SessionLifecycle:
    """
    Allowed remote session status transitions.

    denied, completed and cancelled are terminal.
    """

    TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
        SessionStatus.PENDING: frozenset({
            SessionStatus.APPROVED, SessionStatus.DENIED, SessionStatus.CANCELLED
        }),
        SessionStatus.APPROVED: frozenset({SessionStatus.ACTIVE, SessionStatus.CANCELLED}),
        SessionStatus.ACTIVE: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
        SessionStatus.DENIED: frozenset(),
        SessionStatus.COMPLETED: frozenset(),
        SessionStatus.CANCELLED: frozenset(),
    }

    @classmethod
    def can_transition(cls, current: SessionStatus, new: SessionStatus) -> bool:
        return new in cls.TRANSITIONS.get(current, frozenset())

    @classmethod
    def validate(cls, current: SessionStatus, new: SessionStatus) -> None:
        if not cls.can_transition(current, new):
            raise InvalidTransitionException("Remote session", current.value, new.value)

    @classmethod
    def is_terminal(cls, status: SessionStatus) -> bool:
        return not cls.TRANSITIONS.get(status)


# Classification bands (seconds)
HIGH_RISK_AVG_RESPONSE = 300
HIGH_RISK_DURATION = 1800
MEDIUM_RISK_AVG_RESPONSE = 180
MEDIUM_RISK_DURATION = 1200

# Progress bar scales (seconds). These do not line up with the bands above:
# the duration bar fills at the high band, the response bar at the medium one.
DURATION_PROGRESS_SCALE = 1800
RESPONSE_PROGRESS_SCALE = 180


@dataclass(frozen=True)
class SessionMetrics:
    """Derived timing metrics for one remote session."""

    session_id: str
    avg_response_time: float
    total_duration: int
    message_count: int
    escalation_risk: EscalationRisk
    sla_status: SLAStatus
    duration_progress: float
    response_progress: float
    computed_at: datetime
    last_activity_at: Optional[datetime] = None
    stale: bool = False
    # Session is completed, denied or cancelled; such metrics are never cached
    closed: bool = False


class SessionSLACalculator:
    """
    Pure functions for session SLA calculations.

    Stateless utility class, so the tracker and the tests share one
    implementation of the thresholds.
    """

    @staticmethod
    def average_response_time(events: Iterable["TimingEvent"]) -> float:
        """Mean of the positive response times; 0 when there are none."""
        samples = [
            e.response_time_seconds for e in events
            if e.response_time_seconds and e.response_time_seconds > 0
        ]
        if not samples:
            return 0.0
        return sum(samples) / len(samples)

    @staticmethod
    def total_duration(started_at: Optional[datetime], now: datetime) -> int:
        """Whole seconds since the session started; 0 before it starts."""
        if started_at is None:
            return 0
        return max(0, int((ensure_utc(now) - ensure_utc(started_at)).total_seconds()))

    @staticmethod
    def classify(avg_response_time: float, total_duration: int) -> tuple[EscalationRisk, SLAStatus]:
        """Three-level risk classification with fixed thresholds."""
        if avg_response_time > HIGH_RISK_AVG_RESPONSE or total_duration > HIGH_RISK_DURATION:
            return EscalationRisk.HIGH, SLAStatus.VIOLATED
        if avg_response_time > MEDIUM_RISK_AVG_RESPONSE or total_duration > MEDIUM_RISK_DURATION:
            return EscalationRisk.MEDIUM, SLAStatus.AT_RISK
        return EscalationRisk.LOW, SLAStatus.ON_TRACK

    @staticmethod
    def progress(total_duration: int, avg_response_time: float) -> tuple[float, float]:
        """Dashboard bar values, each capped at 100."""
        duration_progress = min(total_duration / DURATION_PROGRESS_SCALE * 100, 100.0)
        response_progress = min(avg_response_time / RESPONSE_PROGRESS_SCALE * 100, 100.0)
        return duration_progress, response_progress

    @classmethod
    def calculate(
        cls,
        session_id: str,
        events: List["TimingEvent"],
        started_at: Optional[datetime],
        message_count: int,
        now: datetime,
        last_activity_at: Optional[datetime] = None
    ) -> SessionMetrics:
        """
        Compute the full metric set.

        Args:
            session_id: Session being measured
            events: Timing events (any order)
            started_at: When the session went active, if it has
            message_count: Number of session messages
            now: Evaluation time
            last_activity_at: Latest message timestamp, if any
        """
        avg = cls.average_response_time(events)
        duration = cls.total_duration(started_at, now)
        risk, status = cls.classify(avg, duration)
        duration_progress, response_progress = cls.progress(duration, avg)

        return SessionMetrics(
            session_id=session_id,
            avg_response_time=avg,
            total_duration=duration,
            message_count=message_count,
            escalation_risk=risk,
            sla_status=status,
            duration_progress=duration_progress,
            response_progress=response_progress,
            computed_at=now,
            last_activity_at=last_activity_at,
        )


class EscalationRule(BaseModel):
    """A single escalation trigger loaded from YAML."""
    name: str = Field(..., min_length=1)
    trigger_condition: TriggerCondition
    threshold_minutes: int = Field(..., ge=0, description="Trigger when strictly exceeded")
    escalation_action: str = Field(default="notify_supervisor")
    is_active: bool = Field(default=True)

    def is_triggered(self, metrics: SessionMetrics, now: datetime) -> bool:
        """Compare whole elapsed minutes against the threshold."""
        if self.trigger_condition == TriggerCondition.SESSION_DURATION_EXCEEDED:
            return metrics.total_duration // 60 > self.threshold_minutes

        if self.trigger_condition == TriggerCondition.RESPONSE_TIME_EXCEEDED:
            return int(metrics.avg_response_time // 60) > self.threshold_minutes

        if self.trigger_condition == TriggerCondition.USER_INACTIVITY:
            if metrics.last_activity_at is None:
                return False
            inactive = (ensure_utc(now) - ensure_utc(metrics.last_activity_at)).total_seconds()
            return int(inactive // 60) > self.threshold_minutes

        return False


class EscalationPolicy(BaseModel):
    """
    Escalation rules loaded from YAML.

    This is a value object - replaced wholesale on reload.
    """
    rules: List[EscalationRule] = Field(default_factory=list)

    def active_rules(self) -> List[EscalationRule]:
        """Active rules ordered by threshold."""
        return sorted(
            (r for r in self.rules if r.is_active),
            key=lambda r: r.threshold_minutes
        )

    def evaluate(self, metrics: SessionMetrics, now: datetime) -> List[EscalationRule]:
        """Active rules currently triggered by the metrics."""
        return [r for r in self.active_rules() if r.is_triggered(metrics, now)]
