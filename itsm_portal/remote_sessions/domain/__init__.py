"""
Remote Session Domain Layer
===========================

Contains:
- Entities: RemoteSession, TimingEvent, SessionMessage
- Value Objects: SessionLifecycle, SessionSLACalculator, SessionMetrics,
  EscalationRule, EscalationPolicy

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from itsm_portal.remote_sessions.domain.value_objects import (
    SessionLifecycle,
    SessionSLACalculator,
    SessionMetrics,
    EscalationRule,
    EscalationPolicy,
)
from itsm_portal.remote_sessions.domain.entities import (
    RemoteSession,
    TimingEvent,
    SessionMessage,
    SESSION_APPROVED,
    SESSION_DENIED,
    SESSION_STARTED,
    SESSION_ENDED,
    SESSION_CANCELLED,
    SESSION_PAUSED,
    SESSION_RESUMED,
    ESCALATION_TRIGGERED,
)

__all__ = [
    # Entities
    "RemoteSession",
    "TimingEvent",
    "SessionMessage",
    # Value Objects
    "SessionLifecycle",
    "SessionSLACalculator",
    "SessionMetrics",
    "EscalationRule",
    "EscalationPolicy",
    # Timing event types
    "SESSION_APPROVED",
    "SESSION_DENIED",
    "SESSION_STARTED",
    "SESSION_ENDED",
    "SESSION_CANCELLED",
    "SESSION_PAUSED",
    "SESSION_RESUMED",
    "ESCALATION_TRIGGERED",
]
