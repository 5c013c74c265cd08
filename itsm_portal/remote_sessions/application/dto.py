"""
Remote Session Application DTOs
===============================

Pydantic models for remote session API requests and responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from itsm_portal.remote_sessions.domain import (
    EscalationRule,
    RemoteSession,
    SessionMessage,
    SessionMetrics,
    TimingEvent,
)


# ========== Type Aliases for Literals ==========
SessionStatusStr = Literal["pending", "approved", "denied", "active", "completed", "cancelled"]
EscalationTypeStr = Literal["supervisor_request", "supervisor_takeover", "manual_escalation"]


# ========== Request DTOs ==========

class SessionRequestCreate(BaseModel):
    target_user_id: Optional[str] = Field(None, description="User whose desktop is requested")
    purpose: Optional[str] = Field(None, description="Why the session is needed")


class SessionDecisionRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class EscalationRequest(BaseModel):
    escalation_type: EscalationTypeStr = "manual_escalation"
    reason: Optional[str] = Field(None, max_length=2000)


class MessageCreateRequest(BaseModel):
    message_content: str = Field(..., min_length=1, max_length=10000)
    message_type: str = Field(default="text", max_length=50)


class TimingEventCreateRequest(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=100)
    response_time_seconds: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)


# ========== Response DTOs ==========

class RemoteSessionResponse(BaseModel):
    id: str
    session_code: str
    requester_id: str
    target_user_id: str
    status: SessionStatusStr
    purpose: str
    requested_at: datetime
    approved_at: Optional[datetime] = None
    denied_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    approval_notes: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, session: RemoteSession) -> "RemoteSessionResponse":
        return cls(
            id=session.id,
            session_code=session.session_code,
            requester_id=session.requester_id,
            target_user_id=session.target_user_id,
            status=session.status.value,
            purpose=session.purpose,
            requested_at=session.requested_at,
            approved_at=session.approved_at,
            denied_at=session.denied_at,
            started_at=session.started_at,
            ended_at=session.ended_at,
            duration_minutes=session.duration_minutes,
            approval_notes=session.approval_notes,
            metadata=session.metadata,
        )


class SessionMessageResponse(BaseModel):
    id: str
    session_id: str
    sender_id: str
    sender_type: Literal["requester", "target", "system"]
    message_content: str
    message_type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_domain(cls, message: SessionMessage) -> "SessionMessageResponse":
        return cls(
            id=message.id,
            session_id=message.session_id,
            sender_id=message.sender_id,
            sender_type=message.sender_type.value,
            message_content=message.message_content,
            message_type=message.message_type,
            metadata=message.metadata,
            created_at=message.created_at,
        )


class TimingEventResponse(BaseModel):
    id: str
    session_id: str
    event_type: str
    event_timestamp: datetime
    response_time_seconds: Optional[int] = None
    notes: Optional[str] = None
    triggered_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    total_session_duration_seconds: Optional[int] = None

    @classmethod
    def from_domain(cls, event: TimingEvent) -> "TimingEventResponse":
        return cls(
            id=event.id,
            session_id=event.session_id,
            event_type=event.event_type,
            event_timestamp=event.event_timestamp,
            response_time_seconds=event.response_time_seconds,
            notes=event.notes,
            triggered_by=event.triggered_by,
            metadata=event.metadata,
            total_session_duration_seconds=event.total_session_duration_seconds,
        )


class SessionMetricsResponse(BaseModel):
    session_id: str
    avg_response_time: float = Field(..., description="Seconds")
    total_duration: int = Field(..., description="Seconds since the session started")
    message_count: int
    escalation_risk: Literal["low", "medium", "high"]
    sla_status: Literal["on_track", "at_risk", "violated"]
    duration_progress: float = Field(..., ge=0, le=100)
    response_progress: float = Field(..., ge=0, le=100)
    computed_at: datetime
    stale: bool = Field(default=False, description="True when the last refresh failed")

    @classmethod
    def from_domain(cls, metrics: SessionMetrics) -> "SessionMetricsResponse":
        return cls(
            session_id=metrics.session_id,
            avg_response_time=metrics.avg_response_time,
            total_duration=metrics.total_duration,
            message_count=metrics.message_count,
            escalation_risk=metrics.escalation_risk.value,
            sla_status=metrics.sla_status.value,
            duration_progress=metrics.duration_progress,
            response_progress=metrics.response_progress,
            computed_at=metrics.computed_at,
            stale=metrics.stale,
        )


class EscalationRuleResponse(BaseModel):
    name: str
    trigger_condition: str
    threshold_minutes: int
    escalation_action: str

    @classmethod
    def from_domain(cls, rule: EscalationRule) -> "EscalationRuleResponse":
        return cls(
            name=rule.name,
            trigger_condition=rule.trigger_condition.value,
            threshold_minutes=rule.threshold_minutes,
            escalation_action=rule.escalation_action,
        )


class EscalationStatusResponse(BaseModel):
    session_id: str
    triggered_rules: List[EscalationRuleResponse] = Field(default_factory=list)
    history: List[TimingEventResponse] = Field(default_factory=list)
