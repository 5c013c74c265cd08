"""
Remote Session Domain Entities
==============================

Pure Python domain entities for brokered remote support sessions.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from itsm_portal.config import SenderType, SessionStatus
from itsm_portal.core import utcnow
from itsm_portal.remote_sessions.domain.value_objects import SessionLifecycle


# Timing event types written by the session workflow
SESSION_APPROVED = "session_approved"
SESSION_DENIED = "session_denied"
SESSION_STARTED = "session_started"
SESSION_ENDED = "session_ended"
SESSION_CANCELLED = "session_cancelled"
SESSION_PAUSED = "session_paused"
SESSION_RESUMED = "session_resumed"
ESCALATION_TRIGGERED = "escalation_triggered"


@dataclass
class RemoteSession:
    """
    Remote desktop session between a requester and a target user.

    Only the target user may approve or deny a pending request.
    """

    id: Optional[str]
    session_code: str
    requester_id: str
    target_user_id: str
    purpose: str
    status: SessionStatus = SessionStatus.PENDING

    requested_at: datetime = field(default_factory=utcnow)
    approved_at: Optional[datetime] = None
    denied_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    approval_notes: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.requester_id, self.target_user_id)

    def other_participant(self, user_id: str) -> str:
        return self.target_user_id if user_id == self.requester_id else self.requester_id

    def sender_type_for(self, user_id: str) -> SenderType:
        return SenderType.REQUESTER if user_id == self.requester_id else SenderType.TARGET

    @property
    def is_terminal(self) -> bool:
        return SessionLifecycle.is_terminal(self.status)

    @property
    def is_paused(self) -> bool:
        return bool(self.metadata.get("paused"))

    def transition_to(self, new_status: SessionStatus, timestamp: Optional[datetime] = None) -> datetime:
        """
        Move to a new status and stamp the matching timestamp.

        Returns:
            The timestamp used
        """
        SessionLifecycle.validate(self.status, new_status)
        now = timestamp or utcnow()

        if new_status == SessionStatus.APPROVED:
            self.approved_at = now
        elif new_status == SessionStatus.DENIED:
            self.denied_at = now
        elif new_status == SessionStatus.ACTIVE:
            self.started_at = now
        elif new_status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED):
            self.ended_at = now
            if new_status == SessionStatus.COMPLETED and self.started_at is not None:
                self.duration_minutes = self.duration_seconds(now) // 60

        self.status = new_status
        return now

    def duration_seconds(self, now: Optional[datetime] = None) -> int:
        if self.started_at is None:
            return 0
        end = self.ended_at or now or utcnow()
        return max(0, int((end - self.started_at).total_seconds()))

    def approval_wait_seconds(self) -> Optional[int]:
        """Seconds between the request and the approval."""
        if self.approved_at is None:
            return None
        return max(0, int((self.approved_at - self.requested_at).total_seconds()))


@dataclass
class TimingEvent:
    """Append-only record of something that happened in a session."""

    id: Optional[str]
    session_id: str
    event_type: str
    event_timestamp: datetime = field(default_factory=utcnow)
    response_time_seconds: Optional[int] = None
    notes: Optional[str] = None
    triggered_by: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    total_session_duration_seconds: Optional[int] = None

    def to_row(self) -> Dict[str, Any]:
        """Change-feed payload."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "event_type": self.event_type,
            "event_timestamp": self.event_timestamp.isoformat(),
            "response_time_seconds": self.response_time_seconds,
            "notes": self.notes,
            "triggered_by": self.triggered_by,
            "metadata": dict(self.metadata),
            "total_session_duration_seconds": self.total_session_duration_seconds,
        }


@dataclass
class SessionMessage:
    """Chat message exchanged inside a session."""

    id: Optional[str]
    session_id: str
    sender_id: str
    sender_type: SenderType
    message_content: str
    message_type: str = "text"
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
