"""
Incident Domain Entities
========================

Pure Python domain entities for incident tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from itsm_portal.config import IncidentStatus, Priority, ResolutionMethod
from itsm_portal.core import utcnow
from itsm_portal.incidents.domain.value_objects import IncidentLifecycle


def _minutes_between(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() // 60))


@dataclass
class Incident:
    """
    Incident entity representing a self-service ticket.

    Owned by the user who submitted it; never hard-deleted.
    """

    id: Optional[str]
    title: str
    description: str
    priority: Priority
    category: str
    user_id: str
    status: IncidentStatus = IncidentStatus.OPEN
    assignee: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    # Timing bookkeeping
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    response_time_minutes: Optional[int] = None
    resolution_time_minutes: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.status in (IncidentStatus.OPEN, IncidentStatus.IN_PROGRESS)

    def change_status(
        self,
        new_status: IncidentStatus,
        assignee: Optional[str] = None,
        strict: bool = True,
        timestamp: Optional[datetime] = None
    ) -> None:
        """
        Apply a status change.

        Moving Open -> In Progress for the first time records the first
        response; moving to Resolved records the resolution.
        """
        if strict:
            IncidentLifecycle.validate(self.status, new_status)

        now = timestamp or utcnow()

        if (
            new_status == IncidentStatus.IN_PROGRESS
            and self.status == IncidentStatus.OPEN
            and self.first_response_at is None
        ):
            self.first_response_at = now
            self.response_time_minutes = _minutes_between(self.created_at, now)

        if new_status == IncidentStatus.RESOLVED and self.status != IncidentStatus.RESOLVED:
            self.resolved_at = now
            self.resolution_time_minutes = _minutes_between(self.created_at, now)

        if assignee is not None:
            self.assignee = assignee

        self.status = new_status
        self.updated_at = now


@dataclass
class IncidentFeedback:
    """Satisfaction rating left by the incident owner."""

    id: Optional[str]
    incident_id: str
    user_id: str
    satisfaction_rating: int
    feedback_text: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not 1 <= self.satisfaction_rating <= 5:
            raise ValueError("satisfaction_rating must be between 1 and 5")


# Confidence recorded with each resolution, by method
AUTO_RESOLUTION_CONFIDENCE = 0.85
ASSISTED_RESOLUTION_CONFIDENCE = 0.60


@dataclass
class ResolutionRecord:
    """
    Resolution statistics row, one per resolve action.

    Copies the incident's timing and category at resolve time; the
    owner's satisfaction score is filled in when feedback arrives.
    """

    id: Optional[str]
    incident_id: str
    resolution_method: ResolutionMethod
    resolved_at: Optional[datetime]
    category: Optional[str] = None
    resolution_time_minutes: Optional[int] = None
    response_time_minutes: Optional[int] = None
    confidence_score: Optional[float] = None
    user_satisfaction_score: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def for_incident(cls, incident: Incident, method: ResolutionMethod) -> "ResolutionRecord":
        return cls(
            id=None,
            incident_id=incident.id,
            resolution_method=method,
            resolved_at=incident.resolved_at,
            category=incident.category,
            resolution_time_minutes=incident.resolution_time_minutes,
            response_time_minutes=incident.response_time_minutes,
            confidence_score=(
                AUTO_RESOLUTION_CONFIDENCE if method == ResolutionMethod.AUTO
                else ASSISTED_RESOLUTION_CONFIDENCE
            ),
        )


@dataclass
class IncidentStats:
    """Per-user dashboard counters."""

    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    resolved_today: int = 0
    critical: int = 0
    avg_resolution_time: float = 0.0
