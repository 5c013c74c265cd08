"""
Incident Application DTOs
=========================

Pydantic models for incident API requests and responses.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from itsm_portal.incidents.domain import (
    Incident,
    IncidentFeedback,
    IncidentStats,
    ResolutionRecord,
)


# ========== Type Aliases for Literals ==========
IncidentStatusStr = Literal["Open", "In Progress", "Resolved", "Closed"]
PriorityStr = Literal["low", "medium", "high", "critical"]
ResolutionMethodStr = Literal["auto", "manual", "escalated"]


# ========== Request DTOs ==========

class IncidentCreateRequest(BaseModel):
    """
    Self-service incident form.

    Fields are optional here so that missing values reach the service's
    own validation and come back as a single validation error.
    """
    title: Optional[str] = Field(None, description="Short summary")
    description: Optional[str] = Field(None, description="What went wrong")
    priority: Optional[str] = Field(None, description="low, medium, high or critical")
    category: Optional[str] = Field(None, description="Service category")
    assignee: Optional[str] = Field(None, description="Assigned engineer")


class IncidentStatusUpdateRequest(BaseModel):
    status: IncidentStatusStr
    assignee: Optional[str] = None


class ResolveIncidentRequest(BaseModel):
    resolution_method: ResolutionMethodStr = "manual"


class FeedbackRequest(BaseModel):
    satisfaction_rating: int = Field(..., ge=1, le=5)
    feedback_text: Optional[str] = Field(None, max_length=2000)


# ========== Response DTOs ==========

class IncidentResponse(BaseModel):
    id: str
    title: str
    description: str
    status: IncidentStatusStr
    priority: PriorityStr
    category: str
    assignee: Optional[str] = None
    user_id: str
    created_at: datetime
    updated_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    response_time_minutes: Optional[int] = None
    resolution_time_minutes: Optional[int] = None

    @classmethod
    def from_domain(cls, incident: Incident) -> "IncidentResponse":
        return cls(
            id=incident.id,
            title=incident.title,
            description=incident.description,
            status=incident.status.value,
            priority=incident.priority.value,
            category=incident.category,
            assignee=incident.assignee,
            user_id=incident.user_id,
            created_at=incident.created_at,
            updated_at=incident.updated_at,
            first_response_at=incident.first_response_at,
            resolved_at=incident.resolved_at,
            response_time_minutes=incident.response_time_minutes,
            resolution_time_minutes=incident.resolution_time_minutes,
        )


class IncidentStatsResponse(BaseModel):
    open: int
    in_progress: int
    resolved: int
    resolved_today: int = Field(..., description="Resolved incidents created today")
    critical: int
    avg_resolution_time: float = Field(..., description="Minutes")

    @classmethod
    def from_domain(cls, stats: IncidentStats) -> "IncidentStatsResponse":
        return cls(
            open=stats.open,
            in_progress=stats.in_progress,
            resolved=stats.resolved,
            resolved_today=stats.resolved_today,
            critical=stats.critical,
            avg_resolution_time=stats.avg_resolution_time,
        )


class FeedbackResponse(BaseModel):
    id: str
    incident_id: str
    user_id: str
    satisfaction_rating: int
    feedback_text: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, feedback: IncidentFeedback) -> "FeedbackResponse":
        return cls(
            id=feedback.id,
            incident_id=feedback.incident_id,
            user_id=feedback.user_id,
            satisfaction_rating=feedback.satisfaction_rating,
            feedback_text=feedback.feedback_text,
            created_at=feedback.created_at,
        )


class FeedbackExistsResponse(BaseModel):
    incident_id: str
    exists: bool


class ResolutionRecordResponse(BaseModel):
    """Resolution statistics for one resolve action."""
    id: str
    incident_id: str
    resolution_method: ResolutionMethodStr
    resolved_at: Optional[datetime] = None
    category: Optional[str] = None
    resolution_time_minutes: Optional[int] = None
    response_time_minutes: Optional[int] = None
    confidence_score: Optional[float] = None
    user_satisfaction_score: Optional[int] = None

    @classmethod
    def from_domain(cls, record: ResolutionRecord) -> "ResolutionRecordResponse":
        return cls(
            id=record.id,
            incident_id=record.incident_id,
            resolution_method=record.resolution_method.value,
            resolved_at=record.resolved_at,
            category=record.category,
            resolution_time_minutes=record.resolution_time_minutes,
            response_time_minutes=record.response_time_minutes,
            confidence_score=record.confidence_score,
            user_satisfaction_score=record.user_satisfaction_score,
        )
