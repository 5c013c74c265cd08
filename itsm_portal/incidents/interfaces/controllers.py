"""
Incident Controllers (API Routes)
=================================

FastAPI routes for self-service incident endpoints.

Controllers are thin - they delegate to application services. Domain
exceptions propagate to the application-level exception handlers.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from itsm_portal.config import settings
from itsm_portal.infrastructure.database import get_session
from itsm_portal.incidents.application import (
    IncidentService,
    IncidentCreateRequest,
    IncidentStatusUpdateRequest,
    FeedbackRequest,
    IncidentResponse,
    IncidentStatsResponse,
    FeedbackResponse,
    FeedbackExistsResponse,
    ResolveIncidentRequest,
    ResolutionRecordResponse,
)
from itsm_portal.incidents.infrastructure import (
    SQLAlchemyIncidentRepository,
    SQLAlchemyFeedbackRepository,
    SQLAlchemyResolutionStatsRepository,
)
from itsm_portal.shared.api.dependencies import get_current_user_id
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/incidents", tags=["Incidents"])


# ========== Example payloads for Swagger ==========

INCIDENT_CREATE_EXAMPLE = {
    "title": "VPN drops every few minutes",
    "description": "Since this morning the VPN client disconnects roughly every five minutes.",
    "priority": "high",
    "category": "Network",
}

INCIDENT_STATS_EXAMPLE = {
    "open": 3,
    "in_progress": 1,
    "resolved": 4,
    "resolved_today": 1,
    "critical": 1,
    "avg_resolution_time": 142.5,
}


# ========== Dependencies ==========

async def get_incident_service(
    session: AsyncSession = Depends(get_session)
) -> IncidentService:
    """Get incident service instance."""
    return IncidentService(
        SQLAlchemyIncidentRepository(session),
        SQLAlchemyFeedbackRepository(session),
        strict_transitions=settings.incident_strict_transitions,
        resolution_repository=SQLAlchemyResolutionStatsRepository(session),
    )


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=IncidentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report an incident",
    description="""
    Create an incident owned by the calling user.

    `title`, `description` and `priority` are required; priority is one of
    `low`, `medium`, `high`, `critical`. New incidents start as `Open`.
    """,
    responses={422: {"description": "Missing or invalid fields"}},
    openapi_extra={
        "requestBody": {"content": {"application/json": {"example": INCIDENT_CREATE_EXAMPLE}}}
    },
)
async def create_incident(
    request: IncidentCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    incident = await service.create_incident(request.model_dump(), user_id)
    return IncidentResponse.from_domain(incident)


@router.get(
    "",
    response_model=List[IncidentResponse],
    summary="List my incidents",
)
async def list_incidents(
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    incidents = await service.list_user_incidents(user_id)
    return [IncidentResponse.from_domain(i) for i in incidents]


@router.get(
    "/stats",
    response_model=IncidentStatsResponse,
    summary="Incident dashboard counters",
    description="""
    Counts over every incident owned by the caller.

    `resolved_today` counts Resolved incidents whose creation date (UTC) is today.
    """,
    responses={
        200: {
            "description": "Counters",
            "content": {"application/json": {"example": INCIDENT_STATS_EXAMPLE}},
        }
    },
)
async def get_incident_stats(
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    stats = await service.get_incident_stats(user_id)
    return IncidentStatsResponse.from_domain(stats)


@router.get(
    "/{incident_id}",
    response_model=IncidentResponse,
    summary="Get an incident",
    responses={404: {"description": "Incident not found"}},
)
async def get_incident(
    incident_id: str,
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    incident = await service.get_incident(incident_id)
    return IncidentResponse.from_domain(incident)


@router.patch(
    "/{incident_id}/status",
    response_model=IncidentResponse,
    summary="Change incident status",
    description="""
    Update the status (and optionally the assignee).

    Illegal moves, such as `Closed` to `Resolved`, are rejected with 409.
    """,
    responses={
        404: {"description": "Incident not found"},
        409: {"description": "Transition not allowed"},
    },
)
async def update_incident_status(
    incident_id: str,
    request: IncidentStatusUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    incident = await service.update_incident_status(
        incident_id, request.status, assignee=request.assignee
    )
    return IncidentResponse.from_domain(incident)


@router.post(
    "/{incident_id}/resolve",
    response_model=IncidentResponse,
    summary="Mark an incident resolved",
    description="""
    Resolve the incident and record a resolution statistics row.

    `resolution_method` is `auto`, `manual` (default) or `escalated`.
    """,
)
async def resolve_incident(
    incident_id: str,
    request: Optional[ResolveIncidentRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    method = request.resolution_method if request else "manual"
    incident = await service.mark_incident_resolved(incident_id, method)
    return IncidentResponse.from_domain(incident)


@router.get(
    "/{incident_id}/resolution-stats",
    response_model=List[ResolutionRecordResponse],
    summary="Resolution statistics for an incident",
    responses={404: {"description": "Incident not found"}},
)
async def get_resolution_stats(
    incident_id: str,
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    records = await service.list_resolution_records(incident_id)
    return [ResolutionRecordResponse.from_domain(r) for r in records]


@router.post(
    "/{incident_id}/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Rate the resolution",
    responses={
        403: {"description": "Caller does not own the incident"},
        409: {"description": "Feedback already recorded"},
    },
)
async def record_feedback(
    incident_id: str,
    request: FeedbackRequest,
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    feedback = await service.record_feedback(
        incident_id,
        user_id,
        request.satisfaction_rating,
        request.feedback_text,
    )
    return FeedbackResponse.from_domain(feedback)


@router.get(
    "/{incident_id}/feedback",
    response_model=FeedbackExistsResponse,
    summary="Check whether I already rated this incident",
)
async def has_feedback(
    incident_id: str,
    user_id: str = Depends(get_current_user_id),
    service: IncidentService = Depends(get_incident_service),
):
    exists = await service.has_feedback(incident_id, user_id)
    return FeedbackExistsResponse(incident_id=incident_id, exists=exists)


# Export router for inclusion in main app
incidents_router = router
