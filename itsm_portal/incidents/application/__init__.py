"""
Incident Application Layer
==========================

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from itsm_portal.incidents.application.dto import (
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
from itsm_portal.incidents.application.services import (
    IncidentService,
    IIncidentRepository,
    IFeedbackRepository,
    IResolutionStatsRepository,
)

__all__ = [
    # DTOs
    "IncidentCreateRequest",
    "IncidentStatusUpdateRequest",
    "FeedbackRequest",
    "IncidentResponse",
    "IncidentStatsResponse",
    "FeedbackResponse",
    "FeedbackExistsResponse",
    "ResolveIncidentRequest",
    "ResolutionRecordResponse",
    # Services
    "IncidentService",
    # Repository Interfaces
    "IIncidentRepository",
    "IFeedbackRepository",
    "IResolutionStatsRepository",
]
