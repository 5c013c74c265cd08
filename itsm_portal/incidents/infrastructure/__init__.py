"""
Incident Infrastructure Layer
=============================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer
"""

from itsm_portal.incidents.infrastructure.models import (
    IncidentModel,
    IncidentFeedbackModel,
    IncidentResolutionStatsModel,
)
from itsm_portal.incidents.infrastructure.repositories import (
    SQLAlchemyIncidentRepository,
    SQLAlchemyFeedbackRepository,
    SQLAlchemyResolutionStatsRepository,
)

__all__ = [
    "IncidentModel",
    "IncidentFeedbackModel",
    "IncidentResolutionStatsModel",
    "SQLAlchemyIncidentRepository",
    "SQLAlchemyFeedbackRepository",
    "SQLAlchemyResolutionStatsRepository",
]
