"""
Incident Domain Layer
=====================

Contains:
- Entities: Incident, IncidentFeedback, ResolutionRecord, IncidentStats
- Value Objects: IncidentLifecycle (transition table), IncidentStatsCalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from itsm_portal.incidents.domain.value_objects import (
    IncidentLifecycle,
    IncidentStatsCalculator,
)
from itsm_portal.incidents.domain.entities import (
    Incident,
    IncidentFeedback,
    IncidentStats,
    ResolutionRecord,
)

__all__ = [
    "Incident",
    "IncidentFeedback",
    "IncidentStats",
    "ResolutionRecord",
    "IncidentLifecycle",
    "IncidentStatsCalculator",
]
