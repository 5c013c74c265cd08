"""
Incident Value Objects
======================

Stateless incident rules: the status transition table and the dashboard
counters.
"""

from datetime import date
from typing import Dict, FrozenSet, Iterable, TYPE_CHECKING

from itsm_portal.config import IncidentStatus, Priority
from itsm_portal.core import InvalidTransitionException, ensure_utc

if TYPE_CHECKING:
    from itsm_portal.incidents.domain.entities import Incident, IncidentStats


class IncidentLifecycle:
    """
    Allowed incident status transitions.

    Re-applying the current status is always allowed (it only bumps
    updated_at).
    """

    TRANSITIONS: Dict[IncidentStatus, FrozenSet[IncidentStatus]] = {
        IncidentStatus.OPEN: frozenset({
            IncidentStatus.IN_PROGRESS, IncidentStatus.RESOLVED, IncidentStatus.CLOSED
        }),
        IncidentStatus.IN_PROGRESS: frozenset({
            IncidentStatus.OPEN, IncidentStatus.RESOLVED, IncidentStatus.CLOSED
        }),
        IncidentStatus.RESOLVED: frozenset({
            IncidentStatus.CLOSED, IncidentStatus.IN_PROGRESS, IncidentStatus.OPEN
        }),
        IncidentStatus.CLOSED: frozenset({IncidentStatus.OPEN}),
    }

    @classmethod
    def can_transition(cls, current: IncidentStatus, new: IncidentStatus) -> bool:
        if current == new:
            return True
        return new in cls.TRANSITIONS.get(current, frozenset())

    @classmethod
    def validate(cls, current: IncidentStatus, new: IncidentStatus) -> None:
        if not cls.can_transition(current, new):
            raise InvalidTransitionException("Incident", current.value, new.value)


class IncidentStatsCalculator:
    """Client-side aggregation over a user's incidents."""

    @staticmethod
    def calculate(incidents: Iterable["Incident"], today: date) -> "IncidentStats":
        """
        Count incidents by status and priority.

        resolved_today compares the incident's created_at date (UTC) with
        today, not its resolution date. Existing dashboards depend on that
        reading.
        """
        from itsm_portal.incidents.domain.entities import IncidentStats

        stats = IncidentStats()
        resolution_times = []

        for incident in incidents:
            if incident.status == IncidentStatus.OPEN:
                stats.open += 1
            elif incident.status == IncidentStatus.IN_PROGRESS:
                stats.in_progress += 1
            elif incident.status == IncidentStatus.RESOLVED:
                stats.resolved += 1
                if ensure_utc(incident.created_at).date() == today:
                    stats.resolved_today += 1

            if incident.priority == Priority.CRITICAL:
                stats.critical += 1

            if incident.resolution_time_minutes:
                resolution_times.append(incident.resolution_time_minutes)

        if resolution_times:
            stats.avg_resolution_time = sum(resolution_times) / len(resolution_times)

        return stats
