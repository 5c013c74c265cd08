"""
Incident Application Services
=============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, List, Mapping, Optional

from itsm_portal.config import (
    IncidentStatus,
    Priority,
    ResolutionMethod,
    VALID_PRIORITIES,
    VALID_RESOLUTION_METHODS,
)
from itsm_portal.core import (
    DomainException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
    utcnow,
)
from itsm_portal.incidents.domain import (
    Incident,
    IncidentFeedback,
    IncidentStats,
    IncidentStatsCalculator,
    ResolutionRecord,
)
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("title", "description", "priority")
DEFAULT_CATEGORY = "General"


# ========== Repository Interfaces (Dependency Inversion) ==========

class IIncidentRepository(ABC):
    """Interface for incident data access."""

    @abstractmethod
    async def create(self, incident: Incident) -> Incident:
        """Insert and return the stored incident with id and timestamps."""

    @abstractmethod
    async def get_by_id(self, incident_id: str) -> Optional[Incident]:
        """Get incident by id."""

    @abstractmethod
    async def list_by_owner(self, user_id: str) -> List[Incident]:
        """All incidents owned by the user, newest first."""

    @abstractmethod
    async def update(self, incident: Incident) -> Incident:
        """Overwrite the mutable fields (last write wins)."""


class IFeedbackRepository(ABC):
    """Interface for incident feedback data access."""

    @abstractmethod
    async def create(self, feedback: IncidentFeedback) -> IncidentFeedback:
        """Store feedback."""

    @abstractmethod
    async def exists(self, incident_id: str, user_id: str) -> bool:
        """Check whether the user already left feedback."""


class IResolutionStatsRepository(ABC):
    """Interface for resolution statistics."""

    @abstractmethod
    async def create(self, record: ResolutionRecord) -> ResolutionRecord:
        """Store a resolution record."""

    @abstractmethod
    async def record_satisfaction(self, incident_id: str, score: int) -> int:
        """Set the satisfaction score on every record of the incident; returns rows updated."""

    @abstractmethod
    async def list_for_incident(self, incident_id: str) -> List[ResolutionRecord]:
        """Records for an incident, newest first."""


# ========== Application Services ==========

class IncidentService:
    """
    CRUD façade over the incident store.

    There is no optimistic locking: concurrent status updates on one
    incident both succeed and the last write wins.
    """

    def __init__(
        self,
        incident_repository: IIncidentRepository,
        feedback_repository: Optional[IFeedbackRepository] = None,
        strict_transitions: bool = True,
        resolution_repository: Optional[IResolutionStatsRepository] = None
    ):
        self._incident_repo = incident_repository
        self._feedback_repo = feedback_repository
        self._resolution_repo = resolution_repository
        self._strict = strict_transitions

    @staticmethod
    def validate_incident_data(data: Mapping[str, Any]) -> None:
        """
        Check the form before anything touches the store.

        Raises:
            ValidationException: naming every missing or invalid field
        """
        missing = [
            name for name in REQUIRED_FIELDS
            if not isinstance(data.get(name), str) or not data.get(name).strip()
        ]
        if missing:
            raise ValidationException(
                f"Missing required fields: {', '.join(missing)}",
                {"missing": missing}
            )

        if data["priority"] not in VALID_PRIORITIES:
            raise ValidationException(
                f"Invalid priority '{data['priority']}'",
                {"allowed": VALID_PRIORITIES}
            )

    async def create_incident(self, data: Mapping[str, Any], user_id: str) -> Incident:
        """
        Create an incident owned by the caller.

        Args:
            data: form values (title, description, priority, category, assignee)
            user_id: the submitting user

        Returns:
            The persisted incident including generated id and timestamps
        """
        self.validate_incident_data(data)

        now = utcnow()
        incident = Incident(
            id=None,
            title=data["title"].strip(),
            description=data["description"].strip(),
            priority=Priority(data["priority"]),
            category=(data.get("category") or DEFAULT_CATEGORY).strip(),
            assignee=data.get("assignee") or None,
            user_id=user_id,
            status=IncidentStatus.OPEN,
            created_at=now,
            updated_at=now,
        )

        created = await self._incident_repo.create(incident)
        logger.info(
            "Incident created",
            extra={"incident_id": created.id, "priority": created.priority.value, "user_id": user_id}
        )
        return created

    async def get_incident(self, incident_id: str) -> Incident:
        incident = await self._incident_repo.get_by_id(incident_id)
        if incident is None:
            raise ResourceNotFoundException("Incident", incident_id)
        return incident

    async def list_user_incidents(self, user_id: str) -> List[Incident]:
        return await self._incident_repo.list_by_owner(user_id)

    async def update_incident_status(
        self,
        incident_id: str,
        status: str,
        assignee: Optional[str] = None
    ) -> Incident:
        """
        Change an incident's status (and optionally its assignee).

        No notification or other side effect follows the row update.
        """
        try:
            new_status = IncidentStatus(status)
        except ValueError:
            raise ValidationException(f"Invalid status '{status}'")

        incident = await self.get_incident(incident_id)
        previous = incident.status
        incident.change_status(new_status, assignee=assignee, strict=self._strict)

        updated = await self._incident_repo.update(incident)
        logger.info(
            "Incident status updated",
            extra={
                "incident_id": incident_id,
                "from_status": previous.value,
                "to_status": new_status.value,
            }
        )
        return updated

    async def mark_incident_resolved(
        self,
        incident_id: str,
        resolution_method: str = ResolutionMethod.MANUAL.value
    ) -> Incident:
        """
        Resolve an incident and record how it was resolved.

        The resolution record is a separate write; a failure there is
        logged and the incident stays resolved.
        """
        if resolution_method not in VALID_RESOLUTION_METHODS:
            raise ValidationException(
                f"Invalid resolution method '{resolution_method}'",
                {"allowed": VALID_RESOLUTION_METHODS}
            )

        resolved = await self.update_incident_status(incident_id, IncidentStatus.RESOLVED.value)

        if self._resolution_repo is not None:
            try:
                await self._resolution_repo.create(
                    ResolutionRecord.for_incident(resolved, ResolutionMethod(resolution_method))
                )
            except Exception as e:
                logger.error(
                    "Recording resolution stats failed",
                    extra={"incident_id": incident_id, "error": str(e)}
                )

        return resolved

    async def list_resolution_records(self, incident_id: str) -> List[ResolutionRecord]:
        if self._resolution_repo is None:
            raise ValueError("Resolution stats repository not configured")
        await self.get_incident(incident_id)
        return await self._resolution_repo.list_for_incident(incident_id)

    async def get_incident_stats(self, user_id: str, today: Optional[date] = None) -> IncidentStats:
        """Dashboard counters over every incident the user owns."""
        incidents = await self._incident_repo.list_by_owner(user_id)
        return IncidentStatsCalculator.calculate(incidents, today or utcnow().date())

    async def record_feedback(
        self,
        incident_id: str,
        user_id: str,
        satisfaction_rating: int,
        feedback_text: Optional[str] = None
    ) -> IncidentFeedback:
        """
        Store the owner's satisfaction rating, once per incident.

        The rating is also copied onto the incident's resolution records;
        a failure there is logged and the feedback is kept.
        """
        if self._feedback_repo is None:
            raise ValueError("Feedback repository not configured")

        incident = await self.get_incident(incident_id)
        if incident.user_id != user_id:
            raise PermissionDeniedException("Only the incident owner can leave feedback")

        if await self._feedback_repo.exists(incident_id, user_id):
            raise DomainException("Feedback already recorded for this incident")

        try:
            feedback = IncidentFeedback(
                id=None,
                incident_id=incident_id,
                user_id=user_id,
                satisfaction_rating=satisfaction_rating,
                feedback_text=feedback_text,
            )
        except ValueError as e:
            raise ValidationException(str(e))

        stored = await self._feedback_repo.create(feedback)

        if self._resolution_repo is not None:
            try:
                await self._resolution_repo.record_satisfaction(incident_id, satisfaction_rating)
            except Exception as e:
                logger.error(
                    "Copying satisfaction to resolution stats failed",
                    extra={"incident_id": incident_id, "error": str(e)}
                )

        return stored

    async def has_feedback(self, incident_id: str, user_id: str) -> bool:
        if self._feedback_repo is None:
            raise ValueError("Feedback repository not configured")
        return await self._feedback_repo.exists(incident_id, user_id)
