"""
Incident Infrastructure Repositories
====================================

Concrete implementations of repository interfaces using SQLAlchemy.
"""

from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from itsm_portal.config import IncidentStatus, Priority, ResolutionMethod
from itsm_portal.core import RepositoryException, ensure_utc
from itsm_portal.incidents.application.services import (
    IFeedbackRepository,
    IIncidentRepository,
    IResolutionStatsRepository,
)
from itsm_portal.incidents.domain import Incident, IncidentFeedback, ResolutionRecord
from itsm_portal.incidents.infrastructure.models import (
    IncidentFeedbackModel,
    IncidentModel,
    IncidentResolutionStatsModel,
)


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _to_entity(model: IncidentModel) -> Incident:
    return Incident(
        id=str(model.id),
        title=model.title,
        description=model.description,
        priority=Priority(model.priority),
        category=model.category,
        user_id=model.user_id,
        status=IncidentStatus(model.status),
        assignee=model.assignee,
        created_at=ensure_utc(model.created_at),
        updated_at=ensure_utc(model.updated_at),
        first_response_at=ensure_utc(model.first_response_at),
        resolved_at=ensure_utc(model.resolved_at),
        response_time_minutes=model.response_time_minutes,
        resolution_time_minutes=model.resolution_time_minutes,
    )


class SQLAlchemyIncidentRepository(IIncidentRepository):
    """
    SQLAlchemy implementation of incident repository.

    Handles persistence of Incident entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, incident_id: str) -> Optional[IncidentModel]:
        incident_uuid = _parse_uuid(incident_id)
        if incident_uuid is None:
            return None
        stmt = select(IncidentModel).where(IncidentModel.id == incident_uuid)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, incident: Incident) -> Incident:
        model = IncidentModel(
            id=uuid4(),
            title=incident.title,
            description=incident.description,
            status=incident.status.value,
            priority=incident.priority.value,
            category=incident.category,
            assignee=incident.assignee,
            user_id=incident.user_id,
            created_at=incident.created_at,
            updated_at=incident.updated_at,
        )

        self._session.add(model)
        await self._session.flush()

        return _to_entity(model)

    async def get_by_id(self, incident_id: str) -> Optional[Incident]:
        model = await self._get_model(incident_id)
        return _to_entity(model) if model else None

    async def list_by_owner(self, user_id: str) -> List[Incident]:
        stmt = (
            select(IncidentModel)
            .where(IncidentModel.user_id == user_id)
            .order_by(IncidentModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def update(self, incident: Incident) -> Incident:
        model = await self._get_model(incident.id)
        if not model:
            raise RepositoryException(f"Incident {incident.id} not found")

        model.status = incident.status.value
        model.assignee = incident.assignee
        model.updated_at = incident.updated_at
        model.first_response_at = incident.first_response_at
        model.resolved_at = incident.resolved_at
        model.response_time_minutes = incident.response_time_minutes
        model.resolution_time_minutes = incident.resolution_time_minutes

        await self._session.flush()

        return _to_entity(model)


class SQLAlchemyFeedbackRepository(IFeedbackRepository):
    """SQLAlchemy implementation of incident feedback repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, feedback: IncidentFeedback) -> IncidentFeedback:
        incident_uuid = _parse_uuid(feedback.incident_id)
        if incident_uuid is None:
            raise RepositoryException(f"Invalid incident ID: {feedback.incident_id}")

        model = IncidentFeedbackModel(
            id=uuid4(),
            incident_id=incident_uuid,
            user_id=feedback.user_id,
            satisfaction_rating=feedback.satisfaction_rating,
            feedback_text=feedback.feedback_text,
            created_at=feedback.created_at,
        )

        self._session.add(model)
        await self._session.flush()

        feedback.id = str(model.id)
        return feedback

    async def exists(self, incident_id: str, user_id: str) -> bool:
        incident_uuid = _parse_uuid(incident_id)
        if incident_uuid is None:
            return False

        stmt = select(IncidentFeedbackModel.id).where(
            IncidentFeedbackModel.incident_id == incident_uuid,
            IncidentFeedbackModel.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None


def _to_record(model: IncidentResolutionStatsModel) -> ResolutionRecord:
    return ResolutionRecord(
        id=str(model.id),
        incident_id=str(model.incident_id),
        resolution_method=ResolutionMethod(model.resolution_method),
        resolved_at=ensure_utc(model.resolved_at),
        category=model.category,
        resolution_time_minutes=model.resolution_time_minutes,
        response_time_minutes=model.response_time_minutes,
        confidence_score=model.confidence_score,
        user_satisfaction_score=model.user_satisfaction_score,
        created_at=ensure_utc(model.created_at),
    )


class SQLAlchemyResolutionStatsRepository(IResolutionStatsRepository):
    """SQLAlchemy implementation of the resolution statistics store."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, record: ResolutionRecord) -> ResolutionRecord:
        incident_uuid = _parse_uuid(record.incident_id)
        if incident_uuid is None:
            raise RepositoryException(f"Invalid incident ID: {record.incident_id}")

        model = IncidentResolutionStatsModel(
            id=uuid4(),
            incident_id=incident_uuid,
            resolution_method=record.resolution_method.value,
            resolved_at=record.resolved_at,
            category=record.category,
            resolution_time_minutes=record.resolution_time_minutes,
            response_time_minutes=record.response_time_minutes,
            confidence_score=record.confidence_score,
            user_satisfaction_score=record.user_satisfaction_score,
            created_at=record.created_at,
        )

        self._session.add(model)
        await self._session.flush()

        record.id = str(model.id)
        return record

    async def record_satisfaction(self, incident_id: str, score: int) -> int:
        incident_uuid = _parse_uuid(incident_id)
        if incident_uuid is None:
            return 0

        stmt = (
            update(IncidentResolutionStatsModel)
            .where(IncidentResolutionStatsModel.incident_id == incident_uuid)
            .values(user_satisfaction_score=score)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def list_for_incident(self, incident_id: str) -> List[ResolutionRecord]:
        incident_uuid = _parse_uuid(incident_id)
        if incident_uuid is None:
            return []

        stmt = (
            select(IncidentResolutionStatsModel)
            .where(IncidentResolutionStatsModel.incident_id == incident_uuid)
            .order_by(IncidentResolutionStatsModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [_to_record(m) for m in result.scalars().all()]
