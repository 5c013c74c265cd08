"""Tests for the incident service, lifecycle and dashboard counters."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from itsm_portal.config import IncidentStatus, Priority, ResolutionMethod
from itsm_portal.core import (
    DomainException,
    InvalidTransitionException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
)
from itsm_portal.incidents.application import IncidentService
from itsm_portal.incidents.domain import Incident, IncidentLifecycle, IncidentStatsCalculator
from itsm_portal.incidents.infrastructure import (
    SQLAlchemyFeedbackRepository,
    SQLAlchemyIncidentRepository,
    SQLAlchemyResolutionStatsRepository,
)


def _incident(status=IncidentStatus.OPEN, priority=Priority.MEDIUM, created_at=None, **kwargs):
    created = created_at or datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
    return Incident(
        id=kwargs.pop("id", "inc-1"),
        title="VPN down",
        description="Cannot connect",
        priority=priority,
        category="Network",
        user_id=kwargs.pop("user_id", "user-1"),
        status=status,
        created_at=created,
        updated_at=created,
        **kwargs,
    )


class TestValidation:

    @pytest.mark.asyncio
    async def test_missing_fields_never_reach_the_store(self):
        repo = AsyncMock()
        service = IncidentService(repo)

        with pytest.raises(ValidationException) as exc_info:
            await service.create_incident({"title": "", "priority": "high"}, "user-1")

        assert exc_info.value.details["missing"] == ["title", "description"]
        repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_priority_rejected(self):
        repo = AsyncMock()
        service = IncidentService(repo)

        with pytest.raises(ValidationException):
            await service.create_incident(
                {"title": "t", "description": "d", "priority": "urgent"}, "user-1"
            )
        repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_category_defaults_to_general(self):
        repo = AsyncMock()
        repo.create.side_effect = lambda incident: incident
        service = IncidentService(repo)

        created = await service.create_incident(
            {"title": " Printer ", "description": "Jammed", "priority": "low"}, "user-1"
        )

        assert created.category == "General"
        assert created.title == "Printer"
        assert created.status == IncidentStatus.OPEN
        assert created.user_id == "user-1"


class TestLifecycle:

    def test_closed_only_reopens(self):
        assert IncidentLifecycle.can_transition(IncidentStatus.CLOSED, IncidentStatus.OPEN)
        assert not IncidentLifecycle.can_transition(IncidentStatus.CLOSED, IncidentStatus.RESOLVED)

    def test_same_status_is_allowed(self):
        assert IncidentLifecycle.can_transition(IncidentStatus.RESOLVED, IncidentStatus.RESOLVED)

    def test_strict_change_rejects_invalid_transition(self):
        incident = _incident(status=IncidentStatus.CLOSED)
        with pytest.raises(InvalidTransitionException):
            incident.change_status(IncidentStatus.IN_PROGRESS)

    def test_lenient_change_allows_anything(self):
        incident = _incident(status=IncidentStatus.CLOSED)
        incident.change_status(IncidentStatus.IN_PROGRESS, strict=False)
        assert incident.status == IncidentStatus.IN_PROGRESS

    def test_first_response_recorded_once(self):
        incident = _incident()
        first = incident.created_at + timedelta(minutes=42)
        incident.change_status(IncidentStatus.IN_PROGRESS, timestamp=first)
        incident.change_status(IncidentStatus.OPEN, timestamp=first + timedelta(minutes=5))
        incident.change_status(IncidentStatus.IN_PROGRESS, timestamp=first + timedelta(minutes=10))

        assert incident.first_response_at == first
        assert incident.response_time_minutes == 42

    def test_resolution_time_recorded(self):
        incident = _incident()
        incident.change_status(
            IncidentStatus.RESOLVED,
            assignee="agent-7",
            timestamp=incident.created_at + timedelta(hours=2, seconds=30),
        )
        assert incident.resolution_time_minutes == 120
        assert incident.assignee == "agent-7"


class TestStats:

    def test_counts_by_status_and_priority(self):
        today = date(2024, 1, 15)
        incidents = [
            _incident(status=IncidentStatus.OPEN, priority=Priority.CRITICAL),
            _incident(status=IncidentStatus.IN_PROGRESS),
            _incident(status=IncidentStatus.RESOLVED, resolution_time_minutes=30),
            _incident(status=IncidentStatus.RESOLVED, resolution_time_minutes=90),
            _incident(status=IncidentStatus.CLOSED, priority=Priority.CRITICAL),
        ]

        stats = IncidentStatsCalculator.calculate(incidents, today)

        assert stats.open == 1
        assert stats.in_progress == 1
        assert stats.resolved == 2
        assert stats.critical == 2
        assert stats.avg_resolution_time == 60.0

    def test_resolved_today_uses_creation_date(self):
        today = date(2024, 1, 15)
        created_yesterday = datetime(2024, 1, 14, 23, 0, tzinfo=timezone.utc)
        incidents = [
            # Resolved today, created yesterday: not counted
            _incident(
                status=IncidentStatus.RESOLVED,
                created_at=created_yesterday,
                resolved_at=datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc),
            ),
            # Created today and resolved: counted
            _incident(status=IncidentStatus.RESOLVED),
        ]

        stats = IncidentStatsCalculator.calculate(incidents, today)

        assert stats.resolved == 2
        assert stats.resolved_today == 1

    def test_empty_average_is_zero(self):
        stats = IncidentStatsCalculator.calculate([], date(2024, 1, 15))
        assert stats.avg_resolution_time == 0.0


class TestIncidentServiceWithDatabase:

    @pytest.mark.asyncio
    async def test_create_then_list_newest_first(self, db_session):
        service = IncidentService(SQLAlchemyIncidentRepository(db_session))

        first = await service.create_incident(
            {"title": "One", "description": "d", "priority": "low"}, "user-1"
        )
        second = await service.create_incident(
            {"title": "Two", "description": "d", "priority": "high"}, "user-1"
        )
        await service.create_incident(
            {"title": "Other", "description": "d", "priority": "high"}, "user-2"
        )

        listed = await service.list_user_incidents("user-1")
        assert [i.id for i in listed] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_status_update_persists_timing(self, db_session):
        service = IncidentService(SQLAlchemyIncidentRepository(db_session))
        created = await service.create_incident(
            {"title": "Laptop", "description": "d", "priority": "medium"}, "user-1"
        )

        await service.update_incident_status(created.id, "In Progress", assignee="agent-1")
        resolved = await service.mark_incident_resolved(created.id)

        assert resolved.status == IncidentStatus.RESOLVED
        assert resolved.first_response_at is not None
        assert resolved.resolved_at is not None
        assert resolved.assignee == "agent-1"

    @pytest.mark.asyncio
    async def test_unknown_status_is_validation_error(self, db_session):
        service = IncidentService(SQLAlchemyIncidentRepository(db_session))
        created = await service.create_incident(
            {"title": "x", "description": "d", "priority": "low"}, "user-1"
        )
        with pytest.raises(ValidationException):
            await service.update_incident_status(created.id, "Pending")

    @pytest.mark.asyncio
    async def test_missing_incident(self, db_session):
        service = IncidentService(SQLAlchemyIncidentRepository(db_session))
        with pytest.raises(ResourceNotFoundException):
            await service.get_incident("3f2b7c1e-0000-4000-8000-000000000000")

    @pytest.mark.asyncio
    async def test_feedback_once_per_owner(self, db_session):
        service = IncidentService(
            SQLAlchemyIncidentRepository(db_session),
            SQLAlchemyFeedbackRepository(db_session),
        )
        created = await service.create_incident(
            {"title": "x", "description": "d", "priority": "low"}, "user-1"
        )

        with pytest.raises(PermissionDeniedException):
            await service.record_feedback(created.id, "user-2", 5)

        with pytest.raises(ValidationException):
            await service.record_feedback(created.id, "user-1", 6)

        feedback = await service.record_feedback(created.id, "user-1", 4, "Quick fix")
        assert feedback.id is not None
        assert await service.has_feedback(created.id, "user-1")

        with pytest.raises(DomainException):
            await service.record_feedback(created.id, "user-1", 3)


class TestResolutionStats:

    def _service(self, db_session):
        return IncidentService(
            SQLAlchemyIncidentRepository(db_session),
            SQLAlchemyFeedbackRepository(db_session),
            resolution_repository=SQLAlchemyResolutionStatsRepository(db_session),
        )

    @pytest.mark.asyncio
    async def test_resolve_records_method_and_timing(self, db_session):
        service = self._service(db_session)
        created = await service.create_incident(
            {"title": "Printer", "description": "d", "priority": "low", "category": "Hardware"},
            "user-1",
        )
        await service.update_incident_status(created.id, "In Progress")

        resolved = await service.mark_incident_resolved(created.id, "auto")

        records = await service.list_resolution_records(created.id)
        assert len(records) == 1
        record = records[0]
        assert record.resolution_method == ResolutionMethod.AUTO
        assert record.category == "Hardware"
        assert record.resolved_at == resolved.resolved_at
        assert record.resolution_time_minutes == resolved.resolution_time_minutes
        assert record.response_time_minutes == resolved.response_time_minutes
        assert record.confidence_score == 0.85
        assert record.user_satisfaction_score is None

    @pytest.mark.asyncio
    async def test_default_method_is_manual(self, db_session):
        service = self._service(db_session)
        created = await service.create_incident(
            {"title": "x", "description": "d", "priority": "low"}, "user-1"
        )

        await service.mark_incident_resolved(created.id)

        [record] = await service.list_resolution_records(created.id)
        assert record.resolution_method == ResolutionMethod.MANUAL
        assert record.confidence_score == 0.60

    @pytest.mark.asyncio
    async def test_feedback_copies_satisfaction(self, db_session):
        service = self._service(db_session)
        created = await service.create_incident(
            {"title": "x", "description": "d", "priority": "low"}, "user-1"
        )
        await service.mark_incident_resolved(created.id, "escalated")

        await service.record_feedback(created.id, "user-1", 4)

        [record] = await service.list_resolution_records(created.id)
        assert record.user_satisfaction_score == 4

    @pytest.mark.asyncio
    async def test_unknown_method_rejected_before_update(self):
        incidents = AsyncMock()
        service = IncidentService(incidents, resolution_repository=AsyncMock())

        with pytest.raises(ValidationException):
            await service.mark_incident_resolved("inc-1", "magic")
        incidents.get_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_stats_failure_keeps_resolution(self):
        incidents = AsyncMock()
        incidents.get_by_id.return_value = _incident(status=IncidentStatus.IN_PROGRESS)
        incidents.update.side_effect = lambda incident: incident
        stats = AsyncMock()
        stats.create.side_effect = RuntimeError("stats table missing")
        service = IncidentService(incidents, resolution_repository=stats)

        resolved = await service.mark_incident_resolved("inc-1")

        assert resolved.status == IncidentStatus.RESOLVED
        stats.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_satisfaction_failure_keeps_feedback(self):
        incidents = AsyncMock()
        incidents.get_by_id.return_value = _incident(status=IncidentStatus.RESOLVED)
        feedback_repo = AsyncMock()
        feedback_repo.exists.return_value = False
        feedback_repo.create.side_effect = lambda feedback: feedback
        stats = AsyncMock()
        stats.record_satisfaction.side_effect = RuntimeError("stats table missing")
        service = IncidentService(incidents, feedback_repo, resolution_repository=stats)

        feedback = await service.record_feedback("inc-1", "user-1", 5)

        assert feedback.satisfaction_rating == 5
        stats.record_satisfaction.assert_awaited_once_with("inc-1", 5)
