"""
Remote Session Infrastructure Repositories
==========================================

Concrete implementations of repository interfaces using SQLAlchemy.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from itsm_portal.config import SenderType, SessionStatus
from itsm_portal.core import RepositoryException, ResourceNotFoundException, ensure_utc
from itsm_portal.infrastructure.database import get_session_context
from itsm_portal.remote_sessions.application import (
    IRemoteSessionRepository,
    ISessionMessageRepository,
    ITimingEventRepository,
    ITimingSource,
    TimingSnapshot,
)
from itsm_portal.remote_sessions.domain import RemoteSession, SessionMessage, TimingEvent
from itsm_portal.remote_sessions.infrastructure.models import (
    RemoteSessionModel,
    SessionMessageModel,
    TimingEventModel,
)


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _session_to_entity(model: RemoteSessionModel) -> RemoteSession:
    return RemoteSession(
        id=str(model.id),
        session_code=model.session_code,
        requester_id=model.requester_id,
        target_user_id=model.target_user_id,
        purpose=model.purpose,
        status=SessionStatus(model.status),
        requested_at=ensure_utc(model.requested_at),
        approved_at=ensure_utc(model.approved_at),
        denied_at=ensure_utc(model.denied_at),
        started_at=ensure_utc(model.started_at),
        ended_at=ensure_utc(model.ended_at),
        duration_minutes=model.duration_minutes,
        approval_notes=model.approval_notes,
        metadata=dict(model.session_metadata or {}),
    )


def _event_to_entity(model: TimingEventModel) -> TimingEvent:
    return TimingEvent(
        id=str(model.id),
        session_id=str(model.session_id),
        event_type=model.event_type,
        event_timestamp=ensure_utc(model.event_timestamp),
        response_time_seconds=model.response_time_seconds,
        notes=model.notes,
        triggered_by=model.triggered_by,
        metadata=dict(model.event_metadata or {}),
        total_session_duration_seconds=model.total_session_duration_seconds,
    )


def _message_to_entity(model: SessionMessageModel) -> SessionMessage:
    return SessionMessage(
        id=str(model.id),
        session_id=str(model.session_id),
        sender_id=model.sender_id,
        sender_type=SenderType(model.sender_type),
        message_content=model.message_content,
        message_type=model.message_type,
        metadata=dict(model.message_metadata or {}),
        created_at=ensure_utc(model.created_at),
    )


class SQLAlchemyRemoteSessionRepository(IRemoteSessionRepository):
    """
    SQLAlchemy implementation of remote session repository.

    Handles persistence of RemoteSession entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, session_id: str) -> Optional[RemoteSessionModel]:
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            return None
        stmt = select(RemoteSessionModel).where(RemoteSessionModel.id == session_uuid)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, session: RemoteSession) -> RemoteSession:
        model = RemoteSessionModel(
            id=uuid4(),
            session_code=session.session_code,
            requester_id=session.requester_id,
            target_user_id=session.target_user_id,
            status=session.status.value,
            purpose=session.purpose,
            requested_at=session.requested_at,
            session_metadata=dict(session.metadata),
        )

        self._session.add(model)
        await self._session.flush()

        return _session_to_entity(model)

    async def get_by_id(self, session_id: str) -> Optional[RemoteSession]:
        model = await self._get_model(session_id)
        return _session_to_entity(model) if model else None

    async def code_exists(self, session_code: str) -> bool:
        stmt = select(RemoteSessionModel.id).where(RemoteSessionModel.session_code == session_code)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_for_user(self, user_id: str) -> List[RemoteSession]:
        stmt = (
            select(RemoteSessionModel)
            .where(or_(
                RemoteSessionModel.requester_id == user_id,
                RemoteSessionModel.target_user_id == user_id,
            ))
            .order_by(RemoteSessionModel.requested_at.desc())
        )
        result = await self._session.execute(stmt)
        return [_session_to_entity(m) for m in result.scalars().all()]

    async def list_active_ids(self) -> List[str]:
        stmt = select(RemoteSessionModel.id).where(
            RemoteSessionModel.status == SessionStatus.ACTIVE.value
        )
        result = await self._session.execute(stmt)
        return [str(sid) for sid in result.scalars().all()]

    async def update(self, session: RemoteSession) -> RemoteSession:
        model = await self._get_model(session.id)
        if not model:
            raise RepositoryException(f"Remote session {session.id} not found")

        model.status = session.status.value
        model.approved_at = session.approved_at
        model.denied_at = session.denied_at
        model.started_at = session.started_at
        model.ended_at = session.ended_at
        model.duration_minutes = session.duration_minutes
        model.approval_notes = session.approval_notes
        model.session_metadata = dict(session.metadata)

        await self._session.flush()

        return _session_to_entity(model)


class SQLAlchemyTimingEventRepository(ITimingEventRepository):
    """Append-only SQLAlchemy timing log."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, event: TimingEvent) -> TimingEvent:
        session_uuid = _parse_uuid(event.session_id)
        if session_uuid is None:
            raise RepositoryException(f"Invalid session ID: {event.session_id}")

        model = TimingEventModel(
            id=uuid4(),
            session_id=session_uuid,
            event_type=event.event_type,
            event_timestamp=event.event_timestamp,
            response_time_seconds=event.response_time_seconds,
            notes=event.notes,
            triggered_by=event.triggered_by,
            total_session_duration_seconds=event.total_session_duration_seconds,
            event_metadata=dict(event.metadata),
        )

        self._session.add(model)
        await self._session.flush()

        event.id = str(model.id)
        return event

    async def list_for_session(
        self,
        session_id: str,
        event_type: Optional[str] = None
    ) -> List[TimingEvent]:
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            return []

        stmt = select(TimingEventModel).where(TimingEventModel.session_id == session_uuid)
        if event_type:
            stmt = stmt.where(TimingEventModel.event_type == event_type)
        stmt = stmt.order_by(TimingEventModel.event_timestamp.desc())

        result = await self._session.execute(stmt)
        return [_event_to_entity(m) for m in result.scalars().all()]


class SQLAlchemySessionMessageRepository(ISessionMessageRepository):
    """SQLAlchemy implementation of session message repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, message: SessionMessage) -> SessionMessage:
        session_uuid = _parse_uuid(message.session_id)
        if session_uuid is None:
            raise RepositoryException(f"Invalid session ID: {message.session_id}")

        model = SessionMessageModel(
            id=uuid4(),
            session_id=session_uuid,
            sender_id=message.sender_id,
            sender_type=message.sender_type.value,
            message_content=message.message_content,
            message_type=message.message_type,
            message_metadata=dict(message.metadata),
            created_at=message.created_at,
        )

        self._session.add(model)
        await self._session.flush()

        message.id = str(model.id)
        return message

    async def list_for_session(self, session_id: str) -> List[SessionMessage]:
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            return []

        stmt = (
            select(SessionMessageModel)
            .where(SessionMessageModel.session_id == session_uuid)
            .order_by(SessionMessageModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [_message_to_entity(m) for m in result.scalars().all()]

    async def count_for_session(self, session_id: str) -> int:
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            return 0

        stmt = select(func.count(SessionMessageModel.id)).where(
            SessionMessageModel.session_id == session_uuid
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def latest_created_at(self, session_id: str) -> Optional[datetime]:
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            return None

        stmt = select(func.max(SessionMessageModel.created_at)).where(
            SessionMessageModel.session_id == session_uuid
        )
        result = await self._session.execute(stmt)
        return ensure_utc(result.scalar_one_or_none())


class DatabaseTimingSource(ITimingSource):
    """
    Loads timing snapshots from the store.

    Without a bound session each load opens a short-lived session of its
    own (background refreshes); request handlers pass theirs in.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        self._session = session

    async def load(self, session_id: str) -> TimingSnapshot:
        if self._session is not None:
            return await self._load(self._session, session_id)
        async with get_session_context() as db:
            return await self._load(db, session_id)

    @staticmethod
    async def _load(db: AsyncSession, session_id: str) -> TimingSnapshot:
        session = await SQLAlchemyRemoteSessionRepository(db).get_by_id(session_id)
        if session is None:
            raise ResourceNotFoundException("Remote session", session_id)

        messages = SQLAlchemySessionMessageRepository(db)
        return TimingSnapshot(
            session_id=session_id,
            started_at=session.started_at,
            events=await SQLAlchemyTimingEventRepository(db).list_for_session(session_id),
            message_count=await messages.count_for_session(session_id),
            last_activity_at=await messages.latest_created_at(session_id),
            closed=session.is_terminal,
        )
