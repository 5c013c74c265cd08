"""
Remote Session Infrastructure Models
====================================

SQLAlchemy ORM models for the remote session module.

The JSON ``metadata`` columns are mapped under other attribute names
because ``metadata`` is reserved on declarative classes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from itsm_portal.infrastructure.database import Base
from itsm_portal.config import SenderType, SessionStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RemoteSessionModel(Base):
    """
    Database model for RemoteSession entity.

    Maps to the 'remote_sessions' table.
    """
    __tablename__ = "remote_sessions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    session_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)

    # Participants
    requester_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    target_user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    status: Mapped[SessionStatus] = mapped_column(String(50), nullable=False, default=SessionStatus.PENDING, index=True)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    denied_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    session_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)


class TimingEventModel(Base):
    """
    Database model for the append-only timing log.

    Maps to the 'remote_session_timing' table.
    """
    __tablename__ = "remote_session_timing"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    event_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    response_time_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    triggered_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_session_duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    event_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)


class SessionMessageModel(Base):
    """
    Database model for session chat messages.

    Maps to the 'remote_session_messages' table.
    """
    __tablename__ = "remote_session_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    sender_id: Mapped[str] = mapped_column(String(255), nullable=False)
    sender_type: Mapped[SenderType] = mapped_column(String(50), nullable=False)
    message_content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(50), nullable=False, default="text")
    message_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
