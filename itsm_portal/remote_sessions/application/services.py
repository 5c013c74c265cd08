"""
Remote Session Application Services
===================================

Orchestrates the session request/approval workflow, session chat and the
append-only timing log.

Following SOLID principles:
- Single Responsibility: workflow here, metrics in the tracker
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

import secrets
import string
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from itsm_portal.config import EscalationType, SenderType, SessionStatus
from itsm_portal.core import (
    DomainException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
    utcnow,
)
from itsm_portal.infrastructure.realtime import ChangeFeed, INSERT, TransactionChanges
from itsm_portal.remote_sessions.domain import (
    RemoteSession,
    SessionMessage,
    TimingEvent,
    ESCALATION_TRIGGERED,
    SESSION_APPROVED,
    SESSION_CANCELLED,
    SESSION_DENIED,
    SESSION_ENDED,
    SESSION_PAUSED,
    SESSION_RESUMED,
    SESSION_STARTED,
)
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

TIMING_EVENTS_TABLE = "remote_session_timing"

SESSION_CODE_ALPHABET = string.ascii_uppercase + string.digits
SESSION_CODE_ATTEMPTS = 5


# ========== Repository Interfaces (Dependency Inversion) ==========

class IRemoteSessionRepository(ABC):
    """Interface for remote session data access."""

    @abstractmethod
    async def create(self, session: RemoteSession) -> RemoteSession:
        """Insert a new session."""

    @abstractmethod
    async def get_by_id(self, session_id: str) -> Optional[RemoteSession]:
        """Get session by id."""

    @abstractmethod
    async def code_exists(self, session_code: str) -> bool:
        """Check whether a session code is taken."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[RemoteSession]:
        """Sessions the user requested or was asked to join, newest first."""

    @abstractmethod
    async def list_active_ids(self) -> List[str]:
        """Ids of every active session."""

    @abstractmethod
    async def update(self, session: RemoteSession) -> RemoteSession:
        """Persist status, timestamps and metadata."""


class ITimingEventRepository(ABC):
    """
    Interface for the timing log.

    Append-only: no update or delete.
    """

    @abstractmethod
    async def append(self, event: TimingEvent) -> TimingEvent:
        """Store a timing event."""

    @abstractmethod
    async def list_for_session(
        self,
        session_id: str,
        event_type: Optional[str] = None
    ) -> List[TimingEvent]:
        """Events for a session, newest first."""


class ISessionMessageRepository(ABC):
    """Interface for session chat messages."""

    @abstractmethod
    async def create(self, message: SessionMessage) -> SessionMessage:
        """Store a message."""

    @abstractmethod
    async def list_for_session(self, session_id: str) -> List[SessionMessage]:
        """Messages oldest first."""

    @abstractmethod
    async def count_for_session(self, session_id: str) -> int:
        """Number of messages in a session."""

    @abstractmethod
    async def latest_created_at(self, session_id: str) -> Optional[datetime]:
        """Timestamp of the newest message, if any."""


# ========== Application Services ==========

class RemoteSessionService:
    """
    Session workflow façade.

    Status changes and the timing events recording them are separate
    writes; side effects (timing events, system messages, chat
    notifications) are not atomic with the status update.
    """

    def __init__(
        self,
        session_repository: IRemoteSessionRepository,
        timing_repository: ITimingEventRepository,
        message_repository: ISessionMessageRepository,
        change_feed: Optional[Union[ChangeFeed, TransactionChanges]] = None,
        notifier: Optional[Any] = None
    ):
        """
        Args:
            change_feed: where timing events are published; request handlers
                pass the feed bound to their transaction
            notifier: object with an async ``create_notification`` method
                (the notification relay); chat messages notify the other
                participant through it when set
        """
        self._sessions = session_repository
        self._timing = timing_repository
        self._messages = message_repository
        self._change_feed = change_feed
        self._notifier = notifier

    # ---------- queries ----------

    async def get_session(self, session_id: str, actor_id: str) -> RemoteSession:
        """Fetch a session the actor takes part in."""
        session = await self._sessions.get_by_id(session_id)
        if session is None:
            raise ResourceNotFoundException("Remote session", session_id)
        if not session.is_participant(actor_id):
            raise PermissionDeniedException("Not a participant of this session")
        return session

    async def list_sessions(self, user_id: str) -> List[RemoteSession]:
        return await self._sessions.list_for_user(user_id)

    async def list_messages(self, session_id: str, actor_id: str) -> List[SessionMessage]:
        await self.get_session(session_id, actor_id)
        return await self._messages.list_for_session(session_id)

    async def list_timing_events(
        self,
        session_id: str,
        actor_id: str,
        event_type: Optional[str] = None
    ) -> List[TimingEvent]:
        await self.get_session(session_id, actor_id)
        return await self._timing.list_for_session(session_id, event_type)

    async def list_active_session_ids(self) -> List[str]:
        return await self._sessions.list_active_ids()

    # ---------- workflow ----------

    async def _generate_session_code(self) -> str:
        for _ in range(SESSION_CODE_ATTEMPTS):
            raw = "".join(secrets.choice(SESSION_CODE_ALPHABET) for _ in range(8))
            code = f"{raw[:4]}-{raw[4:]}"
            if not await self._sessions.code_exists(code):
                return code
        raise DomainException("Could not allocate a unique session code")

    async def request_session(
        self,
        requester_id: str,
        target_user_id: Optional[str],
        purpose: Optional[str]
    ) -> RemoteSession:
        """Create a pending session request for the target user."""
        missing = []
        if not target_user_id or not target_user_id.strip():
            missing.append("target_user_id")
        if not purpose or not purpose.strip():
            missing.append("purpose")
        if missing:
            raise ValidationException(
                f"Missing required fields: {', '.join(missing)}",
                {"missing": missing}
            )
        if target_user_id == requester_id:
            raise ValidationException("Cannot request a session with yourself")

        session = RemoteSession(
            id=None,
            session_code=await self._generate_session_code(),
            requester_id=requester_id,
            target_user_id=target_user_id.strip(),
            purpose=purpose.strip(),
            status=SessionStatus.PENDING,
            requested_at=utcnow(),
        )
        created = await self._sessions.create(session)

        logger.info(
            "Remote session requested",
            extra={"session_id": created.id, "session_code": created.session_code}
        )
        return created

    async def _decide(
        self,
        session_id: str,
        actor_id: str,
        new_status: SessionStatus,
        notes: Optional[str]
    ) -> RemoteSession:
        session = await self.get_session(session_id, actor_id)
        if actor_id != session.target_user_id:
            raise PermissionDeniedException("Only the target user can decide on a session request")

        session.transition_to(new_status)
        session.approval_notes = notes
        updated = await self._sessions.update(session)

        if new_status == SessionStatus.APPROVED:
            await self.record_timing_event(
                session_id,
                SESSION_APPROVED,
                response_time_seconds=session.approval_wait_seconds(),
                notes=notes,
                actor_id=actor_id,
            )
        else:
            await self.record_timing_event(session_id, SESSION_DENIED, notes=notes, actor_id=actor_id)

        logger.info(
            "Remote session decided",
            extra={"session_id": session_id, "status": new_status.value}
        )
        return updated

    async def approve(self, session_id: str, actor_id: str, notes: Optional[str] = None) -> RemoteSession:
        return await self._decide(session_id, actor_id, SessionStatus.APPROVED, notes)

    async def deny(self, session_id: str, actor_id: str, notes: Optional[str] = None) -> RemoteSession:
        return await self._decide(session_id, actor_id, SessionStatus.DENIED, notes)

    async def start(self, session_id: str, actor_id: str) -> RemoteSession:
        session = await self.get_session(session_id, actor_id)
        session.transition_to(SessionStatus.ACTIVE)
        updated = await self._sessions.update(session)
        await self.record_timing_event(session_id, SESSION_STARTED, actor_id=actor_id)
        return updated

    async def complete(self, session_id: str, actor_id: str) -> RemoteSession:
        session = await self.get_session(session_id, actor_id)
        ended_at = session.transition_to(SessionStatus.COMPLETED)
        updated = await self._sessions.update(session)
        await self.record_timing_event(
            session_id,
            SESSION_ENDED,
            actor_id=actor_id,
            total_session_duration_seconds=session.duration_seconds(ended_at),
        )
        logger.info(
            "Remote session completed",
            extra={"session_id": session_id, "duration_minutes": session.duration_minutes}
        )
        return updated

    async def cancel(self, session_id: str, actor_id: str) -> RemoteSession:
        session = await self.get_session(session_id, actor_id)
        session.transition_to(SessionStatus.CANCELLED)
        updated = await self._sessions.update(session)
        await self.record_timing_event(session_id, SESSION_CANCELLED, actor_id=actor_id)
        return updated

    async def _require_active(self, session_id: str, actor_id: str) -> RemoteSession:
        session = await self.get_session(session_id, actor_id)
        if session.status != SessionStatus.ACTIVE:
            raise DomainException(
                f"Session is {session.status.value}, expected active",
                {"status": session.status.value}
            )
        return session

    async def escalate(
        self,
        session_id: str,
        actor_id: str,
        escalation_type: str,
        reason: Optional[str] = None
    ) -> TimingEvent:
        """
        Escalate an active session.

        Records an escalation_triggered event and a system chat message;
        a supervisor takeover also flags the session as escalated.
        """
        try:
            kind = EscalationType(escalation_type)
        except ValueError:
            raise ValidationException(f"Unknown escalation type '{escalation_type}'")

        session = await self._require_active(session_id, actor_id)
        reason = (reason or "").strip() or "Manual escalation triggered"
        metadata = {"escalation_type": kind.value}

        event = await self.record_timing_event(
            session_id, ESCALATION_TRIGGERED, notes=reason, actor_id=actor_id, metadata=metadata
        )

        await self._messages.create(SessionMessage(
            id=None,
            session_id=session_id,
            sender_id=actor_id,
            sender_type=SenderType.SYSTEM,
            message_content=f"Session escalated: {reason}",
            message_type="system_notification",
            metadata=metadata,
        ))

        if kind == EscalationType.SUPERVISOR_TAKEOVER:
            session.metadata = {**session.metadata, "escalated": True, "escalation_type": kind.value}
            await self._sessions.update(session)

        logger.warning(
            "Remote session escalated",
            extra={"session_id": session_id, "escalation_type": kind.value}
        )
        return event

    async def _set_paused(self, session_id: str, actor_id: str, paused: bool) -> RemoteSession:
        session = await self._require_active(session_id, actor_id)
        session.metadata = {**session.metadata, "paused": paused}
        updated = await self._sessions.update(session)
        await self.record_timing_event(
            session_id, SESSION_PAUSED if paused else SESSION_RESUMED, actor_id=actor_id
        )
        return updated

    async def pause(self, session_id: str, actor_id: str) -> RemoteSession:
        return await self._set_paused(session_id, actor_id, True)

    async def resume(self, session_id: str, actor_id: str) -> RemoteSession:
        return await self._set_paused(session_id, actor_id, False)

    # ---------- messages & timing ----------

    async def post_message(
        self,
        session_id: str,
        sender_id: str,
        content: Optional[str],
        message_type: str = "text"
    ) -> SessionMessage:
        """
        Store a chat message and notify the other participant.

        The notification is a separate write; a failure there is logged and
        does not undo the message.
        """
        if not content or not content.strip():
            raise ValidationException("Message content is required")

        session = await self.get_session(session_id, sender_id)
        if session.is_terminal:
            raise DomainException(f"Session is {session.status.value}")

        message = await self._messages.create(SessionMessage(
            id=None,
            session_id=session_id,
            sender_id=sender_id,
            sender_type=session.sender_type_for(sender_id),
            message_content=content.strip(),
            message_type=message_type,
        ))

        if self._notifier is not None:
            try:
                await self._notifier.create_notification(
                    user_id=session.other_participant(sender_id),
                    session_id=session_id,
                    message_id=message.id,
                    message_content=message.message_content,
                    sender_name=sender_id,
                )
            except Exception as e:
                logger.error(
                    "Chat notification failed",
                    extra={"session_id": session_id, "message_id": message.id, "error": str(e)}
                )

        return message

    async def record_timing_event(
        self,
        session_id: str,
        event_type: str,
        response_time_seconds: Optional[int] = None,
        notes: Optional[str] = None,
        actor_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        total_session_duration_seconds: Optional[int] = None
    ) -> TimingEvent:
        """Append a timing event and publish it on the change feed."""
        if not event_type or not event_type.strip():
            raise ValidationException("event_type is required")
        if response_time_seconds is not None and response_time_seconds < 0:
            raise ValidationException("response_time_seconds must not be negative")

        event = await self._timing.append(TimingEvent(
            id=None,
            session_id=session_id,
            event_type=event_type.strip(),
            event_timestamp=utcnow(),
            response_time_seconds=response_time_seconds,
            notes=notes,
            triggered_by=actor_id,
            metadata=dict(metadata or {}),
            total_session_duration_seconds=total_session_duration_seconds,
        ))

        if self._change_feed is not None:
            self._change_feed.publish(TIMING_EVENTS_TABLE, INSERT, event.to_row())

        return event

    async def add_timing_event(
        self,
        session_id: str,
        actor_id: str,
        event_type: str,
        response_time_seconds: Optional[int] = None,
        notes: Optional[str] = None
    ) -> TimingEvent:
        """Participant-facing variant of record_timing_event."""
        await self.get_session(session_id, actor_id)
        return await self.record_timing_event(
            session_id,
            event_type,
            response_time_seconds=response_time_seconds,
            notes=notes,
            actor_id=actor_id,
        )
