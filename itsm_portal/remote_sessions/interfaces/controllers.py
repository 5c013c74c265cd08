"""
Remote Session Controllers (API Routes)
=======================================

FastAPI routes for remote session brokering, session chat, the timing
log and SLA metrics.

Controllers are thin - they delegate to application services.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from itsm_portal.config import settings
from itsm_portal.core import utcnow
from itsm_portal.infrastructure.database import get_session
from itsm_portal.notifications.application import NotificationService
from itsm_portal.notifications.infrastructure import SQLAlchemyNotificationRepository
from itsm_portal.remote_sessions.application import (
    RemoteSessionService,
    SessionTimingTracker,
    SessionRequestCreate,
    SessionDecisionRequest,
    EscalationRequest,
    MessageCreateRequest,
    TimingEventCreateRequest,
    RemoteSessionResponse,
    SessionMessageResponse,
    TimingEventResponse,
    SessionMetricsResponse,
    EscalationRuleResponse,
    EscalationStatusResponse,
)
from itsm_portal.remote_sessions.domain import ESCALATION_TRIGGERED
from itsm_portal.remote_sessions.infrastructure import (
    DatabaseTimingSource,
    EscalationRulesManager,
    SQLAlchemyRemoteSessionRepository,
    SQLAlchemySessionMessageRepository,
    SQLAlchemyTimingEventRepository,
)
from itsm_portal.shared.api.dependencies import get_change_feed, get_current_user_id
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/remote-sessions", tags=["Remote Sessions"])


# ========== Example payloads for Swagger ==========

SESSION_METRICS_EXAMPLE = {
    "session_id": "123e4567-e89b-12d3-a456-426614174000",
    "avg_response_time": 95.0,
    "total_duration": 1260,
    "message_count": 14,
    "escalation_risk": "medium",
    "sla_status": "at_risk",
    "duration_progress": 70.0,
    "response_progress": 52.8,
    "computed_at": "2024-01-15T10:21:00Z",
    "stale": False,
}


# ========== Dependencies ==========

async def get_remote_session_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> RemoteSessionService:
    """Get remote session service instance."""
    change_feed = get_change_feed(request).for_transaction(session)
    return RemoteSessionService(
        SQLAlchemyRemoteSessionRepository(session),
        SQLAlchemyTimingEventRepository(session),
        SQLAlchemySessionMessageRepository(session),
        change_feed=change_feed,
        notifier=NotificationService(
            SQLAlchemyNotificationRepository(session),
            change_feed,
            ttl_days=settings.notification_ttl_days,
        ),
    )


def get_tracker(request: Request) -> SessionTimingTracker:
    return request.app.state.session_tracker


def get_rules_manager(request: Request) -> EscalationRulesManager:
    return request.app.state.escalation_rules


# ========== Session workflow ==========

@router.post(
    "",
    response_model=RemoteSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a remote session",
    description="""
    Ask another user for remote access to their desktop.

    The session starts `pending` with a shareable `XXXX-XXXX` session code.
    Only the target user can approve or deny it.
    """,
)
async def request_session(
    body: SessionRequestCreate,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    session = await service.request_session(user_id, body.target_user_id, body.purpose)
    return RemoteSessionResponse.from_domain(session)


@router.get("", response_model=List[RemoteSessionResponse], summary="List my remote sessions")
async def list_sessions(
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    sessions = await service.list_sessions(user_id)
    return [RemoteSessionResponse.from_domain(s) for s in sessions]


@router.get("/{session_id}", response_model=RemoteSessionResponse, summary="Get a remote session")
async def get_remote_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    session = await service.get_session(session_id, user_id)
    return RemoteSessionResponse.from_domain(session)


@router.post(
    "/{session_id}/approve",
    response_model=RemoteSessionResponse,
    summary="Approve a pending request",
    responses={403: {"description": "Caller is not the target user"}, 409: {"description": "Not pending"}},
)
async def approve_session(
    session_id: str,
    body: Optional[SessionDecisionRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    session = await service.approve(session_id, user_id, body.notes if body else None)
    return RemoteSessionResponse.from_domain(session)


@router.post(
    "/{session_id}/deny",
    response_model=RemoteSessionResponse,
    summary="Deny a pending request",
    responses={403: {"description": "Caller is not the target user"}, 409: {"description": "Not pending"}},
)
async def deny_session(
    session_id: str,
    body: Optional[SessionDecisionRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    session = await service.deny(session_id, user_id, body.notes if body else None)
    return RemoteSessionResponse.from_domain(session)


@router.post("/{session_id}/start", response_model=RemoteSessionResponse, summary="Start an approved session")
async def start_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    return RemoteSessionResponse.from_domain(await service.start(session_id, user_id))


@router.post("/{session_id}/complete", response_model=RemoteSessionResponse, summary="End an active session")
async def complete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    return RemoteSessionResponse.from_domain(await service.complete(session_id, user_id))


@router.post("/{session_id}/cancel", response_model=RemoteSessionResponse, summary="Cancel a session")
async def cancel_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    return RemoteSessionResponse.from_domain(await service.cancel(session_id, user_id))


@router.post(
    "/{session_id}/escalate",
    response_model=TimingEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Escalate an active session",
    description="""
    Records an `escalation_triggered` timing event and posts a system
    message. `supervisor_takeover` also flags the session as escalated.
    """,
)
async def escalate_session(
    session_id: str,
    body: EscalationRequest,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    event = await service.escalate(session_id, user_id, body.escalation_type, body.reason)
    return TimingEventResponse.from_domain(event)


@router.post("/{session_id}/pause", response_model=RemoteSessionResponse, summary="Pause an active session")
async def pause_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    return RemoteSessionResponse.from_domain(await service.pause(session_id, user_id))


@router.post("/{session_id}/resume", response_model=RemoteSessionResponse, summary="Resume a paused session")
async def resume_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    return RemoteSessionResponse.from_domain(await service.resume(session_id, user_id))


# ========== Messages ==========

@router.get("/{session_id}/messages", response_model=List[SessionMessageResponse], summary="Session chat history")
async def list_messages(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    messages = await service.list_messages(session_id, user_id)
    return [SessionMessageResponse.from_domain(m) for m in messages]


@router.post(
    "/{session_id}/messages",
    response_model=SessionMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a chat message",
    description="Stores the message and notifies the other participant.",
)
async def post_message(
    session_id: str,
    body: MessageCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    message = await service.post_message(session_id, user_id, body.message_content, body.message_type)
    return SessionMessageResponse.from_domain(message)


# ========== Timing & SLA ==========

@router.get("/{session_id}/timing-events", response_model=List[TimingEventResponse], summary="Timing log")
async def list_timing_events(
    session_id: str,
    event_type: Optional[str] = Query(None, description="Only events of this type"),
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    events = await service.list_timing_events(session_id, user_id, event_type)
    return [TimingEventResponse.from_domain(e) for e in events]


@router.post(
    "/{session_id}/timing-events",
    response_model=TimingEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a timing event",
)
async def add_timing_event(
    session_id: str,
    body: TimingEventCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: RemoteSessionService = Depends(get_remote_session_service),
):
    event = await service.add_timing_event(
        session_id, user_id, body.event_type, body.response_time_seconds, body.notes
    )
    return TimingEventResponse.from_domain(event)


@router.get(
    "/{session_id}/metrics",
    response_model=SessionMetricsResponse,
    summary="Session SLA metrics",
    description="""
    Average response time, duration, message count and the three-level
    risk classification. `stale` is true when the latest refresh failed
    and the previous result is shown.
    """,
    responses={
        200: {
            "description": "Metrics",
            "content": {"application/json": {"example": SESSION_METRICS_EXAMPLE}},
        }
    },
)
async def get_session_metrics(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    service: RemoteSessionService = Depends(get_remote_session_service),
    tracker: SessionTimingTracker = Depends(get_tracker),
):
    await service.get_session(session_id, user_id)
    metrics = await tracker.refresh(session_id, source=DatabaseTimingSource(db))
    return SessionMetricsResponse.from_domain(metrics)


@router.get(
    "/{session_id}/escalations",
    response_model=EscalationStatusResponse,
    summary="Escalation rules triggered and escalation history",
)
async def get_escalations(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    service: RemoteSessionService = Depends(get_remote_session_service),
    tracker: SessionTimingTracker = Depends(get_tracker),
    rules_manager: EscalationRulesManager = Depends(get_rules_manager),
):
    await service.get_session(session_id, user_id)
    now = utcnow()
    metrics = await tracker.refresh(session_id, now=now, source=DatabaseTimingSource(db))
    triggered = rules_manager.policy.evaluate(metrics, now)
    history = await service.list_timing_events(session_id, user_id, ESCALATION_TRIGGERED)

    return EscalationStatusResponse(
        session_id=session_id,
        triggered_rules=[EscalationRuleResponse.from_domain(r) for r in triggered],
        history=[TimingEventResponse.from_domain(e) for e in history],
    )


# Export router for inclusion in main app
remote_sessions_router = router
