"""
Notification Controllers (API Routes)
=====================================

Unread listing, mark-read, and a WebSocket that pushes new chat
notifications as they are inserted.
"""

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from itsm_portal.config import settings
from itsm_portal.infrastructure.database import get_session
from itsm_portal.notifications.application import (
    NotificationService,
    NotificationResponse,
    MarkReadResponse,
)
from itsm_portal.notifications.infrastructure import SQLAlchemyNotificationRepository
from itsm_portal.shared.api.dependencies import get_change_feed, get_current_user_id
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/notifications", tags=["Notifications"])

# Close code for unauthenticated websocket clients
WS_UNAUTHORIZED = 4001


# ========== Dependencies ==========

async def get_notification_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> NotificationService:
    """Get notification service instance."""
    return NotificationService(
        SQLAlchemyNotificationRepository(session),
        get_change_feed(request),
        ttl_days=settings.notification_ttl_days,
    )


# ========== Route Handlers ==========

@router.get(
    "/unread",
    response_model=List[NotificationResponse],
    summary="Unread chat notifications",
    description="Unread, unexpired notifications for the caller, newest first.",
)
async def get_unread_notifications(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    notifications = await service.get_unread_notifications(user_id)
    return [NotificationResponse.from_domain(n) for n in notifications]


@router.post(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    summary="Mark one notification read",
    responses={404: {"description": "No such notification for this user"}},
)
async def mark_as_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    await service.mark_as_read(notification_id, user_id)
    return MarkReadResponse(success=True)


@router.post("/read-all", response_model=MarkReadResponse, summary="Mark every notification read")
async def mark_all_as_read(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    count = await service.mark_all_as_read(user_id)
    return MarkReadResponse(success=True, updated=count)


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    """
    Push new notifications for the connected user.

    The user id comes from the X-User-ID header or the ``user_id`` query
    parameter. Messages are JSON:
    {"type": "connected" | "notification", "data": {...}, "timestamp": "ISO 8601"}
    """
    user_id = websocket.headers.get("x-user-id") or websocket.query_params.get("user_id")
    if not user_id:
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    await websocket.accept()
    await websocket.send_json({
        "type": "connected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })

    # Pushing needs no store access; the relay only reads the change feed
    relay = NotificationService(repository=None, change_feed=websocket.app.state.change_feed)

    async def push(row: dict) -> None:
        await websocket.send_json({
            "type": "notification",
            "data": row,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    handle = relay.subscribe(user_id, push)
    logger.info("Notification websocket connected")

    try:
        while True:
            # Client keep-alives; content is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Notification websocket disconnected")
    finally:
        await handle.unsubscribe()


# Export router for inclusion in main app
notifications_router = router
