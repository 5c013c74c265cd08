"""
MFA Controllers (API Routes)
============================

Issue and verify email one-time codes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from itsm_portal.config import settings
from itsm_portal.infrastructure.database import get_session
from itsm_portal.mfa.application import (
    MFAService,
    IssueCodeRequest,
    IssueCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from itsm_portal.mfa.infrastructure import EmailFunctionDispatcher, SQLAlchemyMFATokenRepository

router = APIRouter(prefix="/mfa", tags=["MFA"])


# ========== Dependencies ==========

def get_email_dispatcher(request: Request) -> Optional[EmailFunctionDispatcher]:
    return getattr(request.app.state, "email_dispatcher", None)


async def get_mfa_service(
    session: AsyncSession = Depends(get_session),
    dispatcher: Optional[EmailFunctionDispatcher] = Depends(get_email_dispatcher),
) -> MFAService:
    """Get MFA service instance."""
    return MFAService(
        SQLAlchemyMFATokenRepository(session),
        dispatcher,
        ttl_minutes=settings.mfa_code_ttl_minutes,
    )


# ========== Route Handlers ==========

@router.post(
    "/codes",
    response_model=IssueCodeResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send a one-time code",
    description="Generates a six-digit code and emails it. The code is not returned.",
    responses={502: {"description": "Email function failed"}},
)
async def issue_code(
    body: IssueCodeRequest,
    service: MFAService = Depends(get_mfa_service),
):
    token = await service.issue_code(body.email)
    return IssueCodeResponse(email=token.email, expires_at=token.expires_at)


@router.post(
    "/verify",
    response_model=VerifyCodeResponse,
    summary="Verify a one-time code",
    description="A successful verification consumes the code. Expired codes report `expired`.",
)
async def verify_code(
    body: VerifyCodeRequest,
    service: MFAService = Depends(get_mfa_service),
):
    result = await service.verify_code(body.email, body.code)
    return VerifyCodeResponse(success=result.success, reason=result.reason, message=result.message)


# Export router for inclusion in main app
mfa_router = router
