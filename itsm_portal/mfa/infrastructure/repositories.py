"""
MFA Infrastructure Repositories
===============================
"""

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from itsm_portal.core import RepositoryException, ensure_utc
from itsm_portal.mfa.application.services import IMFATokenRepository
from itsm_portal.mfa.domain import MFAToken
from itsm_portal.mfa.infrastructure.models import MFATokenModel


class SQLAlchemyMFATokenRepository(IMFATokenRepository):
    """SQLAlchemy implementation of MFA token repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, token: MFAToken) -> MFAToken:
        model = MFATokenModel(
            id=uuid4(),
            email=token.email,
            token=token.token,
            expires_at=token.expires_at,
            created_at=token.created_at,
        )

        self._session.add(model)
        await self._session.flush()

        token.id = str(model.id)
        return token

    async def find_latest(self, email: str, code: str) -> Optional[MFAToken]:
        stmt = (
            select(MFATokenModel)
            .where(MFATokenModel.email == email, MFATokenModel.token == code)
            .order_by(MFATokenModel.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None

        return MFAToken(
            id=str(model.id),
            email=model.email,
            token=model.token,
            expires_at=ensure_utc(model.expires_at),
            created_at=ensure_utc(model.created_at),
        )

    async def delete(self, token_id: str) -> None:
        try:
            token_uuid = UUID(token_id)
        except ValueError:
            raise RepositoryException(f"Invalid MFA token ID: {token_id}")

        await self._session.execute(delete(MFATokenModel).where(MFATokenModel.id == token_uuid))
        await self._session.flush()
