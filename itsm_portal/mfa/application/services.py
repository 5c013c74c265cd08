"""
MFA Application Services
========================

Issues and verifies email one-time codes. Codes never reach the logs.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional

from itsm_portal.core import ValidationException, utcnow
from itsm_portal.mfa.domain import (
    CODE_LENGTH,
    EXPIRED,
    INVALID,
    VERIFIED,
    MFAToken,
    VerificationResult,
)
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class IMFATokenRepository(ABC):
    """Interface for MFA token data access."""

    @abstractmethod
    async def create(self, token: MFAToken) -> MFAToken:
        """Store a token."""

    @abstractmethod
    async def find_latest(self, email: str, code: str) -> Optional[MFAToken]:
        """Newest token matching email and code, expired or not."""

    @abstractmethod
    async def delete(self, token_id: str) -> None:
        """Remove a used token."""


class ICodeDispatcher(ABC):
    """Delivers a code to its owner."""

    @abstractmethod
    async def send_code(self, email: str, code: str, ttl_minutes: int) -> None:
        """Send the code; raises ExternalServiceException on failure."""


class MFAService:
    """Issue / verify one-time codes."""

    def __init__(
        self,
        repository: IMFATokenRepository,
        dispatcher: Optional[ICodeDispatcher] = None,
        ttl_minutes: int = 10
    ):
        self._repo = repository
        self._dispatcher = dispatcher
        self._ttl_minutes = ttl_minutes

    @staticmethod
    def _normalize_email(email: Optional[str]) -> str:
        email = (email or "").strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationException("A valid email address is required")
        return email

    async def issue_code(self, email: str) -> MFAToken:
        """
        Store a fresh code and send it.

        Raises:
            ValidationException: malformed email
            ExternalServiceException: the email function failed; the
                request transaction rolls back, so the unsent code is
                never usable and the caller requests another
        """
        email = self._normalize_email(email)
        token = await self._repo.create(MFAToken.issue(email, self._ttl_minutes))

        if self._dispatcher is not None:
            await self._dispatcher.send_code(email, token.token, self._ttl_minutes)
        else:
            logger.warning("Email function not configured, MFA code not dispatched")

        logger.info("MFA code issued", extra={"token_id": token.id})
        return token

    async def verify_code(self, email: str, code: str) -> VerificationResult:
        """Check a code; a successful check consumes it."""
        email = self._normalize_email(email)
        code = (code or "").strip()
        if len(code) != CODE_LENGTH or not code.isdigit():
            return VerificationResult(False, INVALID)

        token = await self._repo.find_latest(email, code)
        if token is None:
            logger.info("MFA verification failed", extra={"reason": INVALID})
            return VerificationResult(False, INVALID)

        if token.is_expired(utcnow()):
            logger.info("MFA verification failed", extra={"reason": EXPIRED})
            return VerificationResult(False, EXPIRED)

        await self._repo.delete(token.id)
        logger.info("MFA code verified", extra={"token_id": token.id})
        return VerificationResult(True, VERIFIED)
