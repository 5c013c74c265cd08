"""
MFA Domain Entities
===================

One-time codes sent by email as a second login factor.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from itsm_portal.core import ensure_utc, utcnow

CODE_LENGTH = 6

# Verification outcomes
VERIFIED = "verified"
INVALID = "invalid"
EXPIRED = "expired"


def generate_code() -> str:
    """Six random digits, never starting with zero."""
    return str(100000 + secrets.randbelow(900000))


@dataclass
class MFAToken:
    """A stored one-time code; deleted once used."""

    id: Optional[str]
    email: str
    token: str
    expires_at: datetime
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def issue(cls, email: str, ttl_minutes: int, now: Optional[datetime] = None) -> "MFAToken":
        created = now or utcnow()
        return cls(
            id=None,
            email=email,
            token=generate_code(),
            expires_at=created + timedelta(minutes=ttl_minutes),
            created_at=created,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return ensure_utc(self.expires_at) < (now or utcnow())

    def __repr__(self) -> str:
        return f"MFAToken(id={self.id!r}, email={self.email!r}, expires_at={self.expires_at!r})"


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    reason: str

    @property
    def message(self) -> str:
        if self.reason == EXPIRED:
            return "MFA code expired, request a new one"
        if self.reason == INVALID:
            return "Invalid MFA code"
        return "MFA code verified"
