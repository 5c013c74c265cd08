"""
MFA Domain Layer
================

Contains:
- Entities: MFAToken, VerificationResult
"""

from itsm_portal.mfa.domain.entities import (
    MFAToken,
    VerificationResult,
    generate_code,
    CODE_LENGTH,
    VERIFIED,
    INVALID,
    EXPIRED,
)

__all__ = [
    "MFAToken",
    "VerificationResult",
    "generate_code",
    "CODE_LENGTH",
    "VERIFIED",
    "INVALID",
    "EXPIRED",
]
