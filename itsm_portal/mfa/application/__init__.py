"""
MFA Application Layer
=====================
"""

from itsm_portal.mfa.application.dto import (
    IssueCodeRequest,
    IssueCodeResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from itsm_portal.mfa.application.services import (
    MFAService,
    IMFATokenRepository,
    ICodeDispatcher,
)

__all__ = [
    "IssueCodeRequest",
    "IssueCodeResponse",
    "VerifyCodeRequest",
    "VerifyCodeResponse",
    "MFAService",
    "IMFATokenRepository",
    "ICodeDispatcher",
]
