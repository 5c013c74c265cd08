"""
MFA Application DTOs
====================
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class IssueCodeRequest(BaseModel):
    email: str = Field(..., max_length=320)


class IssueCodeResponse(BaseModel):
    email: str
    expires_at: datetime


class VerifyCodeRequest(BaseModel):
    email: str = Field(..., max_length=320)
    code: str = Field(..., max_length=12)


class VerifyCodeResponse(BaseModel):
    success: bool
    reason: Literal["verified", "invalid", "expired"]
    message: str
