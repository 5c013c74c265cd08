"""
MFA Infrastructure Layer
========================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: email function dispatcher
"""

from itsm_portal.mfa.infrastructure.models import MFATokenModel
from itsm_portal.mfa.infrastructure.repositories import SQLAlchemyMFATokenRepository
from itsm_portal.mfa.infrastructure.external import EmailFunctionDispatcher

__all__ = [
    "MFATokenModel",
    "SQLAlchemyMFATokenRepository",
    "EmailFunctionDispatcher",
]
