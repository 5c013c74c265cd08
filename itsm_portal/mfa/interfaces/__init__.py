"""
MFA Interfaces Layer
====================
"""

from itsm_portal.mfa.interfaces.controllers import mfa_router

__all__ = ["mfa_router"]
