"""
Remote Session Interfaces Layer
===============================

FastAPI route handlers for the remote session module.
"""

from itsm_portal.remote_sessions.interfaces.controllers import remote_sessions_router

__all__ = ["remote_sessions_router"]
