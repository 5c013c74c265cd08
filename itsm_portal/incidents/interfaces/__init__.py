"""
Incident Interfaces Layer
=========================

FastAPI route handlers for the incident module.
"""

from itsm_portal.incidents.interfaces.controllers import incidents_router

__all__ = ["incidents_router"]
