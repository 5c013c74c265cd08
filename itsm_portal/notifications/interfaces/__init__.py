"""
Notification Interfaces Layer
=============================

FastAPI route handlers for the notification module.
"""

from itsm_portal.notifications.interfaces.controllers import notifications_router

__all__ = ["notifications_router"]
