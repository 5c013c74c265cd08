"""
Shared Application Helpers
==========================

Generic application-layer patterns reused by the bounded contexts.
"""

from itsm_portal.shared.application.commands import OptimisticCommand

__all__ = ["OptimisticCommand"]
