"""
ITSM Portal Service
===================

Self-service IT service management backend: incidents, remote desktop
sessions with SLA tracking, and realtime chat notifications.
"""

__version__ = "1.0.0"
