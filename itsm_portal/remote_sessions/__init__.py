"""
Remote Sessions Module
======================

Bounded Context for brokered remote desktop support sessions.

Responsibilities:
- Request / approve / deny / start / complete / cancel sessions
- Session chat messages and append-only timing events
- SLA metrics and escalation risk per session
- Escalation rules with hot-reload and Slack alerts
"""

__version__ = "1.0.0"
