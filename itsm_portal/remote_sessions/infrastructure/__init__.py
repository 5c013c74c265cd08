"""
Remote Session Infrastructure Layer
===================================

Infrastructure implementations for remote sessions:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer and the tracker's timing source
- External: escalation rules watcher, Slack client, scheduler
"""

from itsm_portal.remote_sessions.infrastructure.models import (
    RemoteSessionModel,
    TimingEventModel,
    SessionMessageModel,
)
from itsm_portal.remote_sessions.infrastructure.repositories import (
    SQLAlchemyRemoteSessionRepository,
    SQLAlchemyTimingEventRepository,
    SQLAlchemySessionMessageRepository,
    DatabaseTimingSource,
)
from itsm_portal.remote_sessions.infrastructure.external import (
    EscalationRulesManager,
    RulesFileHandler,
    CircuitBreaker,
    SlackClient,
    SessionAlert,
    SessionMonitorScheduler,
    ALERT_SLA_VIOLATED,
    ALERT_ESCALATION_RULE,
)

__all__ = [
    "RemoteSessionModel",
    "TimingEventModel",
    "SessionMessageModel",
    "SQLAlchemyRemoteSessionRepository",
    "SQLAlchemyTimingEventRepository",
    "SQLAlchemySessionMessageRepository",
    "DatabaseTimingSource",
    "EscalationRulesManager",
    "RulesFileHandler",
    "CircuitBreaker",
    "SlackClient",
    "SessionAlert",
    "SessionMonitorScheduler",
    "ALERT_SLA_VIOLATED",
    "ALERT_ESCALATION_RULE",
]
