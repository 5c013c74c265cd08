"""
Remote Session Application Layer
================================

Contains:
- Services: session workflow, session chat and timing log
- Tracker: SLA metrics with a last-known-good cache
- DTOs: Data transfer objects for API serialization
"""

from itsm_portal.remote_sessions.application.dto import (
    SessionRequestCreate,
    SessionDecisionRequest,
    EscalationRequest,
    MessageCreateRequest,
    TimingEventCreateRequest,
    RemoteSessionResponse,
    SessionMessageResponse,
    TimingEventResponse,
    SessionMetricsResponse,
    EscalationRuleResponse,
    EscalationStatusResponse,
)
from itsm_portal.remote_sessions.application.services import (
    RemoteSessionService,
    IRemoteSessionRepository,
    ITimingEventRepository,
    ISessionMessageRepository,
    TIMING_EVENTS_TABLE,
)
from itsm_portal.remote_sessions.application.tracker import (
    SessionTimingTracker,
    ITimingSource,
    TimingSnapshot,
)

__all__ = [
    # DTOs
    "SessionRequestCreate",
    "SessionDecisionRequest",
    "EscalationRequest",
    "MessageCreateRequest",
    "TimingEventCreateRequest",
    "RemoteSessionResponse",
    "SessionMessageResponse",
    "TimingEventResponse",
    "SessionMetricsResponse",
    "EscalationRuleResponse",
    "EscalationStatusResponse",
    # Services
    "RemoteSessionService",
    "SessionTimingTracker",
    "TimingSnapshot",
    "TIMING_EVENTS_TABLE",
    # Repository Interfaces
    "IRemoteSessionRepository",
    "ITimingEventRepository",
    "ISessionMessageRepository",
    "ITimingSource",
]
