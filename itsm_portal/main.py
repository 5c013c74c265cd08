"""
ITSM Portal - Main Application
==============================

IT service management portal backend.

Modules:
- Incidents: ticket lifecycle, statistics and satisfaction feedback
- Remote Sessions: remote desktop assistance with SLA timing and escalation
- Notifications: chat notification relay over the change feed
- MFA: email one-time codes

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, change feed, Slack, email function
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from itsm_portal.config import settings
from itsm_portal.core import ApplicationException

# Infrastructure
from itsm_portal.infrastructure.database import init_database, close_database, create_tables
from itsm_portal.infrastructure.realtime import ChangeFeed

# Remote session monitoring
from itsm_portal.remote_sessions.application import SessionTimingTracker
from itsm_portal.remote_sessions.infrastructure import (
    DatabaseTimingSource,
    EscalationRulesManager,
    SessionMonitorScheduler,
    SlackClient,
)
from itsm_portal.remote_sessions.services import SessionSLAMonitor
from itsm_portal.mfa.infrastructure import EmailFunctionDispatcher

# Module Routers
from itsm_portal.incidents.interfaces import incidents_router
from itsm_portal.remote_sessions.interfaces import remote_sessions_router
from itsm_portal.notifications.interfaces import notifications_router
from itsm_portal.mfa.interfaces import mfa_router

# Logging
from itsm_portal.shared.infrastructure.logging import setup_logging, get_logger
from itsm_portal.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)

logger = get_logger(__name__)


def init_services(app: FastAPI) -> None:
    """
    Build the process-wide services and store them in app state.

    Nothing is started here; the lifespan starts the monitor, scheduler
    and rules watcher.
    """
    change_feed = ChangeFeed(queue_size=settings.realtime_queue_size)

    rules_manager = EscalationRulesManager()
    rules_manager.load(settings.escalation_rules_path)

    tracker = SessionTimingTracker(DatabaseTimingSource())
    slack_client = SlackClient()
    monitor = SessionSLAMonitor(tracker, rules_manager, slack_client, change_feed)

    app.state.change_feed = change_feed
    app.state.escalation_rules = rules_manager
    app.state.session_tracker = tracker
    app.state.slack_client = slack_client
    app.state.session_monitor = monitor
    app.state.monitor_scheduler = SessionMonitorScheduler(
        interval_seconds=settings.session_sla_poll_interval
    )
    app.state.email_dispatcher = (
        EmailFunctionDispatcher() if settings.email_function_url else None
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database (tables created in development and test)
    3. Build services
    4. Start SLA monitor, poll scheduler and rules watcher

    SHUTDOWN runs the same steps in reverse.
    """
    # === STARTUP ===
    setup_logging()
    logger.info("Starting ITSM Portal", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()

    # Create tables (for development - use migrations in production)
    if settings.environment in ("development", "test"):
        logger.info("Creating database tables")
        try:
            await create_tables()
        except Exception as e:
            logger.warning(f"Database not available - running in degraded mode: {e}")

    init_services(app)

    monitor: SessionSLAMonitor = app.state.session_monitor
    await monitor.start()

    scheduler: SessionMonitorScheduler = app.state.monitor_scheduler
    if settings.session_sla_poll_interval > 0:
        await scheduler.start(monitor.poll)
    else:
        logger.info("Session SLA poll disabled")

    app.state.escalation_rules.start_watching()

    logger.info("ITSM Portal started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down ITSM Portal")

    await scheduler.stop()
    await monitor.stop()
    app.state.escalation_rules.stop_watching()
    app.state.change_feed.close_all()

    await app.state.slack_client.close()
    if app.state.email_dispatcher is not None:
        await app.state.email_dispatcher.close()

    await close_database()

    logger.info("ITSM Portal shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="ITSM Portal API",
    description="""
    ## IT Service Management Portal

    Incident tracking, remote desktop assistance and chat notifications.

    ---

    ### Incidents
    - `POST /incidents` - Report an incident
    - `GET /incidents` - List your incidents
    - `GET /incidents/stats` - Dashboard counters
    - `PATCH /incidents/{id}/status` - Move an incident through its lifecycle

    ### Remote Sessions
    - `POST /remote-sessions` - Request assistance from another user
    - `POST /remote-sessions/{id}/approve` - Target user approves
    - `GET /remote-sessions/{id}/metrics` - SLA timing metrics

    **SLA thresholds:** duration over 30 min or average response over 5 min is high risk;
    over 20 min or 3 min is medium.

    ### Notifications
    - `GET /notifications/unread` - Unread chat notifications
    - `WS /notifications/ws` - Live notification relay

    ### MFA
    - `POST /mfa/codes` - Email a one-time code
    - `POST /mfa/verify` - Verify it

    Callers identify themselves with the `X-User-ID` header.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(incidents_router)
app.include_router(remote_sessions_router)
app.include_router(notifications_router)
app.include_router(mfa_router)

# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "escalation_rules": "3 active",
                        "sla_scheduler": "running",
                        "change_feed": "2 subscribers",
                        "email_function": "configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports rule count, scheduler state, change feed subscribers and
    whether the email function is configured.
    """
    state = request.app.state
    checks = {
        "escalation_rules": "not_loaded",
        "sla_scheduler": "stopped",
        "change_feed": "not_initialized",
        "email_function": "not_configured",
    }

    if hasattr(state, "escalation_rules"):
        try:
            checks["escalation_rules"] = f"{len(state.escalation_rules.policy.active_rules())} active"
            if state.escalation_rules.last_error:
                checks["escalation_rules"] += " (last reload rejected)"
        except RuntimeError:
            pass
    if hasattr(state, "monitor_scheduler") and state.monitor_scheduler.is_running:
        checks["sla_scheduler"] = "running"
    if hasattr(state, "change_feed"):
        checks["change_feed"] = f"{state.change_feed.subscriber_count} subscribers"
    if getattr(state, "email_dispatcher", None) is not None:
        checks["email_function"] = "configured"

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "ITSM Portal",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "incidents": {"prefix": "/incidents"},
            "remote_sessions": {"prefix": "/remote-sessions"},
            "notifications": {"prefix": "/notifications"},
            "mfa": {"prefix": "/mfa"},
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "itsm_portal.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
