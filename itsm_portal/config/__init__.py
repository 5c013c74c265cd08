"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="itsm-portal", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/itsm",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Incidents ==========
    incident_strict_transitions: bool = Field(
        default=True,
        description="Reject incident status changes outside the transition table"
    )

    # ========== Remote Sessions / SLA ==========
    escalation_rules_path: Path = Field(
        default=Path("escalation_rules.yaml"),
        description="Path to remote session escalation rules YAML file"
    )
    session_sla_poll_interval: int = Field(
        default=30,
        description="Seconds between SLA refreshes of active sessions (0 disables)",
        ge=0
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for session escalation alerts"
    )
    slack_channel: str = Field(
        default="#remote-support",
        description="Slack channel for session alerts"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== Notifications ==========
    notification_ttl_days: int = Field(
        default=7,
        description="Days before a chat notification expires",
        ge=1
    )
    realtime_queue_size: int = Field(
        default=100,
        description="Buffered change events per realtime subscriber",
        ge=1
    )

    # ========== MFA ==========
    mfa_code_ttl_minutes: int = Field(
        default=10,
        description="Minutes before an MFA code expires",
        ge=1,
        le=60
    )
    email_function_url: Optional[str] = Field(
        default=None,
        description="Transactional email function endpoint"
    )
    email_function_api_key: Optional[str] = Field(
        default=None,
        description="Bearer key for the email function"
    )
    email_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for email function calls",
        ge=0.1,
        le=60
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class IncidentStatus(str, Enum):
    """Incident lifecycle statuses."""
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class Priority(str, Enum):
    """Incident priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ResolutionMethod(str, Enum):
    """How an incident got resolved."""
    AUTO = "auto"
    MANUAL = "manual"
    ESCALATED = "escalated"


class SessionStatus(str, Enum):
    """Remote desktop session statuses."""
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EscalationRisk(str, Enum):
    """Three-level session escalation risk."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SLAStatus(str, Enum):
    """Session SLA health."""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    VIOLATED = "violated"


class SenderType(str, Enum):
    """Author of a remote session message."""
    REQUESTER = "requester"
    TARGET = "target"
    SYSTEM = "system"


class TriggerCondition(str, Enum):
    """Escalation rule trigger conditions."""
    SESSION_DURATION_EXCEEDED = "session_duration_exceeded"
    RESPONSE_TIME_EXCEEDED = "response_time_exceeded"
    USER_INACTIVITY = "user_inactivity"


class EscalationType(str, Enum):
    """Manual escalation actions on an active session."""
    SUPERVISOR_REQUEST = "supervisor_request"
    SUPERVISOR_TAKEOVER = "supervisor_takeover"
    MANUAL_ESCALATION = "manual_escalation"


# ========== Lists for validation ==========

VALID_STATUSES = [s.value for s in IncidentStatus]
VALID_PRIORITIES = [p.value for p in Priority]
VALID_RESOLUTION_METHODS = [m.value for m in ResolutionMethod]
VALID_SESSION_STATUSES = [s.value for s in SessionStatus]
TERMINAL_SESSION_STATUSES = [
    SessionStatus.DENIED.value,
    SessionStatus.COMPLETED.value,
    SessionStatus.CANCELLED.value,
]
