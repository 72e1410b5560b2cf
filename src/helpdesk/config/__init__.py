"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Runtime settings (database, scheduler intervals, Slack) come from the
environment. Engine configuration (business hours, SLA matrix, priority
weights and keywords) lives in a YAML file, see
``helpdesk.sla.infrastructure.external.EngineConfigManager``.
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
    app_name: str = Field(default="helpdesk-sla-engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Engine Configuration ==========
    engine_config_path: Path = Field(
        default=Path("engine_config.yaml"),
        description="Path to the engine configuration YAML file"
    )
    sla_monitor_interval_seconds: int = Field(
        default=300,
        description="Seconds between SLA status sweeps (0 disables the job)",
        ge=0
    )
    priority_sweep_interval_seconds: int = Field(
        default=7200,
        description="Seconds between priority recalculation sweeps (0 disables the job)",
        ge=0
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for notifications"
    )
    slack_channel: str = Field(
        default="#helpdesk-sla",
        description="Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
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
        allowed = {"development", "testing", "staging", "production"}
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

class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketCategory(str, Enum):
    """Ticket categories used by the SLA matrix."""
    HARDWARE = "Hardware"
    SOFTWARE = "Software"
    NETWORK = "Network"
    ACCESS = "Access"
    OTHER = "Other"


class SLAStatus(str, Enum):
    """SLA clock compliance states."""
    NOT_STARTED = "not_started"
    ON_TIME = "on_time"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    PAUSED = "paused"


class NotificationKind(str, Enum):
    """Events the engine hands to the notification sink."""
    BREACH = "breach"
    AT_RISK = "at_risk"
    PRIORITY_CHANGED = "priority_changed"
    STATUS_CHANGED = "status_changed"
    SLA_STARTED = "sla_started"
    ESCALATION = "escalation"


# ========== Lists for validation ==========

TERMINAL_STATUSES = frozenset({TicketStatus.CLOSED, TicketStatus.CANCELLED})
ACTIVE_STATUSES = [TicketStatus.OPEN, TicketStatus.IN_PROGRESS]
VALID_PRIORITIES = [Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.URGENT]
VALID_CATEGORIES = [
    TicketCategory.HARDWARE, TicketCategory.SOFTWARE, TicketCategory.NETWORK,
    TicketCategory.ACCESS, TicketCategory.OTHER
]
VALID_SLA_STATUSES = [
    SLAStatus.NOT_STARTED, SLAStatus.ON_TIME, SLAStatus.AT_RISK,
    SLAStatus.BREACHED, SLAStatus.PAUSED
]
