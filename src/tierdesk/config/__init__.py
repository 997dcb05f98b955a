"""
Configuration Module
====================

Application settings and domain constants.

Settings are loaded from environment variables (or `.env`) with Pydantic.
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
    app_name: str = Field(default="tierdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="",
        description="Async SQLAlchemy URL; empty keeps tickets and agents in memory"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA policy YAML file"
    )
    sla_sweep_interval: int = Field(
        default=60,
        description="Seconds between overdue-ticket sweeps (0 disables the sweep)",
        ge=0
    )

    # ========== Engine ==========
    worker_count: int = Field(default=4, description="Command worker tasks", ge=1, le=64)
    store_timeout_seconds: float = Field(
        default=2.0,
        description="Bound on a single store/registry call",
        gt=0
    )
    retry_attempts: int = Field(default=3, description="Attempts per timed-out call", ge=1, le=10)
    retry_base_delay: float = Field(
        default=0.1,
        description="Base delay in seconds for exponential backoff",
        ge=0
    )
    ai_confidence_threshold: float = Field(
        default=0.6,
        description="Tier 1 tickets below this AI confidence are escalated",
        ge=0.0,
        le=1.0
    )
    routing_specialty_fallback: bool = Field(
        default=False,
        description="Route tagged tickets to non-specialists when no specialist is free"
    )
    backlog_drain_batch: int = Field(
        default=5,
        description="Queued tickets retried when capacity frees up",
        ge=1
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for breach notifications"
    )
    slack_channel: str = Field(
        default="#support-escalations",
        description="Slack channel for breach notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
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
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @property
    def uses_database(self) -> bool:
        return bool(self.database_url)


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str, Enum):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Urgency rank, 0 is most urgent."""
        return PRIORITY_ORDER.index(self)


class TicketTier(str, Enum):
    """Competence level required to resolve a ticket."""
    TIER1 = "tier1"
    TIER2 = "tier2"
    TIER3 = "tier3"
    ESCALATED = "escalated"

    @property
    def level(self) -> int:
        return TIER_ORDER.index(self)

    def next(self) -> Optional["TicketTier"]:
        """Next tier up, or None when already at the top."""
        index = TIER_ORDER.index(self)
        if index + 1 >= len(TIER_ORDER):
            return None
        return TIER_ORDER[index + 1]


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_CUSTOMER = "pending_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketSource(str, Enum):
    """Channel a ticket came in through."""
    CHAT = "chat"
    EMAIL = "email"
    PHONE = "phone"
    WEB_FORM = "web_form"
    API = "api"


class Platform(str, Enum):
    """Originating messaging platform."""
    LINE = "line"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    DISCORD = "discord"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    WEB = "web"
    OTHER = "other"


class AgentStatus(str, Enum):
    """Agent presence."""
    ONLINE = "online"
    BUSY = "busy"
    OFFLINE = "offline"


class RoutingState(str, Enum):
    """Where an open ticket stands with respect to assignment."""
    QUEUED = "queued"
    ASSIGNED = "assigned"
    UNASSIGNABLE = "unassignable"


class EscalationReason(str, Enum):
    """Why a ticket moved up a tier."""
    MANUAL = "manual"
    SLA_BREACH = "sla_breach"
    LOW_AI_CONFIDENCE = "low_ai_confidence"
    CRITICAL_ISSUE = "critical_issue"


class EventType(str, Enum):
    """Lifecycle events published on the event bus."""
    TICKET_CREATED = "TicketCreated"
    TICKET_ASSIGNED = "TicketAssigned"
    TICKET_QUEUED = "TicketQueued"
    TICKET_UNASSIGNABLE = "TicketUnassignable"
    TICKET_ESCALATED = "TicketEscalated"
    TICKET_UPDATED = "TicketUpdated"
    SLA_BREACHED = "SLABreached"
    TICKET_RESOLVED = "TicketResolved"
    TICKET_CLOSED = "TicketClosed"
    DEGRADED_SERVICE = "DegradedService"


class SLAType(str, Enum):
    """Types of SLA clocks."""
    RESPONSE = "response"
    RESOLUTION = "resolution"


class SLAState(str, Enum):
    """SLA status states."""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    MET = "met"


# ========== Orderings and lists for validation ==========

TIER_ORDER = [TicketTier.TIER1, TicketTier.TIER2, TicketTier.TIER3, TicketTier.ESCALATED]
PRIORITY_ORDER = [Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW]

VALID_PRIORITIES = [p.value for p in PRIORITY_ORDER]
VALID_SLA_TYPES = [SLAType.RESPONSE.value, SLAType.RESOLUTION.value]
TERMINAL_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})

# Tag vocabularies used for initial tier placement and escalation triggers
TIER3_TAGS = frozenset({"security", "enterprise", "breach", "critical"})
TIER2_TAGS = frozenset({"api", "integration", "technical", "developer"})
# Tickets carrying a tier3 tag already start at tier3, so only "urgent" and
# "incident-response" trigger on a derived tier; the rest need an explicit tier1
CRITICAL_TAGS = TIER3_TAGS | frozenset({"urgent", "incident-response"})
