"""
Ticket Domain Entities
=======================

Pure business objects with no infrastructure dependencies.

Status and tier are two independent state machines:

    status: open -> in_progress <-> pending_customer -> resolved -> closed
    tier:   tier1 -> tier2 -> tier3 -> escalated   (never decreases)

Every mutating method either applies a legal transition or raises
InvalidTransitionException without touching the ticket.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple
from uuid import uuid4

from tierdesk.config import (
    EscalationReason,
    Platform,
    Priority,
    RoutingState,
    TERMINAL_STATUSES,
    TIER2_TAGS,
    TIER3_TAGS,
    TicketSource,
    TicketStatus,
    TicketTier,
)
from tierdesk.core import DomainException, InvalidTransitionException, ValidationException


def generate_ticket_id() -> str:
    return f"TKT-{uuid4().hex[:12].upper()}"


def normalize_tags(tags: Iterable[str]) -> FrozenSet[str]:
    return frozenset(t.strip().lower() for t in tags if t and t.strip())


def initial_tier_for_tags(tags: Iterable[str]) -> TicketTier:
    """Security/enterprise issues start at tier3, technical ones at tier2."""
    normalized = normalize_tags(tags)
    if normalized & TIER3_TAGS:
        return TicketTier.TIER3
    if normalized & TIER2_TAGS:
        return TicketTier.TIER2
    return TicketTier.TIER1


@dataclass(frozen=True)
class AISuggestion:
    """Classifier annotation. Read-only for the engine."""
    title: str
    content: str
    confidence: float
    tags: FrozenSet[str] = frozenset()
    usage_count: int = 0

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationException(
                "confidence must be within [0, 1]",
                {"confidence": self.confidence}
            )
        if self.usage_count < 0:
            raise ValidationException("usage_count must be non-negative")
        object.__setattr__(self, "tags", normalize_tags(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "confidence": self.confidence,
            "tags": sorted(self.tags),
            "usage_count": self.usage_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AISuggestion":
        return cls(
            title=data["title"],
            content=data.get("content", ""),
            confidence=float(data["confidence"]),
            tags=frozenset(data.get("tags") or ()),
            usage_count=int(data.get("usage_count", 0)),
        )


@dataclass(frozen=True)
class EscalationRecord:
    """One tier transition. Immutable once appended."""
    id: str
    timestamp: datetime
    from_tier: TicketTier
    to_tier: TicketTier
    reason: EscalationReason
    actor_id: str
    reason_text: str = ""
    notes: Optional[str] = None

    def __post_init__(self):
        if self.to_tier.level != self.from_tier.level + 1:
            raise DomainException(
                "Escalation must advance exactly one tier",
                {"from_tier": self.from_tier.value, "to_tier": self.to_tier.value}
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "from_tier": self.from_tier.value,
            "to_tier": self.to_tier.value,
            "reason": self.reason.value,
            "reason_text": self.reason_text,
            "actor_id": self.actor_id,
            "notes": self.notes,
        }


@dataclass
class Ticket:
    """
    Support ticket.

    `sla_deadline` and `response_deadline` are fixed at creation. The
    response and resolution durations are recorded once. `version` is
    bumped by the store on every successful write.
    """

    id: str
    title: str
    description: str
    priority: Priority
    tier: TicketTier
    source: TicketSource
    platform: Platform
    customer_id: str
    customer_name: str
    created_at: datetime
    updated_at: datetime
    sla_deadline: datetime
    response_deadline: datetime

    status: TicketStatus = TicketStatus.OPEN
    routing_state: RoutingState = RoutingState.QUEUED
    assigned_agent_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    tags: FrozenSet[str] = field(default_factory=frozenset)
    ai_suggestions: Tuple[AISuggestion, ...] = ()
    escalations: Tuple[EscalationRecord, ...] = ()
    response_time_seconds: Optional[float] = None
    resolution_time_seconds: Optional[float] = None
    sla_breached_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValidationException("Ticket title is required")
        self.tags = normalize_tags(self.tags)
        self.ai_suggestions = tuple(self.ai_suggestions)
        self.escalations = tuple(self.escalations)

    # ========== Queries ==========

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_assigned(self) -> bool:
        """Holds a slot of an agent's capacity."""
        return self.assigned_agent_id is not None and not self.is_terminal

    @property
    def ai_confidence(self) -> float:
        """Mean confidence of attached suggestions, 0.0 with none."""
        if not self.ai_suggestions:
            return 0.0
        return sum(s.confidence for s in self.ai_suggestions) / len(self.ai_suggestions)

    # ========== Transitions ==========

    def _require_active(self, action: str) -> None:
        if self.is_terminal:
            raise InvalidTransitionException(self.id, self.status, action)

    def assign_to(self, agent_id: str, now: datetime) -> None:
        self._require_active("assign")
        if self.assigned_agent_id is not None or self.status != TicketStatus.OPEN:
            raise InvalidTransitionException(self.id, self.status, "assign")

        self.assigned_agent_id = agent_id
        self.status = TicketStatus.IN_PROGRESS
        self.routing_state = RoutingState.ASSIGNED
        if self.response_time_seconds is None:
            self.response_time_seconds = (now - self.created_at).total_seconds()
        self.updated_at = now

    def apply_escalation(self, record: EscalationRecord) -> None:
        """Move up one tier and hand the ticket back to routing."""
        self._require_active("escalate")
        if record.from_tier != self.tier:
            raise DomainException(
                "Escalation record does not start from the ticket's tier",
                {"ticket_id": self.id, "tier": self.tier.value, "from_tier": record.from_tier.value}
            )

        self.escalations = self.escalations + (record,)
        self.tier = record.to_tier
        self.assigned_agent_id = None
        self.status = TicketStatus.OPEN
        self.routing_state = RoutingState.QUEUED
        self.updated_at = record.timestamp

    def set_routing_state(self, state: RoutingState, now: datetime) -> None:
        self._require_active("route")
        self.routing_state = state
        self.updated_at = now

    def mark_pending(self, now: datetime) -> None:
        if self.status != TicketStatus.IN_PROGRESS:
            raise InvalidTransitionException(self.id, self.status, "set pending")
        self.status = TicketStatus.PENDING_CUSTOMER
        self.updated_at = now

    def resume(self, now: datetime) -> None:
        if self.status != TicketStatus.PENDING_CUSTOMER:
            raise InvalidTransitionException(self.id, self.status, "resume")
        self.status = TicketStatus.IN_PROGRESS
        self.updated_at = now

    def mark_resolved(self, now: datetime) -> None:
        self._require_active("resolve")
        self.status = TicketStatus.RESOLVED
        self.resolved_at = now
        if self.resolution_time_seconds is None:
            self.resolution_time_seconds = (now - self.created_at).total_seconds()
        self.updated_at = now

    def mark_closed(self, now: datetime) -> None:
        if self.status != TicketStatus.RESOLVED:
            raise InvalidTransitionException(self.id, self.status, "close")
        self.status = TicketStatus.CLOSED
        self.closed_at = now
        self.updated_at = now

    def record_breach(self, now: datetime) -> None:
        if self.sla_breached_at is None:
            self.sla_breached_at = now
            self.updated_at = now

    def reprioritize(self, priority: Priority, now: datetime) -> None:
        """Change priority. The SLA deadlines stay where they were."""
        self._require_active("reprioritize")
        self.priority = priority
        self.updated_at = now

    def attach_suggestions(self, suggestions: Iterable[AISuggestion], now: datetime) -> None:
        self._require_active("annotate")
        self.ai_suggestions = self.ai_suggestions + tuple(suggestions)
        self.updated_at = now

    # ========== Serialization ==========

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "tier": self.tier.value,
            "routing_state": self.routing_state.value,
            "source": self.source.value,
            "platform": self.platform.value,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "assigned_agent_id": self.assigned_agent_id,
            "tags": sorted(self.tags),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "resolved_at": iso(self.resolved_at),
            "closed_at": iso(self.closed_at),
            "sla_deadline": iso(self.sla_deadline),
            "response_deadline": iso(self.response_deadline),
            "sla_breached_at": iso(self.sla_breached_at),
            "response_time_seconds": self.response_time_seconds,
            "resolution_time_seconds": self.resolution_time_seconds,
            "ai_confidence": self.ai_confidence,
            "ai_suggestions": [s.to_dict() for s in self.ai_suggestions],
            "escalations": [e.to_dict() for e in self.escalations],
            "version": self.version,
        }
