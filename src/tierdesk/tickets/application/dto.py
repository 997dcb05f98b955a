"""
Ticket Application DTOs
========================

Data Transfer Objects for the tickets API.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from tierdesk.sla.domain import SLAMetrics
from tierdesk.tickets.domain import AISuggestion, EscalationRecord, Ticket

# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
TierStr = Literal["tier1", "tier2", "tier3", "escalated"]
TicketStatusStr = Literal["open", "in_progress", "pending_customer", "resolved", "closed"]
RoutingStateStr = Literal["queued", "assigned", "unassignable"]
SourceStr = Literal["chat", "email", "phone", "web_form", "api"]
PlatformStr = Literal["line", "facebook", "instagram", "discord", "whatsapp", "telegram", "web", "other"]
EscalationReasonStr = Literal["manual", "sla_breach", "low_ai_confidence", "critical_issue"]
SLAStateStr = Literal["on_track", "at_risk", "breached", "met"]


# ========== Request DTOs ==========

class AISuggestionDTO(BaseModel):
    """Classifier suggestion."""
    title: str = Field(..., min_length=1)
    content: str = Field(default="")
    confidence: float = Field(..., ge=0.0, le=1.0)
    tags: List[str] = Field(default_factory=list)
    usage_count: int = Field(default=0, ge=0)

    def to_domain(self) -> AISuggestion:
        return AISuggestion(
            title=self.title,
            content=self.content,
            confidence=self.confidence,
            tags=frozenset(self.tags),
            usage_count=self.usage_count,
        )

    @classmethod
    def from_domain(cls, suggestion: AISuggestion) -> "AISuggestionDTO":
        return cls(**suggestion.to_dict())


class TicketCreateRequest(BaseModel):
    """New ticket from a channel."""
    title: str = Field(..., min_length=1, max_length=500, description="Ticket title")
    description: str = Field(default="", description="Ticket body")
    priority: PriorityStr = Field(default="medium", description="Ticket priority")
    source: SourceStr = Field(default="web_form", description="Intake channel")
    platform: PlatformStr = Field(default="web", description="Originating platform")
    customer_id: str = Field(default="", description="Customer reference")
    customer_name: str = Field(default="", description="Customer display name")
    tags: List[str] = Field(default_factory=list, description="Category tags")
    tier: Optional[TierStr] = Field(None, description="Initial tier; derived from tags when omitted")
    ai_suggestions: List[AISuggestionDTO] = Field(default_factory=list)


class AssignRequest(BaseModel):
    """Assignment; auto-routing when agent_id is omitted."""
    agent_id: Optional[str] = None
    cross_assign: bool = Field(default=False, description="Allow an agent below the ticket's tier")


class EscalateRequest(BaseModel):
    reason: EscalationReasonStr = "manual"
    actor: str = Field(..., min_length=1, description="Operator id")
    notes: Optional[str] = None


class PriorityUpdateRequest(BaseModel):
    priority: PriorityStr


class SuggestionsRequest(BaseModel):
    suggestions: List[AISuggestionDTO] = Field(..., min_length=1)


# ========== Response DTOs ==========

class EscalationRecordResponse(BaseModel):
    id: str
    timestamp: datetime
    from_tier: TierStr
    to_tier: TierStr
    reason: EscalationReasonStr
    reason_text: str
    actor_id: str
    notes: Optional[str] = None

    @classmethod
    def from_domain(cls, record: EscalationRecord) -> "EscalationRecordResponse":
        return cls(
            id=record.id,
            timestamp=record.timestamp,
            from_tier=record.from_tier.value,
            to_tier=record.to_tier.value,
            reason=record.reason.value,
            reason_text=record.reason_text,
            actor_id=record.actor_id,
            notes=record.notes,
        )


class TicketResponse(BaseModel):
    """Ticket as exposed to the UI."""
    id: str
    title: str
    description: str
    status: TicketStatusStr
    priority: PriorityStr
    tier: TierStr
    routing_state: RoutingStateStr
    source: SourceStr
    platform: PlatformStr
    customer_id: str
    customer_name: str
    assigned_agent_id: Optional[str] = None
    tags: List[str]
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    sla_deadline: datetime
    response_deadline: datetime
    sla_breached_at: Optional[datetime] = None
    response_time_seconds: Optional[float] = None
    resolution_time_seconds: Optional[float] = None
    ai_confidence: float
    ai_suggestions: List[AISuggestionDTO]
    escalations: List[EscalationRecordResponse]
    version: int

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketResponse":
        return cls(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            status=ticket.status.value,
            priority=ticket.priority.value,
            tier=ticket.tier.value,
            routing_state=ticket.routing_state.value,
            source=ticket.source.value,
            platform=ticket.platform.value,
            customer_id=ticket.customer_id,
            customer_name=ticket.customer_name,
            assigned_agent_id=ticket.assigned_agent_id,
            tags=sorted(ticket.tags),
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            sla_deadline=ticket.sla_deadline,
            response_deadline=ticket.response_deadline,
            sla_breached_at=ticket.sla_breached_at,
            response_time_seconds=ticket.response_time_seconds,
            resolution_time_seconds=ticket.resolution_time_seconds,
            ai_confidence=ticket.ai_confidence,
            ai_suggestions=[AISuggestionDTO.from_domain(s) for s in ticket.ai_suggestions],
            escalations=[EscalationRecordResponse.from_domain(e) for e in ticket.escalations],
            version=ticket.version,
        )


class TicketListResponse(BaseModel):
    tickets: List[TicketResponse]
    count: int
    limit: int
    offset: int


class SLAClockResponse(BaseModel):
    """One SLA clock."""
    deadline: datetime
    remaining_seconds: float
    percentage_remaining: float
    is_breached: bool
    state: SLAStateStr
    met_at: Optional[datetime] = None


class TicketSLAResponse(BaseModel):
    """SLA view of a ticket."""
    ticket_id: str
    response_sla: SLAClockResponse
    resolution_sla: SLAClockResponse
    overall_state: SLAStateStr
    next_deadline: datetime
    breach_recorded_at: Optional[datetime] = None

    @classmethod
    def from_metrics(cls, metrics: SLAMetrics) -> "TicketSLAResponse":
        return cls(
            ticket_id=metrics.ticket_id,
            response_sla=SLAClockResponse(
                deadline=metrics.response_deadline,
                remaining_seconds=metrics.response_remaining_seconds,
                percentage_remaining=metrics.response_percentage_remaining,
                is_breached=metrics.response_is_breached,
                state=metrics.response_state.value,
                met_at=metrics.response_met_at,
            ),
            resolution_sla=SLAClockResponse(
                deadline=metrics.resolution_deadline,
                remaining_seconds=metrics.resolution_remaining_seconds,
                percentage_remaining=metrics.resolution_percentage_remaining,
                is_breached=metrics.resolution_is_breached,
                state=metrics.resolution_state.value,
                met_at=metrics.resolution_met_at,
            ),
            overall_state=metrics.most_urgent_state.value,
            next_deadline=metrics.next_deadline,
            breach_recorded_at=metrics.breach_recorded_at,
        )
