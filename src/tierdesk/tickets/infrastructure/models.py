"""
Ticket Infrastructure Models
=============================

SQLAlchemy ORM models for tickets and their escalation history.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tierdesk.config import RoutingState, TicketStatus
from tierdesk.infrastructure.database import Base, UTCDateTime


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table. `version` backs optimistic updates.
    """
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[str] = mapped_column(String(30), nullable=False, default=TicketStatus.OPEN.value)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    routing_state: Mapped[str] = mapped_column(String(20), nullable=False, default=RoutingState.QUEUED.value)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    platform: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    customer_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    assigned_agent_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    ai_suggestions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # SLA tracking
    sla_deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    response_deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    sla_breached_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    response_time_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    resolution_time_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    escalations: Mapped[List["EscalationModel"]] = relationship(
        back_populates="ticket",
        order_by="EscalationModel.sequence",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_tickets_tier_status", "tier", "status"),
    )


class EscalationModel(Base):
    """
    Database model for EscalationRecord.

    Maps to the 'ticket_escalations' table; rows are insert-only and
    ordered per ticket by `sequence`.
    """
    __tablename__ = "ticket_escalations"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    from_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    to_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(String(30), nullable=False)
    reason_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    ticket: Mapped[TicketModel] = relationship(back_populates="escalations")

    __table_args__ = (
        UniqueConstraint("ticket_id", "sequence", name="uq_ticket_escalations_sequence"),
    )
