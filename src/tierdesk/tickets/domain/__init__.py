"""
Ticket Domain Layer
===================

Contains:
- Entities: Ticket, EscalationRecord, AISuggestion
- BacklogQueue: unassigned tickets per tier
- EscalationPolicy: automatic escalation triggers

No infrastructure dependencies.
"""

from tierdesk.tickets.domain.entities import (
    AISuggestion,
    EscalationRecord,
    Ticket,
    generate_ticket_id,
    initial_tier_for_tags,
    normalize_tags,
)
from tierdesk.tickets.domain.backlog import BacklogQueue
from tierdesk.tickets.domain.policy import EscalationPolicy

__all__ = [
    "AISuggestion",
    "EscalationRecord",
    "Ticket",
    "generate_ticket_id",
    "initial_tier_for_tags",
    "normalize_tags",
    "BacklogQueue",
    "EscalationPolicy",
]
