"""
Ticket Application Layer
=========================

Store contract, command dispatcher, escalation engine and API DTOs.
"""

from tierdesk.tickets.application.services import (
    ITicketStore,
    TicketFilter,
    TicketMutation,
    TicketQuery,
)
from tierdesk.tickets.application.commands import CommandDispatcher
from tierdesk.tickets.application.engine import SYSTEM_ACTOR, EscalationEngine

__all__ = [
    "ITicketStore",
    "TicketFilter",
    "TicketMutation",
    "TicketQuery",
    "CommandDispatcher",
    "SYSTEM_ACTOR",
    "EscalationEngine",
]
