"""
Ticket Infrastructure Layer
============================

ORM models and ticket store implementations.
"""

from tierdesk.tickets.infrastructure.repositories import (
    InMemoryTicketStore,
    SQLAlchemyTicketStore,
)

__all__ = ["InMemoryTicketStore", "SQLAlchemyTicketStore"]
