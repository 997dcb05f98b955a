"""
Agent Infrastructure Layer
===========================

ORM model and repository implementations.
"""

from tierdesk.agents.infrastructure.repositories import (
    InMemoryAgentRepository,
    SQLAlchemyAgentRepository,
)

__all__ = ["InMemoryAgentRepository", "SQLAlchemyAgentRepository"]
