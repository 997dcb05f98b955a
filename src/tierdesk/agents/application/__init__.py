"""
Agent Application Layer
========================

Registry and routing services, repository interface, API DTOs.
"""

from tierdesk.agents.application.services import (
    AgentRegistry,
    IAgentRepository,
    RoutingEngine,
)
from tierdesk.agents.application.dto import (
    AgentListResponse,
    AgentRegisterRequest,
    AgentResponse,
    AgentStatusRequest,
)

__all__ = [
    "AgentRegistry",
    "IAgentRepository",
    "RoutingEngine",
    "AgentListResponse",
    "AgentRegisterRequest",
    "AgentResponse",
    "AgentStatusRequest",
]
