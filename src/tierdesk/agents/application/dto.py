"""
Agent Application DTOs
=======================

Pydantic request/response models for the agents API.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from tierdesk.agents.domain import Agent

TierStr = Literal["tier1", "tier2", "tier3", "escalated"]
AgentStatusStr = Literal["online", "busy", "offline"]


# ========== Request DTOs ==========

class AgentRegisterRequest(BaseModel):
    """Create or update an agent (identity system push)."""
    name: str = Field(..., min_length=1, description="Display name")
    email: Optional[str] = Field(None, description="Contact address, opaque to routing")
    tier: TierStr = Field(..., description="Highest tier the agent handles")
    status: AgentStatusStr = Field(default="offline", description="Presence")
    max_capacity: int = Field(default=5, ge=0, le=100, description="Concurrent ticket limit")
    specialties: List[str] = Field(default_factory=list, description="Specialty labels")


class AgentStatusRequest(BaseModel):
    """Presence change."""
    status: AgentStatusStr


# ========== Response DTOs ==========

class AgentResponse(BaseModel):
    """Agent as exposed to the UI."""
    id: str
    name: str
    email: Optional[str] = None
    tier: TierStr
    status: AgentStatusStr
    current_load: int
    max_capacity: int
    specialties: List[str]
    last_assigned_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, agent: Agent) -> "AgentResponse":
        return cls(
            id=agent.id,
            name=agent.name,
            email=agent.email,
            tier=agent.tier.value,
            status=agent.status.value,
            current_load=agent.current_load,
            max_capacity=agent.max_capacity,
            specialties=sorted(agent.specialties),
            last_assigned_at=agent.last_assigned_at,
        )


class AgentListResponse(BaseModel):
    agents: List[AgentResponse]
    count: int
