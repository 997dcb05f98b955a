"""
Agent Controllers (API Routes)
===============================

FastAPI routes used by the identity system (register/update agents) and
by the UI (presence, agent list).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from tierdesk.agents.application import (
    AgentListResponse,
    AgentRegisterRequest,
    AgentResponse,
    AgentStatusRequest,
)
from tierdesk.agents.domain import Agent
from tierdesk.config import AgentStatus, TicketTier
from tierdesk.tickets.application import EscalationEngine
from tierdesk.tickets.interfaces import get_engine

router = APIRouter(prefix="/agents", tags=["Agents"])


AGENT_REGISTER_EXAMPLE = {
    "name": "Dana Reyes",
    "email": "dana@example.com",
    "tier": "tier2",
    "status": "online",
    "max_capacity": 5,
    "specialties": ["api", "billing"]
}


@router.get("", response_model=AgentListResponse, summary="List agents")
async def list_agents(
    tier: Optional[str] = Query(None, pattern="^(tier1|tier2|tier3|escalated)$"),
    engine: EscalationEngine = Depends(get_engine),
) -> AgentListResponse:
    agents = await engine.list_agents(TicketTier(tier) if tier else None)
    return AgentListResponse(agents=[AgentResponse.from_domain(a) for a in agents], count=len(agents))


@router.get("/{agent_id}", response_model=AgentResponse, summary="Get agent")
async def get_agent(agent_id: str, engine: EscalationEngine = Depends(get_engine)) -> AgentResponse:
    return AgentResponse.from_domain(await engine.get_agent(agent_id))


@router.put(
    "/{agent_id}",
    response_model=AgentResponse,
    summary="Register or update agent",
    description="Upsert from the identity system. Current load is owned by the engine and kept.",
)
async def register_agent(
    agent_id: str,
    request: AgentRegisterRequest,
    engine: EscalationEngine = Depends(get_engine),
) -> AgentResponse:
    agent = await engine.register_agent(Agent(
        id=agent_id,
        name=request.name,
        email=request.email,
        tier=TicketTier(request.tier),
        status=AgentStatus(request.status),
        max_capacity=request.max_capacity,
        specialties=frozenset(request.specialties),
    ))
    return AgentResponse.from_domain(agent)


@router.post("/{agent_id}/status", response_model=AgentResponse, summary="Set agent presence")
async def set_agent_status(
    agent_id: str,
    request: AgentStatusRequest,
    engine: EscalationEngine = Depends(get_engine),
) -> AgentResponse:
    agent = await engine.set_agent_status(agent_id, AgentStatus(request.status))
    return AgentResponse.from_domain(agent)
