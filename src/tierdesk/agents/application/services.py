"""
Agent Application Services
===========================

Agent registry (capacity bookkeeping) and routing engine (agent selection).

Following SOLID principles:
- Single Responsibility: the registry mutates load/status, the router only
  ranks a snapshot
- Dependency Inversion: both depend on IAgentRepository, never on a
  concrete store
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional

from tierdesk.agents.domain import Agent, normalize_specialties
from tierdesk.config import AgentStatus, TicketTier
from tierdesk.core import CapacityExceededException
from tierdesk.shared.infrastructure.logging import get_logger
from tierdesk.shared.infrastructure.resilience import ResilientCaller
from tierdesk.sla.application import IClock

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IAgentRepository(ABC):
    """
    Interface for agent persistence.

    `try_reserve` and `release` must be atomic per agent: a single
    compare-and-increment, never a read followed by a separate write.
    """

    @abstractmethod
    async def get(self, agent_id: str) -> Agent:
        """Get agent by id. Raises ResourceNotFoundException."""

    @abstractmethod
    async def upsert(self, agent: Agent) -> Agent:
        """
        Create or update an agent's identity fields.

        An existing agent keeps its current load and last assignment time.
        """

    @abstractmethod
    async def list(self, tier: Optional[TicketTier] = None) -> List[Agent]:
        """List agents, optionally only those of one tier, ordered by id."""

    @abstractmethod
    async def try_reserve(self, agent_id: str, at: datetime) -> Optional[Agent]:
        """Increment load if below capacity and return the updated agent. None when full."""

    @abstractmethod
    async def release(self, agent_id: str) -> Agent:
        """Decrement load (never below zero)."""

    @abstractmethod
    async def set_status(self, agent_id: str, status: AgentStatus) -> Agent:
        """Update presence."""


# ========== Application Services ==========

class AgentRegistry:
    """
    Agent capacity and presence.

    Every repository call is time-bounded and retried on timeout through
    the ResilientCaller.
    """

    def __init__(self, repository: IAgentRepository, caller: ResilientCaller, clock: IClock):
        self._repository = repository
        self._caller = caller
        self._clock = clock

    async def register(self, agent: Agent) -> Agent:
        stored = await self._caller.call("agents.upsert", self._repository.upsert, agent)
        logger.info(
            "Agent registered",
            extra={"agent_id": stored.id, "tier": stored.tier.value, "status": stored.status.value}
        )
        return stored

    async def get(self, agent_id: str) -> Agent:
        return await self._caller.call("agents.get", self._repository.get, agent_id)

    async def reserve(self, agent_id: str) -> Agent:
        """
        Take one unit of the agent's capacity.

        Raises:
            CapacityExceededException: agent is full
            ResourceNotFoundException: unknown agent
        """
        agent = await self._caller.call(
            "agents.reserve", self._repository.try_reserve, agent_id, self._clock.now()
        )
        if agent is None:
            raise CapacityExceededException(agent_id)

        logger.debug(
            "Agent capacity reserved",
            extra={"agent_id": agent_id, "current_load": agent.current_load, "max_capacity": agent.max_capacity}
        )
        return agent

    async def release(self, agent_id: str) -> Agent:
        agent = await self._caller.call("agents.release", self._repository.release, agent_id)
        logger.debug(
            "Agent capacity released",
            extra={"agent_id": agent_id, "current_load": agent.current_load}
        )
        return agent

    async def set_status(self, agent_id: str, status: AgentStatus) -> Agent:
        agent = await self._caller.call("agents.set_status", self._repository.set_status, agent_id, status)
        logger.info("Agent status changed", extra={"agent_id": agent_id, "status": status.value})
        return agent

    async def list_by_tier(self, tier: TicketTier) -> List[Agent]:
        return await self._caller.call("agents.list", self._repository.list, tier)

    async def snapshot(self) -> List[Agent]:
        return await self._caller.call("agents.list", self._repository.list)


class RoutingEngine:
    """
    Picks an agent for a ticket from a registry snapshot.

    Pure: never reserves or mutates anything. Eligible agents are online,
    at exactly the ticket's tier, with spare capacity and, when the ticket
    carries tags, at least one overlapping specialty.

    Ordering (total and deterministic):
    1. specialty overlap count, descending
    2. current load / capacity, ascending
    3. last assignment time, ascending (never assigned first)
    4. agent id
    """

    def __init__(self, specialty_fallback: bool = False):
        self.specialty_fallback = specialty_fallback

    def rank(self, tier: TicketTier, tags: Iterable[str], agents: Iterable[Agent]) -> List[Agent]:
        wanted = normalize_specialties(tags)
        eligible = [a for a in agents if a.tier == tier and a.is_available]

        overlaps = {a.id: a.specialty_overlap(wanted) for a in eligible}
        if wanted:
            specialists = [a for a in eligible if overlaps[a.id] > 0]
            if specialists or not self.specialty_fallback:
                eligible = specialists

        def sort_key(agent: Agent):
            return (
                -overlaps[agent.id],
                agent.load_ratio,
                agent.last_assigned_at is not None,
                agent.last_assigned_at or datetime.min,
                agent.id,
            )

        return sorted(eligible, key=sort_key)

    def find_agent(self, tier: TicketTier, tags: Iterable[str], agents: Iterable[Agent]) -> Optional[str]:
        """Best agent id, or None when no agent is available."""
        ranked = self.rank(tier, tags, agents)
        return ranked[0].id if ranked else None
