"""
Agent Infrastructure Repositories
==================================

Concrete implementations of IAgentRepository.

- InMemoryAgentRepository: per-agent asyncio.Lock around the capacity check
- SQLAlchemyAgentRepository: single conditional UPDATE per reservation
"""

import asyncio
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tierdesk.agents.application import IAgentRepository
from tierdesk.agents.domain import Agent
from tierdesk.agents.infrastructure.models import AgentModel
from tierdesk.config import AgentStatus, TicketTier
from tierdesk.core import ResourceNotFoundException, ValidationException
from tierdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _merge_identity(existing: Agent, incoming: Agent) -> Agent:
    """Identity fields from the incoming record, load bookkeeping from the stored one."""
    if incoming.max_capacity < existing.current_load:
        raise ValidationException(
            "max_capacity cannot drop below the agent's current load",
            {"agent_id": existing.id, "current_load": existing.current_load}
        )
    return replace(
        incoming,
        current_load=existing.current_load,
        last_assigned_at=existing.last_assigned_at,
    )


class InMemoryAgentRepository(IAgentRepository):
    """
    Process-local agent store.

    Returned agents are copies; callers never hold a reference to the
    stored record.
    """

    def __init__(self):
        self._agents: Dict[str, Agent] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _require(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise ResourceNotFoundException("Agent", agent_id)
        return agent

    async def get(self, agent_id: str) -> Agent:
        return replace(self._require(agent_id))

    async def upsert(self, agent: Agent) -> Agent:
        async with self._locks[agent.id]:
            existing = self._agents.get(agent.id)
            stored = _merge_identity(existing, agent) if existing else replace(agent)
            self._agents[agent.id] = stored
            return replace(stored)

    async def list(self, tier: Optional[TicketTier] = None) -> List[Agent]:
        agents = [a for a in self._agents.values() if tier is None or a.tier == tier]
        return [replace(a) for a in sorted(agents, key=lambda a: a.id)]

    async def try_reserve(self, agent_id: str, at: datetime) -> Optional[Agent]:
        async with self._locks[agent_id]:
            agent = self._require(agent_id)
            if not agent.has_capacity:
                return None
            agent.current_load += 1
            agent.last_assigned_at = at
            return replace(agent)

    async def release(self, agent_id: str) -> Agent:
        async with self._locks[agent_id]:
            agent = self._require(agent_id)
            if agent.current_load == 0:
                logger.warning("Release on an agent with no load", extra={"agent_id": agent_id})
            else:
                agent.current_load -= 1
            return replace(agent)

    async def set_status(self, agent_id: str, status: AgentStatus) -> Agent:
        async with self._locks[agent_id]:
            agent = self._require(agent_id)
            agent.status = status
            return replace(agent)


class SQLAlchemyAgentRepository(IAgentRepository):
    """
    SQLAlchemy implementation of the agent repository.

    Each call runs in its own short transaction from the session factory.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @staticmethod
    def _to_entity(model: AgentModel) -> Agent:
        return Agent(
            id=model.id,
            name=model.name,
            email=model.email,
            tier=TicketTier(model.tier),
            status=AgentStatus(model.status),
            current_load=model.current_load,
            max_capacity=model.max_capacity,
            specialties=frozenset(model.specialties or []),
            last_assigned_at=model.last_assigned_at,
        )

    @staticmethod
    async def _load(session: AsyncSession, agent_id: str) -> AgentModel:
        model = await session.get(AgentModel, agent_id, populate_existing=True)
        if model is None:
            raise ResourceNotFoundException("Agent", agent_id)
        return model

    async def get(self, agent_id: str) -> Agent:
        async with self._session_maker() as session:
            return self._to_entity(await self._load(session, agent_id))

    async def upsert(self, agent: Agent) -> Agent:
        async with self._session_maker() as session, session.begin():
            model = await session.get(AgentModel, agent.id, with_for_update=True)
            if model is None:
                model = AgentModel(
                    id=agent.id,
                    current_load=agent.current_load,
                    last_assigned_at=agent.last_assigned_at,
                )
                session.add(model)
            else:
                agent = _merge_identity(self._to_entity(model), agent)

            model.name = agent.name
            model.email = agent.email
            model.tier = agent.tier.value
            model.status = agent.status.value
            model.max_capacity = agent.max_capacity
            model.specialties = sorted(agent.specialties)
            await session.flush()
            return self._to_entity(model)

    async def list(self, tier: Optional[TicketTier] = None) -> List[Agent]:
        stmt = select(AgentModel).order_by(AgentModel.id)
        if tier is not None:
            stmt = stmt.where(AgentModel.tier == tier.value)

        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]

    async def try_reserve(self, agent_id: str, at: datetime) -> Optional[Agent]:
        stmt = (
            update(AgentModel)
            .where(
                AgentModel.id == agent_id,
                AgentModel.current_load < AgentModel.max_capacity,
            )
            .values(current_load=AgentModel.current_load + 1, last_assigned_at=at)
            .execution_options(synchronize_session=False)
        )

        async with self._session_maker() as session, session.begin():
            result = await session.execute(stmt)
            model = await self._load(session, agent_id)
            if result.rowcount == 0:
                return None
            return self._to_entity(model)

    async def release(self, agent_id: str) -> Agent:
        stmt = (
            update(AgentModel)
            .where(AgentModel.id == agent_id, AgentModel.current_load > 0)
            .values(current_load=AgentModel.current_load - 1)
            .execution_options(synchronize_session=False)
        )

        async with self._session_maker() as session, session.begin():
            result = await session.execute(stmt)
            model = await self._load(session, agent_id)
            if result.rowcount == 0:
                logger.warning("Release on an agent with no load", extra={"agent_id": agent_id})
            return self._to_entity(model)

    async def set_status(self, agent_id: str, status: AgentStatus) -> Agent:
        async with self._session_maker() as session, session.begin():
            model = await self._load(session, agent_id)
            model.status = status.value
            await session.flush()
            return self._to_entity(model)
