"""Unit tests for AgentRegistry and the in-memory agent repository"""
import asyncio

import pytest

from tierdesk.agents.domain import Agent
from tierdesk.config import AgentStatus, TicketTier
from tierdesk.core import CapacityExceededException, ResourceNotFoundException, ValidationException

from conftest import T0


@pytest.fixture
async def seeded(registry):
    await registry.register(Agent(id="a1", name="Ana", tier=TicketTier.TIER1, status=AgentStatus.ONLINE, max_capacity=1))
    await registry.register(Agent(id="a2", name="Ben", tier=TicketTier.TIER2, status=AgentStatus.ONLINE, max_capacity=3))
    return registry


class TestReserve:
    async def test_reserve_increments_load_and_stamps_time(self, seeded):
        agent = await seeded.reserve("a2")
        assert agent.current_load == 1
        assert agent.last_assigned_at == T0

    async def test_reserve_full_agent_raises(self, seeded):
        await seeded.reserve("a1")
        with pytest.raises(CapacityExceededException):
            await seeded.reserve("a1")
        assert (await seeded.get("a1")).current_load == 1

    async def test_reserve_unknown_agent(self, seeded):
        with pytest.raises(ResourceNotFoundException):
            await seeded.reserve("ghost")

    async def test_concurrent_reservations_of_last_slot(self, seeded):
        results = await asyncio.gather(
            *(seeded.reserve("a1") for _ in range(5)),
            return_exceptions=True,
        )
        succeeded = [r for r in results if isinstance(r, Agent)]
        rejected = [r for r in results if isinstance(r, CapacityExceededException)]

        assert len(succeeded) == 1
        assert len(rejected) == 4
        assert (await seeded.get("a1")).current_load == 1


class TestRelease:
    async def test_release_decrements(self, seeded):
        await seeded.reserve("a2")
        await seeded.reserve("a2")
        agent = await seeded.release("a2")
        assert agent.current_load == 1

    async def test_release_never_goes_negative(self, seeded):
        agent = await seeded.release("a2")
        assert agent.current_load == 0

    async def test_release_unknown_agent(self, seeded):
        with pytest.raises(ResourceNotFoundException):
            await seeded.release("ghost")


class TestRegistration:
    async def test_reregistering_keeps_load(self, seeded):
        await seeded.reserve("a2")
        updated = await seeded.register(
            Agent(id="a2", name="Ben Ortiz", tier=TicketTier.TIER2, status=AgentStatus.BUSY, max_capacity=4)
        )
        assert updated.name == "Ben Ortiz"
        assert updated.current_load == 1
        assert updated.last_assigned_at == T0

    async def test_capacity_cannot_drop_below_load(self, seeded):
        await seeded.reserve("a2")
        await seeded.reserve("a2")
        with pytest.raises(ValidationException):
            await seeded.register(Agent(id="a2", name="Ben", tier=TicketTier.TIER2, max_capacity=1))

    async def test_set_status_and_list_by_tier(self, seeded):
        await seeded.set_status("a1", AgentStatus.OFFLINE)
        tier1 = await seeded.list_by_tier(TicketTier.TIER1)
        assert [(a.id, a.status) for a in tier1] == [("a1", AgentStatus.OFFLINE)]
        assert [a.id for a in await seeded.snapshot()] == ["a1", "a2"]

    async def test_returned_agents_are_copies(self, seeded):
        agent = await seeded.get("a1")
        agent.current_load = 1
        assert (await seeded.get("a1")).current_load == 0
