"""
Tests for the ticket stores

Every test runs against the in-memory store and the SQLAlchemy store on
an in-memory SQLite database (aiosqlite).
"""
from datetime import timedelta

import pytest

from tierdesk.config import EscalationReason, Platform, Priority, TicketStatus, TicketTier
from tierdesk.core import ConflictException, InvalidTransitionException, ResourceNotFoundException
from tierdesk.infrastructure.database import close_database, create_tables, get_session_maker, init_database
from tierdesk.tickets.application import TicketFilter
from tierdesk.tickets.domain import AISuggestion, EscalationRecord
from tierdesk.tickets.infrastructure import InMemoryTicketStore, SQLAlchemyTicketStore

from conftest import T0


@pytest.fixture(params=["memory", "sqlite"])
async def ticket_store(request):
    if request.param == "memory":
        yield InMemoryTicketStore()
        return

    init_database("sqlite+aiosqlite:///:memory:")
    await create_tables()
    yield SQLAlchemyTicketStore(get_session_maker())
    await close_database()


def escalation(from_tier: TicketTier, to_tier: TicketTier, minutes: int = 10) -> EscalationRecord:
    return EscalationRecord(
        id=f"esc-{from_tier.value}",
        timestamp=T0 + timedelta(minutes=minutes),
        from_tier=from_tier,
        to_tier=to_tier,
        reason=EscalationReason.MANUAL,
        actor_id="op-1",
        notes="customer is waiting",
    )


async def seed(ticket_store, make_ticket):
    """Five tickets one minute apart."""
    fields = [
        dict(title="Login loop", tier=TicketTier.TIER1, priority=Priority.HIGH, platform=Platform.LINE,
             customer_name="Globex"),
        dict(title="API 500 on sync", tier=TicketTier.TIER2, priority=Priority.CRITICAL, customer_name="Acme Retail"),
        dict(title="Refund missing", tier=TicketTier.TIER2, priority=Priority.LOW, customer_name="Blue Fox"),
        dict(title="Webhook retries", tier=TicketTier.TIER2, priority=Priority.MEDIUM, customer_name="ACME Labs"),
        dict(title="SSO outage", tier=TicketTier.TIER3, priority=Priority.CRITICAL, customer_name="Initech"),
    ]
    tickets = []
    for i, values in enumerate(fields):
        ticket = make_ticket(created_at=T0 + timedelta(minutes=i), **values)
        await ticket_store.create(ticket)
        tickets.append(ticket)
    return tickets


class TestCreateAndGet:
    async def test_round_trip(self, ticket_store, make_ticket):
        ticket = make_ticket(
            priority=Priority.HIGH,
            tags=frozenset({"billing"}),
            ai_suggestions=(AISuggestion(title="Refund guide", content="...", confidence=0.8),),
        )
        assert await ticket_store.create(ticket) == ticket.id

        stored = await ticket_store.get(ticket.id)
        assert stored.priority == Priority.HIGH
        assert stored.tier == TicketTier.TIER1
        assert stored.status == TicketStatus.OPEN
        assert stored.tags == frozenset({"billing"})
        assert stored.ai_suggestions == ticket.ai_suggestions
        assert stored.sla_deadline == ticket.sla_deadline
        assert stored.created_at == T0
        assert stored.version == 0

    async def test_unknown_ticket(self, ticket_store):
        with pytest.raises(ResourceNotFoundException):
            await ticket_store.get("TKT-MISSING")

    async def test_duplicate_id_conflicts(self, ticket_store, make_ticket):
        ticket = make_ticket()
        await ticket_store.create(ticket)
        with pytest.raises(ConflictException):
            await ticket_store.create(ticket)

    async def test_returned_ticket_is_detached(self, ticket_store, make_ticket):
        ticket = make_ticket()
        await ticket_store.create(ticket)
        copy = await ticket_store.get(ticket.id)
        copy.title = "changed locally"
        assert (await ticket_store.get(ticket.id)).title == ticket.title


class TestUpdate:
    async def test_update_bumps_version(self, ticket_store, make_ticket):
        ticket = make_ticket()
        await ticket_store.create(ticket)

        updated = await ticket_store.update(ticket.id, lambda t: t.assign_to("agent-1", T0), 0)

        assert updated.version == 1
        assert updated.status == TicketStatus.IN_PROGRESS
        stored = await ticket_store.get(ticket.id)
        assert stored.assigned_agent_id == "agent-1"
        assert stored.version == 1

    async def test_stale_version_conflicts(self, ticket_store, make_ticket):
        ticket = make_ticket()
        await ticket_store.create(ticket)
        await ticket_store.update(ticket.id, lambda t: t.reprioritize(Priority.LOW, T0), 0)

        with pytest.raises(ConflictException):
            await ticket_store.update(ticket.id, lambda t: t.reprioritize(Priority.HIGH, T0), 0)
        assert (await ticket_store.get(ticket.id)).priority == Priority.LOW

    async def test_failed_mutation_writes_nothing(self, ticket_store, make_ticket):
        ticket = make_ticket()
        await ticket_store.create(ticket)

        with pytest.raises(InvalidTransitionException):
            await ticket_store.update(ticket.id, lambda t: t.mark_closed(T0), 0)

        stored = await ticket_store.get(ticket.id)
        assert stored.status == TicketStatus.OPEN
        assert stored.version == 0

    async def test_update_unknown_ticket(self, ticket_store):
        with pytest.raises(ResourceNotFoundException):
            await ticket_store.update("TKT-MISSING", lambda t: None, 0)


class TestAppendEscalation:
    async def test_history_is_appended_in_order(self, ticket_store, make_ticket):
        ticket = make_ticket()
        await ticket_store.create(ticket)
        await ticket_store.update(ticket.id, lambda t: t.assign_to("agent-1", T0), 0)

        first = await ticket_store.append_escalation(ticket.id, escalation(TicketTier.TIER1, TicketTier.TIER2), 1)
        assert first.tier == TicketTier.TIER2
        assert first.assigned_agent_id is None
        assert first.version == 2

        await ticket_store.append_escalation(ticket.id, escalation(TicketTier.TIER2, TicketTier.TIER3, minutes=20))

        stored = await ticket_store.get(ticket.id)
        assert stored.tier == TicketTier.TIER3
        assert [(e.from_tier, e.to_tier) for e in stored.escalations] == [
            (TicketTier.TIER1, TicketTier.TIER2),
            (TicketTier.TIER2, TicketTier.TIER3),
        ]
        assert stored.escalations[0].notes == "customer is waiting"

    async def test_stale_version_conflicts(self, ticket_store, make_ticket):
        ticket = make_ticket()
        await ticket_store.create(ticket)
        with pytest.raises(ConflictException):
            await ticket_store.append_escalation(ticket.id, escalation(TicketTier.TIER1, TicketTier.TIER2), 7)

    async def test_unknown_ticket(self, ticket_store):
        with pytest.raises(ResourceNotFoundException):
            await ticket_store.append_escalation("TKT-MISSING", escalation(TicketTier.TIER1, TicketTier.TIER2))


class TestQuery:
    async def test_filters_are_and_combined_newest_first(self, ticket_store, make_ticket):
        tickets = await seed(ticket_store, make_ticket)
        await ticket_store.update(tickets[2].id, lambda t: t.assign_to("agent-1", T0), 0)

        result = await ticket_store.query(
            TicketFilter(tier=TicketTier.TIER2, status=TicketStatus.OPEN)
        ).to_list()

        assert [t.id for t in result] == [tickets[3].id, tickets[1].id]
        assert all(t.tier == TicketTier.TIER2 and t.status == TicketStatus.OPEN for t in result)

    async def test_ascending_order(self, ticket_store, make_ticket):
        tickets = await seed(ticket_store, make_ticket)
        result = await ticket_store.query(TicketFilter(order="asc")).to_list()
        assert [t.id for t in result] == [t.id for t in tickets]

    async def test_priority_and_platform(self, ticket_store, make_ticket):
        tickets = await seed(ticket_store, make_ticket)
        critical = await ticket_store.query(TicketFilter(priority=Priority.CRITICAL)).to_list()
        assert {t.id for t in critical} == {tickets[1].id, tickets[4].id}

        line = await ticket_store.query(TicketFilter(platform=Platform.LINE)).to_list()
        assert [t.id for t in line] == [tickets[0].id]

    async def test_text_is_case_insensitive_on_title_and_customer(self, ticket_store, make_ticket):
        tickets = await seed(ticket_store, make_ticket)

        by_customer = await ticket_store.query(TicketFilter(text="acme")).to_list()
        assert [t.id for t in by_customer] == [tickets[3].id, tickets[1].id]

        by_title = await ticket_store.query(TicketFilter(text="SSO")).to_list()
        assert [t.id for t in by_title] == [tickets[4].id]

        assert await ticket_store.query(TicketFilter(text="%")).to_list() == []

    async def test_limit_and_offset(self, ticket_store, make_ticket):
        tickets = await seed(ticket_store, make_ticket)
        page = await ticket_store.query(TicketFilter(limit=2, offset=1)).to_list()
        assert [t.id for t in page] == [tickets[3].id, tickets[2].id]

    async def test_query_is_lazy_and_restartable(self, ticket_store, make_ticket):
        query = ticket_store.query(TicketFilter(tier=TicketTier.TIER1))
        ticket = make_ticket()
        await ticket_store.create(ticket)

        first = [t.id async for t in query]
        second = [t.id async for t in query]
        assert first == second == [ticket.id]

    async def test_active_only(self, ticket_store, make_ticket):
        tickets = await seed(ticket_store, make_ticket)
        await ticket_store.update(tickets[0].id, lambda t: t.mark_resolved(T0), 0)

        active = await ticket_store.query(TicketFilter(active_only=True)).to_list()
        assert tickets[0].id not in {t.id for t in active}
        assert len(active) == 4


class TestListOverdue:
    async def test_open_unbreached_past_deadline(self, ticket_store, make_ticket):
        late = make_ticket(priority=Priority.CRITICAL)
        later = make_ticket(priority=Priority.CRITICAL, created_at=T0 + timedelta(minutes=30))
        on_time = make_ticket(priority=Priority.LOW)
        resolved = make_ticket(priority=Priority.CRITICAL)
        breached = make_ticket(priority=Priority.CRITICAL)
        for ticket in (late, later, on_time, resolved, breached):
            await ticket_store.create(ticket)
        await ticket_store.update(resolved.id, lambda t: t.mark_resolved(T0), 0)
        await ticket_store.update(breached.id, lambda t: t.record_breach(T0 + timedelta(hours=2)), 0)

        overdue = await ticket_store.list_overdue(T0 + timedelta(hours=3))

        assert [t.id for t in overdue] == [late.id, later.id]
