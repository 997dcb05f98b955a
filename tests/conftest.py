"""
pytest configuration and shared fixtures

The engine runs on a manual clock and manual timers: tests move time
forward explicitly and due SLA timers fire from `timers.advance()`.
"""
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from tierdesk.agents.application import AgentRegistry, RoutingEngine
from tierdesk.agents.domain import Agent
from tierdesk.agents.infrastructure import InMemoryAgentRepository
from tierdesk.config import AgentStatus, EventType, Platform, Priority, TicketSource, TicketTier
from tierdesk.shared.infrastructure.events import DomainEvent, EventBus
from tierdesk.shared.infrastructure.resilience import ResilientCaller
from tierdesk.sla.application import CancelResult, IClock, ITimerService, TimerCallback
from tierdesk.sla.domain import SLAPolicyTable
from tierdesk.tickets.application import CommandDispatcher, EscalationEngine
from tierdesk.tickets.domain import EscalationPolicy, Ticket, generate_ticket_id
from tierdesk.tickets.infrastructure import InMemoryTicketStore

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


class ManualClock(IClock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


class ManualTimerService(ITimerService):
    """In-memory timers fired explicitly by `advance` / `fire_due`."""

    def __init__(self, clock: ManualClock):
        self._clock = clock
        self._callback: Optional[TimerCallback] = None
        self._timers: Dict[str, Tuple[datetime, Any]] = {}
        self._counter = itertools.count(1)
        self.fired: List[Any] = []

    def set_callback(self, callback: TimerCallback) -> None:
        self._callback = callback

    def schedule(self, deadline: datetime, payload: Any) -> str:
        handle = f"timer-{next(self._counter)}"
        self._timers[handle] = (deadline, payload)
        return handle

    def cancel(self, handle: str) -> CancelResult:
        if self._timers.pop(handle, None) is None:
            return CancelResult.ALREADY_FIRED
        return CancelResult.CANCELLED

    @property
    def armed(self) -> Dict[str, Tuple[datetime, Any]]:
        return dict(self._timers)

    async def fire_due(self) -> None:
        now = self._clock.now()
        due = sorted(
            (deadline, handle, payload)
            for handle, (deadline, payload) in self._timers.items()
            if deadline <= now
        )
        for _, handle, payload in due:
            del self._timers[handle]
            await self.deliver(payload)

    async def deliver(self, payload: Any) -> None:
        """Deliver a payload as if a timer fired (also used for duplicate deliveries)."""
        self.fired.append(payload)
        await self._callback(payload)

    async def advance(self, delta: timedelta) -> None:
        self._clock.advance(delta)
        await self.fire_due()


class EventRecorder:
    """Event bus handler keeping every published event."""

    def __init__(self):
        self.events: List[DomainEvent] = []

    async def __call__(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType, ticket_id: Optional[str] = None) -> List[DomainEvent]:
        return [
            e for e in self.events
            if e.type == event_type and (ticket_id is None or e.ticket_id == ticket_id)
        ]

    def types(self, ticket_id: Optional[str] = None) -> List[EventType]:
        return [e.type for e in self.events if ticket_id is None or e.ticket_id == ticket_id]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def timers(clock) -> ManualTimerService:
    return ManualTimerService(clock)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus) -> EventRecorder:
    recorder = EventRecorder()
    bus.subscribe(recorder)
    return recorder


@pytest.fixture
def store() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@pytest.fixture
def agent_repository() -> InMemoryAgentRepository:
    return InMemoryAgentRepository()


@pytest.fixture
def caller() -> ResilientCaller:
    return ResilientCaller(timeout_seconds=1.0, attempts=2, base_delay=0)


@pytest.fixture
def registry(agent_repository, caller, clock) -> AgentRegistry:
    return AgentRegistry(agent_repository, caller, clock)


@pytest.fixture
def router() -> RoutingEngine:
    return RoutingEngine()


@pytest.fixture
def policies() -> SLAPolicyTable:
    return SLAPolicyTable.default()


@pytest.fixture
async def engine(store, registry, router, policies, clock, timers, bus, recorder, caller):
    engine = EscalationEngine(
        store=store,
        registry=registry,
        router=router,
        policies=policies,
        clock=clock,
        timers=timers,
        bus=bus,
        dispatcher=CommandDispatcher(worker_count=4),
        caller=caller,
        policy=EscalationPolicy(confidence_threshold=0.6),
    )
    await engine.start()
    yield engine
    await engine.stop()


@pytest.fixture
def add_agent(engine):
    """Register an agent (online by default) and wait for backlog drains."""
    async def _add(agent_id: str, tier: TicketTier = TicketTier.TIER1, **kwargs) -> Agent:
        kwargs.setdefault("status", AgentStatus.ONLINE)
        agent = await engine.register_agent(Agent(id=agent_id, name=agent_id.title(), tier=tier, **kwargs))
        await engine.join()
        return agent
    return _add


@pytest.fixture
def make_ticket(policies):
    """Build a detached Ticket entity."""
    def _make(
        created_at: datetime = T0,
        priority: Priority = Priority.MEDIUM,
        tier: TicketTier = TicketTier.TIER1,
        **kwargs,
    ) -> Ticket:
        kwargs.setdefault("title", "Cannot log in")
        return Ticket(
            id=kwargs.pop("id", generate_ticket_id()),
            description=kwargs.pop("description", ""),
            priority=priority,
            tier=tier,
            source=kwargs.pop("source", TicketSource.CHAT),
            platform=kwargs.pop("platform", Platform.WEB),
            customer_id=kwargs.pop("customer_id", "CUST-1"),
            customer_name=kwargs.pop("customer_name", "Acme Retail"),
            created_at=created_at,
            updated_at=created_at,
            sla_deadline=policies.resolution_deadline(priority, created_at),
            response_deadline=policies.response_deadline(priority, created_at),
            **kwargs,
        )
    return _make
