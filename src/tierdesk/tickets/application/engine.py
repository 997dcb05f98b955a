"""
Escalation Engine
=================

Ticket lifecycle orchestration: creation, routing, escalation, SLA
breaches, resolution and closure.

Every public command is executed by the CommandDispatcher under the
ticket's id, so the handlers below (`_handle_*`) have exclusive access to
their ticket. Handlers run on a worker and must not await another command
for the same ticket.

Agent capacity bookkeeping:
- a reservation is taken before the assignment is written and released
  again if the write fails
- every transition that takes a ticket away from its agent (escalation,
  resolution) releases exactly one unit of that agent's load
- a release that times out is remembered and retried by the sweep
"""

import asyncio
from functools import partial
from typing import Dict, Iterable, List, Optional, Sequence, Set
from uuid import uuid4

from tierdesk.agents.application import AgentRegistry, RoutingEngine
from tierdesk.agents.domain import Agent
from tierdesk.config import (
    AgentStatus,
    EscalationReason,
    EventType,
    Platform,
    Priority,
    RoutingState,
    TIER_ORDER,
    TicketSource,
    TicketStatus,
    TicketTier,
)
from tierdesk.core import (
    ApplicationException,
    CapacityExceededException,
    InvalidTransitionException,
    ResourceNotFoundException,
    StoreTimeoutException,
    ValidationException,
)
from tierdesk.shared.infrastructure.events import DomainEvent, EventBus
from tierdesk.shared.infrastructure.logging import get_logger, log_latency
from tierdesk.shared.infrastructure.resilience import ResilientCaller
from tierdesk.sla.application import CancelResult, IClock, ITimerService, SLAService
from tierdesk.sla.domain import SLAMetrics, SLAPolicyTable
from tierdesk.tickets.application.commands import CommandDispatcher
from tierdesk.tickets.application.services import ITicketStore, TicketFilter, TicketMutation, TicketQuery
from tierdesk.tickets.domain import (
    AISuggestion,
    BacklogQueue,
    EscalationPolicy,
    EscalationRecord,
    Ticket,
    generate_ticket_id,
    initial_tier_for_tags,
    normalize_tags,
)

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


class EscalationEngine:
    """Ticket state machine on top of the store, registry, router and timers."""

    def __init__(
        self,
        store: ITicketStore,
        registry: AgentRegistry,
        router: RoutingEngine,
        policies: SLAPolicyTable,
        clock: IClock,
        timers: ITimerService,
        bus: EventBus,
        dispatcher: CommandDispatcher,
        caller: ResilientCaller,
        policy: Optional[EscalationPolicy] = None,
        drain_batch: int = 5,
    ):
        self._store = store
        self._registry = registry
        self._router = router
        self._policies = policies
        self._clock = clock
        self._timers = timers
        self._bus = bus
        self._dispatcher = dispatcher
        self._caller = caller
        self._policy = policy or EscalationPolicy()
        self._drain_batch = drain_batch
        self._sla = SLAService(policies, clock)

        self._backlogs: Dict[TicketTier, BacklogQueue] = {tier: BacklogQueue() for tier in TIER_ORDER}
        self._timer_handles: Dict[str, str] = {}
        self._pending_releases: List[str] = []
        self._drain_tasks: Set[asyncio.Task] = set()
        self._draining: Set[TicketTier] = set()
        self._redrain: Set[TicketTier] = set()

        timers.set_callback(self.on_timer_fired)
        caller.set_exhausted_callback(self._on_degraded)

    # ========== Lifecycle ==========

    async def start(self) -> None:
        self._dispatcher.start()
        await self.recover()

    async def stop(self) -> None:
        await self.join()
        for ticket_id in list(self._timer_handles):
            self._cancel_timer(ticket_id)
        await self._dispatcher.stop()

    async def join(self) -> None:
        """Wait until queued commands and backlog drains have finished."""
        while True:
            await self._dispatcher.join()
            if self._drain_tasks:
                await asyncio.gather(*list(self._drain_tasks), return_exceptions=True)
            elif self._dispatcher.pending == 0:
                return

    async def recover(self) -> int:
        """
        Rebuild in-process state from the store.

        Arms a timer for every open, unbreached ticket and puts every
        unassigned one back on its tier's backlog.
        """
        query = self._store.query(TicketFilter(active_only=True, order="asc"))
        tickets = await self._caller.call("tickets.query", query.to_list)

        for ticket in tickets:
            if ticket.id not in self._timer_handles:
                self._arm_timer(ticket)
            if not ticket.is_assigned:
                self._backlogs[ticket.tier].push(ticket)

        for tier in TIER_ORDER:
            self._schedule_drain(tier)

        logger.info(
            "Engine state recovered",
            extra={
                "active_tickets": len(tickets),
                "armed_timers": len(self._timer_handles),
                "backlog": {t.value: len(self._backlogs[t]) for t in TIER_ORDER},
            }
        )
        return len(tickets)

    async def sweep(self) -> int:
        """
        Periodic safety net.

        Re-delivers breaches for overdue tickets whose timer was lost,
        retries deferred agent releases and drains every backlog.
        Returns the number of overdue tickets found.
        """
        overdue = await self._caller.call("tickets.list_overdue", self._store.list_overdue, self._clock.now())

        results = await asyncio.gather(
            *(
                self._dispatcher.submit(t.id, partial(self._handle_breach, t.id), "sla_breach")
                for t in overdue
            ),
            return_exceptions=True,
        )
        for ticket, result in zip(overdue, results):
            if isinstance(result, Exception):
                logger.error(
                    "Sweep breach delivery failed",
                    extra={"ticket_id": ticket.id, "error_type": type(result).__name__, "error": str(result)}
                )

        await self._retry_pending_releases()
        for tier in TIER_ORDER:
            self._schedule_drain(tier)

        if overdue:
            logger.info("SLA sweep delivered overdue breaches", extra={"count": len(overdue)})
        return len(overdue)

    # ========== Ticket commands ==========

    async def create_ticket(
        self,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        source: TicketSource = TicketSource.WEB_FORM,
        platform: Platform = Platform.WEB,
        customer_id: str = "",
        customer_name: str = "",
        tags: Iterable[str] = (),
        tier: Optional[TicketTier] = None,
        ai_suggestions: Sequence[AISuggestion] = (),
    ) -> Ticket:
        """
        Create a ticket and try to route it.

        The tier defaults to the one implied by the tags. Both SLA
        deadlines are fixed here from the priority.
        """
        now = self._clock.now()
        normalized = normalize_tags(tags)
        ticket = Ticket(
            id=generate_ticket_id(),
            title=title,
            description=description,
            priority=priority,
            tier=tier or initial_tier_for_tags(normalized),
            source=source,
            platform=platform,
            customer_id=customer_id,
            customer_name=customer_name,
            created_at=now,
            updated_at=now,
            sla_deadline=self._policies.resolution_deadline(priority, now),
            response_deadline=self._policies.response_deadline(priority, now),
            tags=normalized,
            ai_suggestions=tuple(ai_suggestions),
        )
        return await self._dispatcher.submit(ticket.id, partial(self._handle_create, ticket), "create")

    async def assign_agent(
        self,
        ticket_id: str,
        agent_id: Optional[str] = None,
        cross_assign: bool = False,
    ) -> Ticket:
        """
        Assign an open ticket.

        Without an agent id the router picks one; if none is available the
        ticket comes back unassigned and stays queued.
        """
        return await self._dispatcher.submit(
            ticket_id, partial(self._handle_assign, ticket_id, agent_id, cross_assign), "assign"
        )

    async def escalate(
        self,
        ticket_id: str,
        reason: EscalationReason = EscalationReason.MANUAL,
        actor_id: str = SYSTEM_ACTOR,
        notes: Optional[str] = None,
    ) -> Ticket:
        return await self._dispatcher.submit(
            ticket_id, partial(self._handle_escalate, ticket_id, reason, actor_id, notes), "escalate"
        )

    async def resolve(self, ticket_id: str) -> Ticket:
        return await self._dispatcher.submit(ticket_id, partial(self._handle_resolve, ticket_id), "resolve")

    async def close(self, ticket_id: str) -> Ticket:
        return await self._dispatcher.submit(ticket_id, partial(self._handle_close, ticket_id), "close")

    async def mark_pending(self, ticket_id: str) -> Ticket:
        return await self._dispatcher.submit(ticket_id, partial(self._handle_pending, ticket_id), "pending")

    async def resume(self, ticket_id: str) -> Ticket:
        return await self._dispatcher.submit(ticket_id, partial(self._handle_resume, ticket_id), "resume")

    async def reprioritize(self, ticket_id: str, priority: Priority) -> Ticket:
        return await self._dispatcher.submit(
            ticket_id, partial(self._handle_reprioritize, ticket_id, priority), "reprioritize"
        )

    async def attach_suggestions(self, ticket_id: str, suggestions: Sequence[AISuggestion]) -> Ticket:
        return await self._dispatcher.submit(
            ticket_id, partial(self._handle_suggestions, ticket_id, tuple(suggestions)), "suggestions"
        )

    async def on_timer_fired(self, payload) -> None:
        """SLA timer callback: queue a breach command behind the ticket's other commands."""
        ticket_id = str(payload)
        self._timer_handles.pop(ticket_id, None)
        try:
            await self._dispatcher.submit(ticket_id, partial(self._handle_breach, ticket_id), "sla_breach")
        except ApplicationException as e:
            logger.error(
                "SLA breach delivery failed, left to the sweep",
                extra={"ticket_id": ticket_id, "error_type": type(e).__name__, "error": e.message}
            )

    # ========== Agent commands ==========

    async def register_agent(self, agent: Agent) -> Agent:
        stored = await self._registry.register(agent)
        if stored.status == AgentStatus.ONLINE:
            self._schedule_drain(stored.tier)
        return stored

    async def set_agent_status(self, agent_id: str, status: AgentStatus) -> Agent:
        agent = await self._registry.set_status(agent_id, status)
        if status == AgentStatus.ONLINE:
            self._schedule_drain(agent.tier)
        return agent

    async def get_agent(self, agent_id: str) -> Agent:
        return await self._registry.get(agent_id)

    async def list_agents(self, tier: Optional[TicketTier] = None) -> List[Agent]:
        if tier is not None:
            return await self._registry.list_by_tier(tier)
        return await self._registry.snapshot()

    # ========== Queries ==========

    async def get_ticket(self, ticket_id: str) -> Ticket:
        return await self._get(ticket_id)

    def query(self, ticket_filter: TicketFilter) -> TicketQuery:
        return self._store.query(ticket_filter)

    async def list_tickets(self, ticket_filter: Optional[TicketFilter] = None) -> List[Ticket]:
        query = self._store.query(ticket_filter or TicketFilter())
        with log_latency(logger, "tickets.query"):
            return await self._caller.call("tickets.query", query.to_list)

    async def get_sla_metrics(self, ticket_id: str) -> SLAMetrics:
        ticket = await self._get(ticket_id)
        return self._sla.calculate_metrics(ticket)

    def backlog(self, tier: TicketTier) -> List[str]:
        """Queued ticket ids of a tier, head first."""
        return self._backlogs[tier].ids()

    @property
    def pending_releases(self) -> List[str]:
        return list(self._pending_releases)

    @property
    def armed_timers(self) -> Dict[str, str]:
        return dict(self._timer_handles)

    # ========== Handlers (run on the ticket's worker) ==========

    async def _handle_create(self, ticket: Ticket) -> Ticket:
        await self._caller.call("tickets.create", self._store.create, ticket)
        self._arm_timer(ticket)
        self._backlogs[ticket.tier].push(ticket)

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "priority": ticket.priority.value,
                "tier": ticket.tier.value,
                "sla_deadline": ticket.sla_deadline.isoformat(),
            }
        )
        await self._publish(EventType.TICKET_CREATED, ticket)

        trigger = self._policy.evaluate(ticket)
        if trigger is not None:
            reason, text = trigger
            return await self._escalate_locked(ticket, reason, SYSTEM_ACTOR, reason_text=text)
        return await self._route(ticket, announce=True)

    async def _handle_assign(self, ticket_id: str, agent_id: Optional[str], cross_assign: bool) -> Ticket:
        ticket = await self._get(ticket_id)
        if ticket.status != TicketStatus.OPEN or ticket.is_assigned:
            raise InvalidTransitionException(ticket.id, ticket.status, "assign")

        if agent_id is None:
            return await self._route(ticket, announce=False)

        agent = await self._registry.get(agent_id)
        if agent.status == AgentStatus.OFFLINE:
            raise ValidationException(f"Agent {agent_id} is offline", {"agent_id": agent_id})
        if not cross_assign and not agent.can_hold(ticket.tier):
            raise ValidationException(
                f"Agent {agent_id} cannot hold {ticket.tier.value} tickets without cross_assign",
                {"agent_id": agent_id, "agent_tier": agent.tier.value, "ticket_tier": ticket.tier.value}
            )

        await self._registry.reserve(agent_id)
        return await self._commit_assignment(ticket, agent_id)

    async def _handle_escalate(
        self,
        ticket_id: str,
        reason: EscalationReason,
        actor_id: str,
        notes: Optional[str],
    ) -> Ticket:
        ticket = await self._get(ticket_id)
        if ticket.is_terminal:
            raise InvalidTransitionException(ticket.id, ticket.status, "escalate")
        if ticket.tier == TicketTier.ESCALATED:
            logger.info("Ticket already at the top tier", extra={"ticket_id": ticket.id})
            return ticket
        return await self._escalate_locked(ticket, reason, actor_id, notes=notes)

    async def _handle_resolve(self, ticket_id: str) -> Ticket:
        ticket = await self._get(ticket_id)
        prior_agent = ticket.assigned_agent_id if ticket.is_assigned else None
        now = self._clock.now()

        updated = await self._update(ticket, lambda t: t.mark_resolved(now))
        self._cancel_timer(ticket.id)
        self._backlogs[ticket.tier].discard(ticket.id)
        if prior_agent is not None:
            await self._release(prior_agent)

        logger.info(
            "Ticket resolved",
            extra={"ticket_id": ticket.id, "resolution_time_seconds": updated.resolution_time_seconds}
        )
        await self._publish(EventType.TICKET_RESOLVED, updated)
        return updated

    async def _handle_close(self, ticket_id: str) -> Ticket:
        ticket = await self._get(ticket_id)
        now = self._clock.now()

        updated = await self._update(ticket, lambda t: t.mark_closed(now))
        self._cancel_timer(ticket.id)

        logger.info("Ticket closed", extra={"ticket_id": ticket.id})
        await self._publish(EventType.TICKET_CLOSED, updated)
        return updated

    async def _handle_pending(self, ticket_id: str) -> Ticket:
        ticket = await self._get(ticket_id)
        now = self._clock.now()
        updated = await self._update(ticket, lambda t: t.mark_pending(now))
        await self._publish(EventType.TICKET_UPDATED, updated, change="status", status=updated.status.value)
        return updated

    async def _handle_resume(self, ticket_id: str) -> Ticket:
        ticket = await self._get(ticket_id)
        now = self._clock.now()
        updated = await self._update(ticket, lambda t: t.resume(now))
        await self._publish(EventType.TICKET_UPDATED, updated, change="status", status=updated.status.value)
        return updated

    async def _handle_reprioritize(self, ticket_id: str, priority: Priority) -> Ticket:
        ticket = await self._get(ticket_id)
        now = self._clock.now()
        updated = await self._update(ticket, lambda t: t.reprioritize(priority, now))

        backlog = self._backlogs[updated.tier]
        if updated.id in backlog:
            backlog.push(updated)

        logger.info(
            "Ticket reprioritized",
            extra={"ticket_id": ticket.id, "from_priority": ticket.priority.value, "to_priority": priority.value}
        )
        await self._publish(
            EventType.TICKET_UPDATED, updated,
            change="priority", from_priority=ticket.priority.value, to_priority=priority.value
        )
        return updated

    async def _handle_suggestions(self, ticket_id: str, suggestions: Sequence[AISuggestion]) -> Ticket:
        ticket = await self._get(ticket_id)
        now = self._clock.now()
        updated = await self._update(ticket, lambda t: t.attach_suggestions(suggestions, now))
        await self._publish(
            EventType.TICKET_UPDATED, updated,
            change="ai_suggestions", ai_confidence=updated.ai_confidence
        )

        trigger = self._policy.evaluate(updated)
        if trigger is not None:
            reason, text = trigger
            return await self._escalate_locked(updated, reason, SYSTEM_ACTOR, reason_text=text)
        return updated

    async def _handle_breach(self, ticket_id: str) -> Optional[Ticket]:
        try:
            ticket = await self._get(ticket_id)
        except ResourceNotFoundException:
            logger.warning("SLA timer for unknown ticket", extra={"ticket_id": ticket_id})
            return None

        # Duplicate delivery or lost race with resolve/close
        if ticket.is_terminal or ticket.sla_breached_at is not None:
            return ticket

        now = self._clock.now()
        updated = await self._update(ticket, lambda t: t.record_breach(now))

        overdue_seconds = (now - ticket.sla_deadline).total_seconds()
        logger.warning(
            "SLA breached",
            extra={
                "ticket_id": ticket.id,
                "priority": ticket.priority.value,
                "tier": ticket.tier.value,
                "overdue_seconds": overdue_seconds,
            }
        )
        await self._publish(
            EventType.SLA_BREACHED, updated,
            sla_deadline=ticket.sla_deadline.isoformat(), overdue_seconds=overdue_seconds
        )

        if not updated.is_assigned or updated.tier.level < TicketTier.TIER3.level:
            return await self._escalate_locked(
                updated,
                EscalationReason.SLA_BREACH,
                SYSTEM_ACTOR,
                reason_text=f"SLA deadline {ticket.sla_deadline.isoformat()} passed",
            )
        return updated

    async def _handle_drain(self, ticket_id: str, tier: TicketTier) -> Optional[Ticket]:
        backlog = self._backlogs[tier]
        try:
            ticket = await self._get(ticket_id)
        except ResourceNotFoundException:
            backlog.discard(ticket_id)
            return None

        if ticket.is_terminal or ticket.is_assigned or ticket.tier != tier:
            backlog.discard(ticket_id)
            return ticket
        return await self._route(ticket, announce=False)

    # ========== Internals ==========

    async def _escalate_locked(
        self,
        ticket: Ticket,
        reason: EscalationReason,
        actor_id: str,
        notes: Optional[str] = None,
        reason_text: str = "",
    ) -> Ticket:
        to_tier = ticket.tier.next()
        if to_tier is None:
            return ticket

        record = EscalationRecord(
            id=uuid4().hex,
            timestamp=self._clock.now(),
            from_tier=ticket.tier,
            to_tier=to_tier,
            reason=reason,
            actor_id=actor_id,
            reason_text=reason_text or reason.value,
            notes=notes,
        )
        prior_agent = ticket.assigned_agent_id if ticket.is_assigned else None

        updated = await self._caller.call(
            "tickets.append_escalation", self._store.append_escalation, ticket.id, record, ticket.version
        )
        self._backlogs[ticket.tier].discard(ticket.id)
        if prior_agent is not None:
            await self._release(prior_agent)

        logger.info(
            "Ticket escalated",
            extra={
                "ticket_id": ticket.id,
                "from_tier": record.from_tier.value,
                "to_tier": record.to_tier.value,
                "reason": reason.value,
                "actor_id": actor_id,
            }
        )
        await self._publish(
            EventType.TICKET_ESCALATED, updated,
            from_tier=record.from_tier.value, to_tier=record.to_tier.value,
            reason=reason.value, actor_id=actor_id
        )
        return await self._route(updated, announce=True)

    async def _route(self, ticket: Ticket, announce: bool) -> Ticket:
        """Assign to the best available agent, else queue on the tier's backlog."""
        if ticket.is_terminal or ticket.is_assigned:
            return ticket

        # Held on the backlog until committed, so a failed registry call
        # leaves the ticket for the next drain.
        self._backlogs[ticket.tier].push(ticket)
        agents = await self._registry.list_by_tier(ticket.tier)
        for agent in self._router.rank(ticket.tier, ticket.tags, agents):
            try:
                await self._registry.reserve(agent.id)
            except CapacityExceededException:
                # Slot taken by a concurrent assignment since the snapshot
                continue
            return await self._commit_assignment(ticket, agent.id)

        return await self._enqueue_backlog(ticket, announce)

    async def _commit_assignment(self, ticket: Ticket, agent_id: str) -> Ticket:
        """Write an assignment whose capacity is already reserved."""
        now = self._clock.now()
        try:
            updated = await self._update(ticket, lambda t: t.assign_to(agent_id, now))
        except Exception:
            await self._release(agent_id, drain=False)
            raise

        self._backlogs[ticket.tier].discard(ticket.id)
        logger.info(
            "Ticket assigned",
            extra={"ticket_id": ticket.id, "agent_id": agent_id, "tier": ticket.tier.value}
        )
        await self._publish(EventType.TICKET_ASSIGNED, updated, agent_id=agent_id)
        return updated

    async def _enqueue_backlog(self, ticket: Ticket, announce: bool) -> Ticket:
        backlog = self._backlogs[ticket.tier]
        backlog.push(ticket)

        if ticket.tier.level >= TicketTier.TIER3.level:
            state = RoutingState.UNASSIGNABLE
        else:
            state = RoutingState.QUEUED

        changed = ticket.routing_state != state
        if changed:
            now = self._clock.now()
            ticket = await self._update(ticket, lambda t: t.set_routing_state(state, now))

        if changed or announce:
            if state == RoutingState.UNASSIGNABLE:
                logger.warning(
                    "No agent available at the top tiers, ticket needs manual handling",
                    extra={"ticket_id": ticket.id, "tier": ticket.tier.value}
                )
                await self._publish(EventType.TICKET_UNASSIGNABLE, ticket, backlog_size=len(backlog))
            else:
                logger.info(
                    "Ticket queued",
                    extra={"ticket_id": ticket.id, "tier": ticket.tier.value, "backlog_size": len(backlog)}
                )
                await self._publish(EventType.TICKET_QUEUED, ticket, backlog_size=len(backlog))
        return ticket

    async def _release(self, agent_id: str, drain: bool = True) -> None:
        try:
            agent = await self._registry.release(agent_id)
        except StoreTimeoutException:
            self._pending_releases.append(agent_id)
            logger.error("Agent release deferred to the sweep", extra={"agent_id": agent_id})
            return

        if drain:
            self._schedule_drain(agent.tier)

    async def _retry_pending_releases(self) -> None:
        pending, self._pending_releases = self._pending_releases, []
        for agent_id in pending:
            await self._release(agent_id)

    def _schedule_drain(self, tier: TicketTier) -> None:
        """Start a background pass over the head of a tier's backlog."""
        if not self._dispatcher.running or not self._backlogs[tier]:
            return
        if tier in self._draining:
            self._redrain.add(tier)
            return

        self._draining.add(tier)
        task = asyncio.create_task(self._drain(tier), name=f"drain-{tier.value}")
        self._drain_tasks.add(task)
        task.add_done_callback(self._drain_tasks.discard)

    async def _drain(self, tier: TicketTier) -> None:
        # Tickets are retried one at a time, head first, so a freed slot
        # goes to the oldest waiting ticket.
        try:
            while True:
                self._redrain.discard(tier)
                for ticket_id in self._backlogs[tier].head(self._drain_batch):
                    try:
                        await self._dispatcher.submit(
                            ticket_id, partial(self._handle_drain, ticket_id, tier), "drain"
                        )
                    except ApplicationException as e:
                        logger.error(
                            "Backlog drain failed",
                            extra={"ticket_id": ticket_id, "tier": tier.value, "error": e.message}
                        )
                if tier not in self._redrain:
                    return
        finally:
            self._draining.discard(tier)

    async def _get(self, ticket_id: str) -> Ticket:
        return await self._caller.call("tickets.get", self._store.get, ticket_id)

    async def _update(self, ticket: Ticket, mutation: TicketMutation) -> Ticket:
        return await self._caller.call("tickets.update", self._store.update, ticket.id, mutation, ticket.version)

    def _arm_timer(self, ticket: Ticket) -> None:
        if ticket.is_terminal or ticket.sla_breached_at is not None:
            return
        self._timer_handles[ticket.id] = self._timers.schedule(ticket.sla_deadline, ticket.id)

    def _cancel_timer(self, ticket_id: str) -> None:
        handle = self._timer_handles.pop(ticket_id, None)
        if handle is None:
            return
        if self._timers.cancel(handle) == CancelResult.ALREADY_FIRED:
            logger.debug("SLA timer already fired", extra={"ticket_id": ticket_id})

    async def _publish(self, event_type: EventType, ticket: Ticket, **details) -> None:
        await self._bus.publish(DomainEvent(
            type=event_type,
            ticket_id=ticket.id,
            timestamp=self._clock.now(),
            state=ticket.to_dict(),
            details=details,
        ))

    async def _on_degraded(self, operation: str, attempts: int) -> None:
        await self._bus.publish(DomainEvent(
            type=EventType.DEGRADED_SERVICE,
            ticket_id=None,
            timestamp=self._clock.now(),
            details={"operation": operation, "attempts": attempts},
        ))
