"""
Ticket Infrastructure Repositories
===================================

Concrete implementations of ITicketStore.

- InMemoryTicketStore: dict with tier/status indexes, deep-copied records
- SQLAlchemyTicketStore: async SQLAlchemy, version-checked UPDATE
"""

from collections import defaultdict
from copy import deepcopy
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tierdesk.config import (
    EscalationReason,
    Platform,
    Priority,
    RoutingState,
    TERMINAL_STATUSES,
    TicketSource,
    TicketStatus,
    TicketTier,
)
from tierdesk.core import ConflictException, ResourceNotFoundException
from tierdesk.tickets.application.services import (
    ITicketStore,
    TicketFilter,
    TicketMutation,
    TicketQuery,
)
from tierdesk.tickets.domain import AISuggestion, EscalationRecord, Ticket
from tierdesk.tickets.infrastructure.models import EscalationModel, TicketModel


class InMemoryTicketStore(ITicketStore):
    """
    Process-local ticket store.

    Methods contain no awaits between reading and writing a record, so
    each call is atomic on the event loop.
    """

    def __init__(self):
        self._tickets: Dict[str, Ticket] = {}
        self._by_tier: Dict[TicketTier, Set[str]] = defaultdict(set)
        self._by_status: Dict[TicketStatus, Set[str]] = defaultdict(set)

    def _require(self, ticket_id: str) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    def _put(self, ticket: Ticket) -> None:
        previous = self._tickets.get(ticket.id)
        if previous is not None:
            self._by_tier[previous.tier].discard(previous.id)
            self._by_status[previous.status].discard(previous.id)
        self._tickets[ticket.id] = ticket
        self._by_tier[ticket.tier].add(ticket.id)
        self._by_status[ticket.status].add(ticket.id)

    @staticmethod
    def _check_version(current: Ticket, expected_version: Optional[int]) -> None:
        if expected_version is not None and current.version != expected_version:
            raise ConflictException(current.id, expected_version, current.version)

    async def create(self, ticket: Ticket) -> str:
        if ticket.id in self._tickets:
            raise ConflictException(ticket.id)
        self._put(deepcopy(ticket))
        return ticket.id

    async def get(self, ticket_id: str) -> Ticket:
        return deepcopy(self._require(ticket_id))

    async def update(self, ticket_id: str, mutation: TicketMutation, expected_version: int) -> Ticket:
        current = self._require(ticket_id)
        self._check_version(current, expected_version)

        draft = deepcopy(current)
        mutation(draft)
        draft.version = current.version + 1
        self._put(draft)
        return deepcopy(draft)

    async def append_escalation(
        self,
        ticket_id: str,
        record: EscalationRecord,
        expected_version: Optional[int] = None,
    ) -> Ticket:
        current = self._require(ticket_id)
        self._check_version(current, expected_version)

        draft = deepcopy(current)
        draft.apply_escalation(record)
        draft.version = current.version + 1
        self._put(draft)
        return deepcopy(draft)

    def query(self, ticket_filter: TicketFilter) -> TicketQuery:
        return TicketQuery(self._fetch_page, ticket_filter)

    async def _fetch_page(self, ticket_filter: TicketFilter, offset: int, limit: int) -> List[Ticket]:
        candidates = set(self._tickets)
        if ticket_filter.tier is not None:
            candidates &= self._by_tier[ticket_filter.tier]
        if ticket_filter.status is not None:
            candidates &= self._by_status[ticket_filter.status]

        matched = [t for t in (self._tickets[i] for i in candidates) if ticket_filter.matches(t)]
        matched.sort(key=lambda t: (t.created_at, t.id), reverse=ticket_filter.order == "desc")
        return [deepcopy(t) for t in matched[offset:offset + limit]]

    async def list_overdue(self, now: datetime) -> List[Ticket]:
        overdue = [
            t for t in self._tickets.values()
            if not t.is_terminal and t.sla_breached_at is None and t.sla_deadline <= now
        ]
        overdue.sort(key=lambda t: (t.sla_deadline, t.id))
        return [deepcopy(t) for t in overdue]


class SQLAlchemyTicketStore(ITicketStore):
    """
    SQLAlchemy implementation of the ticket store.

    Writes are `UPDATE tickets ... WHERE id = :id AND version = :expected`;
    zero affected rows means another writer got there first.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    # ========== Mapping ==========

    @staticmethod
    def _escalation_to_entity(model: EscalationModel) -> EscalationRecord:
        return EscalationRecord(
            id=model.id,
            timestamp=model.timestamp,
            from_tier=TicketTier(model.from_tier),
            to_tier=TicketTier(model.to_tier),
            reason=EscalationReason(model.reason),
            actor_id=model.actor_id,
            reason_text=model.reason_text,
            notes=model.notes,
        )

    @staticmethod
    def _escalation_to_model(ticket_id: str, sequence: int, record: EscalationRecord) -> EscalationModel:
        return EscalationModel(
            id=record.id,
            ticket_id=ticket_id,
            sequence=sequence,
            timestamp=record.timestamp,
            from_tier=record.from_tier.value,
            to_tier=record.to_tier.value,
            reason=record.reason.value,
            reason_text=record.reason_text,
            actor_id=record.actor_id,
            notes=record.notes,
        )

    @classmethod
    def _to_entity(cls, model: TicketModel) -> Ticket:
        return Ticket(
            id=model.id,
            title=model.title,
            description=model.description,
            priority=Priority(model.priority),
            tier=TicketTier(model.tier),
            source=TicketSource(model.source),
            platform=Platform(model.platform),
            customer_id=model.customer_id,
            customer_name=model.customer_name,
            created_at=model.created_at,
            updated_at=model.updated_at,
            sla_deadline=model.sla_deadline,
            response_deadline=model.response_deadline,
            status=TicketStatus(model.status),
            routing_state=RoutingState(model.routing_state),
            assigned_agent_id=model.assigned_agent_id,
            resolved_at=model.resolved_at,
            closed_at=model.closed_at,
            tags=frozenset(model.tags or []),
            ai_suggestions=tuple(AISuggestion.from_dict(s) for s in model.ai_suggestions or []),
            escalations=tuple(cls._escalation_to_entity(e) for e in model.escalations),
            response_time_seconds=model.response_time_seconds,
            resolution_time_seconds=model.resolution_time_seconds,
            sla_breached_at=model.sla_breached_at,
            version=model.version,
        )

    @staticmethod
    def _column_values(ticket: Ticket) -> Dict[str, Any]:
        return {
            "title": ticket.title,
            "description": ticket.description,
            "status": ticket.status.value,
            "priority": ticket.priority.value,
            "tier": ticket.tier.value,
            "routing_state": ticket.routing_state.value,
            "source": ticket.source.value,
            "platform": ticket.platform.value,
            "customer_id": ticket.customer_id,
            "customer_name": ticket.customer_name,
            "assigned_agent_id": ticket.assigned_agent_id,
            "tags": sorted(ticket.tags),
            "ai_suggestions": [s.to_dict() for s in ticket.ai_suggestions],
            "created_at": ticket.created_at,
            "updated_at": ticket.updated_at,
            "resolved_at": ticket.resolved_at,
            "closed_at": ticket.closed_at,
            "sla_deadline": ticket.sla_deadline,
            "response_deadline": ticket.response_deadline,
            "sla_breached_at": ticket.sla_breached_at,
            "response_time_seconds": ticket.response_time_seconds,
            "resolution_time_seconds": ticket.resolution_time_seconds,
        }

    # ========== Helpers ==========

    @staticmethod
    async def _load(session: AsyncSession, ticket_id: str) -> TicketModel:
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return model

    async def _write(self, session: AsyncSession, ticket: Ticket, expected_version: int) -> None:
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket.id, TicketModel.version == expected_version)
            .values(**self._column_values(ticket), version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            raise ConflictException(ticket.id, expected_version)

    @staticmethod
    def _conditions(ticket_filter: TicketFilter) -> list:
        conditions = []
        if ticket_filter.tier is not None:
            conditions.append(TicketModel.tier == ticket_filter.tier.value)
        if ticket_filter.status is not None:
            conditions.append(TicketModel.status == ticket_filter.status.value)
        if ticket_filter.priority is not None:
            conditions.append(TicketModel.priority == ticket_filter.priority.value)
        if ticket_filter.platform is not None:
            conditions.append(TicketModel.platform == ticket_filter.platform.value)
        if ticket_filter.assigned_agent_id is not None:
            conditions.append(TicketModel.assigned_agent_id == ticket_filter.assigned_agent_id)
        if ticket_filter.active_only:
            conditions.append(TicketModel.status.not_in([s.value for s in TERMINAL_STATUSES]))

        needle = ticket_filter.needle
        if needle is not None:
            conditions.append(or_(
                func.lower(TicketModel.title).contains(needle, autoescape=True),
                func.lower(TicketModel.customer_name).contains(needle, autoescape=True),
                func.lower(TicketModel.customer_id).contains(needle, autoescape=True),
            ))
        return conditions

    # ========== ITicketStore ==========

    async def create(self, ticket: Ticket) -> str:
        async with self._session_maker() as session, session.begin():
            if await session.get(TicketModel, ticket.id) is not None:
                raise ConflictException(ticket.id)

            model = TicketModel(id=ticket.id, version=ticket.version, **self._column_values(ticket))
            model.escalations = [
                self._escalation_to_model(ticket.id, i, record)
                for i, record in enumerate(ticket.escalations)
            ]
            session.add(model)
        return ticket.id

    async def get(self, ticket_id: str) -> Ticket:
        async with self._session_maker() as session:
            return self._to_entity(await self._load(session, ticket_id))

    async def update(self, ticket_id: str, mutation: TicketMutation, expected_version: int) -> Ticket:
        async with self._session_maker() as session, session.begin():
            model = await self._load(session, ticket_id)
            if model.version != expected_version:
                raise ConflictException(ticket_id, expected_version, model.version)

            ticket = self._to_entity(model)
            mutation(ticket)
            await self._write(session, ticket, expected_version)
            ticket.version = expected_version + 1
            return ticket

    async def append_escalation(
        self,
        ticket_id: str,
        record: EscalationRecord,
        expected_version: Optional[int] = None,
    ) -> Ticket:
        async with self._session_maker() as session, session.begin():
            model = await self._load(session, ticket_id)
            if expected_version is not None and model.version != expected_version:
                raise ConflictException(ticket_id, expected_version, model.version)

            current_version = model.version
            ticket = self._to_entity(model)
            ticket.apply_escalation(record)
            await self._write(session, ticket, current_version)
            model.escalations.append(
                self._escalation_to_model(ticket_id, len(ticket.escalations) - 1, record)
            )
            ticket.version = current_version + 1
            return ticket

    def query(self, ticket_filter: TicketFilter) -> TicketQuery:
        return TicketQuery(self._fetch_page, ticket_filter)

    async def _fetch_page(self, ticket_filter: TicketFilter, offset: int, limit: int) -> List[Ticket]:
        if ticket_filter.order == "asc":
            ordering = (TicketModel.created_at.asc(), TicketModel.id.asc())
        else:
            ordering = (TicketModel.created_at.desc(), TicketModel.id.desc())

        stmt = (
            select(TicketModel)
            .where(*self._conditions(ticket_filter))
            .order_by(*ordering)
            .offset(offset)
            .limit(limit)
        )
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]

    async def list_overdue(self, now: datetime) -> List[Ticket]:
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.status.not_in([s.value for s in TERMINAL_STATUSES]),
                TicketModel.sla_breached_at.is_(None),
                TicketModel.sla_deadline <= now,
            )
            .order_by(TicketModel.sla_deadline.asc(), TicketModel.id.asc())
        )
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]
