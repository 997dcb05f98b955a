"""
Ticket Application Services
============================

Ticket store contract and query objects.

Following SOLID principles:
- Interface Segregation: the store owns no behavior beyond CRUD and
  indexed queries; all lifecycle rules live in the escalation engine
- Dependency Inversion: the engine depends on ITicketStore only
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, List, Literal, Optional

from tierdesk.config import Platform, Priority, TicketStatus, TicketTier
from tierdesk.tickets.domain import EscalationRecord, Ticket

TicketMutation = Callable[[Ticket], None]
PageFetcher = Callable[["TicketFilter", int, int], Awaitable[List[Ticket]]]


@dataclass(frozen=True)
class TicketFilter:
    """
    AND-combined ticket predicates.

    `text` is a case-insensitive substring match on title, customer name
    and customer id.
    """
    tier: Optional[TicketTier] = None
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    platform: Optional[Platform] = None
    text: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    active_only: bool = False
    order: Literal["asc", "desc"] = "desc"
    limit: Optional[int] = None
    offset: int = 0

    @property
    def needle(self) -> Optional[str]:
        if self.text is None or not self.text.strip():
            return None
        return self.text.strip().lower()

    def matches(self, ticket: Ticket) -> bool:
        if self.tier is not None and ticket.tier != self.tier:
            return False
        if self.status is not None and ticket.status != self.status:
            return False
        if self.priority is not None and ticket.priority != self.priority:
            return False
        if self.platform is not None and ticket.platform != self.platform:
            return False
        if self.assigned_agent_id is not None and ticket.assigned_agent_id != self.assigned_agent_id:
            return False
        if self.active_only and ticket.is_terminal:
            return False

        needle = self.needle
        if needle is not None:
            haystacks = (ticket.title, ticket.customer_name, ticket.customer_id)
            if not any(needle in (h or "").lower() for h in haystacks):
                return False
        return True


class TicketQuery:
    """
    Lazy, restartable result sequence.

    Nothing is fetched until iteration starts; each `async for` re-runs
    the query page by page.

    Usage:
        async for ticket in store.query(TicketFilter(tier=TicketTier.TIER2)):
            ...
        tickets = await store.query(ticket_filter).to_list()
    """

    def __init__(self, fetch_page: PageFetcher, ticket_filter: TicketFilter, page_size: int = 100):
        self._fetch_page = fetch_page
        self.filter = ticket_filter
        self._page_size = page_size

    def __aiter__(self) -> AsyncIterator[Ticket]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Ticket]:
        offset = self.filter.offset
        remaining = self.filter.limit

        while remaining is None or remaining > 0:
            size = self._page_size if remaining is None else min(self._page_size, remaining)
            page = await self._fetch_page(self.filter, offset, size)
            for ticket in page:
                yield ticket

            if len(page) < size:
                return
            offset += len(page)
            if remaining is not None:
                remaining -= len(page)

    async def to_list(self) -> List[Ticket]:
        return [ticket async for ticket in self]


# ========== Repository Interfaces ==========

class ITicketStore(ABC):
    """
    Durable ticket records with their escalation history.

    Writes are optimistic: the caller passes the version it last read and
    a mismatch raises ConflictException. Returned tickets are detached
    copies.
    """

    @abstractmethod
    async def create(self, ticket: Ticket) -> str:
        """Persist a new ticket; returns its id."""

    @abstractmethod
    async def get(self, ticket_id: str) -> Ticket:
        """Raises ResourceNotFoundException."""

    @abstractmethod
    async def update(self, ticket_id: str, mutation: TicketMutation, expected_version: int) -> Ticket:
        """
        Apply `mutation` to the stored ticket and bump its version.

        Exceptions raised by the mutation propagate and nothing is written.

        Raises:
            ResourceNotFoundException: unknown ticket
            ConflictException: stored version differs from expected_version
        """

    @abstractmethod
    async def append_escalation(
        self,
        ticket_id: str,
        record: EscalationRecord,
        expected_version: Optional[int] = None,
    ) -> Ticket:
        """
        Append an escalation record, move the ticket to the record's tier
        and unassign it, in one write.
        """

    @abstractmethod
    def query(self, ticket_filter: TicketFilter) -> TicketQuery:
        """Tickets matching the filter, by creation time (desc by default)."""

    @abstractmethod
    async def list_overdue(self, now: datetime) -> List[Ticket]:
        """Open tickets past their SLA deadline with no breach recorded."""
