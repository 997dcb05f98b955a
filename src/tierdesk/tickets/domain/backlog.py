"""
Backlog Queue
=============

Unassigned tickets of one tier waiting for capacity.

Ordered by creation time, then priority (critical first), then insertion
order. Heap with lazy deletion: removed or re-keyed entries stay in the
heap as tombstones until they reach the top, or until they outnumber the
live entries and the heap is rebuilt.
"""

import heapq
import itertools
from typing import Dict, List, Optional

from tierdesk.tickets.domain.entities import Ticket


class BacklogQueue:

    def __init__(self):
        self._heap: List[list] = []
        self._entries: Dict[str, list] = {}
        self._counter = itertools.count()
        self._tombstones = 0

    def push(self, ticket: Ticket) -> None:
        """Add a ticket, or re-key it if its priority changed."""
        key = (ticket.created_at, ticket.priority.rank)
        entry = self._entries.get(ticket.id)
        if entry is not None:
            if (entry[0], entry[1]) == key:
                return
            self.discard(ticket.id)

        entry = [key[0], key[1], next(self._counter), ticket.id]
        self._entries[ticket.id] = entry
        heapq.heappush(self._heap, entry)

    def discard(self, ticket_id: str) -> None:
        entry = self._entries.pop(ticket_id, None)
        if entry is None:
            return
        entry[-1] = None
        self._tombstones += 1
        self._prune()
        if self._tombstones > len(self._entries):
            self._compact()

    def pop(self) -> Optional[str]:
        self._prune()
        if not self._heap:
            return None
        ticket_id = heapq.heappop(self._heap)[-1]
        del self._entries[ticket_id]
        return ticket_id

    def peek(self) -> Optional[str]:
        self._prune()
        return self._heap[0][-1] if self._heap else None

    def head(self, n: int) -> List[str]:
        """First n ticket ids in queue order, without removing them."""
        live = (e for e in self._heap if e[-1] is not None)
        return [e[-1] for e in heapq.nsmallest(n, live)]

    def ids(self) -> List[str]:
        return self.head(len(self._entries))

    def _prune(self) -> None:
        while self._heap and self._heap[0][-1] is None:
            heapq.heappop(self._heap)
            self._tombstones -= 1

    def _compact(self) -> None:
        self._heap = [e for e in self._heap if e[-1] is not None]
        heapq.heapify(self._heap)
        self._tombstones = 0

    def __contains__(self, ticket_id: str) -> bool:
        return ticket_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
