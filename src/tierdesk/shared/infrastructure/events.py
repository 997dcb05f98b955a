"""
Event Bus
=========

In-process publish/subscribe for ticket lifecycle events.

Two kinds of consumers:
- handlers: async callables invoked in publish order (notifications)
- streams: bounded asyncio queues drained by UI connections (WebSocket)

A failing handler is logged and never interrupts the engine.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from tierdesk.config import EventType
from tierdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[["DomainEvent"], Awaitable[None]]


@dataclass(frozen=True)
class DomainEvent:
    """A lifecycle event with the ticket's new state."""
    type: EventType
    ticket_id: Optional[str]
    timestamp: datetime
    state: Dict[str, Any] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "ticket_id": self.ticket_id,
            "timestamp": self.timestamp.isoformat(),
            "state": self.state,
            "details": self.details,
        }


class EventBus:
    """Fan-out of DomainEvents to handlers and stream subscribers."""

    def __init__(self, stream_queue_size: int = 1000):
        self._handlers: List[EventHandler] = []
        self._streams: List[asyncio.Queue] = []
        self._stream_queue_size = stream_queue_size

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @asynccontextmanager
    async def stream(self) -> AsyncIterator[asyncio.Queue]:
        """
        Open a queue receiving every event published while the context is open.

        Usage:
            async with bus.stream() as queue:
                event = await queue.get()
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._stream_queue_size)
        self._streams.append(queue)
        try:
            yield queue
        finally:
            self._streams.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers) + len(self._streams)

    async def publish(self, event: DomainEvent) -> None:
        for queue in list(self._streams):
            if queue.full():
                # Slow consumer: drop its oldest event rather than block the engine
                queue.get_nowait()
                logger.warning(
                    "Event stream full, dropped oldest event",
                    extra={"event_type": event.type.value}
                )
            queue.put_nowait(event)

        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Event handler failed",
                    extra={
                        "event_type": event.type.value,
                        "ticket_id": event.ticket_id,
                        "handler": getattr(handler, "__qualname__", repr(handler)),
                        "error": str(e),
                    }
                )
