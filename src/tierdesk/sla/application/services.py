"""
SLA Application Services
=========================

Ports for time (clock, deadline timers) and the SLA metrics service.

Following SOLID principles:
- Dependency Inversion: the escalation engine depends on IClock and
  ITimerService, never on APScheduler directly
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from tierdesk.sla.domain import SLACalculator, SLAMetrics, SLAPolicyTable

TimerCallback = Callable[[Any], Awaitable[None]]


# ========== Ports ==========

class IClock(ABC):
    """Source of the current (timezone-aware, UTC) time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time."""


class CancelResult(str, Enum):
    CANCELLED = "cancelled"
    ALREADY_FIRED = "already_fired"


class ITimerService(ABC):
    """
    Deadline timers.

    Delivery is at-least-once: the callback may run more than once for the
    same payload, so it must be idempotent.
    """

    @abstractmethod
    def set_callback(self, callback: TimerCallback) -> None:
        """Set the coroutine receiving payloads of expired timers."""

    @abstractmethod
    def schedule(self, deadline: datetime, payload: Any) -> str:
        """Arm a timer; returns its handle."""

    @abstractmethod
    def cancel(self, handle: str) -> CancelResult:
        """Disarm a timer. ALREADY_FIRED for unknown or expired handles."""


# ========== Application Services ==========

class SLAService:
    """Computes the SLA view of a ticket from its fixed deadlines."""

    def __init__(self, policies: SLAPolicyTable, clock: IClock):
        self._policies = policies
        self._clock = clock

    @property
    def policies(self) -> SLAPolicyTable:
        return self._policies

    def calculate_metrics(self, ticket: Any, current_time: Optional[datetime] = None) -> SLAMetrics:
        """
        Calculate SLA metrics for a ticket.

        Args:
            ticket: Ticket entity
            current_time: Evaluation time, defaults to the clock
        """
        now = current_time or self._clock.now()
        warning = self._policies.warning_threshold

        response_met_at = None
        if ticket.response_time_seconds is not None:
            response_met_at = ticket.created_at + timedelta(seconds=ticket.response_time_seconds)
        resolution_met_at = ticket.resolved_at

        response_remaining, response_pct, response_breached = SLACalculator.calculate_remaining_metrics(
            ticket.created_at, ticket.response_deadline, now, response_met_at
        )
        response_state = SLACalculator.calculate_status(
            ticket.created_at, ticket.response_deadline, now, response_met_at, warning
        )

        resolution_remaining, resolution_pct, resolution_breached = SLACalculator.calculate_remaining_metrics(
            ticket.created_at, ticket.sla_deadline, now, resolution_met_at
        )
        resolution_state = SLACalculator.calculate_status(
            ticket.created_at, ticket.sla_deadline, now, resolution_met_at, warning
        )

        return SLAMetrics(
            ticket_id=ticket.id,
            response_deadline=ticket.response_deadline,
            response_remaining_seconds=response_remaining,
            response_percentage_remaining=response_pct,
            response_is_breached=response_breached,
            response_state=response_state,
            response_met_at=response_met_at,
            resolution_deadline=ticket.sla_deadline,
            resolution_remaining_seconds=resolution_remaining,
            resolution_percentage_remaining=resolution_pct,
            resolution_is_breached=resolution_breached,
            resolution_state=resolution_state,
            resolution_met_at=resolution_met_at,
            breach_recorded_at=ticket.sla_breached_at,
        )
