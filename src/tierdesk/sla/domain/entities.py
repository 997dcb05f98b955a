"""
SLA Domain Entities
====================

Computed SLA view of a ticket: both clocks, their remaining time and state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tierdesk.config import SLAState


@dataclass
class SLAMetrics:
    """
    SLA metrics for a ticket at a point in time.

    The response clock stops at first assignment, the resolution clock at
    resolution.
    """

    ticket_id: str

    # Response SLA
    response_deadline: datetime
    response_remaining_seconds: float
    response_percentage_remaining: float
    response_is_breached: bool
    response_state: SLAState

    # Resolution SLA
    resolution_deadline: datetime
    resolution_remaining_seconds: float
    resolution_percentage_remaining: float
    resolution_is_breached: bool
    resolution_state: SLAState

    response_met_at: Optional[datetime] = None
    resolution_met_at: Optional[datetime] = None
    breach_recorded_at: Optional[datetime] = None

    is_any_breached: bool = field(init=False)

    def __post_init__(self):
        self.is_any_breached = self.response_is_breached or self.resolution_is_breached

    @property
    def most_urgent_state(self) -> SLAState:
        if self.is_any_breached:
            return SLAState.BREACHED
        if SLAState.AT_RISK in (self.response_state, self.resolution_state):
            return SLAState.AT_RISK
        if self.response_state == SLAState.MET and self.resolution_state == SLAState.MET:
            return SLAState.MET
        return SLAState.ON_TRACK

    @property
    def next_deadline(self) -> datetime:
        """Earliest clock still running; earliest overall when both stopped."""
        if self.response_state not in (SLAState.MET, SLAState.BREACHED):
            return self.response_deadline
        if self.resolution_state not in (SLAState.MET, SLAState.BREACHED):
            return self.resolution_deadline
        return min(self.response_deadline, self.resolution_deadline)
