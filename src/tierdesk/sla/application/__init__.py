"""
SLA Application Layer
======================

Clock and timer ports consumed by the escalation engine, and the SLA
metrics service behind GET /tickets/{id}/sla.
"""

from tierdesk.sla.application.services import (
    CancelResult,
    IClock,
    ITimerService,
    SLAService,
    TimerCallback,
)

__all__ = [
    "CancelResult",
    "IClock",
    "ITimerService",
    "SLAService",
    "TimerCallback",
]
