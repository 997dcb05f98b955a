"""
SLA Infrastructure Layer
=========================

- Timers: system clock, APScheduler deadline timers
- External: YAML policy loader, Slack breach notifications, sweep job
"""

from tierdesk.sla.infrastructure.timers import APSchedulerTimerService, SystemClock
from tierdesk.sla.infrastructure.external import (
    BreachNotifier,
    SLAConfigLoader,
    SLASweepScheduler,
    SlackClient,
    SlackMessage,
)

__all__ = [
    "APSchedulerTimerService",
    "SystemClock",
    "BreachNotifier",
    "SLAConfigLoader",
    "SLASweepScheduler",
    "SlackClient",
    "SlackMessage",
]
