"""
SLA Timers
==========

System clock and APScheduler-backed deadline timers.

Each SLA deadline is a one-shot `date` job on an AsyncIOScheduler. The job
id is the timer handle, so cancelling is removing the job; a handle whose
job is gone has already fired.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from tierdesk.sla.application import CancelResult, IClock, ITimerService, TimerCallback
from tierdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class SystemClock(IClock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class APSchedulerTimerService(ITimerService):
    """
    Deadline timers on APScheduler.

    Late timers still fire (no misfire grace limit); a deadline already in
    the past fires as soon as the scheduler runs.
    """

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._callback: Optional[TimerCallback] = None

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    def set_callback(self, callback: TimerCallback) -> None:
        self._callback = callback

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("SLA timer scheduler started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("SLA timer scheduler stopped")

    def schedule(self, deadline: datetime, payload: Any) -> str:
        handle = f"sla-timer-{uuid4().hex}"
        self._scheduler.add_job(
            self._fire,
            trigger="date",
            run_date=deadline,
            args=[handle, payload],
            id=handle,
            name=f"SLA deadline {payload}",
            misfire_grace_time=None,
            coalesce=True,
        )
        logger.debug(
            "SLA timer armed",
            extra={"handle": handle, "deadline": deadline.isoformat(), "payload": str(payload)}
        )
        return handle

    def cancel(self, handle: str) -> CancelResult:
        try:
            self._scheduler.remove_job(handle)
        except JobLookupError:
            return CancelResult.ALREADY_FIRED
        return CancelResult.CANCELLED

    async def _fire(self, handle: str, payload: Any) -> None:
        if self._callback is None:
            logger.warning("SLA timer fired with no callback set", extra={"handle": handle})
            return
        await self._callback(payload)
