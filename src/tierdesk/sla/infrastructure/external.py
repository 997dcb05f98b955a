"""
SLA External Service Integrations
==================================

- YAML SLA policy loader
- Slack webhook notifications for breaches
- APScheduler interval job for the overdue-ticket sweep
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError

from tierdesk.config import EventType
from tierdesk.core import ConfigurationException
from tierdesk.shared.infrastructure.events import DomainEvent
from tierdesk.shared.infrastructure.logging import get_logger
from tierdesk.shared.infrastructure.resilience import CircuitBreaker
from tierdesk.sla.domain import SLAConfig

logger = get_logger(__name__)


class SLAConfigLoader:
    """
    Loads the SLA policy YAML once at startup.

    The policy table is static for the life of the process.
    """

    @staticmethod
    def load(path: Path) -> SLAConfig:
        if not path.exists():
            logger.warning(f"SLA config file not found: {path}, using defaults")
            return SLAConfig()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(f"SLA config {path} is not valid YAML", {"error": str(e)})

        try:
            config = SLAConfig(**data)
        except ValidationError as e:
            raise ConfigurationException(f"SLA config {path} is invalid", {"errors": e.errors()})

        logger.info("SLA configuration loaded", extra={"path": str(path)})
        return config


@dataclass
class SlackMessage:
    """Slack notification for a breached ticket."""
    ticket_id: str
    title: str
    priority: str
    tier: str
    status: str
    assigned_agent_id: Optional[str]
    sla_deadline: str
    breached_at: str


class SlackClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        channel: str,
        timeout_seconds: float = 5.0,
    ):
        self._webhook_url = webhook_url
        self._channel = channel
        self._timeout_seconds = timeout_seconds
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout_seconds)
        return self._http_client

    def build_message(self, data: SlackMessage, channel: Optional[str] = None) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        assignee = data.assigned_agent_id or "unassigned"
        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"SLA breached: {data.ticket_id}",
                    "emoji": True
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Ticket:*\n{data.ticket_id} {data.title}"},
                    {"type": "mrkdwn", "text": f"*Priority:*\n{data.priority.title()}"},
                    {"type": "mrkdwn", "text": f"*Tier:*\n{data.tier.upper()}"},
                    {"type": "mrkdwn", "text": f"*Status:*\n{data.status}"},
                    {"type": "mrkdwn", "text": f"*Assignee:*\n{assignee}"},
                ]
            },
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": f"Deadline: {data.sla_deadline} | Breach recorded: {data.breached_at}"
                    }
                ]
            }
        ]

        return {
            "channel": channel or self._channel,
            "blocks": blocks
        }

    async def send_alert(
        self,
        data: SlackMessage,
        channel: Optional[str] = None,
        max_retries: int = 3
    ) -> bool:
        """
        Send alert to Slack webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"ticket_id": data.ticket_id}
            )
            return False

        message = self.build_message(data, channel)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"ticket_id": data.ticket_id}
                    )
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={
                        "status_code": response.status_code,
                        "attempt": attempt + 1
                    }
                )

            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "ticket_id": data.ticket_id
                    }
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class BreachNotifier:
    """
    Event bus handler turning SLABreached events into Slack alerts.

    Alerts are sent from background tasks so Slack retries never hold up
    the engine worker that published the event.
    """

    def __init__(self, slack_client: SlackClient, channels: Optional[List[str]] = None):
        self._slack = slack_client
        self._channels = channels or []
        self._tasks: Set[asyncio.Task] = set()

    async def __call__(self, event: DomainEvent) -> None:
        if event.type != EventType.SLA_BREACHED or not self._slack.enabled:
            return

        state = event.state
        message = SlackMessage(
            ticket_id=event.ticket_id or "",
            title=state.get("title", ""),
            priority=state.get("priority", ""),
            tier=state.get("tier", ""),
            status=state.get("status", ""),
            assigned_agent_id=state.get("assigned_agent_id"),
            sla_deadline=state.get("sla_deadline", ""),
            breached_at=event.timestamp.isoformat(),
        )

        for channel in self._channels or [None]:
            task = asyncio.create_task(self._slack.send_alert(message, channel=channel))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight alerts."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class SLASweepScheduler:
    """
    Interval job re-delivering overdue breaches.

    Complements the one-shot deadline timers: timers lost on restart or
    dropped deliveries are picked up on the next sweep.
    """

    def __init__(self, scheduler: AsyncIOScheduler, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler = scheduler
        self._running = False

    def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        if self._running:
            logger.warning("SLA sweep already running")
            return
        if self.interval_seconds <= 0:
            logger.info("SLA sweep disabled")
            return

        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="sla_sweep",
            name="SLA overdue sweep",
            misfire_grace_time=60,
            max_instances=1,
            replace_existing=True
        )
        self._running = True

        logger.info(
            "SLA sweep scheduled",
            extra={"interval_seconds": self.interval_seconds}
        )

    def stop(self) -> None:
        if not self._running:
            return
        if self._scheduler.get_job("sla_sweep") is not None:
            self._scheduler.remove_job("sla_sweep")
        self._running = False
        logger.info("SLA sweep stopped")

    @property
    def is_running(self) -> bool:
        return self._running
