"""
tierdesk - Main Application
============================

Ticket routing, tiered escalation and SLA tracking service.

Modules:
- Tickets: lifecycle commands, queries and the event stream
- Agents: registry and presence
- SLA: policy table, deadline timers, breach notifications

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Engine, services and DTOs
- Domain: Entities, value objects, policies
- Infrastructure: Database, timers, Slack
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator, Awaitable, Callable, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from tierdesk.agents.application import AgentRegistry, RoutingEngine
from tierdesk.agents.infrastructure import InMemoryAgentRepository, SQLAlchemyAgentRepository
from tierdesk.agents.interfaces import router as agents_router
from tierdesk.config import Settings, get_settings
from tierdesk.infrastructure.database import close_database, create_tables, get_session_maker, init_database
from tierdesk.shared.api.middleware import CorrelationIDMiddleware, LoggingMiddleware, register_exception_handlers
from tierdesk.shared.infrastructure.events import EventBus
from tierdesk.shared.infrastructure.logging import get_logger, setup_logging
from tierdesk.shared.infrastructure.resilience import ResilientCaller
from tierdesk.sla.domain import SLAPolicyTable
from tierdesk.sla.infrastructure import (
    APSchedulerTimerService,
    BreachNotifier,
    SLAConfigLoader,
    SLASweepScheduler,
    SlackClient,
    SystemClock,
)
from tierdesk.tickets.application import CommandDispatcher, EscalationEngine
from tierdesk.tickets.domain import EscalationPolicy
from tierdesk.tickets.infrastructure import InMemoryTicketStore, SQLAlchemyTicketStore
from tierdesk.tickets.interfaces import events_router, router as tickets_router

logger = get_logger(__name__)


@dataclass
class Container:
    """Wired service graph with its startup/shutdown order."""
    settings: Settings
    engine: EscalationEngine
    event_bus: EventBus
    timers: Optional[APSchedulerTimerService] = None
    sweep: Optional[SLASweepScheduler] = None
    notifier: Optional[BreachNotifier] = None
    slack: Optional[SlackClient] = None
    cleanups: List[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def start(self) -> None:
        if self.settings.uses_database:
            await create_tables()
        if self.timers is not None:
            self.timers.start()
        await self.engine.start()
        if self.sweep is not None:
            self.sweep.start(self.engine.sweep)

    async def stop(self) -> None:
        if self.sweep is not None:
            self.sweep.stop()
        await self.engine.stop()
        if self.timers is not None:
            self.timers.shutdown()
        if self.notifier is not None:
            await self.notifier.drain()
        if self.slack is not None:
            await self.slack.close()
        for cleanup in self.cleanups:
            await cleanup()


def build_container(settings: Settings) -> Container:
    """
    Build the production service graph.

    With `DATABASE_URL` set, tickets and agents live in the database;
    otherwise in process memory.
    """
    clock = SystemClock()
    event_bus = EventBus()
    caller = ResilientCaller(
        timeout_seconds=settings.store_timeout_seconds,
        attempts=settings.retry_attempts,
        base_delay=settings.retry_base_delay,
    )

    sla_config = SLAConfigLoader.load(settings.sla_config_path)
    policies = SLAPolicyTable.from_config(sla_config)

    cleanups: List[Callable[[], Awaitable[None]]] = []
    if settings.uses_database:
        init_database(
            settings.database_url,
            echo=settings.debug,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
        session_maker = get_session_maker()
        store = SQLAlchemyTicketStore(session_maker)
        agent_repository = SQLAlchemyAgentRepository(session_maker)
        cleanups.append(close_database)
    else:
        store = InMemoryTicketStore()
        agent_repository = InMemoryAgentRepository()

    timers = APSchedulerTimerService()
    engine = EscalationEngine(
        store=store,
        registry=AgentRegistry(agent_repository, caller, clock),
        router=RoutingEngine(specialty_fallback=settings.routing_specialty_fallback),
        policies=policies,
        clock=clock,
        timers=timers,
        bus=event_bus,
        dispatcher=CommandDispatcher(settings.worker_count),
        caller=caller,
        policy=EscalationPolicy(confidence_threshold=settings.ai_confidence_threshold),
        drain_batch=settings.backlog_drain_batch,
    )

    slack = SlackClient(
        webhook_url=settings.slack_webhook_url,
        channel=settings.slack_channel,
        timeout_seconds=settings.slack_timeout_seconds,
    )
    notifier = BreachNotifier(slack, sla_config.breach_channels)
    event_bus.subscribe(notifier)

    return Container(
        settings=settings,
        engine=engine,
        event_bus=event_bus,
        timers=timers,
        sweep=SLASweepScheduler(timers.scheduler, settings.sla_sweep_interval),
        notifier=notifier,
        slack=slack,
        cleanups=cleanups,
    )


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[EscalationEngine] = None,
    event_bus: Optional[EventBus] = None,
) -> FastAPI:
    """
    Application factory.

    An injected engine (tests) is started and stopped by the lifespan but
    nothing else is built around it.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        # === STARTUP ===
        setup_logging(settings.log_level, settings.environment, settings.app_name)
        logger.info("Starting tierdesk", extra={
            "version": settings.app_version,
            "environment": settings.environment,
            "storage": "database" if settings.uses_database else "memory",
        })

        if engine is not None:
            container = Container(settings=settings, engine=engine, event_bus=event_bus or EventBus())
        else:
            container = build_container(settings)

        app.state.container = container
        app.state.engine = container.engine
        app.state.event_bus = container.event_bus
        await container.start()
        logger.info("tierdesk started")

        yield  # Application runs here

        # === SHUTDOWN ===
        logger.info("Shutting down tierdesk")
        await container.stop()
        logger.info("tierdesk shutdown complete")

    app = FastAPI(
        title="tierdesk API",
        description="""
        ## Ticket routing, tiered escalation and SLA tracking

        - `POST /tickets` creates a ticket, fixes its SLA deadline and routes it
        - `POST /tickets/{id}/assign|escalate|resolve|close` drive the lifecycle
        - `GET /tickets` lists with tier/status/priority/platform/text filters
        - `PUT /agents/{id}` registers agents, `POST /agents/{id}/status` sets presence
        - `WS /events` streams lifecycle events

        **Tiers:** tier1 → tier2 → tier3 → escalated (never downward)

        **Default SLA (minutes, response / resolution):** critical 15 / 120,
        high 60 / 240, medium 240 / 1440, low 480 / 2880
        """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    register_exception_handlers(app)

    # === Include Module Routers ===
    app.include_router(tickets_router)
    app.include_router(agents_router)
    app.include_router(events_router)

    # === Health Check Endpoint ===

    @app.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "storage": "memory",
                            "sla_sweep": "running",
                            "pending_releases": 0,
                            "event_subscribers": 1
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """Health check endpoint for load balancers and orchestrators."""
        container: Container = request.app.state.container
        pending_releases = len(container.engine.pending_releases)
        checks = {
            "storage": "database" if settings.uses_database else "memory",
            "sla_sweep": "running" if container.sweep and container.sweep.is_running else "stopped",
            "pending_releases": pending_releases,
            "event_subscribers": container.event_bus.subscriber_count,
        }
        return {
            "status": "degraded" if pending_releases else "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks,
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
        }

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tierdesk.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
