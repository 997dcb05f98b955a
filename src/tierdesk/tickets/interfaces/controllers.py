"""
Ticket Controllers (API Routes)
================================

FastAPI routes for the ticket lifecycle and the event stream.

Controllers are thin - they delegate to the escalation engine. Engine
errors are mapped to HTTP statuses by the shared exception handlers.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, WebSocket, WebSocketDisconnect, status

from tierdesk.config import EscalationReason, Platform, Priority, TicketSource, TicketStatus, TicketTier
from tierdesk.shared.infrastructure.events import EventBus
from tierdesk.shared.infrastructure.logging import get_logger
from tierdesk.tickets.application import EscalationEngine, TicketFilter
from tierdesk.tickets.application.dto import (
    AssignRequest,
    EscalateRequest,
    PriorityStr,
    PlatformStr,
    PriorityUpdateRequest,
    SuggestionsRequest,
    TicketCreateRequest,
    TicketListResponse,
    TicketResponse,
    TicketSLAResponse,
    TicketStatusStr,
    TierStr,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])
events_router = APIRouter(tags=["Events"])


# ========== Example payloads for Swagger ==========

TICKET_CREATE_EXAMPLE = {
    "title": "API returns 500 on order sync",
    "description": "Since this morning every call to /orders/sync fails with a 500.",
    "priority": "high",
    "source": "email",
    "platform": "web",
    "customer_id": "CUST-1042",
    "customer_name": "Acme Retail",
    "tags": ["api", "integration"]
}

TICKET_RESPONSE_EXAMPLE = {
    "id": "TKT-3F9A2C11B0D4",
    "title": "API returns 500 on order sync",
    "description": "Since this morning every call to /orders/sync fails with a 500.",
    "status": "in_progress",
    "priority": "high",
    "tier": "tier2",
    "routing_state": "assigned",
    "source": "email",
    "platform": "web",
    "customer_id": "CUST-1042",
    "customer_name": "Acme Retail",
    "assigned_agent_id": "agent-7",
    "tags": ["api", "integration"],
    "created_at": "2024-01-15T10:00:00Z",
    "updated_at": "2024-01-15T10:00:02Z",
    "resolved_at": None,
    "closed_at": None,
    "sla_deadline": "2024-01-15T14:00:00Z",
    "response_deadline": "2024-01-15T11:00:00Z",
    "sla_breached_at": None,
    "response_time_seconds": 2.0,
    "resolution_time_seconds": None,
    "ai_confidence": 0.0,
    "ai_suggestions": [],
    "escalations": [],
    "version": 1
}


# ========== Dependencies ==========

def get_engine(request: Request) -> EscalationEngine:
    """Escalation engine built at startup."""
    return request.app.state.engine


# ========== Commands ==========

@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create ticket",
    description="Create a ticket, fix its SLA deadlines and try to route it to an agent.",
    responses={201: {"content": {"application/json": {"example": TICKET_RESPONSE_EXAMPLE}}}},
)
async def create_ticket(
    request: TicketCreateRequest,
    engine: EscalationEngine = Depends(get_engine),
) -> TicketResponse:
    ticket = await engine.create_ticket(
        title=request.title,
        description=request.description,
        priority=Priority(request.priority),
        source=TicketSource(request.source),
        platform=Platform(request.platform),
        customer_id=request.customer_id,
        customer_name=request.customer_name,
        tags=request.tags,
        tier=TicketTier(request.tier) if request.tier else None,
        ai_suggestions=[s.to_domain() for s in request.ai_suggestions],
    )
    return TicketResponse.from_domain(ticket)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketResponse,
    summary="Assign ticket",
    description=(
        "Assign to the given agent, or auto-route when no agent_id is sent. "
        "An auto-routed ticket with no available agent is returned unassigned and stays queued."
    ),
)
async def assign_ticket(
    ticket_id: str,
    request: AssignRequest,
    engine: EscalationEngine = Depends(get_engine),
) -> TicketResponse:
    ticket = await engine.assign_agent(ticket_id, request.agent_id, request.cross_assign)
    return TicketResponse.from_domain(ticket)


@router.post(
    "/{ticket_id}/escalate",
    response_model=TicketResponse,
    summary="Escalate ticket",
    description="Move the ticket up one tier. A ticket already at 'escalated' is returned unchanged.",
)
async def escalate_ticket(
    ticket_id: str,
    request: EscalateRequest,
    engine: EscalationEngine = Depends(get_engine),
) -> TicketResponse:
    ticket = await engine.escalate(
        ticket_id,
        reason=EscalationReason(request.reason),
        actor_id=request.actor,
        notes=request.notes,
    )
    return TicketResponse.from_domain(ticket)


@router.post("/{ticket_id}/resolve", response_model=TicketResponse, summary="Resolve ticket")
async def resolve_ticket(ticket_id: str, engine: EscalationEngine = Depends(get_engine)) -> TicketResponse:
    return TicketResponse.from_domain(await engine.resolve(ticket_id))


@router.post("/{ticket_id}/close", response_model=TicketResponse, summary="Close resolved ticket")
async def close_ticket(ticket_id: str, engine: EscalationEngine = Depends(get_engine)) -> TicketResponse:
    return TicketResponse.from_domain(await engine.close(ticket_id))


@router.post("/{ticket_id}/pending", response_model=TicketResponse, summary="Wait on customer")
async def mark_pending(ticket_id: str, engine: EscalationEngine = Depends(get_engine)) -> TicketResponse:
    return TicketResponse.from_domain(await engine.mark_pending(ticket_id))


@router.post("/{ticket_id}/resume", response_model=TicketResponse, summary="Resume work")
async def resume_ticket(ticket_id: str, engine: EscalationEngine = Depends(get_engine)) -> TicketResponse:
    return TicketResponse.from_domain(await engine.resume(ticket_id))


@router.post(
    "/{ticket_id}/priority",
    response_model=TicketResponse,
    summary="Reprioritize ticket",
    description="Change priority. SLA deadlines are not moved.",
)
async def reprioritize_ticket(
    ticket_id: str,
    request: PriorityUpdateRequest,
    engine: EscalationEngine = Depends(get_engine),
) -> TicketResponse:
    ticket = await engine.reprioritize(ticket_id, Priority(request.priority))
    return TicketResponse.from_domain(ticket)


@router.post(
    "/{ticket_id}/suggestions",
    response_model=TicketResponse,
    summary="Attach AI suggestions",
    description="Attach classifier suggestions; low mean confidence escalates a tier1 ticket.",
)
async def attach_suggestions(
    ticket_id: str,
    request: SuggestionsRequest,
    engine: EscalationEngine = Depends(get_engine),
) -> TicketResponse:
    ticket = await engine.attach_suggestions(ticket_id, [s.to_domain() for s in request.suggestions])
    return TicketResponse.from_domain(ticket)


# ========== Queries ==========

@router.get(
    "",
    response_model=TicketListResponse,
    summary="List tickets",
    description="Filters are AND-combined; newest first unless order=asc.",
)
async def list_tickets(
    tier: Optional[TierStr] = Query(None),
    status_filter: Optional[TicketStatusStr] = Query(None, alias="status"),
    priority: Optional[PriorityStr] = Query(None),
    platform: Optional[PlatformStr] = Query(None),
    text: Optional[str] = Query(None, description="Substring of title or customer"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    engine: EscalationEngine = Depends(get_engine),
) -> TicketListResponse:
    ticket_filter = TicketFilter(
        tier=TicketTier(tier) if tier else None,
        status=TicketStatus(status_filter) if status_filter else None,
        priority=Priority(priority) if priority else None,
        platform=Platform(platform) if platform else None,
        text=text,
        order=order,
        limit=limit,
        offset=offset,
    )
    tickets = await engine.list_tickets(ticket_filter)
    return TicketListResponse(
        tickets=[TicketResponse.from_domain(t) for t in tickets],
        count=len(tickets),
        limit=limit,
        offset=offset,
    )


@router.get("/{ticket_id}", response_model=TicketResponse, summary="Get ticket")
async def get_ticket(ticket_id: str, engine: EscalationEngine = Depends(get_engine)) -> TicketResponse:
    return TicketResponse.from_domain(await engine.get_ticket(ticket_id))


@router.get("/{ticket_id}/sla", response_model=TicketSLAResponse, summary="Ticket SLA status")
async def get_ticket_sla(ticket_id: str, engine: EscalationEngine = Depends(get_engine)) -> TicketSLAResponse:
    return TicketSLAResponse.from_metrics(await engine.get_sla_metrics(ticket_id))


# ========== Event stream ==========

@events_router.websocket("/events")
async def event_stream(websocket: WebSocket) -> None:
    """Pushes every lifecycle event as JSON."""
    bus: EventBus = websocket.app.state.event_bus
    await websocket.accept()

    async with bus.stream() as queue:
        receiver = asyncio.create_task(websocket.receive_text())
        try:
            while True:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    await websocket.send_json(getter.result().to_dict())
                else:
                    getter.cancel()

                if receiver in done:
                    # Client messages are ignored; a disconnect ends the stream
                    receiver.result()
                    receiver = asyncio.create_task(websocket.receive_text())
        except WebSocketDisconnect:
            logger.debug("Event stream client disconnected")
        finally:
            receiver.cancel()
