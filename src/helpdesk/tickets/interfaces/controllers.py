"""
Ticket Controllers (API Routes)
================================

FastAPI routes for the ticket lifecycle.

Controllers are thin - they delegate to application services and let
``ApplicationException`` subclasses reach the global handler.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.infrastructure.database import get_session
from helpdesk.shared.api.dependencies import (
    get_actor_ref,
    get_engine_config,
    get_notification_sink,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application import (
    INotificationSink,
    ITicketRepository,
    StatusChangeRequest,
    StatusHistoryResponse,
    TicketCreateRequest,
    TicketResponse,
    TicketService,
)
from helpdesk.tickets.domain.state_machine import TicketStateMachine
from helpdesk.tickets.infrastructure import HeaderActorResolver, SQLAlchemyTicketRepository

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])


# ========== Example payloads for Swagger ==========

TICKET_CREATE_EXAMPLE = {
    "title": "Printer on 3rd floor not working",
    "description": "Paper jam error, nothing prints since the morning",
    "category": "Hardware",
    "priority": "high",
}


# ========== Dependencies ==========

async def get_ticket_repository(
    session: AsyncSession = Depends(get_session)
) -> ITicketRepository:
    """Get ticket repository bound to the request session."""
    return SQLAlchemyTicketRepository(session)


async def get_ticket_service(
    ticket_repository: ITicketRepository = Depends(get_ticket_repository),
    config=Depends(get_engine_config),
    notification_sink: Optional[INotificationSink] = Depends(get_notification_sink)
) -> TicketService:
    """Get ticket service built from the current configuration."""
    return TicketService(
        ticket_repository,
        config.state_machine(),
        config.sla_matrix,
        HeaderActorResolver(),
        notification_sink,
    )


def _to_response(ticket) -> TicketResponse:
    return TicketResponse.from_domain(
        ticket, list(TicketStateMachine.allowed_transitions(ticket.status))
    )


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket",
    description="""
    Create a ticket in `open`. The SLA budget is provisioned from the
    priority x category matrix; the clock starts when the ticket first
    moves to `in_progress`.

    Requires the `X-Actor-Id` header.
    """,
    responses={
        201: {"description": "Ticket created"},
        400: {"description": "Missing actor"},
        422: {"description": "Invalid payload"},
    }
)
async def create_ticket(
    request: TicketCreateRequest = Body(..., examples=[TICKET_CREATE_EXAMPLE]),
    actor_ref: Optional[str] = Depends(get_actor_ref),
    service: TicketService = Depends(get_ticket_service),
    session: AsyncSession = Depends(get_session)
):
    ticket = await service.create_ticket(request, actor_ref)
    await session.commit()
    return _to_response(ticket)


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Get a ticket",
    responses={404: {"description": "Ticket not found"}}
)
async def get_ticket(
    ticket_id: str,
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.get_ticket(ticket_id)
    return _to_response(ticket)


@router.post(
    "/{ticket_id}/status",
    response_model=TicketResponse,
    summary="Change ticket status",
    description="""
    Move a ticket through its lifecycle:

    - `open` -> `in_progress`, `cancelled`
    - `in_progress` -> `resolved`, `open`, `cancelled`
    - `resolved` -> `closed`, `open`, `cancelled`

    `closed` and `cancelled` are terminal.

    Requesting the current status is a no-op. Entering `in_progress` the
    first time records the first response and starts the SLA clock.
    """,
    responses={
        400: {"description": "Missing actor"},
        404: {"description": "Ticket not found"},
        409: {"description": "Transition not allowed or concurrent modification"},
    }
)
async def change_status(
    ticket_id: str,
    request: StatusChangeRequest,
    actor_ref: Optional[str] = Depends(get_actor_ref),
    service: TicketService = Depends(get_ticket_service),
    session: AsyncSession = Depends(get_session)
):
    ticket = await service.change_status(
        ticket_id, request.status, actor_ref, comment=request.comment
    )
    await session.commit()
    return _to_response(ticket)


@router.get(
    "/{ticket_id}/history",
    response_model=List[StatusHistoryResponse],
    summary="Get ticket status history",
    responses={404: {"description": "Ticket not found"}}
)
async def get_history(
    ticket_id: str,
    service: TicketService = Depends(get_ticket_service)
):
    ticket = await service.get_ticket(ticket_id)
    return [StatusHistoryResponse.from_domain(entry) for entry in ticket.status_history]


# Export router for inclusion in main app
tickets_router = router
