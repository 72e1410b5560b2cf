"""
Priority Controllers (API Routes)
==================================

FastAPI routes for automatic prioritization.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.infrastructure.database import get_session
from helpdesk.priority.application import (
    PriorityBatchResponse,
    PriorityScoreResponse,
    PriorityService,
    PriorityUpdateResponse,
)
from helpdesk.shared.api.dependencies import get_engine_config, get_notification_sink
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.application import INotificationSink, ITicketRepository
from helpdesk.tickets.interfaces import get_ticket_repository

logger = get_logger(__name__)
router = APIRouter(tags=["Priority"])


# ========== Example payloads for Swagger ==========

PRIORITY_SCORE_EXAMPLE = {
    "ticket_id": "123e4567-e89b-12d3-a456-426614174000",
    "score": 57.5,
    "suggested_priority": "high",
    "current_priority": "medium",
    "factors": {
        "waiting_time": 50.0,
        "sla_status": 75.0,
        "reopen_count": 0.0,
        "keywords": 100.0,
        "user_history": 20.0,
    },
}


# ========== Dependencies ==========

async def get_priority_service(
    ticket_repository: ITicketRepository = Depends(get_ticket_repository),
    config=Depends(get_engine_config),
    notification_sink: Optional[INotificationSink] = Depends(get_notification_sink)
) -> PriorityService:
    """Get priority service built from the current configuration."""
    return PriorityService(ticket_repository, config.scorer(), notification_sink)


# ========== Route Handlers ==========

@router.get(
    "/tickets/{ticket_id}/priority",
    response_model=PriorityScoreResponse,
    summary="Score a ticket",
    description="""
    Compute the priority score without changing the ticket.

    The score (0-100) is a weighted sum of five factors: waiting time,
    SLA remaining, reopen count, keyword matches and the requester's
    recent ticket volume.
    """,
    responses={
        200: {"content": {"application/json": {"example": PRIORITY_SCORE_EXAMPLE}}},
        404: {"description": "Ticket not found"},
    }
)
async def get_priority(
    ticket_id: str,
    ticket_repository: ITicketRepository = Depends(get_ticket_repository),
    service: PriorityService = Depends(get_priority_service)
):
    ticket = await ticket_repository.load_by_id(ticket_id)
    score = await service.calculate(ticket_id)
    return PriorityScoreResponse.from_score(ticket.id, ticket.priority, score)


@router.post(
    "/tickets/{ticket_id}/priority/recalculate",
    response_model=PriorityUpdateResponse,
    summary="Re-prioritize a ticket",
    description="""
    Apply the suggested priority. Unless `force` is set, nothing is written
    when the suggestion matches the current priority. Closed and cancelled
    tickets are never re-prioritized.
    """,
    responses={
        404: {"description": "Ticket not found"},
        409: {"description": "Concurrent modification"},
    }
)
async def recalculate_priority(
    ticket_id: str,
    force: bool = Query(False, description="Write the audit even if the priority is unchanged"),
    service: PriorityService = Depends(get_priority_service),
    session: AsyncSession = Depends(get_session)
):
    result = await service.update_priority(ticket_id, force=force)
    await session.commit()
    return PriorityUpdateResponse.from_result(result)


@router.post(
    "/priority/recalculate",
    response_model=PriorityBatchResponse,
    summary="Re-prioritize all active tickets",
    description="Run the re-prioritization sweep over open and in-progress tickets now."
)
async def recalculate_all(
    service: PriorityService = Depends(get_priority_service),
    session: AsyncSession = Depends(get_session)
):
    result = await service.update_all()
    await session.commit()
    return PriorityBatchResponse.from_result(result)


# Export router for inclusion in main app
priority_router = router
