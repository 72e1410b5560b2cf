"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA tracking: operator pause/resume, live status,
configuration views, ad-hoc deadline evaluation and a manual sweep.

Controllers are thin - they delegate to application services.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.infrastructure.database import get_session
from helpdesk.shared.api.dependencies import (
    get_actor_ref,
    get_engine_config,
    get_notification_sink,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application import (
    BusinessHoursResponse,
    EvaluateDeadlineRequest,
    EvaluateDeadlineResponse,
    PauseRequest,
    SLAMatrixResponse,
    SLAMonitorService,
    SLAService,
    SLAStatusResponse,
    SweepResponse,
)
from helpdesk.sla.domain.calendar import ensure_aware
from helpdesk.sla.domain.clock import SLAClock
from helpdesk.tickets.application import (
    INotificationSink,
    ITicketRepository,
    TicketResponse,
)
from helpdesk.tickets.domain.state_machine import TicketStateMachine
from helpdesk.tickets.infrastructure import HeaderActorResolver, SQLAlchemyUnitOfWork
from helpdesk.tickets.interfaces import get_ticket_repository

logger = get_logger(__name__)
router = APIRouter(tags=["SLA"])


# ========== Example payloads for Swagger ==========

EVALUATE_REQUEST_EXAMPLE = {
    "start": "2024-01-08T09:30:00+02:00",
    "hours": 8,
    "use_business_hours": True,
}

EVALUATE_RESPONSE_EXAMPLE = {
    "deadline": "2024-01-08T15:30:00Z",
    "remaining_hours": 8.0,
    "status": "on_time",
    "use_business_hours": True,
}


# ========== Dependencies ==========

async def get_sla_service(
    ticket_repository: ITicketRepository = Depends(get_ticket_repository),
    config=Depends(get_engine_config)
) -> SLAService:
    """Get SLA service built from the current configuration."""
    return SLAService(ticket_repository, config.clock(), HeaderActorResolver())


def get_sla_monitor_lock(request: Request) -> Optional[asyncio.Lock]:
    """Lock shared with the scheduled SLA sweep."""
    return getattr(request.app.state, "sla_monitor_lock", None)


async def get_sla_monitor(
    ticket_repository: ITicketRepository = Depends(get_ticket_repository),
    config=Depends(get_engine_config),
    notification_sink: Optional[INotificationSink] = Depends(get_notification_sink),
    lock: Optional[asyncio.Lock] = Depends(get_sla_monitor_lock),
    session: AsyncSession = Depends(get_session)
) -> SLAMonitorService:
    """Get SLA monitor sharing the scheduler's non-overlap lock, committing per ticket."""
    return SLAMonitorService(
        ticket_repository,
        config.clock(),
        notification_sink,
        lock=lock,
        unit_of_work=SQLAlchemyUnitOfWork(session),
    )


def _to_response(ticket) -> TicketResponse:
    return TicketResponse.from_domain(
        ticket, list(TicketStateMachine.allowed_transitions(ticket.status))
    )


# ========== Ticket SLA Routes ==========

@router.post(
    "/tickets/{ticket_id}/sla/pause",
    response_model=TicketResponse,
    summary="Pause a ticket's SLA clock",
    description="""
    Freeze the SLA clock, e.g. while waiting on the requester.

    The elapsed budget is snapshotted; resuming recomputes the deadline
    from the remaining budget. Requires the `X-Actor-Id` header.
    """,
    responses={
        400: {"description": "Missing actor"},
        404: {"description": "Ticket not found"},
        409: {"description": "Clock not running, ticket terminal or concurrent modification"},
    }
)
async def pause_sla(
    ticket_id: str,
    request: PauseRequest,
    actor_ref: Optional[str] = Depends(get_actor_ref),
    service: SLAService = Depends(get_sla_service),
    session: AsyncSession = Depends(get_session)
):
    ticket = await service.pause(ticket_id, request.reason, actor_ref)
    await session.commit()
    return _to_response(ticket)


@router.post(
    "/tickets/{ticket_id}/sla/resume",
    response_model=TicketResponse,
    summary="Resume a ticket's SLA clock",
    responses={
        400: {"description": "Missing actor"},
        404: {"description": "Ticket not found"},
        409: {"description": "Clock not paused, ticket terminal or concurrent modification"},
    }
)
async def resume_sla(
    ticket_id: str,
    actor_ref: Optional[str] = Depends(get_actor_ref),
    service: SLAService = Depends(get_sla_service),
    session: AsyncSession = Depends(get_session)
):
    ticket = await service.resume(ticket_id, actor_ref)
    await session.commit()
    return _to_response(ticket)


@router.get(
    "/tickets/{ticket_id}/sla",
    response_model=SLAStatusResponse,
    summary="Get a ticket's SLA status",
    description="""
    Return the stored SLA record together with a live evaluation at
    request time. The live figures are not persisted; the sweep does that.
    """,
    responses={404: {"description": "Ticket not found"}}
)
async def get_sla_status(
    ticket_id: str,
    service: SLAService = Depends(get_sla_service)
):
    report = await service.get_status(ticket_id)
    return SLAStatusResponse.from_report(report)


# ========== Configuration Routes ==========

@router.get(
    "/sla/business-hours",
    response_model=BusinessHoursResponse,
    summary="Get the business calendar"
)
async def get_business_hours(config=Depends(get_engine_config)):
    return BusinessHoursResponse.from_config(config.business_hours, config.use_business_hours)


@router.get(
    "/sla/matrix",
    response_model=SLAMatrixResponse,
    summary="Get the SLA target matrix",
    description="SLA budgets in hours by priority and category."
)
async def get_sla_matrix(config=Depends(get_engine_config)):
    return SLAMatrixResponse(
        matrix=config.sla_matrix.as_table(),
        fallback_hours=config.sla_matrix.fallback_hours,
        at_risk_ratio=config.at_risk_ratio,
    )


@router.post(
    "/sla/evaluate",
    response_model=EvaluateDeadlineResponse,
    summary="Evaluate a deadline",
    description="""
    Compute the deadline for a budget starting at `start` using the
    configured business calendar, plus the remaining hours and SLA status
    at `now` (defaults to the current time).
    """,
    responses={
        200: {"content": {"application/json": {"example": EVALUATE_RESPONSE_EXAMPLE}}},
    }
)
async def evaluate_deadline(
    request: EvaluateDeadlineRequest = Body(..., examples=[EVALUATE_REQUEST_EXAMPLE]),
    config=Depends(get_engine_config)
):
    use_business_hours = (
        config.use_business_hours if request.use_business_hours is None
        else request.use_business_hours
    )
    clock = SLAClock(config.calendar(), use_business_hours, config.at_risk_ratio)
    now = ensure_aware(request.now or datetime.now(timezone.utc))

    deadline = clock.calculate_deadline(request.start, request.hours, use_business_hours)
    remaining = clock.calculate_remaining_hours(request.start, deadline, now)
    return EvaluateDeadlineResponse(
        deadline=deadline,
        remaining_hours=remaining,
        status=clock.classify(remaining, request.hours),
        use_business_hours=use_business_hours,
    )


@router.post(
    "/sla/sweep",
    response_model=SweepResponse,
    summary="Run an SLA sweep now",
    description="""
    Re-evaluate every running SLA clock immediately. If a sweep is already
    in progress nothing is done and `started` is false.
    """
)
async def run_sweep(
    monitor: SLAMonitorService = Depends(get_sla_monitor)
):
    result = await monitor.run_sweep()
    return SweepResponse.from_result(result)


# Export router for inclusion in main app
sla_router = router
