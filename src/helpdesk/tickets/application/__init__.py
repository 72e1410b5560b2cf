"""
Ticket Application Layer
========================

Contains:
- Services: TicketService and the collaborator interfaces it depends on
- DTOs: Request/response models for the ticket API

This layer depends on the domain layer and collaborator interfaces,
but not on concrete infrastructure implementations.
"""

from helpdesk.tickets.application.dto import (
    TicketCreateRequest,
    StatusChangeRequest,
    TicketResponse,
    SLAResponse,
    StatusHistoryResponse,
)
from helpdesk.tickets.application.services import (
    TicketService,
    ITicketRepository,
    INotificationSink,
    IActorResolver,
    IUnitOfWork,
    NotificationEvent,
    notify_safely,
)

__all__ = [
    # DTOs
    "TicketCreateRequest",
    "StatusChangeRequest",
    "TicketResponse",
    "SLAResponse",
    "StatusHistoryResponse",
    # Services
    "TicketService",
    "notify_safely",
    # Interfaces
    "ITicketRepository",
    "INotificationSink",
    "IActorResolver",
    "IUnitOfWork",
    "NotificationEvent",
]
