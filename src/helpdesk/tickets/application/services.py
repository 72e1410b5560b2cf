"""
Ticket Application Services
============================

Application services orchestrate the ticket lifecycle: they load tickets
through the repository interface, run the state machine, persist the
result and dispatch notifications.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories, sinks), not concrete implementations
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from helpdesk.config import NotificationKind, TicketStatus
from helpdesk.core.exceptions import MissingActor
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.domain.calendar import ensure_aware
from helpdesk.sla.domain.entities import SLARecord
from helpdesk.sla.domain.value_objects import SLAMatrix
from helpdesk.tickets.domain.entities import StatusHistoryEntry, Ticket
from helpdesk.tickets.domain.state_machine import (
    SLA_STARTED, STATUS_CHANGED, SideEffect, TicketStateMachine
)

logger = get_logger(__name__)


# ========== Collaborator Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def load_by_id(self, ticket_id: str) -> Ticket:
        """
        Load a ticket.

        Raises:
            ResourceNotFoundException: If no ticket has this id
        """

    @abstractmethod
    async def add(self, ticket: Ticket) -> Ticket:
        """Insert a new ticket."""

    @abstractmethod
    async def save(self, ticket: Ticket) -> Ticket:
        """
        Persist changes to an existing ticket.

        Uses ``ticket.version`` as the expected stored version and bumps it.

        Raises:
            ConflictingState: If the stored version moved on
        """

    @abstractmethod
    async def find_active_sla(self) -> List[Ticket]:
        """Tickets with a running (started, unpaused) SLA clock that are open or in progress."""

    @abstractmethod
    async def find_by_status(self, statuses: Sequence[TicketStatus]) -> List[Ticket]:
        """Tickets whose status is one of ``statuses``."""

    @abstractmethod
    async def find_by_creator_since(self, created_by: str, since: datetime) -> List[Ticket]:
        """Tickets created by ``created_by`` at or after ``since``."""


@dataclass
class NotificationEvent:
    """Event handed to the notification sink."""

    kind: NotificationKind
    ticket_id: str
    details: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class INotificationSink(ABC):
    """Interface for outbound notifications (fire and forget)."""

    @abstractmethod
    async def notify(self, event: NotificationEvent) -> None:
        """Deliver an event."""


class IActorResolver(ABC):
    """Interface resolving a caller reference to an auditable actor id."""

    @abstractmethod
    async def resolve(self, actor_ref: Optional[str]) -> Optional[str]:
        """Return the actor id, or None when the reference cannot be resolved."""


class IUnitOfWork(ABC):
    """Interface making the repository's pending writes durable or discarding them."""

    @abstractmethod
    async def commit(self) -> None:
        """Make pending writes durable."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard pending writes."""


async def notify_safely(
    sink: Optional[INotificationSink],
    event: NotificationEvent,
    log: logging.Logger = logger
) -> bool:
    """
    Deliver an event, logging instead of raising on failure.

    Returns:
        True if the sink accepted the event
    """
    if sink is None:
        return False
    try:
        await sink.notify(event)
        return True
    except Exception as e:
        log.error(
            "Notification delivery failed",
            extra={
                "ticket_id": event.ticket_id,
                "kind": event.kind.value,
                "error": str(e),
            }
        )
        return False


# ========== Application Services ==========

class TicketService:
    """
    Service for ticket creation and status changes.

    Coordinates the state machine, persistence and notifications.
    """

    _EVENT_KINDS = {
        STATUS_CHANGED: NotificationKind.STATUS_CHANGED,
        SLA_STARTED: NotificationKind.SLA_STARTED,
    }

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        state_machine: TicketStateMachine,
        sla_matrix: SLAMatrix,
        actor_resolver: IActorResolver,
        notification_sink: Optional[INotificationSink] = None
    ):
        self._ticket_repo = ticket_repository
        self._state_machine = state_machine
        self._sla_matrix = sla_matrix
        self._actor_resolver = actor_resolver
        self._sink = notification_sink

    async def create_ticket(
        self,
        request: Any,
        actor_ref: Optional[str],
        now: Optional[datetime] = None
    ) -> Ticket:
        """
        Create a ticket in ``open`` with its SLA budget provisioned.

        Args:
            request: Object with title, description, category and priority
            actor_ref: Reference of the creating user
            now: Creation time (defaults to the current UTC time)

        Returns:
            The stored ticket

        Raises:
            MissingActor: If the creator cannot be resolved
        """
        actor = await self._actor_resolver.resolve(actor_ref)
        if not actor:
            raise MissingActor()

        now = ensure_aware(now or datetime.now(timezone.utc))
        hours = self._sla_matrix.hours_for(request.priority, request.category)

        ticket = Ticket(
            id=str(uuid.uuid4()),
            title=request.title,
            description=request.description,
            category=request.category,
            priority=request.priority,
            status=TicketStateMachine.initial_state(),
            created_by=actor,
            created_at=now,
            updated_at=now,
            status_history=[
                StatusHistoryEntry(
                    status=TicketStateMachine.initial_state(),
                    changed_by=actor,
                    changed_at=now,
                )
            ],
            sla=SLARecord(hours=hours),
        )
        ticket = await self._ticket_repo.add(ticket)

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "priority": ticket.priority.value,
                "category": ticket.category.value,
                "sla_hours": hours,
            }
        )
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket:
        """Load a ticket (raises ResourceNotFoundException)."""
        return await self._ticket_repo.load_by_id(ticket_id)

    async def change_status(
        self,
        ticket_id: str,
        new_status: TicketStatus,
        actor_ref: Optional[str],
        comment: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Ticket:
        """
        Move a ticket to a new status.

        Args:
            ticket_id: Ticket UUID
            new_status: Requested status
            actor_ref: Reference of the user making the change
            comment: Optional history comment
            now: Transition time (defaults to the current UTC time)

        Returns:
            The updated ticket (unchanged when the status is already current)

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            InvalidTransition: If the lifecycle forbids the change
            MissingActor: If the actor cannot be resolved
            ConflictingState: If the ticket changed concurrently
        """
        actor = await self._actor_resolver.resolve(actor_ref)
        ticket = await self._ticket_repo.load_by_id(ticket_id)
        previous = ticket.status

        ticket, effects = self._state_machine.transition(
            ticket, new_status, actor, comment=comment, now=now
        )
        if not effects:
            return ticket

        ticket = await self._ticket_repo.save(ticket)

        logger.info(
            "Ticket status changed",
            extra={
                "ticket_id": ticket.id,
                "from_status": previous.value,
                "to_status": ticket.status.value,
                "changed_by": actor,
            }
        )

        await self._dispatch(ticket, effects)
        return ticket

    async def _dispatch(self, ticket: Ticket, effects: List[SideEffect]) -> None:
        for effect in effects:
            kind = self._EVENT_KINDS.get(effect.kind)
            if kind is None:
                logger.debug(
                    "Side effect recorded",
                    extra={"ticket_id": ticket.id, "effect": effect.kind}
                )
                continue
            await notify_safely(
                self._sink,
                NotificationEvent(kind=kind, ticket_id=ticket.id, details=dict(effect.details))
            )
