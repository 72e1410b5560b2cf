"""
Ticket State Machine
====================

Explicit ticket lifecycle transitions.

``transition`` validates the edge, writes the audit entry, applies the
timestamp/metric/SLA side effects and returns descriptors of what happened.
Persisting the ticket and dispatching notifications is left to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from helpdesk.config import TicketStatus
from helpdesk.core.exceptions import InvalidTransition, MissingActor
from helpdesk.sla.domain.calendar import ensure_aware
from helpdesk.sla.domain.clock import SLAClock
from helpdesk.tickets.domain.entities import StatusHistoryEntry, Ticket


@dataclass(frozen=True)
class SideEffect:
    """Descriptor of a consequence of a status change."""

    kind: str
    details: Dict[str, Any] = field(default_factory=dict)


# Side effect kinds
STATUS_CHANGED = "status_changed"
SLA_STARTED = "sla_started"
FIRST_RESPONSE = "first_response"
REOPENED = "reopened"
RESOLVED = "resolved"
CLOSED = "closed"


class TicketStateMachine:
    """Validate and apply ticket lifecycle transitions."""

    _TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
        TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED}),
        TicketStatus.IN_PROGRESS: frozenset({
            TicketStatus.RESOLVED, TicketStatus.OPEN, TicketStatus.CANCELLED
        }),
        TicketStatus.RESOLVED: frozenset({
            TicketStatus.CLOSED, TicketStatus.OPEN, TicketStatus.CANCELLED
        }),
        TicketStatus.CLOSED: frozenset(),
        TicketStatus.CANCELLED: frozenset(),
    }

    def __init__(self, clock: SLAClock):
        self.clock = clock

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.OPEN

    @classmethod
    def allowed_transitions(cls, current: TicketStatus) -> FrozenSet[TicketStatus]:
        """Statuses reachable from ``current`` in one step."""
        return cls._TRANSITIONS.get(current, frozenset())

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        """Check whether ``current -> new`` is an edge of the lifecycle graph."""
        return new in cls.allowed_transitions(current)

    def transition(
        self,
        ticket: Ticket,
        new_status: TicketStatus,
        actor: Optional[str],
        comment: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Tuple[Ticket, List[SideEffect]]:
        """
        Move a ticket to ``new_status``.

        Args:
            ticket: Ticket to mutate
            new_status: Requested status
            actor: Identifier of whoever makes the change
            comment: Optional note stored in the history entry
            now: Transition time (defaults to the current UTC time)

        Returns:
            Tuple of (ticket, side effects). Requesting the current status
            is a no-op that returns no side effects.

        Raises:
            InvalidTransition: If the edge is not part of the lifecycle
            MissingActor: If no actor is given; nothing is mutated
        """
        new_status = TicketStatus(new_status)
        previous = ticket.status

        if new_status == previous:
            return ticket, []

        if not self.can_transition(previous, new_status):
            raise InvalidTransition(previous, new_status, ticket_id=ticket.id)

        if actor is None or not str(actor).strip():
            raise MissingActor(ticket_id=ticket.id)

        now = ensure_aware(now or datetime.now(timezone.utc))

        ticket.status_history.append(
            StatusHistoryEntry(
                status=new_status,
                changed_by=actor,
                changed_at=now,
                comment=comment,
            )
        )
        ticket.status = new_status
        ticket.updated_at = now

        effects = [
            SideEffect(STATUS_CHANGED, {
                "from": previous.value,
                "to": new_status.value,
                "changed_by": actor,
            })
        ]

        if new_status == TicketStatus.IN_PROGRESS:
            effects.extend(self._enter_in_progress(ticket, now))
        elif new_status == TicketStatus.RESOLVED:
            effects.extend(self._enter_resolved(ticket, now))
        elif new_status == TicketStatus.CLOSED:
            if ticket.closed_at is None:
                ticket.closed_at = now
            effects.append(SideEffect(CLOSED, {"closed_at": ticket.closed_at.isoformat()}))
        elif new_status == TicketStatus.OPEN:
            ticket.metrics.reopen_count += 1
            effects.append(SideEffect(REOPENED, {"reopen_count": ticket.metrics.reopen_count}))

        return ticket, effects

    def _enter_in_progress(self, ticket: Ticket, now: datetime) -> List[SideEffect]:
        effects = []

        if ticket.first_response_at is None:
            ticket.first_response_at = now
            ticket.metrics.response_time = self.clock.elapsed_hours(ticket.created_at, now)
            effects.append(SideEffect(FIRST_RESPONSE, {
                "response_time": ticket.metrics.response_time
            }))

        if ticket.sla is not None and not ticket.sla.is_started:
            self.clock.start(ticket.sla, now)
            effects.append(SideEffect(SLA_STARTED, {
                "hours": ticket.sla.hours,
                "deadline": ticket.sla.deadline.isoformat(),
            }))

        return effects

    def _enter_resolved(self, ticket: Ticket, now: datetime) -> List[SideEffect]:
        if ticket.resolved_at is None:
            ticket.resolved_at = now
        ticket.metrics.resolution_time = self.clock.elapsed_hours(ticket.created_at, now)
        return [SideEffect(RESOLVED, {"resolution_time": ticket.metrics.resolution_time})]
