"""
SLA Application Services
=========================

Application services for the SLA clock: operator pause/resume, status
queries and the periodic compliance sweep.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories, sinks), not concrete implementations
"""

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import List, Optional

from helpdesk.config import NotificationKind, SLAStatus, TicketStatus
from helpdesk.core.exceptions import ConflictingState, MissingActor, PreconditionFailed
from helpdesk.shared.infrastructure.logging import get_logger, log_latency
from helpdesk.sla.domain.calendar import ensure_aware
from helpdesk.sla.domain.clock import SLAClock
from helpdesk.sla.domain.entities import SLARecord
from helpdesk.sla.domain.value_objects import SLAEvaluation
from helpdesk.tickets.application.services import (
    IActorResolver,
    INotificationSink,
    ITicketRepository,
    IUnitOfWork,
    NotificationEvent,
    notify_safely,
)
from helpdesk.tickets.domain.entities import Ticket

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ========== Results ==========

@dataclass
class SLAStatusReport:
    """Stored SLA record of a ticket together with a live evaluation."""

    ticket_id: str
    ticket_status: TicketStatus
    sla: SLARecord
    evaluation: SLAEvaluation


@dataclass
class SweepResult:
    """Summary counts of one SLA sweep."""

    checked: int = 0
    updated: int = 0
    breached: int = 0
    at_risk: int = 0
    escalated: int = 0
    errors: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


# ========== Application Services ==========

class SLAService:
    """
    Operator-facing SLA operations.

    Pause and resume validate against a freshly loaded ticket, load it
    again right before mutating and save with the version that was read,
    so a concurrent change surfaces as ``ConflictingState`` instead of a
    lost update.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        clock: SLAClock,
        actor_resolver: IActorResolver
    ):
        self._ticket_repo = ticket_repository
        self._clock = clock
        self._actor_resolver = actor_resolver

    async def pause(
        self,
        ticket_id: str,
        reason: Optional[str],
        actor_ref: Optional[str],
        now: Optional[datetime] = None
    ) -> Ticket:
        """
        Pause a ticket's SLA clock.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            MissingActor: If the actor cannot be resolved
            PreconditionFailed: If the ticket is terminal or the clock is not running
            ConflictingState: If the ticket changed concurrently
        """
        actor = await self._require_actor(actor_ref, ticket_id)
        snapshot = await self._ticket_repo.load_by_id(ticket_id)
        self._check_can_pause(snapshot)

        ticket = await self._reload_unchanged(snapshot)
        self._check_can_pause(ticket)

        now = ensure_aware(now or _utcnow())
        self._clock.pause(ticket.sla, reason=reason, now=now)
        ticket.updated_at = now
        ticket = await self._ticket_repo.save(ticket)

        logger.info(
            "SLA paused",
            extra={
                "ticket_id": ticket_id,
                "paused_by": actor,
                "reason": reason,
                "remaining_hours": ticket.sla.remaining_hours,
            }
        )
        return ticket

    async def resume(
        self,
        ticket_id: str,
        actor_ref: Optional[str],
        now: Optional[datetime] = None
    ) -> Ticket:
        """
        Resume a ticket's paused SLA clock with its unconsumed budget.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            MissingActor: If the actor cannot be resolved
            PreconditionFailed: If the ticket is terminal or the clock is not paused
            ConflictingState: If the ticket changed concurrently
        """
        actor = await self._require_actor(actor_ref, ticket_id)
        snapshot = await self._ticket_repo.load_by_id(ticket_id)
        self._check_can_resume(snapshot)

        ticket = await self._reload_unchanged(snapshot)
        self._check_can_resume(ticket)

        now = ensure_aware(now or _utcnow())
        self._clock.resume(ticket.sla, now=now)
        ticket.updated_at = now
        ticket = await self._ticket_repo.save(ticket)

        logger.info(
            "SLA resumed",
            extra={
                "ticket_id": ticket_id,
                "resumed_by": actor,
                "deadline": ticket.sla.deadline.isoformat(),
                "sla_status": ticket.sla.status.value,
            }
        )
        return ticket

    async def get_status(self, ticket_id: str, now: Optional[datetime] = None) -> SLAStatusReport:
        """
        Report a ticket's SLA record with a live, non-persisted evaluation.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            PreconditionFailed: If the ticket has no SLA budget
        """
        ticket = await self._ticket_repo.load_by_id(ticket_id)
        if ticket.sla is None:
            raise PreconditionFailed("Ticket has no SLA budget", ticket_id=ticket_id)

        return SLAStatusReport(
            ticket_id=ticket.id,
            ticket_status=ticket.status,
            sla=ticket.sla,
            evaluation=self._clock.update_status(ticket.sla, now),
        )

    # ========== Helpers ==========

    async def _require_actor(self, actor_ref: Optional[str], ticket_id: str) -> str:
        actor = await self._actor_resolver.resolve(actor_ref)
        if not actor:
            raise MissingActor(ticket_id=ticket_id)
        return actor

    async def _reload_unchanged(self, snapshot: Ticket) -> Ticket:
        ticket = await self._ticket_repo.load_by_id(snapshot.id)
        if ticket.version != snapshot.version:
            raise ConflictingState(
                f"Ticket changed concurrently (version {snapshot.version} -> {ticket.version})",
                ticket_id=snapshot.id,
            )
        return ticket

    @staticmethod
    def _check_mutable(ticket: Ticket) -> None:
        if ticket.is_terminal:
            raise PreconditionFailed(
                f"SLA of a {ticket.status.value} ticket cannot change",
                ticket_id=ticket.id,
            )
        if ticket.sla is None:
            raise PreconditionFailed("Ticket has no SLA budget", ticket_id=ticket.id)

    def _check_can_pause(self, ticket: Ticket) -> None:
        self._check_mutable(ticket)
        if not ticket.sla.is_started:
            raise PreconditionFailed("SLA clock has not been started", ticket_id=ticket.id)
        if ticket.sla.is_paused:
            raise PreconditionFailed("SLA clock is already paused", ticket_id=ticket.id)

    def _check_can_resume(self, ticket: Ticket) -> None:
        self._check_mutable(ticket)
        if not ticket.sla.is_paused:
            raise PreconditionFailed("SLA clock is not paused", ticket_id=ticket.id)


class SLAMonitorService:
    """
    Periodic SLA compliance sweep.

    Re-evaluates every running clock, persists changed figures and emits
    one ``breach``/``at_risk`` event per status change. A breach also
    escalates the ticket one level and emits an ``escalation`` event.

    With a unit of work each ticket is committed on its own and its events
    are sent only after that commit, so a failing ticket neither blocks the
    rest of the sweep nor produces events for unsaved state. Only one sweep
    runs at a time per lock; pass the same lock to every instance built for
    the same job.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        clock: SLAClock,
        notification_sink: Optional[INotificationSink] = None,
        lock: Optional[asyncio.Lock] = None,
        unit_of_work: Optional[IUnitOfWork] = None
    ):
        self._ticket_repo = ticket_repository
        self._clock = clock
        self._sink = notification_sink
        self._lock = lock or asyncio.Lock()
        self._uow = unit_of_work

    @property
    def is_running(self) -> bool:
        """Check if a sweep is in progress."""
        return self._lock.locked()

    async def run_sweep(self, now: Optional[datetime] = None) -> Optional[SweepResult]:
        """
        Evaluate all active SLA clocks.

        Args:
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            SweepResult, or None if another sweep is still running
        """
        if self._lock.locked():
            logger.warning("SLA sweep already in progress, skipping")
            return None

        async with self._lock:
            now = ensure_aware(now or _utcnow())
            result = SweepResult()

            with log_latency(logger, "sla_sweep"):
                tickets = await self._ticket_repo.find_active_sla()
                for ticket in tickets:
                    result.checked += 1
                    try:
                        events = await self._evaluate(ticket, now)
                        if events is not None:
                            await self._commit()
                    except Exception as e:
                        result.errors += 1
                        logger.error(
                            "SLA evaluation failed",
                            extra={"ticket_id": ticket.id, "error": str(e)}
                        )
                        await self._rollback()
                        continue

                    if events is None:
                        result.skipped += 1
                        continue

                    result.updated += 1
                    for event in events:
                        if event.kind == NotificationKind.BREACH:
                            result.breached += 1
                        elif event.kind == NotificationKind.AT_RISK:
                            result.at_risk += 1
                        else:
                            result.escalated += 1
                        await notify_safely(self._sink, event)

            logger.info("SLA sweep finished", extra=result.to_dict())
            return result

    async def _evaluate(self, ticket: Ticket, now: datetime) -> Optional[List[NotificationEvent]]:
        """Apply and save a fresh evaluation; None when nothing changed."""
        sla = ticket.sla
        evaluation = self._clock.update_status(sla, now)

        if (evaluation.status, evaluation.remaining_hours) == (sla.status, sla.remaining_hours):
            return None

        previous = sla.status
        self._clock.apply(sla, evaluation)

        events: List[NotificationEvent] = []
        if evaluation.status != previous:
            if evaluation.status == SLAStatus.BREACHED and not sla.notified:
                sla.notified = True
                events.append(self._event(NotificationKind.BREACH, ticket, previous))
                record = ticket.escalate(
                    now, reason=f"SLA of {sla.hours:g}h breached (level {ticket.escalation_level + 1})"
                )
                escalation = self._event(NotificationKind.ESCALATION, ticket, previous)
                escalation.details.update({
                    "level": record.level,
                    "reason": record.reason,
                    "escalation_count": ticket.metrics.escalation_count,
                })
                events.append(escalation)
            elif evaluation.status == SLAStatus.AT_RISK:
                events.append(self._event(NotificationKind.AT_RISK, ticket, previous))

        await self._ticket_repo.save(ticket)

        if evaluation.status != previous:
            logger.info(
                "SLA status changed",
                extra={
                    "ticket_id": ticket.id,
                    "from_status": previous.value,
                    "to_status": evaluation.status.value,
                    "remaining_hours": evaluation.remaining_hours,
                    "escalation_level": ticket.escalation_level,
                }
            )
        return events

    async def _commit(self) -> None:
        if self._uow is not None:
            await self._uow.commit()

    async def _rollback(self) -> None:
        if self._uow is not None:
            await self._uow.rollback()

    @staticmethod
    def _event(kind: NotificationKind, ticket: Ticket, previous: SLAStatus) -> NotificationEvent:
        sla = ticket.sla
        return NotificationEvent(
            kind=kind,
            ticket_id=ticket.id,
            details={
                "title": ticket.title,
                "priority": ticket.priority.value,
                "category": ticket.category.value,
                "previous_status": previous.value,
                "sla_status": sla.status.value,
                "remaining_hours": sla.remaining_hours,
                "deadline": sla.deadline.isoformat() if sla.deadline else None,
                "hours": sla.hours,
            },
        )
