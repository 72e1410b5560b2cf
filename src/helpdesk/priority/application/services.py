"""
Priority Application Services
==============================

Scores tickets, applies suggested priorities with an audit record and
runs the periodic re-prioritization sweep.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from helpdesk.config import ACTIVE_STATUSES, NotificationKind, Priority
from helpdesk.priority.domain.scorer import PriorityScorer
from helpdesk.priority.domain.value_objects import PriorityScore
from helpdesk.shared.infrastructure.logging import get_logger, log_latency
from helpdesk.sla.domain.calendar import ensure_aware
from helpdesk.tickets.application.services import (
    INotificationSink,
    ITicketRepository,
    NotificationEvent,
    notify_safely,
)
from helpdesk.tickets.domain.entities import PriorityAudit, Ticket

logger = get_logger(__name__)

REASON_TERMINAL = "terminal"
REASON_UNCHANGED = "unchanged"


@dataclass
class PriorityUpdateResult:
    """Outcome of a single priority update."""

    ticket_id: str
    updated: bool
    score: float
    suggested_priority: Priority
    current_priority: Priority
    previous_priority: Optional[Priority] = None
    reason: Optional[str] = None
    factors: Dict[str, float] = field(default_factory=dict)


@dataclass
class PriorityBatchResult:
    """Summary of a re-prioritization sweep."""

    total: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class PriorityService:
    """
    Service for automatic ticket prioritization.

    Coordinates the scorer with ticket data access and notifications.
    """

    def __init__(
        self,
        ticket_repository: ITicketRepository,
        scorer: PriorityScorer,
        notification_sink: Optional[INotificationSink] = None
    ):
        self._ticket_repo = ticket_repository
        self._scorer = scorer
        self._sink = notification_sink

    async def calculate(self, ticket_id: str, now: Optional[datetime] = None) -> PriorityScore:
        """
        Score a ticket without changing it.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
        """
        ticket = await self._ticket_repo.load_by_id(ticket_id)
        return await self._score(ticket, ensure_aware(now or datetime.now(timezone.utc)))

    async def update_priority(
        self,
        ticket_id: str,
        force: bool = False,
        now: Optional[datetime] = None
    ) -> PriorityUpdateResult:
        """
        Apply the suggested priority to a ticket.

        Args:
            ticket_id: Ticket UUID
            force: Rewrite the priority and audit even if the suggestion matches
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            PriorityUpdateResult; terminal tickets and unchanged suggestions
            are reported with ``updated=False`` and a reason

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            ConflictingState: If the ticket changed concurrently
        """
        now = ensure_aware(now or datetime.now(timezone.utc))
        ticket = await self._ticket_repo.load_by_id(ticket_id)

        if ticket.is_terminal:
            return PriorityUpdateResult(
                ticket_id=ticket.id,
                updated=False,
                score=0.0,
                suggested_priority=ticket.priority,
                current_priority=ticket.priority,
                reason=REASON_TERMINAL,
            )

        result = await self._score(ticket, now)

        if not force and ticket.priority == result.suggested_priority:
            return PriorityUpdateResult(
                ticket_id=ticket.id,
                updated=False,
                score=result.score,
                suggested_priority=result.suggested_priority,
                current_priority=ticket.priority,
                reason=REASON_UNCHANGED,
                factors=result.factors,
            )

        previous = ticket.priority
        ticket.priority = result.suggested_priority
        ticket.priority_audit = PriorityAudit(
            score=result.score,
            factors=dict(result.factors),
            previous_priority=previous,
            updated_at=now,
        )
        ticket.updated_at = now
        ticket = await self._ticket_repo.save(ticket)

        logger.info(
            "Ticket priority updated",
            extra={
                "ticket_id": ticket.id,
                "from_priority": previous.value,
                "to_priority": ticket.priority.value,
                "score": result.score,
            }
        )

        if previous != ticket.priority:
            await notify_safely(
                self._sink,
                NotificationEvent(
                    kind=NotificationKind.PRIORITY_CHANGED,
                    ticket_id=ticket.id,
                    details={
                        "title": ticket.title,
                        "previous_priority": previous.value,
                        "priority": ticket.priority.value,
                        "score": result.score,
                        "factors": dict(result.factors),
                    },
                )
            )

        return PriorityUpdateResult(
            ticket_id=ticket.id,
            updated=True,
            score=result.score,
            suggested_priority=result.suggested_priority,
            current_priority=ticket.priority,
            previous_priority=previous,
            factors=result.factors,
        )

    async def update_all(self, now: Optional[datetime] = None) -> PriorityBatchResult:
        """
        Re-prioritize every open or in-progress ticket.

        Per-ticket failures are logged and counted; they do not stop the sweep.
        """
        now = ensure_aware(now or datetime.now(timezone.utc))
        batch = PriorityBatchResult()

        with log_latency(logger, "priority_sweep"):
            tickets = await self._ticket_repo.find_by_status(ACTIVE_STATUSES)
            batch.total = len(tickets)

            for ticket in tickets:
                try:
                    result = await self.update_priority(ticket.id, force=False, now=now)
                except Exception as e:
                    batch.errors += 1
                    batch.error_details.append({"ticket_id": ticket.id, "error": str(e)})
                    logger.error(
                        "Priority update failed",
                        extra={"ticket_id": ticket.id, "error": str(e)}
                    )
                    continue

                if result.updated:
                    batch.updated += 1
                else:
                    batch.skipped += 1

        logger.info(
            "Priority sweep finished",
            extra={
                "total": batch.total,
                "updated": batch.updated,
                "skipped": batch.skipped,
                "errors": batch.errors,
            }
        )
        return batch

    async def _score(self, ticket: Ticket, now: datetime) -> PriorityScore:
        since = now - timedelta(days=self._scorer.config.user_history_days)
        recent = await self._ticket_repo.find_by_creator_since(ticket.created_by, since)
        return self._scorer.score(ticket, recent_tickets=recent, now=now)
