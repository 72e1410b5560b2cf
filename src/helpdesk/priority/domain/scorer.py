"""
Priority Scorer
===============

Derives a 0-100 priority score from five weighted factors:

- waiting time since creation
- SLA status (and how much of the budget is left)
- number of reopens
- critical/urgent keywords in the title and description
- the requester's recent ticket history

The scorer is pure: the caller supplies the requester's recent tickets
and the evaluation time.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence

from helpdesk.config import Priority, SLAStatus, TicketStatus
from helpdesk.priority.domain.value_objects import PriorityConfig, PriorityScore
from helpdesk.sla.domain.calendar import ensure_aware
from helpdesk.sla.domain.entities import SLARecord
from helpdesk.tickets.domain.entities import Ticket


# (upper bound in hours, score); the last bucket is open-ended
_WAITING_BUCKETS = ((1, 10), (4, 30), (8, 50), (24, 70), (48, 85))
_WAITING_MAX = 100


class PriorityScorer:
    """
    Weighted priority scoring.

    Example:
        scorer = PriorityScorer(PriorityConfig())
        result = scorer.score(ticket, recent_tickets=[ticket], now=now)
        result.suggested_priority  # Priority.LOW
    """

    def __init__(self, config: Optional[PriorityConfig] = None):
        self.config = config or PriorityConfig()

    # ========== Factors ==========

    @staticmethod
    def waiting_time_score(created_at: datetime, now: datetime) -> float:
        """Score the wall-clock hours a ticket has been waiting."""
        hours = (ensure_aware(now) - ensure_aware(created_at)).total_seconds() / 3600
        for upper, score in _WAITING_BUCKETS:
            if hours < upper:
                return score
        return _WAITING_MAX

    @staticmethod
    def sla_score(sla: Optional[SLARecord]) -> float:
        """Score the SLA state; running clocks score higher as the budget shrinks."""
        if sla is None:
            return 0
        if sla.status == SLAStatus.BREACHED:
            return 100
        if sla.status == SLAStatus.AT_RISK:
            return 80
        if sla.status == SLAStatus.ON_TIME:
            if sla.remaining_hours and sla.hours:
                percent_left = sla.remaining_hours / sla.hours * 100
                if percent_left < 20:
                    return 60
                if percent_left < 50:
                    return 40
            return 20
        return 0

    @staticmethod
    def reopen_score(reopen_count: int) -> float:
        """30 points per reopen, capped at 100."""
        return min(max(reopen_count, 0) * 30, 100)

    def keywords_score(self, title: str, description: Optional[str]) -> float:
        """100 for a critical keyword, 70 for an urgent one, else 0."""
        text = f"{title} {description or ''}".lower()
        if any(keyword in text for keyword in self.config.critical_keywords):
            return 100
        if any(keyword in text for keyword in self.config.urgent_keywords):
            return 70
        return 0

    @staticmethod
    def user_history_score(recent_tickets: Sequence[Ticket]) -> float:
        """
        Score the requester's recent tickets (the scored ticket included).

        Requesters with several open tickets are deprioritized; a first
        ever ticket gets a boost.
        """
        if not recent_tickets:
            return 0
        open_count = sum(
            1 for t in recent_tickets
            if t.status in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)
        )
        if open_count > 3:
            return -20
        if open_count > 1:
            return -10
        if len(recent_tickets) == 1:
            return 30
        return 0

    # ========== Combination ==========

    @staticmethod
    def priority_for(score: float) -> Priority:
        """Map a score to a priority level."""
        if score >= 80:
            return Priority.URGENT
        if score >= 60:
            return Priority.HIGH
        if score >= 30:
            return Priority.MEDIUM
        return Priority.LOW

    def score(
        self,
        ticket: Ticket,
        recent_tickets: Sequence[Ticket] = (),
        now: Optional[datetime] = None
    ) -> PriorityScore:
        """
        Calculate the priority score of a ticket.

        Args:
            ticket: Ticket to score
            recent_tickets: The creator's tickets inside the history window
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            PriorityScore with the clamped total, suggestion and factors
        """
        now = now or datetime.now(timezone.utc)
        weights = self.config.weights

        factors = {
            "waiting_time": self.waiting_time_score(ticket.created_at, now),
            "sla_status": self.sla_score(ticket.sla),
            "reopen_count": self.reopen_score(ticket.metrics.reopen_count),
            "keywords": self.keywords_score(ticket.title, ticket.description),
            "user_history": self.user_history_score(recent_tickets),
        }

        total = (
            factors["waiting_time"] * weights.waiting_time
            + factors["sla_status"] * weights.sla_status
            + factors["reopen_count"] * weights.reopen_count
            + factors["keywords"] * weights.keywords
            + factors["user_history"] * weights.user_history
        )
        total = round(min(max(total, 0.0), 100.0), 2)

        return PriorityScore(
            score=total,
            suggested_priority=self.priority_for(total),
            factors=factors,
        )
