"""
SLA Clock
=========

Deadline, pause/resume and compliance classification for a ticket's SLA.

The clock is a stateless domain service: it reads and mutates the
``SLARecord`` handed to it and never stores per-ticket state itself.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from helpdesk.config import SLAStatus
from helpdesk.core.exceptions import PreconditionFailed
from helpdesk.sla.domain.calendar import ZERO, BusinessCalendar, ensure_aware, to_hours
from helpdesk.sla.domain.entities import PauseRecord, SLARecord
from helpdesk.sla.domain.value_objects import SLAEvaluation


DEFAULT_AT_RISK_RATIO = 0.2


def _round_to_second(instant: datetime) -> datetime:
    return (instant + timedelta(microseconds=500_000)).replace(microsecond=0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SLAClock:
    """
    SLA clock operating in business-hours or wall-clock mode.

    Args:
        calendar: Business calendar used in business-hours mode
        use_business_hours: Default mode for deadline and remaining-time math
        at_risk_ratio: Fraction of the budget below which a clock is at risk
    """

    def __init__(
        self,
        calendar: BusinessCalendar,
        use_business_hours: bool = True,
        at_risk_ratio: float = DEFAULT_AT_RISK_RATIO
    ):
        self.calendar = calendar
        self.use_business_hours = use_business_hours
        self.at_risk_ratio = at_risk_ratio

    # ========== Time arithmetic ==========

    def calculate_deadline(
        self,
        start: datetime,
        hours: float,
        use_business_hours: Optional[bool] = None
    ) -> datetime:
        """
        Calculate the deadline for a budget starting at ``start``.

        Args:
            start: Clock start
            hours: Budget in hours
            use_business_hours: Override the clock's default mode

        Returns:
            Deadline in UTC, rounded to the nearest second
        """
        if use_business_hours is None:
            use_business_hours = self.use_business_hours

        amount = timedelta(hours=max(hours, 0.0))
        if use_business_hours:
            deadline = self.calendar.add_working_time(start, amount)
        else:
            deadline = ensure_aware(start).astimezone(timezone.utc) + amount
        return _round_to_second(deadline.astimezone(timezone.utc))

    def calculate_remaining_hours(
        self,
        start: Optional[datetime],
        deadline: datetime,
        now: Optional[datetime] = None
    ) -> float:
        """
        Hours left until ``deadline``, rounded to 2 decimals (0 once it has passed).

        ``start`` is accepted so callers can pass the full (start, deadline)
        pair; the result depends only on ``deadline`` and ``now``.
        """
        return round(to_hours(self._remaining(deadline, now or _utcnow())), 2)

    def elapsed_hours(self, start: datetime, end: datetime) -> float:
        """Hours between two instants in the clock's mode, rounded to 2 decimals."""
        if self.use_business_hours:
            return self.calendar.working_hours_between(start, end)
        delta = ensure_aware(end) - ensure_aware(start)
        return round(max(to_hours(delta), 0.0), 2)

    def classify(self, remaining: Optional[float], total: float, paused: bool = False) -> SLAStatus:
        """
        Map remaining budget to an SLA status.

        Args:
            remaining: Remaining hours (None counts as exhausted)
            total: Full budget in hours
            paused: Whether the clock is paused

        Returns:
            SLAStatus for the given figures
        """
        if paused:
            return SLAStatus.PAUSED
        if remaining is None or remaining <= 0:
            return SLAStatus.BREACHED
        if remaining <= self.at_risk_ratio * total:
            return SLAStatus.AT_RISK
        return SLAStatus.ON_TIME

    # ========== Lifecycle ==========

    def start(self, sla: SLARecord, now: Optional[datetime] = None) -> SLARecord:
        """
        Start the clock.

        Raises:
            PreconditionFailed: If the clock was already started
        """
        if sla.is_started:
            raise PreconditionFailed("SLA clock has already been started")

        now = ensure_aware(now or _utcnow())
        sla.start_time = now
        sla.deadline = self.calculate_deadline(now, sla.hours)
        remaining = to_hours(self._remaining(sla.deadline, now))
        sla.status = self.classify(remaining, sla.hours)
        sla.remaining_hours = round(remaining, 2)
        sla.notified = False
        return sla

    def pause(
        self,
        sla: SLARecord,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> SLARecord:
        """
        Pause a running clock, freezing its remaining budget.

        The budget consumed so far is snapshotted as the original budget
        minus the time still left before the current deadline, which stays
        correct across several pause/resume cycles.

        Raises:
            PreconditionFailed: If the clock is not started or already paused
        """
        if not sla.is_started:
            raise PreconditionFailed("SLA clock has not been started")
        if sla.is_paused:
            raise PreconditionFailed("SLA clock is already paused")

        now = ensure_aware(now or _utcnow())
        remaining = to_hours(self._remaining(sla.deadline, now))

        sla.paused_at = now
        sla.pause_reason = reason
        sla.elapsed_hours_before_pause = max(sla.hours - remaining, 0.0)
        sla.remaining_hours = round(remaining, 2)
        sla.is_paused = True
        sla.status = SLAStatus.PAUSED
        return sla

    def resume(self, sla: SLARecord, now: Optional[datetime] = None) -> SLARecord:
        """
        Resume a paused clock with the unconsumed budget.

        Raises:
            PreconditionFailed: If the clock is not paused
        """
        if not sla.is_paused:
            raise PreconditionFailed("SLA clock is not paused")

        now = ensure_aware(now or _utcnow())
        paused_at = sla.paused_at or now
        elapsed = sla.elapsed_hours_before_pause or 0.0
        remaining = max(sla.hours - elapsed, 0.0)

        sla.deadline = self.calculate_deadline(now, remaining)
        sla.pause_history.append(
            PauseRecord(
                paused_at=paused_at,
                resumed_at=now,
                duration=round(max(to_hours(now - paused_at), 0.0), 2),
                reason=sla.pause_reason,
            )
        )
        sla.is_paused = False
        sla.paused_at = None
        sla.pause_reason = None
        sla.elapsed_hours_before_pause = None
        sla.status = self.classify(remaining, sla.hours)
        sla.remaining_hours = round(remaining, 2)
        sla.notified = False
        return sla

    # ========== Evaluation ==========

    def update_status(self, sla: SLARecord, now: Optional[datetime] = None) -> SLAEvaluation:
        """
        Evaluate the clock without mutating it.

        Not-started and paused clocks report their stored figures. A
        breached clock stays breached until the next resume.
        """
        if not sla.is_started or sla.is_paused or sla.deadline is None:
            return SLAEvaluation(status=sla.status, remaining_hours=sla.remaining_hours)
        if sla.status == SLAStatus.BREACHED:
            return SLAEvaluation(status=SLAStatus.BREACHED, remaining_hours=0.0)

        remaining = to_hours(self._remaining(sla.deadline, ensure_aware(now or _utcnow())))
        return SLAEvaluation(
            status=self.classify(remaining, sla.hours),
            remaining_hours=round(remaining, 2),
        )

    @staticmethod
    def apply(sla: SLARecord, evaluation: SLAEvaluation) -> SLARecord:
        """Write an evaluation back onto the record."""
        sla.status = evaluation.status
        sla.remaining_hours = evaluation.remaining_hours
        return sla

    def _remaining(self, deadline: datetime, now: datetime) -> timedelta:
        if ensure_aware(now) >= ensure_aware(deadline):
            return ZERO
        if self.use_business_hours:
            return self.calendar.working_time_between(now, deadline)
        return ensure_aware(deadline) - ensure_aware(now)
