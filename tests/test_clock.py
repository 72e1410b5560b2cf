"""
Tests for the SLA clock.

All tests use a Mon-Fri 09:00-18:00 UTC calendar; 2024-01-08 is a Monday.
"""
import pytest
from datetime import datetime, timezone

from freezegun import freeze_time

from helpdesk.config import SLAStatus
from helpdesk.core.exceptions import PreconditionFailed
from helpdesk.sla.domain.calendar import BusinessCalendar
from helpdesk.sla.domain.clock import SLAClock
from helpdesk.sla.domain.entities import SLARecord
from helpdesk.sla.domain.value_objects import BusinessHoursConfig

UTC = timezone.utc


def at(day: int, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute, second, tzinfo=UTC)


@pytest.fixture
def running(clock) -> SLARecord:
    """8h budget started Monday 09:00, deadline Monday 17:00."""
    return clock.start(SLARecord(hours=8), at(8, 9))


class TestDeadline:
    """Deadline calculation."""

    @pytest.mark.unit
    def test_business_hours_deadline(self, clock):
        assert clock.calculate_deadline(at(8, 9, 30), 8) == at(8, 17, 30)

    @pytest.mark.unit
    def test_wall_clock_deadline(self, calendar):
        clock = SLAClock(calendar, use_business_hours=False)
        assert clock.calculate_deadline(at(12, 17), 2) == at(12, 19)

    @pytest.mark.unit
    def test_mode_override(self, clock):
        """The per-call flag wins over the clock default."""
        assert clock.calculate_deadline(at(12, 17), 2, use_business_hours=False) == at(12, 19)

    @pytest.mark.unit
    def test_deadline_rounded_to_second(self, clock):
        start = at(8, 9).replace(microsecond=600000)
        assert clock.calculate_deadline(start, 1) == at(8, 10, 0, 1)

    @pytest.mark.unit
    def test_deadline_is_utc(self):
        clock = SLAClock(BusinessCalendar(BusinessHoursConfig(timezone="Europe/Kyiv")))
        deadline = clock.calculate_deadline(at(8, 7, 30), 8)
        assert deadline.utcoffset().total_seconds() == 0
        assert deadline == at(8, 15, 30)

    @pytest.mark.unit
    def test_remaining_hours(self, clock):
        assert clock.calculate_remaining_hours(at(8, 9), at(8, 17), at(8, 13, 30)) == 3.5
        assert clock.calculate_remaining_hours(at(8, 9), at(8, 17), at(8, 18)) == 0.0

    @pytest.mark.unit
    def test_remaining_hours_ignores_start(self, clock):
        expected = clock.calculate_remaining_hours(at(8, 9), at(8, 17), at(8, 13, 30))
        assert clock.calculate_remaining_hours(None, at(8, 17), at(8, 13, 30)) == expected
        assert clock.calculate_remaining_hours(at(8, 12), at(8, 17), at(8, 13, 30)) == expected


class TestClassify:
    """Mapping remaining budget to a status."""

    @pytest.mark.unit
    @pytest.mark.parametrize("remaining,expected", [
        (8.0, SLAStatus.ON_TIME),
        (1.61, SLAStatus.ON_TIME),
        (1.6, SLAStatus.AT_RISK),
        (0.01, SLAStatus.AT_RISK),
        (0.0, SLAStatus.BREACHED),
        (None, SLAStatus.BREACHED),
    ])
    def test_thresholds(self, clock, remaining, expected):
        assert clock.classify(remaining, 8) == expected

    @pytest.mark.unit
    def test_paused_wins(self, clock):
        assert clock.classify(0.0, 8, paused=True) == SLAStatus.PAUSED

    @pytest.mark.unit
    def test_custom_ratio(self, calendar):
        clock = SLAClock(calendar, at_risk_ratio=0.5)
        assert clock.classify(4.0, 8) == SLAStatus.AT_RISK


class TestStart:
    """Starting the clock."""

    @pytest.mark.unit
    def test_start_sets_deadline(self, running):
        assert running.start_time == at(8, 9)
        assert running.deadline == at(8, 17)
        assert running.status == SLAStatus.ON_TIME
        assert running.remaining_hours == 8.0
        assert running.notified is False

    @pytest.mark.unit
    def test_start_twice_rejected(self, clock, running):
        with pytest.raises(PreconditionFailed):
            clock.start(running, at(8, 10))

    @pytest.mark.unit
    def test_start_outside_hours(self, clock):
        """A clock started on Saturday counts from Monday morning."""
        sla = clock.start(SLARecord(hours=2), datetime(2024, 1, 13, 12, 0, tzinfo=UTC))
        assert sla.deadline == at(15, 11)

    @pytest.mark.unit
    @freeze_time("2024-01-08 10:00:00")
    def test_start_defaults_to_now(self, clock):
        sla = clock.start(SLARecord(hours=1))
        assert sla.start_time == at(8, 10)
        assert sla.deadline == at(8, 11)


class TestPauseResume:
    """Pausing and resuming."""

    @pytest.mark.unit
    def test_pause_snapshots_budget(self, clock, running):
        """Paused at 15:00: six hours used, two left."""
        clock.pause(running, reason="waiting for user", now=at(8, 15))

        assert running.is_paused is True
        assert running.status == SLAStatus.PAUSED
        assert running.paused_at == at(8, 15)
        assert running.pause_reason == "waiting for user"
        assert running.elapsed_hours_before_pause == pytest.approx(6.0)
        assert running.remaining_hours == 2.0

    @pytest.mark.unit
    def test_resume_recomputes_deadline(self, clock, running):
        """Resumed Wednesday 10:00 with two hours left: deadline Wednesday 12:00."""
        clock.pause(running, reason="waiting for user", now=at(8, 15))
        clock.resume(running, now=at(10, 10))

        assert running.is_paused is False
        assert running.deadline == at(10, 12)
        assert running.remaining_hours == 2.0
        assert running.status == SLAStatus.ON_TIME
        assert running.paused_at is None
        assert running.pause_reason is None
        assert running.elapsed_hours_before_pause is None

        assert len(running.pause_history) == 1
        record = running.pause_history[0]
        assert record.paused_at == at(8, 15)
        assert record.resumed_at == at(10, 10)
        assert record.duration == 43.0
        assert record.reason == "waiting for user"

    @pytest.mark.unit
    def test_zero_length_pause_keeps_deadline(self, clock, running):
        """Pause and resume at the same instant leave the deadline untouched."""
        instant = at(8, 11, 17, 23)
        clock.pause(running, now=instant)
        clock.resume(running, now=instant)

        assert running.deadline == at(8, 17)
        assert running.pause_history[0].duration == 0.0

    @pytest.mark.unit
    def test_repeated_zero_length_pauses(self, clock, running):
        for minute in (5, 17, 41):
            instant = at(8, 12, minute, 13)
            clock.pause(running, now=instant)
            clock.resume(running, now=instant)
        assert running.deadline == at(8, 17)

    @pytest.mark.unit
    def test_several_cycles(self, clock, running):
        """Budget consumed across cycles is carried correctly."""
        clock.pause(running, now=at(8, 10))
        clock.resume(running, now=at(8, 12))
        # 7h left from Monday 12:00: 6h Monday, 1h Tuesday
        assert running.deadline == at(9, 10)

        clock.pause(running, now=at(9, 9, 30))
        assert running.remaining_hours == 0.5
        clock.resume(running, now=at(9, 11))

        assert running.deadline == at(9, 11, 30)
        assert running.total_paused_hours == 3.5
        assert len(running.pause_history) == 2

    @pytest.mark.unit
    def test_resume_clears_notified(self, clock, running):
        running.notified = True
        clock.pause(running, now=at(8, 15))
        clock.resume(running, now=at(8, 16))
        assert running.notified is False

    @pytest.mark.unit
    def test_pause_not_started_rejected(self, clock):
        with pytest.raises(PreconditionFailed):
            clock.pause(SLARecord(hours=8), now=at(8, 9))

    @pytest.mark.unit
    def test_pause_twice_rejected(self, clock, running):
        clock.pause(running, now=at(8, 10))
        with pytest.raises(PreconditionFailed):
            clock.pause(running, now=at(8, 11))

    @pytest.mark.unit
    def test_resume_running_rejected(self, clock, running):
        with pytest.raises(PreconditionFailed):
            clock.resume(running, now=at(8, 10))


class TestUpdateStatus:
    """Evaluation without mutation."""

    @pytest.mark.unit
    def test_on_time(self, clock, running):
        evaluation = clock.update_status(running, at(8, 10))
        assert evaluation.status == SLAStatus.ON_TIME
        assert evaluation.remaining_hours == 7.0

    @pytest.mark.unit
    def test_at_risk(self, clock, running):
        evaluation = clock.update_status(running, at(8, 16))
        assert evaluation.status == SLAStatus.AT_RISK
        assert evaluation.remaining_hours == 1.0

    @pytest.mark.unit
    def test_breached_at_deadline(self, clock, running):
        evaluation = clock.update_status(running, at(8, 17))
        assert evaluation.status == SLAStatus.BREACHED
        assert evaluation.remaining_hours == 0.0

    @pytest.mark.unit
    def test_does_not_mutate(self, clock, running):
        clock.update_status(running, at(8, 17))
        assert running.status == SLAStatus.ON_TIME
        assert running.remaining_hours == 8.0

    @pytest.mark.unit
    def test_remaining_ignores_non_working_time(self, clock, running):
        """Time outside the working window does not count down."""
        sla = clock.start(SLARecord(hours=4), at(8, 16))
        # Deadline Tuesday 11:00; Monday 20:00 has 2 working hours left
        evaluation = clock.update_status(sla, at(8, 20))
        assert evaluation.remaining_hours == 2.0

    @pytest.mark.unit
    def test_breach_is_sticky(self, clock, running):
        running.status = SLAStatus.BREACHED
        running.remaining_hours = 0.0
        evaluation = clock.update_status(running, at(8, 10))
        assert evaluation.status == SLAStatus.BREACHED

    @pytest.mark.unit
    def test_paused_reports_stored_figures(self, clock, running):
        clock.pause(running, now=at(8, 15))
        evaluation = clock.update_status(running, at(10, 9))
        assert evaluation.status == SLAStatus.PAUSED
        assert evaluation.remaining_hours == 2.0

    @pytest.mark.unit
    def test_not_started(self, clock):
        evaluation = clock.update_status(SLARecord(hours=8), at(8, 10))
        assert evaluation.status == SLAStatus.NOT_STARTED
        assert evaluation.remaining_hours is None

    @pytest.mark.unit
    def test_apply_writes_back(self, clock, running):
        clock.apply(running, clock.update_status(running, at(8, 16)))
        assert running.status == SLAStatus.AT_RISK
        assert running.remaining_hours == 1.0
