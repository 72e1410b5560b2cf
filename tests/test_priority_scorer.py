"""
Tests for the priority scorer.

Factors: waiting time (0.30), SLA status (0.25), reopens (0.15),
keywords (0.15), requester history (0.15).
"""
import pytest
from datetime import datetime, timedelta, timezone

from freezegun import freeze_time
from pydantic import ValidationError

from helpdesk.config import Priority, SLAStatus, TicketStatus
from helpdesk.priority.domain.scorer import PriorityScorer
from helpdesk.priority.domain.value_objects import PriorityConfig, PriorityWeights
from helpdesk.sla.domain.entities import SLARecord

UTC = timezone.utc
NOW = datetime(2024, 1, 8, 12, 0, tzinfo=UTC)


class TestFactors:
    """Individual sub-scores."""

    @pytest.mark.unit
    @pytest.mark.parametrize("hours,expected", [
        (0.5, 10), (2, 30), (5, 50), (10, 70), (30, 85), (50, 100),
    ])
    def test_waiting_time(self, hours, expected):
        created = NOW - timedelta(hours=hours)
        assert PriorityScorer.waiting_time_score(created, NOW) == expected

    @pytest.mark.unit
    def test_sla_score_without_record(self):
        assert PriorityScorer.sla_score(None) == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("status,remaining,expected", [
        (SLAStatus.BREACHED, 0.0, 100),
        (SLAStatus.AT_RISK, 1.0, 80),
        (SLAStatus.ON_TIME, 1.0, 60),
        (SLAStatus.ON_TIME, 3.0, 40),
        (SLAStatus.ON_TIME, 8.0, 20),
        (SLAStatus.NOT_STARTED, None, 0),
        (SLAStatus.PAUSED, 2.0, 0),
    ])
    def test_sla_score(self, status, remaining, expected):
        sla = SLARecord(hours=8, status=status, remaining_hours=remaining)
        assert PriorityScorer.sla_score(sla) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("count,expected", [(0, 0), (1, 30), (3, 90), (4, 100), (10, 100)])
    def test_reopen_score(self, count, expected):
        assert PriorityScorer.reopen_score(count) == expected

    @pytest.mark.unit
    def test_critical_keyword(self, scorer):
        assert scorer.keywords_score("Laptop BROKEN", "") == 100

    @pytest.mark.unit
    def test_critical_keyword_ukrainian(self, scorer):
        assert scorer.keywords_score("Не працює принтер", None) == 100

    @pytest.mark.unit
    def test_urgent_keyword_in_description(self, scorer):
        assert scorer.keywords_score("Projector", "Needed for the Director's meeting") == 70

    @pytest.mark.unit
    def test_critical_beats_urgent(self, scorer):
        assert scorer.keywords_score("Client data loss", "") == 100

    @pytest.mark.unit
    def test_no_keywords(self, scorer):
        assert scorer.keywords_score("Monitor flickers", "Second screen goes dark now and then") == 0

    @pytest.mark.unit
    def test_custom_keywords_are_case_insensitive(self):
        scorer = PriorityScorer(PriorityConfig(critical_keywords=("  Payroll ",), urgent_keywords=()))
        assert scorer.config.critical_keywords == ("payroll",)
        assert scorer.keywords_score("PAYROLL export stuck", "") == 100
        assert scorer.keywords_score("broken chair", "") == 0

    @pytest.mark.unit
    def test_user_history(self, make_ticket):
        first = make_ticket()
        second = make_ticket()
        closed = make_ticket(status=TicketStatus.CLOSED)
        many = [make_ticket() for _ in range(4)]

        assert PriorityScorer.user_history_score([]) == 0
        assert PriorityScorer.user_history_score([first]) == 30
        assert PriorityScorer.user_history_score([first, closed]) == 0
        assert PriorityScorer.user_history_score([first, second]) == -10
        assert PriorityScorer.user_history_score(many) == -20


class TestScore:
    """Weighted combination."""

    @pytest.mark.unit
    def test_brand_new_ticket_is_low(self, scorer, make_ticket):
        """Fresh ticket, no SLA clock, no keywords, requester's first ticket."""
        ticket = make_ticket(created_at=NOW)

        result = scorer.score(ticket, recent_tickets=[ticket], now=NOW)

        assert result.score == 7.5
        assert result.suggested_priority == Priority.LOW
        assert result.factors == {
            "waiting_time": 10,
            "sla_status": 0,
            "reopen_count": 0,
            "keywords": 0,
            "user_history": 30,
        }

    @pytest.mark.unit
    def test_worst_case_is_urgent(self, scorer, make_ticket):
        ticket = make_ticket(
            created_at=NOW - timedelta(hours=50),
            title="Server outage",
            sla=SLARecord(hours=8, status=SLAStatus.BREACHED, remaining_hours=0.0),
        )
        ticket.metrics.reopen_count = 4

        result = scorer.score(ticket, recent_tickets=[ticket], now=NOW)

        assert result.score == 89.5
        assert result.suggested_priority == Priority.URGENT

    @pytest.mark.unit
    def test_score_clamped_at_zero(self, make_ticket):
        weights = PriorityWeights(
            waiting_time=0.0, sla_status=0.25, reopen_count=0.25, keywords=0.25, user_history=0.25
        )
        scorer = PriorityScorer(PriorityConfig(weights=weights))
        crowd = [make_ticket() for _ in range(5)]

        result = scorer.score(crowd[0], recent_tickets=crowd, now=NOW)

        assert result.score == 0.0
        assert result.suggested_priority == Priority.LOW

    @pytest.mark.unit
    @freeze_time("2024-01-08 12:00:00")
    def test_defaults_to_current_time(self, scorer, make_ticket):
        ticket = make_ticket(created_at=NOW - timedelta(hours=5))
        assert scorer.score(ticket).factors["waiting_time"] == 50

    @pytest.mark.unit
    @pytest.mark.parametrize("score,expected", [
        (100, Priority.URGENT),
        (80, Priority.URGENT),
        (79.99, Priority.HIGH),
        (60, Priority.HIGH),
        (59.99, Priority.MEDIUM),
        (30, Priority.MEDIUM),
        (29.99, Priority.LOW),
        (0, Priority.LOW),
    ])
    def test_priority_bands(self, score, expected):
        assert PriorityScorer.priority_for(score) == expected


class TestConfig:
    """Scorer configuration validation."""

    @pytest.mark.unit
    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError):
            PriorityWeights(waiting_time=0.5)

    @pytest.mark.unit
    def test_default_weights(self):
        weights = PriorityWeights()
        assert weights.waiting_time == 0.30
        assert weights.user_history == 0.15
