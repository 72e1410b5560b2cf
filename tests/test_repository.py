"""
Integration tests for the SQLAlchemy ticket repository on a SQLite file database.
"""
import pytest
from datetime import datetime, timedelta, timezone

from helpdesk.config import Priority, SLAStatus, TicketStatus
from helpdesk.core.exceptions import ConflictingState, ResourceNotFoundException
from helpdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from helpdesk.tickets.domain.entities import PriorityAudit
from helpdesk.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyUnitOfWork,
)

UTC = timezone.utc


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=UTC)


@pytest.fixture
async def database(tmp_path):
    """Fresh SQLite database per test."""
    init_database(f"sqlite+aiosqlite:///{tmp_path / 'tickets.db'}")
    await create_tables()
    yield
    await close_database()


async def add(*tickets):
    async with get_session_context() as session:
        repo = SQLAlchemyTicketRepository(session)
        for ticket in tickets:
            await repo.add(ticket)


class TestRoundTrip:
    """Mapping between the domain entity and the table."""

    @pytest.mark.integration
    async def test_full_ticket_round_trip(self, database, clock, make_ticket):
        ticket = make_ticket(status=TicketStatus.IN_PROGRESS, clock=clock, priority=Priority.HIGH)
        clock.pause(ticket.sla, reason="waiting for vendor", now=at(8, 12))
        clock.resume(ticket.sla, now=at(8, 14))
        ticket.metrics.reopen_count = 2
        ticket.priority_audit = PriorityAudit(
            score=42.5,
            factors={"waiting_time": 50},
            previous_priority=Priority.MEDIUM,
            updated_at=at(8, 14),
        )
        ticket.escalate(at(8, 18), reason="SLA of 8h breached (level 1)")
        await add(ticket)

        async with get_session_context() as session:
            loaded = await SQLAlchemyTicketRepository(session).load_by_id(ticket.id)

        assert loaded.status == TicketStatus.IN_PROGRESS
        assert loaded.priority == Priority.HIGH
        assert loaded.created_at == at(8, 9)
        assert loaded.created_at.tzinfo is not None
        assert loaded.first_response_at == at(8, 9)
        assert [e.status for e in loaded.status_history] == [TicketStatus.OPEN, TicketStatus.IN_PROGRESS]
        assert loaded.sla.deadline == ticket.sla.deadline
        assert loaded.sla.status == SLAStatus.ON_TIME
        assert loaded.sla.pause_history[0].reason == "waiting for vendor"
        assert loaded.sla.pause_history[0].duration == 2.0
        assert loaded.metrics.reopen_count == 2
        assert loaded.priority_audit.score == 42.5
        assert loaded.priority_audit.previous_priority == Priority.MEDIUM
        assert loaded.metrics.escalation_count == 1
        assert loaded.escalation_history[0].level == 1
        assert loaded.escalation_history[0].escalated_at == at(8, 18)
        assert loaded.version == 0

    @pytest.mark.integration
    async def test_missing_ticket(self, database):
        async with get_session_context() as session:
            with pytest.raises(ResourceNotFoundException):
                await SQLAlchemyTicketRepository(session).load_by_id("missing")


class TestOptimisticLocking:
    """Version-checked saves."""

    @pytest.mark.integration
    async def test_save_bumps_version(self, database, make_ticket):
        ticket = make_ticket()
        await add(ticket)

        async with get_session_context() as session:
            repo = SQLAlchemyTicketRepository(session)
            loaded = await repo.load_by_id(ticket.id)
            loaded.title = "Monitor flickers badly"
            saved = await repo.save(loaded)
            assert saved.version == 1

        async with get_session_context() as session:
            reloaded = await SQLAlchemyTicketRepository(session).load_by_id(ticket.id)
        assert reloaded.title == "Monitor flickers badly"
        assert reloaded.version == 1

    @pytest.mark.integration
    async def test_stale_write_conflicts(self, database, make_ticket):
        ticket = make_ticket()
        await add(ticket)

        async with get_session_context() as session:
            first = await SQLAlchemyTicketRepository(session).load_by_id(ticket.id)
        async with get_session_context() as session:
            second = await SQLAlchemyTicketRepository(session).load_by_id(ticket.id)

        async with get_session_context() as session:
            first.status = TicketStatus.CANCELLED
            await SQLAlchemyTicketRepository(session).save(first)

        with pytest.raises(ConflictingState):
            async with get_session_context() as session:
                second.title = "Lost update"
                await SQLAlchemyTicketRepository(session).save(second)

        async with get_session_context() as session:
            stored = await SQLAlchemyTicketRepository(session).load_by_id(ticket.id)
        assert stored.status == TicketStatus.CANCELLED
        assert stored.title == "Monitor flickers"


class TestQueries:
    """Finder methods."""

    @pytest.mark.integration
    async def test_find_active_sla(self, database, clock, make_ticket):
        later = make_ticket(status=TicketStatus.IN_PROGRESS, clock=clock, started_at=at(8, 11))
        sooner = make_ticket(status=TicketStatus.IN_PROGRESS, clock=clock, started_at=at(8, 10))
        paused = make_ticket(status=TicketStatus.IN_PROGRESS, clock=clock)
        clock.pause(paused.sla, now=at(8, 12))
        closed = make_ticket(status=TicketStatus.IN_PROGRESS, clock=clock)
        closed.status = TicketStatus.CLOSED
        await add(later, sooner, paused, closed, make_ticket())

        async with get_session_context() as session:
            active = await SQLAlchemyTicketRepository(session).find_active_sla()

        assert [t.id for t in active] == [sooner.id, later.id]

    @pytest.mark.integration
    async def test_find_by_status(self, database, make_ticket):
        newer = make_ticket(created_at=at(9, 9))
        older = make_ticket(created_at=at(8, 9))
        resolved = make_ticket(status=TicketStatus.RESOLVED)
        await add(newer, older, resolved)

        async with get_session_context() as session:
            found = await SQLAlchemyTicketRepository(session).find_by_status(
                [TicketStatus.OPEN, TicketStatus.IN_PROGRESS]
            )

        assert [t.id for t in found] == [older.id, newer.id]

    @pytest.mark.integration
    async def test_find_by_creator_since(self, database, make_ticket):
        now = at(20, 12)
        recent = make_ticket(created_at=now - timedelta(days=1))
        old = make_ticket(created_at=now - timedelta(days=40))
        other = make_ticket(created_at=now, created_by="user-2")
        await add(recent, old, other)

        async with get_session_context() as session:
            found = await SQLAlchemyTicketRepository(session).find_by_creator_since(
                "user-1", now - timedelta(days=30)
            )

        assert [t.id for t in found] == [recent.id]


class TestUnitOfWork:
    """Commit and rollback through the session."""

    @pytest.mark.integration
    async def test_rollback_discards_save(self, database, make_ticket):
        ticket = make_ticket()
        await add(ticket)

        async with get_session_context() as session:
            repo = SQLAlchemyTicketRepository(session)
            uow = SQLAlchemyUnitOfWork(session)
            loaded = await repo.load_by_id(ticket.id)
            loaded.title = "Discarded"
            await repo.save(loaded)
            await uow.rollback()

            loaded = await repo.load_by_id(ticket.id)
            loaded.title = "Kept"
            await repo.save(loaded)
            await uow.commit()

        async with get_session_context() as session:
            stored = await SQLAlchemyTicketRepository(session).load_by_id(ticket.id)
        assert stored.title == "Kept"
        assert stored.version == 1
