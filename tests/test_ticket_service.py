"""
Tests for TicketService (create and change status) against the in-memory repository.
"""
import pytest
from datetime import datetime, timezone

from helpdesk.config import NotificationKind, Priority, SLAStatus, TicketCategory, TicketStatus
from helpdesk.core.exceptions import (
    ConflictingState,
    InvalidTransition,
    MissingActor,
    ResourceNotFoundException,
)
from helpdesk.tickets.application.dto import TicketCreateRequest
from helpdesk.tickets.application.services import TicketService

UTC = timezone.utc


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute, tzinfo=UTC)


@pytest.fixture
def create_request() -> TicketCreateRequest:
    return TicketCreateRequest(
        title="VPN drops every hour",
        description="Reconnect needed",
        category=TicketCategory.NETWORK,
        priority=Priority.HIGH,
    )


class TestCreateTicket:
    """Ticket creation."""

    @pytest.mark.unit
    async def test_create_provisions_sla(self, ticket_service, repo, create_request):
        ticket = await ticket_service.create_ticket(create_request, "user-1", now=at(8, 9))

        assert ticket.status == TicketStatus.OPEN
        assert ticket.created_by == "user-1"
        assert ticket.sla.hours == 8.0
        assert ticket.sla.status == SLAStatus.NOT_STARTED
        assert ticket.sla.deadline is None
        assert len(ticket.status_history) == 1
        assert ticket.status_history[0].changed_by == "user-1"
        assert ticket.id in repo.tickets

    @pytest.mark.unit
    async def test_create_uses_matrix(self, ticket_service):
        request = TicketCreateRequest(title="Grant repo access", category=TicketCategory.ACCESS, priority=Priority.URGENT)
        ticket = await ticket_service.create_ticket(request, "user-1", now=at(8, 9))
        assert ticket.sla.hours == 1.0

    @pytest.mark.unit
    async def test_create_defaults(self, ticket_service):
        ticket = await ticket_service.create_ticket(TicketCreateRequest(title="Something"), "user-1")
        assert ticket.category == TicketCategory.OTHER
        assert ticket.priority == Priority.MEDIUM
        assert ticket.sla.hours == 48.0

    @pytest.mark.unit
    @pytest.mark.parametrize("actor", [None, "", "   "])
    async def test_create_requires_actor(self, ticket_service, repo, create_request, actor):
        with pytest.raises(MissingActor):
            await ticket_service.create_ticket(create_request, actor)
        assert repo.tickets == {}

    @pytest.mark.unit
    def test_blank_title_rejected(self):
        with pytest.raises(ValueError):
            TicketCreateRequest(title="   ")


class TestChangeStatus:
    """Status changes through the service."""

    @pytest.mark.unit
    async def test_start_work_persists_and_notifies(self, ticket_service, repo, sink, create_request):
        ticket = await ticket_service.create_ticket(create_request, "user-1", now=at(8, 9))

        updated = await ticket_service.change_status(
            ticket.id, TicketStatus.IN_PROGRESS, "agent-1", comment="looking", now=at(8, 10)
        )

        stored = repo.stored(ticket.id)
        assert stored.status == TicketStatus.IN_PROGRESS
        assert stored.sla.deadline == at(8, 18)
        assert stored.version == 1
        assert updated.version == 1
        assert sink.kinds() == [NotificationKind.STATUS_CHANGED.value, NotificationKind.SLA_STARTED.value]
        assert sink.events[0].details["to"] == "in_progress"

    @pytest.mark.unit
    async def test_same_status_is_not_saved(self, ticket_service, repo, sink, create_request):
        ticket = await ticket_service.create_ticket(create_request, "user-1", now=at(8, 9))

        await ticket_service.change_status(ticket.id, TicketStatus.OPEN, "agent-1")

        assert repo.save_calls == 0
        assert sink.events == []

    @pytest.mark.unit
    async def test_invalid_transition(self, ticket_service, repo, create_request):
        ticket = await ticket_service.create_ticket(create_request, "user-1", now=at(8, 9))

        with pytest.raises(InvalidTransition):
            await ticket_service.change_status(ticket.id, TicketStatus.RESOLVED, "agent-1")
        assert repo.stored(ticket.id).status == TicketStatus.OPEN

    @pytest.mark.unit
    async def test_missing_actor(self, ticket_service, repo, create_request):
        ticket = await ticket_service.create_ticket(create_request, "user-1", now=at(8, 9))

        with pytest.raises(MissingActor):
            await ticket_service.change_status(ticket.id, TicketStatus.IN_PROGRESS, None)
        assert repo.save_calls == 0

    @pytest.mark.unit
    async def test_unknown_ticket(self, ticket_service):
        with pytest.raises(ResourceNotFoundException):
            await ticket_service.change_status("missing", TicketStatus.IN_PROGRESS, "agent-1")

    @pytest.mark.unit
    async def test_concurrent_change_conflicts(self, ticket_service, repo, create_request):
        ticket = await ticket_service.create_ticket(create_request, "user-1", now=at(8, 9))
        load = repo.load_by_id

        async def load_then_concurrent_write(ticket_id):
            loaded = await load(ticket_id)
            repo.tickets[ticket_id].version += 1
            return loaded

        repo.load_by_id = load_then_concurrent_write

        with pytest.raises(ConflictingState):
            await ticket_service.change_status(ticket.id, TicketStatus.IN_PROGRESS, "agent-1", now=at(8, 10))
        assert repo.stored(ticket.id).status == TicketStatus.OPEN

    @pytest.mark.unit
    async def test_sink_failure_does_not_fail_change(
        self, repo, state_machine, sla_matrix, actor_resolver, failing_sink, create_request
    ):
        service = TicketService(repo, state_machine, sla_matrix, actor_resolver, failing_sink)
        ticket = await service.create_ticket(create_request, "user-1", now=at(8, 9))

        updated = await service.change_status(ticket.id, TicketStatus.IN_PROGRESS, "agent-1", now=at(8, 10))

        assert updated.status == TicketStatus.IN_PROGRESS
        assert repo.stored(ticket.id).status == TicketStatus.IN_PROGRESS

    @pytest.mark.unit
    async def test_full_lifecycle(self, ticket_service, repo, create_request):
        ticket = await ticket_service.create_ticket(create_request, "user-1", now=at(8, 9))
        for status, hour in (
            (TicketStatus.IN_PROGRESS, 10),
            (TicketStatus.RESOLVED, 12),
            (TicketStatus.CLOSED, 13),
        ):
            await ticket_service.change_status(ticket.id, status, "agent-1", now=at(8, hour))

        stored = repo.stored(ticket.id)
        assert [e.status for e in stored.status_history] == [
            TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED
        ]
        assert stored.metrics.response_time == 1.0
        assert stored.metrics.resolution_time == 3.0
        assert stored.closed_at == at(8, 13)
        assert stored.version == 3
