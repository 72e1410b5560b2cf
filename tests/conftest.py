"""
Pytest fixtures and configuration for the helpdesk engine tests.

Provides:
- In-memory ticket repository with optimistic locking
- Recording notification sink
- Calendar/clock/state machine built on a UTC calendar without holidays
- Service fixtures wired to the fakes
- Ticket factory
"""
import copy
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import pytest

from helpdesk.config import (
    ACTIVE_STATUSES,
    Priority,
    TicketCategory,
    TicketStatus,
)
from helpdesk.core.exceptions import (
    ConflictingState,
    NotificationException,
    RepositoryException,
    ResourceNotFoundException,
)
from helpdesk.priority.application.services import PriorityService
from helpdesk.priority.domain.scorer import PriorityScorer
from helpdesk.sla.application.services import SLAMonitorService, SLAService
from helpdesk.sla.domain.calendar import BusinessCalendar
from helpdesk.sla.domain.clock import SLAClock
from helpdesk.sla.domain.entities import SLARecord
from helpdesk.sla.domain.value_objects import BusinessHoursConfig, SLAMatrix
from helpdesk.tickets.application.services import (
    INotificationSink,
    ITicketRepository,
    NotificationEvent,
    TicketService,
)
from helpdesk.tickets.domain.entities import StatusHistoryEntry, Ticket
from helpdesk.tickets.domain.state_machine import TicketStateMachine
from helpdesk.tickets.infrastructure.external import HeaderActorResolver


# ==========================================
# FAKES
# ==========================================

class InMemoryTicketRepository(ITicketRepository):
    """
    Dict-backed ticket repository.

    Hands out deep copies so callers cannot mutate stored state without
    saving, and enforces the same version check as the SQL repository.
    """

    def __init__(self):
        self.tickets: Dict[str, Ticket] = {}
        self.save_calls = 0
        self.failing_ids: set = set()

    async def load_by_id(self, ticket_id: str) -> Ticket:
        if ticket_id not in self.tickets:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return copy.deepcopy(self.tickets[ticket_id])

    async def add(self, ticket: Ticket) -> Ticket:
        self.tickets[ticket.id] = copy.deepcopy(ticket)
        return ticket

    async def save(self, ticket: Ticket) -> Ticket:
        self.save_calls += 1
        if ticket.id in self.failing_ids:
            raise RepositoryException("Simulated write failure", {"ticket_id": ticket.id})
        stored = self.tickets.get(ticket.id)
        if stored is None:
            raise ResourceNotFoundException("Ticket", ticket.id)
        if stored.version != ticket.version:
            raise ConflictingState("Version mismatch", ticket_id=ticket.id)
        ticket.version += 1
        self.tickets[ticket.id] = copy.deepcopy(ticket)
        return ticket

    async def find_active_sla(self) -> List[Ticket]:
        active = [
            t for t in self.tickets.values()
            if t.sla is not None
            and t.sla.deadline is not None
            and not t.sla.is_paused
            and t.status in ACTIVE_STATUSES
        ]
        active.sort(key=lambda t: t.sla.deadline)
        return [copy.deepcopy(t) for t in active]

    async def find_by_status(self, statuses: Sequence[TicketStatus]) -> List[Ticket]:
        wanted = set(statuses)
        found = [t for t in self.tickets.values() if t.status in wanted]
        found.sort(key=lambda t: t.created_at)
        return [copy.deepcopy(t) for t in found]

    async def find_by_creator_since(self, created_by: str, since: datetime) -> List[Ticket]:
        return [
            copy.deepcopy(t) for t in self.tickets.values()
            if t.created_by == created_by and t.created_at >= since
        ]

    # Test-only helpers

    def put(self, ticket: Ticket) -> Ticket:
        self.tickets[ticket.id] = copy.deepcopy(ticket)
        return ticket

    def stored(self, ticket_id: str) -> Ticket:
        return self.tickets[ticket_id]


class RecordingNotificationSink(INotificationSink):
    """Sink that records events and can be told to fail."""

    def __init__(self, fail: bool = False):
        self.events: List[NotificationEvent] = []
        self.fail = fail

    async def notify(self, event: NotificationEvent) -> None:
        if self.fail:
            raise NotificationException("Simulated sink failure")
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [e.kind.value for e in self.events]


# ==========================================
# DOMAIN FIXTURES
# ==========================================

@pytest.fixture
def business_hours() -> BusinessHoursConfig:
    """Mon-Fri 09:00-18:00 UTC, no holidays."""
    return BusinessHoursConfig(timezone="UTC", holidays=())


@pytest.fixture
def calendar(business_hours) -> BusinessCalendar:
    return BusinessCalendar(business_hours)


@pytest.fixture
def clock(calendar) -> SLAClock:
    return SLAClock(calendar)


@pytest.fixture
def state_machine(clock) -> TicketStateMachine:
    return TicketStateMachine(clock)


@pytest.fixture
def sla_matrix() -> SLAMatrix:
    return SLAMatrix()


@pytest.fixture
def scorer() -> PriorityScorer:
    return PriorityScorer()


# ==========================================
# FAKE FIXTURES
# ==========================================

@pytest.fixture
def repo() -> InMemoryTicketRepository:
    return InMemoryTicketRepository()


@pytest.fixture
def sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def failing_sink() -> RecordingNotificationSink:
    return RecordingNotificationSink(fail=True)


@pytest.fixture
def actor_resolver() -> HeaderActorResolver:
    return HeaderActorResolver()


# ==========================================
# SERVICE FIXTURES
# ==========================================

@pytest.fixture
def ticket_service(repo, state_machine, sla_matrix, actor_resolver, sink) -> TicketService:
    return TicketService(repo, state_machine, sla_matrix, actor_resolver, sink)


@pytest.fixture
def sla_service(repo, clock, actor_resolver) -> SLAService:
    return SLAService(repo, clock, actor_resolver)


@pytest.fixture
def monitor(repo, clock, sink) -> SLAMonitorService:
    return SLAMonitorService(repo, clock, sink)


@pytest.fixture
def priority_service(repo, scorer, sink) -> PriorityService:
    return PriorityService(repo, scorer, sink)


# ==========================================
# SAMPLE DATA
# ==========================================

@pytest.fixture
def make_ticket():
    """
    Factory for tickets in any state.

    A ticket created ``in_progress`` gets a started SLA clock (using the
    supplied clock) unless ``sla`` is passed explicitly.
    """

    def _make(
        *,
        created_at: datetime = datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc),
        status: TicketStatus = TicketStatus.OPEN,
        title: str = "Monitor flickers",
        description: str = "Second screen goes dark now and then",
        category: TicketCategory = TicketCategory.HARDWARE,
        priority: Priority = Priority.MEDIUM,
        created_by: str = "user-1",
        sla_hours: float = 8.0,
        sla: Optional[SLARecord] = None,
        clock: Optional[SLAClock] = None,
        started_at: Optional[datetime] = None,
        ticket_id: Optional[str] = None,
    ) -> Ticket:
        record = sla if sla is not None else SLARecord(hours=sla_hours)
        ticket = Ticket(
            id=ticket_id or str(uuid.uuid4()),
            title=title,
            description=description,
            category=category,
            priority=priority,
            status=status,
            created_by=created_by,
            created_at=created_at,
            updated_at=created_at,
            status_history=[
                StatusHistoryEntry(status=TicketStatus.OPEN, changed_by=created_by, changed_at=created_at)
            ],
            sla=record,
        )
        if status == TicketStatus.IN_PROGRESS and sla is None and clock is not None:
            start = started_at or created_at
            clock.start(ticket.sla, start)
            ticket.first_response_at = start
            ticket.status_history.append(
                StatusHistoryEntry(status=TicketStatus.IN_PROGRESS, changed_by="agent-1", changed_at=start)
            )
        return ticket

    return _make


@pytest.fixture
def monday_9am() -> datetime:
    """2024-01-08 is a Monday."""
    return datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)
