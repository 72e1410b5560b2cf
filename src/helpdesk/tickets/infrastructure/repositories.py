"""
Ticket Infrastructure Repositories
===================================

SQLAlchemy implementations of the ticket repository and unit-of-work
interfaces.

Datetimes are normalized to UTC on the way in and read back as aware UTC
values, because some backends (SQLite) store them without an offset.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import ACTIVE_STATUSES, Priority, TicketCategory, TicketStatus
from helpdesk.core.exceptions import (
    ConflictingState,
    RepositoryException,
    ResourceNotFoundException,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.domain.entities import SLARecord
from helpdesk.tickets.application.services import ITicketRepository, IUnitOfWork
from helpdesk.tickets.domain.entities import (
    EscalationRecord,
    PriorityAudit,
    StatusHistoryEntry,
    Ticket,
    TicketMetrics,
)
from helpdesk.tickets.infrastructure.models import TicketModel

logger = get_logger(__name__)


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of the ticket repository.

    ``save`` is a conditional UPDATE on ``version``; zero affected rows
    means another writer got there first.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def load_by_id(self, ticket_id: str) -> Ticket:
        """Load a ticket by id."""
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        model = (await self._execute(stmt)).scalar_one_or_none()
        if model is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return self._to_domain(model)

    async def add(self, ticket: Ticket) -> Ticket:
        """Insert a new ticket."""
        model = TicketModel(id=ticket.id, version=ticket.version, **self._to_values(ticket))
        self._session.add(model)
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(
                "Failed to insert ticket",
                {"ticket_id": ticket.id, "error": str(e)}
            ) from e
        return ticket

    async def save(self, ticket: Ticket) -> Ticket:
        """Persist a ticket if its stored version is still ``ticket.version``."""
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket.id, TicketModel.version == ticket.version)
            .values(version=ticket.version + 1, **self._to_values(ticket))
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        if result.rowcount == 0:
            logger.warning(
                "Optimistic lock failed",
                extra={"ticket_id": ticket.id, "expected_version": ticket.version}
            )
            raise ConflictingState(
                f"Ticket was modified concurrently (expected version {ticket.version})",
                ticket_id=ticket.id,
            )
        ticket.version += 1
        return ticket

    async def find_active_sla(self) -> List[Ticket]:
        """Tickets whose SLA clock is running."""
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.sla_deadline.is_not(None),
                TicketModel.sla_is_paused.is_(False),
                TicketModel.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
            .order_by(TicketModel.sla_deadline.asc())
            .execution_options(populate_existing=True)
        )
        models = (await self._execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    async def find_by_status(self, statuses: Sequence[TicketStatus]) -> List[Ticket]:
        """Tickets in any of ``statuses``, oldest first."""
        stmt = (
            select(TicketModel)
            .where(TicketModel.status.in_([TicketStatus(s).value for s in statuses]))
            .order_by(TicketModel.created_at.asc())
            .execution_options(populate_existing=True)
        )
        models = (await self._execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    async def find_by_creator_since(self, created_by: str, since: datetime) -> List[Ticket]:
        """Tickets created by ``created_by`` at or after ``since``."""
        stmt = (
            select(TicketModel)
            .where(
                TicketModel.created_by == created_by,
                TicketModel.created_at >= _to_utc(since),
            )
            .execution_options(populate_existing=True)
        )
        models = (await self._execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    # ========== Mapping ==========

    async def _execute(self, stmt: Any) -> Any:
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException("Ticket query failed", {"error": str(e)}) from e

    @staticmethod
    def _to_values(ticket: Ticket) -> Dict[str, Any]:
        sla = ticket.sla
        return {
            "title": ticket.title,
            "description": ticket.description,
            "category": ticket.category.value,
            "priority": ticket.priority.value,
            "status": ticket.status.value,
            "created_by": ticket.created_by,
            "created_at": _to_utc(ticket.created_at),
            "updated_at": _to_utc(ticket.updated_at),
            "first_response_at": _to_utc(ticket.first_response_at),
            "resolved_at": _to_utc(ticket.resolved_at),
            "closed_at": _to_utc(ticket.closed_at),
            "sla_status": sla.status.value if sla else None,
            "sla_deadline": _to_utc(sla.deadline) if sla else None,
            "sla_is_paused": sla.is_paused if sla else False,
            "sla_hours": sla.hours if sla else None,
            "sla": sla.to_dict() if sla else None,
            "status_history": [entry.to_dict() for entry in ticket.status_history],
            "metrics": ticket.metrics.to_dict(),
            "priority_audit": ticket.priority_audit.to_dict() if ticket.priority_audit else None,
            "escalation_history": [record.to_dict() for record in ticket.escalation_history],
        }

    @staticmethod
    def _to_domain(model: TicketModel) -> Ticket:
        return Ticket(
            id=model.id,
            title=model.title,
            description=model.description,
            category=TicketCategory(model.category),
            priority=Priority(model.priority),
            status=TicketStatus(model.status),
            created_by=model.created_by,
            created_at=_to_utc(model.created_at),
            updated_at=_to_utc(model.updated_at),
            first_response_at=_to_utc(model.first_response_at),
            resolved_at=_to_utc(model.resolved_at),
            closed_at=_to_utc(model.closed_at),
            status_history=[StatusHistoryEntry.from_dict(e) for e in model.status_history or []],
            sla=SLARecord.from_dict(model.sla) if model.sla else None,
            metrics=TicketMetrics.from_dict(model.metrics),
            priority_audit=PriorityAudit.from_dict(model.priority_audit),
            escalation_history=[
                EscalationRecord.from_dict(e) for e in model.escalation_history or []
            ],
            version=model.version,
        )


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """Commits or rolls back the session a repository writes through."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise RepositoryException("Commit failed", {"error": str(e)}) from e

    async def rollback(self) -> None:
        await self._session.rollback()
