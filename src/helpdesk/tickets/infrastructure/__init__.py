"""
Ticket Infrastructure Layer
===========================

Concrete implementations:
- SQLAlchemyTicketRepository: async SQLAlchemy persistence with optimistic locking
- SQLAlchemyUnitOfWork: per-item commit for sweeps
- HeaderActorResolver: actor id taken from the X-Actor-Id header
"""

from helpdesk.tickets.infrastructure.models import TicketModel
from helpdesk.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyUnitOfWork,
)
from helpdesk.tickets.infrastructure.external import HeaderActorResolver

__all__ = [
    "TicketModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyUnitOfWork",
    "HeaderActorResolver",
]
