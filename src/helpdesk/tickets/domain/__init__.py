"""
Ticket Domain Layer
===================

Ticket aggregate and its lifecycle.

Contains:
- Entities: Ticket, StatusHistoryEntry, TicketMetrics, PriorityAudit
- Domain Services: TicketStateMachine (returns SideEffect descriptors)
"""

from helpdesk.tickets.domain.entities import (
    Ticket,
    StatusHistoryEntry,
    TicketMetrics,
    PriorityAudit,
)
from helpdesk.tickets.domain.state_machine import TicketStateMachine, SideEffect

__all__ = [
    "Ticket",
    "StatusHistoryEntry",
    "TicketMetrics",
    "PriorityAudit",
    "TicketStateMachine",
    "SideEffect",
]
