"""
Tickets Module
==============

Bounded context for the ticket lifecycle.

Responsibilities:
- Ticket creation with an SLA budget from the SLA matrix
- Validated status transitions with an append-only audit trail
- Response/resolution timestamps and metrics
- Ticket persistence (optimistic concurrency via a version column)
"""

__version__ = "1.0.0"
