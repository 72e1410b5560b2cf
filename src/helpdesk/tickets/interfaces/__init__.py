"""
Ticket Interfaces Layer
=======================

FastAPI route handlers for the ticket lifecycle.
"""

from helpdesk.tickets.interfaces.controllers import get_ticket_repository, tickets_router

__all__ = ["tickets_router", "get_ticket_repository"]
