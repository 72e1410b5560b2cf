"""
Priority Interfaces Layer
=========================

FastAPI route handlers for automatic prioritization.
"""

from helpdesk.priority.interfaces.controllers import priority_router

__all__ = ["priority_router"]
