"""
Priority Module
===============

Bounded context for automatic ticket prioritization.

Responsibilities:
- Score tickets from waiting time, SLA state, reopens, keywords and requester history
- Update a ticket's priority with an audit record
- Periodic re-prioritization sweep over active tickets
"""

__version__ = "1.0.0"
