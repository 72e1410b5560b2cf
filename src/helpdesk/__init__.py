"""
Helpdesk SLA & Priority Engine
==============================

Ticket lifecycle, business-hours SLA tracking and automatic
prioritization for an internal helpdesk.
"""

__version__ = "1.0.0"
