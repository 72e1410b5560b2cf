"""
Shared Kernel Module
====================

Generic infrastructure used by every bounded context (tickets, sla,
priority): structured logging and HTTP middleware.

DO NOT add ticket, SLA or priority rules to the shared kernel.
"""

__version__ = "1.0.0"
