"""
SLA Domain Layer
================

Domain layer for SLA tracking.

Contains:
- Entities: SLA sub-record of a ticket (SLARecord, PauseRecord)
- Value Objects: Immutable configuration and results (BusinessHoursConfig, SLAMatrix, SLAEvaluation)
- Domain Services: Stateless business logic (BusinessCalendar, SLAClock)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.sla.domain.entities import SLARecord, PauseRecord
from helpdesk.sla.domain.value_objects import (
    BusinessHoursConfig,
    SLAMatrix,
    SLAEvaluation,
)
from helpdesk.sla.domain.calendar import BusinessCalendar
from helpdesk.sla.domain.clock import SLAClock

__all__ = [
    # Entities
    "SLARecord",
    "PauseRecord",
    # Value Objects
    "BusinessHoursConfig",
    "SLAMatrix",
    "SLAEvaluation",
    # Domain Services
    "BusinessCalendar",
    "SLAClock",
]
