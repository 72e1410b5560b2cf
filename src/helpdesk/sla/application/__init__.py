"""
SLA Application Layer
======================

Application layer for SLA tracking.

Contains:
- Services: Operator pause/resume/status (SLAService) and the periodic sweep (SLAMonitorService)
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and collaborator interfaces,
but not on concrete infrastructure implementations.
"""

from helpdesk.sla.application.services import (
    SLAService,
    SLAMonitorService,
    SLAStatusReport,
    SweepResult,
)
from helpdesk.sla.application.dto import (
    PauseRequest,
    EvaluateDeadlineRequest,
    EvaluateDeadlineResponse,
    SLAStatusResponse,
    BusinessHoursResponse,
    SLAMatrixResponse,
    SweepResponse,
)

__all__ = [
    # Services
    "SLAService",
    "SLAMonitorService",
    "SLAStatusReport",
    "SweepResult",
    # DTOs
    "PauseRequest",
    "EvaluateDeadlineRequest",
    "EvaluateDeadlineResponse",
    "SLAStatusResponse",
    "BusinessHoursResponse",
    "SLAMatrixResponse",
    "SweepResponse",
]
