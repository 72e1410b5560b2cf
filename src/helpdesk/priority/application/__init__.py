"""
Priority Application Layer
==========================

Contains:
- Services: PriorityService (calculate, update_priority, update_all)
- DTOs: Response models for the priority API
"""

from helpdesk.priority.application.services import (
    PriorityService,
    PriorityUpdateResult,
    PriorityBatchResult,
)
from helpdesk.priority.application.dto import (
    PriorityScoreResponse,
    PriorityUpdateResponse,
    PriorityBatchResponse,
)

__all__ = [
    "PriorityService",
    "PriorityUpdateResult",
    "PriorityBatchResult",
    "PriorityScoreResponse",
    "PriorityUpdateResponse",
    "PriorityBatchResponse",
]
