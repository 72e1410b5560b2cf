"""
Priority Application DTOs
==========================

Response models for the priority API.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field

from helpdesk.config import Priority
from helpdesk.priority.application.services import PriorityBatchResult, PriorityUpdateResult
from helpdesk.priority.domain.value_objects import PriorityScore


class PriorityScoreResponse(BaseModel):
    """Response model for a priority calculation."""
    ticket_id: str
    score: float = Field(..., ge=0, le=100)
    suggested_priority: Priority
    current_priority: Priority
    factors: Dict[str, float]

    @classmethod
    def from_score(
        cls,
        ticket_id: str,
        current_priority: Priority,
        score: PriorityScore
    ) -> "PriorityScoreResponse":
        return cls(
            ticket_id=ticket_id,
            score=score.score,
            suggested_priority=score.suggested_priority,
            current_priority=current_priority,
            factors=score.factors,
        )


class PriorityUpdateResponse(BaseModel):
    """Response model for a single priority update."""
    ticket_id: str
    updated: bool
    score: float
    suggested_priority: Priority
    current_priority: Priority
    previous_priority: Optional[Priority] = None
    reason: Optional[str] = None
    factors: Dict[str, float] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: PriorityUpdateResult) -> "PriorityUpdateResponse":
        return cls(
            ticket_id=result.ticket_id,
            updated=result.updated,
            score=result.score,
            suggested_priority=result.suggested_priority,
            current_priority=result.current_priority,
            previous_priority=result.previous_priority,
            reason=result.reason,
            factors=result.factors,
        )


class PriorityBatchResponse(BaseModel):
    """Response model for a re-prioritization sweep."""
    total: int
    updated: int
    skipped: int
    errors: int

    @classmethod
    def from_result(cls, result: PriorityBatchResult) -> "PriorityBatchResponse":
        return cls(
            total=result.total,
            updated=result.updated,
            skipped=result.skipped,
            errors=result.errors,
        )
