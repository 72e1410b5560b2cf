"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from helpdesk.config import SLAStatus, TicketStatus
from helpdesk.sla.application.services import SLAStatusReport, SweepResult
from helpdesk.sla.domain.calendar import ensure_aware
from helpdesk.sla.domain.value_objects import BusinessHoursConfig
from helpdesk.tickets.application.dto import SLAResponse


# ========== Request DTOs ==========

class PauseRequest(BaseModel):
    """Request model for pausing an SLA clock."""
    reason: Optional[str] = Field(None, max_length=500, description="Why the clock is paused")


class EvaluateDeadlineRequest(BaseModel):
    """Request model for an ad-hoc deadline calculation."""
    start: datetime = Field(..., description="Clock start")
    hours: float = Field(..., ge=0, le=10000, description="Budget in hours")
    use_business_hours: Optional[bool] = Field(
        None,
        description="Override the configured mode"
    )
    now: Optional[datetime] = Field(
        None,
        description="Evaluation time for remaining hours (defaults to now)"
    )

    @model_validator(mode="after")
    def validate_now(self) -> "EvaluateDeadlineRequest":
        """Reject evaluation times before the start."""
        if self.now is not None and ensure_aware(self.now) < ensure_aware(self.start):
            raise ValueError("now cannot be before start")
        return self


# ========== Response DTOs ==========

class SLAStatusResponse(BaseModel):
    """Response model for a ticket's SLA with a live evaluation."""
    ticket_id: str
    ticket_status: TicketStatus
    sla: SLAResponse
    live_status: SLAStatus = Field(..., description="Status evaluated at request time")
    live_remaining_hours: Optional[float] = Field(None, description="Remaining hours at request time")

    @classmethod
    def from_report(cls, report: SLAStatusReport) -> "SLAStatusResponse":
        return cls(
            ticket_id=report.ticket_id,
            ticket_status=report.ticket_status,
            sla=SLAResponse.from_domain(report.sla),
            live_status=report.evaluation.status,
            live_remaining_hours=report.evaluation.remaining_hours,
        )


class EvaluateDeadlineResponse(BaseModel):
    """Response model for an ad-hoc deadline calculation."""
    deadline: datetime
    remaining_hours: float
    status: SLAStatus
    use_business_hours: bool


class BusinessHoursResponse(BaseModel):
    """Response model for the business calendar configuration."""
    start_hour: int
    end_hour: int
    working_days: List[int]
    timezone: str
    holidays: List[str]
    use_business_hours: bool

    @classmethod
    def from_config(
        cls,
        config: BusinessHoursConfig,
        use_business_hours: bool
    ) -> "BusinessHoursResponse":
        return cls(
            start_hour=config.start_hour,
            end_hour=config.end_hour,
            working_days=list(config.working_days),
            timezone=config.timezone,
            holidays=list(config.holidays),
            use_business_hours=use_business_hours,
        )


class SLAMatrixResponse(BaseModel):
    """Response model for the SLA matrix."""
    matrix: Dict[str, Dict[str, float]]
    fallback_hours: float
    at_risk_ratio: float


class SweepResponse(BaseModel):
    """Response model for a manual SLA sweep."""
    started: bool
    checked: int = 0
    updated: int = 0
    breached: int = 0
    at_risk: int = 0
    escalated: int = 0
    errors: int = 0
    skipped: int = 0

    @classmethod
    def from_result(cls, result: Optional[SweepResult]) -> "SweepResponse":
        if result is None:
            return cls(started=False)
        return cls(started=True, **result.to_dict())
