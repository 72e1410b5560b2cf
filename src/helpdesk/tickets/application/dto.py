"""
Ticket Application DTOs
========================

Data Transfer Objects for the ticket API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from helpdesk.config import Priority, SLAStatus, TicketCategory, TicketStatus
from helpdesk.sla.domain.entities import SLARecord
from helpdesk.tickets.domain.entities import StatusHistoryEntry, Ticket


# ========== Request DTOs ==========

class TicketCreateRequest(BaseModel):
    """Request model for creating a ticket."""
    title: str = Field(..., min_length=1, max_length=200, description="Ticket title")
    description: str = Field(default="", max_length=10000, description="Ticket description")
    category: TicketCategory = Field(default=TicketCategory.OTHER, description="Ticket category")
    priority: Priority = Field(default=Priority.MEDIUM, description="Initial priority")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Reject whitespace-only titles."""
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()


class StatusChangeRequest(BaseModel):
    """Request model for a status transition."""
    status: TicketStatus = Field(..., description="Requested status")
    comment: Optional[str] = Field(None, max_length=2000, description="History comment")


# ========== Response DTOs ==========

class StatusHistoryResponse(BaseModel):
    """One status history entry."""
    status: TicketStatus
    changed_by: str
    changed_at: datetime
    comment: Optional[str] = None

    @classmethod
    def from_domain(cls, entry: StatusHistoryEntry) -> "StatusHistoryResponse":
        return cls(
            status=entry.status,
            changed_by=entry.changed_by,
            changed_at=entry.changed_at,
            comment=entry.comment,
        )


class PauseRecordResponse(BaseModel):
    """One completed SLA pause."""
    paused_at: datetime
    resumed_at: datetime
    duration: float = Field(..., description="Pause length in wall-clock hours")
    reason: Optional[str] = None


class SLAResponse(BaseModel):
    """Response model for a ticket's SLA record."""
    hours: float = Field(..., description="SLA budget in hours")
    status: SLAStatus
    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    remaining_hours: Optional[float] = None
    notified: bool = False
    is_paused: bool = False
    paused_at: Optional[datetime] = None
    pause_reason: Optional[str] = None
    elapsed_hours_before_pause: Optional[float] = None
    total_paused_hours: float = 0.0
    pause_history: List[PauseRecordResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, sla: SLARecord) -> "SLAResponse":
        return cls(
            hours=sla.hours,
            status=sla.status,
            start_time=sla.start_time,
            deadline=sla.deadline,
            remaining_hours=sla.remaining_hours,
            notified=sla.notified,
            is_paused=sla.is_paused,
            paused_at=sla.paused_at,
            pause_reason=sla.pause_reason,
            elapsed_hours_before_pause=sla.elapsed_hours_before_pause,
            total_paused_hours=sla.total_paused_hours,
            pause_history=[
                PauseRecordResponse(
                    paused_at=p.paused_at,
                    resumed_at=p.resumed_at,
                    duration=p.duration,
                    reason=p.reason,
                )
                for p in sla.pause_history
            ],
        )


class MetricsResponse(BaseModel):
    """Ticket metrics."""
    response_time: Optional[float] = None
    resolution_time: Optional[float] = None
    reopen_count: int = 0
    escalation_count: int = 0


class EscalationResponse(BaseModel):
    """One automatic escalation."""
    level: int
    escalated_at: datetime
    reason: str
    sla_hours: Optional[float] = None


class PriorityAuditResponse(BaseModel):
    """Last automatic priority update."""
    score: float
    factors: Dict[str, float]
    previous_priority: Priority
    updated_at: datetime


class TicketResponse(BaseModel):
    """Response model for a ticket."""
    id: str
    title: str
    description: str
    category: TicketCategory
    priority: Priority
    status: TicketStatus
    created_by: str
    created_at: datetime
    updated_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    sla: Optional[SLAResponse] = None
    metrics: MetricsResponse
    priority_audit: Optional[PriorityAuditResponse] = None
    escalation_level: int = 0
    escalation_history: List[EscalationResponse] = Field(default_factory=list)
    allowed_transitions: List[TicketStatus] = Field(default_factory=list)
    version: int

    @classmethod
    def from_domain(
        cls,
        ticket: Ticket,
        allowed_transitions: Optional[List[TicketStatus]] = None
    ) -> "TicketResponse":
        audit = ticket.priority_audit
        return cls(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            category=ticket.category,
            priority=ticket.priority,
            status=ticket.status,
            created_by=ticket.created_by,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            first_response_at=ticket.first_response_at,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            sla=SLAResponse.from_domain(ticket.sla) if ticket.sla else None,
            metrics=MetricsResponse(**ticket.metrics.to_dict()),
            priority_audit=PriorityAuditResponse(
                score=audit.score,
                factors=audit.factors,
                previous_priority=audit.previous_priority,
                updated_at=audit.updated_at,
            ) if audit else None,
            escalation_level=ticket.escalation_level,
            escalation_history=[
                EscalationResponse(**record.to_dict()) for record in ticket.escalation_history
            ],
            allowed_transitions=sorted(allowed_transitions or [], key=lambda s: s.value),
            version=ticket.version,
        )
