"""
Ticket Domain Entities
=======================

Pure Python domain entities for the ticket lifecycle.

Following Domain-Driven Design principles, these entities contain
business state and simple queries. Status changes go through
``TicketStateMachine``; SLA mutations go through ``SLAClock``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from helpdesk.config import (
    Priority, TicketCategory, TicketStatus, TERMINAL_STATUSES
)
from helpdesk.sla.domain.entities import SLARecord


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class StatusHistoryEntry:
    """One entry of the append-only status audit trail."""

    status: TicketStatus
    changed_by: str
    changed_at: datetime
    comment: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "changed_by": self.changed_by,
            "changed_at": _iso(self.changed_at),
            "comment": self.comment,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusHistoryEntry":
        return cls(
            status=TicketStatus(data["status"]),
            changed_by=data["changed_by"],
            changed_at=_parse(data["changed_at"]),
            comment=data.get("comment"),
        )


@dataclass
class TicketMetrics:
    """
    Operational metrics of a ticket.

    ``response_time`` and ``resolution_time`` are in hours (working hours
    when the engine runs in business-hours mode). ``reopen_count`` only
    ever increments.
    """

    response_time: Optional[float] = None
    resolution_time: Optional[float] = None
    reopen_count: int = 0
    escalation_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_time": self.response_time,
            "resolution_time": self.resolution_time,
            "reopen_count": self.reopen_count,
            "escalation_count": self.escalation_count,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TicketMetrics":
        data = data or {}
        return cls(
            response_time=data.get("response_time"),
            resolution_time=data.get("resolution_time"),
            reopen_count=int(data.get("reopen_count", 0)),
            escalation_count=int(data.get("escalation_count", 0)),
        )


@dataclass
class PriorityAudit:
    """Record of the last automatic priority update."""

    score: float
    factors: Dict[str, float]
    previous_priority: Priority
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "factors": dict(self.factors),
            "previous_priority": self.previous_priority.value,
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PriorityAudit"]:
        if not data:
            return None
        return cls(
            score=float(data["score"]),
            factors={k: float(v) for k, v in data.get("factors", {}).items()},
            previous_priority=Priority(data["previous_priority"]),
            updated_at=_parse(data["updated_at"]),
        )


@dataclass
class EscalationRecord:
    """One automatic escalation of a ticket whose SLA was breached."""

    level: int
    escalated_at: datetime
    reason: str
    sla_hours: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "escalated_at": _iso(self.escalated_at),
            "reason": self.reason,
            "sla_hours": self.sla_hours,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EscalationRecord":
        return cls(
            level=int(data["level"]),
            escalated_at=_parse(data["escalated_at"]),
            reason=data.get("reason", ""),
            sla_hours=data.get("sla_hours"),
        )


@dataclass
class Ticket:
    """
    Ticket aggregate.

    Owns its status history, SLA sub-record, metrics, priority audit and
    escalation history.
    ``version`` is maintained by the repository for optimistic concurrency.
    """

    # Core attributes
    id: str
    title: str
    description: str
    category: TicketCategory
    priority: Priority
    status: TicketStatus
    created_by: str

    # Timestamps
    created_at: datetime
    updated_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    # Owned records
    status_history: List[StatusHistoryEntry] = field(default_factory=list)
    sla: Optional[SLARecord] = None
    metrics: TicketMetrics = field(default_factory=TicketMetrics)
    priority_audit: Optional[PriorityAudit] = None
    escalation_history: List[EscalationRecord] = field(default_factory=list)

    version: int = 0

    @property
    def is_terminal(self) -> bool:
        """Check if the ticket is closed or cancelled."""
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        """Check if the ticket is open or being worked on."""
        return self.status in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)

    @property
    def last_history_entry(self) -> Optional[StatusHistoryEntry]:
        """Most recent status history entry, if any."""
        return self.status_history[-1] if self.status_history else None

    @property
    def escalation_level(self) -> int:
        """Current escalation level (0 when never escalated)."""
        return self.escalation_history[-1].level if self.escalation_history else 0

    def escalate(self, at: datetime, reason: str) -> EscalationRecord:
        """
        Raise the ticket one escalation level.

        Args:
            at: Escalation time
            reason: Human-readable cause

        Returns:
            The appended escalation record
        """
        record = EscalationRecord(
            level=self.escalation_level + 1,
            escalated_at=at,
            reason=reason,
            sla_hours=self.sla.hours if self.sla else None,
        )
        self.escalation_history.append(record)
        self.metrics.escalation_count += 1
        self.updated_at = at
        return record

    def waiting_hours(self, now: datetime) -> float:
        """Wall-clock hours since creation."""
        return max((now - self.created_at).total_seconds() / 3600, 0.0)
