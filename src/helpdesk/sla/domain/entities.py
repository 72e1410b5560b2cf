"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

An ``SLARecord`` is the SLA sub-record embedded in every ticket: the hour
budget, the running clock (start, deadline, remaining hours), the pause
state and the pause audit trail. It is mutated only by ``SLAClock``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from helpdesk.config import SLAStatus


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class PauseRecord:
    """
    One completed pause of the SLA clock.

    ``duration`` is the wall-clock length of the pause in hours.
    """

    paused_at: datetime
    resumed_at: datetime
    duration: float
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paused_at": _iso(self.paused_at),
            "resumed_at": _iso(self.resumed_at),
            "duration": self.duration,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PauseRecord":
        return cls(
            paused_at=_parse(data["paused_at"]),
            resumed_at=_parse(data["resumed_at"]),
            duration=float(data["duration"]),
            reason=data.get("reason"),
        )


@dataclass
class SLARecord:
    """
    SLA state of a single ticket.

    Invariants maintained by ``SLAClock``:
    - ``deadline`` is set iff ``start_time`` is set
    - ``status`` is ``not_started`` iff ``start_time`` is None
    - while ``is_paused``, ``remaining_hours`` is frozen and ``status`` is ``paused``
    """

    hours: float
    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    status: SLAStatus = SLAStatus.NOT_STARTED
    remaining_hours: Optional[float] = None
    notified: bool = False

    # Pause state
    is_paused: bool = False
    paused_at: Optional[datetime] = None
    pause_reason: Optional[str] = None
    elapsed_hours_before_pause: Optional[float] = None
    pause_history: List[PauseRecord] = field(default_factory=list)

    @property
    def is_started(self) -> bool:
        """Check if the clock has been started."""
        return self.start_time is not None

    @property
    def is_active(self) -> bool:
        """Check if the clock is running (started and not paused)."""
        return self.is_started and self.deadline is not None and not self.is_paused

    @property
    def total_paused_hours(self) -> float:
        """Sum of completed pause durations in wall-clock hours."""
        return round(sum(p.duration for p in self.pause_history), 2)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "hours": self.hours,
            "start_time": _iso(self.start_time),
            "deadline": _iso(self.deadline),
            "status": self.status.value,
            "remaining_hours": self.remaining_hours,
            "notified": self.notified,
            "is_paused": self.is_paused,
            "paused_at": _iso(self.paused_at),
            "pause_reason": self.pause_reason,
            "elapsed_hours_before_pause": self.elapsed_hours_before_pause,
            "pause_history": [p.to_dict() for p in self.pause_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SLARecord":
        """Rebuild a record from ``to_dict`` output."""
        return cls(
            hours=float(data["hours"]),
            start_time=_parse(data.get("start_time")),
            deadline=_parse(data.get("deadline")),
            status=SLAStatus(data.get("status", SLAStatus.NOT_STARTED.value)),
            remaining_hours=data.get("remaining_hours"),
            notified=bool(data.get("notified", False)),
            is_paused=bool(data.get("is_paused", False)),
            paused_at=_parse(data.get("paused_at")),
            pause_reason=data.get("pause_reason"),
            elapsed_hours_before_pause=data.get("elapsed_hours_before_pause"),
            pause_history=[PauseRecord.from_dict(p) for p in data.get("pause_history", [])],
        )
