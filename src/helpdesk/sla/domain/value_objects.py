"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are frozen: a configuration change produces a new value instead of
mutating one that other components already hold.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from helpdesk.config import Priority, SLAStatus, TicketCategory


_HOLIDAY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])$")

DEFAULT_HOLIDAYS = (
    "01-01",  # New Year
    "01-07",  # Orthodox Christmas
    "03-08",  # Women's Day
    "05-01",  # Labour Day
    "05-09",  # Victory Day
    "06-28",  # Constitution Day
    "08-24",  # Independence Day
    "10-14",  # Defenders Day
    "12-25",  # Christmas
)

FALLBACK_SLA_HOURS = 48.0


class BusinessHoursConfig(BaseModel):
    """
    Working calendar: daily window, working weekdays, timezone and holidays.

    ``working_days`` uses ISO weekday numbers (Monday=1 ... Sunday=7).
    ``holidays`` are recurring "MM-DD" dates.
    """

    model_config = ConfigDict(frozen=True)

    start_hour: int = Field(default=9, ge=0, le=23, description="Start of the working window")
    end_hour: int = Field(default=18, ge=1, le=24, description="End of the working window (exclusive)")
    working_days: Tuple[int, ...] = Field(default=(1, 2, 3, 4, 5), description="ISO weekdays")
    timezone: str = Field(default="Europe/Kyiv", description="IANA timezone name")
    holidays: Tuple[str, ...] = Field(default=DEFAULT_HOLIDAYS, description="Recurring MM-DD holidays")

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        """Require a non-empty set of ISO weekday numbers."""
        if not v:
            raise ValueError("working_days must not be empty")
        for day in v:
            if day < 1 or day > 7:
                raise ValueError(f"working day {day} is not an ISO weekday (1-7)")
        return tuple(sorted(set(v)))

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone '{v}'") from e
        return v

    @field_validator("holidays")
    @classmethod
    def validate_holidays(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Ensure every holiday is a MM-DD string."""
        for holiday in v:
            if not _HOLIDAY_PATTERN.match(holiday):
                raise ValueError(f"holiday '{holiday}' must use MM-DD format")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "BusinessHoursConfig":
        """Require start_hour < end_hour."""
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        return self

    @property
    def hours_per_day(self) -> int:
        """Length of the working window in hours."""
        return self.end_hour - self.start_hour


def _default_matrix() -> Dict[Priority, Dict[TicketCategory, float]]:
    categories = (
        TicketCategory.HARDWARE,
        TicketCategory.SOFTWARE,
        TicketCategory.NETWORK,
        TicketCategory.ACCESS,
        TicketCategory.OTHER,
    )
    rows = {
        Priority.URGENT: (2, 4, 2, 1, 4),
        Priority.HIGH: (8, 12, 8, 4, 12),
        Priority.MEDIUM: (24, 48, 24, 12, 48),
        Priority.LOW: (72, 120, 72, 48, 120),
    }
    return {
        priority: {category: float(hours) for category, hours in zip(categories, row)}
        for priority, row in rows.items()
    }


class SLAMatrix(BaseModel):
    """
    SLA budget in hours by priority and category.

    Lookups that miss the matrix fall back to ``fallback_hours``.
    """

    model_config = ConfigDict(frozen=True)

    targets: Dict[Priority, Dict[TicketCategory, float]] = Field(
        default_factory=_default_matrix,
        description="Hours by priority, then category"
    )
    fallback_hours: float = Field(default=FALLBACK_SLA_HOURS, gt=0)

    @field_validator("targets")
    @classmethod
    def validate_targets(
        cls,
        v: Dict[Priority, Dict[TicketCategory, float]]
    ) -> Dict[Priority, Dict[TicketCategory, float]]:
        """Reject non-positive budgets."""
        for priority, row in v.items():
            for category, hours in row.items():
                if hours <= 0:
                    raise ValueError(
                        f"SLA hours for {priority.value}/{category.value} must be positive"
                    )
        return v

    def hours_for(self, priority: Priority, category: TicketCategory) -> float:
        """
        Look up the SLA budget for a ticket.

        Args:
            priority: Ticket priority
            category: Ticket category

        Returns:
            Budget in hours, or the fallback when the pair is not configured
        """
        return self.targets.get(priority, {}).get(category, self.fallback_hours)

    def as_table(self) -> Dict[str, Dict[str, float]]:
        """Plain string-keyed view for API responses."""
        return {
            priority.value: {category.value: hours for category, hours in row.items()}
            for priority, row in self.targets.items()
        }


@dataclass(frozen=True)
class SLAEvaluation:
    """Result of evaluating an SLA clock at a point in time."""

    status: SLAStatus
    remaining_hours: Optional[float]
