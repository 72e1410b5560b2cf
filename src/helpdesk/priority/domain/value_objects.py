"""
Priority Value Objects
======================

Immutable configuration for the priority scorer and its result type.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from helpdesk.config import Priority


DEFAULT_CRITICAL_KEYWORDS = (
    "не працює",
    "зламався",
    "критично",
    "терміново",
    "аварія",
    "не можу працювати",
    "блокує роботу",
    "зависає",
    "помилка",
    "не запускається",
    "втрата даних",
    "безпека",
    "вірус",
    "not working",
    "broken",
    "critical",
    "outage",
    "data loss",
    "security",
    "virus",
)

DEFAULT_URGENT_KEYWORDS = (
    "директор",
    "керівник",
    "важливо",
    "нарада",
    "презентація",
    "дедлайн",
    "клієнт",
    "звіт",
    "director",
    "important",
    "deadline",
    "presentation",
    "client",
)


class PriorityWeights(BaseModel):
    """Weights of the five sub-scores; they must sum to 1.0."""

    model_config = ConfigDict(frozen=True)

    waiting_time: float = Field(default=0.30, ge=0, le=1)
    sla_status: float = Field(default=0.25, ge=0, le=1)
    reopen_count: float = Field(default=0.15, ge=0, le=1)
    keywords: float = Field(default=0.15, ge=0, le=1)
    user_history: float = Field(default=0.15, ge=0, le=1)

    @model_validator(mode="after")
    def validate_sum(self) -> "PriorityWeights":
        """Reject weight sets that do not add up to 1.0."""
        total = (
            self.waiting_time + self.sla_status + self.reopen_count
            + self.keywords + self.user_history
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"priority weights must sum to 1.0, got {total:.4f}")
        return self


class PriorityConfig(BaseModel):
    """
    Priority scorer configuration.

    Keyword matching is case-insensitive substring search over the ticket
    title and description.
    """

    model_config = ConfigDict(frozen=True)

    weights: PriorityWeights = Field(default_factory=PriorityWeights)
    critical_keywords: Tuple[str, ...] = Field(default=DEFAULT_CRITICAL_KEYWORDS)
    urgent_keywords: Tuple[str, ...] = Field(default=DEFAULT_URGENT_KEYWORDS)
    user_history_days: int = Field(default=30, ge=1, description="Look-back window for requester history")

    @field_validator("critical_keywords", "urgent_keywords")
    @classmethod
    def normalize_keywords(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Lower-case keywords and drop blanks."""
        return tuple(k.strip().lower() for k in v if k and k.strip())


@dataclass(frozen=True)
class PriorityScore:
    """Weighted priority score with its per-factor breakdown."""

    score: float
    suggested_priority: Priority
    factors: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "suggested_priority": self.suggested_priority.value,
            "factors": dict(self.factors),
        }
