"""
Priority Domain Layer
=====================

Pure scoring logic and its immutable configuration.
"""

from helpdesk.priority.domain.value_objects import (
    PriorityConfig,
    PriorityWeights,
    PriorityScore,
)
from helpdesk.priority.domain.scorer import PriorityScorer

__all__ = [
    "PriorityConfig",
    "PriorityWeights",
    "PriorityScore",
    "PriorityScorer",
]
