"""Generation operations and their wizard ordering."""

from __future__ import annotations

from enum import Enum


class OperationName(str, Enum):
    """Enumeration of the supported generation operations."""

    ANALYZE = "analyze"
    DIMENSIONS = "dimensions"
    THEMES = "themes"
    IDEAS = "ideas"
    GOALS = "goals"
    ACTIVITIES = "activities"
    FINALIZE = "finalize"


OPERATION_SEQUENCE = [
    OperationName.ANALYZE,
    OperationName.DIMENSIONS,
    OperationName.THEMES,
    OperationName.IDEAS,
    OperationName.GOALS,
    OperationName.ACTIVITIES,
    OperationName.FINALIZE,
]


__all__ = ["OPERATION_SEQUENCE", "OperationName"]
