"""
Deadlines Domain Layer
======================

Domain layer for the deadlines module.

Contains:
- Entities: DeadlineRecord, ExpectedAnswer, recalculation outcomes, pages
- Value Objects: DeadlinePolicy

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from asksync.deadlines.domain.entities import (
    DeadlineRecord,
    ExpectedAnswer,
    OutcomeAction,
    RecalculationOutcome,
    SweepResult,
    Page,
)
from asksync.deadlines.domain.value_objects import DeadlinePolicy

__all__ = [
    # Entities
    "DeadlineRecord",
    "ExpectedAnswer",
    "OutcomeAction",
    "RecalculationOutcome",
    "SweepResult",
    "Page",
    # Value Objects
    "DeadlinePolicy",
]
