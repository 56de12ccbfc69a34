"""
Availability Domain Layer
=========================

Domain layer for the availability module.

Contains:
- Entities: Timeblock, Tag, Identity and permission grant views
- Domain Services: Stateless recurrence expansion and matching

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from asksync.availability.domain.entities import (
    Timeblock,
    Tag,
    Identity,
    PermissionGrant,
    DecoratedTimeblock,
)
from asksync.availability.domain.recurrence import (
    RecurrenceExpander,
    utc_midnight,
    utc_weekday,
)
from asksync.availability.domain.value_objects import (
    TimeWindow,
    AvailabilitySelector,
)

__all__ = [
    # Entities
    "Timeblock",
    "Tag",
    "Identity",
    "PermissionGrant",
    "DecoratedTimeblock",
    # Value Objects & Domain Services
    "TimeWindow",
    "AvailabilitySelector",
    "RecurrenceExpander",
    "utc_midnight",
    "utc_weekday",
]
