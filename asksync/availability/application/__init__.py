"""
Availability Application Layer
==============================

Application layer for the availability module.

Contains:
- Services: Availability queries and timeblock/tag mutations
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from asksync.availability.application.dto import (
    TimeblockCreateDTO,
    TimeblockUpdateDTO,
    ExceptionDateDTO,
    TagCreateDTO,
    TagUpdateDTO,
    TimeblockResponse,
    DecoratedTimeblockResponse,
    AvailabilityResponse,
    TagResponse,
)
from asksync.availability.application.services import (
    ALL_RESOURCES,
    AvailabilityQueryService,
    TimeblockService,
    TagService,
    ITimeblockRepository,
    ITagRepository,
    IPermissionProvider,
    IRecalculationTrigger,
)

__all__ = [
    # DTOs
    "TimeblockCreateDTO",
    "TimeblockUpdateDTO",
    "ExceptionDateDTO",
    "TagCreateDTO",
    "TagUpdateDTO",
    "TimeblockResponse",
    "DecoratedTimeblockResponse",
    "AvailabilityResponse",
    "TagResponse",
    # Services
    "AvailabilityQueryService",
    "TimeblockService",
    "TagService",
    # Interfaces
    "ITimeblockRepository",
    "ITagRepository",
    "IPermissionProvider",
    "IRecalculationTrigger",
    "ALL_RESOURCES",
]
