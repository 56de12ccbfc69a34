"""
Deadlines Application Layer
===========================

Application layer for the deadlines module.

Contains:
- Services: Deadline calculation, recalculation and read services
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer, the availability application
layer and repository interfaces, but not on concrete infrastructure.
"""

from asksync.deadlines.application.dto import (
    DeadlinePreviewRequest,
    TagRecalculationRequest,
    ExpectedAnswerResponse,
    RecordDeadlineResponse,
    SweepResponse,
    RecalculationScheduledResponse,
)
from asksync.deadlines.application.services import (
    DeadlineCalculator,
    RecalculationService,
    DeadlineReadService,
    StaticPolicyProvider,
    IDeadlineRecordRepository,
    IContinuationScheduler,
    IPolicyProvider,
    IOverdueNotifier,
)

__all__ = [
    # DTOs
    "DeadlinePreviewRequest",
    "TagRecalculationRequest",
    "ExpectedAnswerResponse",
    "RecordDeadlineResponse",
    "SweepResponse",
    "RecalculationScheduledResponse",
    # Services
    "DeadlineCalculator",
    "RecalculationService",
    "DeadlineReadService",
    "StaticPolicyProvider",
    # Interfaces
    "IDeadlineRecordRepository",
    "IContinuationScheduler",
    "IPolicyProvider",
    "IOverdueNotifier",
]
