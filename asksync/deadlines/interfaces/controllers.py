"""
Deadline Controllers (API Routes)
=================================

FastAPI routes for expected answer times and recalculation triggers.

Controllers are thin - they delegate to application services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from asksync.availability.application import AvailabilityQueryService
from asksync.availability.infrastructure import (
    SQLAlchemyPermissionProvider,
    SQLAlchemyTagRepository,
    SQLAlchemyTimeblockRepository,
)
from asksync.config import VALID_RECORD_KINDS
from asksync.deadlines.application import (
    DeadlineCalculator,
    DeadlinePreviewRequest,
    DeadlineReadService,
    ExpectedAnswerResponse,
    IContinuationScheduler,
    IOverdueNotifier,
    IPolicyProvider,
    RecalculationScheduledResponse,
    RecalculationService,
    RecordDeadlineResponse,
    StaticPolicyProvider,
    SweepResponse,
    TagRecalculationRequest,
)
from asksync.deadlines.infrastructure import build_record_repositories
from asksync.infrastructure.database import get_session
from asksync.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/deadlines", tags=["Deadlines"])


# ========== Example payloads for Swagger ==========

RECORD_DEADLINE_EXAMPLE = {
    "record_id": "q-123",
    "kind": "question",
    "org_id": "org-1",
    "status": "assigned",
    "tag_ids": ["tag-billing"],
    "responder_ids": ["user-42"],
    "deadline": {
        "expected_answer_time": 1767607200000,
        "computed_at": 1767603600000,
        "is_overdue": False,
        "remaining_ms": 3600000,
        "overdue_ms": 0
    },
    "computed_on_read": False,
    "stored_is_overdue": False,
    "last_computed_at": 1767600000000,
    "updated_at": 1767600000000
}


# ========== Composition ==========

def build_calculator(session: AsyncSession, policy_provider: IPolicyProvider) -> DeadlineCalculator:
    """Deadline calculator wired to SQLAlchemy repositories."""
    availability = AvailabilityQueryService(
        SQLAlchemyTimeblockRepository(session),
        SQLAlchemyPermissionProvider(session),
    )
    return DeadlineCalculator(availability, SQLAlchemyTagRepository(session), policy_provider)


def build_recalculation_service(
    session: AsyncSession,
    policy_provider: IPolicyProvider,
    continuation_scheduler: Optional[IContinuationScheduler] = None,
    notifier: Optional[IOverdueNotifier] = None
) -> RecalculationService:
    """Recalculation service bound to one session (one transaction)."""
    return RecalculationService(
        build_calculator(session, policy_provider),
        build_record_repositories(session),
        policy_provider,
        continuation_scheduler=continuation_scheduler,
        notifier=notifier,
    )


def _policy_provider(request: Request) -> IPolicyProvider:
    return getattr(request.app.state, "policy_manager", None) or StaticPolicyProvider()


# ========== Dependencies ==========

async def get_recalculation_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> RecalculationService:
    """Get recalculation service instance."""
    return build_recalculation_service(
        session,
        _policy_provider(request),
        getattr(request.app.state, "recalculation_scheduler", None),
        getattr(request.app.state, "overdue_notifier", None),
    )


async def get_read_service(
    request: Request,
    session: AsyncSession = Depends(get_session)
) -> DeadlineReadService:
    """Get deadline read service instance."""
    policy_provider = _policy_provider(request)
    return DeadlineReadService(
        build_calculator(session, policy_provider),
        build_record_repositories(session),
        policy_provider,
    )


# ========== Route Handlers ==========

@router.get(
    "/{kind}/{record_id}",
    response_model=RecordDeadlineResponse,
    summary="Get the expected answer time of a record",
    description="""
    Returns the stored expected answer time of a question or email
    attention item, with overdue state evaluated now.

    Records created before deadlines were tracked have none stored; for
    those the value is computed for this response (`computed_on_read`)
    and left for the next sweep to persist.
    """,
    responses={
        200: {"content": {"application/json": {"example": RECORD_DEADLINE_EXAMPLE}}},
        404: {"description": "Unknown kind or record"}
    }
)
async def get_record_deadline(
    kind: str,
    record_id: str,
    read_service: DeadlineReadService = Depends(get_read_service)
):
    record, answer, computed = await read_service.current_deadline(kind, record_id)
    return RecordDeadlineResponse.from_domain(record, answer, computed)


@router.post(
    "/preview",
    response_model=ExpectedAnswerResponse,
    summary="Compute the deadline for a record about to be created",
)
async def preview_deadline(
    request: DeadlinePreviewRequest,
    read_service: DeadlineReadService = Depends(get_read_service)
):
    answer = await read_service.initial_deadline(
        request.org_id, request.kind, request.tag_ids, request.responder_ids
    )
    return ExpectedAnswerResponse.from_domain(answer)


@router.post(
    "/recalculate",
    response_model=RecalculationScheduledResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Schedule a full recalculation",
    description="""
    Starts a full sweep over every record kind. The sweep runs in the
    background in batches; this call returns once it is scheduled.
    """
)
async def recalculate_all(
    service: RecalculationService = Depends(get_recalculation_service)
):
    kinds = service.recalculate_all()
    return RecalculationScheduledResponse(scheduled_kinds=kinds)


@router.post(
    "/recalculate/tags",
    response_model=SweepResponse,
    summary="Recalculate records referencing tags",
    description="""
    Synchronously recalculates open records of `org_id` referencing any of
    `tag_ids`, narrowed to records of `responder_id` when given.
    """
)
async def recalculate_for_tags(
    request: TagRecalculationRequest,
    service: RecalculationService = Depends(get_recalculation_service)
):
    if request.responder_id:
        result = await service.recalculate_for_responder(
            request.org_id, request.tag_ids, request.responder_id
        )
    else:
        result = await service.recalculate_for_tags(request.org_id, request.tag_ids)
    return SweepResponse.from_domain(result)


@router.post(
    "/recalculate/{kind}",
    response_model=SweepResponse,
    summary="Run one full-sweep batch now",
)
async def run_sweep_batch(
    kind: str,
    cursor: Optional[str] = None,
    service: RecalculationService = Depends(get_recalculation_service),
    session: AsyncSession = Depends(get_session)
):
    if kind not in VALID_RECORD_KINDS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown record kind: {kind}")
    result = await service.run_full_sweep(kind, cursor, commit=session.commit)
    return SweepResponse.from_domain(result)


# Export router for inclusion in main app
deadlines_router = router
