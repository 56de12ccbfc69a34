"""
Availability Controllers (API Routes)
=====================================

FastAPI routes for availability queries, timeblocks and tags.

Controllers are thin - they delegate to application services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from asksync.availability.application import (
    AvailabilityQueryService,
    AvailabilityResponse,
    DecoratedTimeblockResponse,
    ExceptionDateDTO,
    TagCreateDTO,
    TagResponse,
    TagService,
    TagUpdateDTO,
    TimeblockCreateDTO,
    TimeblockResponse,
    TimeblockService,
    TimeblockUpdateDTO,
)
from asksync.availability.domain import AvailabilitySelector, Identity, RecurrenceExpander, TimeWindow
from asksync.availability.infrastructure import (
    SQLAlchemyPermissionProvider,
    SQLAlchemyTagRepository,
    SQLAlchemyTimeblockRepository,
)
from asksync.core import InvalidSelectorException
from asksync.deadlines.interfaces.controllers import get_recalculation_service
from asksync.deadlines.application import RecalculationService
from asksync.infrastructure.database import get_session
from asksync.shared.api.dependencies import get_identity
from asksync.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/availability", tags=["Availability"])
tags_router = APIRouter(prefix="/tags", tags=["Tags"])


# ========== Dependencies ==========

async def get_query_service(
    session: AsyncSession = Depends(get_session)
) -> AvailabilityQueryService:
    """Get availability query service instance."""
    return AvailabilityQueryService(
        SQLAlchemyTimeblockRepository(session),
        SQLAlchemyPermissionProvider(session),
    )


async def get_timeblock_service(
    session: AsyncSession = Depends(get_session),
    recalculation: RecalculationService = Depends(get_recalculation_service)
) -> TimeblockService:
    """Get timeblock service instance."""
    return TimeblockService(
        SQLAlchemyTimeblockRepository(session),
        SQLAlchemyTagRepository(session),
        recalculation,
    )


async def get_tag_service(
    session: AsyncSession = Depends(get_session),
    recalculation: RecalculationService = Depends(get_recalculation_service)
) -> TagService:
    """Get tag service instance."""
    return TagService(
        SQLAlchemyTagRepository(session),
        SQLAlchemyTimeblockRepository(session),
        recalculation,
        SQLAlchemyPermissionProvider(session),
    )


# ========== Availability Routes ==========

@router.get(
    "/{org_id}/{responder_id}",
    response_model=AvailabilityResponse,
    summary="Get a responder's availability",
    description="""
    Timeblocks of a responder active at an instant (`at`) or present in a
    window (`start` and `end`), filtered to what the caller may view.

    Pass either `at` or both `start` and `end` (epoch milliseconds, UTC).
    Window queries also return the concrete occurrences of recurring
    timeblocks, sorted by start.
    """,
    responses={422: {"description": "Neither or both of instant and window given"}}
)
async def get_availability(
    org_id: str,
    responder_id: str,
    at: Optional[int] = Query(None, description="Instant (epoch ms)"),
    start: Optional[int] = Query(None, description="Window start (epoch ms)"),
    end: Optional[int] = Query(None, description="Window end (epoch ms)"),
    viewer: Identity = Depends(get_identity),
    service: AvailabilityQueryService = Depends(get_query_service)
):
    if (start is None) != (end is None):
        raise InvalidSelectorException("A window needs both start and end")
    window = TimeWindow(start, end) if start is not None else None
    selector = AvailabilitySelector(instant=at, window=window)

    decorated = await service.decorated_timeblocks_for(org_id, responder_id, selector, viewer)
    decorated.sort(key=lambda d: d.timeblock.start_time)

    occurrences = []
    if selector.window is not None:
        occurrences = RecurrenceExpander.expand_all(
            [d.timeblock for d in decorated], selector.window.start, selector.window.end
        )
        occurrences.sort(key=lambda occ: occ.start_time)

    return AvailabilityResponse(
        responder_id=responder_id,
        is_available=bool(decorated),
        timeblocks=[DecoratedTimeblockResponse.from_decorated(d) for d in decorated],
        occurrences=[TimeblockResponse.from_domain(o) for o in occurrences],
    )


@router.post(
    "/timeblocks",
    response_model=TimeblockResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a timeblock",
)
async def create_timeblock(
    data: TimeblockCreateDTO,
    actor: Identity = Depends(get_identity),
    service: TimeblockService = Depends(get_timeblock_service)
):
    return TimeblockResponse.from_domain(await service.create_timeblock(actor, data))


@router.patch(
    "/timeblocks/{timeblock_id}",
    response_model=TimeblockResponse,
    summary="Update a timeblock",
)
async def update_timeblock(
    timeblock_id: str,
    data: TimeblockUpdateDTO,
    actor: Identity = Depends(get_identity),
    service: TimeblockService = Depends(get_timeblock_service)
):
    return TimeblockResponse.from_domain(await service.update_timeblock(actor, timeblock_id, data))


@router.delete(
    "/timeblocks/{timeblock_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a timeblock",
)
async def delete_timeblock(
    timeblock_id: str,
    actor: Identity = Depends(get_identity),
    service: TimeblockService = Depends(get_timeblock_service)
):
    await service.delete_timeblock(actor, timeblock_id)


@router.post(
    "/timeblocks/{timeblock_id}/exceptions",
    response_model=TimeblockResponse,
    summary="Skip one occurrence of a recurring timeblock",
)
async def add_exception(
    timeblock_id: str,
    data: ExceptionDateDTO,
    actor: Identity = Depends(get_identity),
    service: TimeblockService = Depends(get_timeblock_service)
):
    return TimeblockResponse.from_domain(
        await service.add_exception(actor, timeblock_id, data.exception_date)
    )


@router.delete(
    "/timeblocks/{timeblock_id}/exceptions/{exception_date}",
    response_model=TimeblockResponse,
    summary="Restore a skipped occurrence",
)
async def remove_exception(
    timeblock_id: str,
    exception_date: int,
    actor: Identity = Depends(get_identity),
    service: TimeblockService = Depends(get_timeblock_service)
):
    return TimeblockResponse.from_domain(
        await service.remove_exception(actor, timeblock_id, exception_date)
    )


# ========== Tag Routes ==========

@tags_router.post(
    "",
    response_model=TagResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tag",
)
async def create_tag(
    data: TagCreateDTO,
    actor: Identity = Depends(get_identity),
    service: TagService = Depends(get_tag_service)
):
    return TagResponse.from_domain(await service.create_tag(actor, data))


@tags_router.patch(
    "/{tag_id}",
    response_model=TagResponse,
    summary="Update a tag",
    description="Changing `answer_mode` or `response_time_minutes` recalculates every open record using the tag.",
)
async def update_tag(
    tag_id: str,
    data: TagUpdateDTO,
    actor: Identity = Depends(get_identity),
    service: TagService = Depends(get_tag_service)
):
    return TagResponse.from_domain(await service.update_tag(actor, tag_id, data))


@tags_router.delete(
    "/{tag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a tag",
    description="Refused while any timeblock still uses the tag.",
)
async def delete_tag(
    tag_id: str,
    actor: Identity = Depends(get_identity),
    service: TagService = Depends(get_tag_service)
):
    await service.delete_tag(actor, tag_id)


# Export routers for inclusion in main app
availability_router = router
