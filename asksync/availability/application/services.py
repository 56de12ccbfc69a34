"""
Availability Application Services
=================================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories, permission
  provider, recalculation trigger), not concrete implementations
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union
from uuid import uuid4

from asksync.availability.domain import (
    AvailabilitySelector,
    DecoratedTimeblock,
    Identity,
    Tag,
    Timeblock,
    utc_midnight,
)
from asksync.availability.application.dto import (
    TagCreateDTO,
    TagUpdateDTO,
    TimeblockCreateDTO,
    TimeblockUpdateDTO,
)
from asksync.config import PermissionLevel, ResourceType
from asksync.core import (
    ConfigurationException,
    NotRecurringException,
    PermissionDeniedException,
    ResourceNotFoundException,
    TagInUseException,
    ValidationException,
)
from asksync.core.clock import now_ms
from asksync.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class _AllResources:
    """Wildcard returned when a viewer may see every resource of a type."""

    def __contains__(self, resource_id: object) -> bool:
        return True

    def __repr__(self) -> str:
        return "ALL_RESOURCES"


ALL_RESOURCES = _AllResources()

PermittedIds = Union[Set[str], _AllResources]


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITimeblockRepository(ABC):
    """Interface for timeblock data access."""

    @abstractmethod
    async def get(self, timeblock_id: str) -> Optional[Timeblock]:
        """Get timeblock by ID."""

    @abstractmethod
    async def list_one_off_starting_before(
        self,
        org_id: str,
        owner_id: str,
        start_bound: int
    ) -> List[Timeblock]:
        """Non-recurring timeblocks of an owner with ``start_time <= start_bound``."""

    @abstractmethod
    async def list_recurring(self, org_id: str, owner_id: str) -> List[Timeblock]:
        """All recurring templates of an owner."""

    @abstractmethod
    async def create(self, timeblock: Timeblock) -> Timeblock:
        """Persist a new timeblock."""

    @abstractmethod
    async def update(self, timeblock: Timeblock) -> Timeblock:
        """Persist changes to an existing timeblock."""

    @abstractmethod
    async def delete(self, timeblock_id: str) -> None:
        """Delete a timeblock."""

    @abstractmethod
    async def count_with_tag(self, org_id: str, tag_id: str) -> int:
        """Number of timeblocks in an organization that reference a tag."""


class ITagRepository(ABC):
    """Interface for tag data access."""

    @abstractmethod
    async def get(self, tag_id: str) -> Optional[Tag]:
        """Get tag by ID."""

    @abstractmethod
    async def get_many(self, tag_ids: Iterable[str]) -> Dict[str, Tag]:
        """Get tags by ID; unknown IDs are absent from the result."""

    @abstractmethod
    async def get_by_name(self, org_id: str, name: str) -> Optional[Tag]:
        """Get tag by its name within an organization."""

    @abstractmethod
    async def create(self, tag: Tag) -> Tag:
        """Persist a new tag."""

    @abstractmethod
    async def update(self, tag: Tag) -> Tag:
        """Persist changes to a tag."""

    @abstractmethod
    async def delete(self, tag_id: str) -> None:
        """Delete a tag."""


class IPermissionProvider(ABC):
    """Interface to the permission/grant model."""

    @abstractmethod
    async def is_permitted(
        self,
        viewer: Identity,
        resource_type: str,
        resource_id: str,
        level: str
    ) -> bool:
        """Check whether the viewer holds at least ``level`` on a resource."""

    @abstractmethod
    async def permitted_resource_ids(
        self,
        viewer: Identity,
        resource_type: str,
        level: str
    ) -> PermittedIds:
        """IDs the viewer holds ``level`` on, or ``ALL_RESOURCES``."""

    @abstractmethod
    async def decorate_with_grants(
        self,
        viewer: Identity,
        resource_type: str,
        timeblocks: List[Timeblock]
    ) -> List[DecoratedTimeblock]:
        """Attach the grants of each timeblock and the viewer's capabilities."""


class IRecalculationTrigger(ABC):
    """Entry points for keeping deadlines fresh after availability changes."""

    @abstractmethod
    async def recalculate_for_tags(self, org_id: str, tag_ids: List[str]) -> Any:
        """Recalculate the organization's records referencing any of the tags."""

    @abstractmethod
    async def recalculate_for_responder(self, org_id: str, tag_ids: List[str], responder_id: str) -> Any:
        """Recalculate the organization's records referencing any of the tags and the responder."""


# ========== Application Services ==========

class AvailabilityQueryService:
    """
    Service answering which timeblocks a responder has at an instant or in a
    window.

    One-off timeblocks are narrowed by the (org, owner, start time) index and
    filtered in memory; recurring templates are fetched by (org, owner) and
    filtered with the recurrence matcher.
    """

    def __init__(
        self,
        timeblock_repository: ITimeblockRepository,
        permission_provider: Optional[IPermissionProvider] = None
    ):
        self._timeblock_repo = timeblock_repository
        self._permissions = permission_provider

    async def timeblocks_for(
        self,
        org_id: str,
        responder_id: str,
        selector: AvailabilitySelector,
        *,
        viewer: Optional[Identity] = None,
        check_permissions: bool = True
    ) -> List[Timeblock]:
        """
        Get a responder's timeblocks matching a selector.

        Args:
            org_id: Organization ID
            responder_id: Owner of the timeblocks
            selector: Instant or window selector
            viewer: Identity the result is shown to (required when
                permissions are checked)
            check_permissions: False for internal callers that only need
                existence, such as deadline calculation

        Returns:
            Matching timeblocks (recurring ones as templates), unordered
        """
        one_off = await self._timeblock_repo.list_one_off_starting_before(
            org_id, responder_id, selector.start_time_bound
        )
        recurring = await self._timeblock_repo.list_recurring(org_id, responder_id)

        candidates = [tb for tb in one_off if selector.admits(tb)]
        candidates.extend(tb for tb in recurring if selector.admits(tb))

        if not check_permissions:
            return candidates

        if viewer is None:
            raise ValidationException("A viewer is required when permissions are checked")
        if self._permissions is None:
            raise ConfigurationException("No permission provider configured")

        permitted = await self._permissions.permitted_resource_ids(
            viewer, ResourceType.TIMEBLOCKS, PermissionLevel.VIEW
        )
        return [
            tb for tb in candidates
            if tb.owner_id == viewer.user_id or tb.id in permitted
        ]

    async def decorated_timeblocks_for(
        self,
        org_id: str,
        responder_id: str,
        selector: AvailabilitySelector,
        viewer: Identity
    ) -> List[DecoratedTimeblock]:
        """Permission-filtered timeblocks decorated with grant metadata, for display."""
        timeblocks = await self.timeblocks_for(
            org_id, responder_id, selector, viewer=viewer, check_permissions=True
        )
        return await self._permissions.decorate_with_grants(
            viewer, ResourceType.TIMEBLOCKS, timeblocks
        )


class TimeblockService:
    """
    Service for timeblock mutations.

    Every change that can move an expected answer time triggers a targeted
    recalculation for the owner before returning, inside the caller's
    transaction, so a failed recalculation rolls the change back.
    """

    def __init__(
        self,
        timeblock_repository: ITimeblockRepository,
        tag_repository: ITagRepository,
        recalculation_trigger: IRecalculationTrigger,
        clock: Callable[[], int] = now_ms
    ):
        self._timeblock_repo = timeblock_repository
        self._tag_repo = tag_repository
        self._trigger = recalculation_trigger
        self._clock = clock

    async def create_timeblock(self, actor: Identity, data: TimeblockCreateDTO) -> Timeblock:
        """Create a timeblock owned by the actor."""
        await self._validate_tags(actor.org_id, data.tag_ids)

        timeblock = Timeblock(
            id=str(uuid4()),
            org_id=actor.org_id,
            owner_id=actor.user_id,
            title=data.title,
            description=data.description,
            start_time=data.start_time,
            end_time=data.end_time,
            timezone=data.timezone,
            recurrence_rule=data.recurrence_rule,
            tag_ids=list(data.tag_ids),
            source=data.source,
            external_id=data.external_id,
            color=data.color,
            updated_at=self._clock(),
        )
        created = await self._timeblock_repo.create(timeblock)

        logger.info(
            "Timeblock created",
            extra={"timeblock_id": created.id, "owner_id": created.owner_id,
                   "recurring": created.is_recurring}
        )
        await self._trigger.recalculate_for_responder(created.org_id, created.tag_ids, created.owner_id)
        return created

    async def update_timeblock(
        self,
        actor: Identity,
        timeblock_id: str,
        data: TimeblockUpdateDTO
    ) -> Timeblock:
        """Apply a partial update; both old and new tags are recalculated."""
        existing = await self._get_owned(actor, timeblock_id)

        if data.tag_ids is not None:
            await self._validate_tags(actor.org_id, data.tag_ids)

        changes = data.model_dump(
            exclude_unset=True, exclude={"clear_recurrence", "recurrence_rule"}
        )
        if data.recurrence_rule is not None:
            changes["recurrence_rule"] = data.recurrence_rule
        elif data.clear_recurrence:
            changes["recurrence_rule"] = None
            changes["exception_dates"] = []
        changes = {key: value for key, value in changes.items()
                   if value is not None or key == "recurrence_rule"}

        # replace() re-runs entity validation (end after start, known rule)
        updated = replace(existing, **changes, updated_at=self._clock())
        saved = await self._timeblock_repo.update(updated)

        affected_tags = list(dict.fromkeys(existing.tag_ids + saved.tag_ids))
        logger.info(
            "Timeblock updated",
            extra={"timeblock_id": saved.id, "fields": sorted(changes)}
        )
        await self._trigger.recalculate_for_responder(saved.org_id, affected_tags, saved.owner_id)
        return saved

    async def delete_timeblock(self, actor: Identity, timeblock_id: str) -> str:
        """Delete a timeblock owned by the actor."""
        existing = await self._get_owned(actor, timeblock_id)
        await self._timeblock_repo.delete(timeblock_id)

        logger.info("Timeblock deleted", extra={"timeblock_id": timeblock_id})
        await self._trigger.recalculate_for_responder(existing.org_id, existing.tag_ids, existing.owner_id)
        return timeblock_id

    async def add_exception(self, actor: Identity, timeblock_id: str, exception_date: int) -> Timeblock:
        """Skip the occurrence on the UTC day containing ``exception_date``."""
        existing = await self._get_owned(actor, timeblock_id)
        self._require_recurring(existing)

        day = utc_midnight(exception_date)
        if day in existing.exception_dates:
            return existing

        updated = replace(
            existing,
            exception_dates=existing.exception_dates + [day],
            updated_at=self._clock(),
        )
        saved = await self._timeblock_repo.update(updated)
        await self._trigger.recalculate_for_responder(saved.org_id, saved.tag_ids, saved.owner_id)
        return saved

    async def remove_exception(self, actor: Identity, timeblock_id: str, exception_date: int) -> Timeblock:
        """Restore the occurrence on the UTC day containing ``exception_date``."""
        existing = await self._get_owned(actor, timeblock_id)
        self._require_recurring(existing)

        day = utc_midnight(exception_date)
        if day not in existing.exception_dates:
            return existing

        updated = replace(
            existing,
            exception_dates=[d for d in existing.exception_dates if d != day],
            updated_at=self._clock(),
        )
        saved = await self._timeblock_repo.update(updated)
        await self._trigger.recalculate_for_responder(saved.org_id, saved.tag_ids, saved.owner_id)
        return saved

    async def _get_owned(self, actor: Identity, timeblock_id: str) -> Timeblock:
        timeblock = await self._timeblock_repo.get(timeblock_id)
        if timeblock is None:
            raise ResourceNotFoundException("Timeblock", timeblock_id)
        if timeblock.org_id != actor.org_id:
            raise PermissionDeniedException("Not authorized to modify this timeblock")
        if timeblock.owner_id != actor.user_id:
            raise PermissionDeniedException("Can only modify your own timeblocks")
        return timeblock

    @staticmethod
    def _require_recurring(timeblock: Timeblock) -> None:
        if not timeblock.is_recurring:
            raise NotRecurringException(timeblock.id)

    async def _validate_tags(self, org_id: str, tag_ids: List[str]) -> None:
        tags = await self._tag_repo.get_many(tag_ids)
        for tag_id in tag_ids:
            tag = tags.get(tag_id)
            if tag is None:
                raise ResourceNotFoundException("Tag", tag_id)
            if tag.org_id != org_id:
                raise PermissionDeniedException(f"Tag with ID {tag_id} not accessible")


class TagService:
    """
    Service for tag mutations.

    Changing a tag's answer mode or response time, or deleting it,
    recalculates every open record that references it.
    """

    def __init__(
        self,
        tag_repository: ITagRepository,
        timeblock_repository: ITimeblockRepository,
        recalculation_trigger: IRecalculationTrigger,
        permission_provider: Optional[IPermissionProvider] = None,
        clock: Callable[[], int] = now_ms
    ):
        self._tag_repo = tag_repository
        self._timeblock_repo = timeblock_repository
        self._trigger = recalculation_trigger
        self._permissions = permission_provider
        self._clock = clock

    async def create_tag(self, actor: Identity, data: TagCreateDTO) -> Tag:
        """Create a tag; names are unique within an organization."""
        if await self._tag_repo.get_by_name(actor.org_id, data.name) is not None:
            raise ValidationException("A tag with this name already exists", {"name": data.name})

        tag = Tag(
            id=str(uuid4()),
            org_id=actor.org_id,
            name=data.name,
            description=data.description,
            color=data.color,
            answer_mode=data.answer_mode,
            response_time_minutes=data.response_time_minutes,
            created_by=actor.user_id,
            updated_at=self._clock(),
        )
        return await self._tag_repo.create(tag)

    async def update_tag(self, actor: Identity, tag_id: str, data: TagUpdateDTO) -> Tag:
        """Update a tag and recalculate dependents when its answer policy changed."""
        existing = await self._get_in_org(actor, tag_id)
        await self._require_permission(actor, existing, PermissionLevel.EDIT)

        if data.name and data.name != existing.name:
            if await self._tag_repo.get_by_name(actor.org_id, data.name) is not None:
                raise ValidationException("A tag with this name already exists", {"name": data.name})

        changes = {key: value for key, value in data.model_dump(exclude_unset=True).items()
                   if value is not None}
        # replace() re-validates: on-demand tags still need a response time
        updated = replace(existing, **changes, updated_at=self._clock())
        saved = await self._tag_repo.update(updated)

        if data.affects_deadlines:
            logger.info("Tag answer policy changed", extra={"tag_id": tag_id})
            await self._trigger.recalculate_for_tags(actor.org_id, [tag_id])
        return saved

    async def delete_tag(self, actor: Identity, tag_id: str) -> None:
        """Delete a tag no timeblock references and recalculate records that used it."""
        existing = await self._get_in_org(actor, tag_id)
        await self._require_permission(actor, existing, PermissionLevel.MANAGE)

        in_use = await self._timeblock_repo.count_with_tag(actor.org_id, tag_id)
        if in_use:
            raise TagInUseException(tag_id, in_use)

        await self._tag_repo.delete(tag_id)
        logger.info("Tag deleted", extra={"tag_id": tag_id})
        await self._trigger.recalculate_for_tags(actor.org_id, [tag_id])

    async def _get_in_org(self, actor: Identity, tag_id: str) -> Tag:
        tag = await self._tag_repo.get(tag_id)
        if tag is None or tag.org_id != actor.org_id:
            raise ResourceNotFoundException("Tag", tag_id)
        return tag

    async def _require_permission(self, actor: Identity, tag: Tag, level: str) -> None:
        if tag.created_by == actor.user_id or actor.is_admin:
            return
        if self._permissions is not None and await self._permissions.is_permitted(
            actor, ResourceType.TAGS, tag.id, level
        ):
            return
        raise PermissionDeniedException(f"You don't have {level} permission on this tag")
