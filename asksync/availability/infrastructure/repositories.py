"""
Availability Infrastructure Repositories
========================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from asksync.availability.application.services import (
    ALL_RESOURCES,
    IPermissionProvider,
    ITagRepository,
    ITimeblockRepository,
    PermittedIds,
)
from asksync.availability.domain import DecoratedTimeblock, Identity, PermissionGrant, Tag, Timeblock
from asksync.availability.infrastructure.models import PermissionModel, TagModel, TimeblockModel
from asksync.config import PERMISSION_RANKS, PermissionLevel
from asksync.core import RepositoryException


def _timeblock_from_model(model: TimeblockModel) -> Timeblock:
    return Timeblock(
        id=model.id,
        org_id=model.org_id,
        owner_id=model.owner_id,
        title=model.title,
        description=model.description,
        start_time=model.start_time,
        end_time=model.end_time,
        timezone=model.timezone,
        recurrence_rule=model.recurrence_rule,
        exception_dates=list(model.exception_dates or []),
        tag_ids=list(model.tag_ids or []),
        source=model.source,
        external_id=model.external_id,
        color=model.color,
        updated_at=model.updated_at,
    )


def _tag_from_model(model: TagModel) -> Tag:
    return Tag(
        id=model.id,
        org_id=model.org_id,
        name=model.name,
        description=model.description,
        color=model.color,
        answer_mode=model.answer_mode,
        response_time_minutes=model.response_time_minutes,
        created_by=model.created_by,
        updated_at=model.updated_at,
    )


class SQLAlchemyTimeblockRepository(ITimeblockRepository):
    """
    SQLAlchemy implementation of the timeblock repository.

    One-off lookups use ``ix_timeblocks_org_owner_start``; recurring template
    lookups use ``ix_timeblocks_org_owner``.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, timeblock_id: str) -> Optional[Timeblock]:
        model = await self._session.get(TimeblockModel, timeblock_id)
        return _timeblock_from_model(model) if model else None

    async def list_one_off_starting_before(
        self,
        org_id: str,
        owner_id: str,
        start_bound: int
    ) -> List[Timeblock]:
        stmt = select(TimeblockModel).where(
            and_(
                TimeblockModel.org_id == org_id,
                TimeblockModel.owner_id == owner_id,
                TimeblockModel.start_time <= start_bound,
                TimeblockModel.recurrence_rule.is_(None),
            )
        )
        result = await self._session.execute(stmt)
        return [_timeblock_from_model(m) for m in result.scalars().all()]

    async def list_recurring(self, org_id: str, owner_id: str) -> List[Timeblock]:
        stmt = select(TimeblockModel).where(
            and_(
                TimeblockModel.org_id == org_id,
                TimeblockModel.owner_id == owner_id,
                TimeblockModel.recurrence_rule.is_not(None),
            )
        )
        result = await self._session.execute(stmt)
        return [_timeblock_from_model(m) for m in result.scalars().all()]

    async def create(self, timeblock: Timeblock) -> Timeblock:
        model = TimeblockModel(
            id=timeblock.id,
            org_id=timeblock.org_id,
            owner_id=timeblock.owner_id,
            title=timeblock.title,
            description=timeblock.description,
            start_time=timeblock.start_time,
            end_time=timeblock.end_time,
            timezone=timeblock.timezone,
            recurrence_rule=timeblock.recurrence_rule,
            exception_dates=list(timeblock.exception_dates),
            tag_ids=list(timeblock.tag_ids),
            source=timeblock.source,
            external_id=timeblock.external_id,
            color=timeblock.color,
            updated_at=timeblock.updated_at,
        )
        self._session.add(model)
        await self._session.flush()
        return timeblock

    async def update(self, timeblock: Timeblock) -> Timeblock:
        model = await self._session.get(TimeblockModel, timeblock.id)
        if not model:
            raise RepositoryException(f"Timeblock {timeblock.id} not found")

        model.title = timeblock.title
        model.description = timeblock.description
        model.start_time = timeblock.start_time
        model.end_time = timeblock.end_time
        model.timezone = timeblock.timezone
        model.recurrence_rule = timeblock.recurrence_rule
        # New lists so the JSON columns are marked dirty
        model.exception_dates = list(timeblock.exception_dates)
        model.tag_ids = list(timeblock.tag_ids)
        model.color = timeblock.color
        model.updated_at = timeblock.updated_at

        await self._session.flush()
        return timeblock

    async def delete(self, timeblock_id: str) -> None:
        await self._session.execute(delete(TimeblockModel).where(TimeblockModel.id == timeblock_id))
        await self._session.flush()

    async def count_with_tag(self, org_id: str, tag_id: str) -> int:
        # JSON containment differs per dialect; tag lists are small
        stmt = select(TimeblockModel.tag_ids).where(TimeblockModel.org_id == org_id)
        result = await self._session.execute(stmt)
        return sum(1 for tag_ids in result.scalars().all() if tag_id in (tag_ids or []))


class SQLAlchemyTagRepository(ITagRepository):
    """SQLAlchemy implementation of the tag repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, tag_id: str) -> Optional[Tag]:
        model = await self._session.get(TagModel, tag_id)
        return _tag_from_model(model) if model else None

    async def get_many(self, tag_ids: Iterable[str]) -> Dict[str, Tag]:
        ids = list(dict.fromkeys(tag_ids))
        if not ids:
            return {}
        result = await self._session.execute(select(TagModel).where(TagModel.id.in_(ids)))
        return {m.id: _tag_from_model(m) for m in result.scalars().all()}

    async def get_by_name(self, org_id: str, name: str) -> Optional[Tag]:
        stmt = select(TagModel).where(and_(TagModel.org_id == org_id, TagModel.name == name))
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _tag_from_model(model) if model else None

    async def create(self, tag: Tag) -> Tag:
        self._session.add(TagModel(
            id=tag.id,
            org_id=tag.org_id,
            name=tag.name,
            description=tag.description,
            color=tag.color,
            answer_mode=tag.answer_mode,
            response_time_minutes=tag.response_time_minutes,
            created_by=tag.created_by,
            updated_at=tag.updated_at,
        ))
        await self._session.flush()
        return tag

    async def update(self, tag: Tag) -> Tag:
        model = await self._session.get(TagModel, tag.id)
        if not model:
            raise RepositoryException(f"Tag {tag.id} not found")

        model.name = tag.name
        model.description = tag.description
        model.color = tag.color
        model.answer_mode = tag.answer_mode
        model.response_time_minutes = tag.response_time_minutes
        model.updated_at = tag.updated_at

        await self._session.flush()
        return tag

    async def delete(self, tag_id: str) -> None:
        await self._session.execute(delete(TagModel).where(TagModel.id == tag_id))
        await self._session.flush()


class SQLAlchemyPermissionProvider(IPermissionProvider):
    """
    Permission provider backed by the ``permissions`` grant table.

    A grant applies to the viewer when it targets everybody, the viewer's
    user id, or one of the viewer's groups. Organization admins hold every
    permission.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    def _applies_to(self, viewer: Identity):
        clauses = [
            PermissionModel.grant_type == "all",
            and_(PermissionModel.grant_type == "user", PermissionModel.user_id == viewer.user_id),
        ]
        if viewer.group_ids:
            clauses.append(and_(
                PermissionModel.grant_type == "group",
                PermissionModel.group_id.in_(list(viewer.group_ids)),
            ))
        return and_(PermissionModel.org_id == viewer.org_id, or_(*clauses))

    @staticmethod
    def _levels_at_least(level: str) -> List[str]:
        rank = PERMISSION_RANKS[level]
        return [name for name, r in PERMISSION_RANKS.items() if r >= rank]

    async def is_permitted(self, viewer: Identity, resource_type: str, resource_id: str, level: str) -> bool:
        if viewer.is_admin:
            return True
        stmt = select(PermissionModel.id).where(
            and_(
                self._applies_to(viewer),
                PermissionModel.resource_type == resource_type,
                PermissionModel.resource_id == resource_id,
                PermissionModel.permission.in_(self._levels_at_least(level)),
            )
        ).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def permitted_resource_ids(self, viewer: Identity, resource_type: str, level: str) -> PermittedIds:
        if viewer.is_admin:
            return ALL_RESOURCES
        stmt = select(PermissionModel.resource_id).where(
            and_(
                self._applies_to(viewer),
                PermissionModel.resource_type == resource_type,
                PermissionModel.permission.in_(self._levels_at_least(level)),
            )
        )
        result = await self._session.execute(stmt)
        return set(result.scalars().all())

    async def decorate_with_grants(
        self,
        viewer: Identity,
        resource_type: str,
        timeblocks: List[Timeblock]
    ) -> List[DecoratedTimeblock]:
        if not timeblocks:
            return []

        stmt = select(PermissionModel).where(
            and_(
                PermissionModel.org_id == viewer.org_id,
                PermissionModel.resource_type == resource_type,
                PermissionModel.resource_id.in_([tb.id for tb in timeblocks]),
            )
        )
        result = await self._session.execute(stmt)

        grants_by_resource: Dict[str, List[PermissionModel]] = defaultdict(list)
        for grant in result.scalars().all():
            grants_by_resource[grant.resource_id].append(grant)

        decorated = []
        for tb in timeblocks:
            grants = grants_by_resource.get(tb.id, [])
            best = max(
                (PERMISSION_RANKS.get(g.permission, 0) for g in grants if self._grant_matches(g, viewer)),
                default=0,
            )
            full_control = viewer.is_admin or tb.owner_id == viewer.user_id
            decorated.append(DecoratedTimeblock(
                timeblock=tb,
                permissions=[
                    PermissionGrant(
                        id=g.id,
                        permission=g.permission,
                        grant_type=g.grant_type,
                        user_id=g.user_id,
                        group_id=g.group_id,
                        is_creator=g.is_creator,
                    )
                    for g in grants
                ],
                can_edit=full_control or best >= PERMISSION_RANKS[PermissionLevel.EDIT],
                can_manage=full_control or best >= PERMISSION_RANKS[PermissionLevel.MANAGE],
            ))
        return decorated

    @staticmethod
    def _grant_matches(grant: PermissionModel, viewer: Identity) -> bool:
        if grant.grant_type == "all":
            return True
        if grant.grant_type == "user":
            return grant.user_id == viewer.user_id
        return grant.group_id in viewer.group_ids
