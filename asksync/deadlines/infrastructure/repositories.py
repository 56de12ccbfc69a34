"""
Deadline Infrastructure Repositories
====================================

Concrete implementations of the record repository interface using
SQLAlchemy.

Full sweeps page through open records with a keyset cursor on ``id``,
which stays stable while earlier pages are being rewritten.
"""

from abc import abstractmethod
from typing import List, Optional, Type

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from asksync.config import NON_TERMINAL_STATUSES, RecordKind
from asksync.core import RepositoryException
from asksync.deadlines.application.services import IDeadlineRecordRepository
from asksync.deadlines.domain import DeadlineRecord, Page
from asksync.deadlines.infrastructure.models import (
    DeadlineColumnsMixin,
    EmailAttentionItemModel,
    QuestionModel,
)


class _SQLAlchemyRecordRepository(IDeadlineRecordRepository):
    """Shared persistence logic for deadline-bearing tables."""

    model: Type[DeadlineColumnsMixin]
    kind: str

    def __init__(self, session: AsyncSession):
        self._session = session

    @abstractmethod
    def _responders(self, model) -> List[str]:
        """Candidate responder IDs of a row."""

    def _to_domain(self, model) -> DeadlineRecord:
        return DeadlineRecord(
            id=model.id,
            kind=self.kind,
            org_id=model.org_id,
            status=model.status,
            title=model.title,
            tag_ids=list(model.tag_ids or []),
            responder_ids=self._responders(model),
            expected_answer_time=model.expected_answer_time,
            is_overdue=model.is_overdue,
            notified_at=model.notified_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _open(self):
        return self.model.status.in_(NON_TERMINAL_STATUSES[self.kind])

    async def get(self, record_id: str) -> Optional[DeadlineRecord]:
        model = await self._session.get(self.model, record_id)
        return self._to_domain(model) if model else None

    async def list_open_page(self, cursor: Optional[str], limit: int) -> Page[DeadlineRecord]:
        stmt = select(self.model).where(self._open())
        if cursor is not None:
            stmt = stmt.where(self.model.id > cursor)
        # One extra row tells whether another page exists
        stmt = stmt.order_by(self.model.id.asc()).limit(limit + 1)

        result = await self._session.execute(stmt)
        rows = list(result.scalars().all())

        has_more = len(rows) > limit
        rows = rows[:limit]
        return Page(
            items=[self._to_domain(m) for m in rows],
            next_cursor=rows[-1].id if has_more else None,
        )

    async def _list_open(self, *conditions) -> List[DeadlineRecord]:
        stmt = select(self.model).where(and_(self._open(), *conditions)).order_by(self.model.id.asc())
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_open_with_tags(self, org_id: str, tag_ids: List[str]) -> List[DeadlineRecord]:
        wanted = set(tag_ids)
        # Tag lists are JSON; containment is checked in memory
        records = await self._list_open(self.model.org_id == org_id)
        return [r for r in records if wanted.intersection(r.tag_ids)]

    async def list_open_with_tags_and_responder(
        self,
        org_id: str,
        tag_ids: List[str],
        responder_id: str
    ) -> List[DeadlineRecord]:
        return [
            r for r in await self.list_open_with_tags(org_id, tag_ids)
            if responder_id in r.responder_ids
        ]

    async def _update(self, record_id: str, **values) -> None:
        result = await self._session.execute(
            update(self.model).where(self.model.id == record_id).values(**values)
        )
        if result.rowcount == 0:
            raise RepositoryException(f"{self.kind} {record_id} not found")
        await self._session.flush()

    async def save_deadline(self, record: DeadlineRecord) -> None:
        await self._update(
            record.id,
            expected_answer_time=record.expected_answer_time,
            is_overdue=record.is_overdue,
            updated_at=record.updated_at,
        )

    async def mark_overdue(self, record_id: str) -> None:
        await self._update(record_id, is_overdue=True)

    async def mark_notified(self, record_id: str, notified_at: int) -> None:
        await self._update(record_id, notified_at=notified_at)


class SQLAlchemyQuestionRepository(_SQLAlchemyRecordRepository):
    """Questions; responders are the assignees."""

    model = QuestionModel
    kind = RecordKind.QUESTION

    def _responders(self, model: QuestionModel) -> List[str]:
        return list(model.assignee_ids or [])


class SQLAlchemyEmailAttentionItemRepository(_SQLAlchemyRecordRepository):
    """Email attention items; the mailbox owner is the responder."""

    model = EmailAttentionItemModel
    kind = RecordKind.EMAIL_ATTENTION_ITEM

    def _responders(self, model: EmailAttentionItemModel) -> List[str]:
        return [model.user_id]

    async def list_open_with_tags_and_responder(
        self,
        org_id: str,
        tag_ids: List[str],
        responder_id: str
    ) -> List[DeadlineRecord]:
        wanted = set(tag_ids)
        records = await self._list_open(
            EmailAttentionItemModel.org_id == org_id,
            EmailAttentionItemModel.user_id == responder_id,
        )
        return [r for r in records if wanted.intersection(r.tag_ids)]


def build_record_repositories(session: AsyncSession) -> dict:
    """Repositories for every record kind, keyed by kind."""
    return {
        RecordKind.QUESTION: SQLAlchemyQuestionRepository(session),
        RecordKind.EMAIL_ATTENTION_ITEM: SQLAlchemyEmailAttentionItemRepository(session),
    }
