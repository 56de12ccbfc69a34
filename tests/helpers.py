"""In-memory fakes and builders shared by the test suite."""

from typing import Dict, Iterable, List, Optional

from asksync.availability.application.services import (
    ALL_RESOURCES,
    IPermissionProvider,
    IRecalculationTrigger,
    ITagRepository,
    ITimeblockRepository,
)
from asksync.availability.domain import DecoratedTimeblock, Tag, Timeblock
from asksync.config import HOUR_MS, AnswerMode, RecordKind, QuestionStatus
from asksync.core import RepositoryException
from asksync.deadlines.application.services import (
    IContinuationScheduler,
    IDeadlineRecordRepository,
    IOverdueNotifier,
)
from asksync.deadlines.domain import DeadlineRecord, Page

# Monday 2024-01-01 00:00 UTC
MONDAY = 1704067200000
ORG = "org-1"


def make_timeblock(
    id: str = "tb-1",
    start: int = MONDAY + 9 * HOUR_MS,
    end: Optional[int] = None,
    owner_id: str = "alice",
    **kwargs
) -> Timeblock:
    return Timeblock(
        id=id,
        org_id=kwargs.pop("org_id", ORG),
        owner_id=owner_id,
        start_time=start,
        end_time=end if end is not None else start + HOUR_MS,
        **kwargs
    )


def make_tag(id: str, answer_mode: str = AnswerMode.ON_DEMAND, minutes: Optional[int] = 60, **kwargs) -> Tag:
    return Tag(
        id=id,
        org_id=kwargs.pop("org_id", ORG),
        name=kwargs.pop("name", id),
        answer_mode=answer_mode,
        response_time_minutes=minutes if answer_mode == AnswerMode.ON_DEMAND else None,
        **kwargs
    )


def make_record(
    id: str,
    kind: str = RecordKind.QUESTION,
    status: str = QuestionStatus.PENDING,
    tag_ids: Iterable[str] = (),
    responder_ids: Iterable[str] = ("alice",),
    expected_answer_time: Optional[int] = None,
    **kwargs
) -> DeadlineRecord:
    return DeadlineRecord(
        id=id,
        kind=kind,
        org_id=kwargs.pop("org_id", ORG),
        status=status,
        tag_ids=list(tag_ids),
        responder_ids=list(responder_ids),
        expected_answer_time=expected_answer_time,
        **kwargs
    )


class FakeTimeblockRepository(ITimeblockRepository):
    def __init__(self, timeblocks: Iterable[Timeblock] = ()):
        self.items: Dict[str, Timeblock] = {tb.id: tb for tb in timeblocks}
        self.one_off_calls: List[int] = []

    async def get(self, timeblock_id):
        return self.items.get(timeblock_id)

    async def list_one_off_starting_before(self, org_id, owner_id, start_bound):
        self.one_off_calls.append(start_bound)
        return [
            tb for tb in self.items.values()
            if tb.org_id == org_id and tb.owner_id == owner_id
            and not tb.is_recurring and tb.start_time <= start_bound
        ]

    async def list_recurring(self, org_id, owner_id):
        return [
            tb for tb in self.items.values()
            if tb.org_id == org_id and tb.owner_id == owner_id and tb.is_recurring
        ]

    async def create(self, timeblock):
        self.items[timeblock.id] = timeblock
        return timeblock

    async def update(self, timeblock):
        self.items[timeblock.id] = timeblock
        return timeblock

    async def delete(self, timeblock_id):
        self.items.pop(timeblock_id, None)

    async def count_with_tag(self, org_id, tag_id):
        return sum(1 for tb in self.items.values() if tb.org_id == org_id and tag_id in tb.tag_ids)


class FakeTagRepository(ITagRepository):
    def __init__(self, tags: Iterable[Tag] = ()):
        self.items: Dict[str, Tag] = {t.id: t for t in tags}
        self.get_many_calls = 0

    async def get(self, tag_id):
        return self.items.get(tag_id)

    async def get_many(self, tag_ids):
        self.get_many_calls += 1
        return {t: self.items[t] for t in tag_ids if t in self.items}

    async def get_by_name(self, org_id, name):
        return next((t for t in self.items.values() if t.org_id == org_id and t.name == name), None)

    async def create(self, tag):
        self.items[tag.id] = tag
        return tag

    async def update(self, tag):
        self.items[tag.id] = tag
        return tag

    async def delete(self, tag_id):
        self.items.pop(tag_id, None)


class FakePermissionProvider(IPermissionProvider):
    def __init__(self, viewable: Optional[set] = None, admin_ids: Iterable[str] = ()):
        self.viewable = viewable or set()
        self.admin_ids = set(admin_ids)

    async def is_permitted(self, viewer, resource_type, resource_id, level):
        return viewer.user_id in self.admin_ids or resource_id in self.viewable

    async def permitted_resource_ids(self, viewer, resource_type, level):
        if viewer.user_id in self.admin_ids:
            return ALL_RESOURCES
        return set(self.viewable)

    async def decorate_with_grants(self, viewer, resource_type, timeblocks):
        return [DecoratedTimeblock(timeblock=tb) for tb in timeblocks]


class RecordingTrigger(IRecalculationTrigger):
    def __init__(self):
        self.tag_calls: List[tuple] = []
        self.responder_calls: List[tuple] = []

    async def recalculate_for_tags(self, org_id, tag_ids):
        self.tag_calls.append((org_id, list(tag_ids)))

    async def recalculate_for_responder(self, org_id, tag_ids, responder_id):
        self.responder_calls.append((org_id, sorted(tag_ids), responder_id))


class FakeRecordRepository(IDeadlineRecordRepository):
    def __init__(self, kind: str = RecordKind.QUESTION, records: Iterable[DeadlineRecord] = ()):
        self.kind = kind
        self.items: Dict[str, DeadlineRecord] = {r.id: r for r in records}
        self.saved: List[str] = []
        self.marked_overdue: List[str] = []
        self.notified: Dict[str, int] = {}
        self.fail_saves = False

    async def get(self, record_id):
        return self.items.get(record_id)

    def _open(self):
        return sorted((r for r in self.items.values() if not r.is_terminal), key=lambda r: r.id)

    async def list_open_page(self, cursor, limit):
        rows = [r for r in self._open() if cursor is None or r.id > cursor]
        page = rows[:limit]
        has_more = len(rows) > limit
        return Page(items=page, next_cursor=page[-1].id if has_more else None)

    async def list_open_with_tags(self, org_id, tag_ids):
        return [r for r in self._open() if r.org_id == org_id and set(tag_ids) & set(r.tag_ids)]

    async def list_open_with_tags_and_responder(self, org_id, tag_ids, responder_id):
        return [
            r for r in await self.list_open_with_tags(org_id, tag_ids)
            if responder_id in r.responder_ids
        ]

    async def save_deadline(self, record):
        if self.fail_saves:
            raise RepositoryException(f"{self.kind} {record.id} could not be saved")
        self.saved.append(record.id)
        self.items[record.id] = record

    async def mark_overdue(self, record_id):
        self.marked_overdue.append(record_id)
        self.items[record_id].is_overdue = True

    async def mark_notified(self, record_id, notified_at):
        self.notified[record_id] = notified_at
        self.items[record_id].notified_at = notified_at


class QueueContinuationScheduler(IContinuationScheduler):
    """Collects continuations so a test can drain them one by one."""

    def __init__(self):
        self.queue: List[tuple] = []
        self.scheduled: List[tuple] = []

    def schedule_continuation(self, kind, cursor):
        self.queue.append((kind, cursor))
        self.scheduled.append((kind, cursor))


class RecordingNotifier(IOverdueNotifier):
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: List[str] = []

    async def notify_overdue(self, record, now):
        self.sent.append(record.id)
        return self.succeed


class FixedClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


