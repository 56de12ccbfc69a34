import pytest

from asksync.availability.domain import Identity
from asksync.availability.infrastructure import (
    SQLAlchemyPermissionProvider, SQLAlchemyTagRepository, SQLAlchemyTimeblockRepository,
)
from asksync.availability.infrastructure.models import PermissionModel
from asksync.config import (
    HOUR_MS, AnswerMode, PermissionLevel, QuestionStatus, RecordKind, RecurrenceRule, ResourceType, UserRole,
)
from asksync.core import RepositoryException
from asksync.core.clock import now_ms
from asksync.deadlines.application import StaticPolicyProvider
from asksync.deadlines.domain import DeadlinePolicy, ExpectedAnswer
from asksync.deadlines.infrastructure import (
    EmailAttentionItemModel, QuestionModel,
    SQLAlchemyEmailAttentionItemRepository, SQLAlchemyQuestionRepository,
)
from asksync.deadlines.infrastructure.repositories import _SQLAlchemyRecordRepository
from asksync.deadlines.interfaces import build_recalculation_service
from asksync.infrastructure.database import close_database, create_tables, get_session_maker, init_database

from tests.helpers import MONDAY, ORG, QueueContinuationScheduler, make_tag, make_timeblock


@pytest.fixture
async def session():
    init_database("sqlite+aiosqlite://")
    await create_tables()
    async with get_session_maker()() as session:
        yield session
    await close_database()


def question(id, status=QuestionStatus.PENDING, tag_ids=("A",), assignee_ids=("alice",), **kwargs):
    return QuestionModel(
        id=id, org_id=kwargs.pop("org_id", ORG), status=status, title=f"Question {id}",
        tag_ids=list(tag_ids), assignee_ids=list(assignee_ids), **kwargs
    )


def grant(id, resource_id, grant_type="user", permission=PermissionLevel.VIEW, **kwargs):
    return PermissionModel(
        id=id, org_id=ORG, resource_type=ResourceType.TIMEBLOCKS, resource_id=resource_id,
        grant_type=grant_type, permission=permission, **kwargs
    )


# ========== Timeblocks ==========

@pytest.mark.asyncio
async def test_timeblock_round_trip(session):
    repo = SQLAlchemyTimeblockRepository(session)
    block = make_timeblock(
        recurrence_rule=RecurrenceRule.WEEKDAYS,
        exception_dates=[MONDAY + 86400000],
        tag_ids=["A", "B"],
        title="Support rota",
    )

    await repo.create(block)
    loaded = await repo.get(block.id)

    assert loaded == block
    assert await repo.get("missing") is None


@pytest.mark.asyncio
async def test_timeblock_listing_by_kind_and_bound(session):
    repo = SQLAlchemyTimeblockRepository(session)
    await repo.create(make_timeblock(id="early", start=MONDAY))
    await repo.create(make_timeblock(id="late", start=MONDAY + 10 * HOUR_MS))
    await repo.create(make_timeblock(id="weekly", start=MONDAY, recurrence_rule=RecurrenceRule.WEEKLY))
    await repo.create(make_timeblock(id="bobs", start=MONDAY, owner_id="bob"))

    one_off = await repo.list_one_off_starting_before(ORG, "alice", MONDAY + 5 * HOUR_MS)
    recurring = await repo.list_recurring(ORG, "alice")

    assert [tb.id for tb in one_off] == ["early"]
    assert [tb.id for tb in recurring] == ["weekly"]
    assert await repo.list_recurring("org-2", "alice") == []


@pytest.mark.asyncio
async def test_timeblock_update_and_delete(session):
    repo = SQLAlchemyTimeblockRepository(session)
    block = make_timeblock(recurrence_rule=RecurrenceRule.DAILY, tag_ids=["A"])
    await repo.create(block)
    await repo.create(make_timeblock(id="other", tag_ids=["A", "B"]))

    block.exception_dates.append(MONDAY)
    block.tag_ids = ["B"]
    await repo.update(block)

    loaded = await repo.get(block.id)
    assert loaded.exception_dates == [MONDAY]
    assert await repo.count_with_tag(ORG, "A") == 1
    assert await repo.count_with_tag(ORG, "B") == 2

    await repo.delete(block.id)
    assert await repo.get(block.id) is None
    assert await repo.count_with_tag(ORG, "B") == 1


@pytest.mark.asyncio
async def test_updating_missing_timeblock_fails(session):
    with pytest.raises(RepositoryException):
        await SQLAlchemyTimeblockRepository(session).update(make_timeblock(id="ghost"))


# ========== Tags ==========

@pytest.mark.asyncio
async def test_tag_repository(session):
    repo = SQLAlchemyTagRepository(session)
    await repo.create(make_tag("A", minutes=30, name="billing"))
    await repo.create(make_tag("B", AnswerMode.SCHEDULED, name="deploys"))

    found = await repo.get_many(["A", "B", "missing", "A"])
    assert set(found) == {"A", "B"}
    assert found["B"].is_scheduled
    assert await repo.get_many([]) == {}

    assert (await repo.get_by_name(ORG, "billing")).id == "A"
    assert await repo.get_by_name("org-2", "billing") is None

    tag = await repo.get("A")
    tag.response_time_minutes = 10
    await repo.update(tag)
    assert (await repo.get("A")).response_time_minutes == 10

    await repo.delete("B")
    assert await repo.get("B") is None


# ========== Permissions ==========

@pytest.mark.asyncio
async def test_permission_grants(session):
    session.add_all([
        grant("g1", "tb-user", user_id="bob"),
        grant("g2", "tb-group", grant_type="group", group_id="oncall", permission=PermissionLevel.EDIT),
        grant("g3", "tb-all", grant_type="all"),
        grant("g4", "tb-carol", user_id="carol", permission=PermissionLevel.MANAGE),
    ])
    await session.flush()
    provider = SQLAlchemyPermissionProvider(session)
    bob = Identity(user_id="bob", org_id=ORG, group_ids=("oncall",))

    viewable = await provider.permitted_resource_ids(bob, ResourceType.TIMEBLOCKS, PermissionLevel.VIEW)
    editable = await provider.permitted_resource_ids(bob, ResourceType.TIMEBLOCKS, PermissionLevel.EDIT)

    assert viewable == {"tb-user", "tb-group", "tb-all"}
    assert editable == {"tb-group"}
    assert await provider.is_permitted(bob, ResourceType.TIMEBLOCKS, "tb-group", PermissionLevel.EDIT)
    assert not await provider.is_permitted(bob, ResourceType.TIMEBLOCKS, "tb-user", PermissionLevel.EDIT)
    assert not await provider.is_permitted(bob, ResourceType.TIMEBLOCKS, "tb-carol", PermissionLevel.VIEW)
    assert not await provider.is_permitted(
        Identity(user_id="bob", org_id="org-2"), ResourceType.TIMEBLOCKS, "tb-all", PermissionLevel.VIEW
    )

    admin = Identity(user_id="root", org_id=ORG, role=UserRole.ADMIN)
    assert "anything" in await provider.permitted_resource_ids(admin, ResourceType.TIMEBLOCKS, PermissionLevel.MANAGE)


@pytest.mark.asyncio
async def test_decorate_with_grants(session):
    session.add_all([
        grant("g1", "tb-1", user_id="bob", permission=PermissionLevel.EDIT),
        grant("g2", "tb-1", grant_type="all"),
    ])
    await session.flush()
    provider = SQLAlchemyPermissionProvider(session)
    block = make_timeblock()

    as_bob = await provider.decorate_with_grants(Identity(user_id="bob", org_id=ORG), ResourceType.TIMEBLOCKS, [block])
    as_alice = await provider.decorate_with_grants(Identity(user_id="alice", org_id=ORG), ResourceType.TIMEBLOCKS, [block])

    assert len(as_bob[0].permissions) == 2
    assert as_bob[0].can_edit and not as_bob[0].can_manage
    assert as_alice[0].can_edit and as_alice[0].can_manage
    assert await provider.decorate_with_grants(Identity(user_id="bob", org_id=ORG), ResourceType.TIMEBLOCKS, []) == []


# ========== Records ==========

@pytest.mark.asyncio
async def test_open_records_are_paged_by_id(session):
    session.add_all([question(f"q{i}") for i in range(5)] + [question("q9", status=QuestionStatus.ANSWERED)])
    await session.flush()
    repo = SQLAlchemyQuestionRepository(session)

    first = await repo.list_open_page(None, 2)
    second = await repo.list_open_page(first.next_cursor, 2)
    third = await repo.list_open_page(second.next_cursor, 2)

    assert [r.id for r in first.items] == ["q0", "q1"]
    assert first.has_more and first.next_cursor == "q1"
    assert [r.id for r in second.items] == ["q2", "q3"]
    assert [r.id for r in third.items] == ["q4"]
    assert not third.has_more


@pytest.mark.asyncio
async def test_records_filtered_by_tags_and_responder(session):
    session.add_all([
        question("q1", tag_ids=["A"], assignee_ids=["alice"]),
        question("q2", tag_ids=["B"], assignee_ids=["alice", "bob"]),
        question("q3", tag_ids=["A", "B"], assignee_ids=["bob"]),
        question("q4", status=QuestionStatus.RESOLVED, tag_ids=["A"]),
        EmailAttentionItemModel(id="e1", org_id=ORG, status="pending", tag_ids=["A"], user_id="bob"),
        EmailAttentionItemModel(id="e2", org_id=ORG, status="pending", tag_ids=["A"], user_id="alice"),
        question("q5", tag_ids=["A"], assignee_ids=["bob"], org_id="org-2"),
        EmailAttentionItemModel(id="e3", org_id="org-2", status="pending", tag_ids=["A"], user_id="bob"),
    ])
    await session.flush()
    questions = SQLAlchemyQuestionRepository(session)
    emails = SQLAlchemyEmailAttentionItemRepository(session)

    assert [r.id for r in await questions.list_open_with_tags(ORG, ["A"])] == ["q1", "q3"]
    assert [r.id for r in await questions.list_open_with_tags_and_responder(ORG, ["A", "B"], "bob")] == ["q2", "q3"]
    assert [r.id for r in await questions.list_open_with_tags("org-2", ["A"])] == ["q5"]
    assert [r.id for r in await emails.list_open_with_tags_and_responder(ORG, ["A"], "bob")] == ["e1"]
    assert [r.id for r in await emails.list_open_with_tags_and_responder("org-2", ["A"], "bob")] == ["e3"]
    assert (await emails.get("e2")).responder_ids == ["alice"]


@pytest.mark.asyncio
async def test_deadline_fields_are_written(session):
    session.add(question("q1"))
    await session.flush()
    repo = SQLAlchemyQuestionRepository(session)

    record = await repo.get("q1")
    record.apply_deadline(ExpectedAnswer(MONDAY, MONDAY + HOUR_MS))
    await repo.save_deadline(record)
    await repo.mark_notified("q1", MONDAY + HOUR_MS)

    stored = await repo.get("q1")
    assert stored.expected_answer_time == MONDAY
    assert stored.is_overdue is True
    assert stored.updated_at == MONDAY + HOUR_MS
    assert stored.notified_at == MONDAY + HOUR_MS

    with pytest.raises(RepositoryException):
        await repo.mark_overdue("missing")


@pytest.mark.asyncio
async def test_full_sweep_against_database(session):
    await SQLAlchemyTagRepository(session).create(make_tag("A", minutes=60))
    session.add_all([question(f"q{i}") for i in range(3)])
    await session.flush()

    scheduler = QueueContinuationScheduler()
    service = build_recalculation_service(
        session, StaticPolicyProvider(DeadlinePolicy(batch_size=2)), scheduler
    )
    before = now_ms()

    first = await service.run_full_sweep(RecordKind.QUESTION)
    kind, cursor = scheduler.queue.pop(0)
    second = await service.run_full_sweep(kind, cursor)

    assert (first.processed, second.processed) == (2, 1)
    assert cursor == "q1"
    assert scheduler.queue == []

    for record_id in ("q0", "q1", "q2"):
        stored = await SQLAlchemyQuestionRepository(session).get(record_id)
        assert before + HOUR_MS <= stored.expected_answer_time <= now_ms() + HOUR_MS
        assert stored.is_overdue is False


def test_record_repository_must_name_its_responders():
    class QuestionsWithoutResponders(_SQLAlchemyRecordRepository):
        model = QuestionModel
        kind = RecordKind.QUESTION

    with pytest.raises(TypeError):
        QuestionsWithoutResponders(None)
