import pytest

from asksync.availability.application import AvailabilityQueryService
from asksync.config import AnswerMode, DAY_MS, HOUR_MS, MINUTE_MS, RecurrenceRule
from asksync.deadlines.application import DeadlineCalculator, StaticPolicyProvider
from asksync.deadlines.domain import DeadlinePolicy

from tests.helpers import (
    MONDAY, ORG, FakeTagRepository, FakeTimeblockRepository, make_tag, make_timeblock,
)

NOW = MONDAY + 8 * HOUR_MS


def build(timeblocks=(), tags=(), policy=None):
    timeblock_repo = FakeTimeblockRepository(timeblocks)
    tag_repo = FakeTagRepository(tags)
    calculator = DeadlineCalculator(
        AvailabilityQueryService(timeblock_repo),
        tag_repo,
        StaticPolicyProvider(policy or DeadlinePolicy()),
    )
    return calculator, timeblock_repo, tag_repo


TAGS = [
    make_tag("A", AnswerMode.ON_DEMAND, 30),
    make_tag("B", AnswerMode.SCHEDULED),
    make_tag("C", AnswerMode.SCHEDULED),
]


@pytest.mark.asyncio
async def test_most_urgent_tag_wins():
    calculator, _, _ = build(
        timeblocks=[make_timeblock(start=NOW + 10 * MINUTE_MS, tag_ids=["B"])],
        tags=TAGS,
    )

    result = await calculator.expected_answer_time(ORG, ["A", "B"], ["alice"], NOW)

    assert result == NOW + 10 * MINUTE_MS


@pytest.mark.asyncio
async def test_on_demand_beats_distant_availability():
    calculator, _, _ = build(
        timeblocks=[make_timeblock(start=NOW + 3 * HOUR_MS, tag_ids=["B"])],
        tags=TAGS,
    )

    assert await calculator.expected_answer_time(ORG, ["A", "B"], ["alice"], NOW) == NOW + 30 * MINUTE_MS


@pytest.mark.asyncio
async def test_empty_tag_set_uses_default():
    calculator, _, _ = build(tags=TAGS)

    assert await calculator.expected_answer_time(ORG, [], ["alice"], NOW) == NOW + DAY_MS


@pytest.mark.asyncio
async def test_unknown_tags_are_skipped():
    calculator, _, _ = build(tags=TAGS)

    assert await calculator.expected_answer_time(ORG, ["deleted"], ["alice"], NOW) == NOW + DAY_MS
    assert await calculator.expected_answer_time(ORG, ["deleted", "A"], ["alice"], NOW) == NOW + 30 * MINUTE_MS


@pytest.mark.asyncio
async def test_scheduled_tag_without_availability_uses_default():
    calculator, _, _ = build(
        timeblocks=[make_timeblock(start=NOW + 31 * DAY_MS, tag_ids=["B"])],
        tags=TAGS,
    )

    assert await calculator.expected_answer_time(ORG, ["B"], ["alice"], NOW) == NOW + DAY_MS


@pytest.mark.asyncio
async def test_untagged_availability_is_ignored():
    calculator, _, _ = build(
        timeblocks=[
            make_timeblock(id="other", start=NOW + HOUR_MS, tag_ids=["C"]),
            make_timeblock(id="mine", start=NOW + 5 * HOUR_MS, tag_ids=["B"]),
        ],
        tags=TAGS,
    )

    assert await calculator.expected_answer_time(ORG, ["B"], ["alice"], NOW) == NOW + 5 * HOUR_MS


@pytest.mark.asyncio
async def test_in_progress_occurrence_counts_until_its_end():
    calculator, _, _ = build(
        timeblocks=[make_timeblock(
            start=MONDAY + 7 * HOUR_MS,
            end=MONDAY + 9 * HOUR_MS,
            recurrence_rule=RecurrenceRule.DAILY,
            tag_ids=["B"],
        )],
        tags=TAGS,
    )

    assert await calculator.expected_answer_time(ORG, ["B"], ["alice"], NOW) == MONDAY + 9 * HOUR_MS


@pytest.mark.asyncio
async def test_earliest_responder_wins():
    calculator, _, _ = build(
        timeblocks=[
            make_timeblock(id="a", owner_id="alice", start=NOW + 3 * HOUR_MS, tag_ids=["B"]),
            make_timeblock(id="b", owner_id="bob", start=NOW + 2 * HOUR_MS, tag_ids=["B"]),
        ],
        tags=TAGS,
    )

    assert await calculator.expected_answer_time(ORG, ["B"], ["alice", "bob"], NOW) == NOW + 2 * HOUR_MS


@pytest.mark.asyncio
async def test_responder_starting_soon_beats_one_in_progress():
    calculator, _, _ = build(
        timeblocks=[
            make_timeblock(
                id="a", owner_id="alice",
                start=MONDAY + 7 * HOUR_MS, end=MONDAY + 9 * HOUR_MS,
                recurrence_rule=RecurrenceRule.DAILY, tag_ids=["B"],
            ),
            make_timeblock(
                id="b", owner_id="bob",
                start=NOW + 10 * MINUTE_MS, end=NOW + HOUR_MS, tag_ids=["B"],
            ),
        ],
        tags=TAGS,
    )

    assert await calculator.expected_answer_time(ORG, ["B"], ["alice", "bob"], NOW) == NOW + 10 * MINUTE_MS
    assert await calculator.expected_answer_time(ORG, ["B"], ["alice"], NOW) == NOW + HOUR_MS


@pytest.mark.asyncio
async def test_weekly_availability_next_week():
    calculator, _, _ = build(
        timeblocks=[make_timeblock(
            start=MONDAY + 7 * HOUR_MS,
            end=MONDAY + 7 * HOUR_MS + 30 * MINUTE_MS,
            recurrence_rule=RecurrenceRule.WEEKLY,
            tag_ids=["B"],
        )],
        tags=TAGS,
    )

    # Today's 07:00 slot already ended
    expected = MONDAY + 7 * DAY_MS + 7 * HOUR_MS
    assert await calculator.expected_answer_time(ORG, ["B"], ["alice"], NOW) == expected


@pytest.mark.asyncio
async def test_overrides_for_lookahead_and_default():
    calculator, _, _ = build(
        timeblocks=[make_timeblock(start=NOW + 2 * DAY_MS, tag_ids=["B"])],
        tags=TAGS,
    )

    result = await calculator.expected_answer_time(
        ORG, ["B"], ["alice"], NOW, lookahead_ms=DAY_MS, default_minutes=90
    )

    assert result == NOW + 90 * MINUTE_MS


@pytest.mark.asyncio
async def test_availability_is_fetched_once_per_responder():
    calculator, timeblock_repo, tag_repo = build(
        timeblocks=[make_timeblock(start=NOW + HOUR_MS, tag_ids=["B", "C"])],
        tags=TAGS,
    )

    result = await calculator.expected_answer_time(ORG, ["B", "C", "B"], ["alice", "alice"], NOW)

    assert result == NOW + HOUR_MS
    assert tag_repo.get_many_calls == 1
    assert len(timeblock_repo.one_off_calls) == 1


@pytest.mark.asyncio
async def test_policy_default_applies():
    calculator, _, _ = build(tags=TAGS, policy=DeadlinePolicy(default_response_minutes=120))

    assert await calculator.expected_answer_time(ORG, [], [], NOW) == NOW + 2 * HOUR_MS
