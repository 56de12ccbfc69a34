import pytest

from asksync.availability.domain import RecurrenceExpander, utc_midnight, utc_weekday
from asksync.config import DAY_MS, HOUR_MS, MINUTE_MS, RecurrenceRule
from asksync.core import ValidationException

from tests.helpers import MONDAY, make_timeblock

WEDNESDAY = MONDAY + 2 * DAY_MS
NEXT_MONDAY = MONDAY + 7 * DAY_MS


def weekly_monday(**kwargs):
    return make_timeblock(
        start=MONDAY + 9 * HOUR_MS,
        end=MONDAY + 10 * HOUR_MS,
        recurrence_rule=RecurrenceRule.WEEKLY,
        tag_ids=["T"],
        **kwargs
    )


def test_utc_helpers():
    assert utc_weekday(MONDAY) == 0
    assert utc_weekday(MONDAY + 5 * DAY_MS + 23 * HOUR_MS) == 5
    assert utc_midnight(MONDAY + 13 * HOUR_MS + 7) == MONDAY


def test_weekly_monday_not_in_wednesday_to_sunday():
    template = weekly_monday()

    assert RecurrenceExpander.matches_range(template, WEDNESDAY, NEXT_MONDAY) is False
    assert RecurrenceExpander.expand(template, WEDNESDAY, NEXT_MONDAY) == []


def test_weekly_monday_found_when_range_reaches_next_monday():
    template = weekly_monday()
    range_end = NEXT_MONDAY + DAY_MS - 1

    assert RecurrenceExpander.matches_range(template, WEDNESDAY, range_end) is True

    occurrences = RecurrenceExpander.expand(template, WEDNESDAY, range_end)
    assert len(occurrences) == 1
    assert occurrences[0].start_time == NEXT_MONDAY + 9 * HOUR_MS
    assert occurrences[0].end_time == NEXT_MONDAY + 10 * HOUR_MS
    assert occurrences[0].tag_ids == ["T"]
    assert occurrences[0].id == template.id


@pytest.mark.parametrize("rule,exception_day,window_days,expected_days", [
    (RecurrenceRule.DAILY, 1, 7, [0, 2, 3, 4, 5, 6]),
    (RecurrenceRule.WEEKLY, 7, 14, [0]),
    (RecurrenceRule.WEEKDAYS, 2, 7, [0, 1, 3, 4]),
])
def test_exception_dates_are_never_expanded(rule, exception_day, window_days, expected_days):
    template = make_timeblock(
        recurrence_rule=rule,
        exception_dates=[MONDAY + exception_day * DAY_MS],
    )

    occurrences = RecurrenceExpander.expand(template, MONDAY, MONDAY + window_days * DAY_MS)

    days = [(occ.start_time - MONDAY) // DAY_MS for occ in occurrences]
    assert days == expected_days
    assert all(occ.start_time % DAY_MS == 9 * HOUR_MS for occ in occurrences)


def test_exception_date_blocks_instant_match():
    template = make_timeblock(
        recurrence_rule=RecurrenceRule.DAILY,
        exception_dates=[MONDAY + DAY_MS],
    )

    assert RecurrenceExpander.matches_instant(template, MONDAY + 9 * HOUR_MS + 30 * MINUTE_MS)
    assert not RecurrenceExpander.matches_instant(template, MONDAY + DAY_MS + 9 * HOUR_MS + 30 * MINUTE_MS)


def test_weekdays_skip_weekend():
    template = make_timeblock(recurrence_rule=RecurrenceRule.WEEKDAYS)
    saturday = MONDAY + 5 * DAY_MS

    assert not RecurrenceExpander.matches_range(template, saturday, saturday + 2 * DAY_MS)
    assert RecurrenceExpander.matches_range(template, saturday, saturday + 3 * DAY_MS)


def test_occurrence_running_past_midnight_matches_next_day():
    template = make_timeblock(
        start=MONDAY + 22 * HOUR_MS,
        end=MONDAY + 26 * HOUR_MS,
        recurrence_rule=RecurrenceRule.WEEKLY,
    )
    tuesday_1am = MONDAY + DAY_MS + HOUR_MS

    assert RecurrenceExpander.matches_instant(template, tuesday_1am)
    assert not RecurrenceExpander.matches_instant(template, tuesday_1am + DAY_MS)


def test_instant_bounds_are_inclusive():
    template = make_timeblock(recurrence_rule=RecurrenceRule.DAILY)
    start = MONDAY + 3 * DAY_MS + 9 * HOUR_MS

    assert RecurrenceExpander.matches_instant(template, start)
    assert RecurrenceExpander.matches_instant(template, start + HOUR_MS)
    assert not RecurrenceExpander.matches_instant(template, start + HOUR_MS + 1)
    assert not RecurrenceExpander.matches_instant(template, start - 1)


def test_window_is_half_open_on_occurrence_starts():
    template = make_timeblock(recurrence_rule=RecurrenceRule.DAILY)
    start = MONDAY + 9 * HOUR_MS

    assert RecurrenceExpander.expand(template, start, start + 1)
    assert not RecurrenceExpander.expand(template, start - HOUR_MS, start)
    assert not RecurrenceExpander.matches_range(template, start - HOUR_MS, start)


def test_daily_shortcut_respects_exceptions():
    tuesday = MONDAY + DAY_MS
    plain = make_timeblock(recurrence_rule=RecurrenceRule.DAILY)
    excepted = make_timeblock(recurrence_rule=RecurrenceRule.DAILY, exception_dates=[tuesday])

    assert RecurrenceExpander.matches_range(plain, tuesday, tuesday + DAY_MS)
    assert not RecurrenceExpander.matches_range(excepted, tuesday, tuesday + DAY_MS)


def test_one_off_timeblock_overlap():
    block = make_timeblock(start=MONDAY + 9 * HOUR_MS, end=MONDAY + 10 * HOUR_MS)

    assert RecurrenceExpander.expand(block, MONDAY, MONDAY + 9 * HOUR_MS) == [block]
    assert RecurrenceExpander.expand(block, MONDAY + 10 * HOUR_MS, MONDAY + DAY_MS) == [block]
    assert RecurrenceExpander.expand(block, MONDAY + 11 * HOUR_MS, MONDAY + DAY_MS) == []
    assert RecurrenceExpander.matches_instant(block, MONDAY + 9 * HOUR_MS + 1)
    assert not RecurrenceExpander.matches_instant(block, MONDAY + 11 * HOUR_MS)


TEMPLATES = [
    make_timeblock(id="daily", recurrence_rule=RecurrenceRule.DAILY),
    make_timeblock(id="daily-exc", recurrence_rule=RecurrenceRule.DAILY,
                   exception_dates=[MONDAY + 2 * DAY_MS, MONDAY + 3 * DAY_MS]),
    make_timeblock(id="weekly", start=MONDAY + 2 * DAY_MS + 14 * HOUR_MS, recurrence_rule=RecurrenceRule.WEEKLY),
    make_timeblock(id="weekdays", start=MONDAY + 17 * HOUR_MS, end=MONDAY + 19 * HOUR_MS,
                   recurrence_rule=RecurrenceRule.WEEKDAYS, exception_dates=[MONDAY + 4 * DAY_MS]),
    make_timeblock(id="overnight", start=MONDAY + 23 * HOUR_MS, end=MONDAY + 27 * HOUR_MS,
                   recurrence_rule=RecurrenceRule.WEEKDAYS),
    make_timeblock(id="one-off", start=MONDAY + DAY_MS + 12 * HOUR_MS, end=MONDAY + DAY_MS + 15 * HOUR_MS),
]


@pytest.mark.parametrize("template", TEMPLATES, ids=lambda t: t.id)
def test_matches_range_agrees_with_expand(template):
    lengths = [30 * MINUTE_MS, 5 * HOUR_MS, DAY_MS, 3 * DAY_MS + HOUR_MS]
    for offset in range(0, 14 * DAY_MS, 5 * HOUR_MS):
        start = MONDAY + offset
        for length in lengths:
            expected = bool(RecurrenceExpander.expand(template, start, start + length))
            assert RecurrenceExpander.matches_range(template, start, start + length) is expected, (offset, length)


@pytest.mark.parametrize("template", TEMPLATES, ids=lambda t: t.id)
def test_matches_instant_agrees_with_expand(template):
    for offset in range(0, 14 * DAY_MS, 45 * MINUTE_MS):
        instant = MONDAY + offset
        occurrences = RecurrenceExpander.expand(template, instant - template.duration_ms, instant + 1)
        expected = any(occ.start_time <= instant <= occ.end_time for occ in occurrences)
        assert RecurrenceExpander.matches_instant(template, instant) is expected, offset


def test_timeblock_validation():
    with pytest.raises(ValidationException):
        make_timeblock(start=MONDAY, end=MONDAY)
    with pytest.raises(ValidationException):
        make_timeblock(recurrence_rule="FREQ=MONTHLY")
