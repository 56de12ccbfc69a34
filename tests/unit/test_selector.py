import pytest

from asksync.availability.domain import AvailabilitySelector, TimeWindow
from asksync.config import HOUR_MS, RecurrenceRule
from asksync.core import InvalidSelectorException, ValidationException

from tests.helpers import MONDAY, make_timeblock


def test_selector_rejects_both_instant_and_window():
    with pytest.raises(InvalidSelectorException):
        AvailabilitySelector(instant=MONDAY, window=TimeWindow(MONDAY, MONDAY + HOUR_MS))


def test_selector_rejects_neither():
    with pytest.raises(InvalidSelectorException) as exc_info:
        AvailabilitySelector()
    assert isinstance(exc_info.value, ValidationException)


def test_window_end_before_start():
    with pytest.raises(ValidationException):
        TimeWindow(MONDAY + HOUR_MS, MONDAY)


def test_start_time_bound():
    assert AvailabilitySelector.at(MONDAY).start_time_bound == MONDAY
    assert AvailabilitySelector.between(MONDAY, MONDAY + 5).start_time_bound == MONDAY + 5


def test_admits_uses_matchers():
    daily = make_timeblock(recurrence_rule=RecurrenceRule.DAILY)

    assert AvailabilitySelector.at(MONDAY + 9 * HOUR_MS + 1).admits(daily)
    assert not AvailabilitySelector.at(MONDAY + 12 * HOUR_MS).admits(daily)
    assert AvailabilitySelector.between(MONDAY + 10 * HOUR_MS, MONDAY + 34 * HOUR_MS).admits(daily)
    assert not AvailabilitySelector.between(MONDAY + 10 * HOUR_MS, MONDAY + 20 * HOUR_MS).admits(daily)
