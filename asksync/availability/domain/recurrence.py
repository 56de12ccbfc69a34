"""
Recurrence Expansion
====================

Pure functions turning recurring timeblock templates into concrete
occurrences, and point/range membership predicates that answer the same
question without materializing occurrences.

All calendar arithmetic uses UTC fields. There is no local-timezone or
daylight-saving adjustment: a 09:00 UTC template is 09:00 UTC every day.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Iterator, List

from asksync.availability.domain.entities import Timeblock
from asksync.config import DAY_MS, RecurrenceRule


def utc_midnight(timestamp_ms: int) -> int:
    """Truncate an epoch-ms timestamp to 00:00 UTC of the same day."""
    return timestamp_ms - timestamp_ms % DAY_MS


def utc_weekday(timestamp_ms: int) -> int:
    """Weekday of an epoch-ms timestamp in UTC (Monday == 0)."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).weekday()


class RecurrenceExpander:
    """
    Pure functions for recurrence calculations.

    Stateless utility class: expansion and the membership predicates share
    the same day rule, so ``matches_range`` is true exactly when ``expand``
    returns something for the same window.
    """

    @staticmethod
    def occurs_on(template: Timeblock, day_ms: int) -> bool:
        """
        Check whether a recurring template produces an occurrence on a day.

        Args:
            template: Recurring timeblock template
            day_ms: UTC midnight of the day to test

        Returns:
            True if the recurrence includes the day and it is not excepted
        """
        if day_ms in template.exception_dates:
            return False

        rule = template.recurrence_rule
        if rule == RecurrenceRule.DAILY:
            return True
        if rule == RecurrenceRule.WEEKLY:
            return utc_weekday(day_ms) == utc_weekday(template.start_time)
        if rule == RecurrenceRule.WEEKDAYS:
            return utc_weekday(day_ms) < 5
        return False

    @staticmethod
    def occurrence_on(template: Timeblock, day_ms: int) -> Timeblock:
        """Materialize the template on a day, keeping its time of day and duration."""
        start = day_ms + template.start_time % DAY_MS
        return replace(template, start_time=start, end_time=start + template.duration_ms)

    @staticmethod
    def _candidate_days(template: Timeblock, window_start: int, window_end: int) -> Iterator[int]:
        """Yield UTC midnights of days with an occurrence starting inside the window."""
        time_of_day = template.start_time % DAY_MS
        day = utc_midnight(window_start)
        while day < window_end:
            start = day + time_of_day
            if window_start <= start < window_end and RecurrenceExpander.occurs_on(template, day):
                yield day
            day += DAY_MS

    @staticmethod
    def _overlaps(template: Timeblock, window_start: int, window_end: int) -> bool:
        return template.end_time >= window_start and template.start_time <= window_end

    @staticmethod
    def expand(template: Timeblock, window_start: int, window_end: int) -> List[Timeblock]:
        """
        Expand a timeblock into the occurrences that fall in a window.

        Non-recurring timeblocks are returned unchanged when they overlap the
        window. Recurring templates yield one occurrence per included day
        whose start lies in ``[window_start, window_end)``.

        Args:
            template: Timeblock (recurring or not)
            window_start: Window start (epoch ms, inclusive)
            window_end: Window end (epoch ms, exclusive for occurrence starts)

        Returns:
            Occurrences ordered by start time
        """
        if not template.is_recurring:
            if RecurrenceExpander._overlaps(template, window_start, window_end):
                return [template]
            return []

        return [
            RecurrenceExpander.occurrence_on(template, day)
            for day in RecurrenceExpander._candidate_days(template, window_start, window_end)
        ]

    @staticmethod
    def expand_all(templates: Iterable[Timeblock], window_start: int, window_end: int) -> List[Timeblock]:
        """Expand several templates into one flat list (unsorted across templates)."""
        occurrences: List[Timeblock] = []
        for template in templates:
            occurrences.extend(RecurrenceExpander.expand(template, window_start, window_end))
        return occurrences

    @staticmethod
    def matches_instant(template: Timeblock, instant: int) -> bool:
        """
        Check whether the timeblock covers an instant.

        An occurrence covers ``instant`` when ``start <= instant <= end``.
        Days back to ``instant - duration`` are checked so occurrences that
        started the previous day and run past midnight are found.
        """
        if not template.is_recurring:
            return template.start_time <= instant <= template.end_time

        duration = template.duration_ms
        time_of_day = template.start_time % DAY_MS
        day = utc_midnight(instant - duration)
        last_day = utc_midnight(instant)
        while day <= last_day:
            start = day + time_of_day
            if start <= instant <= start + duration and RecurrenceExpander.occurs_on(template, day):
                return True
            day += DAY_MS
        return False

    @staticmethod
    def matches_range(template: Timeblock, range_start: int, range_end: int) -> bool:
        """
        Check whether the timeblock has an occurrence in a range.

        Agrees with ``expand`` for the same window. Daily templates without
        exceptions skip the day scan for ranges of a day or more, since any
        such range contains one start.
        """
        if not template.is_recurring:
            return RecurrenceExpander._overlaps(template, range_start, range_end)

        if range_start >= range_end:
            return False

        if (
            template.recurrence_rule == RecurrenceRule.DAILY
            and not template.exception_dates
            and range_end - range_start >= DAY_MS
        ):
            return True

        for _ in RecurrenceExpander._candidate_days(template, range_start, range_end):
            return True
        return False
