"""
Availability Value Objects
==========================

Immutable value objects for availability queries.
"""

from dataclasses import dataclass
from typing import Optional

from asksync.availability.domain.entities import Timeblock
from asksync.availability.domain.recurrence import RecurrenceExpander
from asksync.core import InvalidSelectorException, ValidationException


@dataclass(frozen=True)
class TimeWindow:
    """A closed span of time in epoch milliseconds."""

    start: int
    end: int

    def __post_init__(self):
        if self.end < self.start:
            raise ValidationException(
                "Window end must not be before its start",
                {"start": self.start, "end": self.end}
            )


@dataclass(frozen=True)
class AvailabilitySelector:
    """
    Selects timeblocks either active at an instant or present in a window.

    Exactly one of ``instant`` and ``window`` must be given; anything else is
    a programming error and fails immediately.
    """

    instant: Optional[int] = None
    window: Optional[TimeWindow] = None

    def __post_init__(self):
        if self.instant is not None and self.window is not None:
            raise InvalidSelectorException(
                "AvailabilitySelector accepts an instant or a window, not both"
            )
        if self.instant is None and self.window is None:
            raise InvalidSelectorException(
                "AvailabilitySelector requires either an instant or a window"
            )

    @classmethod
    def at(cls, instant: int) -> "AvailabilitySelector":
        return cls(instant=instant)

    @classmethod
    def between(cls, start: int, end: int) -> "AvailabilitySelector":
        return cls(window=TimeWindow(start, end))

    @property
    def start_time_bound(self) -> int:
        """Latest start time a one-off timeblock may have to be selected."""
        return self.instant if self.instant is not None else self.window.end

    def admits(self, timeblock: Timeblock) -> bool:
        """Check a timeblock (one-off or recurring template) against the selector."""
        if self.instant is not None:
            return RecurrenceExpander.matches_instant(timeblock, self.instant)
        return RecurrenceExpander.matches_range(timeblock, self.window.start, self.window.end)
