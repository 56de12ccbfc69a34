"""
Availability Domain Entities
=============================

Pure Python domain entities for availability tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns. All timestamps
are epoch milliseconds in UTC.
"""

from dataclasses import dataclass, field
from typing import Optional, List

from asksync.config import (
    AnswerMode, RecurrenceRule, TimeblockSource, UserRole,
    VALID_ANSWER_MODES, VALID_RECURRENCE_RULES,
)
from asksync.core import ValidationException


@dataclass
class Timeblock:
    """
    A span of committed availability, optionally recurring.

    For a recurring timeblock ``start_time``/``end_time`` only encode the
    time of day and the duration; the date of ``start_time`` is the anchor
    weekday for weekly rules. Occurrences produced by expansion are copies
    of the template with concrete ``start_time``/``end_time``.
    """

    id: str
    org_id: str
    owner_id: str
    start_time: int
    end_time: int
    title: str = ""
    description: Optional[str] = None
    timezone: str = "UTC"
    recurrence_rule: Optional[str] = None
    exception_dates: List[int] = field(default_factory=list)
    tag_ids: List[str] = field(default_factory=list)
    source: str = TimeblockSource.ASKSYNC
    external_id: Optional[str] = None
    color: Optional[str] = None
    updated_at: int = 0

    def __post_init__(self):
        """Validate timeblock on initialization."""
        if self.end_time <= self.start_time:
            raise ValidationException(
                "End time must be after start time",
                {"start_time": self.start_time, "end_time": self.end_time}
            )
        if self.recurrence_rule is not None and self.recurrence_rule not in VALID_RECURRENCE_RULES:
            raise ValidationException(
                f"Unsupported recurrence rule: {self.recurrence_rule}",
                {"allowed": VALID_RECURRENCE_RULES}
            )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None

    @property
    def duration_ms(self) -> int:
        return self.end_time - self.start_time

    def has_any_tag(self, tag_ids) -> bool:
        return any(tag_id in self.tag_ids for tag_id in tag_ids)


@dataclass
class Tag:
    """
    A topic classifier carrying an answer-time policy.

    On-demand tags answer within ``response_time_minutes``; scheduled tags
    are answered during the next matching availability.
    """

    id: str
    org_id: str
    name: str
    answer_mode: str
    response_time_minutes: Optional[int] = None
    description: Optional[str] = None
    color: str = "#6b7280"
    created_by: str = ""
    updated_at: int = 0

    def __post_init__(self):
        if self.answer_mode not in VALID_ANSWER_MODES:
            raise ValidationException(f"Unknown answer mode: {self.answer_mode}")
        if self.answer_mode == AnswerMode.ON_DEMAND and not self.response_time_minutes:
            raise ValidationException("Response time is required for on-demand tags")

    @property
    def is_scheduled(self) -> bool:
        return self.answer_mode == AnswerMode.SCHEDULED


@dataclass(frozen=True)
class Identity:
    """The caller on whose behalf a query or mutation runs."""

    user_id: str
    org_id: str
    role: str = UserRole.MEMBER
    group_ids: tuple = ()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class PermissionGrant:
    """One grant on a resource as shown to the viewer."""

    id: str
    permission: str
    grant_type: str  # "all", "group" or "user"
    user_id: Optional[str] = None
    group_id: Optional[str] = None
    is_creator: bool = False


@dataclass
class DecoratedTimeblock:
    """A timeblock together with the grants visible to the viewer."""

    timeblock: Timeblock
    permissions: List[PermissionGrant] = field(default_factory=list)
    can_edit: bool = False
    can_manage: bool = False
