"""
Deadline Domain Entities
========================

Pure Python domain entities for deadline tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns. All timestamps
are epoch milliseconds in UTC.
"""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from asksync.config import (
    NON_TERMINAL_STATUSES, TERMINAL_STATUSES, VALID_RECORD_KINDS,
)
from asksync.core import ValidationException

T = TypeVar("T")


@dataclass(frozen=True)
class ExpectedAnswer:
    """An expected answer time and the instant it was computed at."""

    expected_answer_time: int
    computed_at: int

    @property
    def is_overdue(self) -> bool:
        return self.expected_answer_time < self.computed_at

    def overdue_for(self, now: int) -> int:
        return max(0, now - self.expected_answer_time)

    def remaining(self, now: int) -> int:
        return max(0, self.expected_answer_time - now)

    def as_of(self, now: int) -> "ExpectedAnswer":
        """The same deadline evaluated at another instant."""
        return ExpectedAnswer(self.expected_answer_time, now)


@dataclass
class DeadlineRecord:
    """
    A record that carries an expected answer time.

    Questions and email attention items share this shape: a set of tags,
    the candidate responders, and the stored deadline fields. For a
    question the responders are its assignees; for an email attention item
    it is the mailbox owner.
    """

    id: str
    kind: str
    org_id: str
    status: str
    tag_ids: List[str] = field(default_factory=list)
    responder_ids: List[str] = field(default_factory=list)
    title: str = ""

    # Persisted deadline fields
    expected_answer_time: Optional[int] = None
    is_overdue: bool = False
    updated_at: int = 0
    created_at: int = 0

    # Set once the overdue notification went out
    notified_at: Optional[int] = None

    def __post_init__(self):
        if self.kind not in VALID_RECORD_KINDS:
            raise ValidationException(f"Unknown record kind: {self.kind}")
        known = NON_TERMINAL_STATUSES[self.kind] + TERMINAL_STATUSES[self.kind]
        if self.status not in known:
            raise ValidationException(
                f"Unknown status '{self.status}' for {self.kind}",
                {"allowed": known}
            )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES[self.kind]

    @property
    def deadline(self) -> Optional[ExpectedAnswer]:
        """The stored deadline as computed at ``updated_at``; None for rows that predate deadlines."""
        if self.expected_answer_time is None:
            return None
        return ExpectedAnswer(self.expected_answer_time, self.updated_at)

    def overdue_for(self, now: int) -> int:
        """Milliseconds the stored deadline lies in the past (0 when not overdue)."""
        deadline = self.deadline
        return deadline.overdue_for(now) if deadline else 0

    def apply_deadline(self, answer: ExpectedAnswer) -> None:
        """Store a freshly computed deadline."""
        self.expected_answer_time = answer.expected_answer_time
        self.is_overdue = answer.is_overdue
        self.updated_at = answer.computed_at


class OutcomeAction:
    """What a recalculation did to a record."""
    UPDATED = "updated"
    SKIPPED_TERMINAL = "skipped_terminal"
    SKIPPED_GRACE = "skipped_grace"


@dataclass(frozen=True)
class RecalculationOutcome:
    """Result of recalculating one record."""

    record_id: str
    kind: str
    action: str
    previous_expected_answer_time: Optional[int] = None
    expected_answer_time: Optional[int] = None

    @property
    def changed(self) -> bool:
        return (
            self.action == OutcomeAction.UPDATED
            and self.previous_expected_answer_time != self.expected_answer_time
        )


@dataclass
class SweepResult:
    """Summary of one recalculation pass (one batch or one targeted sweep)."""

    kind: Optional[str] = None
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    notified: int = 0
    next_cursor: Optional[str] = None
    continuation_scheduled: bool = False

    def record(self, outcome: RecalculationOutcome) -> None:
        self.processed += 1
        if outcome.action == OutcomeAction.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1

    def merge(self, other: "SweepResult") -> "SweepResult":
        return SweepResult(
            kind=self.kind if self.kind == other.kind else None,
            processed=self.processed + other.processed,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            notified=self.notified + other.notified,
        )


@dataclass
class Page(Generic[T]):
    """One page of a keyset-paginated scan."""

    items: List[T]
    next_cursor: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None
