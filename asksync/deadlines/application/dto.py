"""
Deadline Application DTOs
=========================

Data Transfer Objects for the deadlines API layer.

Timestamps are epoch milliseconds (UTC).
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from asksync.deadlines.domain import DeadlineRecord, ExpectedAnswer, SweepResult

RecordKindStr = Literal["question", "email_attention_item"]


# ========== Request DTOs ==========

class DeadlinePreviewRequest(BaseModel):
    """Inputs of a record about to be created."""
    org_id: str = Field(..., min_length=1)
    kind: RecordKindStr = "question"
    tag_ids: List[str] = Field(default_factory=list)
    responder_ids: List[str] = Field(default_factory=list)


class TagRecalculationRequest(BaseModel):
    """Targeted recalculation by tag, optionally narrowed to one responder."""
    org_id: str = Field(..., min_length=1)
    tag_ids: List[str] = Field(..., min_length=1)
    responder_id: Optional[str] = None


# ========== Response DTOs ==========

class ExpectedAnswerResponse(BaseModel):
    """An expected answer time as of ``computed_at``."""
    expected_answer_time: int
    computed_at: int
    is_overdue: bool
    remaining_ms: int
    overdue_ms: int

    @classmethod
    def from_domain(cls, answer: ExpectedAnswer) -> "ExpectedAnswerResponse":
        return cls(
            expected_answer_time=answer.expected_answer_time,
            computed_at=answer.computed_at,
            is_overdue=answer.is_overdue,
            remaining_ms=answer.remaining(answer.computed_at),
            overdue_ms=answer.overdue_for(answer.computed_at),
        )


class RecordDeadlineResponse(BaseModel):
    """Deadline state of a stored record."""
    record_id: str
    kind: str
    org_id: str
    status: str
    tag_ids: List[str]
    responder_ids: List[str]
    deadline: ExpectedAnswerResponse
    computed_on_read: bool = Field(
        default=False,
        description="True when no deadline was stored and it was computed for this response"
    )
    stored_is_overdue: bool
    last_computed_at: Optional[int] = Field(
        default=None,
        description="When the stored deadline was computed; null for records without one"
    )
    updated_at: int

    @classmethod
    def from_domain(
        cls,
        record: DeadlineRecord,
        answer: ExpectedAnswer,
        computed_on_read: bool
    ) -> "RecordDeadlineResponse":
        stored = record.deadline
        return cls(
            record_id=record.id,
            kind=record.kind,
            org_id=record.org_id,
            status=record.status,
            tag_ids=list(record.tag_ids),
            responder_ids=list(record.responder_ids),
            deadline=ExpectedAnswerResponse.from_domain(answer),
            computed_on_read=computed_on_read,
            stored_is_overdue=record.is_overdue,
            last_computed_at=stored.computed_at if stored else None,
            updated_at=record.updated_at,
        )


class SweepResponse(BaseModel):
    """Summary of a recalculation pass."""
    kind: Optional[str] = None
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    notified: int = 0
    continuation_scheduled: bool = False

    @classmethod
    def from_domain(cls, result: SweepResult) -> "SweepResponse":
        return cls(
            kind=result.kind,
            processed=result.processed,
            updated=result.updated,
            skipped=result.skipped,
            notified=result.notified,
            continuation_scheduled=result.continuation_scheduled,
        )


class RecalculationScheduledResponse(BaseModel):
    """Acknowledgement of a scheduled full recalculation."""
    scheduled_kinds: List[str]
