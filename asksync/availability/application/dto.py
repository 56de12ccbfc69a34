"""
Availability Application DTOs
=============================

Data Transfer Objects for the availability API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Timestamps are epoch milliseconds (UTC).
"""

from pydantic import BaseModel, Field, model_validator
from typing import List, Optional, Literal

from asksync.availability.domain import Timeblock, Tag, DecoratedTimeblock


# ========== Type Aliases for Literals ==========
RecurrenceRuleStr = Literal[
    "FREQ=DAILY",
    "FREQ=WEEKLY",
    "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR",
]
AnswerModeStr = Literal["on-demand", "scheduled"]
TimeblockSourceStr = Literal["asksync", "google", "outlook"]


# ========== Request DTOs ==========

class TimeblockCreateDTO(BaseModel):
    """DTO for creating a timeblock."""
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    start_time: int = Field(..., description="Start (epoch ms, UTC)")
    end_time: int = Field(..., description="End (epoch ms, UTC)")
    timezone: str = Field(default="UTC", description="Display timezone of the author")
    recurrence_rule: Optional[RecurrenceRuleStr] = None
    tag_ids: List[str] = Field(default_factory=list)
    color: Optional[str] = None
    source: TimeblockSourceStr = "asksync"
    external_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_time_range(self) -> "TimeblockCreateDTO":
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class TimeblockUpdateDTO(BaseModel):
    """DTO for partially updating a timeblock; unset fields stay unchanged."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    timezone: Optional[str] = None
    recurrence_rule: Optional[RecurrenceRuleStr] = None
    clear_recurrence: bool = Field(default=False, description="Turn a recurring block into a one-off")
    tag_ids: Optional[List[str]] = None
    color: Optional[str] = None


class ExceptionDateDTO(BaseModel):
    """An occurrence date to skip; normalized to UTC midnight on write."""
    exception_date: int = Field(..., description="Any instant on the excluded UTC day (epoch ms)")


class TagCreateDTO(BaseModel):
    """DTO for creating a tag."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    color: str = "#6b7280"
    answer_mode: AnswerModeStr
    response_time_minutes: Optional[int] = Field(None, ge=1)


class TagUpdateDTO(BaseModel):
    """DTO for partially updating a tag."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None
    answer_mode: Optional[AnswerModeStr] = None
    response_time_minutes: Optional[int] = Field(None, ge=1)

    @property
    def affects_deadlines(self) -> bool:
        """Whether applying the update changes expected answer times."""
        return self.answer_mode is not None or self.response_time_minutes is not None


# ========== Response DTOs ==========

class TimeblockResponse(BaseModel):
    """Response model for a timeblock or an expanded occurrence."""
    id: str
    org_id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    start_time: int
    end_time: int
    timezone: str
    recurrence_rule: Optional[str] = None
    exception_dates: List[int] = Field(default_factory=list)
    tag_ids: List[str] = Field(default_factory=list)
    source: str
    color: Optional[str] = None
    updated_at: int

    @classmethod
    def from_domain(cls, timeblock: Timeblock) -> "TimeblockResponse":
        return cls(
            id=timeblock.id,
            org_id=timeblock.org_id,
            owner_id=timeblock.owner_id,
            title=timeblock.title,
            description=timeblock.description,
            start_time=timeblock.start_time,
            end_time=timeblock.end_time,
            timezone=timeblock.timezone,
            recurrence_rule=timeblock.recurrence_rule,
            exception_dates=list(timeblock.exception_dates),
            tag_ids=list(timeblock.tag_ids),
            source=timeblock.source,
            color=timeblock.color,
            updated_at=timeblock.updated_at,
        )


class GrantResponse(BaseModel):
    """A permission grant visible to the viewer."""
    id: str
    permission: str
    type: str
    user_id: Optional[str] = None
    group_id: Optional[str] = None
    is_creator: bool = False


class DecoratedTimeblockResponse(TimeblockResponse):
    """Timeblock with the grants and capabilities of the viewer."""
    permissions: List[GrantResponse] = Field(default_factory=list)
    can_edit: bool = False
    can_manage: bool = False

    @classmethod
    def from_decorated(cls, decorated: DecoratedTimeblock) -> "DecoratedTimeblockResponse":
        base = TimeblockResponse.from_domain(decorated.timeblock).model_dump()
        return cls(
            **base,
            permissions=[
                GrantResponse(
                    id=grant.id,
                    permission=grant.permission,
                    type=grant.grant_type,
                    user_id=grant.user_id,
                    group_id=grant.group_id,
                    is_creator=grant.is_creator,
                )
                for grant in decorated.permissions
            ],
            can_edit=decorated.can_edit,
            can_manage=decorated.can_manage,
        )


class AvailabilityResponse(BaseModel):
    """Timeblocks of a responder matching an instant or window."""
    responder_id: str
    is_available: bool
    timeblocks: List[DecoratedTimeblockResponse] = Field(default_factory=list)
    occurrences: List[TimeblockResponse] = Field(
        default_factory=list,
        description="Concrete occurrences inside the window (window queries only)"
    )


class TagResponse(BaseModel):
    """Response model for a tag."""
    id: str
    org_id: str
    name: str
    description: Optional[str] = None
    color: str
    answer_mode: str
    response_time_minutes: Optional[int] = None
    created_by: str
    updated_at: int

    @classmethod
    def from_domain(cls, tag: Tag) -> "TagResponse":
        return cls(
            id=tag.id,
            org_id=tag.org_id,
            name=tag.name,
            description=tag.description,
            color=tag.color,
            answer_mode=tag.answer_mode,
            response_time_minutes=tag.response_time_minutes,
            created_by=tag.created_by,
            updated_at=tag.updated_at,
        )
