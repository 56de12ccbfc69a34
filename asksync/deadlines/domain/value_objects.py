"""
Deadline Value Objects
======================

Immutable value objects for the deadlines domain.

Value objects are defined by their attributes rather than an identity.
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from asksync.config import DAY_MS, MINUTE_MS, VALID_RECORD_KINDS


class DeadlinePolicy(BaseModel):
    """
    Deadline policy loaded from YAML.

    Every duration that shapes recalculation lives here rather than in
    code, so it can be tuned without a deploy.
    """
    model_config = ConfigDict(frozen=True)

    grace_period_minutes: int = Field(
        default=1440, ge=0,
        description="How long an overdue record keeps its deadline before it is recomputed"
    )
    lookahead_days: int = Field(
        default=30, ge=1,
        description="How far ahead scheduled tags look for the next availability"
    )
    lookback_minutes: int = Field(
        default=1440, ge=0,
        description="How far back expansion starts so in-progress occurrences are seen"
    )
    default_response_minutes: int = Field(
        default=1440, ge=1,
        description="Contribution used when no tag yields one"
    )
    default_response_minutes_by_kind: Dict[str, int] = Field(
        default_factory=dict,
        description="Per record kind overrides of default_response_minutes"
    )
    batch_size: int = Field(default=100, ge=1, le=1000, description="Records per full-sweep batch")
    notify_overdue: bool = Field(default=True, description="Post a notification when a record turns overdue")

    @field_validator("default_response_minutes_by_kind")
    @classmethod
    def validate_kinds(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Reject overrides for unknown record kinds."""
        unknown = set(v) - set(VALID_RECORD_KINDS)
        if unknown:
            raise ValueError(f"Unknown record kinds: {sorted(unknown)}")
        for kind, minutes in v.items():
            if minutes < 1:
                raise ValueError(f"Default response minutes for {kind} must be positive")
        return v

    @property
    def grace_period_ms(self) -> int:
        return self.grace_period_minutes * MINUTE_MS

    @property
    def lookahead_ms(self) -> int:
        return self.lookahead_days * DAY_MS

    @property
    def lookback_ms(self) -> int:
        return self.lookback_minutes * MINUTE_MS

    def default_minutes_for(self, kind: str) -> int:
        """Fallback contribution for a record kind."""
        return self.default_response_minutes_by_kind.get(kind, self.default_response_minutes)
