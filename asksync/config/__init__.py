"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="asksync-deadlines", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/asksync",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Deadline Policy ==========
    deadline_policy_path: Path = Field(
        default=Path("deadline_policy.yaml"),
        description="Path to deadline policy YAML file"
    )
    recalculation_interval_seconds: int = Field(
        default=3600,
        description="Seconds between full recalculation sweeps (0 disables the job)",
        ge=0
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for overdue notifications"
    )
    slack_channel: str = Field(
        default="#asksync-overdue",
        description="Slack channel for overdue notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Time Constants ==========

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


# ========== Constants ==========

class AnswerMode(str):
    """How a tag derives its expected response time."""
    ON_DEMAND = "on-demand"
    SCHEDULED = "scheduled"


class RecurrenceRule(str):
    """The recurrence shapes a timeblock can carry."""
    DAILY = "FREQ=DAILY"
    WEEKLY = "FREQ=WEEKLY"
    WEEKDAYS = "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR"


class TimeblockSource(str):
    """Where a timeblock was authored."""
    ASKSYNC = "asksync"
    GOOGLE = "google"
    OUTLOOK = "outlook"


class RecordKind(str):
    """Entities that carry an expected answer time."""
    QUESTION = "question"
    EMAIL_ATTENTION_ITEM = "email_attention_item"


class QuestionStatus(str):
    """Question lifecycle statuses."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    ANSWERED = "answered"
    RESOLVED = "resolved"


class EmailItemStatus(str):
    """Email attention item lifecycle statuses."""
    PENDING = "pending"
    RESOLVED = "resolved"


class ResourceType(str):
    """Resource types governed by permission grants."""
    TAGS = "tags"
    TIMEBLOCKS = "timeblocks"
    QUESTIONS = "questions"


class PermissionLevel(str):
    """Permission levels, ordered view < edit < manage."""
    VIEW = "view"
    EDIT = "edit"
    MANAGE = "manage"


class UserRole(str):
    """Organization roles."""
    ADMIN = "admin"
    MEMBER = "member"


# ========== Lists for validation ==========

VALID_ANSWER_MODES = [AnswerMode.ON_DEMAND, AnswerMode.SCHEDULED]
VALID_RECURRENCE_RULES = [
    RecurrenceRule.DAILY, RecurrenceRule.WEEKLY, RecurrenceRule.WEEKDAYS
]
VALID_TIMEBLOCK_SOURCES = [
    TimeblockSource.ASKSYNC, TimeblockSource.GOOGLE, TimeblockSource.OUTLOOK
]
VALID_RECORD_KINDS = [RecordKind.QUESTION, RecordKind.EMAIL_ATTENTION_ITEM]

NON_TERMINAL_STATUSES = {
    RecordKind.QUESTION: [
        QuestionStatus.PENDING, QuestionStatus.ASSIGNED, QuestionStatus.IN_PROGRESS
    ],
    RecordKind.EMAIL_ATTENTION_ITEM: [EmailItemStatus.PENDING],
}
TERMINAL_STATUSES = {
    RecordKind.QUESTION: [QuestionStatus.ANSWERED, QuestionStatus.RESOLVED],
    RecordKind.EMAIL_ATTENTION_ITEM: [EmailItemStatus.RESOLVED],
}

PERMISSION_RANKS = {
    PermissionLevel.VIEW: 1,
    PermissionLevel.EDIT: 2,
    PermissionLevel.MANAGE: 3,
}
