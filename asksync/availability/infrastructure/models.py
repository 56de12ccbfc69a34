"""
Availability Infrastructure Models
==================================

SQLAlchemy ORM models for the availability module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
Timestamps are stored as epoch milliseconds.
"""

from typing import List, Optional

from sqlalchemy import BigInteger, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from asksync.infrastructure.database import Base
from asksync.config import AnswerMode, PermissionLevel, TimeblockSource


class TimeblockModel(Base):
    """
    Database model for Timeblock entity.

    Maps to the 'timeblocks' table.
    """
    __tablename__ = "timeblocks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Content
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Schedule
    start_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    recurrence_rule: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    exception_dates: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)

    # Classification
    tag_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Provenance
    source: Mapped[str] = mapped_column(String(32), nullable=False, default=TimeblockSource.ASKSYNC)
    external_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        # One-off lookups narrow by start time; recurring lookups by owner only
        Index("ix_timeblocks_org_owner_start", "org_id", "owner_id", "start_time"),
        Index("ix_timeblocks_org_owner", "org_id", "owner_id"),
    )


class TagModel(Base):
    """
    Database model for Tag entity.

    Maps to the 'tags' table.
    """
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="#6b7280")

    answer_mode: Mapped[str] = mapped_column(String(32), nullable=False, default=AnswerMode.ON_DEMAND)
    response_time_minutes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        Index("ix_tags_org_name", "org_id", "name", unique=True),
    )


class PermissionModel(Base):
    """
    Database model for a permission grant.

    A grant targets one user, one group, or everybody in the organization
    ("all"), at a level of view, edit or manage.
    """
    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(32), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(64), nullable=False)

    grant_type: Mapped[str] = mapped_column(String(16), nullable=False)  # all, group or user
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    group_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    permission: Mapped[str] = mapped_column(String(16), nullable=False, default=PermissionLevel.VIEW)
    is_creator: Mapped[bool] = mapped_column(default=False)

    __table_args__ = (
        Index("ix_permissions_org_resource", "org_id", "resource_type", "resource_id"),
    )
