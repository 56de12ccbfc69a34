"""
Deadline Infrastructure Models
==============================

SQLAlchemy ORM models for deadline-bearing records.

Questions and email attention items are owned by other subsystems; only
the columns deadlines read and write are mapped here.
"""

from typing import List, Optional

from sqlalchemy import BigInteger, Boolean, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from asksync.infrastructure.database import Base


class DeadlineColumnsMixin:
    """Columns shared by every deadline-bearing table."""

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    tag_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Deadline tracking
    expected_answer_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    is_overdue: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notified_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class QuestionModel(DeadlineColumnsMixin, Base):
    """
    Database model for questions.

    Maps to the 'questions' table.
    """
    __tablename__ = "questions"

    assignee_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("ix_questions_org_status", "org_id", "status"),
    )


class EmailAttentionItemModel(DeadlineColumnsMixin, Base):
    """
    Database model for email attention items.

    Maps to the 'email_attention_items' table. The mailbox owner is the
    only responder.
    """
    __tablename__ = "email_attention_items"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    __table_args__ = (
        Index("ix_email_items_org_status", "org_id", "status"),
    )
