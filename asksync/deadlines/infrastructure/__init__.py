"""
Deadlines Infrastructure Layer
==============================

Infrastructure implementations for deadline tracking:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: Policy hot reload, Slack notifications, sweep scheduler
"""

from asksync.deadlines.infrastructure.models import QuestionModel, EmailAttentionItemModel
from asksync.deadlines.infrastructure.repositories import (
    SQLAlchemyQuestionRepository,
    SQLAlchemyEmailAttentionItemRepository,
    build_record_repositories,
)
from asksync.deadlines.infrastructure.external import (
    PolicyConfigManager,
    CircuitBreaker,
    SlackClient,
    SlackOverdueNotifier,
    RecalculationScheduler,
)

__all__ = [
    "QuestionModel",
    "EmailAttentionItemModel",
    "SQLAlchemyQuestionRepository",
    "SQLAlchemyEmailAttentionItemRepository",
    "build_record_repositories",
    "PolicyConfigManager",
    "CircuitBreaker",
    "SlackClient",
    "SlackOverdueNotifier",
    "RecalculationScheduler",
]
