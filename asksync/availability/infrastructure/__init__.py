"""
Availability Infrastructure Layer
=================================

Infrastructure implementations for availability:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer and the grant-table permission provider
"""

from asksync.availability.infrastructure.models import TimeblockModel, TagModel, PermissionModel
from asksync.availability.infrastructure.repositories import (
    SQLAlchemyTimeblockRepository,
    SQLAlchemyTagRepository,
    SQLAlchemyPermissionProvider,
)

__all__ = [
    "TimeblockModel",
    "TagModel",
    "PermissionModel",
    "SQLAlchemyTimeblockRepository",
    "SQLAlchemyTagRepository",
    "SQLAlchemyPermissionProvider",
]
