"""
Core Module
============

Error types and time helpers shared by the availability and deadline
modules. Nothing here imports FastAPI or SQLAlchemy.
"""

from asksync.core.exceptions import (
    ApplicationException,
    DomainException,
    TagInUseException,
    NotRecurringException,
    RepositoryException,
    ValidationException,
    InvalidSelectorException,
    ResourceNotFoundException,
    PermissionDeniedException,
    ConfigurationException,
    InvalidPolicyException,
    ExternalServiceException,
    SlackDeliveryException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "TagInUseException",
    "NotRecurringException",
    "RepositoryException",
    "ValidationException",
    "InvalidSelectorException",
    "ResourceNotFoundException",
    "PermissionDeniedException",
    "ConfigurationException",
    "InvalidPolicyException",
    "ExternalServiceException",
    "SlackDeliveryException",
]
