"""
Core Exceptions
================

Errors raised by the availability and deadline modules.

Services raise these; the HTTP layer turns them into status codes
(see ``asksync.shared.api.middleware``) and background jobs log them.
"""

from typing import Optional


class ApplicationException(Exception):
    """Root of every error this service raises on purpose."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """A request that is well formed but breaks a business rule."""


class TagInUseException(DomainException):
    """A tag cannot be deleted while timeblocks reference it."""

    def __init__(self, tag_id: str, timeblock_count: int):
        self.tag_id = tag_id
        self.timeblock_count = timeblock_count
        super().__init__(
            f"Cannot delete tag: used in {timeblock_count} timeblocks",
            {"tag_id": tag_id, "timeblocks": timeblock_count}
        )


class NotRecurringException(DomainException):
    """Exception dates only exist on recurring timeblocks."""

    def __init__(self, timeblock_id: str):
        self.timeblock_id = timeblock_id
        super().__init__(
            "Operation only valid for recurring timeblocks",
            {"timeblock_id": timeblock_id}
        )


class RepositoryException(ApplicationException):
    """Storage failed or a row expected to exist is gone."""


class ValidationException(ApplicationException):
    """Input rejected before any state changed."""


class InvalidSelectorException(ValidationException):
    """Raised when an availability query is given both or neither selector."""

    def __init__(self, message: str):
        super().__init__(message, {"expected": "exactly one of instant or window"})


class ResourceNotFoundException(ApplicationException):
    """A timeblock, tag or record that does not exist (or is not visible)."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        if resource_id:
            message = f"{resource_type} with id '{resource_id}' not found"
        else:
            message = f"{resource_type} not found"
        super().__init__(message, details)


class PermissionDeniedException(ApplicationException):
    """Exception when the caller may not act on a resource."""


class ConfigurationException(ApplicationException):
    """The service is missing a collaborator or was given bad settings."""


class InvalidPolicyException(ConfigurationException):
    """The deadline policy file failed to parse or validate."""

    def __init__(self, path: str, error: str):
        self.path = path
        super().__init__(f"Invalid deadline policy: {path}", {"error": error})


class ExternalServiceException(ApplicationException):
    """A call to a third-party service failed."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class SlackDeliveryException(ExternalServiceException):
    """Slack did not accept a webhook post."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__("Slack", f"webhook returned {status_code}", {"status_code": status_code})
