"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Domain errors carry enough
context (ticket id, statuses) for the HTTP layer to build a useful response.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class NotificationException(ExternalServiceException):
    """Exception for notification delivery failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification Sink", message, details)


class InvalidTransition(DomainException):
    """Raised when a status change is not an edge of the ticket lifecycle."""

    def __init__(
        self,
        current: Any,
        requested: Any,
        ticket_id: Optional[str] = None
    ):
        self.current = current
        self.requested = requested
        self.ticket_id = ticket_id
        super().__init__(
            f"Invalid ticket status transition: {_value(current)} -> {_value(requested)}",
            {
                "ticket_id": ticket_id,
                "current": _value(current),
                "requested": _value(requested),
            }
        )


class MissingActor(DomainException):
    """Raised when a status change has no resolvable actor to audit."""

    def __init__(self, ticket_id: Optional[str] = None):
        self.ticket_id = ticket_id
        super().__init__(
            "Status change requires an actor",
            {"ticket_id": ticket_id}
        )


class PreconditionFailed(DomainException):
    """Raised when an SLA operation is requested in a state that forbids it."""

    def __init__(self, message: str, ticket_id: Optional[str] = None):
        self.ticket_id = ticket_id
        super().__init__(message, {"ticket_id": ticket_id})


class ConflictingState(DomainException):
    """Raised when a ticket changed underneath an operation (lost update)."""

    def __init__(self, message: str, ticket_id: Optional[str] = None):
        self.ticket_id = ticket_id
        super().__init__(message, {"ticket_id": ticket_id})


def _value(status: Any) -> Any:
    return getattr(status, "value", status)
