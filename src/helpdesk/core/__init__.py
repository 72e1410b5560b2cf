"""
Core Module
============

Exception hierarchy shared by the tickets, SLA and priority contexts.

Domain errors (illegal transitions, missing actors, failed preconditions,
lost updates) are raised by the domain and application layers and mapped
to HTTP status codes by the shared middleware.
"""

from helpdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    NotificationException,
    InvalidTransition,
    MissingActor,
    PreconditionFailed,
    ConflictingState,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "NotificationException",
    "InvalidTransition",
    "MissingActor",
    "PreconditionFailed",
    "ConflictingState",
]
