"""Custom exceptions for the LeadOps service."""

from __future__ import annotations

from typing import Any


class LeadOpsException(Exception):
    """Base exception for LeadOps."""

    pass


class ValidationError(LeadOpsException):
    """Raised when request validation fails.

    ``details`` carries machine-readable context for the caller, for example
    the ids that could not be resolved.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(LeadOpsException):
    """Raised when a resource is not found."""

    pass


class DatabaseError(LeadOpsException):
    """Raised when a database operation fails."""

    pass


class ServiceError(LeadOpsException):
    """Raised when a service operation fails."""

    pass


class ConfigurationError(LeadOpsException):
    """Raised when configuration is invalid."""

    pass


class WebhookError(LeadOpsException):
    """Raised when the workflow engine rejects or cannot receive a trigger."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
