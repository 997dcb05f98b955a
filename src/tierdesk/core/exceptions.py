"""
Core Exceptions
================

Custom exceptions for the engine.

These exceptions define domain-specific errors that are caught and mapped
to responses at the application boundaries.
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
    """Exception when a requested ticket or agent does not exist."""

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


class ConflictException(RepositoryException):
    """Optimistic update lost against a newer version. Re-read and retry."""

    def __init__(
        self,
        resource_id: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None
    ):
        self.resource_id = resource_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on '{resource_id}'",
            {
                "resource_id": resource_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            }
        )


class InvalidTransitionException(DomainException):
    """Requested state change is not allowed from the current state."""

    def __init__(self, ticket_id: str, from_state: Any, action: str):
        self.ticket_id = ticket_id
        self.from_state = from_state
        self.action = action
        state = getattr(from_state, "value", from_state)
        super().__init__(
            f"Cannot {action} ticket {ticket_id} in state '{state}'",
            {"ticket_id": ticket_id, "from_state": state, "action": action}
        )


class CapacityExceededException(DomainException):
    """Agent has no spare capacity left."""

    def __init__(self, agent_id: str, max_capacity: Optional[int] = None):
        self.agent_id = agent_id
        self.max_capacity = max_capacity
        super().__init__(
            f"Agent {agent_id} is at capacity",
            {"agent_id": agent_id, "max_capacity": max_capacity}
        )


class StoreTimeoutException(RepositoryException):
    """A store or registry call exceeded its time bound. Retryable."""

    def __init__(self, operation: str, timeout_seconds: float, attempts: int = 1):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        self.attempts = attempts
        super().__init__(
            f"{operation} timed out after {attempts} attempt(s)",
            {
                "operation": operation,
                "timeout_seconds": timeout_seconds,
                "attempts": attempts,
            }
        )


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""
