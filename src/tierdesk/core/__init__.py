"""
Core Module
============

Shared core abstractions used across the bounded contexts.

Framework-agnostic building blocks: the exception hierarchy.
"""

from tierdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConflictException,
    InvalidTransitionException,
    CapacityExceededException,
    StoreTimeoutException,
    ConfigurationException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConflictException",
    "InvalidTransitionException",
    "CapacityExceededException",
    "StoreTimeoutException",
    "ConfigurationException",
]
