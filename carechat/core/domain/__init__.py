"""Core domain building blocks shared by all domains."""

from .exceptions import (
    DomainException,
    EntityNotFoundException,
    InvalidOperationException,
    InvalidStateTransitionError,
    LeadValidationError,
    PhoneValidationError,
    TenantNotFoundError,
    ValidationException,
)

__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "InvalidOperationException",
    "InvalidStateTransitionError",
    "LeadValidationError",
    "PhoneValidationError",
    "TenantNotFoundError",
    "ValidationException",
]
