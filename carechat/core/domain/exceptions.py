"""
Domain Exceptions

These exceptions represent business rule violations and domain-specific errors.
They are translated to HTTP responses in the API layer (see carechat.api.exception_handlers).

Soft failures of collaborators (external system of record, credential decryption)
live next to those collaborators and never reach this hierarchy's handlers.
"""

from typing import Any


class DomainException(Exception):
    """
    Base exception for all domain-related errors.

    Provides a standardized way to communicate business rule violations.
    """

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "INVALID_PHONE")
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(DomainException):
    """
    Raised when domain validation fails.

    Use for malformed input that must be rejected, never silently coerced.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        code: str = "VALIDATION_ERROR",
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, code, details)
        self.field = field


class PhoneValidationError(ValidationException):
    """Raised when phone text does not normalize to a valid national number."""

    def __init__(self, reason: str, raw_value: str | None = None, digits: int | None = None):
        self.reason = reason
        details: dict[str, Any] = {}
        if digits is not None:
            details["digits"] = digits
        super().__init__(f"Invalid phone number: {reason}", field="phone", details=details, code="INVALID_PHONE")
        self.raw_value = raw_value


class LeadValidationError(ValidationException):
    """Raised when the data collected to create a lead is incomplete or malformed."""

    def __init__(self, message: str, field: str):
        super().__init__(message, field=field, code="INVALID_LEAD_DATA")


class EntityNotFoundException(DomainException):
    """
    Raised when an entity is not found.
    """

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        message: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        msg = message or f"{entity_type} with ID {entity_id} not found"
        super().__init__(
            msg,
            "ENTITY_NOT_FOUND",
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class TenantNotFoundError(EntityNotFoundException):
    """Raised when a tenant identifier does not resolve (absent or inactive)."""

    def __init__(self, identifier: str):
        super().__init__("Tenant", identifier, f"Tenant '{identifier}' not found or inactive")
        self.code = "TENANT_NOT_FOUND"


class InvalidOperationException(DomainException):
    """Raised when an operation is not valid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None):
        self.operation = operation
        self.current_state = current_state
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(
            msg,
            "INVALID_OPERATION",
            {"operation": operation, "current_state": current_state},
        )


class InvalidStateTransitionError(InvalidOperationException):
    """Raised when a conversation transition is not an allowed edge."""

    def __init__(self, conversation_id: str, current_state: str, requested_state: str):
        super().__init__(
            operation=f"transition_to:{requested_state}",
            current_state=current_state,
            message=f"Transition '{current_state}' -> '{requested_state}' is not allowed",
        )
        self.code = "INVALID_STATE_TRANSITION"
        self.conversation_id = conversation_id
        self.requested_state = requested_state
        self.details.update({"conversation_id": conversation_id, "requested_state": requested_state})
