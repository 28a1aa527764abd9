"""Error taxonomy shared by the services, repositories and the API.

Every public operation either returns a typed result or raises one of the
errors below. The API layer maps each kind onto one HTTP status code:

- ValidationError: 400, malformed or missing input with field-level messages
- InvalidTransitionError: 400, illegal letter status move
- NotFoundError: 404, referenced entity absent
- ConflictError: 409, uniqueness violation
- UnavailableError: 503, transient store failure, safe to retry
- InternalError: 500, unexpected failure with no details for the caller

Storage-specific exceptions are translated into these kinds inside the
repository adapters and never reach the services or the API.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class LetterTrackError(Exception):
    """Base class for all domain errors.

    Attributes:
        code: Machine-readable error code (e.g., "validation_error").
        message: Human-readable error description.
        status_code: HTTP status code the API answers with.
        details: Optional structured details safe to show to the caller.
        retryable: Whether the caller may retry the same operation.
    """

    code = "error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(LetterTrackError):
    """Input failed validation (400).

    ``details`` maps field names to lists of messages.
    """

    code = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        fields: dict[str, list[str]] | None = None,
    ) -> None:
        self.fields = fields or {}
        super().__init__(message, details={"fields": self.fields} if self.fields else None)

    @classmethod
    def for_field(cls, field: str, message: str) -> ValidationError:
        """Build a single-field validation error."""
        return cls(message, fields={field: [message]})


class InvalidTransitionError(LetterTrackError):
    """Requested letter status is not reachable from the current one (400).

    Attributes:
        current: Status the letter is in.
        requested: Status that was asked for.
        allowed: Statuses reachable from ``current`` in one hop.
    """

    code = "invalid_transition"
    status_code = 400

    def __init__(self, current: Any, requested: Any, allowed: Iterable[Any]) -> None:
        self.current = current
        self.requested = requested
        self.allowed = sorted(allowed, key=lambda s: getattr(s, "value", str(s)))
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        allowed_values = [getattr(s, "value", s) for s in self.allowed]
        if allowed_values:
            message = (
                f"Cannot move letter from {current_value} to {requested_value}; "
                f"allowed: {', '.join(allowed_values)}"
            )
        else:
            message = (
                f"Cannot move letter from {current_value} to {requested_value}; "
                f"{current_value} is terminal"
            )
        super().__init__(
            message,
            details={"current": current_value, "allowed": allowed_values},
        )


class NotFoundError(LetterTrackError):
    """Referenced entity is absent (404)."""

    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: Any) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class ConflictError(LetterTrackError):
    """Uniqueness violation (409).

    Attributes:
        field: Name of the conflicting field when known (username, code, qr_code).
    """

    code = "conflict"
    status_code = 409

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message, details={"field": field} if field else None)


class UnavailableError(LetterTrackError):
    """Transient store or dependency failure (503)."""

    code = "unavailable"
    status_code = 503
    retryable = True

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(message)


class InternalError(LetterTrackError):
    """Unexpected failure; never carries details (500)."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str = "An internal error occurred") -> None:
        super().__init__(message)
