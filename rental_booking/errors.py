"""
Typed error hierarchy for the reservation engine.

Every failure surfaced by the services is a ``BookingError`` carrying a
``kind`` (stable machine-readable code), a human-readable ``message`` and an
optional list of offending ``fields``. Callers at the boundary translate
``kind`` into their own response format.

Operational errors (validation, not-found, conflict, authorization) describe
a problem with the request and pass through the services unchanged.
``DatabaseError`` is non-operational: it wraps an unexpected failure whose
details are logged but never exposed in the message.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class BookingError(Exception):
    """Base class for all reservation engine errors."""

    kind = "booking_error"
    is_operational = True

    def __init__(self, message: str, fields: Optional[Iterable[str]] = None) -> None:
        self.message = message
        self.fields: list[str] = list(fields or [])
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for the boundary layer."""
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.fields:
            payload["fields"] = self.fields
        return payload


class ValidationError(BookingError):
    """Malformed or contradictory input, illegal transition or policy violation."""

    kind = "validation_error"

    def __init__(
        self,
        message: str,
        fields: Optional[Iterable[str]] = None,
        errors: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(message, fields)
        self.errors: list[str] = list(errors or [])

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class NotFoundError(BookingError):
    """Reservation or property absent (or soft-deleted)."""

    kind = "not_found"


class ConflictError(BookingError):
    """Date range unavailable or a concurrent write won the race."""

    kind = "conflict"


class AuthorizationError(BookingError):
    """Actor has no relationship to the reservation that allows the action."""

    kind = "authorization_error"


class DatabaseError(BookingError):
    """Persistence failure. The underlying cause is chained, not exposed."""

    kind = "database_error"
    is_operational = False

    def __init__(self, message: str = "Database operation failed") -> None:
        super().__init__(message)
