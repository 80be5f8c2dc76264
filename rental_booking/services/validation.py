"""
Validation of reservation requests.

Shape and per-field rules live on the pydantic schema; the cross-field rules
(date order, stay length, identity mode) are checked here. Every violation is
collected so the caller sees all offending fields at once.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

import pydantic

from rental_booking.config import MAX_STAY_DAYS
from rental_booking.errors import ValidationError
from rental_booking.schemas.reservations import ReservationRequest

GUEST_CONTACT_FIELDS = ("guest_name", "guest_email", "guest_phone")


def parse_request(payload: Union[ReservationRequest, Mapping[str, Any]]) -> ReservationRequest:
    """
    Coerce a raw payload into a ReservationRequest.

    Raises:
        ValidationError: listing every field pydantic rejected
    """
    if isinstance(payload, ReservationRequest):
        return payload
    try:
        return ReservationRequest.model_validate(payload)
    except pydantic.ValidationError as exc:
        fields: list[str] = []
        errors: list[str] = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"]) or "request"
            if field not in fields:
                fields.append(field)
            errors.append(f"{field}: {err['msg']}")
        raise ValidationError("Invalid reservation data", fields=fields, errors=errors) from exc


def validate_request(
    request: ReservationRequest,
    actor_id: Optional[int],
    max_stay_days: int = MAX_STAY_DAYS,
) -> None:
    """
    Check the rules that span several fields.

    Raises:
        ValidationError: with the offending field names and one message each
    """
    fields: list[str] = []
    errors: list[str] = []

    def reject(field: str, message: str) -> None:
        if field not in fields:
            fields.append(field)
        errors.append(message)

    if request.check_in >= request.check_out:
        reject("check_out", "check_out must be after check_in")
    elif (request.check_out - request.check_in).days > max_stay_days:
        reject("check_out", f"Stays are limited to {max_stay_days} days")

    if actor_id is None:
        if not request.guest_name:
            reject("guest_name", "guest_name is required for guest bookings")
        if not request.guest_email:
            reject("guest_email", "guest_email is required for guest bookings")
    else:
        for field in GUEST_CONTACT_FIELDS:
            if getattr(request, field):
                reject(field, f"{field} is only accepted for guest bookings")

    if errors:
        raise ValidationError("Invalid reservation data", fields=fields, errors=errors)
