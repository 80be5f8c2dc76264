"""
Write side of the reservation engine.

BookingStore owns the reservations and payments tables. Creation runs the
whole check-then-insert sequence in one transaction that holds a lock on the
property row, so two requests for the same property are serialized and the
second one sees the first one's reservation. Requests for different
properties never wait on each other.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Union

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from rental_booking.config import (
    DEFAULT_CURRENCY,
    DEFAULT_PAYMENT_METHOD,
    GUEST_TOKEN_SECRET,
    MAX_STAY_DAYS,
)
from rental_booking.db.readers.catalog import get_property
from rental_booking.db.readers.reservations import get_reservation
from rental_booking.db.writers.payments import insert_payment, mark_payments_failed
from rental_booking.db.writers.reservations import (
    insert_reservation,
    soft_delete_reservation,
    update_status,
)
from rental_booking.errors import (
    AuthorizationError,
    BookingError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from rental_booking.metrics import reservations_created
from rental_booking.models.payments import PaymentMethod
from rental_booking.models.reservations import OVERLAP_CONSTRAINT, ReservationStatus
from rental_booking.schemas.reservations import Actor, ReservationRequest, ReservationView
from rental_booking.services.availability import AvailabilityChecker
from rental_booking.services.guest_tokens import issue_guest_token, require_secret
from rental_booking.services.queries import hydrate
from rental_booking.services.validation import parse_request, validate_request
from rental_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

CREATE_OUTCOMES = {
    "validation_error": "invalid",
    "not_found": "not_found",
    "conflict": "conflict",
}


def is_overlap_violation(error: IntegrityError) -> bool:
    """True when the database rejected a row because of the no-overlap constraint."""
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) if diag is not None else None
    if constraint_name:
        return constraint_name == OVERLAP_CONSTRAINT
    return OVERLAP_CONSTRAINT in str(orig)


def compute_total_price(prop: Mapping[str, Any], nights: int) -> Decimal:
    """
    Price of a stay from the property's nightly rate.

    Falls back to the flat ``price`` column for properties without a
    ``price_per_night``.

    Raises:
        ValidationError: if the property has no usable price
    """
    rate = prop.get("price_per_night")
    if rate is None:
        rate = prop.get("price")
    if rate is None:
        raise ValidationError(
            "Property has no nightly price; total_price must be supplied",
            fields=["total_price"],
        )
    return (Decimal(str(rate)) * nights).quantize(Decimal("0.01"))


class BookingStore:
    """
    Atomic create, status update and soft delete of reservations.

    A reservation and its payment are inserted together or not at all.
    """

    def __init__(
        self,
        engine: Engine,
        availability: Optional[AvailabilityChecker] = None,
        clock: Callable[[], datetime] = utc_now,
        default_currency: str = DEFAULT_CURRENCY,
        default_payment_method: str = DEFAULT_PAYMENT_METHOD,
        max_stay_days: int = MAX_STAY_DAYS,
        guest_token_secret: str = GUEST_TOKEN_SECRET,
    ) -> None:
        self.engine = engine
        self.availability = availability or AvailabilityChecker(engine)
        self.clock = clock
        self.default_currency = default_currency
        self.default_payment_method = PaymentMethod(default_payment_method)
        self.max_stay_days = max_stay_days
        self.guest_token_secret = require_secret(guest_token_secret)

    def create(
        self,
        payload: Union[ReservationRequest, Mapping[str, Any]],
        actor_id: Optional[int] = None,
    ) -> ReservationView:
        """
        Create a pending reservation and its pending payment.

        Args:
            payload: Reservation request (schema instance or raw mapping)
            actor_id: Authenticated booker, or None for a guest booking

        Returns:
            ReservationView: The stored reservation with its payment. Guest
            bookings also carry the contact-verification token.

        Raises:
            ValidationError: malformed request or unpriced property
            NotFoundError: property does not exist
            ConflictError: property inactive or dates already taken
            DatabaseError: any other failure; nothing was written
        """
        property_id: Optional[int] = None

        try:
            request = parse_request(payload)
            property_id = request.property_id
            validate_request(request, actor_id, self.max_stay_days)

            with self.engine.begin() as conn:
                view = self._create_in_transaction(conn, request, actor_id)

        except BookingError as e:
            reservations_created.labels(outcome=CREATE_OUTCOMES.get(e.kind, "error")).inc()
            logger.info(
                "reservation_rejected",
                property_id=property_id,
                actor_id=actor_id,
                kind=e.kind,
                reason=e.message,
                fields=e.fields,
            )
            raise
        except IntegrityError as e:
            if is_overlap_violation(e):
                reservations_created.labels(outcome="conflict").inc()
                logger.info("reservation_conflict_at_commit", property_id=property_id)
                raise ConflictError("Property is not available for the selected dates") from e
            reservations_created.labels(outcome="error").inc()
            logger.exception("reservation_create_failed", property_id=property_id, error=str(e))
            raise DatabaseError("Failed to create reservation") from e
        except Exception as e:
            reservations_created.labels(outcome="error").inc()
            logger.exception("reservation_create_failed", property_id=property_id, error=str(e))
            raise DatabaseError("Failed to create reservation") from e

        reservations_created.labels(outcome="created").inc()
        logger.info(
            "reservation_created",
            reservation_id=view.id,
            property_id=view.property_id,
            actor_id=actor_id,
            check_in=view.check_in.isoformat(),
            check_out=view.check_out.isoformat(),
            total_price=str(view.total_price),
        )
        return view

    def _create_in_transaction(
        self, conn: Connection, request: ReservationRequest, actor_id: Optional[int]
    ) -> ReservationView:
        prop = get_property(conn, request.property_id, for_update=True)
        if prop is None:
            raise NotFoundError(f"Property {request.property_id} not found")
        if not prop["active"]:
            raise ConflictError("Property is not accepting reservations")

        if self.availability.has_conflict(
            conn, request.property_id, request.check_in, request.check_out
        ):
            raise ConflictError("Property is not available for the selected dates")

        nights = math.ceil((request.check_out - request.check_in).days)
        total_price = request.total_price
        if total_price is None:
            total_price = compute_total_price(prop, nights)

        now = self.clock()
        reservation_id = insert_reservation(
            conn,
            {
                "property_id": request.property_id,
                "actor_id": actor_id,
                "guest_name": request.guest_name if actor_id is None else None,
                "guest_email": request.guest_email if actor_id is None else None,
                "guest_phone": request.guest_phone if actor_id is None else None,
                "check_in": request.check_in,
                "check_out": request.check_out,
                "occupant_count": request.occupant_count,
                "total_price": total_price,
                "special_requests": request.special_requests,
                "status": ReservationStatus.PENDING.value,
                "created_at": now,
                "updated_at": now,
            },
        )
        insert_payment(
            conn,
            {
                "reservation_id": reservation_id,
                "amount": total_price,
                "currency": (request.currency or self.default_currency).upper(),
                "method": (request.payment_method or self.default_payment_method).value,
                "created_at": now,
                "updated_at": now,
            },
        )

        row = get_reservation(conn, reservation_id)
        view = hydrate(conn, [row])[0]
        if actor_id is None:
            view.guest_token = issue_guest_token(
                reservation_id, request.guest_email or "", self.guest_token_secret
            )
        return view

    def update_status(
        self,
        conn: Connection,
        reservation: Mapping[str, Any],
        target: ReservationStatus,
        reason: Optional[str] = None,
    ) -> None:
        """
        Apply a validated status change inside the caller's transaction.

        Raises:
            ConflictError: the reservation changed since it was loaded
        """
        updated = update_status(
            conn,
            reservation["id"],
            reservation["status"],
            target.value,
            self.clock(),
            cancellation_reason=reason,
        )
        if updated != 1:
            raise ConflictError(
                f"Reservation {reservation['id']} was modified concurrently; retry the request"
            )

    def fail_payment(self, reservation_id: int) -> bool:
        """
        Mark the payment of a cancelled reservation as failed.

        Best-effort: runs in its own transaction after the cancellation has
        committed, and a failure is logged rather than raised.

        Returns:
            bool: True if the update ran without error
        """
        try:
            with self.engine.begin() as conn:
                mark_payments_failed(conn, [reservation_id], self.clock())
        except Exception as e:
            logger.warning(
                "payment_failure_update_failed", reservation_id=reservation_id, error=str(e)
            )
            return False
        return True

    def delete(self, reservation_id: int, actor: Actor) -> bool:
        """
        Soft-delete a reservation. Only admins and the property owner may.

        Deleted reservations disappear from every read path and stop holding
        their dates.

        Raises:
            NotFoundError: reservation absent or already deleted
            AuthorizationError: actor is neither admin nor owner
            DatabaseError: persistence failure
        """
        try:
            with self.engine.begin() as conn:
                reservation = get_reservation(conn, reservation_id, for_update=True)
                if reservation is None:
                    raise NotFoundError(f"Reservation {reservation_id} not found")

                prop = get_property(conn, reservation["property_id"])
                is_owner = prop is not None and actor.id is not None and prop["owner_id"] == actor.id
                if not (actor.is_admin or is_owner):
                    raise AuthorizationError(
                        "Only an administrator or the property owner can delete a reservation"
                    )

                soft_delete_reservation(conn, reservation_id, self.clock())
        except BookingError:
            raise
        except Exception as e:
            logger.exception("reservation_delete_failed", reservation_id=reservation_id, error=str(e))
            raise DatabaseError("Failed to delete reservation") from e

        logger.info("reservation_deleted", reservation_id=reservation_id, actor_id=actor.id)
        return True
