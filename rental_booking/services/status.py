"""
Reservation status transitions.

    pending   -> confirmed | cancelled
    confirmed -> completed | cancelled
    cancelled, completed: terminal

A change is allowed for the booking actor, the owner of the property, an
administrator, or (for guest bookings) whoever presents the guest's
contact-verification token. Cancelling is refused inside the configured lead
time before check-in.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import structlog
from sqlalchemy.engine import Engine

from rental_booking.config import CANCELLATION_LEAD_HOURS, GUEST_TOKEN_SECRET
from rental_booking.db.readers.catalog import get_property
from rental_booking.db.readers.reservations import get_reservation
from rental_booking.errors import (
    AuthorizationError,
    BookingError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from rental_booking.metrics import status_transitions
from rental_booking.models.reservations import ReservationStatus
from rental_booking.schemas.reservations import Actor, ReservationView
from rental_booking.services.bookings import BookingStore
from rental_booking.services.guest_tokens import require_secret, verify_guest_token
from rental_booking.services.queries import hydrate
from rental_booking.utils.datetime import start_of_day_utc, utc_now

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def parse_status(value: Union[str, ReservationStatus]) -> ReservationStatus:
    """
    Raises:
        ValidationError: for an unknown status name
    """
    try:
        return ReservationStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in ReservationStatus)
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: {allowed}", fields=["status"]
        ) from None


class StatusMachine:
    """Validates and applies status transitions under authorization and policy."""

    def __init__(
        self,
        engine: Engine,
        store: Optional[BookingStore] = None,
        clock: Callable[[], datetime] = utc_now,
        cancellation_lead_hours: int = CANCELLATION_LEAD_HOURS,
        guest_token_secret: str = GUEST_TOKEN_SECRET,
    ) -> None:
        self.engine = engine
        self.clock = clock
        self.store = store or BookingStore(engine, clock=clock)
        self.cancellation_lead = timedelta(hours=cancellation_lead_hours)
        self.guest_token_secret = require_secret(guest_token_secret)

    def _authorize(
        self,
        reservation: Mapping[str, Any],
        prop: Optional[Mapping[str, Any]],
        actor: Optional[Actor],
        guest_token: Optional[str],
    ) -> None:
        if actor is not None:
            if actor.is_admin:
                return
            if actor.id is not None:
                if reservation["actor_id"] == actor.id:
                    return
                if prop is not None and prop["owner_id"] == actor.id:
                    return

        if reservation["actor_id"] is None and verify_guest_token(
            guest_token, reservation["id"], reservation["guest_email"], self.guest_token_secret
        ):
            return

        raise AuthorizationError("You do not have permission to update this reservation")

    def _check_cancellation_window(self, reservation: Mapping[str, Any]) -> None:
        check_in_at = start_of_day_utc(reservation["check_in"])
        if check_in_at - self.clock() <= self.cancellation_lead:
            hours = int(self.cancellation_lead.total_seconds() // 3600)
            raise ValidationError(
                f"Reservations must be cancelled more than {hours} hours before check-in",
                fields=["status"],
            )

    def transition(
        self,
        reservation_id: int,
        target: Union[str, ReservationStatus],
        actor: Optional[Actor],
        guest_token: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ReservationView:
        """
        Move a reservation to ``target``.

        Cancelling an already cancelled reservation succeeds without changes.

        Args:
            reservation_id: Reservation ID
            target: Requested status
            actor: Caller identity (None for an anonymous guest)
            guest_token: Contact-verification token for guest bookings
            reason: Cancellation reason, stored when target is cancelled

        Returns:
            ReservationView: The reservation after the change

        Raises:
            ValidationError: unknown status, illegal edge or inside the cancellation window
            NotFoundError: reservation absent or deleted
            AuthorizationError: caller may not change this reservation
            ConflictError: a concurrent change won the race
            DatabaseError: persistence failure; nothing was written
        """
        target_status = parse_status(target)
        applied_from: Optional[ReservationStatus] = None

        try:
            with self.engine.begin() as conn:
                reservation = get_reservation(conn, reservation_id, for_update=True)
                if reservation is None:
                    raise NotFoundError(f"Reservation {reservation_id} not found")

                prop = get_property(conn, reservation["property_id"])
                self._authorize(reservation, prop, actor, guest_token)

                current = ReservationStatus(reservation["status"])
                if not (current == target_status == ReservationStatus.CANCELLED):
                    if current == ReservationStatus.COMPLETED:
                        raise ValidationError(
                            "Reservation is completed and can no longer change", fields=["status"]
                        )
                    if not can_transition(current, target_status):
                        raise ValidationError(
                            f"Cannot change reservation status from {current.value} "
                            f"to {target_status.value}",
                            fields=["status"],
                        )
                    if target_status == ReservationStatus.CANCELLED:
                        self._check_cancellation_window(reservation)

                    self.store.update_status(conn, reservation, target_status, reason)
                    applied_from = current
                    reservation = get_reservation(conn, reservation_id)

                view = hydrate(conn, [reservation])[0]

        except BookingError as e:
            logger.info(
                "reservation_transition_rejected",
                reservation_id=reservation_id,
                target=target_status.value,
                actor_id=actor.id if actor else None,
                kind=e.kind,
                reason=e.message,
            )
            raise
        except Exception as e:
            logger.exception(
                "reservation_transition_failed",
                reservation_id=reservation_id,
                target=target_status.value,
                error=str(e),
            )
            raise DatabaseError("Failed to update reservation status") from e

        if applied_from is None:
            logger.info("reservation_already_cancelled", reservation_id=reservation_id)
            return view

        status_transitions.labels(from_status=applied_from.value, to_status=target_status.value).inc()
        logger.info(
            "reservation_status_updated",
            reservation_id=reservation_id,
            old_status=applied_from.value,
            new_status=target_status.value,
            updated_by=actor.id if actor else None,
        )

        if target_status == ReservationStatus.CANCELLED and self.store.fail_payment(reservation_id):
            if view.payment is not None and view.payment.status == "pending":
                view.payment.status = "failed"

        return view

    def cancel(
        self,
        reservation_id: int,
        actor: Optional[Actor],
        guest_token: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Cancel a reservation. Same rules and errors as ``transition``."""
        self.transition(
            reservation_id, ReservationStatus.CANCELLED, actor, guest_token=guest_token, reason=reason
        )
        return True

    def cancel_many(self, reservation_ids: Iterable[int], actor: Actor) -> dict[str, Any]:
        """
        Cancel several reservations independently.

        Each cancellation commits or fails on its own; one failure does not
        stop the rest.

        Returns:
            dict: total, succeeded, failed and the error kind per failed id
        """
        ids = list(dict.fromkeys(reservation_ids))
        errors: dict[int, str] = {}

        for reservation_id in ids:
            try:
                self.cancel(reservation_id, actor)
            except BookingError as e:
                errors[reservation_id] = e.kind

        summary = {
            "total": len(ids),
            "succeeded": len(ids) - len(errors),
            "failed": len(errors),
            "errors": errors,
        }
        logger.info(
            "batch_cancellation_completed",
            actor_id=actor.id,
            total=summary["total"],
            succeeded=summary["succeeded"],
            failed=summary["failed"],
        )
        return summary
