"""
Public entry point of the reservation engine.

ReservationService wires the components to one injected engine and exposes
the operations the surrounding application calls. It holds no per-request
state; one instance is shared by all concurrent callers.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from sqlalchemy.engine import Engine

from rental_booking.config import (
    CANCELLATION_LEAD_HOURS,
    DEFAULT_CURRENCY,
    DEFAULT_PAYMENT_METHOD,
    GUEST_TOKEN_SECRET,
    MAX_STAY_DAYS,
    PENDING_TIMEOUT_MINUTES,
)
from rental_booking.errors import ValidationError
from rental_booking.models.reservations import ReservationStatus
from rental_booking.schemas.reservations import (
    Actor,
    Pagination,
    ReservationFilters,
    ReservationPage,
    ReservationRequest,
    ReservationView,
)
from rental_booking.services.availability import AvailabilityChecker
from rental_booking.services.bookings import BookingStore
from rental_booking.services.queries import QueryEngine
from rental_booking.services.status import StatusMachine
from rental_booking.services.sweeper import ExpirationSweeper
from rental_booking.utils.datetime import utc_now


class ReservationService:
    """
    Facade over availability, booking, status, sweep and query components.

    Example:
        >>> from rental_booking.db.engine import build_engine
        >>> service = ReservationService(build_engine("sqlite:///bookings.db"))
        >>> view = service.create({"property_id": 1, "check_in": "2024-01-10",
        ...                        "check_out": "2024-01-15"}, actor_id=7)
        >>> service.cancel(view.id, Actor(id=7))
        True
    """

    def __init__(
        self,
        engine: Engine,
        clock: Callable[[], datetime] = utc_now,
        cancellation_lead_hours: int = CANCELLATION_LEAD_HOURS,
        default_currency: str = DEFAULT_CURRENCY,
        default_payment_method: str = DEFAULT_PAYMENT_METHOD,
        max_stay_days: int = MAX_STAY_DAYS,
        guest_token_secret: str = GUEST_TOKEN_SECRET,
    ) -> None:
        self.engine = engine
        self.availability = AvailabilityChecker(engine)
        self.store = BookingStore(
            engine,
            availability=self.availability,
            clock=clock,
            default_currency=default_currency,
            default_payment_method=default_payment_method,
            max_stay_days=max_stay_days,
            guest_token_secret=guest_token_secret,
        )
        self.status = StatusMachine(
            engine,
            store=self.store,
            clock=clock,
            cancellation_lead_hours=cancellation_lead_hours,
            guest_token_secret=guest_token_secret,
        )
        self.sweeper = ExpirationSweeper(engine, clock=clock)
        self.queries = QueryEngine(engine, clock=clock)

    def create(
        self,
        request: Union[ReservationRequest, Mapping[str, Any]],
        actor_id: Optional[int] = None,
    ) -> ReservationView:
        return self.store.create(request, actor_id)

    def find_by_id(self, reservation_id: int) -> ReservationView:
        return self.queries.find_by_id(reservation_id)

    def find(
        self,
        filters: Optional[ReservationFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> ReservationPage:
        return self.queries.find(filters, pagination)

    def transition(
        self,
        reservation_id: int,
        target: Union[str, ReservationStatus],
        actor: Optional[Actor],
        guest_token: Optional[str] = None,
    ) -> ReservationView:
        return self.status.transition(reservation_id, target, actor, guest_token=guest_token)

    def cancel(
        self,
        reservation_id: int,
        actor: Optional[Actor],
        guest_token: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> bool:
        return self.status.cancel(reservation_id, actor, guest_token=guest_token, reason=reason)

    def cancel_many(self, reservation_ids: Iterable[int], actor: Actor) -> dict[str, Any]:
        return self.status.cancel_many(reservation_ids, actor)

    def delete(self, reservation_id: int, actor: Actor) -> bool:
        return self.store.delete(reservation_id, actor)

    def check_availability(self, property_id: int, check_in: date, check_out: date) -> bool:
        """
        Whether the property is free for [check_in, check_out).

        A database failure reports the range as unavailable.

        Raises:
            ValidationError: check_in is not before check_out
            NotFoundError: the property does not exist
        """
        if check_in >= check_out:
            raise ValidationError("check_out must be after check_in", fields=["check_out"])
        return self.availability.is_available(property_id, check_in, check_out)

    def sweep_expired(self, timeout_minutes: int = PENDING_TIMEOUT_MINUTES) -> int:
        return self.sweeper.sweep_expired(timeout_minutes)

    def property_stats(self, property_id: int) -> dict[str, Any]:
        return self.queries.property_stats(property_id)

    def for_guest(
        self,
        actor_id: int,
        filters: Optional[ReservationFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> ReservationPage:
        return self.queries.for_guest(actor_id, filters, pagination)

    def for_host(
        self,
        owner_id: int,
        filters: Optional[ReservationFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> ReservationPage:
        return self.queries.for_host(owner_id, filters, pagination)
