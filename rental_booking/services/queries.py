"""Read side of the reservation engine: lookups, filtered pages and statistics."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from rental_booking.db.readers.catalog import get_properties_by_ids, get_property, get_users_by_ids
from rental_booking.db.readers.reservations import (
    find_reservations,
    get_payments_by_reservation_ids,
    get_property_stats,
    get_reservation,
)
from rental_booking.errors import BookingError, DatabaseError, NotFoundError
from rental_booking.schemas.reservations import (
    Pagination,
    PaymentView,
    PropertySummary,
    ReservationFilters,
    ReservationPage,
    ReservationView,
    UserSummary,
)
from rental_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def hydrate(conn: Connection, rows: list[dict[str, Any]]) -> list[ReservationView]:
    """
    Attach payment, property and user records to reservation rows.

    One batched query per related table regardless of the number of rows.
    """
    if not rows:
        return []

    payments = get_payments_by_reservation_ids(conn, (row["id"] for row in rows))
    properties = get_properties_by_ids(conn, (row["property_id"] for row in rows))
    users = get_users_by_ids(conn, (row["actor_id"] for row in rows))

    views = []
    for row in rows:
        payment = payments.get(row["id"])
        prop = properties.get(row["property_id"])
        user = users.get(row["actor_id"]) if row["actor_id"] is not None else None
        views.append(
            ReservationView(
                **row,
                payment=PaymentView(**payment) if payment else None,
                listing=PropertySummary(**prop) if prop else None,
                user=UserSummary(**user) if user else None,
            )
        )
    return views


class QueryEngine:
    """
    Filterable, paginated retrieval of reservations.

    Soft-deleted reservations are excluded unless a filter asks for them.
    Reads run in their own short transactions and never take row locks.
    """

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utc_now) -> None:
        self.engine = engine
        self.clock = clock

    def _today(self) -> date:
        return self.clock().date()

    def find_by_id(self, reservation_id: int, include_deleted: bool = False) -> ReservationView:
        """
        Fetch one reservation with its related records.

        Raises:
            NotFoundError: if the reservation does not exist or is deleted
        """
        try:
            with self.engine.begin() as conn:
                row = get_reservation(conn, reservation_id, include_deleted=include_deleted)
                if row is None:
                    raise NotFoundError(f"Reservation {reservation_id} not found")
                return hydrate(conn, [row])[0]
        except BookingError:
            raise
        except Exception as e:
            logger.exception("reservation_lookup_failed", reservation_id=reservation_id, error=str(e))
            raise DatabaseError("Failed to retrieve reservation") from e

    def find(
        self,
        filters: Optional[ReservationFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> ReservationPage:
        """
        Fetch a page of reservations matching ``filters``.

        Args:
            filters: Filter set (defaults to every live reservation)
            pagination: Offset/limit window

        Returns:
            ReservationPage: items of the window and the total matching count
        """
        filters = filters or ReservationFilters()
        pagination = pagination or Pagination()

        try:
            with self.engine.begin() as conn:
                rows, total = find_reservations(
                    conn, filters, pagination.offset, pagination.limit, self._today()
                )
                items = hydrate(conn, rows)
        except Exception as e:
            logger.exception(
                "reservation_search_failed", filters=filters.model_dump(mode="json"), error=str(e)
            )
            raise DatabaseError("Failed to retrieve reservations") from e

        return ReservationPage(
            items=items, total=total, limit=pagination.limit, offset=pagination.offset
        )

    def for_guest(
        self,
        actor_id: int,
        filters: Optional[ReservationFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> ReservationPage:
        """Reservations booked by ``actor_id``."""
        base = filters or ReservationFilters()
        return self.find(base.model_copy(update={"actor_id": actor_id}), pagination)

    def for_host(
        self,
        owner_id: int,
        filters: Optional[ReservationFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> ReservationPage:
        """Reservations on properties owned by ``owner_id``."""
        base = filters or ReservationFilters()
        return self.find(base.model_copy(update={"owner_id": owner_id}), pagination)

    def property_stats(self, property_id: int) -> dict[str, Any]:
        """
        Booking statistics for a property.

        Returns:
            dict: total, completed, cancelled and upcoming counts, occupancy
            rate (completed share of all reservations, in percent) and revenue

        Raises:
            NotFoundError: if the property does not exist
        """
        try:
            with self.engine.begin() as conn:
                if get_property(conn, property_id) is None:
                    raise NotFoundError(f"Property {property_id} not found")
                stats = get_property_stats(conn, property_id, self._today())
        except BookingError:
            raise
        except Exception as e:
            logger.exception("property_stats_failed", property_id=property_id, error=str(e))
            raise DatabaseError("Failed to retrieve property booking statistics") from e

        total = int(stats["total"])
        completed = int(stats["completed"])
        return {
            "total": total,
            "completed": completed,
            "cancelled": int(stats["cancelled"]),
            "upcoming": int(stats["upcoming"]),
            "occupancy_rate": round(completed / total * 100, 1) if total else 0.0,
            "revenue": Decimal(str(stats["revenue"])).quantize(Decimal("0.01")),
        }
