"""Availability of a property for a half-open date range."""

from __future__ import annotations

from datetime import date
from typing import Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from rental_booking.db.readers.catalog import get_property
from rental_booking.db.readers.reservations import has_overlapping_reservation
from rental_booking.errors import NotFoundError
from rental_booking.metrics import availability_checks

logger = structlog.get_logger(__name__)


class AvailabilityChecker:
    """
    Decides whether a property is free for [check_in, check_out).

    A range is taken when any pending, confirmed or completed reservation that
    is not soft-deleted intersects it. Cancelled reservations never block, and
    a stay ending on the day another begins does not intersect it.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def has_conflict(
        self,
        conn: Connection,
        property_id: int,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[int] = None,
    ) -> bool:
        """
        Overlap check on the caller's connection.

        Used inside the booking transaction, after the property row is locked,
        so the answer stays true until commit. Errors propagate to the caller's
        rollback.
        """
        return has_overlapping_reservation(
            conn, property_id, check_in, check_out, exclude_reservation_id
        )

    def is_available(
        self,
        property_id: int,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[int] = None,
    ) -> bool:
        """
        Standalone availability check in its own short transaction.

        Fails closed: if the database cannot answer, the range is reported as
        unavailable.

        Args:
            property_id: Property ID
            check_in: Inclusive start date
            check_out: Exclusive end date
            exclude_reservation_id: Reservation to ignore

        Returns:
            bool: True if no active reservation overlaps the range

        Raises:
            NotFoundError: the property does not exist
        """
        try:
            with self.engine.begin() as conn:
                if get_property(conn, property_id) is None:
                    raise NotFoundError(f"Property {property_id} not found")
                conflict = self.has_conflict(
                    conn, property_id, check_in, check_out, exclude_reservation_id
                )
        except NotFoundError:
            raise
        except Exception as e:
            availability_checks.labels(result="error").inc()
            logger.exception(
                "availability_check_failed",
                property_id=property_id,
                check_in=check_in.isoformat(),
                check_out=check_out.isoformat(),
                error=str(e),
            )
            return False

        availability_checks.labels(result="unavailable" if conflict else "available").inc()
        return not conflict
