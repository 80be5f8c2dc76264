from datetime import datetime
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from rental_booking.models.reservations import Reservation, ReservationStatus

logger = structlog.get_logger(__name__)


def insert_reservation(conn: Connection, row: dict[str, Any]) -> int:
    """
    Insert a reservation row inside the caller's transaction.

    Args:
        conn (Connection): SQLAlchemy DB connection (within transaction).
        row (dict): Column values; status defaults to pending.

    Returns:
        int: The new reservation ID.
    """
    result = conn.execute(insert(Reservation).values(**row))
    return int(result.inserted_primary_key[0])


def update_status(
    conn: Connection,
    reservation_id: int,
    from_status: str,
    to_status: str,
    now: datetime,
    cancellation_reason: Optional[str] = None,
) -> int:
    """
    Move a reservation from ``from_status`` to ``to_status``.

    The update is conditional on the current status so a concurrent writer
    that already moved the row makes this a no-op.

    Returns:
        int: Number of rows updated (0 or 1).
    """
    values: dict[str, Any] = {"status": to_status, "updated_at": now}
    if to_status == ReservationStatus.CANCELLED.value:
        values["cancellation_reason"] = cancellation_reason

    stmt = (
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .where(Reservation.status == from_status)
        .where(Reservation.deleted_at.is_(None))
        .values(**values)
    )
    return conn.execute(stmt).rowcount


def cancel_expired(
    conn: Connection,
    reservation_ids: Sequence[int],
    cutoff: datetime,
    now: datetime,
    reason: str,
) -> int:
    """
    Cancel stale pending reservations in one statement.

    The sweep predicate is repeated in the WHERE clause so rows confirmed or
    cancelled since they were selected are left alone.

    Returns:
        int: Number of reservations cancelled.
    """
    if not reservation_ids:
        return 0

    stmt = (
        update(Reservation)
        .where(Reservation.id.in_(reservation_ids))
        .where(Reservation.status == ReservationStatus.PENDING.value)
        .where(Reservation.deleted_at.is_(None))
        .where(Reservation.created_at < cutoff)
        .values(
            status=ReservationStatus.CANCELLED.value,
            cancellation_reason=reason,
            updated_at=now,
        )
    )
    return conn.execute(stmt).rowcount


def soft_delete_reservation(conn: Connection, reservation_id: int, now: datetime) -> int:
    """
    Tombstone a reservation by setting deleted_at.

    Returns:
        int: Number of rows updated (0 if already deleted).
    """
    stmt = (
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .where(Reservation.deleted_at.is_(None))
        .values(deleted_at=now, updated_at=now)
    )
    updated = conn.execute(stmt).rowcount

    logger.info("reservation_soft_deleted", reservation_id=reservation_id, updated=updated)
    return updated
