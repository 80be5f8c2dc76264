from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from rental_booking.models.payments import Payment, PaymentStatus
from rental_booking.models.reservations import Reservation, ReservationStatus


def insert_payment(conn: Connection, row: dict[str, Any]) -> int:
    """
    Insert the payment record of a reservation.

    Must run in the same transaction as the reservation insert.

    Args:
        conn (Connection): SQLAlchemy DB connection (within transaction).
        row (dict): reservation_id, amount, currency, method.

    Returns:
        int: The new payment ID.
    """
    result = conn.execute(insert(Payment).values(**row))
    return int(result.inserted_primary_key[0])


def mark_payments_failed(conn: Connection, reservation_ids: Sequence[int], now: datetime) -> int:
    """
    Set still-pending payments of cancelled reservations to failed.

    Reservations in ``reservation_ids`` that are not cancelled (for example
    confirmed between a sweep's select and update) keep their payment as is.
    Completed or refunded payments are never touched.

    Returns:
        int: Number of payments updated.
    """
    if not reservation_ids:
        return 0

    cancelled = (
        select(Reservation.id)
        .where(Reservation.id.in_(reservation_ids))
        .where(Reservation.status == ReservationStatus.CANCELLED.value)
    )
    stmt = (
        update(Payment)
        .where(Payment.reservation_id.in_(cancelled))
        .where(Payment.status == PaymentStatus.PENDING.value)
        .values(status=PaymentStatus.FAILED.value, updated_at=now)
    )
    return conn.execute(stmt).rowcount
