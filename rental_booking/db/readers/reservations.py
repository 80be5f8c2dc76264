"""Read queries over reservations and their payments."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import ColumnElement

from rental_booking.models.payments import Payment
from rental_booking.models.properties import Property
from rental_booking.models.reservations import BLOCKING_STATUSES, Reservation, ReservationStatus
from rental_booking.schemas.reservations import ReservationFilters, When


def overlaps(check_in: date, check_out: date) -> ColumnElement[bool]:
    """Half-open interval intersection of a reservation with [check_in, check_out)."""
    return and_(Reservation.check_in < check_out, Reservation.check_out > check_in)


def has_overlapping_reservation(
    conn: Connection,
    property_id: int,
    check_in: date,
    check_out: date,
    exclude_reservation_id: Optional[int] = None,
) -> bool:
    """
    Check whether an active reservation on the property intersects the range.

    Only pending, confirmed and completed reservations that are not
    soft-deleted hold dates.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        property_id (int): Property ID.
        check_in (date): Inclusive start.
        check_out (date): Exclusive end.
        exclude_reservation_id (Optional[int]): Reservation to ignore.

    Returns:
        bool: True if at least one overlapping active reservation exists.
    """
    stmt = (
        select(Reservation.id)
        .where(Reservation.property_id == property_id)
        .where(Reservation.status.in_(BLOCKING_STATUSES))
        .where(Reservation.deleted_at.is_(None))
        .where(overlaps(check_in, check_out))
        .limit(1)
    )
    if exclude_reservation_id is not None:
        stmt = stmt.where(Reservation.id != exclude_reservation_id)
    return conn.execute(stmt).first() is not None


def get_reservation(
    conn: Connection,
    reservation_id: int,
    for_update: bool = False,
    include_deleted: bool = False,
) -> Optional[dict[str, Any]]:
    """
    Fetch a single reservation.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (int): Reservation ID.
        for_update (bool): Row-lock until the transaction ends.
        include_deleted (bool): Return soft-deleted rows as well.

    Returns:
        Optional[dict]: Reservation columns or None.
    """
    stmt = select(Reservation.__table__).where(Reservation.id == reservation_id)
    if not include_deleted:
        stmt = stmt.where(Reservation.deleted_at.is_(None))
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def get_payments_by_reservation_ids(
    conn: Connection, reservation_ids: Iterable[int]
) -> dict[int, dict[str, Any]]:
    """Fetch payments for many reservations in one query, keyed by reservation id."""
    ids = set(reservation_ids)
    if not ids:
        return {}
    result = conn.execute(select(Payment.__table__).where(Payment.reservation_id.in_(ids)))
    return {row["reservation_id"]: dict(row) for row in result.mappings()}


def _filter_clauses(filters: ReservationFilters, today: date) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []

    if not filters.include_deleted:
        clauses.append(Reservation.deleted_at.is_(None))
    if filters.actor_id is not None:
        clauses.append(Reservation.actor_id == filters.actor_id)
    if filters.property_id is not None:
        clauses.append(Reservation.property_id == filters.property_id)
    if filters.owner_id is not None:
        owned = select(Property.id).where(Property.owner_id == filters.owner_id)
        clauses.append(Reservation.property_id.in_(owned))
    if filters.statuses:
        clauses.append(Reservation.status.in_([s.value for s in filters.statuses]))
    if filters.when == When.UPCOMING:
        clauses.append(Reservation.check_out > today)
    elif filters.when == When.PAST:
        clauses.append(Reservation.check_out <= today)
    if filters.overlaps_from is not None and filters.overlaps_to is not None:
        clauses.append(overlaps(filters.overlaps_from, filters.overlaps_to))
    elif filters.overlaps_from is not None:
        clauses.append(Reservation.check_out > filters.overlaps_from)
    elif filters.overlaps_to is not None:
        clauses.append(Reservation.check_in < filters.overlaps_to)

    return clauses


def find_reservations(
    conn: Connection,
    filters: ReservationFilters,
    offset: int,
    limit: int,
    today: date,
) -> tuple[list[dict[str, Any]], int]:
    """
    Fetch one page of reservations matching ``filters`` plus the unpaged total.

    Rows are ordered newest first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        filters (ReservationFilters): Filter set.
        offset (int): Rows to skip.
        limit (int): Page size.
        today (date): Reference date for upcoming/past filters.

    Returns:
        tuple[list[dict], int]: Page rows and total matching count.
    """
    clauses = _filter_clauses(filters, today)

    total = conn.execute(
        select(func.count()).select_from(Reservation).where(*clauses)
    ).scalar_one()

    rows = conn.execute(
        select(Reservation.__table__)
        .where(*clauses)
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        .offset(offset)
        .limit(limit)
    ).mappings()

    return [dict(row) for row in rows], total


def get_property_stats(conn: Connection, property_id: int, today: date) -> dict[str, Any]:
    """
    Aggregate booking counters for one property in a single query.

    Returns:
        dict: total, completed, cancelled, upcoming (confirmed, check-in after
        today) and revenue (confirmed + completed).
    """
    completed = ReservationStatus.COMPLETED.value
    cancelled = ReservationStatus.CANCELLED.value
    confirmed = ReservationStatus.CONFIRMED.value

    stmt = select(
        func.count().label("total"),
        func.coalesce(func.sum(case((Reservation.status == completed, 1), else_=0)), 0).label(
            "completed"
        ),
        func.coalesce(func.sum(case((Reservation.status == cancelled, 1), else_=0)), 0).label(
            "cancelled"
        ),
        func.coalesce(
            func.sum(
                case(
                    (and_(Reservation.status == confirmed, Reservation.check_in > today), 1),
                    else_=0,
                )
            ),
            0,
        ).label("upcoming"),
        func.coalesce(
            func.sum(
                case(
                    (Reservation.status.in_([confirmed, completed]), Reservation.total_price),
                    else_=0,
                )
            ),
            0,
        ).label("revenue"),
    ).where(Reservation.property_id == property_id, Reservation.deleted_at.is_(None))

    return dict(conn.execute(stmt).mappings().one())


def get_expired_pending_ids(conn: Connection, cutoff: datetime) -> list[int]:
    """IDs of live pending reservations created before ``cutoff``."""
    result = conn.execute(
        select(Reservation.id)
        .where(Reservation.status == ReservationStatus.PENDING.value)
        .where(Reservation.deleted_at.is_(None))
        .where(Reservation.created_at < cutoff)
    )
    return list(result.scalars().all())
