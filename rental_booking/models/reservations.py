# models/reservations.py

import enum

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)

from rental_booking.models.base import Base
from rental_booking.utils.datetime import utc_now


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that hold the dates of a property
BLOCKING_STATUSES = (
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.COMPLETED.value,
)

OVERLAP_CONSTRAINT = "reservations_no_overlap_per_property"


class Reservation(Base):
    """
    ORM model for a time-ranged claim on a property.

    Dates form the half-open interval [check_in, check_out) so back-to-back
    stays can share a turnover day. A reservation belongs either to a
    registered actor (actor_id) or to a guest identified by name and email,
    never both. Rows are never physically removed: deleted_at is a tombstone
    and every read path filters on it.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("check_out > check_in", name="reservations_valid_dates"),
        CheckConstraint(
            "(actor_id IS NOT NULL AND guest_name IS NULL AND guest_email IS NULL)"
            " OR (actor_id IS NULL AND guest_name IS NOT NULL AND guest_email IS NOT NULL)",
            name="reservations_single_identity",
        ),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="reservations_status_values",
        ),
        CheckConstraint("occupant_count >= 1", name="reservations_occupants_positive"),
        Index("ix_reservations_property_dates", "property_id", "check_in", "check_out"),
        Index("ix_reservations_status_created", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(20), nullable=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    occupant_count = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(10, 2), nullable=False)
    special_requests = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


# PostgreSQL enforces the no-overlap invariant unconditionally; other dialects
# rely on the locked re-check in the booking store.
event.listen(
    Reservation.__table__,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Reservation.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE reservations ADD CONSTRAINT {OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (property_id WITH =, daterange(check_in, check_out, '[)') WITH &&) "
        "WHERE (status <> 'cancelled' AND deleted_at IS NULL)"
    ).execute_if(dialect="postgresql"),
)
