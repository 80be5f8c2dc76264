"""SQLAlchemy model for the externally owned property catalog."""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, text
from sqlalchemy.sql import func

from rental_booking.models.base import Base


class Property(Base):
    """
    ORM model for rentable properties.

    Owned by the property catalog; the booking engine only reads it (price,
    owner and whether the listing accepts reservations) and row-locks it to
    serialize concurrent bookings of the same property.
    """

    __tablename__ = "properties"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    price_per_night = Column(Numeric(10, 2), nullable=True)
    price = Column(Numeric(10, 2), nullable=True)  # Flat listing price used by older rows
    active = Column(Boolean, nullable=False, server_default=text("TRUE"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
