"""SQLAlchemy model for identity records referenced by reservations."""

from sqlalchemy import Column, Integer, String

from rental_booking.models.base import Base


class User(Base):
    """
    ORM model for registered users.

    Managed by the identity service. Reservations reference users by id only;
    the query layer reads name/email/role here to hydrate results.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default="user")
