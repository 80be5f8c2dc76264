from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Reservation and payment tables are owned by the booking engine; the
    property and user tables are mapped read-only so reservations can be
    validated and hydrated without a round trip to their owning services.
    """

    pass
