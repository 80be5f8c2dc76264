"""
Shared fixtures for the reservation engine tests.

Every test that needs a database gets its own SQLite file, so tests never
share state and the serialized-transaction path used for SQLite is exercised
for real.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("GUEST_TOKEN_SECRET", "test-guest-token-secret")

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any, Generator  # noqa: E402

import pytest  # noqa: E402
from factories import (  # noqa: E402
    ADMIN_ID,
    GUEST_ID,
    GUEST_TOKEN_SECRET,
    INACTIVE_PROPERTY_ID,
    NIGHTLY_RATE,
    OTHER_PROPERTY_ID,
    OTHER_USER_ID,
    OWNER_ID,
    PROPERTY_ID,
    UNPRICED_PROPERTY_ID,
)
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from rental_booking.db.engine import build_engine  # noqa: E402
from rental_booking.models.base import Base  # noqa: E402
from rental_booking.models.payments import Payment  # noqa: E402, F401
from rental_booking.models.properties import Property  # noqa: E402
from rental_booking.models.reservations import Reservation  # noqa: E402, F401
from rental_booking.models.users import User  # noqa: E402
from rental_booking.schemas.reservations import Actor  # noqa: E402
from rental_booking.services.reservations import ReservationService  # noqa: E402


class FixedClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """File-backed SQLite engine with the schema created and the catalog seeded."""
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(engine)

    with engine.begin() as conn:
        conn.execute(
            insert(User),
            [
                {"id": GUEST_ID, "name": "Grace Guest", "email": "grace@example.com", "role": "user"},
                {"id": OWNER_ID, "name": "Oscar Owner", "email": "oscar@example.com", "role": "user"},
                {"id": ADMIN_ID, "name": "Ada Admin", "email": "ada@example.com", "role": "admin"},
                {"id": OTHER_USER_ID, "name": "Sam Other", "email": "sam@example.com", "role": "user"},
            ],
        )
        conn.execute(
            insert(Property),
            [
                {
                    "id": PROPERTY_ID,
                    "owner_id": OWNER_ID,
                    "title": "Lakeside Cabin",
                    "price_per_night": NIGHTLY_RATE,
                    "price": None,
                    "active": True,
                },
                {
                    "id": INACTIVE_PROPERTY_ID,
                    "owner_id": OWNER_ID,
                    "title": "Closed Loft",
                    "price_per_night": NIGHTLY_RATE,
                    "price": None,
                    "active": False,
                },
                {
                    "id": UNPRICED_PROPERTY_ID,
                    "owner_id": OWNER_ID,
                    "title": "Unpriced Studio",
                    "price_per_night": None,
                    "price": None,
                    "active": True,
                },
                {
                    "id": OTHER_PROPERTY_ID,
                    "owner_id": OTHER_USER_ID,
                    "title": "City Flat",
                    "price_per_night": None,
                    "price": Decimal("80.00"),
                    "active": True,
                },
            ],
        )

    yield engine

    engine.dispose()


@pytest.fixture
def service(engine: Engine, clock: FixedClock) -> ReservationService:
    return ReservationService(engine, clock=clock, guest_token_secret=GUEST_TOKEN_SECRET)


@pytest.fixture
def guest() -> Actor:
    return Actor(id=GUEST_ID)


@pytest.fixture
def owner() -> Actor:
    return Actor(id=OWNER_ID)


@pytest.fixture
def admin() -> Actor:
    return Actor(id=ADMIN_ID, role="admin")


@pytest.fixture
def stranger() -> Actor:
    return Actor(id=OTHER_USER_ID)
