"""
Unit tests for booking store helpers that need no database.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from factories import booking
from sqlalchemy.exc import IntegrityError

from rental_booking.errors import DatabaseError, ValidationError
from rental_booking.models.reservations import OVERLAP_CONSTRAINT
from rental_booking.services.bookings import BookingStore, compute_total_price, is_overlap_violation


@pytest.mark.unit
def test_total_price_uses_nightly_rate() -> None:
    """Test that the stay price is nights times the nightly rate."""
    prop = {"price_per_night": Decimal("100.00"), "price": Decimal("999.00")}

    assert compute_total_price(prop, 5) == Decimal("500.00")


@pytest.mark.unit
def test_total_price_falls_back_to_flat_price() -> None:
    """Test that properties without a nightly rate use the price column."""
    prop = {"price_per_night": None, "price": 80.5}

    assert compute_total_price(prop, 3) == Decimal("241.50")


@pytest.mark.unit
def test_total_price_requires_some_price() -> None:
    """Test that an unpriced property asks for an explicit total."""
    with pytest.raises(ValidationError) as exc_info:
        compute_total_price({"price_per_night": None, "price": None}, 2)

    assert exc_info.value.fields == ["total_price"]


class _Diag:
    def __init__(self, constraint_name: str) -> None:
        self.constraint_name = constraint_name


class _DriverError(Exception):
    def __init__(self, message: str, constraint_name: str) -> None:
        super().__init__(message)
        self.diag = _Diag(constraint_name)


@pytest.mark.unit
def test_overlap_violation_detected_from_constraint_name() -> None:
    """Test that the exclusion constraint is recognized from driver diagnostics."""
    error = IntegrityError("INSERT", {}, _DriverError("conflicting key value", OVERLAP_CONSTRAINT))

    assert is_overlap_violation(error) is True


@pytest.mark.unit
def test_other_constraint_is_not_overlap_violation() -> None:
    """Test that unrelated integrity errors are not treated as conflicts."""
    error = IntegrityError("INSERT", {}, _DriverError("duplicate key", "payments_reservation_id_key"))

    assert is_overlap_violation(error) is False


@pytest.mark.unit
def test_overlap_violation_detected_from_message() -> None:
    """Test the message fallback for drivers without diagnostics."""
    error = IntegrityError(
        "INSERT", {}, Exception(f'violates exclusion constraint "{OVERLAP_CONSTRAINT}"')
    )

    assert is_overlap_violation(error) is True


@pytest.mark.unit
@patch("rental_booking.services.bookings.logger")
def test_create_wraps_unexpected_failures(mock_logger: MagicMock) -> None:
    """Test that an unexpected engine failure surfaces as a database error."""
    engine = MagicMock()
    engine.begin.side_effect = RuntimeError("connection refused")
    store = BookingStore(engine)

    with pytest.raises(DatabaseError) as exc_info:
        store.create(booking(), actor_id=1)

    assert "connection refused" not in exc_info.value.message
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    mock_logger.exception.assert_called_once()


@pytest.mark.unit
def test_create_validates_before_touching_database() -> None:
    """Test that invalid requests are rejected without opening a transaction."""
    engine = MagicMock()
    store = BookingStore(engine)

    with pytest.raises(ValidationError):
        store.create(booking(check_in="2024-01-15", check_out="2024-01-10"), actor_id=1)

    engine.begin.assert_not_called()


@pytest.mark.unit
@pytest.mark.parametrize("payload", [["property_id", 10], "property_id=10", None])
def test_create_rejects_non_mapping_payload(payload) -> None:
    """Test that a payload that is not a mapping is a validation error."""
    engine = MagicMock()
    store = BookingStore(engine)

    with pytest.raises(ValidationError) as exc_info:
        store.create(payload, actor_id=1)

    assert exc_info.value.fields == ["request"]
    engine.begin.assert_not_called()
