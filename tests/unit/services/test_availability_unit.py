"""
Unit tests for the availability checker failure path.
"""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from rental_booking.errors import NotFoundError
from rental_booking.services.availability import AvailabilityChecker
from rental_booking.services.reservations import ReservationService


@pytest.mark.unit
@patch("rental_booking.services.availability.logger")
def test_is_available_fails_closed(mock_logger: MagicMock) -> None:
    """Test that a database failure reports the range as unavailable."""
    engine = MagicMock()
    engine.begin.side_effect = RuntimeError("database is down")
    checker = AvailabilityChecker(engine)

    assert checker.is_available(10, date(2024, 1, 10), date(2024, 1, 15)) is False
    mock_logger.exception.assert_called_once()
    assert mock_logger.exception.call_args.args[0] == "availability_check_failed"


@pytest.mark.unit
@patch("rental_booking.services.availability.has_overlapping_reservation")
def test_has_conflict_runs_on_callers_connection(mock_overlap: MagicMock) -> None:
    """Test that the in-transaction check uses the given connection."""
    mock_overlap.return_value = True
    conn = MagicMock()
    checker = AvailabilityChecker(MagicMock())

    assert checker.has_conflict(conn, 10, date(2024, 1, 10), date(2024, 1, 15)) is True
    mock_overlap.assert_called_once_with(conn, 10, date(2024, 1, 10), date(2024, 1, 15), None)


@pytest.mark.unit
@patch("rental_booking.services.availability.availability_checks")
@patch("rental_booking.services.availability.logger")
@patch("rental_booking.services.availability.get_property")
def test_property_lookup_failure_fails_closed(
    mock_get_property: MagicMock, mock_logger: MagicMock, mock_checks: MagicMock
) -> None:
    """Test that a failing property lookup is logged and reported as unavailable."""
    mock_get_property.side_effect = RuntimeError("connection reset")
    checker = AvailabilityChecker(MagicMock())

    assert checker.is_available(10, date(2024, 1, 10), date(2024, 1, 15)) is False
    mock_logger.exception.assert_called_once()
    assert mock_logger.exception.call_args.kwargs["error"] == "connection reset"
    mock_checks.labels.assert_called_once_with(result="error")


@pytest.mark.unit
@patch("rental_booking.services.availability.has_overlapping_reservation")
@patch("rental_booking.services.availability.get_property")
def test_unknown_property_is_not_found(
    mock_get_property: MagicMock, mock_overlap: MagicMock
) -> None:
    """Test that a missing property raises instead of reading as unavailable."""
    mock_get_property.return_value = None
    checker = AvailabilityChecker(MagicMock())

    with pytest.raises(NotFoundError):
        checker.is_available(99, date(2024, 1, 10), date(2024, 1, 15))
    mock_overlap.assert_not_called()


@pytest.mark.unit
@patch("rental_booking.services.availability.get_property")
def test_service_check_availability_fails_closed(mock_get_property: MagicMock) -> None:
    """Test that the public availability check returns False when the database fails."""
    mock_get_property.side_effect = RuntimeError("connection reset")
    service = ReservationService(MagicMock(), guest_token_secret="unit-test-secret")

    assert service.check_availability(10, date(2024, 1, 10), date(2024, 1, 15)) is False
