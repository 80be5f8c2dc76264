"""
Integration tests for concurrent bookings of the same property.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Any

import pytest
from factories import GUEST_ID, PROPERTY_ID, booking

from rental_booking.errors import ConflictError
from rental_booking.schemas.reservations import ReservationFilters


def _race(service, payloads: list[dict[str, Any]]) -> list[Any]:
    """Start one create per payload at the same moment and collect results or errors."""
    barrier = threading.Barrier(len(payloads))
    results: list[Any] = [None] * len(payloads)

    def attempt(index: int, payload: dict[str, Any]) -> None:
        barrier.wait()
        try:
            results[index] = service.create(payload, actor_id=GUEST_ID)
        except Exception as e:
            results[index] = e

    threads = [
        threading.Thread(target=attempt, args=(i, payload)) for i, payload in enumerate(payloads)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


@pytest.mark.integration
def test_overlapping_concurrent_bookings_admit_exactly_one(service) -> None:
    """Test that two racing overlapping requests yield one booking and one conflict."""
    results = _race(
        service,
        [
            booking(date(2024, 1, 10), date(2024, 1, 15)),
            booking(date(2024, 1, 12), date(2024, 1, 18)),
        ],
    )

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    created = [r for r in results if r is not None and not isinstance(r, Exception)]

    assert len(created) == 1
    assert len(conflicts) == 1
    assert service.find(ReservationFilters(property_id=PROPERTY_ID)).total == 1


@pytest.mark.integration
def test_identical_concurrent_bookings_admit_exactly_one(service) -> None:
    """Test that many racing requests for the same dates admit a single booking."""
    results = _race(service, [booking() for _ in range(5)])

    created = [r for r in results if r is not None and not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]

    assert len(created) == 1
    assert len(conflicts) == 4


@pytest.mark.integration
def test_disjoint_concurrent_bookings_all_succeed(service) -> None:
    """Test that racing requests for disjoint ranges do not block each other out."""
    payloads = [booking(date(2024, 3, day), date(2024, 3, day + 2)) for day in (1, 3, 5, 7)]

    results = _race(service, payloads)

    assert all(not isinstance(r, Exception) and r is not None for r in results)
    assert service.find(ReservationFilters(property_id=PROPERTY_ID)).total == 4
