"""
Integration tests for reservation queries, statistics and soft delete.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from factories import GUEST_ID, OTHER_PROPERTY_ID, OWNER_ID, PROPERTY_ID, booking, guest_booking

from rental_booking.errors import AuthorizationError, NotFoundError
from rental_booking.models.reservations import ReservationStatus
from rental_booking.schemas.reservations import Pagination, ReservationFilters, When


@pytest.fixture
def three_bookings(service):
    """Three back-to-back bookings on the main property, oldest first."""
    return [
        service.create(booking(date(2024, 1, 10), date(2024, 1, 12)), actor_id=GUEST_ID),
        service.create(booking(date(2024, 1, 12), date(2024, 1, 14)), actor_id=GUEST_ID),
        service.create(booking(date(2024, 1, 14), date(2024, 1, 16)), actor_id=GUEST_ID),
    ]


@pytest.mark.integration
def test_find_pages_newest_first(service, three_bookings) -> None:
    """Test that pagination windows the results but reports the full total."""
    filters = ReservationFilters(property_id=PROPERTY_ID)

    first = service.find(filters, Pagination(limit=2))
    second = service.find(filters, Pagination.page(2, size=2))

    assert first.total == 3
    assert [item.id for item in first.items] == [three_bookings[2].id, three_bookings[1].id]
    assert second.total == 3
    assert second.offset == 2
    assert [item.id for item in second.items] == [three_bookings[0].id]


@pytest.mark.integration
def test_find_hydrates_related_records(service, three_bookings) -> None:
    """Test that listed reservations carry payment, property and user."""
    page = service.find()

    assert all(item.payment is not None for item in page.items)
    assert {item.listing.title for item in page.items} == {"Lakeside Cabin"}
    assert {item.user.email for item in page.items} == {"grace@example.com"}


@pytest.mark.integration
def test_status_filter(service, owner, three_bookings) -> None:
    """Test filtering by a set of statuses."""
    service.transition(three_bookings[0].id, "confirmed", owner)

    confirmed = service.find(ReservationFilters(statuses={ReservationStatus.CONFIRMED}))
    open_ = service.find(
        ReservationFilters(statuses={ReservationStatus.PENDING, ReservationStatus.CONFIRMED})
    )

    assert [item.id for item in confirmed.items] == [three_bookings[0].id]
    assert open_.total == 3


@pytest.mark.integration
def test_overlap_window_filter(service, three_bookings) -> None:
    """Test that the overlap window uses the half-open rule."""
    page = service.find(
        ReservationFilters(overlaps_from=date(2024, 1, 11), overlaps_to=date(2024, 1, 13))
    )

    assert {item.id for item in page.items} == {three_bookings[0].id, three_bookings[1].id}


@pytest.mark.integration
def test_overlap_window_with_one_side_is_unbounded(service, three_bookings) -> None:
    """Test that a window with only one end still filters on that end."""
    from_only = service.find(ReservationFilters(overlaps_from=date(2024, 1, 13)))
    to_only = service.find(ReservationFilters(overlaps_to=date(2024, 1, 12)))

    assert {item.id for item in from_only.items} == {three_bookings[1].id, three_bookings[2].id}
    assert [item.id for item in to_only.items] == [three_bookings[0].id]
    assert to_only.total == 1


@pytest.mark.integration
def test_upcoming_and_past_filters(service) -> None:
    """Test that upcoming and past are decided by check-out against today."""
    past = service.create(booking(date(2023, 12, 20), date(2023, 12, 25)), actor_id=GUEST_ID)
    upcoming = service.create(booking(date(2024, 1, 10), date(2024, 1, 15)), actor_id=GUEST_ID)

    upcoming_page = service.find(ReservationFilters(when=When.UPCOMING))
    past_page = service.find(ReservationFilters(when=When.PAST))

    assert [item.id for item in upcoming_page.items] == [upcoming.id]
    assert [item.id for item in past_page.items] == [past.id]


@pytest.mark.integration
def test_guest_and_host_views(service) -> None:
    """Test the per-guest and per-host shortcuts."""
    mine = service.create(booking(), actor_id=GUEST_ID)
    elsewhere = service.create(booking(property_id=OTHER_PROPERTY_ID), actor_id=GUEST_ID)
    anonymous = service.create(guest_booking(date(2024, 2, 1), date(2024, 2, 3)))

    guest_page = service.for_guest(GUEST_ID)
    host_page = service.for_host(OWNER_ID)

    assert {item.id for item in guest_page.items} == {mine.id, elsewhere.id}
    assert {item.id for item in host_page.items} == {mine.id, anonymous.id}
    assert service.for_host(999).total == 0


@pytest.mark.integration
def test_find_by_id_unknown(service) -> None:
    """Test that a missing reservation is not found."""
    with pytest.raises(NotFoundError):
        service.find_by_id(12345)


@pytest.mark.integration
def test_property_stats(service, guest, owner) -> None:
    """Test counters, occupancy rate and revenue of a property."""
    first = service.create(booking(date(2024, 1, 10), date(2024, 1, 15)), actor_id=GUEST_ID)
    second = service.create(booking(date(2024, 1, 15), date(2024, 1, 20)), actor_id=GUEST_ID)
    service.create(booking(date(2024, 1, 20), date(2024, 1, 25)), actor_id=GUEST_ID)
    service.transition(first.id, "confirmed", owner)
    service.cancel(second.id, guest)

    stats = service.property_stats(PROPERTY_ID)

    assert stats["total"] == 3
    assert stats["completed"] == 0
    assert stats["cancelled"] == 1
    assert stats["upcoming"] == 1
    assert stats["occupancy_rate"] == 0.0
    assert stats["revenue"] == Decimal("500.00")

    service.transition(first.id, "completed", owner)
    stats = service.property_stats(PROPERTY_ID)

    assert stats["completed"] == 1
    assert stats["upcoming"] == 0
    assert stats["occupancy_rate"] == 33.3
    assert stats["revenue"] == Decimal("500.00")


@pytest.mark.integration
def test_property_stats_empty_and_unknown(service) -> None:
    """Test stats of a property without bookings and of a missing property."""
    stats = service.property_stats(OTHER_PROPERTY_ID)

    assert stats["total"] == 0
    assert stats["occupancy_rate"] == 0.0
    assert stats["revenue"] == Decimal("0.00")
    with pytest.raises(NotFoundError):
        service.property_stats(999)


@pytest.mark.integration
def test_owner_soft_deletes_reservation(service, owner) -> None:
    """Test that a deleted reservation disappears and frees its dates."""
    view = service.create(booking(), actor_id=GUEST_ID)

    assert service.delete(view.id, owner) is True

    with pytest.raises(NotFoundError):
        service.find_by_id(view.id)
    assert service.find().total == 0
    assert service.find(ReservationFilters(include_deleted=True)).total == 1
    assert service.check_availability(PROPERTY_ID, date(2024, 1, 10), date(2024, 1, 15)) is True
    with pytest.raises(NotFoundError):
        service.delete(view.id, owner)


@pytest.mark.integration
def test_booker_cannot_delete(service, guest, admin) -> None:
    """Test that deletion is limited to owners and administrators."""
    view = service.create(booking(), actor_id=GUEST_ID)

    with pytest.raises(AuthorizationError):
        service.delete(view.id, guest)

    assert service.delete(view.id, admin) is True
