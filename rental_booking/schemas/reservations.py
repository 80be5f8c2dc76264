from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from rental_booking.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from rental_booking.models.payments import PaymentMethod
from rental_booking.models.reservations import ReservationStatus

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
PHONE_PATTERN = r"^[\d\s+()-]{8,15}$"

ADMIN_ROLE = "admin"


class Actor(BaseModel):
    """
    Identity supplied by the auth middleware. The engine never authenticates;
    it trusts id and role. A guest acting through a contact-verification token
    has no id.
    """

    id: Optional[int] = Field(None, description="Authenticated user ID, None for guests")
    role: str = Field("user", description="Role name; 'admin' grants every permission")

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class ReservationRequest(BaseModel):
    """
    Payload for creating a reservation. Guest contact fields are required when
    no actor is attached and must be omitted otherwise.
    """

    property_id: int = Field(..., gt=0, description="Property to book")
    check_in: date = Field(..., description="First night (inclusive)")
    check_out: date = Field(..., description="Departure day (exclusive)")
    occupant_count: int = Field(1, ge=1, description="Number of guests staying")
    total_price: Optional[Decimal] = Field(
        None, gt=0, max_digits=10, decimal_places=2, description="Overrides nightly pricing"
    )
    special_requests: Optional[str] = Field(None, max_length=500)
    guest_name: Optional[str] = Field(None, min_length=3, max_length=255)
    guest_email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    guest_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    payment_method: Optional[PaymentMethod] = Field(None, description="Defaults from config")
    currency: Optional[str] = Field(None, pattern=r"^[A-Za-z]{3}$")


class When(str, enum.Enum):
    UPCOMING = "upcoming"
    PAST = "past"


class ReservationFilters(BaseModel):
    """Filter set for reservation queries. All filters combine with AND."""

    actor_id: Optional[int] = None
    property_id: Optional[int] = None
    owner_id: Optional[int] = Field(None, description="Reservations on properties of this owner")
    statuses: Optional[set[ReservationStatus]] = None
    when: Optional[When] = None
    overlaps_from: Optional[date] = Field(
        None, description="Start of an overlap window; unbounded when unset"
    )
    overlaps_to: Optional[date] = Field(
        None, description="Exclusive end of an overlap window; unbounded when unset"
    )
    include_deleted: bool = False


class Pagination(BaseModel):
    """Offset/limit window over a result set."""

    limit: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    offset: int = Field(0, ge=0)

    @classmethod
    def page(cls, number: int, size: int = DEFAULT_PAGE_SIZE) -> "Pagination":
        """Window for a 1-based page number."""
        return cls(limit=size, offset=(max(number, 1) - 1) * size)


class PaymentView(BaseModel):
    id: int
    amount: Decimal
    currency: str
    method: str
    status: str
    created_at: datetime


class PropertySummary(BaseModel):
    id: int
    title: str
    owner_id: int
    active: bool


class UserSummary(BaseModel):
    id: int
    name: str
    email: str


class ReservationView(BaseModel):
    """Materialized reservation with its payment and hydrated references."""

    id: int
    property_id: int
    actor_id: Optional[int]
    guest_name: Optional[str]
    guest_email: Optional[str]
    guest_phone: Optional[str]
    check_in: date
    check_out: date
    occupant_count: int
    total_price: Decimal
    special_requests: Optional[str]
    status: ReservationStatus
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    payment: Optional[PaymentView] = None
    listing: Optional[PropertySummary] = None
    user: Optional[UserSummary] = None
    guest_token: Optional[str] = Field(
        None, description="Contact-verification token, only returned when a guest booking is created"
    )

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days


class ReservationPage(BaseModel):
    items: list[ReservationView]
    total: int
    limit: int
    offset: int
