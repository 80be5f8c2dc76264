"""
Contact-verification tokens for guest reservations.

Guest bookings have no actor id to authorize later status changes against.
When a guest booking is created the caller receives a token bound to the
reservation id and the guest's email; the surrounding application delivers it
to that address. Presenting the token proves control of the contact address.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from rental_booking.config import GUEST_TOKEN_SECRET


def _message(reservation_id: int, guest_email: str) -> bytes:
    return f"{reservation_id}:{guest_email.strip().lower()}".encode()


def require_secret(secret: str) -> str:
    """
    Raises:
        ValueError: if the signing key is empty
    """
    if not secret:
        raise ValueError("Guest token secret must not be empty")
    return secret


def issue_guest_token(
    reservation_id: int, guest_email: str, secret: str = GUEST_TOKEN_SECRET
) -> str:
    """
    Create the token for a guest reservation.

    Args:
        reservation_id: Reservation the token authorizes
        guest_email: Contact address of the guest (case-insensitive)
        secret: Signing key, never empty

    Returns:
        Hex-encoded HMAC-SHA256 digest

    Raises:
        ValueError: if the signing key is empty
    """
    key = require_secret(secret).encode()
    return hmac.new(key, _message(reservation_id, guest_email), hashlib.sha256).hexdigest()


def verify_guest_token(
    token: Optional[str],
    reservation_id: int,
    guest_email: Optional[str],
    secret: str = GUEST_TOKEN_SECRET,
) -> bool:
    """Constant-time check of a presented token. Missing token, email or key never verifies."""
    if not token or not guest_email or not secret:
        return False
    expected = issue_guest_token(reservation_id, guest_email, secret)
    return hmac.compare_digest(expected, token)
