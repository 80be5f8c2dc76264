"""Read-only lookups against the property catalog and identity tables."""

from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from rental_booking.models.properties import Property
from rental_booking.models.users import User


def get_property(
    conn: Connection, property_id: int, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a property by id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_id (int): Property ID.
        for_update (bool): Row-lock the property until the transaction ends.
            Used to serialize bookings of the same property.

    Returns:
        Optional[dict[str, Any]]: Property columns or None if not found.
    """
    stmt = select(Property.__table__).where(Property.id == property_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def get_properties_by_ids(conn: Connection, property_ids: Iterable[int]) -> dict[int, dict[str, Any]]:
    """
    Fetch many properties in a single query.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        property_ids (Iterable[int]): Property IDs; duplicates are fine.

    Returns:
        dict[int, dict]: Property columns keyed by id. Missing ids are absent.
    """
    ids = set(property_ids)
    if not ids:
        return {}
    result = conn.execute(select(Property.__table__).where(Property.id.in_(ids)))
    return {row["id"]: dict(row) for row in result.mappings()}


def get_users_by_ids(conn: Connection, user_ids: Iterable[Optional[int]]) -> dict[int, dict[str, Any]]:
    """
    Fetch many users in a single query.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        user_ids (Iterable[Optional[int]]): User IDs; None entries (guest bookings) are skipped.

    Returns:
        dict[int, dict]: id, name, email and role keyed by id.
    """
    ids = {user_id for user_id in user_ids if user_id is not None}
    if not ids:
        return {}
    result = conn.execute(
        select(User.id, User.name, User.email, User.role).where(User.id.in_(ids))
    )
    return {row["id"]: dict(row) for row in result.mappings()}
