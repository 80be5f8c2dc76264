"""
SQLAlchemy engine construction with production-ready connection pooling.

Services never import a global engine; they are constructed with one. This
module builds engines for a URL and lazily provides the process-wide engine
for ``DATABASE_URL`` used by the command line entry point.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url

_engine: Optional[Engine] = None


def _serialize_sqlite_transactions(engine: Engine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, so two connections could both
    run the availability query before either inserts. BEGIN IMMEDIATE makes
    the second writer wait for the first to commit, which is what the
    row-level lock does on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for ``database_url``.

    Server databases get the pooled configuration used in production; SQLite
    files get serialized transactions so the booking invariants hold there too.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log emitted SQL (development only)

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _serialize_sqlite_transactions(engine)
        return engine

    return create_engine(
        url,
        # Connection pool settings
        pool_size=10,  # Number of connections to maintain in the pool
        max_overflow=20,  # Additional connections when pool is exhausted
        pool_pre_ping=True,  # Verify connections before using (detect stale connections)
        pool_recycle=3600,  # Recycle connections after 1 hour (prevents stale connections)
        echo=echo,
    )


def get_engine() -> Engine:
    """Return the process-wide engine for DATABASE_URL, creating it on first use."""
    global _engine

    if _engine is None:
        from rental_booking.config import DATABASE_URL, DEBUG

        _engine = build_engine(DATABASE_URL, echo=DEBUG)
    return _engine


def check_engine_health(engine: Engine) -> bool:
    """
    Check if database engine is healthy and connections are working.

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
