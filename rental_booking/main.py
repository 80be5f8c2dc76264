# rental_booking/main.py
"""
Command line entry point for operating the reservation engine.

    python -m rental_booking.main init-db
    python -m rental_booking.main sweep --timeout 30
    python -m rental_booking.main sweep --loop --interval 300 --metrics-port 9100
    python -m rental_booking.main health
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

import structlog
from prometheus_client import start_http_server

from rental_booking.config import PENDING_TIMEOUT_MINUTES, SWEEP_INTERVAL_SECONDS
from rental_booking.db.engine import check_engine_health, get_engine
from rental_booking.logging_config import setup_logging
from rental_booking.models.base import Base
from rental_booking.models.payments import Payment  # noqa: F401
from rental_booking.models.properties import Property  # noqa: F401
from rental_booking.models.reservations import Reservation  # noqa: F401
from rental_booking.models.users import User  # noqa: F401
from rental_booking.services.sweeper import ExpirationSweeper

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rental_booking", description="Rental property reservation engine."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create all tables for the configured database")
    commands.add_parser("health", help="Exit non-zero if the database is unreachable")

    sweep = commands.add_parser("sweep", help="Cancel abandoned pending reservations")
    sweep.add_argument(
        "--timeout",
        type=int,
        default=PENDING_TIMEOUT_MINUTES,
        help="Minutes after which a pending reservation expires",
    )
    sweep.add_argument("--loop", action="store_true", help="Keep sweeping until interrupted")
    sweep.add_argument(
        "--interval",
        type=int,
        default=SWEEP_INTERVAL_SECONDS,
        help="Seconds between sweeps when looping",
    )
    sweep.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while looping",
    )
    return parser


def init_db() -> int:
    engine = get_engine()
    Base.metadata.create_all(engine)
    logger.info("database_initialized", tables=sorted(Base.metadata.tables))
    return 0


def health() -> int:
    if check_engine_health(get_engine()):
        logger.info("health_check_passed")
        return 0
    logger.error("health_check_failed", reason="database_not_accessible")
    return 1


def sweep(timeout: int, loop: bool, interval: int, metrics_port: Optional[int]) -> int:
    sweeper = ExpirationSweeper(get_engine())
    if not loop:
        sweeper.sweep_expired(timeout)
        return 0

    if metrics_port is not None:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)

    try:
        sweeper.run_forever(interval_seconds=interval, timeout_minutes=timeout)
    except KeyboardInterrupt:
        logger.info("expiration_sweeper_interrupted")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)

    if args.command == "init-db":
        return init_db()
    if args.command == "health":
        return health()
    return sweep(args.timeout, args.loop, args.interval, args.metrics_port)


if __name__ == "__main__":
    sys.exit(main())
