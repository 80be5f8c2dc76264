"""Expiration sweep for abandoned pending reservations."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from sqlalchemy.engine import Engine

from rental_booking.config import PENDING_TIMEOUT_MINUTES, SWEEP_INTERVAL_SECONDS
from rental_booking.db.readers.reservations import get_expired_pending_ids
from rental_booking.db.writers.payments import mark_payments_failed
from rental_booking.db.writers.reservations import cancel_expired
from rental_booking.metrics import sweep_cancelled, sweep_duration
from rental_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


class ExpirationSweeper:
    """
    Cancels pending reservations older than a timeout.

    Runs as the system actor: no per-reservation authorization or cancellation
    window applies. The cancellation is one conditional bulk update, so a
    second sweep right after the first finds nothing left to do.
    """

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utc_now) -> None:
        self.engine = engine
        self.clock = clock

    def sweep_expired(self, timeout_minutes: int = PENDING_TIMEOUT_MINUTES) -> int:
        """
        Cancel every live pending reservation created more than
        ``timeout_minutes`` ago.

        Failures are logged and count as an empty sweep; the next run retries.

        Args:
            timeout_minutes: Age after which a pending reservation is abandoned

        Returns:
            int: Number of reservations cancelled
        """
        now = self.clock()
        cutoff = now - timedelta(minutes=timeout_minutes)
        reason = f"Expired: still pending after {timeout_minutes} minutes"

        with sweep_duration.time():
            try:
                with self.engine.begin() as conn:
                    expired_ids = get_expired_pending_ids(conn, cutoff)
                    cancelled = cancel_expired(conn, expired_ids, cutoff, now, reason)
            except Exception as e:
                logger.exception(
                    "expiration_sweep_failed", timeout_minutes=timeout_minutes, error=str(e)
                )
                return 0

        if cancelled:
            sweep_cancelled.inc(cancelled)
            self._fail_payments(expired_ids, now)

        logger.info(
            "expired_reservations_swept",
            timeout_minutes=timeout_minutes,
            cancelled=cancelled,
        )
        return cancelled

    def _fail_payments(self, reservation_ids: list[int], now: datetime) -> None:
        try:
            with self.engine.begin() as conn:
                mark_payments_failed(conn, reservation_ids, now)
        except Exception as e:
            logger.warning("expired_payments_update_failed", count=len(reservation_ids), error=str(e))

    def run_forever(
        self,
        interval_seconds: int = SWEEP_INTERVAL_SECONDS,
        timeout_minutes: int = PENDING_TIMEOUT_MINUTES,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        """
        Sweep every ``interval_seconds`` until ``stop_event`` is set.

        The first sweep runs immediately.
        """
        stop_event = stop_event or threading.Event()
        logger.info(
            "expiration_sweeper_started",
            interval_seconds=interval_seconds,
            timeout_minutes=timeout_minutes,
        )
        while not stop_event.is_set():
            self.sweep_expired(timeout_minutes)
            stop_event.wait(interval_seconds)
        logger.info("expiration_sweeper_stopped")
