"""
Prometheus metrics for the reservation engine.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., reservations created)
    - Histogram: Observations bucketed by value (e.g., sweep duration)

Example:
    >>> from rental_booking.metrics import reservations_created
    >>> reservations_created.labels(outcome="created").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Reservation Metrics
# =============================================================================

reservations_created = Counter(
    "rental_reservations_created_total",
    "Reservation creation attempts by outcome",
    ["outcome"],
)
"""
Counter for reservation creation attempts.

Labels:
    outcome: created, conflict, invalid, not_found, error
"""

status_transitions = Counter(
    "rental_reservation_transitions_total",
    "Applied reservation status transitions",
    ["from_status", "to_status"],
)
"""
Counter for applied status transitions.

Labels:
    from_status: Status before the transition
    to_status: Status after the transition
"""

availability_checks = Counter(
    "rental_availability_checks_total",
    "Availability checks by result",
    ["result"],
)
"""
Counter for availability checks.

Labels:
    result: available, unavailable, error (errors are reported as unavailable)
"""

# =============================================================================
# Sweeper Metrics
# =============================================================================

sweep_cancelled = Counter(
    "rental_sweep_cancelled_total",
    "Pending reservations cancelled by the expiration sweeper",
)

sweep_duration = Histogram(
    "rental_sweep_duration_seconds",
    "Duration of expiration sweeps in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)
"""
Histogram for sweep duration.

Buckets: 0.01s, 0.05s, 0.1s, 0.25s, 0.5s, 1s, 2.5s, 5s, +Inf
"""
