"""AvailabilityPolicy — downgrade agents whose last activity has gone stale."""

from __future__ import annotations

from datetime import datetime, timedelta

from dispatch.domain.value_objects.enums import Availability


def infer_availability(
    declared: Availability,
    last_activity: datetime | None,
    now: datetime,
    stale_after: timedelta,
) -> Availability:
    """Available/busy agents idle longer than *stale_after* are reported as away.

    ``away`` and ``offline`` are kept as declared, and so is everything
    when the last activity is unknown.
    """
    if declared not in (Availability.AVAILABLE, Availability.BUSY):
        return declared
    if last_activity is None:
        return declared
    if now - last_activity > stale_after:
        return Availability.AWAY
    return declared
