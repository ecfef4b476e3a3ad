"""Polling cadence while waiting for a registration window to open.

The cadence tightens as the window approaches: a check per minute while the
window is far away, down to four checks per second in the last second.
"""

from __future__ import annotations

from datetime import datetime, timedelta

# (remaining >= threshold) -> sleep, scanned largest to smallest
POLL_SCHEDULE: tuple[tuple[timedelta, timedelta], ...] = (
    (timedelta(minutes=2), timedelta(seconds=60)),
    (timedelta(minutes=1), timedelta(seconds=30)),
    (timedelta(seconds=30), timedelta(seconds=10)),
    (timedelta(seconds=10), timedelta(seconds=5)),
    (timedelta(seconds=5), timedelta(seconds=1)),
    (timedelta(seconds=1), timedelta(milliseconds=500)),
)
MIN_POLL_INTERVAL = timedelta(milliseconds=250)


def poll_interval(remaining: timedelta) -> timedelta:
    """Return how long to sleep given the time left until the window opens.

    Non-positive ``remaining`` gets the shortest interval; the caller decides
    whether the window is already open.
    """
    for threshold, interval in POLL_SCHEDULE:
        if remaining >= threshold:
            return interval
    return MIN_POLL_INTERVAL


def registration_window(start: datetime, lead_time: timedelta) -> datetime:
    """Earliest moment the portal accepts an RSVP for a class starting at ``start``."""
    return start - lead_time
