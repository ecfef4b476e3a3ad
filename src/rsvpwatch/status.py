"""Classify a class detail page into a reservation state.

Matching is a plain, case-sensitive substring search on the page text as
received. No whitespace or case normalization is applied: the markers are
copied verbatim from the portal, and a change in its wording shows up as
``ReservationState.UNKNOWN`` rather than as a silent mismatch.
"""

from __future__ import annotations

from rsvpwatch.models import ReservationState

# Checked in this order; the first marker found wins.
STATUS_MARKERS: tuple[tuple[str, ReservationState], ...] = (
    ("RSVP'ing for this class is still available", ReservationState.UNREGISTERED),
    (
        "This class is currently full, but you can sign up to be on the wait list",
        ReservationState.UNREGISTERED_WAITLIST,
    ),
    ("You are currently RSVP'd for this class", ReservationState.REGISTERED),
    ("You are currently on the wait list for this class", ReservationState.WAITLISTED),
)


def classify_status(body: str) -> ReservationState:
    """Return the reservation state shown on a class page, or UNKNOWN."""
    for marker, state in STATUS_MARKERS:
        if marker in body:
            return state
    return ReservationState.UNKNOWN
