"""Shared test fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from rsvpwatch.models import ClassSession, SessionCredentials

PORTAL = "https://crossfit-austin.triib.com"


class FakeClock:
    """Clock whose sleeps advance time instantly and are recorded."""

    def __init__(self, start: datetime, on_sleep=None) -> None:
        self.current = start
        self.sleeps: list[float] = []
        self.on_sleep = on_sleep

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
        if self.on_sleep is not None:
            self.on_sleep(self)
        await asyncio.sleep(0)


@pytest.fixture
def now():
    return datetime(2026, 11, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return FakeClock(now)


@pytest.fixture
def credentials():
    return SessionCredentials(csrf_token="csrf_abc123", session_id="sess_xyz789")


def make_session(start: datetime, session_id: int = 15289564) -> ClassSession:
    return ClassSession(
        id=session_id,
        coaches="773522",
        title="CrossFit Small Group Session\nJordan",
        start=start,
        end=start + timedelta(hours=1),
        url=f"/schedule/{session_id}/",
    )


@pytest.fixture
def sample_schedule_feed():
    """A realistic /schedule/json-feed/ response."""
    return [
        {
            "id": 15289564,
            "coaches": "773522",
            "title": "CrossFit Small Group Session\nJordan",
            "start": "2026-11-03T07:30:42",
            "end": "2026-11-03T08:30:00",
            "url": "/schedule/15289564/",
            "color": "#3a87ad",
        },
        {
            "id": 15289571,
            "coaches": "773530",
            "title": "Range & Resilience\nSam",
            "start": "2026-11-03T08:00:00",
            "end": "2026-11-03T09:00:00",
            "url": "/schedule/15289571/",
        },
        {
            "id": 15289590,
            "coaches": "773522",
            "title": "CrossFit Small Group Session\nJordan",
            "start": "2026-11-04T12:00:00",
            "end": "2026-11-04T13:00:00",
            "url": "/schedule/15289590/",
        },
    ]


def class_page(message: str) -> str:
    """A class detail page with a status banner."""
    return (
        "<html><body><div class='class-detail'>"
        "<h2>CrossFit Small Group Session</h2>"
        f"<div class='alert alert-info'>{message}</div>"
        "</div></body></html>"
    )


@pytest.fixture
def registered_page():
    return class_page("You are currently RSVP'd for this class")


@pytest.fixture
def waitlisted_page():
    return class_page("You are currently on the wait list for this class")


@pytest.fixture
def unregistered_page():
    return class_page("RSVP'ing for this class is still available")


@pytest.fixture
def full_page():
    return class_page(
        "This class is currently full, but you can sign up to be on the wait list"
    )
