"""Match wanted classes against the schedule feed and plan when to wake up.

The actual wake-up is done by an external scheduler; this module only decides
*when* each acquisition run should start and builds the payload it receives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from rsvpwatch.errors import ScheduleError
from rsvpwatch.models import ClassRequest, ClassSession, RsvpTask, SessionCredentials
from rsvpwatch.timing import registration_window

logger = logging.getLogger(__name__)

# Start the run this long before the window opens so the loop is already
# polling when it does.
WAKE_MARGIN = timedelta(minutes=5)


@dataclass(frozen=True)
class PlannedRun:
    request: ClassRequest
    task: RsvpTask
    trigger_at: datetime
    window_opens: datetime
    in_window: bool


def _same_minute(a: datetime, b: datetime) -> bool:
    return a.replace(second=0, microsecond=0) == b.replace(second=0, microsecond=0)


def matches(request: ClassRequest, session: ClassSession) -> bool:
    """A session matches when its title contains the class name and it starts the same minute."""
    return request.class_name in session.title and _same_minute(request.start, session.start)


def find_session(request: ClassRequest, sessions: list[ClassSession]) -> ClassSession:
    """Return the first session matching ``request`` or raise ScheduleError."""
    for session in sorted(sessions, key=lambda s: s.start):
        if matches(request, session):
            return session
    raise ScheduleError(
        f"No '{request.class_name}' class found at {request.start.isoformat()}"
    )


def schedule_range(requests: list[ClassRequest]) -> tuple[date, date]:
    """Date span covering every request, for the schedule feed query."""
    if not requests:
        raise ScheduleError("No class requests to plan")
    starts = sorted(r.start for r in requests)
    return starts[0].date(), starts[-1].date()


def trigger_time(
    session: ClassSession,
    lead_time: timedelta,
    now: datetime,
    wake_margin: timedelta = WAKE_MARGIN,
) -> datetime:
    """When the external scheduler should start the acquisition run.

    Inside the window already: shortly from now. Otherwise: shortly before
    the window opens.
    """
    window = registration_window(session.start, lead_time)
    if now >= window:
        return now + wake_margin
    return window - wake_margin


def plan_runs(
    credentials: SessionCredentials,
    sessions: list[ClassSession],
    requests: list[ClassRequest],
    lead_time: timedelta,
    now: datetime,
) -> list[PlannedRun]:
    """Plan one run per (request, matching session) pair, earliest first.

    Requests with no matching session are logged and skipped.
    """
    ordered = sorted(sessions, key=lambda s: s.start)
    runs: list[PlannedRun] = []

    for request in sorted(requests, key=lambda r: r.start):
        found = [s for s in ordered if matches(request, s)]
        if not found:
            logger.warning(
                "No class matches '%s' at %s", request.class_name, request.start.isoformat()
            )
            continue

        for session in found:
            at = trigger_time(session, lead_time, now)
            window = registration_window(session.start, lead_time)
            logger.info(
                "Found class %s at %s, run scheduled for %s",
                session.display_title,
                session.start.isoformat(),
                at.isoformat(),
            )
            runs.append(
                PlannedRun(
                    request=request,
                    task=RsvpTask(session=session, credentials=credentials),
                    trigger_at=at,
                    window_opens=window,
                    in_window=now >= window,
                )
            )

    return runs
