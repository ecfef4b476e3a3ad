"""Acquisition loop: wait for the registration window, then RSVP with bounded retries.

States:

    WAITING ──(window open)──> ATTEMPTING ──(registered / waitlisted)──> SUCCEEDED
       ^                           │
       └──(retry, window check)────┤──(max attempts)──> EXHAUSTED

    any ──(deadline)──> TIMED_OUT
    any ──(cancel event)──> CANCELLED

Deadline and cancellation are checked at every suspension point: before each
sleep and before each attempt. A cancel never interrupts an in-flight request.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta

from rsvpwatch.clock import Clock, SystemClock
from rsvpwatch.errors import ExhaustedRetriesError, PollCancelledError, PollTimeoutError
from rsvpwatch.models import (
    AcquisitionPhase,
    AcquisitionResult,
    AcquisitionSettings,
    ClassSession,
    SessionCredentials,
)
from rsvpwatch.registration import RegistrationController
from rsvpwatch.timing import poll_interval, registration_window

logger = logging.getLogger(__name__)


class AcquisitionLoop:
    """
    Runs one acquisition for one class session.

    Use a fresh instance per run; ``phase`` reflects the run in progress.
    """

    def __init__(
        self,
        controller: RegistrationController,
        settings: AcquisitionSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.controller = controller
        self.settings = settings or AcquisitionSettings()
        self.clock = clock or SystemClock()
        self.phase = AcquisitionPhase.WAITING

    async def run(
        self,
        credentials: SessionCredentials,
        session: ClassSession,
        cancel: asyncio.Event | None = None,
    ) -> AcquisitionResult:
        """Drive the run to a terminal state.

        Returns the result on SUCCEEDED; raises ExhaustedRetriesError,
        PollTimeoutError or PollCancelledError otherwise. ProtocolError and
        PortalTransportError from the controller propagate unchanged.
        """
        started = self.clock.now()
        deadline = started + self.settings.poll_timeout
        window = registration_window(session.start, self.settings.lead_time)
        attempts = 0
        self.phase = AcquisitionPhase.WAITING

        logger.info(
            "Acquiring %s at %s (window opens %s, deadline %s)",
            session.display_title,
            session.start.isoformat(),
            window.isoformat(),
            deadline.isoformat(),
        )

        while True:
            self._checkpoint(cancel, deadline, attempts)

            now = self.clock.now()
            if now < window:
                self._transition(AcquisitionPhase.WAITING)
                remaining = window - now
                interval = poll_interval(remaining)
                logger.debug(
                    "Not in RSVP window, sleeping %.3fs (window opens in %s)",
                    interval.total_seconds(),
                    remaining,
                )
                await self._suspend(interval, deadline, cancel)
                continue

            self._transition(AcquisitionPhase.ATTEMPTING)
            state = await self.controller.attempt(credentials, session)

            if state.is_success:
                self._transition(AcquisitionPhase.SUCCEEDED)
                return AcquisitionResult(
                    phase=AcquisitionPhase.SUCCEEDED,
                    state=state,
                    attempts=attempts + 1,
                    elapsed_seconds=self._elapsed(started),
                    session=session,
                )

            attempts += 1
            if attempts >= self.settings.max_attempts:
                self._transition(AcquisitionPhase.EXHAUSTED)
                raise ExhaustedRetriesError(
                    f"Unable to register after {attempts} attempts (last status: {state.value})",
                    phase=AcquisitionPhase.EXHAUSTED,
                    attempts=attempts,
                )

            logger.warning(
                "Attempt %d/%d not registered (%s), retrying",
                attempts,
                self.settings.max_attempts,
                state.value,
            )
            if self.settings.retry_interval > timedelta(0):
                await self._suspend(self.settings.retry_interval, deadline, cancel)

    def _checkpoint(
        self, cancel: asyncio.Event | None, deadline: datetime, attempts: int
    ) -> None:
        if cancel is not None and cancel.is_set():
            self._transition(AcquisitionPhase.CANCELLED)
            raise PollCancelledError(
                "Polling cancelled", phase=AcquisitionPhase.CANCELLED, attempts=attempts
            )
        if self.clock.now() >= deadline:
            self._transition(AcquisitionPhase.TIMED_OUT)
            raise PollTimeoutError(
                f"Polling timed out after {self.settings.poll_timeout}",
                phase=AcquisitionPhase.TIMED_OUT,
                attempts=attempts,
            )

    async def _suspend(
        self, duration: timedelta, deadline: datetime, cancel: asyncio.Event | None
    ) -> None:
        """Sleep for ``duration`` but never past the deadline; wake early on cancel."""
        seconds = min(duration, deadline - self.clock.now()).total_seconds()
        if seconds <= 0:
            return
        if cancel is None:
            await self.clock.sleep(seconds)
            return

        sleeper = asyncio.ensure_future(self.clock.sleep(seconds))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if sleeper.done():
                sleeper.result()
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()

    def _transition(self, phase: AcquisitionPhase) -> None:
        if phase != self.phase:
            logger.info("Acquisition %s -> %s", self.phase.value, phase.value)
            self.phase = phase

    def _elapsed(self, started: datetime) -> float:
        return (self.clock.now() - started).total_seconds()
