"""Event entry point: one acquisition run per delivered RsvpTask.

The external scheduler invokes ``handle_event`` with the JSON produced by
``RsvpTask.to_event()``. When the host passes a context exposing
``get_remaining_time_in_millis()`` (serverless runtimes do), the run is
cancelled shortly before the host would kill the process.

Configuration via environment variables:
    RSVPWATCH_PORTAL_URL            (default: https://crossfit-austin.triib.com)
    RSVPWATCH_LEAD_TIME_HOURS       (default: 120)
    RSVPWATCH_POLL_TIMEOUT_MINUTES  (default: 10)
    RSVPWATCH_MAX_ATTEMPTS          (default: 10)
"""

from __future__ import annotations

import asyncio
import logging
import os

from pydantic import ValidationError

from rsvpwatch.acquisition import AcquisitionLoop
from rsvpwatch.api import DEFAULT_PORTAL_URL, PortalClient
from rsvpwatch.errors import ConfigError, RsvpError
from rsvpwatch.models import AcquisitionConfig, AcquisitionResult, AcquisitionSettings, RsvpTask
from rsvpwatch.notifications import display_failure, display_result
from rsvpwatch.registration import RegistrationController

logger = logging.getLogger(__name__)

# Leave this much of the host's time budget for reporting the outcome.
CANCEL_MARGIN_SECONDS = 5.0


def settings_from_env() -> AcquisitionSettings:
    """Build acquisition settings from RSVPWATCH_* environment variables."""
    try:
        return AcquisitionConfig(
            lead_time_hours=float(os.environ.get("RSVPWATCH_LEAD_TIME_HOURS", "120")),
            poll_timeout_minutes=float(os.environ.get("RSVPWATCH_POLL_TIMEOUT_MINUTES", "10")),
            max_attempts=int(os.environ.get("RSVPWATCH_MAX_ATTEMPTS", "10")),
        ).to_settings()
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid RSVPWATCH_* environment: {e}") from e


async def _cancel_after(cancel: asyncio.Event, seconds: float) -> None:
    await asyncio.sleep(max(0.0, seconds))
    logger.warning("Host deadline approaching, cancelling acquisition")
    cancel.set()


async def run_task(
    task: RsvpTask,
    settings: AcquisitionSettings | None = None,
    portal_url: str = DEFAULT_PORTAL_URL,
    time_budget_seconds: float | None = None,
) -> AcquisitionResult:
    """Run one acquisition for ``task`` against the portal."""
    cancel = asyncio.Event()
    watchdog = None
    if time_budget_seconds is not None:
        watchdog = asyncio.create_task(
            _cancel_after(cancel, time_budget_seconds - CANCEL_MARGIN_SECONDS)
        )

    try:
        async with PortalClient(base_url=portal_url) as client:
            loop = AcquisitionLoop(RegistrationController(client), settings)
            return await loop.run(task.credentials, task.session, cancel)
    finally:
        if watchdog is not None:
            watchdog.cancel()


def _time_budget(context) -> float | None:
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if remaining is None:
        return None
    return remaining() / 1000


def handle_event(event: dict, context=None) -> str:
    """Decode the event, run the acquisition and report the outcome.

    Returns the achieved reservation state name; terminal failures are
    reported and re-raised so the host marks the invocation failed.
    """
    logger.info("Received event for schedule %s", (event.get("schedule") or {}).get("id"))
    try:
        task = RsvpTask.model_validate(event)
    except ValidationError as e:
        raise ConfigError(f"Invalid task event: {e}") from e

    settings = settings_from_env()
    portal_url = os.environ.get("RSVPWATCH_PORTAL_URL", DEFAULT_PORTAL_URL)

    try:
        result = asyncio.run(
            run_task(task, settings, portal_url, time_budget_seconds=_time_budget(context))
        )
    except RsvpError as e:
        logger.error("Unable to RSVP for %s: %s", task.session.display_title, e)
        display_failure(e, task.session)
        raise

    logger.info("RSVP status: %s", result.state.value)
    display_result(result)
    return result.state.value
