"""Exception hierarchy for rsvpwatch."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rsvpwatch.models import AcquisitionPhase


class RsvpError(Exception):
    """Base exception."""


class ConfigError(RsvpError):
    """Invalid configuration."""


class AuthError(RsvpError):
    """Authentication failed."""


class ScheduleError(RsvpError):
    """Requested class not found in the schedule."""


class PortalError(RsvpError):
    """Portal request failed."""


class ProtocolError(PortalError):
    """Portal answered with an unexpected HTTP status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PortalTransportError(PortalError):
    """Request never got a response (timeout, connection reset, DNS...)."""


class AcquisitionError(RsvpError):
    """Acquisition run ended in a terminal failure."""

    def __init__(
        self, message: str, phase: AcquisitionPhase | None = None, attempts: int = 0
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.attempts = attempts


class ExhaustedRetriesError(AcquisitionError):
    """Retry ceiling reached without a reservation."""


class PollTimeoutError(AcquisitionError):
    """Overall polling deadline elapsed."""


class PollCancelledError(AcquisitionError):
    """Run was cancelled by the caller."""
