"""Pydantic models for portal interactions and domain objects."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr


# --- Credential / Config Models ---


class PortalAccount(BaseModel):
    """Portal login. Stored in keyring, never serialized to disk."""

    username: str
    password: SecretStr


class SessionCredentials(BaseModel):
    """The two cookies the portal requires on every authenticated request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    csrf_token: str = Field(alias="CSRFToken", repr=False)
    session_id: str = Field(alias="SessionID", repr=False)


class ClassRequest(BaseModel):
    """A class the user wants a spot in."""

    class_name: str
    start: datetime


class AcquisitionConfig(BaseModel):
    """Acquisition constants as written in the YAML config."""

    lead_time_hours: float = Field(default=120.0, gt=0)
    poll_timeout_minutes: float = Field(default=10.0, gt=0)
    max_attempts: int = Field(default=10, ge=1)
    retry_interval_seconds: float = Field(default=0.0, ge=0)  # 0 = retry immediately

    def to_settings(self) -> AcquisitionSettings:
        return AcquisitionSettings(
            lead_time=timedelta(hours=self.lead_time_hours),
            poll_timeout=timedelta(minutes=self.poll_timeout_minutes),
            max_attempts=self.max_attempts,
            retry_interval=timedelta(seconds=self.retry_interval_seconds),
        )


class RsvpConfig(BaseModel):
    """Loaded from YAML config file."""

    portal_url: str = "https://crossfit-austin.triib.com"
    timezone: str = "America/Chicago"
    schedule_name: str = "In House Sessions"
    acquisition: AcquisitionConfig = AcquisitionConfig()
    requests: list[ClassRequest] = []


# --- Portal Models ---


class ClassSession(BaseModel):
    """One entry of the portal's schedule feed."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    coaches: str = ""
    start: datetime
    end: datetime | None = None
    url: str  # "/schedule/15289564/"

    @property
    def display_title(self) -> str:
        return self.title.replace("\n", " ", 1)


class ReservationState(str, Enum):
    UNREGISTERED = "unregistered"
    UNREGISTERED_WAITLIST = "unregistered_waitlist"
    REGISTERED = "registered"
    WAITLISTED = "waitlisted"
    UNKNOWN = "unknown"

    @property
    def is_success(self) -> bool:
        return self in (ReservationState.REGISTERED, ReservationState.WAITLISTED)


# --- Acquisition ---


class AcquisitionPhase(str, Enum):
    WAITING = "waiting"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class AcquisitionSettings(BaseModel):
    """Per-run constants for the acquisition loop."""

    model_config = ConfigDict(frozen=True)

    lead_time: timedelta = timedelta(hours=120)
    poll_timeout: timedelta = timedelta(minutes=10)
    max_attempts: int = Field(default=10, ge=1)
    retry_interval: timedelta = timedelta(0)


class AcquisitionResult(BaseModel):
    phase: AcquisitionPhase
    state: ReservationState
    attempts: int = 0
    elapsed_seconds: float = 0.0
    session: ClassSession | None = None


class RsvpTask(BaseModel):
    """Payload handed to the external scheduler and delivered back at wake-up."""

    model_config = ConfigDict(populate_by_name=True)

    session: ClassSession = Field(alias="schedule")
    credentials: SessionCredentials = Field(alias="cfaCookie")

    def to_event(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
