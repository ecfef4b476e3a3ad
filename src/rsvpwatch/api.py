"""Async client for the class-booking portal using httpx.

The portal is a plain server-rendered site. Every authenticated request
carries the ``csrftoken`` and ``sessionid`` cookies obtained at login.
Redirects are never followed: the register endpoint answers 302 when it
accepts an RSVP, and that status is what we check for.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

import httpx
import orjson
from pydantic import ValidationError

from rsvpwatch.errors import AuthError, PortalTransportError, ProtocolError
from rsvpwatch.models import ClassSession, SessionCredentials

logger = logging.getLogger(__name__)

DEFAULT_PORTAL_URL = "https://crossfit-austin.triib.com"

LOGIN_PATH = "/accounts/login/"
SCHEDULE_PATH = "/schedule/json-feed/"
REGISTER_SUFFIX = "register/"

CSRF_COOKIE = "csrftoken"
SESSION_COOKIE = "sessionid"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def cookie_header(credentials: SessionCredentials) -> str:
    """Render the session tokens as a Cookie header value."""
    return f"{CSRF_COOKIE}={credentials.csrf_token}; {SESSION_COOKIE}={credentials.session_id}"


class PortalClient:
    """
    Async HTTP client for the booking portal.

    Use as an async context manager to get connection pooling and keep-alive:

        async with PortalClient() as client:
            credentials = await client.login("me@example.com", "secret")
            sessions = await client.get_schedule(credentials, "In House Sessions",
                                                 date(2026, 11, 2), date(2026, 11, 6))
    """

    def __init__(
        self,
        base_url: str = DEFAULT_PORTAL_URL,
        timezone: str = "America/Chicago",
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._tz = ZoneInfo(timezone)
        self._timeout = timeout or httpx.Timeout(10.0, connect=5.0)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> PortalClient:
        self._client = httpx.AsyncClient(
            http2=True,
            base_url=self.base_url,
            headers={"User-Agent": USER_AGENT},
            timeout=self._timeout,
            follow_redirects=False,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        credentials: SessionCredentials | None = None,
        **kwargs,
    ) -> httpx.Response:
        """Issue one request, turning transport failures into PortalTransportError."""
        assert self._client is not None
        headers = kwargs.pop("headers", {})
        if credentials is not None:
            headers["Cookie"] = cookie_header(credentials)
        try:
            return await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise PortalTransportError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise PortalTransportError(f"{method} {path} failed: {e}") from e

    async def login(self, username: str, password: str) -> SessionCredentials:
        """POST the login form and capture the two session cookies."""
        resp = await self._send(
            "POST",
            LOGIN_PATH,
            data={"username": username, "password": password},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if resp.status_code not in (200, 302):
            raise ProtocolError(
                f"Login returned unexpected status {resp.status_code}",
                status_code=resp.status_code,
            )

        csrf = resp.cookies.get(CSRF_COOKIE)
        session_id = resp.cookies.get(SESSION_COOKIE)
        if not csrf or not session_id:
            raise AuthError("Login did not return session cookies. Check username/password.")

        logger.info("Logged in as %s", username)
        return SessionCredentials(csrf_token=csrf, session_id=session_id)

    async def get_schedule(
        self,
        credentials: SessionCredentials,
        name: str,
        start: date,
        end: date,
    ) -> list[ClassSession]:
        """GET the schedule feed for a date range.

        Start times are truncated to the minute and pinned to the portal's
        timezone when the feed omits an offset.
        """
        resp = await self._send(
            "GET",
            SCHEDULE_PATH,
            credentials,
            params={"name": name, "start": start.isoformat(), "end": end.isoformat()},
        )
        if resp.status_code != 200:
            raise ProtocolError(
                f"Schedule feed returned unexpected status {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            raw = orjson.loads(resp.content)
            sessions = [ClassSession.model_validate(item) for item in raw]
        except (orjson.JSONDecodeError, ValidationError, TypeError) as e:
            raise ProtocolError(f"Could not decode schedule feed: {e}") from e

        return [
            s.model_copy(update={"start": self._normalize(s.start)}) for s in sessions
        ]

    def _normalize(self, dt: datetime) -> datetime:
        dt = dt.replace(second=0, microsecond=0)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=self._tz)
        return dt

    async def register(
        self, credentials: SessionCredentials, session: ClassSession
    ) -> httpx.Response:
        """GET <session url>register/ — the portal's RSVP action."""
        path = session.url + REGISTER_SUFFIX
        logger.info("Submitting RSVP request to %s", path)
        return await self._send("GET", path, credentials)

    async def fetch_session_page(
        self, credentials: SessionCredentials, session: ClassSession
    ) -> httpx.Response:
        """GET the class detail page, which states the current RSVP status."""
        return await self._send("GET", session.url, credentials)
