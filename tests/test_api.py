"""Tests for the async portal client."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

import httpx
import pytest
import respx

from conftest import PORTAL
from rsvpwatch.api import PortalClient, cookie_header
from rsvpwatch.errors import AuthError, PortalTransportError, ProtocolError

CHICAGO = ZoneInfo("America/Chicago")


def _login_response(status: int = 302) -> httpx.Response:
    return httpx.Response(
        status,
        headers=[
            ("Location", "/"),
            ("Set-Cookie", "csrftoken=csrf_abc123; Path=/; SameSite=Lax"),
            ("Set-Cookie", "sessionid=sess_xyz789; Path=/; HttpOnly"),
        ],
    )


@pytest.mark.asyncio
class TestPortalClientLogin:
    async def test_login_success(self):
        with respx.mock:
            route = respx.post(f"{PORTAL}/accounts/login/").mock(
                return_value=_login_response()
            )

            async with PortalClient() as client:
                creds = await client.login("athlete@example.com", "hunter2")

        assert creds.csrf_token == "csrf_abc123"
        assert creds.session_id == "sess_xyz789"
        body = route.calls[0].request.content.decode()
        assert "username=athlete%40example.com" in body
        assert "password=hunter2" in body

    async def test_login_accepts_200(self):
        with respx.mock:
            respx.post(f"{PORTAL}/accounts/login/").mock(return_value=_login_response(200))

            async with PortalClient() as client:
                creds = await client.login("athlete@example.com", "hunter2")

        assert creds.session_id == "sess_xyz789"

    async def test_login_unexpected_status(self):
        with respx.mock:
            respx.post(f"{PORTAL}/accounts/login/").mock(return_value=httpx.Response(500))

            async with PortalClient() as client:
                with pytest.raises(ProtocolError) as exc_info:
                    await client.login("athlete@example.com", "hunter2")

        assert exc_info.value.status_code == 500

    async def test_login_without_cookies(self):
        with respx.mock:
            respx.post(f"{PORTAL}/accounts/login/").mock(
                return_value=httpx.Response(200, text="Please enter a correct username")
            )

            async with PortalClient() as client:
                with pytest.raises(AuthError, match="session cookies"):
                    await client.login("athlete@example.com", "wrong")

    async def test_custom_portal_url(self):
        with respx.mock:
            route = respx.post("https://other-gym.example.com/accounts/login/").mock(
                return_value=_login_response()
            )

            async with PortalClient(base_url="https://other-gym.example.com/") as client:
                await client.login("a", "b")

        assert route.called


@pytest.mark.asyncio
class TestPortalClientSchedule:
    async def test_get_schedule(self, credentials, sample_schedule_feed):
        with respx.mock:
            route = respx.get(f"{PORTAL}/schedule/json-feed/").mock(
                return_value=httpx.Response(200, json=sample_schedule_feed)
            )

            async with PortalClient() as client:
                sessions = await client.get_schedule(
                    credentials, "In House Sessions", date(2026, 11, 3), date(2026, 11, 5)
                )

        assert len(sessions) == 3
        assert sessions[0].id == 15289564
        assert sessions[0].url == "/schedule/15289564/"
        assert sessions[1].title.startswith("Range & Resilience")

        params = route.calls[0].request.url.params
        assert params["name"] == "In House Sessions"
        assert params["start"] == "2026-11-03"
        assert params["end"] == "2026-11-05"
        assert "csrftoken=csrf_abc123" in route.calls[0].request.headers["cookie"]

    async def test_start_truncated_and_localized(self, credentials, sample_schedule_feed):
        with respx.mock:
            respx.get(f"{PORTAL}/schedule/json-feed/").mock(
                return_value=httpx.Response(200, json=sample_schedule_feed)
            )

            async with PortalClient(timezone="America/Chicago") as client:
                sessions = await client.get_schedule(
                    credentials, "In House Sessions", date(2026, 11, 3), date(2026, 11, 5)
                )

        assert sessions[0].start == datetime(2026, 11, 3, 7, 30, tzinfo=CHICAGO)

    async def test_offset_in_feed_is_kept(self, credentials):
        feed = [
            {
                "id": 1,
                "title": "Open Gym",
                "start": "2026-11-03T07:30:00-06:00",
                "url": "/schedule/1/",
            }
        ]
        with respx.mock:
            respx.get(f"{PORTAL}/schedule/json-feed/").mock(
                return_value=httpx.Response(200, json=feed)
            )

            async with PortalClient(timezone="America/New_York") as client:
                sessions = await client.get_schedule(
                    credentials, "Open Gym", date(2026, 11, 3), date(2026, 11, 3)
                )

        assert sessions[0].start.utcoffset().total_seconds() == -6 * 3600

    async def test_schedule_unexpected_status(self, credentials):
        with respx.mock:
            respx.get(f"{PORTAL}/schedule/json-feed/").mock(return_value=httpx.Response(403))

            async with PortalClient() as client:
                with pytest.raises(ProtocolError):
                    await client.get_schedule(
                        credentials, "In House Sessions", date(2026, 11, 3), date(2026, 11, 5)
                    )

    async def test_schedule_bad_body(self, credentials):
        with respx.mock:
            respx.get(f"{PORTAL}/schedule/json-feed/").mock(
                return_value=httpx.Response(200, text="<html>login</html>")
            )

            async with PortalClient() as client:
                with pytest.raises(ProtocolError, match="decode"):
                    await client.get_schedule(
                        credentials, "In House Sessions", date(2026, 11, 3), date(2026, 11, 5)
                    )

    async def test_schedule_timeout(self, credentials):
        with respx.mock:
            respx.get(f"{PORTAL}/schedule/json-feed/").mock(
                side_effect=httpx.ReadTimeout("slow")
            )

            async with PortalClient() as client:
                with pytest.raises(PortalTransportError):
                    await client.get_schedule(
                        credentials, "In House Sessions", date(2026, 11, 3), date(2026, 11, 5)
                    )


class TestCookieHeader:
    def test_both_tokens_rendered(self, credentials):
        assert cookie_header(credentials) == "csrftoken=csrf_abc123; sessionid=sess_xyz789"

    def test_tokens_hidden_from_repr(self, credentials):
        assert "csrf_abc123" not in repr(credentials)
