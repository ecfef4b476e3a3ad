"""One RSVP attempt: submit the registration, then read back the class page."""

from __future__ import annotations

import logging

from rsvpwatch.api import PortalClient
from rsvpwatch.errors import ProtocolError
from rsvpwatch.models import ClassSession, ReservationState, SessionCredentials
from rsvpwatch.status import classify_status

logger = logging.getLogger(__name__)

REGISTER_ACCEPTED = 302
PAGE_OK = 200


class RegistrationController:
    """
    Performs exactly two dependent requests per attempt:

    1. register — the portal redirects (302) when it accepted the request
    2. confirmation read — the class page, classified into a ReservationState

    Any other status on either request raises ProtocolError. An unrecognised
    page is returned as UNKNOWN, not raised.
    """

    def __init__(self, client: PortalClient) -> None:
        self.client = client

    async def attempt(
        self, credentials: SessionCredentials, session: ClassSession
    ) -> ReservationState:
        resp = await self.client.register(credentials, session)
        if resp.status_code != REGISTER_ACCEPTED:
            raise ProtocolError(
                f"Register request returned unexpected status {resp.status_code}",
                status_code=resp.status_code,
            )
        logger.info("Submitted RSVP request, checking status...")
        return await self.check(credentials, session)

    async def check(
        self, credentials: SessionCredentials, session: ClassSession
    ) -> ReservationState:
        """Read the class page alone and classify it."""
        page = await self.client.fetch_session_page(credentials, session)
        if page.status_code != PAGE_OK:
            raise ProtocolError(
                f"Class page returned unexpected status {page.status_code}",
                status_code=page.status_code,
            )
        logger.debug("Class page body: %s", page.text)

        state = classify_status(page.text)
        logger.info("RSVP status: %s", state.value)
        return state
