"""Authentication and credential management via OS keyring."""

from __future__ import annotations

import logging

import keyring

from rsvpwatch.api import PortalClient
from rsvpwatch.errors import AuthError
from rsvpwatch.models import PortalAccount, SessionCredentials

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "rsvpwatch-portal"


class AuthManager:
    """Handles portal account storage (OS keyring) and login."""

    def store_credentials(self, username: str, password: str) -> None:
        """Store the portal login in the OS keyring."""
        keyring.set_password(KEYRING_SERVICE, "username", username)
        keyring.set_password(KEYRING_SERVICE, username, password)
        logger.info("Credentials stored in keyring.")

    def load_credentials(self) -> PortalAccount:
        """Load the portal login from the OS keyring."""
        username = keyring.get_password(KEYRING_SERVICE, "username")
        if not username:
            raise AuthError("No credentials found. Run 'rsvpwatch configure' first.")
        password = keyring.get_password(KEYRING_SERVICE, username)
        if not password:
            raise AuthError(
                f"Password not found for {username}. Run 'rsvpwatch configure' again."
            )
        return PortalAccount(username=username, password=password)

    async def login(
        self, client: PortalClient, account: PortalAccount
    ) -> SessionCredentials:
        """Log in and return the session cookies used for every later request."""
        return await client.login(
            username=account.username,
            password=account.password.get_secret_value(),
        )
