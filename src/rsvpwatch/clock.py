"""Clock and sleep provider for the acquisition loop.

The loop never calls ``datetime.now()`` or ``asyncio.sleep()`` directly; it
goes through a Clock so tests can drive time by hand.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> datetime: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall-clock time (timezone-aware UTC) and asyncio.sleep().

    Once check_ntp_offset() has succeeded, now() is corrected by the measured
    offset so window checks follow server time rather than the host clock.
    """

    def __init__(self) -> None:
        self._ntp_offset: float | None = None

    def now(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=self._ntp_offset or 0)

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    @property
    def ntp_offset(self) -> float | None:
        return self._ntp_offset

    def check_ntp_offset(self) -> float | None:
        """Check system clock offset against NTP. Returns seconds offset or None.

        Blocking; call before entering the event loop.
        """
        try:
            import ntplib

            client = ntplib.NTPClient()
            resp = client.request("pool.ntp.org", version=3)
            self._ntp_offset = resp.offset
            return resp.offset
        except Exception as e:
            logger.debug("NTP check failed: %s", e)
            return None
