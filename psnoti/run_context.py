"""
Module: psnoti/run_context.py

Defines RunContext: the state every scheduler task shares for the lifetime of the
process. It carries the single cancellation signal, the target endpoint and guild,
and the HTTP session every dispatch goes through.
"""
import asyncio
from datetime import timedelta

import aiohttp


class RunContext:
    """
    Shared run state plus the process-wide cancellation signal.

    Attributes:
        endpoint (str): URL every dispatch is POSTed to.
        guild (str): Guild the sounds are played in.
        timeout (timedelta): Upper bound on a single dispatch.
        session (aiohttp.ClientSession or None): Shared HTTP session, open between
            open_session() and close().
    """
    def __init__(self, endpoint, guild, timeout=timedelta(seconds=10)):
        self.endpoint = endpoint
        self.guild = guild
        self.timeout = timeout
        self.session = None
        self._stop = asyncio.Event()

    @property
    def cancelled(self):
        return self._stop.is_set()

    def cancel(self):
        """Signal every task to stop. Safe to call more than once."""
        self._stop.set()

    async def wait(self, delay=None):
        """
        Sleep for `delay` seconds or until cancellation, whichever comes first.

        Args:
            delay (float or None): Seconds to wait. None waits for cancellation only.

        Returns:
            bool: True if cancellation was observed, False if the delay elapsed.
        """
        if self._stop.is_set():
            return True
        if delay is not None and delay <= 0:
            return False
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def open_session(self):
        """Open the shared HTTP session if it isn't open yet, and return it."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        return self.session

    async def close(self):
        """Close the shared HTTP session. Safe to call more than once."""
        if self.session is not None:
            await self.session.close()
            self.session = None
