"""
Module: psnoti/dispatcher.py

Sends "play this sound" requests to the psbot HTTP endpoint.

A dispatch never raises for network, HTTP or request-building failures. It returns a
DispatchResult and the caller decides what to log; nothing here retries.
"""
import asyncio
from dataclasses import dataclass
from datetime import timedelta

import aiohttp

from psnoti.utils import log_message


@dataclass(frozen=True)
class NotificationPayload:
    """
    Body of one dispatch: which sound to play in which guild.

    Attributes:
        guild (str): Guild the sound is played in.
        sound (str): Sound identifier.
    """
    guild: str
    sound: str

    def to_dict(self):
        return {"guild": self.guild, "sound": self.sound}


@dataclass(frozen=True)
class DispatchResult:
    """
    Outcome of a single dispatch.

    Attributes:
        success (bool): True if psbot answered with a status in [200, 400).
        status (int or None): HTTP status, None if no response arrived.
        error (str or None): Description of the failure.
    """
    success: bool
    status: int = None
    error: str = None

    def __bool__(self):
        return self.success


def is_success_status(status):
    """Statuses in [200, 400) count as delivered."""
    return 200 <= status < 400


async def dispatch(endpoint, useragent, payload, timeout=timedelta(seconds=10), session=None):
    """
    POST `payload` to `endpoint`.

    Args:
        endpoint (str): psbot URL to POST to.
        useragent (str): User-Agent header identifying the event.
        payload (NotificationPayload): Guild and sound to play.
        timeout (timedelta): Upper bound on the whole request.
        session (aiohttp.ClientSession, optional): Shared session to send with.
            A short-lived one is opened when omitted.

    Returns:
        DispatchResult: success only for a response status in [200, 400).
    """
    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await _post(own_session, endpoint, useragent, payload, timeout)
    return await _post(session, endpoint, useragent, payload, timeout)


async def _post(session, endpoint, useragent, payload, timeout):
    headers = {
        "Content-Type": "application/json",
        "User-Agent": useragent,
    }

    try:
        async with session.post(
            endpoint,
            headers=headers,
            json=payload.to_dict(),
            timeout=aiohttp.ClientTimeout(total=timeout.total_seconds()),
        ) as resp:
            if is_success_status(resp.status):
                log_message(f"Played sound {payload.sound} in guild: {payload.guild}", "info")
                return DispatchResult(success=True, status=resp.status)
            status_line = f"{resp.status} {resp.reason or ''}".strip()
            return DispatchResult(
                success=False,
                status=resp.status,
                error=f"psbot did not return a sensible response: {status_line!r}",
            )
    except asyncio.TimeoutError:
        return DispatchResult(
            success=False,
            error=f"psbot request timed out after {timeout.total_seconds():g}s",
        )
    except aiohttp.ClientError as e:
        return DispatchResult(success=False, error=f"psbot request failed: {e!r}")
    except ValueError as e:
        # aiohttp rejects malformed headers/URLs before anything is sent
        return DispatchResult(success=False, error=f"psbot request could not be built: {e}")
