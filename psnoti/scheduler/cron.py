"""
Module: psnoti/scheduler/cron.py

Defines CronEngine: a small per-event cron runner built on croniter. Each cron event
gets its own engine, so there is no shared schedule registry between events.
"""
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from psnoti.errors import ConfigError
from psnoti.utils import log_message


def validate_cron_expression(expression):
    """
    Check that `expression` is a five-field cron expression (minute, hour,
    day-of-month, month, day-of-week), optionally followed by a seconds field,
    or one of croniter's @-aliases such as "@hourly".

    Raises:
        ConfigError: If the expression cannot be parsed.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise ConfigError("cron expression is empty")
    fields = expression.split()
    if expression.strip().startswith("@"):
        valid = len(fields) == 1 and croniter.is_valid(expression)
    else:
        valid = len(fields) in (5, 6) and croniter.is_valid(expression)
    if not valid:
        raise ConfigError(f"invalid cron expression {expression!r}")


def resolve_timezone(name):
    """
    Look up an IANA timezone by name. None means the host's local timezone.

    Raises:
        ConfigError: If the timezone is unknown.
    """
    if name is None:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone {name!r}") from e


class CronEngine:
    """
    Fires a callback each time a cron expression matches the wall clock.

    The expression is parsed once, when the engine is created. Fire times are
    computed from the later of "now" and the previous fire, so a tick is never
    delivered twice and ticks missed while the callback was running are skipped.

    Attributes:
        expression (str): The cron expression.
        tz (ZoneInfo or None): Timezone the expression is evaluated in.
        last_fire (datetime or None): When the engine last fired.
    """
    def __init__(self, expression, timezone=None):
        """
        Args:
            expression (str): Cron expression.
            timezone (str, optional): IANA timezone name. Defaults to host local time.

        Raises:
            ConfigError: If the expression or timezone is invalid.
        """
        validate_cron_expression(expression)
        self.expression = expression
        self.tz = resolve_timezone(timezone)
        self.last_fire = None

    def now(self):
        if self.tz is not None:
            return datetime.now(self.tz)
        return datetime.now().astimezone()

    def next_fire(self, after=None):
        """
        Return the first matching time strictly after `after` (default: now),
        never earlier than the previous fire.
        """
        base = after or self.now()
        if base.tzinfo is None:
            base = base.astimezone(self.tz)
        if self.last_fire is not None and self.last_fire > base:
            base = self.last_fire
        if self.tz is not None:
            return croniter(self.expression, base).get_next(datetime)
        # Host local time has no zone rules attached, only the current offset.
        # Match on naive wall time and take the offset in force at the fire time.
        wall = base.astimezone().replace(tzinfo=None)
        return croniter(self.expression, wall).get_next(datetime).astimezone()

    async def run(self, context, callback):
        """
        Fire `callback(fire_time)` on every match until `context` is cancelled.

        The callback is awaited before the next fire time is computed, so fires
        never overlap. Once cancellation is observed no further callbacks start.

        Args:
            context (RunContext): Provides the cancellation signal.
            callback: Async function called with the scheduled fire time.
        """
        while not context.cancelled:
            fire_at = self.next_fire()
            delay = (fire_at - self.now()).total_seconds()
            log_message(f"Next cron fire for {self.expression!r} at {fire_at.isoformat()}", "debug")
            if await context.wait(delay):
                break
            self.last_fire = fire_at
            if context.cancelled:
                break
            await callback(fire_at)
