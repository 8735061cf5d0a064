"""
Module: psnoti/scheduler/task.py

Defines the per-event tasks: RandomIntervalTask sleeps a random time between dispatches,
CronTask dispatches whenever its cron expression matches. Both pick a random sound from
the event's sound list on every tick and dispatch it to psbot.
"""
import random
from datetime import timedelta

from psnoti.dispatcher import NotificationPayload, dispatch
from psnoti.errors import ConfigError
from psnoti.scheduler.config import CRON
from psnoti.scheduler.cron import CronEngine
from psnoti.utils import format_duration, log_message, parse_duration


def random_delay(rng, min_delay, max_delay):
    """
    Draw a delay uniformly from [min_delay, max_delay).

    Args:
        rng (random.Random): Source of randomness.
        min_delay (timedelta): Inclusive lower bound.
        max_delay (timedelta): Exclusive upper bound; must be greater than min_delay.
    """
    if max_delay <= min_delay:
        raise ConfigError(
            f"random_max ({format_duration(max_delay)}) must be greater than "
            f"random_min ({format_duration(min_delay)})"
        )
    span = (max_delay - min_delay) // timedelta(microseconds=1)
    return min_delay + timedelta(microseconds=rng.randrange(span))


def pick_sound(rng, sounds):
    """Pick one sound uniformly from a non-empty sequence."""
    return sounds[rng.randrange(len(sounds))]


class EventTask:
    """
    Behaviour shared by both kinds of event task.

    Attributes:
      event: RandomEventConfig or CronEventConfig for this task.
      context: RunContext shared with every other task.
      dispatcher: Coroutine function used to send a payload (psnoti.dispatcher.dispatch).
      rng: This task's private random.Random, created when the task starts.
      run_count: Number of successful dispatches.
      fail_count: Number of failed dispatches.
    """
    def __init__(self, event, context, dispatcher=dispatch, seed=None):
        """
        Args:
            event: The event configuration.
            context: The shared RunContext.
            dispatcher: Dispatch coroutine, replaceable for testing.
            seed: Optional seed for the task's random source. Defaults to OS entropy.
        """
        self.event = event
        self.context = context
        self.dispatcher = dispatcher
        self.seed = seed
        self.rng = None
        self.run_count = 0
        self.fail_count = 0

    @property
    def name(self):
        return self.event.name

    def _start(self):
        # Each task seeds its own generator once; nothing else draws from it.
        self.rng = random.Random(self.seed)

    async def fire(self):
        """
        Pick a sound and dispatch it. A failed dispatch is logged and counted,
        never raised.

        Returns:
            DispatchResult
        """
        payload = NotificationPayload(
            guild=self.context.guild,
            sound=pick_sound(self.rng, self.event.sounds)
        )
        result = await self.dispatcher(
            self.context.endpoint, self.event.useragent, payload, self.context.timeout,
            session=self.context.session
        )
        if result.success:
            self.run_count += 1
        else:
            self.fail_count += 1
            log_message(
                f"[{self.name}] Something went wrong playing sound {payload.sound} "
                f"in guild {payload.guild}: {result.error}",
                "error"
            )
        return result

    async def run(self):
        raise NotImplementedError


class RandomIntervalTask(EventTask):
    """
    Dispatches a random sound after a random delay, forever.

    The delay bounds are parsed when the task starts. A bad bound raises
    ConfigError before the first wait.
    """
    def parse_bounds(self):
        """
        Parse the event's random_min / random_max.

        Returns:
            tuple[timedelta, timedelta]: (min_delay, max_delay)

        Raises:
            ConfigError: If either value is not a duration, min is negative,
                or max is not greater than min.
        """
        bounds = []
        for key in ("random_min", "random_max"):
            raw = getattr(self.event, key)
            try:
                bounds.append(parse_duration(raw))
            except ValueError as e:
                raise ConfigError(f"{key}: {e}", event=self.name) from e
        min_delay, max_delay = bounds
        if min_delay.total_seconds() < 0:
            raise ConfigError(
                f"random_min ({self.event.random_min}) must not be negative", event=self.name
            )
        if max_delay <= min_delay:
            raise ConfigError(
                f"random_max ({self.event.random_max}) must be greater than "
                f"random_min ({self.event.random_min})",
                event=self.name
            )
        return min_delay, max_delay

    async def run(self):
        """
        Main loop: wait a random delay, dispatch, repeat.

        Returns cleanly once the shared cancellation signal is set.

        Raises:
            ConfigError: If the delay bounds are invalid.
        """
        min_delay, max_delay = self.parse_bounds()
        self._start()
        log_message(
            f"[{self.name}] Playing random sounds every "
            f"{format_duration(min_delay)} to {format_duration(max_delay)}",
            "info"
        )
        while True:
            delay = random_delay(self.rng, min_delay, max_delay)
            log_message(f"[{self.name}] Waiting for: {format_duration(delay)!r}", "info")
            if await self.context.wait(delay.total_seconds()):
                break
            await self.fire()
        log_message(f"[{self.name}] Stopped", "debug")


class CronTask(EventTask):
    """
    Dispatches a random sound every time the event's cron expression matches.

    The expression (and timezone) are parsed when the task starts. A bad value
    raises ConfigError before anything is scheduled.
    """
    def __init__(self, event, context, dispatcher=dispatch, seed=None):
        super().__init__(event, context, dispatcher=dispatcher, seed=seed)
        self.engine = None

    async def on_fire(self, fire_time):
        """Cron callback. Does nothing once the run has been cancelled."""
        if self.context.cancelled:
            return None
        log_message(f"[{self.name}] Cron tick at {fire_time.strftime('%Y-%m-%d %H:%M:%S %Z')}", "debug")
        return await self.fire()

    async def run(self):
        """
        Start this event's CronEngine and run it until cancellation.

        Raises:
            ConfigError: If the cron expression or timezone is invalid.
        """
        try:
            self.engine = CronEngine(self.event.cron_expr, timezone=self.event.timezone)
        except ConfigError as e:
            raise ConfigError(str(e), event=self.name) from e
        self._start()
        log_message(f"[{self.name}] Playing random sounds on schedule {self.event.cron_expr!r}", "info")
        await self.engine.run(self.context, self.on_fire)
        log_message(f"[{self.name}] Stopped", "debug")


def task_for(event, context, **kwargs):
    """Create the right task class for an event's kind."""
    if event.kind == CRON:
        return CronTask(event, context, **kwargs)
    return RandomIntervalTask(event, context, **kwargs)
