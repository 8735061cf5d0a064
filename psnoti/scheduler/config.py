"""
Module: psnoti/scheduler/config.py

Provides the RandomEventConfig and CronEventConfig classes describing one configured
event each, and the helpers that build them from the raw config document.

Only the structure is checked here. Durations, cron expressions and timezones are
parsed by the event's task when it starts, so a bad value there fails that task.
"""
from psnoti.errors import ConfigError

RANDOM = "random"
CRON = "cron"


class EventConfig:
    """
    Settings common to every event.

    Attributes:
        name (str): Event name, used as the log prefix.
        sounds (tuple[str]): Sound identifiers to choose from, never empty.
        useragent (str): Value sent in the User-Agent header of each dispatch.
    """
    kind = None

    def __init__(self, name, sounds, useragent):
        self.name = name
        self.sounds = tuple(sounds)
        self.useragent = useragent

    def __repr__(self):
        return f"<{type(self).__name__} {self.name!r}>"


class RandomEventConfig(EventConfig):
    """
    An event that fires after a random delay, over and over.

    Attributes:
        random_min (str): Lower bound of the delay, as a duration string.
        random_max (str): Upper bound of the delay (exclusive), as a duration string.
    """
    kind = RANDOM

    def __init__(self, name, random_min, random_max, sounds, useragent):
        super().__init__(name, sounds, useragent)
        self.random_min = random_min
        self.random_max = random_max


class CronEventConfig(EventConfig):
    """
    An event that fires whenever its cron expression matches the wall clock.

    Attributes:
        cron_expr (str): Five-field cron expression (a sixth seconds field is allowed).
        timezone (str or None): IANA timezone the expression is evaluated in.
            None means the host's local time.
    """
    kind = CRON

    def __init__(self, name, cron_expr, sounds, useragent, timezone=None):
        super().__init__(name, sounds, useragent)
        self.cron_expr = cron_expr
        self.timezone = timezone


def _require_str(entry, key, name, allow_empty=False):
    value = entry.get(key)
    if not isinstance(value, str) or (not allow_empty and not value.strip()):
        raise ConfigError(f"'{key}' must be a non-empty string", event=name)
    return value


def _common_fields(entry, index, section):
    if not isinstance(entry, dict):
        raise ConfigError(f"{section}[{index}] must be an object")
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"{section}[{index}] is missing a 'name'")

    sounds = entry.get("sounds")
    if not isinstance(sounds, list) or not sounds:
        raise ConfigError("'sounds' must be a non-empty list", event=name)
    if not all(isinstance(s, str) and s for s in sounds):
        raise ConfigError("every sound must be a non-empty string", event=name)

    useragent = _require_str(entry, "useragent", name)
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in useragent):
        raise ConfigError("'useragent' must not contain control characters", event=name)
    return name, sounds, useragent


def random_event_from_dict(entry, index=0):
    """
    Build a RandomEventConfig from one entry of the document's "events" list.

    Raises:
        ConfigError: If a field is missing or has the wrong type.
    """
    name, sounds, useragent = _common_fields(entry, index, "events")
    return RandomEventConfig(
        name=name,
        random_min=_require_str(entry, "random_min", name),
        random_max=_require_str(entry, "random_max", name),
        sounds=sounds,
        useragent=useragent
    )


def cron_event_from_dict(entry, index=0):
    """
    Build a CronEventConfig from one entry of the document's "cron_events" list.

    Raises:
        ConfigError: If a field is missing or has the wrong type.
    """
    name, sounds, useragent = _common_fields(entry, index, "cron_events")
    timezone = entry.get("timezone")
    if timezone is not None and not isinstance(timezone, str):
        raise ConfigError("'timezone' must be a string", event=name)
    return CronEventConfig(
        name=name,
        cron_expr=_require_str(entry, "cron_expr", name),
        sounds=sounds,
        useragent=useragent,
        timezone=timezone or None
    )
