"""
Module: psnoti/config.py

Environment settings (read from .env) and the loader for the JSON events document.
"""
import json
import os
from datetime import timedelta
from dotenv import load_dotenv

from psnoti.errors import ConfigError
from psnoti.scheduler.config import CRON, RANDOM, cron_event_from_dict, random_event_from_dict
from psnoti.scheduler.manager import POLICIES, SHUTDOWN
from psnoti.utils import parse_duration

load_dotenv()

CONFIG_PATH = os.getenv("CONFIG_PATH", "./config/config.json")

# Overrides for the document's psbot_url / guild
PSBOT_URL = os.getenv("PSBOT_URL") or None
GUILD_ID = os.getenv("GUILD_ID") or None

DISPATCH_TIMEOUT = os.getenv("DISPATCH_TIMEOUT", "10s")
ON_CONFIG_ERROR = os.getenv("ON_CONFIG_ERROR", SHUTDOWN).lower()


class Settings:
    """
    Everything the process needs to run, loaded from the config document.

    Attributes:
        psbot_url (str): Endpoint every dispatch is POSTed to.
        guild (str): Guild identifier sent with every dispatch.
        timeout (timedelta): Per-dispatch timeout.
        on_config_error (str): "shutdown" or "isolate".
        events (list): RandomEventConfig and CronEventConfig instances, in document order.
    """
    def __init__(self, psbot_url, guild, timeout, on_config_error, events):
        self.psbot_url = psbot_url
        self.guild = guild
        self.timeout = timeout
        self.on_config_error = on_config_error
        self.events = events

    @property
    def random_events(self):
        return [e for e in self.events if e.kind == RANDOM]

    @property
    def cron_events(self):
        return [e for e in self.events if e.kind == CRON]


def _parse_timeout(raw):
    try:
        timeout = parse_duration(raw)
    except ValueError as e:
        raise ConfigError(f"timeout: {e}") from e
    if timeout <= timedelta(0):
        raise ConfigError(f"timeout must be positive, got {raw!r}")
    return timeout


def settings_from_dict(document):
    """
    Build Settings from an already-decoded config document.

    Environment overrides (PSBOT_URL, GUILD_ID) win over the document; the
    document's "timeout" and "on_config_error" win over DISPATCH_TIMEOUT and
    ON_CONFIG_ERROR.

    Raises:
        ConfigError: If the document is structurally invalid.
    """
    if not isinstance(document, dict):
        raise ConfigError("config document must be a JSON object")

    psbot_url = PSBOT_URL or document.get("psbot_url")
    if not isinstance(psbot_url, str) or not psbot_url.strip():
        raise ConfigError("'psbot_url' is missing")

    guild = GUILD_ID or document.get("guild")
    if isinstance(guild, int) and not isinstance(guild, bool):
        guild = str(guild)
    if not isinstance(guild, str) or not guild.strip():
        raise ConfigError("'guild' is missing")

    timeout = _parse_timeout(document.get("timeout", DISPATCH_TIMEOUT))

    policy = document.get("on_config_error", ON_CONFIG_ERROR)
    if policy not in POLICIES:
        raise ConfigError(f"'on_config_error' must be one of {', '.join(POLICIES)}, got {policy!r}")

    events = []
    for key, build in (("events", random_event_from_dict), ("cron_events", cron_event_from_dict)):
        entries = document.get(key)
        if entries is None:
            continue
        if not isinstance(entries, list):
            raise ConfigError(f"'{key}' must be a list")
        events.extend(build(entry, index) for index, entry in enumerate(entries))

    seen = set()
    for event in events:
        if event.name in seen:
            raise ConfigError("duplicate event name", event=event.name)
        seen.add(event.name)

    return Settings(
        psbot_url=psbot_url,
        guild=guild,
        timeout=timeout,
        on_config_error=policy,
        events=events
    )


def load_settings(path=None):
    """
    Read and validate the JSON config document at `path` (default CONFIG_PATH).

    Raises:
        ConfigError: If the file can't be read, isn't JSON, or is invalid.
    """
    path = path or CONFIG_PATH
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
    return settings_from_dict(document)
