"""
Module: psnoti/main.py

Entry point for the psbot sound notifier.
Loads the configuration, starts one task per configured event, stops them on
SIGINT/SIGTERM, and exits non-zero if an event fails.
"""
import asyncio
import signal
import sys

from psnoti.config import load_settings
from psnoti.errors import ConfigError
from psnoti.run_context import RunContext
from psnoti.scheduler.manager import EventScheduler
from psnoti.utils import log_message


def install_signal_handlers(context):
    """
    Cancel the run on SIGINT / SIGTERM.

    Platforms without loop signal support (Windows) fall back to the default
    KeyboardInterrupt handling.
    """
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, context, sig)
        except (NotImplementedError, RuntimeError):
            pass


def _on_signal(context, sig):
    log_message(f"Received {signal.Signals(sig).name}, stopping all events.", "warning")
    context.cancel()


async def run(settings):
    """
    Run every configured event until a signal arrives or an event fails.

    Raises:
        Exception: The first event failure.
    """
    context = RunContext(
        endpoint=settings.psbot_url,
        guild=settings.guild,
        timeout=settings.timeout
    )
    install_signal_handlers(context)
    log_message(
        f"Loaded {len(settings.random_events)} random and {len(settings.cron_events)} cron event(s) "
        f"for guild {settings.guild}",
        "info"
    )
    scheduler = EventScheduler(
        settings.events, context, on_config_error=settings.on_config_error
    )
    await scheduler.run()


def main():
    log_message("psnoti is starting up...")
    try:
        settings = load_settings()
    except ConfigError as e:
        log_message(f"Unable to load configuration! {e}", "error")
        sys.exit(1)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        log_message("Interrupted, exiting.", "warning")
    except Exception as e:
        log_message(f"One of the events got killed: {e}", "error")
        sys.exit(1)
    log_message("All events stopped.", "info")


if __name__ == "__main__":
    main()
