"""
Module: psnoti/utils.py

Provides utility functions for logging and parsing durations.
"""
import inspect, os, re
from datetime import datetime, timedelta, UTC
from colorama import init, Fore, Style

init(autoreset=True)

LEVELS = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "error": 40
}

def log_message(message, level="info"):
    """
    Print a timestamped, colored log message with the caller's relative source path.

    Messages below the LOG_LEVEL environment setting (default "info") are dropped.

    Parameters:
    - message: The log message string.
    - level: One of "info", "debug", "warning", or "error" for coloring.
    """
    threshold = LEVELS.get(os.getenv("LOG_LEVEL", "info").lower(), LEVELS["info"])
    if LEVELS.get(level.lower(), LEVELS["info"]) < threshold:
        return

    frame    = inspect.currentframe().f_back
    fullpath = frame.f_code.co_filename
    cwd      = os.getcwd()
    if fullpath.startswith(cwd + os.sep):
        filename = fullpath[len(cwd)+1:]
    else:
        filename = fullpath
    lineno   = frame.f_lineno

    timestamp = f"[{datetime.now(UTC).strftime('%Y-%m-%d %H:%M:%S')}]"
    color_map = {
        "info": Fore.GREEN,
        "debug": Fore.BLUE,
        "warning": Fore.YELLOW,
        "error": Fore.RED
    }
    level_prefix = f"{level.upper():<7}"
    level_color = color_map.get(level.lower(), Fore.WHITE)

    prefix = f"[{timestamp}] {filename}({lineno}):"
    print(f"{prefix} {level_color}{level_prefix} {message}{Style.RESET_ALL}", flush=True)


DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h|d|w)')

UNIT_SECONDS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1,
    'm': 60,
    'h': 3600,
    'd': 86400,
    'w': 604800
}

def parse_duration(duration_str):
    """
    Parse a duration string into a timedelta.

    Accepts a sequence of decimal numbers, each with a unit suffix, such as
    "300ms", "1.5s", "2m" or "1h30m". Units: ns, us (µs), ms, s, m, h, d, w.
    A bare "0" is accepted. A leading "-" negates the whole duration.

    Raises ValueError if the string is not a valid duration.
    """
    if not isinstance(duration_str, str):
        raise ValueError(f"invalid duration {duration_str!r}")
    text = duration_str.strip()
    sign = 1
    if text[:1] in ('-', '+'):
        sign = -1 if text[0] == '-' else 1
        text = text[1:]
    if text == '0':
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {duration_str!r}")

    total = 0.0
    pos = 0
    for match in DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {duration_str!r}")
    try:
        return timedelta(seconds=sign * total)
    except OverflowError as e:
        raise ValueError(f"duration {duration_str!r} is out of range") from e


def format_duration(delta):
    """
    Render a timedelta the short way durations are written in config, e.g. "1m32.5s".
    """
    seconds = delta.total_seconds()
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    out = ""
    if hours:
        out += f"{int(hours)}h"
    if hours or minutes:
        out += f"{int(minutes)}m"
    out += f"{secs:.3f}".rstrip('0').rstrip('.') + "s"
    return out
