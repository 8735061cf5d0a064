"""
Module: psnoti/errors.py

Exception types shared across the package.
"""


class ConfigError(Exception):
    """
    Raised when configuration is unusable: an unreadable or malformed config
    document, or an event whose durations, cron expression or timezone cannot
    be parsed.

    Attributes:
        event (str or None): Name of the offending event, if the error is per-event.
    """
    def __init__(self, message, event=None):
        super().__init__(message)
        self.event = event

    def __str__(self):
        message = super().__str__()
        if self.event:
            return f"[{self.event}] {message}"
        return message
