"""
Package: psnoti

Plays sounds in a guild through the psbot HTTP API, either at random intervals or on
cron schedules. See psnoti.main for the entry point.
"""
__version__ = "1.0.0"
