"""
Package: psnoti/scheduler

Provides the event configuration classes, the per-event tasks, the CronEngine and the
EventScheduler that runs them together.
"""
from .config import CronEventConfig, RandomEventConfig
from .cron import CronEngine
from .task import CronTask, RandomIntervalTask
from .manager import EventScheduler
