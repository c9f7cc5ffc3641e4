"""Utility modules for logging and event-loop scheduling."""

from .logging import setup_logging
from .scheduling import Scheduler, TimerHandle, AsyncioScheduler

__all__ = ["setup_logging", "Scheduler", "TimerHandle", "AsyncioScheduler"]
