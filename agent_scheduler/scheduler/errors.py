"""
Scheduler Exceptions

Raised synchronously from the explicit control operations (initialize,
start, stop, reconfigure, manual trigger). Background ticks never raise;
they publish error events instead.
"""


class SchedulerError(Exception):
    """Base exception for scheduler control errors."""
    pass


class ConfigurationError(SchedulerError):
    """The scheduler configuration is missing or invalid."""
    pass


class SchedulerNotRunningError(SchedulerError):
    """An operation that needs a running scheduler was called while idle."""
    pass
