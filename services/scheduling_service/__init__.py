"""
Timer provider: fixed-rate repeating callbacks with cancellable handles.
"""

from services.scheduling_service.scheduler import (
    PeriodicScheduler,
    ScheduledTask,
    SchedulerShutdownError,
)

__all__ = ["PeriodicScheduler", "ScheduledTask", "SchedulerShutdownError"]
