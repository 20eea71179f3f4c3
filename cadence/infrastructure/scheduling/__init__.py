"""
Periodic task scheduling.

Usage:
    from cadence.infrastructure.scheduling import PeriodicTaskRunner
    from cadence.domain.schedule_value_objects import Cron, FixedRate

    async with PeriodicTaskRunner() as runner:
        runner.schedule(cleanup_old_events, Cron("15 3 * * *"))
        runner.schedule(poll_devices, FixedRate(300))
        ...
"""
from .runner import PeriodicTaskRunner
from .task_loader import load_task_configs, register_tasks

__all__ = [
    "PeriodicTaskRunner",
    "load_task_configs",
    "register_tasks",
]
