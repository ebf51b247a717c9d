"""Scheduling module for periodic execution of the scan."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
