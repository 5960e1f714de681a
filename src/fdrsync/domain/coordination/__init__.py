"""Cluster coordination of pipeline runs and the surfaces that trigger them."""

from __future__ import annotations

from .coordinator import (
    ExecutionAlreadyRunningError,
    ExecutionCoordinator,
    abandon_description,
)
from .launcher import JobLauncher
from .triggers import (
    FORCED_REASON,
    ManualTrigger,
    ScheduledRunner,
    TriggerMarkerWatcher,
    TriggerResponse,
)

__all__ = [
    "FORCED_REASON",
    "ExecutionAlreadyRunningError",
    "ExecutionCoordinator",
    "JobLauncher",
    "ManualTrigger",
    "ScheduledRunner",
    "TriggerMarkerWatcher",
    "TriggerResponse",
    "abandon_description",
]
