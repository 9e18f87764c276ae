"""Domain services for the task lifecycle and time tracking engine."""

from __future__ import annotations

from .capabilities import Capability, CapabilityResolver
from .carryover import CarryoverStats, CarryoverTracker, CarryoverUpdate, DueSummary
from .efficiency import EfficiencyCalculator, TaskTimeAnalysis, efficiency
from .lifecycle import LocationFix, TaskStateMachine, TransitionResult, task_state
from .tasks import TaskDetail, TaskService
from .time_tracking import DailySummary, TimeTrackingLedger

__all__ = [
    "Capability",
    "CapabilityResolver",
    "CarryoverStats",
    "CarryoverTracker",
    "CarryoverUpdate",
    "DailySummary",
    "DueSummary",
    "EfficiencyCalculator",
    "LocationFix",
    "TaskDetail",
    "TaskService",
    "TaskStateMachine",
    "TaskTimeAnalysis",
    "TimeTrackingLedger",
    "TransitionResult",
    "efficiency",
    "task_state",
]
