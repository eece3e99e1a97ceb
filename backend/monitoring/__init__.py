"""
Monitoring package - traffic watch jobs for scheduled trips

Submodules:
- thresholds: Pure threshold checks and alert reasons
- scheduler: Monitoring job lifecycle and polling
- orchestrator: Composition root and periodic background work
"""

from .thresholds import ThresholdEvaluator, BreachResult
from .scheduler import MonitoringScheduler
from .orchestrator import Orchestrator, create_orchestrator

__all__ = [
    "ThresholdEvaluator",
    "BreachResult",
    "MonitoringScheduler",
    "Orchestrator",
    "create_orchestrator",
]
