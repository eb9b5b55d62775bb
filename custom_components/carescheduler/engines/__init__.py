"""Engine modules for CareScheduler integration.

Contains pure computation engines:
- recurrence_engine: Observation frequency intervals and next occurrence
- due_engine: Shared overdue / due-window evaluation
- lifecycle_engine: Task and observation state machine
- workload_engine: Schedule day roll-ups and task metrics
- escalation_engine: Ordered escalation rules
"""

# Use relative imports within package to avoid mypy module resolution issues
from .due_engine import DueEngine
from .escalation_engine import EscalationEngine
from .lifecycle_engine import (
    InvalidDurationError,
    InvalidTransitionError,
    LifecycleEngine,
)
from .recurrence_engine import RecurrenceEngine, UnknownFrequencyError
from .workload_engine import WorkloadEngine

__all__ = [
    "DueEngine",
    "EscalationEngine",
    "InvalidDurationError",
    "InvalidTransitionError",
    "LifecycleEngine",
    "RecurrenceEngine",
    "UnknownFrequencyError",
    "WorkloadEngine",
]
