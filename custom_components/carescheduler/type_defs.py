"""Type definitions for CareScheduler data structures.

TypedDict is used for the fixed-shape records kept in storage (schedule days,
care tasks, observations) and for the small result payloads the engines hand
back (summaries, escalation decisions, sweep results). Records are still plain
dicts at runtime; TypedDict is static analysis only, so runtime code keeps its
.get() defaults.

IMPORTANT: This file must NOT import from coordinator.py or managers to avoid
circular dependencies. Only typing machinery is imported here.
"""

from typing import Any, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

ScheduleDayId = str  # UUID string
InstanceId = str  # UUID string
StaffId = str
ISODatetime = str  # ISO 8601 datetime string "2025-01-01T08:00:00+00:00"
ISODate = str  # ISO 8601 date string "2025-01-01"


# =============================================================================
# Stored Records
# =============================================================================


class ScheduleDayData(TypedDict):
    """One department's plan for one calendar date."""

    internal_id: ScheduleDayId
    date: ISODate
    department_id: str
    total_tasks: int
    total_observations: int
    estimated_workload: float  # 0-100, clamped
    optimization_applied: bool
    optimization_timestamp: ISODatetime | None
    status: str  # active / inactive
    staff_capacity_minutes: NotRequired[int | None]
    created_at: ISODatetime
    updated_at: ISODatetime
    archived_at: NotRequired[ISODatetime | None]


class _InstanceBase(TypedDict):
    """Fields shared by care tasks and observations."""

    internal_id: InstanceId
    kind: str  # care_task / observation
    schedule_day_id: ScheduleDayId
    resident_id: NotRequired[str | None]
    priority: str
    scheduled_time: ISODatetime
    assigned_staff_id: StaffId | None
    status: str
    completed_by: NotRequired[StaffId | None]
    outcome_notes: NotRequired[str | None]
    follow_up_required: bool
    follow_up_notes: NotRequired[str | None]
    actual_start_time: NotRequired[ISODatetime | None]
    deferred_until: NotRequired[ISODatetime | None]
    last_escalated_reason: NotRequired[str | None]
    last_escalated_at: NotRequired[ISODatetime | None]
    created_at: ISODatetime
    updated_at: ISODatetime


class CareTaskData(_InstanceBase):
    """One scheduled unit of care work."""

    task_type: str
    estimated_duration: int  # minutes, 1-480
    actual_end_time: NotRequired[ISODatetime | None]
    actual_duration: NotRequired[int | None]  # minutes


class ObservationData(_InstanceBase):
    """One scheduled resident observation."""

    observation_type: str
    frequency: str
    actual_time: NotRequired[ISODatetime | None]


InstanceData = CareTaskData | ObservationData


# =============================================================================
# Engine Results
# =============================================================================


class DaySummary(TypedDict):
    """Rolled-up counters for one schedule day (JSON-serializable)."""

    schedule_day_id: ScheduleDayId
    total_tasks: int
    total_observations: int
    estimated_workload: float
    optimization_applied: bool
    optimization_timestamp: ISODatetime | None


class EscalationDecision(TypedDict):
    """Trigger payload handed to the alert sink."""

    instance_id: InstanceId
    reason: str
    priority: str
    kind: str
    schedule_day_id: ScheduleDayId | None
    overdue_minutes: int
    missed_occurrences: int


class SweepResult(TypedDict):
    """Outcome of one overdue/escalation sweep."""

    evaluated: int
    overdue: list[InstanceId]
    escalated: list[EscalationDecision]
    skipped: list[dict[str, Any]]  # {"instance_id": ..., "error": ...}
    archived_days: list[ScheduleDayId]
