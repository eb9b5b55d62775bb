"""Workload Engine - schedule day roll-ups and per-task metrics.

This engine centralizes the derived numbers supervisors plan against:
- Day totals (tasks, observations) and the clamped workload percentage
- Optimization eligibility of a day
- Per-task efficiency, time variance and completion delay

Design Principles:
    - Stateless: No coordinator reference, operates on passed data structures
    - Non-destructive: Summaries are new dicts; merging touches counters only
    - Idempotent: Same instances and capacity always give the same summary

The staff-minutes capacity is supplied by the caller. How it is obtained is
not this engine's concern.
"""

from __future__ import annotations

from datetime import timedelta
import math
from typing import TYPE_CHECKING, Any, Final

from .. import const
from ..utils.dt_utils import dt_to_utc, minutes_between
from ..utils.math_utils import clamped_percentage

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..type_defs import DaySummary

# Counter fields owned by the summary; everything else on a day is left alone
SUMMARY_FIELDS: Final[tuple[str, ...]] = (
    const.DATA_DAY_TOTAL_TASKS,
    const.DATA_DAY_TOTAL_OBSERVATIONS,
    const.DATA_DAY_ESTIMATED_WORKLOAD,
)


class WorkloadEngine:
    """Pure logic engine for day aggregation and task metrics.

    All methods are static - no instance state.

    Example:
        summary = WorkloadEngine.summarize(day, instances, capacity_minutes=480)
        day = WorkloadEngine.apply_summary(day, summary)
    """

    # ────────────────────────────────────────────────────────────────
    # Day aggregation
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def demand_minutes(instances: Iterable[Mapping[str, Any]]) -> int:
        """Sum estimated durations of the non-cancelled care tasks."""
        return sum(
            int(inst.get(const.DATA_TASK_ESTIMATED_DURATION) or 0)
            for inst in instances
            if inst.get(const.DATA_INSTANCE_KIND) == const.INSTANCE_KIND_CARE_TASK
            and inst.get(const.DATA_INSTANCE_STATUS) != const.STATUS_CANCELLED
        )

    @staticmethod
    def summarize(
        day: Mapping[str, Any],
        instances: Iterable[Mapping[str, Any]],
        capacity_minutes: float,
    ) -> DaySummary:
        """Roll up a day's instances into counters.

        Args:
            day: Schedule day record (DATA_DAY_* keys)
            instances: Tasks and observations; only those belonging to the day
                are counted
            capacity_minutes: Available staff-minutes for the department-day

        Returns:
            DaySummary with totals (any status), workload percentage clamped to
            [0, 100], and the optimization fields copied through unchanged.

        Examples:
            two 60 min tasks, capacity 480 -> estimated_workload 25.0
            one 600 min task, capacity 480 -> estimated_workload 100.0
        """
        day_id = day.get(const.DATA_DAY_INTERNAL_ID)
        owned = [
            inst
            for inst in instances
            if inst.get(const.DATA_INSTANCE_SCHEDULE_DAY_ID) == day_id
        ]

        total_tasks = sum(
            1
            for inst in owned
            if inst.get(const.DATA_INSTANCE_KIND) == const.INSTANCE_KIND_CARE_TASK
        )
        total_observations = sum(
            1
            for inst in owned
            if inst.get(const.DATA_INSTANCE_KIND) == const.INSTANCE_KIND_OBSERVATION
        )
        workload = clamped_percentage(
            WorkloadEngine.demand_minutes(owned), capacity_minutes
        )

        return {
            "schedule_day_id": str(day_id),
            "total_tasks": total_tasks,
            "total_observations": total_observations,
            "estimated_workload": workload,
            "optimization_applied": bool(
                day.get(const.DATA_DAY_OPTIMIZATION_APPLIED, False)
            ),
            "optimization_timestamp": day.get(const.DATA_DAY_OPTIMIZATION_TIMESTAMP),
        }

    @staticmethod
    def apply_summary(
        day: Mapping[str, Any], summary: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Merge summary counters into a copy of the day.

        Only SUMMARY_FIELDS are written. Optimization flags, status, capacity
        and timestamps on the day survive untouched.
        """
        merged = dict(day)
        for field in SUMMARY_FIELDS:
            merged[field] = summary[field]
        return merged

    @staticmethod
    def is_optimization_eligible(
        day: Mapping[str, Any], summary: Mapping[str, Any] | None = None
    ) -> bool:
        """Return True if an optimization pass may run for the day.

        The day must be active, not yet optimized, and hold at least one task.
        """
        if day.get(const.DATA_DAY_STATUS) != const.DAY_STATUS_ACTIVE:
            return False
        if day.get(const.DATA_DAY_OPTIMIZATION_APPLIED):
            return False
        source = summary if summary is not None else day
        return int(source.get(const.DATA_DAY_TOTAL_TASKS) or 0) > 0

    # ────────────────────────────────────────────────────────────────
    # Task metrics
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def efficiency(task: Mapping[str, Any]) -> int | None:
        """Estimated over actual duration as a whole percentage.

        Returns None unless both durations are present and actual is positive.

        Halves round up, so estimated 5, actual 8 (62.5) gives 63.

        Example:
            estimated 30, actual 45 -> 67
        """
        estimated = task.get(const.DATA_TASK_ESTIMATED_DURATION)
        actual = task.get(const.DATA_TASK_ACTUAL_DURATION)
        if not estimated or not actual or actual <= 0:
            return None
        return int(math.floor(estimated * 100 / actual + 0.5))

    @staticmethod
    def time_variance(task: Mapping[str, Any]) -> int | None:
        """Actual minus estimated duration in minutes (positive means overran)."""
        estimated = task.get(const.DATA_TASK_ESTIMATED_DURATION)
        actual = task.get(const.DATA_TASK_ACTUAL_DURATION)
        if estimated is None or actual is None:
            return None
        return int(actual) - int(estimated)

    @staticmethod
    def completion_delay(task: Mapping[str, Any]) -> int | None:
        """Minutes between actual end and the scheduled end.

        Scheduled end is scheduled_time + estimated_duration. Negative values
        mean the task finished early.
        """
        scheduled = dt_to_utc(task.get(const.DATA_INSTANCE_SCHEDULED_TIME))
        actual_end = dt_to_utc(task.get(const.DATA_TASK_ACTUAL_END_TIME))
        estimated = task.get(const.DATA_TASK_ESTIMATED_DURATION)
        if scheduled is None or actual_end is None or estimated is None:
            return None
        scheduled_end = scheduled + timedelta(minutes=int(estimated))
        return minutes_between(scheduled_end, actual_end)
