"""Schedule Manager - schedule days, instance creation and lifecycle workflows.

This manager handles all stateful scheduling operations:
- Idempotent schedule day creation per (department, date)
- Care task and observation creation under a day
- Lifecycle transitions (start/complete/cancel/defer/reschedule)
- Day summary recomputation (totals + workload)
- Optimization strategy hook and day archival

ARCHITECTURE:
- ScheduleManager = STATEFUL orchestration (locks, persistence, events)
- LifecycleEngine / WorkloadEngine / DueEngine = pure logic (STATELESS)

Locking:
- One asyncio.Lock per instance guards transitions (compare-and-swap on status)
- One asyncio.Lock per schedule day guards summary read-modify-write
- The instance lock is released before the day lock is taken, so the two are
  never held in opposite orders
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError, ServiceValidationError

from .. import const, data_builders as db
from ..engines.due_engine import DueEngine
from ..engines.lifecycle_engine import (
    InvalidDurationError,
    InvalidTransitionError,
    LifecycleEngine,
)
from ..engines.recurrence_engine import RecurrenceEngine, UnknownFrequencyError
from ..engines.workload_engine import WorkloadEngine
from ..utils.dt_utils import (
    as_utc,
    dt_now_utc,
    dt_parse_date,
    dt_to_utc,
    end_of_local_day,
)
from .base_manager import BaseManager

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import date, datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import CareSchedulerCoordinator
    from ..type_defs import DaySummary

    # Pluggable optimization routine: (day, instances) -> {task_id: new time}
    OptimizationStrategy = Callable[
        [Mapping[str, Any], list[dict[str, Any]]], Mapping[str, datetime]
    ]


__all__ = ["ScheduleManager"]


class ScheduleManager(BaseManager):
    """Manager for schedule days and instance lifecycle workflows.

    Responsibilities:
    - Create schedule days, care tasks and observations
    - Apply lifecycle transitions with race condition protection
    - Keep day counters in step with their instances
    - Emit INSTANCE_CREATED / INSTANCE_TRANSITIONED / DAY_ARCHIVED signals

    NOT responsible for:
    - Pure state machine logic (delegated to LifecycleEngine)
    - Escalation decisions (EscalationManager)
    - Alert delivery (NotificationManager)
    """

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: CareSchedulerCoordinator,
    ) -> None:
        """Initialize ScheduleManager with dependencies."""
        super().__init__(hass, coordinator)
        self._coordinator = coordinator

        # Locks for race condition protection
        self._instance_locks: dict[str, asyncio.Lock] = {}
        self._day_locks: dict[str, asyncio.Lock] = {}

    async def async_setup(self) -> None:
        """Set up the ScheduleManager.

        Day counters are recomputed directly by the workflows below, so there
        are no signal subscriptions.
        """
        const.LOGGER.debug(
            "ScheduleManager ready with %s schedule days",
            len(self._coordinator.schedule_days_data),
        )

    # =========================================================================
    # §1 SCHEDULE DAYS
    # =========================================================================

    def find_schedule_day(
        self, department_id: str, day: date | str
    ) -> dict[str, Any] | None:
        """Return the day record for a department and date, if one exists."""
        parsed = dt_parse_date(day)
        if parsed is None:
            return None
        iso_day = parsed.isoformat()
        for day_data in self._coordinator.schedule_days_data.values():
            if (
                day_data.get(const.DATA_DAY_DEPARTMENT_ID) == department_id
                and day_data.get(const.DATA_DAY_DATE) == iso_day
            ):
                return day_data
        return None

    def get_schedule_day(self, day_id: str) -> dict[str, Any]:
        """Return a day record or raise not_found."""
        day_data = self._coordinator.schedule_days_data.get(day_id)
        if day_data is None:
            raise HomeAssistantError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_NOT_FOUND,
                translation_placeholders={"entity": "schedule_day", "id": day_id},
            )
        return day_data

    async def async_create_schedule_day(
        self,
        department_id: str,
        day: date | str,
        capacity_minutes: int | None = None,
    ) -> str:
        """Create the schedule day for a department and date (idempotent).

        Returns the existing day's id when one is already present, so repeated
        calls never duplicate a day.

        Raises:
            ServiceValidationError: Missing department or invalid date
        """
        existing = self.find_schedule_day(department_id, day)
        if existing is not None:
            const.LOGGER.debug(
                "Schedule day for %s on %s already exists: %s",
                department_id,
                existing[const.DATA_DAY_DATE],
                existing[const.DATA_DAY_INTERNAL_ID],
            )
            return str(existing[const.DATA_DAY_INTERNAL_ID])

        try:
            day_data = db.build_schedule_day(
                {
                    const.DATA_DAY_DEPARTMENT_ID: department_id,
                    const.DATA_DAY_DATE: day,
                    const.DATA_DAY_STAFF_CAPACITY_MINUTES: capacity_minutes,
                }
            )
        except db.EntityValidationError as err:
            raise ServiceValidationError(
                translation_domain=const.DOMAIN,
                translation_key=err.translation_key,
                translation_placeholders=err.placeholders,
            ) from err

        day_id = day_data["internal_id"]
        self._coordinator.schedule_days_data[day_id] = dict(day_data)
        self._coordinator._persist()

        const.LOGGER.info(
            "Created schedule day %s for department %s on %s",
            day_id,
            department_id,
            day_data["date"],
        )
        return day_id

    async def async_set_staff_capacity(
        self, day_id: str, capacity_minutes: int
    ) -> DaySummary:
        """Record the staff-minutes available for a day and recompute workload."""
        async with self._get_day_lock(day_id):
            day_data = self.get_schedule_day(day_id)
            day_data[const.DATA_DAY_STAFF_CAPACITY_MINUTES] = int(capacity_minutes)
        summary = await self.async_refresh_day_summary(day_id)
        self._coordinator._persist()
        return summary

    # =========================================================================
    # §2 INSTANCE CREATION
    # =========================================================================

    async def async_create_care_task(self, user_input: dict[str, Any]) -> str:
        """Create a care task under an active schedule day.

        Raises:
            HomeAssistantError: Schedule day not found
            ServiceValidationError: Day inactive or invalid task fields
        """
        return await self._async_create_instance(
            user_input, db.build_care_task, const.INSTANCE_KIND_CARE_TASK
        )

    async def async_create_observation(self, user_input: dict[str, Any]) -> str:
        """Create an observation under an active schedule day.

        Raises:
            HomeAssistantError: Schedule day not found
            ServiceValidationError: Day inactive or invalid observation fields
        """
        return await self._async_create_instance(
            user_input, db.build_observation, const.INSTANCE_KIND_OBSERVATION
        )

    async def _async_create_instance(
        self,
        user_input: dict[str, Any],
        builder: Callable[[dict[str, Any]], Any],
        kind: str,
    ) -> str:
        day_id = str(user_input.get(const.DATA_INSTANCE_SCHEDULE_DAY_ID) or "")
        day_data = self.get_schedule_day(day_id)
        if day_data.get(const.DATA_DAY_STATUS) != const.DAY_STATUS_ACTIVE:
            raise ServiceValidationError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_DAY_INACTIVE,
                translation_placeholders={"id": day_id},
            )

        try:
            record = dict(builder(user_input))
        except db.EntityValidationError as err:
            raise ServiceValidationError(
                translation_domain=const.DOMAIN,
                translation_key=err.translation_key,
                translation_placeholders=err.placeholders,
            ) from err

        instance_id = record[const.DATA_INSTANCE_INTERNAL_ID]
        self._coordinator.bucket_for_kind(kind)[instance_id] = record

        await self.async_refresh_day_summary(day_id)
        self._coordinator._persist()

        self.emit(
            const.SIGNAL_SUFFIX_INSTANCE_CREATED,
            instance_id=instance_id,
            kind=kind,
            schedule_day_id=day_id,
        )
        const.LOGGER.info(
            "Created %s %s on schedule day %s", kind, instance_id, day_id
        )
        return instance_id

    # =========================================================================
    # §3 LIFECYCLE TRANSITIONS
    # =========================================================================

    def get_instance(self, instance_id: str) -> dict[str, Any]:
        """Return an instance record or raise not_found."""
        instance = self._coordinator.get_instance(instance_id)
        if instance is None:
            raise HomeAssistantError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_NOT_FOUND,
                translation_placeholders={"entity": "instance", "id": instance_id},
            )
        return instance

    async def async_transition(
        self,
        instance_id: str,
        action: str,
        actor: str | None,
        *,
        timestamp: datetime | None = None,
        notes: str | None = None,
        follow_up_notes: str | None = None,
        end_time: datetime | None = None,
        reschedule_time: datetime | None = None,
        expected_status: str | None = None,
    ) -> dict[str, Any]:
        """Apply a staff action to an instance with race condition protection.

        The status read, the engine call and the write happen under the
        instance lock, so of two racing actions only the first can succeed.
        The loser sees the new status and is rejected by the engine.

        Args:
            instance_id: Care task or observation internal_id
            action: One of const.ACTION_* values
            actor: Staff identifier performing the action
            timestamp: When the action happened (defaults to now)
            notes: Outcome / cancellation reason
            follow_up_notes: Follow-up notes
            end_time: Explicit completion time
            reschedule_time: New scheduled time (defer / reschedule)
            expected_status: Optional guard; reject unless the stored status
                still matches

        Returns:
            Copy of the updated record.

        Raises:
            HomeAssistantError: Instance not found
            ServiceValidationError: Invalid transition or inconsistent duration
        """
        lock = self._get_instance_lock(instance_id)
        async with lock:
            instance = self.get_instance(instance_id)
            old_status = str(instance.get(const.DATA_INSTANCE_STATUS))

            if expected_status is not None and old_status != expected_status:
                raise ServiceValidationError(
                    translation_domain=const.DOMAIN,
                    translation_key=const.TRANS_KEY_ERROR_INVALID_TRANSITION,
                    translation_placeholders={
                        "id": instance_id,
                        "status": old_status,
                        "action": action,
                        "reason": "status_changed",
                    },
                )

            try:
                updated = LifecycleEngine.apply_transition(
                    instance,
                    action,
                    actor,
                    timestamp or dt_now_utc(),
                    notes=notes,
                    follow_up_notes=follow_up_notes,
                    end_time=end_time,
                    reschedule_time=reschedule_time,
                )
            except InvalidTransitionError as err:
                raise ServiceValidationError(
                    translation_domain=const.DOMAIN,
                    translation_key=const.TRANS_KEY_ERROR_INVALID_TRANSITION,
                    translation_placeholders={
                        "id": instance_id,
                        "status": err.current_status,
                        "action": err.action,
                        "reason": err.reason,
                    },
                ) from err
            except InvalidDurationError as err:
                raise ServiceValidationError(
                    translation_domain=const.DOMAIN,
                    translation_key=const.TRANS_KEY_ERROR_INVALID_DURATION,
                    translation_placeholders={
                        "id": instance_id,
                        "start": err.start.isoformat(),
                        "end": err.end.isoformat(),
                    },
                ) from err

            kind = str(updated.get(const.DATA_INSTANCE_KIND))
            self._coordinator.bucket_for_kind(kind)[instance_id] = updated

        new_status = updated[const.DATA_INSTANCE_STATUS]
        day_id = updated.get(const.DATA_INSTANCE_SCHEDULE_DAY_ID)
        if day_id in self._coordinator.schedule_days_data:
            await self.async_refresh_day_summary(day_id)
        self._coordinator._persist()

        self.emit(
            const.SIGNAL_SUFFIX_INSTANCE_TRANSITIONED,
            instance_id=instance_id,
            kind=kind,
            action=action,
            actor=actor,
            old_status=old_status,
            new_status=new_status,
            schedule_day_id=day_id,
        )
        const.LOGGER.info(
            "%s %s: %s -> %s by %s", kind, instance_id, old_status, new_status, actor
        )
        return dict(updated)

    def get_due_status(self, instance_id: str, now: datetime | None = None) -> str:
        """Classify an instance as on_time / due / overdue / closed."""
        instance = self.get_instance(instance_id)
        scheduled = dt_to_utc(instance.get(const.DATA_INSTANCE_SCHEDULED_TIME))
        status = str(instance.get(const.DATA_INSTANCE_STATUS))
        if scheduled is None:
            return (
                const.DUE_STATUS_CLOSED
                if DueEngine.is_terminal(status)
                else const.DUE_STATUS_ON_TIME
            )
        return DueEngine.evaluate(
            status, scheduled, now or dt_now_utc(), self._coordinator.due_window
        )

    def get_instance_report(
        self, instance_id: str, now: datetime | None = None
    ) -> dict[str, Any]:
        """Read-time view of an instance: due status, next actions and metrics.

        Care tasks carry efficiency, time variance and completion delay;
        observations carry their next scheduled time.
        """
        instance = self.get_instance(instance_id)
        status = str(instance.get(const.DATA_INSTANCE_STATUS))
        kind = str(instance.get(const.DATA_INSTANCE_KIND))
        report: dict[str, Any] = {
            "instance_id": instance_id,
            "kind": kind,
            "status": status,
            "due_status": self.get_due_status(instance_id, now),
            "allowed_actions": LifecycleEngine.allowed_actions(status, kind),
        }
        if kind == const.INSTANCE_KIND_CARE_TASK:
            report["efficiency"] = WorkloadEngine.efficiency(instance)
            report["time_variance"] = WorkloadEngine.time_variance(instance)
            report["completion_delay"] = WorkloadEngine.completion_delay(instance)
            return report

        try:
            next_time = RecurrenceEngine.next_scheduled_time(instance)
        except UnknownFrequencyError as err:
            raise ServiceValidationError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_UNKNOWN_FREQUENCY,
                translation_placeholders={"value": str(err.frequency)},
            ) from err
        report["next_scheduled_time"] = next_time.isoformat() if next_time else None
        return report

    # =========================================================================
    # §4 DAY SUMMARIES
    # =========================================================================

    def get_day_instances(self, day_id: str) -> list[dict[str, Any]]:
        """Return every task and observation that belongs to a day."""
        return [
            inst
            for inst in self._coordinator.iter_instances()
            if inst.get(const.DATA_INSTANCE_SCHEDULE_DAY_ID) == day_id
        ]

    def capacity_for(self, day_data: Mapping[str, Any]) -> int:
        """Staff-minutes for a day (its own figure, else the configured default)."""
        capacity = day_data.get(const.DATA_DAY_STAFF_CAPACITY_MINUTES)
        if capacity is None:
            return self._coordinator.default_capacity_minutes
        return int(capacity)

    async def async_refresh_day_summary(self, day_id: str) -> DaySummary:
        """Recompute and store a day's counters under the per-day lock.

        Only counter fields are written back; optimization flags and other
        fields on the day are preserved. Callers persist.
        """
        lock = self._get_day_lock(day_id)
        async with lock:
            day_data = self.get_schedule_day(day_id)
            summary = WorkloadEngine.summarize(
                day_data, self.get_day_instances(day_id), self.capacity_for(day_data)
            )
            merged = WorkloadEngine.apply_summary(day_data, summary)
            merged[const.DATA_DAY_UPDATED_AT] = dt_now_utc().isoformat()
            self._coordinator.schedule_days_data[day_id] = merged

        const.LOGGER.debug(
            "Day %s summary: %s tasks, %s observations, workload %s%%",
            day_id,
            summary["total_tasks"],
            summary["total_observations"],
            summary["estimated_workload"],
        )
        return summary

    # =========================================================================
    # §5 OPTIMIZATION HOOK
    # =========================================================================

    async def async_apply_optimization(
        self, day_id: str, strategy: OptimizationStrategy
    ) -> DaySummary:
        """Run an external optimization strategy over an eligible day.

        The strategy receives the day and its instances and returns new
        scheduled times keyed by care task id. Only open care tasks of the day
        are moved. The day is then flagged as optimized.

        Raises:
            HomeAssistantError: Day not found
            ServiceValidationError: Day not eligible or strategy output invalid
        """
        summary = await self.async_refresh_day_summary(day_id)
        day_data = self.get_schedule_day(day_id)
        if not WorkloadEngine.is_optimization_eligible(day_data, summary):
            raise ServiceValidationError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_OPTIMIZATION_FAILED,
                translation_placeholders={"id": day_id, "reason": "not_eligible"},
            )

        instances = self.get_day_instances(day_id)
        new_times = strategy(day_data, [dict(inst) for inst in instances])

        moved = 0
        for task_id, new_time in new_times.items():
            task = self._coordinator.care_tasks_data.get(task_id)
            if (
                task is None
                or task.get(const.DATA_INSTANCE_SCHEDULE_DAY_ID) != day_id
                or not DueEngine.is_open(str(task.get(const.DATA_INSTANCE_STATUS)))
            ):
                continue
            try:
                new_iso = as_utc(new_time).isoformat()
            except (AttributeError, TypeError) as err:
                raise ServiceValidationError(
                    translation_domain=const.DOMAIN,
                    translation_key=const.TRANS_KEY_ERROR_OPTIMIZATION_FAILED,
                    translation_placeholders={"id": day_id, "reason": str(err)},
                ) from err
            async with self._get_instance_lock(task_id):
                task[const.DATA_INSTANCE_SCHEDULED_TIME] = new_iso
                # A new slot may escalate again
                task[const.DATA_INSTANCE_LAST_ESCALATED_REASON] = None
                task[const.DATA_INSTANCE_UPDATED_AT] = dt_now_utc().isoformat()
            moved += 1

        now_iso = dt_now_utc().isoformat()
        async with self._get_day_lock(day_id):
            day_data = self.get_schedule_day(day_id)
            day_data[const.DATA_DAY_OPTIMIZATION_APPLIED] = True
            day_data[const.DATA_DAY_OPTIMIZATION_TIMESTAMP] = now_iso
            day_data[const.DATA_DAY_UPDATED_AT] = now_iso

        summary = await self.async_refresh_day_summary(day_id)
        self._coordinator._persist()
        const.LOGGER.info("Optimization applied to day %s: %s tasks moved", day_id, moved)
        return summary

    # =========================================================================
    # §6 ARCHIVAL
    # =========================================================================

    async def async_archive_elapsed_days(self, now: datetime) -> list[str]:
        """Archive active days whose date has passed and whose items are all closed.

        A day's date has passed once `now` reaches the next local midnight.
        Callers persist.
        """
        now_utc = as_utc(now)
        archived: list[str] = []

        for day_id, day_data in list(self._coordinator.schedule_days_data.items()):
            if day_data.get(const.DATA_DAY_STATUS) != const.DAY_STATUS_ACTIVE:
                continue
            day = dt_parse_date(day_data.get(const.DATA_DAY_DATE))
            if day is None or now_utc < end_of_local_day(day):
                continue
            if not all(
                DueEngine.is_terminal(str(inst.get(const.DATA_INSTANCE_STATUS)))
                for inst in self.get_day_instances(day_id)
            ):
                continue

            async with self._get_day_lock(day_id):
                day_data = self.get_schedule_day(day_id)
                day_data[const.DATA_DAY_STATUS] = const.DAY_STATUS_INACTIVE
                day_data[const.DATA_DAY_ARCHIVED_AT] = now_utc.isoformat()
                day_data[const.DATA_DAY_UPDATED_AT] = now_utc.isoformat()
            archived.append(day_id)

            self.emit(
                const.SIGNAL_SUFFIX_DAY_ARCHIVED,
                schedule_day_id=day_id,
                date=day_data.get(const.DATA_DAY_DATE),
            )
            const.LOGGER.info("Archived schedule day %s (%s)", day_id, day.isoformat())

        return archived

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _get_instance_lock(self, instance_id: str) -> asyncio.Lock:
        """Get or create a lock for an instance."""
        if instance_id not in self._instance_locks:
            self._instance_locks[instance_id] = asyncio.Lock()
        return self._instance_locks[instance_id]

    def _get_day_lock(self, day_id: str) -> asyncio.Lock:
        """Get or create a lock for a schedule day."""
        if day_id not in self._day_locks:
            self._day_locks[day_id] = asyncio.Lock()
        return self._day_locks[day_id]
