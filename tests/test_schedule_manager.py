"""Tests for ScheduleManager - stateful scheduling workflows.

Tests verify:
- Idempotent day creation
- Instance creation and day counters
- Lifecycle transitions with the expected_status guard
- Concurrent transitions: exactly one wins
- Optimization hook and day archival
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock, patch

from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
import pytest

from custom_components.carescheduler import const
from custom_components.carescheduler.engines.lifecycle_engine import LifecycleEngine
from custom_components.carescheduler.managers.schedule_manager import ScheduleManager

# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def schedule_manager(
    mock_hass: MagicMock,
    mock_coordinator: MagicMock,
) -> ScheduleManager:
    """Create ScheduleManager instance with mocks."""
    manager = ScheduleManager(mock_hass, mock_coordinator)
    manager.emit = MagicMock()
    mock_coordinator.schedule_manager = manager
    return manager


async def _day(manager: ScheduleManager, capacity: int | None = None) -> str:
    return await manager.async_create_schedule_day("ward-a", "2025-01-15", capacity)


def _task_input(day_id: str, **extra: Any) -> dict[str, Any]:
    return {
        const.FIELD_SCHEDULE_DAY_ID: day_id,
        const.FIELD_SCHEDULED_TIME: datetime(2025, 1, 15, 10, 0, tzinfo=UTC),
        const.FIELD_TASK_TYPE: const.TASK_TYPE_PERSONAL_CARE,
        const.FIELD_ESTIMATED_DURATION: 30,
        **extra,
    }


def _observation_input(day_id: str, **extra: Any) -> dict[str, Any]:
    return {
        const.FIELD_SCHEDULE_DAY_ID: day_id,
        const.FIELD_SCHEDULED_TIME: "2025-01-15T08:00:00+00:00",
        const.FIELD_OBSERVATION_TYPE: const.OBSERVATION_TYPE_VITAL_SIGNS,
        const.FIELD_FREQUENCY: const.FREQUENCY_FOUR_HOURLY,
        **extra,
    }


# ============================================================================
# Schedule Days
# ============================================================================


class TestScheduleDays:
    """Tests for schedule day creation and capacity."""

    @pytest.mark.asyncio
    async def test_create_is_idempotent(
        self, schedule_manager: ScheduleManager, mock_coordinator: MagicMock
    ) -> None:
        """The same department and date always map to one day."""
        first = await _day(schedule_manager)
        second = await schedule_manager.async_create_schedule_day(
            "ward-a", datetime(2025, 1, 15, 23, 0).date()
        )
        assert first == second
        assert len(mock_coordinator.schedule_days_data) == 1

    @pytest.mark.asyncio
    async def test_other_department_gets_own_day(
        self, schedule_manager: ScheduleManager, mock_coordinator: MagicMock
    ) -> None:
        """Days are per department."""
        await _day(schedule_manager)
        await schedule_manager.async_create_schedule_day("ward-b", "2025-01-15")
        assert len(mock_coordinator.schedule_days_data) == 2

    @pytest.mark.asyncio
    async def test_invalid_date(self, schedule_manager: ScheduleManager) -> None:
        """Bad dates surface as ServiceValidationError."""
        with pytest.raises(ServiceValidationError):
            await schedule_manager.async_create_schedule_day("ward-a", "not-a-date")

    @pytest.mark.asyncio
    async def test_set_capacity_recomputes_workload(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """Capacity changes feed into the workload percentage."""
        day_id = await _day(schedule_manager)
        await schedule_manager.async_create_care_task(
            _task_input(day_id, **{const.FIELD_ESTIMATED_DURATION: 120})
        )
        summary = await schedule_manager.async_set_staff_capacity(day_id, 240)
        assert summary["estimated_workload"] == 50.0
        day = schedule_manager.get_schedule_day(day_id)
        assert day[const.DATA_DAY_STAFF_CAPACITY_MINUTES] == 240
        assert day[const.DATA_DAY_ESTIMATED_WORKLOAD] == 50.0

    @pytest.mark.asyncio
    async def test_unknown_day(self, schedule_manager: ScheduleManager) -> None:
        """Missing days raise not_found."""
        with pytest.raises(HomeAssistantError):
            await schedule_manager.async_set_staff_capacity("nope", 100)


# ============================================================================
# Instance Creation
# ============================================================================


class TestInstanceCreation:
    """Tests for care task and observation creation."""

    @pytest.mark.asyncio
    async def test_create_task_updates_counters(
        self,
        schedule_manager: ScheduleManager,
        mock_coordinator: MagicMock,
    ) -> None:
        """Creating records refreshes the day totals and persists."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        await schedule_manager.async_create_observation(_observation_input(day_id))

        assert task_id in mock_coordinator.care_tasks_data
        day = schedule_manager.get_schedule_day(day_id)
        assert day[const.DATA_DAY_TOTAL_TASKS] == 1
        assert day[const.DATA_DAY_TOTAL_OBSERVATIONS] == 1
        # default capacity 480 in the mock coordinator
        assert day[const.DATA_DAY_ESTIMATED_WORKLOAD] == 6.25
        mock_coordinator._persist.assert_called()
        schedule_manager.emit.assert_any_call(
            const.SIGNAL_SUFFIX_INSTANCE_CREATED,
            instance_id=task_id,
            kind=const.INSTANCE_KIND_CARE_TASK,
            schedule_day_id=day_id,
        )

    @pytest.mark.asyncio
    async def test_validation_error_mapped(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """Builder errors surface as ServiceValidationError."""
        day_id = await _day(schedule_manager)
        with pytest.raises(ServiceValidationError):
            await schedule_manager.async_create_care_task(
                _task_input(day_id, **{const.FIELD_ESTIMATED_DURATION: 900})
            )

    @pytest.mark.asyncio
    async def test_inactive_day_rejects(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """Archived days accept no new items."""
        day_id = await _day(schedule_manager)
        schedule_manager.get_schedule_day(day_id)[const.DATA_DAY_STATUS] = (
            const.DAY_STATUS_INACTIVE
        )
        with pytest.raises(ServiceValidationError):
            await schedule_manager.async_create_observation(_observation_input(day_id))


# ============================================================================
# Lifecycle Transitions
# ============================================================================


class TestTransitions:
    """Tests for async_transition."""

    @pytest.mark.asyncio
    async def test_start_and_complete(
        self, schedule_manager: ScheduleManager, mock_coordinator: MagicMock
    ) -> None:
        """A full task lifecycle persists each step."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        start = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)

        await schedule_manager.async_transition(
            task_id, const.ACTION_START, "nurse-a", timestamp=start
        )
        result = await schedule_manager.async_transition(
            task_id,
            const.ACTION_COMPLETE,
            "nurse-a",
            timestamp=start + timedelta(minutes=45),
        )

        assert result[const.DATA_INSTANCE_STATUS] == const.STATUS_COMPLETED
        stored = mock_coordinator.care_tasks_data[task_id]
        assert stored[const.DATA_TASK_ACTUAL_DURATION] == 45
        schedule_manager.emit.assert_any_call(
            const.SIGNAL_SUFFIX_INSTANCE_TRANSITIONED,
            instance_id=task_id,
            kind=const.INSTANCE_KIND_CARE_TASK,
            action=const.ACTION_COMPLETE,
            actor="nurse-a",
            old_status=const.STATUS_IN_PROGRESS,
            new_status=const.STATUS_COMPLETED,
            schedule_day_id=day_id,
        )

    @pytest.mark.asyncio
    async def test_terminal_rejected_without_change(
        self, schedule_manager: ScheduleManager, mock_coordinator: MagicMock
    ) -> None:
        """Invalid transitions leave the stored record untouched."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        await schedule_manager.async_transition(
            task_id, const.ACTION_CANCEL, "nurse-a", notes="resident discharged"
        )
        snapshot = dict(mock_coordinator.care_tasks_data[task_id])

        with pytest.raises(ServiceValidationError):
            await schedule_manager.async_transition(
                task_id, const.ACTION_START, "nurse-a"
            )
        assert mock_coordinator.care_tasks_data[task_id] == snapshot

    @pytest.mark.asyncio
    async def test_invalid_duration_mapped(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """End before start surfaces as invalid_duration."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        start = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)
        await schedule_manager.async_transition(
            task_id, const.ACTION_START, "nurse-a", timestamp=start
        )
        with pytest.raises(ServiceValidationError) as exc_info:
            await schedule_manager.async_transition(
                task_id,
                const.ACTION_COMPLETE,
                "nurse-a",
                end_time=start - timedelta(minutes=1),
            )
        assert exc_info.value.translation_key == const.TRANS_KEY_ERROR_INVALID_DURATION

    @pytest.mark.asyncio
    async def test_expected_status_guard(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """A stale expected_status is rejected."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        with pytest.raises(ServiceValidationError):
            await schedule_manager.async_transition(
                task_id,
                const.ACTION_START,
                "nurse-a",
                expected_status=const.STATUS_IN_PROGRESS,
            )

    @pytest.mark.asyncio
    async def test_concurrent_starts_one_wins(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """Two racing starts: one succeeds, the other sees in_progress."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))

        results = await asyncio.gather(
            schedule_manager.async_transition(task_id, const.ACTION_START, "nurse-a"),
            schedule_manager.async_transition(task_id, const.ACTION_START, "nurse-b"),
            return_exceptions=True,
        )
        successes = [r for r in results if isinstance(r, dict)]
        failures = [r for r in results if isinstance(r, ServiceValidationError)]
        assert len(successes) == 1
        assert len(failures) == 1

    @pytest.mark.asyncio
    async def test_complete_and_cancel_race(
        self, schedule_manager: ScheduleManager, mock_coordinator: MagicMock
    ) -> None:
        """Complete and cancel queue on the instance lock; only the first lands."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        start = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)
        await schedule_manager.async_transition(
            task_id, const.ACTION_START, "nurse-a", timestamp=start
        )

        lock = schedule_manager._get_instance_lock(task_id)
        held_during_engine: list[bool] = []
        real_apply = LifecycleEngine.apply_transition

        def tracking_apply(*args: Any, **kwargs: Any) -> dict[str, Any]:
            held_during_engine.append(lock.locked())
            return real_apply(*args, **kwargs)

        with patch.object(
            LifecycleEngine, "apply_transition", side_effect=tracking_apply
        ):
            async with lock:
                complete = asyncio.create_task(
                    schedule_manager.async_transition(
                        task_id,
                        const.ACTION_COMPLETE,
                        "nurse-a",
                        end_time=start + timedelta(minutes=30),
                    )
                )
                cancel = asyncio.create_task(
                    schedule_manager.async_transition(
                        task_id, const.ACTION_CANCEL, "nurse-b", notes="Resident away"
                    )
                )
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                # Both callers are parked on the lock, nothing has been written
                assert not complete.done()
                assert not cancel.done()
                assert (
                    mock_coordinator.care_tasks_data[task_id][
                        const.DATA_INSTANCE_STATUS
                    ]
                    == const.STATUS_IN_PROGRESS
                )

            results = await asyncio.gather(complete, cancel, return_exceptions=True)

        assert isinstance(results[0], dict)
        assert results[0][const.DATA_INSTANCE_STATUS] == const.STATUS_COMPLETED
        assert isinstance(results[1], ServiceValidationError)
        assert results[1].translation_placeholders["reason"] == "terminal_state"
        assert (
            mock_coordinator.care_tasks_data[task_id][const.DATA_INSTANCE_STATUS]
            == const.STATUS_COMPLETED
        )
        assert held_during_engine == [True, True]

    @pytest.mark.asyncio
    async def test_unknown_instance(self, schedule_manager: ScheduleManager) -> None:
        """Missing instances raise not_found."""
        with pytest.raises(HomeAssistantError):
            await schedule_manager.async_transition(
                "missing", const.ACTION_START, "nurse-a"
            )


# ============================================================================
# Read-time views
# ============================================================================


class TestInstanceReport:
    """Tests for get_due_status and get_instance_report."""

    @pytest.mark.asyncio
    async def test_task_report_has_metrics(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """Completed care tasks report efficiency and variance."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        start = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)
        await schedule_manager.async_transition(
            task_id, const.ACTION_START, "nurse-a", timestamp=start
        )
        await schedule_manager.async_transition(
            task_id,
            const.ACTION_COMPLETE,
            "nurse-a",
            timestamp=start + timedelta(minutes=45),
        )
        report = schedule_manager.get_instance_report(task_id)
        assert report["due_status"] == const.DUE_STATUS_CLOSED
        assert report["allowed_actions"] == []
        assert report["efficiency"] == 67
        assert report["time_variance"] == 15
        assert report["completion_delay"] == 15

    @pytest.mark.asyncio
    async def test_observation_report_has_next_time(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """Observations report their next scheduled time."""
        day_id = await _day(schedule_manager)
        obs_id = await schedule_manager.async_create_observation(
            _observation_input(day_id)
        )
        report = schedule_manager.get_instance_report(
            obs_id, now=datetime(2025, 1, 15, 7, 50, tzinfo=UTC)
        )
        assert report["due_status"] == const.DUE_STATUS_DUE
        assert report["next_scheduled_time"] == "2025-01-15T12:00:00+00:00"

    @pytest.mark.asyncio
    async def test_due_status_overdue(self, schedule_manager: ScheduleManager) -> None:
        """Past the scheduled time the item is overdue."""
        day_id = await _day(schedule_manager)
        obs_id = await schedule_manager.async_create_observation(
            _observation_input(day_id)
        )
        assert (
            schedule_manager.get_due_status(
                obs_id, now=datetime(2025, 1, 15, 9, 0, tzinfo=UTC)
            )
            == const.DUE_STATUS_OVERDUE
        )


# ============================================================================
# Optimization and Archival
# ============================================================================


class TestOptimization:
    """Tests for the optimization strategy hook."""

    @pytest.mark.asyncio
    async def test_strategy_moves_open_tasks(
        self, schedule_manager: ScheduleManager, mock_coordinator: MagicMock
    ) -> None:
        """Strategy output moves tasks and flags the day once."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        new_time = datetime(2025, 1, 15, 14, 0, tzinfo=UTC)

        def strategy(_day: Any, instances: list[dict[str, Any]]) -> dict[str, Any]:
            assert len(instances) == 1
            return {task_id: new_time}

        summary = await schedule_manager.async_apply_optimization(day_id, strategy)
        assert summary["optimization_applied"] is True
        assert summary["optimization_timestamp"] is not None
        assert (
            mock_coordinator.care_tasks_data[task_id][const.DATA_INSTANCE_SCHEDULED_TIME]
            == new_time.isoformat()
        )

        with pytest.raises(ServiceValidationError):
            await schedule_manager.async_apply_optimization(day_id, strategy)

    @pytest.mark.asyncio
    async def test_moved_task_can_escalate_again(
        self, schedule_manager: ScheduleManager, mock_coordinator: MagicMock
    ) -> None:
        """A moved task loses its escalation marker."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(
            _task_input(day_id, **{const.FIELD_PRIORITY: const.PRIORITY_CRITICAL})
        )
        task = mock_coordinator.care_tasks_data[task_id]
        task[const.DATA_INSTANCE_LAST_ESCALATED_REASON] = (
            const.ESCALATION_REASON_CRITICAL_OVERDUE
        )

        await schedule_manager.async_apply_optimization(
            day_id, lambda _d, _i: {task_id: datetime(2025, 1, 15, 14, 0, tzinfo=UTC)}
        )

        assert task[const.DATA_INSTANCE_LAST_ESCALATED_REASON] is None

    @pytest.mark.asyncio
    async def test_day_without_tasks_not_eligible(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """Observation-only days cannot be optimized."""
        day_id = await _day(schedule_manager)
        await schedule_manager.async_create_observation(_observation_input(day_id))
        with pytest.raises(ServiceValidationError):
            await schedule_manager.async_apply_optimization(day_id, lambda d, i: {})


class TestArchival:
    """Tests for async_archive_elapsed_days."""

    @pytest.mark.asyncio
    async def test_archives_closed_elapsed_day(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """Elapsed days with only closed items become inactive."""
        day_id = await _day(schedule_manager)
        task_id = await schedule_manager.async_create_care_task(_task_input(day_id))
        await schedule_manager.async_transition(
            task_id, const.ACTION_CANCEL, "nurse-a", notes="not needed"
        )

        still_today = datetime(2025, 1, 15, 23, 59, tzinfo=UTC)
        assert await schedule_manager.async_archive_elapsed_days(still_today) == []

        next_day = datetime(2025, 1, 16, 0, 0, tzinfo=UTC)
        assert await schedule_manager.async_archive_elapsed_days(next_day) == [day_id]
        day = schedule_manager.get_schedule_day(day_id)
        assert day[const.DATA_DAY_STATUS] == const.DAY_STATUS_INACTIVE
        assert day[const.DATA_DAY_ARCHIVED_AT] == next_day.isoformat()

    @pytest.mark.asyncio
    async def test_open_items_keep_day_active(
        self, schedule_manager: ScheduleManager
    ) -> None:
        """A day with open items is never archived."""
        day_id = await _day(schedule_manager)
        await schedule_manager.async_create_care_task(_task_input(day_id))
        archived = await schedule_manager.async_archive_elapsed_days(
            datetime(2025, 1, 20, 12, 0, tzinfo=UTC)
        )
        assert archived == []
