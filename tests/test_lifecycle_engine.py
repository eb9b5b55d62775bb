"""Tests for LifecycleEngine - pure logic, no HA fixtures needed."""

from __future__ import annotations

import copy
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from custom_components.carescheduler import const
from custom_components.carescheduler.engines.lifecycle_engine import (
    InvalidDurationError,
    InvalidTransitionError,
    LifecycleEngine,
)

T0 = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)


def make_task(status: str = const.STATUS_SCHEDULED, **extra: Any) -> dict[str, Any]:
    """Build a minimal care task record."""
    record = {
        const.DATA_INSTANCE_INTERNAL_ID: "task-1",
        const.DATA_INSTANCE_KIND: const.INSTANCE_KIND_CARE_TASK,
        const.DATA_INSTANCE_STATUS: status,
        const.DATA_INSTANCE_SCHEDULED_TIME: T0.isoformat(),
        const.DATA_INSTANCE_PRIORITY: const.PRIORITY_MEDIUM,
        const.DATA_INSTANCE_ASSIGNED_STAFF_ID: None,
        const.DATA_TASK_ESTIMATED_DURATION: 30,
    }
    record.update(extra)
    return record


def make_observation(status: str = const.STATUS_SCHEDULED) -> dict[str, Any]:
    """Build a minimal observation record."""
    return {
        const.DATA_INSTANCE_INTERNAL_ID: "obs-1",
        const.DATA_INSTANCE_KIND: const.INSTANCE_KIND_OBSERVATION,
        const.DATA_INSTANCE_STATUS: status,
        const.DATA_INSTANCE_SCHEDULED_TIME: T0.isoformat(),
        const.DATA_OBSERVATION_TYPE: const.OBSERVATION_TYPE_VITAL_SIGNS,
        const.DATA_OBSERVATION_FREQUENCY: const.FREQUENCY_FOUR_HOURLY,
    }


# =============================================================================
# TEST: HAPPY PATH
# =============================================================================


class TestStartAndComplete:
    """Test start -> complete for care tasks."""

    def test_start_sets_start_time_and_assigns_actor(self) -> None:
        """Starting records actual_start_time and assigns an unassigned task."""
        updated = LifecycleEngine.apply_transition(
            make_task(), const.ACTION_START, "nurse-a", T0
        )
        assert updated[const.DATA_INSTANCE_STATUS] == const.STATUS_IN_PROGRESS
        assert updated[const.DATA_INSTANCE_ACTUAL_START_TIME] == T0.isoformat()
        assert updated[const.DATA_INSTANCE_ASSIGNED_STAFF_ID] == "nurse-a"

    def test_start_keeps_existing_assignment(self) -> None:
        """An assigned task stays with its staff member."""
        task = make_task(**{const.DATA_INSTANCE_ASSIGNED_STAFF_ID: "nurse-b"})
        updated = LifecycleEngine.apply_transition(
            task, const.ACTION_START, "nurse-a", T0
        )
        assert updated[const.DATA_INSTANCE_ASSIGNED_STAFF_ID] == "nurse-b"

    def test_complete_records_duration(self) -> None:
        """start 10:00, complete 10:45 -> actual_duration 45."""
        started = LifecycleEngine.apply_transition(
            make_task(), const.ACTION_START, "nurse-a", T0
        )
        done = LifecycleEngine.apply_transition(
            started,
            const.ACTION_COMPLETE,
            "nurse-a",
            T0 + timedelta(minutes=45),
            notes="  washed and dressed ",
        )
        assert done[const.DATA_INSTANCE_STATUS] == const.STATUS_COMPLETED
        assert done[const.DATA_TASK_ACTUAL_DURATION] == 45
        assert done[const.DATA_TASK_ACTUAL_END_TIME] == (
            T0 + timedelta(minutes=45)
        ).isoformat()
        assert done[const.DATA_INSTANCE_COMPLETED_BY] == "nurse-a"
        assert done[const.DATA_INSTANCE_OUTCOME_NOTES] == "washed and dressed"

    def test_complete_end_before_start_raises(self) -> None:
        """An end time earlier than the start is rejected."""
        started = LifecycleEngine.apply_transition(
            make_task(), const.ACTION_START, "nurse-a", T0
        )
        with pytest.raises(InvalidDurationError) as exc_info:
            LifecycleEngine.apply_transition(
                started,
                const.ACTION_COMPLETE,
                "nurse-a",
                T0 + timedelta(minutes=5),
                end_time=T0 - timedelta(minutes=5),
            )
        assert exc_info.value.instance_id == "task-1"
        assert exc_info.value.start == T0

    def test_task_cannot_complete_from_scheduled(self) -> None:
        """Care tasks have to be started first."""
        with pytest.raises(InvalidTransitionError):
            LifecycleEngine.apply_transition(
                make_task(), const.ACTION_COMPLETE, "nurse-a", T0
            )

    def test_observation_completes_straight_from_scheduled(self) -> None:
        """An observation reading is point-in-time."""
        done = LifecycleEngine.apply_transition(
            make_observation(), const.ACTION_COMPLETE, "nurse-a", T0
        )
        assert done[const.DATA_INSTANCE_STATUS] == const.STATUS_COMPLETED
        assert done[const.DATA_OBSERVATION_ACTUAL_TIME] == T0.isoformat()

    def test_stored_overdue_status_can_be_started(self) -> None:
        """A persisted overdue status behaves like scheduled."""
        updated = LifecycleEngine.apply_transition(
            make_task(const.STATUS_OVERDUE), const.ACTION_START, "nurse-a", T0
        )
        assert updated[const.DATA_INSTANCE_STATUS] == const.STATUS_IN_PROGRESS


# =============================================================================
# TEST: CANCEL / DEFER / RESCHEDULE
# =============================================================================


class TestCancelDeferReschedule:
    """Test the side paths of the state machine."""

    def test_cancel_requires_reason(self) -> None:
        """Blank reasons are rejected."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            LifecycleEngine.apply_transition(
                make_task(), const.ACTION_CANCEL, "nurse-a", T0, notes="   "
            )
        assert exc_info.value.reason == "reason_required"

    def test_cancel_stores_reason(self) -> None:
        """The reason becomes the outcome notes."""
        updated = LifecycleEngine.apply_transition(
            make_task(), const.ACTION_CANCEL, "nurse-a", T0, notes="resident in hospital"
        )
        assert updated[const.DATA_INSTANCE_STATUS] == const.STATUS_CANCELLED
        assert updated[const.DATA_INSTANCE_OUTCOME_NOTES] == "resident in hospital"

    def test_defer_requires_notes_or_time(self) -> None:
        """Deferring needs follow-up notes or a new time."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            LifecycleEngine.apply_transition(
                make_task(), const.ACTION_DEFER, "nurse-a", T0
            )
        assert exc_info.value.reason == "follow_up_or_time_required"

    def test_defer_then_reschedule_uses_deferred_until(self) -> None:
        """Reschedule without a time falls back to deferred_until."""
        later = T0 + timedelta(hours=3)
        deferred = LifecycleEngine.apply_transition(
            make_task(), const.ACTION_DEFER, "nurse-a", T0, reschedule_time=later
        )
        assert deferred[const.DATA_INSTANCE_STATUS] == const.STATUS_DEFERRED
        assert deferred[const.DATA_INSTANCE_DEFERRED_UNTIL] == later.isoformat()

        rescheduled = LifecycleEngine.apply_transition(
            deferred, const.ACTION_RESCHEDULE, "nurse-a", T0 + timedelta(minutes=1)
        )
        assert rescheduled[const.DATA_INSTANCE_STATUS] == const.STATUS_SCHEDULED
        assert rescheduled[const.DATA_INSTANCE_SCHEDULED_TIME] == later.isoformat()
        assert rescheduled[const.DATA_INSTANCE_DEFERRED_UNTIL] is None
        assert rescheduled[const.DATA_INSTANCE_ACTUAL_START_TIME] is None

    def test_reschedule_without_any_time_raises(self) -> None:
        """A deferral with notes only needs an explicit new time."""
        deferred = LifecycleEngine.apply_transition(
            make_task(),
            const.ACTION_DEFER,
            "nurse-a",
            T0,
            follow_up_notes="resident asleep",
        )
        with pytest.raises(InvalidTransitionError) as exc_info:
            LifecycleEngine.apply_transition(
                deferred, const.ACTION_RESCHEDULE, "nurse-a", T0
            )
        assert exc_info.value.reason == "reschedule_time_required"

    def test_deferred_cannot_start(self) -> None:
        """A deferred item is rescheduled before it can start."""
        deferred = make_task(const.STATUS_DEFERRED)
        with pytest.raises(InvalidTransitionError):
            LifecycleEngine.apply_transition(
                deferred, const.ACTION_START, "nurse-a", T0
            )


# =============================================================================
# TEST: TERMINAL STATES
# =============================================================================


class TestTerminalStates:
    """Transitions out of terminal states fail and leave input untouched."""

    @pytest.mark.parametrize(
        "status", [const.STATUS_COMPLETED, const.STATUS_CANCELLED]
    )
    @pytest.mark.parametrize(
        "action",
        [
            const.ACTION_START,
            const.ACTION_COMPLETE,
            const.ACTION_CANCEL,
            const.ACTION_DEFER,
            const.ACTION_RESCHEDULE,
        ],
    )
    def test_terminal_rejects_every_action(self, status: str, action: str) -> None:
        """No action leaves completed or cancelled."""
        task = make_task(status)
        snapshot = copy.deepcopy(task)
        with pytest.raises(InvalidTransitionError) as exc_info:
            LifecycleEngine.apply_transition(
                task,
                action,
                "nurse-a",
                T0,
                notes="x",
                follow_up_notes="x",
                reschedule_time=T0,
            )
        assert exc_info.value.reason == "terminal_state"
        assert exc_info.value.current_status == status
        assert task == snapshot

    def test_unknown_action_raises(self) -> None:
        """Unknown actions are rejected."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            LifecycleEngine.apply_transition(make_task(), "teleport", "nurse-a", T0)
        assert exc_info.value.reason == "unknown_action"

    def test_successful_transition_returns_new_dict(self) -> None:
        """The input mapping is never modified."""
        task = make_task()
        snapshot = copy.deepcopy(task)
        updated = LifecycleEngine.apply_transition(
            task, const.ACTION_START, "nurse-a", T0
        )
        assert updated is not task
        assert task == snapshot

    def test_allowed_actions(self) -> None:
        """allowed_actions lists what the state machine permits."""
        assert LifecycleEngine.allowed_actions(
            const.STATUS_COMPLETED, const.INSTANCE_KIND_CARE_TASK
        ) == []
        assert set(
            LifecycleEngine.allowed_actions(
                const.STATUS_DEFERRED, const.INSTANCE_KIND_CARE_TASK
            )
        ) == {const.ACTION_CANCEL, const.ACTION_RESCHEDULE}
