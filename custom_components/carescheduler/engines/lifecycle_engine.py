"""Lifecycle Engine - state machine for care task and observation instances.

This engine provides stateless, pure Python functions for:
- Validating a staff action against the current status
- Computing the updated record for a valid action
- Rejecting invalid actions without touching the input record

States:
    scheduled (initial) -> in_progress -> completed (terminal)
    scheduled | in_progress -> cancelled (terminal)
    scheduled | in_progress -> deferred -> scheduled (reschedule)

`overdue` is a read-time view produced by DueEngine. Snapshots from stores
that persist it are accepted and behave like `scheduled`.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
State management (locking, persistence) belongs in ScheduleManager.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

from .. import const
from ..utils.dt_utils import as_utc, dt_to_utc, minutes_between

if TYPE_CHECKING:
    from collections.abc import Mapping


# =============================================================================
# ERRORS
# =============================================================================


class InvalidTransitionError(Exception):
    """Raised when an action is not allowed from the current status.

    Attributes:
        instance_id: The instance the action was attempted on
        current_status: Status at the time of the attempt
        action: The attempted action
        reason: Short machine-readable explanation
    """

    def __init__(
        self,
        instance_id: str | None,
        current_status: str,
        action: str,
        reason: str = "not_allowed",
    ) -> None:
        """Initialize InvalidTransitionError."""
        self.instance_id = instance_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        super().__init__(
            f"Cannot {action} instance {instance_id} from status "
            f"'{current_status}': {reason}"
        )


class InvalidDurationError(Exception):
    """Raised when completion timestamps are inconsistent (end before start).

    Attributes:
        instance_id: The instance being completed
        start: Recorded actual start
        end: Requested actual end
    """

    def __init__(self, instance_id: str | None, start: datetime, end: datetime) -> None:
        """Initialize InvalidDurationError."""
        self.instance_id = instance_id
        self.start = start
        self.end = end
        super().__init__(
            f"Instance {instance_id}: end time {end.isoformat()} is before "
            f"start time {start.isoformat()}"
        )


# =============================================================================
# LIFECYCLE ENGINE
# =============================================================================


class LifecycleEngine:
    """Pure logic engine for instance state transitions.

    All methods are static - no instance state.
    """

    # Statuses each action may leave from, per instance kind
    ALLOWED_FROM: ClassVar[dict[str, dict[str, frozenset[str]]]] = {
        const.INSTANCE_KIND_CARE_TASK: {
            const.ACTION_START: frozenset(
                {const.STATUS_SCHEDULED, const.STATUS_OVERDUE}
            ),
            const.ACTION_COMPLETE: frozenset({const.STATUS_IN_PROGRESS}),
            const.ACTION_CANCEL: frozenset(
                {
                    const.STATUS_SCHEDULED,
                    const.STATUS_OVERDUE,
                    const.STATUS_IN_PROGRESS,
                    const.STATUS_DEFERRED,
                }
            ),
            const.ACTION_DEFER: frozenset(
                {const.STATUS_SCHEDULED, const.STATUS_OVERDUE, const.STATUS_IN_PROGRESS}
            ),
            const.ACTION_RESCHEDULE: frozenset({const.STATUS_DEFERRED}),
        },
        const.INSTANCE_KIND_OBSERVATION: {
            const.ACTION_START: frozenset(
                {const.STATUS_SCHEDULED, const.STATUS_OVERDUE}
            ),
            # A reading is a point in time: completing straight away is allowed
            const.ACTION_COMPLETE: frozenset(
                {const.STATUS_SCHEDULED, const.STATUS_OVERDUE, const.STATUS_IN_PROGRESS}
            ),
            const.ACTION_CANCEL: frozenset(
                {
                    const.STATUS_SCHEDULED,
                    const.STATUS_OVERDUE,
                    const.STATUS_IN_PROGRESS,
                    const.STATUS_DEFERRED,
                }
            ),
            const.ACTION_DEFER: frozenset(
                {const.STATUS_SCHEDULED, const.STATUS_OVERDUE, const.STATUS_IN_PROGRESS}
            ),
            const.ACTION_RESCHEDULE: frozenset({const.STATUS_DEFERRED}),
        },
    }

    TARGET_STATUS: ClassVar[dict[str, str]] = {
        const.ACTION_START: const.STATUS_IN_PROGRESS,
        const.ACTION_COMPLETE: const.STATUS_COMPLETED,
        const.ACTION_CANCEL: const.STATUS_CANCELLED,
        const.ACTION_DEFER: const.STATUS_DEFERRED,
        const.ACTION_RESCHEDULE: const.STATUS_SCHEDULED,
    }

    # =========================================================================
    # QUERIES
    # =========================================================================

    @staticmethod
    def can_apply(status: str, action: str, kind: str) -> bool:
        """Return True if the action is allowed from the status for this kind."""
        allowed = LifecycleEngine.ALLOWED_FROM.get(kind, {}).get(action)
        return allowed is not None and status in allowed

    @staticmethod
    def allowed_actions(status: str, kind: str) -> list[str]:
        """List the actions available from a status (empty for terminal states)."""
        return [
            action
            for action, allowed in LifecycleEngine.ALLOWED_FROM.get(kind, {}).items()
            if status in allowed
        ]

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    @staticmethod
    def apply_transition(
        instance: Mapping[str, Any],
        action: str,
        actor: str | None,
        timestamp: datetime,
        *,
        notes: str | None = None,
        follow_up_notes: str | None = None,
        end_time: datetime | None = None,
        reschedule_time: datetime | None = None,
    ) -> dict[str, Any]:
        """Apply a staff action and return the updated record.

        The input mapping is never modified; callers persist the returned dict.

        Args:
            instance: Current record (DATA_* keys)
            action: One of const.ACTION_* values
            actor: Staff identifier performing the action
            timestamp: When the action happens
            notes: Outcome / cancellation reason
            follow_up_notes: Follow-up notes (defer / complete)
            end_time: Explicit actual end (complete); defaults to timestamp
            reschedule_time: New scheduled time (defer / reschedule)

        Returns:
            New record dict reflecting the transition.

        Raises:
            InvalidTransitionError: Action not allowed or its requirements unmet
            InvalidDurationError: Completion end time earlier than start time
        """
        instance_id = instance.get(const.DATA_INSTANCE_INTERNAL_ID)
        status = str(instance.get(const.DATA_INSTANCE_STATUS, const.STATUS_SCHEDULED))
        kind = str(
            instance.get(const.DATA_INSTANCE_KIND, const.INSTANCE_KIND_CARE_TASK)
        )

        if status in const.TERMINAL_STATUSES:
            raise InvalidTransitionError(instance_id, status, action, "terminal_state")
        if action not in LifecycleEngine.TARGET_STATUS:
            raise InvalidTransitionError(instance_id, status, action, "unknown_action")
        if not LifecycleEngine.can_apply(status, action, kind):
            raise InvalidTransitionError(instance_id, status, action)

        timestamp_utc = as_utc(timestamp)
        updated: dict[str, Any] = dict(instance)

        if action == const.ACTION_START:
            LifecycleEngine._apply_start(updated, actor, timestamp_utc)
        elif action == const.ACTION_COMPLETE:
            LifecycleEngine._apply_complete(
                updated,
                actor,
                end_time if end_time is not None else timestamp_utc,
                notes,
                follow_up_notes,
            )
        elif action == const.ACTION_CANCEL:
            if not notes or not notes.strip():
                raise InvalidTransitionError(
                    instance_id, status, action, "reason_required"
                )
            updated[const.DATA_INSTANCE_OUTCOME_NOTES] = notes.strip()
        elif action == const.ACTION_DEFER:
            has_notes = bool(follow_up_notes and follow_up_notes.strip())
            if not has_notes and reschedule_time is None:
                raise InvalidTransitionError(
                    instance_id, status, action, "follow_up_or_time_required"
                )
            if has_notes:
                updated[const.DATA_INSTANCE_FOLLOW_UP_NOTES] = follow_up_notes.strip()  # type: ignore[union-attr]
            updated[const.DATA_INSTANCE_DEFERRED_UNTIL] = (
                as_utc(reschedule_time).isoformat() if reschedule_time else None
            )
        else:  # reschedule
            new_time = reschedule_time or dt_to_utc(
                instance.get(const.DATA_INSTANCE_DEFERRED_UNTIL)
            )
            if new_time is None:
                raise InvalidTransitionError(
                    instance_id, status, action, "reschedule_time_required"
                )
            updated[const.DATA_INSTANCE_SCHEDULED_TIME] = as_utc(new_time).isoformat()
            updated[const.DATA_INSTANCE_DEFERRED_UNTIL] = None
            updated[const.DATA_INSTANCE_ACTUAL_START_TIME] = None
            # A new occurrence may escalate again
            updated[const.DATA_INSTANCE_LAST_ESCALATED_REASON] = None

        updated[const.DATA_INSTANCE_STATUS] = LifecycleEngine.TARGET_STATUS[action]
        updated[const.DATA_INSTANCE_UPDATED_AT] = timestamp_utc.isoformat()

        const.LOGGER.debug(
            "LifecycleEngine: %s %s -> %s (action=%s, actor=%s)",
            kind,
            instance_id,
            updated[const.DATA_INSTANCE_STATUS],
            action,
            actor,
        )
        return updated

    # =========================================================================
    # ACTION HELPERS (mutate the working copy only)
    # =========================================================================

    @staticmethod
    def _apply_start(
        updated: dict[str, Any], actor: str | None, timestamp_utc: datetime
    ) -> None:
        """Record the start time and assign the actor if nobody is assigned."""
        updated[const.DATA_INSTANCE_ACTUAL_START_TIME] = timestamp_utc.isoformat()
        if actor and not updated.get(const.DATA_INSTANCE_ASSIGNED_STAFF_ID):
            updated[const.DATA_INSTANCE_ASSIGNED_STAFF_ID] = actor

    @staticmethod
    def _apply_complete(
        updated: dict[str, Any],
        actor: str | None,
        end_time: datetime,
        notes: str | None,
        follow_up_notes: str | None,
    ) -> None:
        """Record completion fields, validating end >= start."""
        instance_id = updated.get(const.DATA_INSTANCE_INTERNAL_ID)
        end_utc = as_utc(end_time)
        start_utc = dt_to_utc(updated.get(const.DATA_INSTANCE_ACTUAL_START_TIME))

        if start_utc is not None and end_utc < start_utc:
            raise InvalidDurationError(instance_id, start_utc, end_utc)

        if updated.get(const.DATA_INSTANCE_KIND) == const.INSTANCE_KIND_OBSERVATION:
            updated[const.DATA_OBSERVATION_ACTUAL_TIME] = end_utc.isoformat()
        else:
            updated[const.DATA_TASK_ACTUAL_END_TIME] = end_utc.isoformat()
            if start_utc is not None:
                updated[const.DATA_TASK_ACTUAL_DURATION] = minutes_between(
                    start_utc, end_utc
                )

        updated[const.DATA_INSTANCE_COMPLETED_BY] = actor
        if actor and not updated.get(const.DATA_INSTANCE_ASSIGNED_STAFF_ID):
            updated[const.DATA_INSTANCE_ASSIGNED_STAFF_ID] = actor
        if notes:
            updated[const.DATA_INSTANCE_OUTCOME_NOTES] = notes.strip()
        if follow_up_notes and follow_up_notes.strip():
            updated[const.DATA_INSTANCE_FOLLOW_UP_NOTES] = follow_up_notes.strip()
