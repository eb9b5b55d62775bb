"""Record building and validation helpers.

This module is the SINGLE SOURCE OF TRUTH for:
- Record field defaults
- Business rule validation of incoming fields
- Complete record structure building

### Build Functions
Each record type has a `build_<record>()` function that:
- Takes user_input with DATA_* keys (service fields are aligned with them)
- Generates internal_id (UUID) for new records
- Sets timestamps (created_at, updated_at)
- Applies field defaults
- Returns a complete record dict ready for storage

Consumers:
- managers/schedule_manager.py (record creation)
- services.py (indirectly, through ScheduleManager)

See Also:
- type_defs.py: TypedDict definitions for type safety
"""

from __future__ import annotations

from typing import Any
import uuid

from . import const
from .engines.recurrence_engine import RecurrenceEngine
from .type_defs import CareTaskData, ObservationData, ScheduleDayData
from .utils.dt_utils import dt_now_iso, dt_parse_date, dt_to_utc

# ==============================================================================
# EXCEPTIONS
# ==============================================================================


class EntityValidationError(Exception):
    """Validation error with field-specific information.

    Raised when business rule validation fails while building a record. The
    field attribute lets services report which input was rejected.

    Attributes:
        field: The DATA_* key of the field that failed
        translation_key: The TRANS_KEY_* constant for the error message
        placeholders: Optional dict for translation string placeholders

    Example:
        raise EntityValidationError(
            field=const.DATA_TASK_ESTIMATED_DURATION,
            translation_key=const.TRANS_KEY_ERROR_INVALID_DURATION_RANGE,
            placeholders={"value": "600"},
        )
    """

    def __init__(
        self,
        field: str,
        translation_key: str,
        placeholders: dict[str, str] | None = None,
    ) -> None:
        """Initialize EntityValidationError."""
        self.field = field
        self.translation_key = translation_key
        self.placeholders = placeholders or {}
        super().__init__(translation_key)


# ==============================================================================
# FIELD HELPERS
# ==============================================================================


def _require_choice(
    value: Any, options: list[str], field: str, translation_key: str
) -> str:
    """Return value if it is one of options, else raise EntityValidationError."""
    if value not in options:
        raise EntityValidationError(
            field=field,
            translation_key=translation_key,
            placeholders={"value": str(value)},
        )
    return str(value)


def _optional_text(value: Any) -> str | None:
    """Strip a free-text field, mapping blanks to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _scheduled_time_iso(value: Any) -> str:
    """Normalize a scheduled time to a UTC ISO string."""
    scheduled = dt_to_utc(value) if value else None
    if scheduled is None:
        raise EntityValidationError(
            field=const.DATA_INSTANCE_SCHEDULED_TIME,
            translation_key=const.TRANS_KEY_ERROR_INVALID_SCHEDULED_TIME,
            placeholders={"value": str(value)},
        )
    return scheduled.isoformat()


def _instance_base(user_input: dict[str, Any], kind: str) -> dict[str, Any]:
    """Build the fields shared by care tasks and observations."""
    day_id = user_input.get(const.DATA_INSTANCE_SCHEDULE_DAY_ID)
    if not day_id:
        raise EntityValidationError(
            field=const.DATA_INSTANCE_SCHEDULE_DAY_ID,
            translation_key=const.TRANS_KEY_ERROR_NOT_FOUND,
            placeholders={"entity": "schedule_day", "id": ""},
        )

    priority = _require_choice(
        user_input.get(const.DATA_INSTANCE_PRIORITY) or const.DEFAULT_PRIORITY,
        const.PRIORITY_OPTIONS,
        const.DATA_INSTANCE_PRIORITY,
        const.TRANS_KEY_ERROR_INVALID_PRIORITY,
    )
    now_iso = dt_now_iso()

    return {
        const.DATA_INSTANCE_INTERNAL_ID: str(uuid.uuid4()),
        const.DATA_INSTANCE_KIND: kind,
        const.DATA_INSTANCE_SCHEDULE_DAY_ID: str(day_id),
        const.DATA_INSTANCE_RESIDENT_ID: _optional_text(
            user_input.get(const.DATA_INSTANCE_RESIDENT_ID)
        ),
        const.DATA_INSTANCE_PRIORITY: priority,
        const.DATA_INSTANCE_SCHEDULED_TIME: _scheduled_time_iso(
            user_input.get(const.DATA_INSTANCE_SCHEDULED_TIME)
        ),
        const.DATA_INSTANCE_ASSIGNED_STAFF_ID: _optional_text(
            user_input.get(const.DATA_INSTANCE_ASSIGNED_STAFF_ID)
        ),
        const.DATA_INSTANCE_STATUS: const.STATUS_SCHEDULED,
        const.DATA_INSTANCE_COMPLETED_BY: None,
        const.DATA_INSTANCE_OUTCOME_NOTES: None,
        const.DATA_INSTANCE_FOLLOW_UP_REQUIRED: bool(
            user_input.get(const.DATA_INSTANCE_FOLLOW_UP_REQUIRED, False)
        ),
        const.DATA_INSTANCE_FOLLOW_UP_NOTES: None,
        const.DATA_INSTANCE_ACTUAL_START_TIME: None,
        const.DATA_INSTANCE_DEFERRED_UNTIL: None,
        const.DATA_INSTANCE_LAST_ESCALATED_REASON: None,
        const.DATA_INSTANCE_LAST_ESCALATED_AT: None,
        const.DATA_INSTANCE_CREATED_AT: now_iso,
        const.DATA_INSTANCE_UPDATED_AT: now_iso,
    }


# ==============================================================================
# SCHEDULE DAYS
# ==============================================================================


def build_schedule_day(user_input: dict[str, Any]) -> ScheduleDayData:
    """Build a new schedule day record.

    Args:
        user_input: Data with DATA_DAY_* keys (date, department_id, optional
            staff_capacity_minutes)

    Returns:
        Complete ScheduleDayData with zeroed counters and active status

    Raises:
        EntityValidationError: Missing department or unparseable date
    """
    department_id = _optional_text(user_input.get(const.DATA_DAY_DEPARTMENT_ID))
    if not department_id:
        raise EntityValidationError(
            field=const.DATA_DAY_DEPARTMENT_ID,
            translation_key=const.TRANS_KEY_ERROR_INVALID_DEPARTMENT,
        )

    raw_date = user_input.get(const.DATA_DAY_DATE)
    day = dt_parse_date(raw_date)
    if day is None:
        raise EntityValidationError(
            field=const.DATA_DAY_DATE,
            translation_key=const.TRANS_KEY_ERROR_INVALID_DATE,
            placeholders={"value": str(raw_date)},
        )

    capacity = user_input.get(const.DATA_DAY_STAFF_CAPACITY_MINUTES)
    now_iso = dt_now_iso()

    return ScheduleDayData(
        internal_id=str(uuid.uuid4()),
        date=day.isoformat(),
        department_id=department_id,
        total_tasks=0,
        total_observations=0,
        estimated_workload=0.0,
        optimization_applied=False,
        optimization_timestamp=None,
        status=const.DAY_STATUS_ACTIVE,
        staff_capacity_minutes=int(capacity) if capacity is not None else None,
        created_at=now_iso,
        updated_at=now_iso,
        archived_at=None,
    )


# ==============================================================================
# CARE TASKS
# ==============================================================================


def build_care_task(user_input: dict[str, Any]) -> CareTaskData:
    """Build a new care task record in `scheduled` status.

    Raises:
        EntityValidationError: Unknown task type or priority, bad scheduled
            time, or estimated duration outside 1-480 minutes
    """
    record = _instance_base(user_input, const.INSTANCE_KIND_CARE_TASK)

    record[const.DATA_TASK_TYPE] = _require_choice(
        user_input.get(const.DATA_TASK_TYPE),
        const.TASK_TYPE_OPTIONS,
        const.DATA_TASK_TYPE,
        const.TRANS_KEY_ERROR_INVALID_TASK_TYPE,
    )

    raw_duration = user_input.get(
        const.DATA_TASK_ESTIMATED_DURATION, const.DEFAULT_ESTIMATED_DURATION
    )
    try:
        duration = int(raw_duration)
    except (TypeError, ValueError):
        duration = -1
    if not (
        const.MIN_ESTIMATED_DURATION <= duration <= const.MAX_ESTIMATED_DURATION
    ):
        raise EntityValidationError(
            field=const.DATA_TASK_ESTIMATED_DURATION,
            translation_key=const.TRANS_KEY_ERROR_INVALID_DURATION_RANGE,
            placeholders={
                "value": str(raw_duration),
                "min": str(const.MIN_ESTIMATED_DURATION),
                "max": str(const.MAX_ESTIMATED_DURATION),
            },
        )

    record[const.DATA_TASK_ESTIMATED_DURATION] = duration
    record[const.DATA_TASK_ACTUAL_END_TIME] = None
    record[const.DATA_TASK_ACTUAL_DURATION] = None
    return CareTaskData(**record)  # type: ignore[typeddict-item]


# ==============================================================================
# OBSERVATIONS
# ==============================================================================


def build_observation(user_input: dict[str, Any]) -> ObservationData:
    """Build a new observation record in `scheduled` status.

    Unmapped frequencies are rejected here so they never reach storage.

    Raises:
        EntityValidationError: Unknown observation type, frequency or
            priority, or bad scheduled time
    """
    record = _instance_base(user_input, const.INSTANCE_KIND_OBSERVATION)

    record[const.DATA_OBSERVATION_TYPE] = _require_choice(
        user_input.get(const.DATA_OBSERVATION_TYPE),
        const.OBSERVATION_TYPE_OPTIONS,
        const.DATA_OBSERVATION_TYPE,
        const.TRANS_KEY_ERROR_INVALID_OBSERVATION_TYPE,
    )

    frequency = user_input.get(const.DATA_OBSERVATION_FREQUENCY)
    if not RecurrenceEngine.is_known(str(frequency)):
        raise EntityValidationError(
            field=const.DATA_OBSERVATION_FREQUENCY,
            translation_key=const.TRANS_KEY_ERROR_UNKNOWN_FREQUENCY,
            placeholders={"value": str(frequency)},
        )
    record[const.DATA_OBSERVATION_FREQUENCY] = str(frequency)
    record[const.DATA_OBSERVATION_ACTUAL_TIME] = None
    return ObservationData(**record)  # type: ignore[typeddict-item]
