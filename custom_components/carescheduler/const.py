# File: const.py
"""Constants for the CareScheduler integration.

This file centralizes configuration keys, defaults, data keys, lifecycle
states, enumerations, event names and translation keys for consistency across
the integration.
"""

import logging
from typing import Final

from homeassistant.const import Platform

# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
CARESCHEDULER_TITLE = "CareScheduler"

DOMAIN = "carescheduler"

LOGGER = logging.getLogger(__package__)

# No entity platforms: dashboards consume services and bus events
PLATFORMS: list[Platform] = []

# Coordinator
COORDINATOR = "coordinator"
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORE = "store"
STORAGE_KEY = "carescheduler_data"
STORAGE_VERSION = 1
SCHEMA_VERSION = 1

# ------------------------------------------------------------------------------------------------
# Configuration Keys / Defaults
# ------------------------------------------------------------------------------------------------
CONF_NAME = "name"
CONF_SWEEP_INTERVAL = "sweep_interval"
CONF_DEFAULT_CAPACITY_MINUTES = "default_capacity_minutes"
CONF_DUE_WINDOW_MINUTES = "due_window_minutes"
CONF_NOTIFY_SERVICE = "notify_service"

DEFAULT_NAME = CARESCHEDULER_TITLE
DEFAULT_SWEEP_INTERVAL = 5  # minutes
DEFAULT_CAPACITY_MINUTES = 2400  # five staff members x 8 hours
DEFAULT_DUE_WINDOW_MINUTES = 15
DEFAULT_NOTIFY_SERVICE = ""

MIN_SWEEP_INTERVAL = 1
MAX_SWEEP_INTERVAL = 60

CONFIG_FLOW_STEP_USER = "user"
OPTIONS_FLOW_STEP_INIT = "init"

# ------------------------------------------------------------------------------------------------
# Storage Buckets
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"
DATA_META_LAST_SWEEP = "last_sweep"

DATA_SCHEDULE_DAYS = "schedule_days"
DATA_CARE_TASKS = "care_tasks"
DATA_OBSERVATIONS = "observations"

# ------------------------------------------------------------------------------------------------
# Schedule Day Fields
# ------------------------------------------------------------------------------------------------
DATA_DAY_INTERNAL_ID = "internal_id"
DATA_DAY_DATE = "date"
DATA_DAY_DEPARTMENT_ID = "department_id"
DATA_DAY_TOTAL_TASKS = "total_tasks"
DATA_DAY_TOTAL_OBSERVATIONS = "total_observations"
DATA_DAY_ESTIMATED_WORKLOAD = "estimated_workload"
DATA_DAY_OPTIMIZATION_APPLIED = "optimization_applied"
DATA_DAY_OPTIMIZATION_TIMESTAMP = "optimization_timestamp"
DATA_DAY_STATUS = "status"
DATA_DAY_STAFF_CAPACITY_MINUTES = "staff_capacity_minutes"
DATA_DAY_CREATED_AT = "created_at"
DATA_DAY_UPDATED_AT = "updated_at"
DATA_DAY_ARCHIVED_AT = "archived_at"

DAY_STATUS_ACTIVE = "active"
DAY_STATUS_INACTIVE = "inactive"

# ------------------------------------------------------------------------------------------------
# Instance Fields (shared by care tasks and observations)
# ------------------------------------------------------------------------------------------------
DATA_INSTANCE_INTERNAL_ID = "internal_id"
DATA_INSTANCE_KIND = "kind"
DATA_INSTANCE_SCHEDULE_DAY_ID = "schedule_day_id"
DATA_INSTANCE_RESIDENT_ID = "resident_id"
DATA_INSTANCE_PRIORITY = "priority"
DATA_INSTANCE_SCHEDULED_TIME = "scheduled_time"
DATA_INSTANCE_ASSIGNED_STAFF_ID = "assigned_staff_id"
DATA_INSTANCE_STATUS = "status"
DATA_INSTANCE_COMPLETED_BY = "completed_by"
DATA_INSTANCE_OUTCOME_NOTES = "outcome_notes"
DATA_INSTANCE_FOLLOW_UP_REQUIRED = "follow_up_required"
DATA_INSTANCE_FOLLOW_UP_NOTES = "follow_up_notes"
DATA_INSTANCE_ACTUAL_START_TIME = "actual_start_time"
DATA_INSTANCE_DEFERRED_UNTIL = "deferred_until"
DATA_INSTANCE_LAST_ESCALATED_REASON = "last_escalated_reason"
DATA_INSTANCE_LAST_ESCALATED_AT = "last_escalated_at"
DATA_INSTANCE_CREATED_AT = "created_at"
DATA_INSTANCE_UPDATED_AT = "updated_at"

# Care task specific
DATA_TASK_TYPE = "task_type"
DATA_TASK_ESTIMATED_DURATION = "estimated_duration"
DATA_TASK_ACTUAL_END_TIME = "actual_end_time"
DATA_TASK_ACTUAL_DURATION = "actual_duration"

# Observation specific
DATA_OBSERVATION_TYPE = "observation_type"
DATA_OBSERVATION_FREQUENCY = "frequency"
DATA_OBSERVATION_ACTUAL_TIME = "actual_time"

INSTANCE_KIND_CARE_TASK = "care_task"
INSTANCE_KIND_OBSERVATION = "observation"

# ------------------------------------------------------------------------------------------------
# Lifecycle States / Actions
# ------------------------------------------------------------------------------------------------
STATUS_SCHEDULED = "scheduled"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_OVERDUE = "overdue"
STATUS_CANCELLED = "cancelled"
STATUS_DEFERRED = "deferred"

TERMINAL_STATUSES: Final[frozenset[str]] = frozenset(
    {STATUS_COMPLETED, STATUS_CANCELLED}
)
ALL_STATUSES: Final[frozenset[str]] = frozenset(
    {
        STATUS_SCHEDULED,
        STATUS_IN_PROGRESS,
        STATUS_COMPLETED,
        STATUS_OVERDUE,
        STATUS_CANCELLED,
        STATUS_DEFERRED,
    }
)

ACTION_START = "start"
ACTION_COMPLETE = "complete"
ACTION_CANCEL = "cancel"
ACTION_DEFER = "defer"
ACTION_RESCHEDULE = "reschedule"

# Due status (read-time view)
DUE_STATUS_ON_TIME = "on_time"
DUE_STATUS_DUE = "due"
DUE_STATUS_OVERDUE = "overdue"
DUE_STATUS_CLOSED = "closed"

# ------------------------------------------------------------------------------------------------
# Priorities
# ------------------------------------------------------------------------------------------------
PRIORITY_LOW = "low"
PRIORITY_MEDIUM = "medium"
PRIORITY_HIGH = "high"
PRIORITY_CRITICAL = "critical"
PRIORITY_URGENT = "urgent"

PRIORITY_OPTIONS = [
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    PRIORITY_HIGH,
    PRIORITY_CRITICAL,
    PRIORITY_URGENT,
]
ESCALATING_PRIORITIES: Final[frozenset[str]] = frozenset(
    {PRIORITY_CRITICAL, PRIORITY_URGENT}
)
DEFAULT_PRIORITY = PRIORITY_MEDIUM

# ------------------------------------------------------------------------------------------------
# Care Task Types
# ------------------------------------------------------------------------------------------------
TASK_TYPE_PERSONAL_CARE = "personal_care"
TASK_TYPE_MEDICATION_ADMINISTRATION = "medication_administration"
TASK_TYPE_MOBILITY_ASSISTANCE = "mobility_assistance"
TASK_TYPE_NUTRITION_SUPPORT = "nutrition_support"
TASK_TYPE_HYGIENE = "hygiene"
TASK_TYPE_WOUND_CARE = "wound_care"
TASK_TYPE_REPOSITIONING = "repositioning"
TASK_TYPE_SOCIAL_ENGAGEMENT = "social_engagement"
TASK_TYPE_THERAPY = "therapy"
TASK_TYPE_DOCUMENTATION = "documentation"
TASK_TYPE_OTHER = "other"

TASK_TYPE_OPTIONS = [
    TASK_TYPE_PERSONAL_CARE,
    TASK_TYPE_MEDICATION_ADMINISTRATION,
    TASK_TYPE_MOBILITY_ASSISTANCE,
    TASK_TYPE_NUTRITION_SUPPORT,
    TASK_TYPE_HYGIENE,
    TASK_TYPE_WOUND_CARE,
    TASK_TYPE_REPOSITIONING,
    TASK_TYPE_SOCIAL_ENGAGEMENT,
    TASK_TYPE_THERAPY,
    TASK_TYPE_DOCUMENTATION,
    TASK_TYPE_OTHER,
]

MIN_ESTIMATED_DURATION = 1
MAX_ESTIMATED_DURATION = 480
DEFAULT_ESTIMATED_DURATION = 15

# ------------------------------------------------------------------------------------------------
# Observation Types
# ------------------------------------------------------------------------------------------------
OBSERVATION_TYPE_VITAL_SIGNS = "vital_signs"
OBSERVATION_TYPE_BEHAVIORAL = "behavioral"
OBSERVATION_TYPE_PAIN_ASSESSMENT = "pain_assessment"
OBSERVATION_TYPE_SAFETY_CHECK = "safety_check"
OBSERVATION_TYPE_FLUID_BALANCE = "fluid_balance"
OBSERVATION_TYPE_SKIN_INTEGRITY = "skin_integrity"
OBSERVATION_TYPE_NEUROLOGICAL = "neurological"
OBSERVATION_TYPE_NUTRITION_INTAKE = "nutrition_intake"
OBSERVATION_TYPE_MOOD = "mood"
OBSERVATION_TYPE_SLEEP = "sleep"

OBSERVATION_TYPE_OPTIONS = [
    OBSERVATION_TYPE_VITAL_SIGNS,
    OBSERVATION_TYPE_BEHAVIORAL,
    OBSERVATION_TYPE_PAIN_ASSESSMENT,
    OBSERVATION_TYPE_SAFETY_CHECK,
    OBSERVATION_TYPE_FLUID_BALANCE,
    OBSERVATION_TYPE_SKIN_INTEGRITY,
    OBSERVATION_TYPE_NEUROLOGICAL,
    OBSERVATION_TYPE_NUTRITION_INTAKE,
    OBSERVATION_TYPE_MOOD,
    OBSERVATION_TYPE_SLEEP,
]

# Observations whose missed recurrences are a compliance concern
CLINICALLY_SENSITIVE_OBSERVATIONS: Final[frozenset[str]] = frozenset(
    {
        OBSERVATION_TYPE_VITAL_SIGNS,
        OBSERVATION_TYPE_PAIN_ASSESSMENT,
        OBSERVATION_TYPE_SAFETY_CHECK,
        OBSERVATION_TYPE_NEUROLOGICAL,
        OBSERVATION_TYPE_FLUID_BALANCE,
    }
)

# ------------------------------------------------------------------------------------------------
# Observation Frequencies
# ------------------------------------------------------------------------------------------------
FREQUENCY_HOURLY = "hourly"
FREQUENCY_TWO_HOURLY = "two_hourly"
FREQUENCY_FOUR_HOURLY = "four_hourly"
FREQUENCY_TWICE_DAILY = "twice_daily"
FREQUENCY_DAILY = "daily"
FREQUENCY_TWICE_WEEKLY = "twice_weekly"
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_AS_NEEDED = "as_needed"
FREQUENCY_CONTINUOUS = "continuous"

# Fixed interval table (hours)
FREQUENCY_INTERVAL_HOURS: Final[dict[str, int]] = {
    FREQUENCY_HOURLY: 1,
    FREQUENCY_TWO_HOURLY: 2,
    FREQUENCY_FOUR_HOURLY: 4,
    FREQUENCY_TWICE_DAILY: 12,
    FREQUENCY_DAILY: 24,
    FREQUENCY_TWICE_WEEKLY: 84,
    FREQUENCY_WEEKLY: 168,
}

# No deterministic next occurrence: scheduled by clinical judgment
APERIODIC_FREQUENCIES: Final[frozenset[str]] = frozenset(
    {FREQUENCY_AS_NEEDED, FREQUENCY_CONTINUOUS}
)

FREQUENCY_OPTIONS = [*FREQUENCY_INTERVAL_HOURS, *sorted(APERIODIC_FREQUENCIES)]

# Safety limit for occurrence generation
MAX_OCCURRENCE_ITERATIONS = 500

# ------------------------------------------------------------------------------------------------
# Escalation
# ------------------------------------------------------------------------------------------------
ESCALATION_REASON_CRITICAL_OVERDUE = "critical-overdue"
ESCALATION_REASON_MISSING_FOLLOWUP = "missing-followup"
ESCALATION_REASON_MISSED_RECURRENCE = "missed-recurrence"
ESCALATION_REASON_MANUAL = "manual-escalation"

EVENT_ESCALATION = f"{DOMAIN}_escalation"

ATTR_INSTANCE_ID = "instance_id"
ATTR_REASON = "reason"
ATTR_PRIORITY = "priority"
ATTR_KIND = "kind"
ATTR_SCHEDULE_DAY_ID = "schedule_day_id"
ATTR_OVERDUE_MINUTES = "overdue_minutes"
ATTR_MISSED_OCCURRENCES = "missed_occurrences"

NOTIFY_DOMAIN = "notify"
NOTIFY_TITLE = "title"
NOTIFY_MESSAGE = "message"
NOTIFY_DATA = "data"

# ------------------------------------------------------------------------------------------------
# Dispatcher Signals (suffixes, scoped per config entry)
# ------------------------------------------------------------------------------------------------
SIGNAL_PREFIX = DOMAIN
SIGNAL_SUFFIX_INSTANCE_CREATED = "instance_created"
SIGNAL_SUFFIX_INSTANCE_TRANSITIONED = "instance_transitioned"
SIGNAL_SUFFIX_ESCALATION_RAISED = "escalation_raised"
SIGNAL_SUFFIX_DAY_ARCHIVED = "day_archived"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_CREATE_SCHEDULE_DAY = "create_schedule_day"
SERVICE_SET_STAFF_CAPACITY = "set_staff_capacity"
SERVICE_CREATE_CARE_TASK = "create_care_task"
SERVICE_CREATE_OBSERVATION = "create_observation"
SERVICE_START_INSTANCE = "start_instance"
SERVICE_COMPLETE_INSTANCE = "complete_instance"
SERVICE_CANCEL_INSTANCE = "cancel_instance"
SERVICE_DEFER_INSTANCE = "defer_instance"
SERVICE_RESCHEDULE_INSTANCE = "reschedule_instance"
SERVICE_ESCALATE_INSTANCE = "escalate_instance"
SERVICE_SUMMARIZE_DAY = "summarize_day"
SERVICE_RUN_SWEEP = "run_sweep"

FIELD_DATE = "date"
FIELD_DEPARTMENT_ID = "department_id"
FIELD_SCHEDULE_DAY_ID = "schedule_day_id"
FIELD_INSTANCE_ID = "instance_id"
FIELD_CAPACITY_MINUTES = "capacity_minutes"
FIELD_ACTOR = "actor"
FIELD_TIMESTAMP = "timestamp"
FIELD_END_TIME = "end_time"
FIELD_NOTES = "notes"
FIELD_FOLLOW_UP_NOTES = "follow_up_notes"
FIELD_RESCHEDULE_TIME = "reschedule_time"
FIELD_EXPECTED_STATUS = "expected_status"
FIELD_SCHEDULED_TIME = DATA_INSTANCE_SCHEDULED_TIME
FIELD_PRIORITY = DATA_INSTANCE_PRIORITY
FIELD_RESIDENT_ID = DATA_INSTANCE_RESIDENT_ID
FIELD_ASSIGNED_STAFF_ID = DATA_INSTANCE_ASSIGNED_STAFF_ID
FIELD_FOLLOW_UP_REQUIRED = DATA_INSTANCE_FOLLOW_UP_REQUIRED
FIELD_TASK_TYPE = DATA_TASK_TYPE
FIELD_ESTIMATED_DURATION = DATA_TASK_ESTIMATED_DURATION
FIELD_OBSERVATION_TYPE = DATA_OBSERVATION_TYPE
FIELD_FREQUENCY = DATA_OBSERVATION_FREQUENCY

# ------------------------------------------------------------------------------------------------
# Translation Keys (errors)
# ------------------------------------------------------------------------------------------------
TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
TRANS_KEY_ERROR_NOT_FOUND = "not_found"
TRANS_KEY_ERROR_NO_ENTRY = "no_entry"
TRANS_KEY_ERROR_INVALID_TRANSITION = "invalid_transition"
TRANS_KEY_ERROR_INVALID_DURATION = "invalid_duration"
TRANS_KEY_ERROR_UNKNOWN_FREQUENCY = "unknown_frequency"
TRANS_KEY_ERROR_DAY_INACTIVE = "day_inactive"
TRANS_KEY_ERROR_INVALID_DEPARTMENT = "invalid_department"
TRANS_KEY_ERROR_INVALID_DATE = "invalid_date"
TRANS_KEY_ERROR_INVALID_SCHEDULED_TIME = "invalid_scheduled_time"
TRANS_KEY_ERROR_INVALID_DURATION_RANGE = "invalid_duration_range"
TRANS_KEY_ERROR_INVALID_TASK_TYPE = "invalid_task_type"
TRANS_KEY_ERROR_INVALID_OBSERVATION_TYPE = "invalid_observation_type"
TRANS_KEY_ERROR_INVALID_PRIORITY = "invalid_priority"
TRANS_KEY_ERROR_OPTIMIZATION_FAILED = "optimization_failed"
TRANS_KEY_ERROR_INVALID_SWEEP_INTERVAL = "invalid_sweep_interval"
TRANS_KEY_ERROR_INVALID_NOTIFY_SERVICE = "invalid_notify_service"
