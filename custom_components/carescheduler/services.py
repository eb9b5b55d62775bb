# File: services.py
"""Defines custom services for the CareScheduler integration.

These services let scripts, automations and external callers create
schedule records, act on them, and read day summaries and sweep results.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv
import voluptuous as vol

from . import const

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .coordinator import CareSchedulerCoordinator

# --- Service Schemas ---
CREATE_SCHEDULE_DAY_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_DEPARTMENT_ID): cv.string,
        vol.Required(const.FIELD_DATE): cv.date,
        vol.Optional(const.FIELD_CAPACITY_MINUTES): vol.All(
            vol.Coerce(int), vol.Range(min=0)
        ),
    }
)

SET_STAFF_CAPACITY_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SCHEDULE_DAY_ID): cv.string,
        vol.Required(const.FIELD_CAPACITY_MINUTES): vol.All(
            vol.Coerce(int), vol.Range(min=0)
        ),
    }
)

_INSTANCE_COMMON_FIELDS = {
    vol.Required(const.FIELD_SCHEDULE_DAY_ID): cv.string,
    vol.Required(const.FIELD_SCHEDULED_TIME): cv.datetime,
    vol.Optional(const.FIELD_PRIORITY, default=const.DEFAULT_PRIORITY): vol.In(
        const.PRIORITY_OPTIONS
    ),
    vol.Optional(const.FIELD_RESIDENT_ID): cv.string,
    vol.Optional(const.FIELD_ASSIGNED_STAFF_ID): cv.string,
    vol.Optional(const.FIELD_FOLLOW_UP_REQUIRED, default=False): cv.boolean,
}

CREATE_CARE_TASK_SCHEMA = vol.Schema(
    {
        **_INSTANCE_COMMON_FIELDS,
        vol.Required(const.FIELD_TASK_TYPE): vol.In(const.TASK_TYPE_OPTIONS),
        vol.Optional(
            const.FIELD_ESTIMATED_DURATION, default=const.DEFAULT_ESTIMATED_DURATION
        ): vol.All(
            vol.Coerce(int),
            vol.Range(
                min=const.MIN_ESTIMATED_DURATION, max=const.MAX_ESTIMATED_DURATION
            ),
        ),
    }
)

CREATE_OBSERVATION_SCHEMA = vol.Schema(
    {
        **_INSTANCE_COMMON_FIELDS,
        vol.Required(const.FIELD_OBSERVATION_TYPE): vol.In(
            const.OBSERVATION_TYPE_OPTIONS
        ),
        vol.Required(const.FIELD_FREQUENCY): vol.In(const.FREQUENCY_OPTIONS),
    }
)

_TRANSITION_COMMON_FIELDS = {
    vol.Required(const.FIELD_INSTANCE_ID): cv.string,
    vol.Optional(const.FIELD_ACTOR): cv.string,
    vol.Optional(const.FIELD_TIMESTAMP): cv.datetime,
    vol.Optional(const.FIELD_EXPECTED_STATUS): vol.In(sorted(const.ALL_STATUSES)),
}

START_INSTANCE_SCHEMA = vol.Schema(_TRANSITION_COMMON_FIELDS)

COMPLETE_INSTANCE_SCHEMA = vol.Schema(
    {
        **_TRANSITION_COMMON_FIELDS,
        vol.Optional(const.FIELD_END_TIME): cv.datetime,
        vol.Optional(const.FIELD_NOTES): cv.string,
        vol.Optional(const.FIELD_FOLLOW_UP_NOTES): cv.string,
    }
)

CANCEL_INSTANCE_SCHEMA = vol.Schema(
    {
        **_TRANSITION_COMMON_FIELDS,
        vol.Required(const.FIELD_NOTES): cv.string,
    }
)

DEFER_INSTANCE_SCHEMA = vol.Schema(
    {
        **_TRANSITION_COMMON_FIELDS,
        vol.Optional(const.FIELD_FOLLOW_UP_NOTES): cv.string,
        vol.Optional(const.FIELD_RESCHEDULE_TIME): cv.datetime,
    }
)

RESCHEDULE_INSTANCE_SCHEMA = vol.Schema(
    {
        **_TRANSITION_COMMON_FIELDS,
        vol.Optional(const.FIELD_RESCHEDULE_TIME): cv.datetime,
    }
)

ESCALATE_INSTANCE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_INSTANCE_ID): cv.string,
        vol.Optional(const.FIELD_ACTOR): cv.string,
    }
)

SUMMARIZE_DAY_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SCHEDULE_DAY_ID): cv.string,
    }
)

RUN_SWEEP_SCHEMA = vol.Schema({})

# Transition services: service name -> (lifecycle action, schema)
TRANSITION_SERVICES: dict[str, tuple[str, vol.Schema]] = {
    const.SERVICE_START_INSTANCE: (const.ACTION_START, START_INSTANCE_SCHEMA),
    const.SERVICE_COMPLETE_INSTANCE: (const.ACTION_COMPLETE, COMPLETE_INSTANCE_SCHEMA),
    const.SERVICE_CANCEL_INSTANCE: (const.ACTION_CANCEL, CANCEL_INSTANCE_SCHEMA),
    const.SERVICE_DEFER_INSTANCE: (const.ACTION_DEFER, DEFER_INSTANCE_SCHEMA),
    const.SERVICE_RESCHEDULE_INSTANCE: (
        const.ACTION_RESCHEDULE,
        RESCHEDULE_INSTANCE_SCHEMA,
    ),
}

ALL_SERVICES = [
    const.SERVICE_CREATE_SCHEDULE_DAY,
    const.SERVICE_SET_STAFF_CAPACITY,
    const.SERVICE_CREATE_CARE_TASK,
    const.SERVICE_CREATE_OBSERVATION,
    *TRANSITION_SERVICES,
    const.SERVICE_ESCALATE_INSTANCE,
    const.SERVICE_SUMMARIZE_DAY,
    const.SERVICE_RUN_SWEEP,
]


def _get_coordinator(hass: HomeAssistant) -> CareSchedulerCoordinator:
    """Return the coordinator of the (single) loaded config entry."""
    entries = hass.data.get(const.DOMAIN, {})
    for entry_data in entries.values():
        if isinstance(entry_data, dict) and const.COORDINATOR in entry_data:
            return entry_data[const.COORDINATOR]
    raise HomeAssistantError(
        translation_domain=const.DOMAIN,
        translation_key=const.TRANS_KEY_ERROR_NO_ENTRY,
    )


def _actor_for(call: ServiceCall) -> str | None:
    """Explicit actor field, else the calling Home Assistant user."""
    actor = call.data.get(const.FIELD_ACTOR)
    if actor:
        return str(actor)
    user_id = call.context.user_id
    return f"user:{user_id}" if user_id else None


def async_setup_services(hass: HomeAssistant) -> None:
    """Register CareScheduler services."""

    async def handle_create_schedule_day(call: ServiceCall) -> ServiceResponse:
        """Create (or look up) the schedule day for a department and date."""
        coordinator = _get_coordinator(hass)
        day_id = await coordinator.schedule_manager.async_create_schedule_day(
            call.data[const.FIELD_DEPARTMENT_ID],
            call.data[const.FIELD_DATE],
            call.data.get(const.FIELD_CAPACITY_MINUTES),
        )
        return {const.FIELD_SCHEDULE_DAY_ID: day_id}

    async def handle_set_staff_capacity(call: ServiceCall) -> ServiceResponse:
        """Set the staff-minutes of a day and return the new summary."""
        coordinator = _get_coordinator(hass)
        summary = await coordinator.schedule_manager.async_set_staff_capacity(
            call.data[const.FIELD_SCHEDULE_DAY_ID],
            call.data[const.FIELD_CAPACITY_MINUTES],
        )
        return dict(summary)

    async def handle_create_care_task(call: ServiceCall) -> ServiceResponse:
        """Create a care task."""
        coordinator = _get_coordinator(hass)
        instance_id = await coordinator.schedule_manager.async_create_care_task(
            dict(call.data)
        )
        return {const.FIELD_INSTANCE_ID: instance_id}

    async def handle_create_observation(call: ServiceCall) -> ServiceResponse:
        """Create an observation."""
        coordinator = _get_coordinator(hass)
        instance_id = await coordinator.schedule_manager.async_create_observation(
            dict(call.data)
        )
        return {const.FIELD_INSTANCE_ID: instance_id}

    def make_transition_handler(
        action: str,
    ) -> Callable[[ServiceCall], Awaitable[ServiceResponse]]:
        async def handle_transition(call: ServiceCall) -> ServiceResponse:
            """Apply a lifecycle action and return the instance report."""
            coordinator = _get_coordinator(hass)
            updated = await coordinator.schedule_manager.async_transition(
                call.data[const.FIELD_INSTANCE_ID],
                action,
                _actor_for(call),
                timestamp=call.data.get(const.FIELD_TIMESTAMP),
                notes=call.data.get(const.FIELD_NOTES),
                follow_up_notes=call.data.get(const.FIELD_FOLLOW_UP_NOTES),
                end_time=call.data.get(const.FIELD_END_TIME),
                reschedule_time=call.data.get(const.FIELD_RESCHEDULE_TIME),
                expected_status=call.data.get(const.FIELD_EXPECTED_STATUS),
            )
            return coordinator.schedule_manager.get_instance_report(
                updated[const.DATA_INSTANCE_INTERNAL_ID]
            )

        return handle_transition

    async def handle_escalate_instance(call: ServiceCall) -> ServiceResponse:
        """Escalate an instance on staff request."""
        coordinator = _get_coordinator(hass)
        decision = await coordinator.escalation_manager.async_escalate_instance(
            call.data[const.FIELD_INSTANCE_ID], _actor_for(call)
        )
        return dict(decision)

    async def handle_summarize_day(call: ServiceCall) -> ServiceResponse:
        """Recompute and return a day's summary."""
        coordinator = _get_coordinator(hass)
        day_id = call.data[const.FIELD_SCHEDULE_DAY_ID]
        summary = await coordinator.schedule_manager.async_refresh_day_summary(day_id)
        coordinator._persist()  # pylint: disable=protected-access
        return dict(summary)

    async def handle_run_sweep(_call: ServiceCall) -> ServiceResponse:
        """Run the overdue/escalation sweep now and return its result."""
        coordinator = _get_coordinator(hass)
        result = await coordinator.escalation_manager.async_run_sweep()
        return dict(result)

    # --- Register Services ---
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_CREATE_SCHEDULE_DAY,
        handle_create_schedule_day,
        schema=CREATE_SCHEDULE_DAY_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_SET_STAFF_CAPACITY,
        handle_set_staff_capacity,
        schema=SET_STAFF_CAPACITY_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_CREATE_CARE_TASK,
        handle_create_care_task,
        schema=CREATE_CARE_TASK_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_CREATE_OBSERVATION,
        handle_create_observation,
        schema=CREATE_OBSERVATION_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    for service, (action, schema) in TRANSITION_SERVICES.items():
        hass.services.async_register(
            const.DOMAIN,
            service,
            make_transition_handler(action),
            schema=schema,
            supports_response=SupportsResponse.OPTIONAL,
        )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_ESCALATE_INSTANCE,
        handle_escalate_instance,
        schema=ESCALATE_INSTANCE_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_SUMMARIZE_DAY,
        handle_summarize_day,
        schema=SUMMARIZE_DAY_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_RUN_SWEEP,
        handle_run_sweep,
        schema=RUN_SWEEP_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )

    const.LOGGER.info("CareScheduler services have been registered successfully")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister CareScheduler services when unloading the integration."""
    for service in ALL_SERVICES:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("CareScheduler services have been unregistered")

