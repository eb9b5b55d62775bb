# File: coordinator.py
"""Coordinator for the CareScheduler integration.

Owns the in-memory schedule data, persistence, and the periodic
overdue/escalation sweep. Workflow logic lives in the managers:

- ScheduleManager: days, instance creation, lifecycle transitions, summaries
- EscalationManager: sweep, escalation decisions, day archival
- NotificationManager: alert delivery (bus event + optional notify service)
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import const
from .managers import EscalationManager, NotificationManager, ScheduleManager

if TYPE_CHECKING:
    from collections.abc import Iterator

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .store import CareSchedulerStore


class CareSchedulerCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator for CareScheduler integration.

    Records are stored by internal_id in three buckets (schedule days, care
    tasks, observations).
    """

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: CareSchedulerStore,
    ) -> None:
        """Initialize the CareSchedulerCoordinator."""
        sweep_interval = config_entry.options.get(
            const.CONF_SWEEP_INTERVAL, const.DEFAULT_SWEEP_INTERVAL
        )

        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            update_interval=timedelta(minutes=int(sweep_interval)),
        )
        self.store = store
        self._data: dict[str, Any] = {}

        self.schedule_manager = ScheduleManager(hass, self)
        self.escalation_manager = EscalationManager(hass, self)
        self.notification_manager = NotificationManager(hass, self)

    # -------------------------------------------------------------------------------------
    # Data access
    # -------------------------------------------------------------------------------------

    @property
    def schedule_days_data(self) -> dict[str, Any]:
        """Schedule days keyed by internal_id."""
        return self._data.setdefault(const.DATA_SCHEDULE_DAYS, {})

    @property
    def care_tasks_data(self) -> dict[str, Any]:
        """Care tasks keyed by internal_id."""
        return self._data.setdefault(const.DATA_CARE_TASKS, {})

    @property
    def observations_data(self) -> dict[str, Any]:
        """Observations keyed by internal_id."""
        return self._data.setdefault(const.DATA_OBSERVATIONS, {})

    @property
    def meta_data(self) -> dict[str, Any]:
        """Storage metadata (schema version, last sweep)."""
        return self._data.setdefault(const.DATA_META, {})

    def bucket_for_kind(self, kind: str) -> dict[str, Any]:
        """Return the storage bucket for an instance kind."""
        if kind == const.INSTANCE_KIND_OBSERVATION:
            return self.observations_data
        return self.care_tasks_data

    def iter_instances(self) -> Iterator[dict[str, Any]]:
        """Iterate over all care tasks, then all observations."""
        yield from self.care_tasks_data.values()
        yield from self.observations_data.values()

    def get_instance(self, instance_id: str) -> dict[str, Any] | None:
        """Look up a care task or observation by internal_id."""
        return self.care_tasks_data.get(instance_id) or self.observations_data.get(
            instance_id
        )

    # -------------------------------------------------------------------------------------
    # Options
    # -------------------------------------------------------------------------------------

    @property
    def default_capacity_minutes(self) -> int:
        """Staff-minutes used when a day has no capacity of its own."""
        return int(
            self.config_entry.options.get(
                const.CONF_DEFAULT_CAPACITY_MINUTES, const.DEFAULT_CAPACITY_MINUTES
            )
        )

    @property
    def due_window(self) -> timedelta:
        """How long before its scheduled time an item counts as due."""
        return timedelta(
            minutes=int(
                self.config_entry.options.get(
                    const.CONF_DUE_WINDOW_MINUTES, const.DEFAULT_DUE_WINDOW_MINUTES
                )
            )
        )

    @property
    def notify_service(self) -> str:
        """Configured notify service name (empty when alerts are bus-only)."""
        return str(
            self.config_entry.options.get(
                const.CONF_NOTIFY_SERVICE, const.DEFAULT_NOTIFY_SERVICE
            )
            or ""
        )

    # -------------------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------------------

    async def async_config_entry_first_refresh(self) -> None:
        """Load from storage, set up managers, then run the first sweep."""
        self._data = self.store.data

        await self.schedule_manager.async_setup()
        await self.escalation_manager.async_setup()
        await self.notification_manager.async_setup()

        const.LOGGER.info(
            "CareScheduler loaded: %s days, %s care tasks, %s observations",
            len(self.schedule_days_data),
            len(self.care_tasks_data),
            len(self.observations_data),
        )
        await super().async_config_entry_first_refresh()

    async def _async_update_data(self) -> dict[str, Any]:
        """Periodic update: run the overdue/escalation sweep."""
        try:
            await self.escalation_manager.async_run_sweep()
        except Exception as err:  # pylint: disable=broad-exception-caught
            raise UpdateFailed(f"Error running CareScheduler sweep: {err}") from err
        return self._data

    def _persist(self) -> None:
        """Save to persistent storage."""
        self.store.set_data(self._data)
        self.hass.async_create_task(self.store.async_save())
