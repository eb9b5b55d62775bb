# File: store.py
"""Handles persistent data storage for the CareScheduler integration.

Uses Home Assistant's Storage helper to save and load schedule days, care tasks
and observations, so the schedule survives restarts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.helpers.storage import Store

from . import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


class CareSchedulerStore:
    """Handles persistent storage operations for CareScheduler data.

    Thin wrapper around Home Assistant's Store API. Records are keyed by
    internal_id inside their bucket.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
        """
        self.hass = hass
        self._storage_key = storage_key
        self._store: Store = Store(hass, const.STORAGE_VERSION, storage_key)
        self._data: dict[str, Any] = {}

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure for fresh installations.

        This is the SINGLE SOURCE OF TRUTH for the storage schema.
        """
        return {
            const.DATA_META: {
                const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION,
                const.DATA_META_LAST_SWEEP: None,
            },
            const.DATA_SCHEDULE_DAYS: {},
            const.DATA_CARE_TASKS: {},
            const.DATA_OBSERVATIONS: {},
        }

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        If no data exists, initializes with an empty structure. Missing buckets
        in older files are filled in from the default structure.
        """
        const.LOGGER.debug("CareSchedulerStore: Loading data from storage")
        existing_data = await self._store.async_load()

        if existing_data is None:
            const.LOGGER.info("No existing storage found. Initializing new data")
            self._data = CareSchedulerStore.get_default_structure()
            return

        self._data = existing_data
        for key, value in CareSchedulerStore.get_default_structure().items():
            self._data.setdefault(key, value)

        const.LOGGER.debug(
            "Loaded existing data from storage: %s",
            {
                "schedule_days": len(self._data[const.DATA_SCHEDULE_DAYS]),
                "care_tasks": len(self._data[const.DATA_CARE_TASKS]),
                "observations": len(self._data[const.DATA_OBSERVATIONS]),
            },
        )

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    def get_storage_path(self) -> str:
        """Get the storage file path."""
        return self._store.path

    def set_data(self, new_data: dict[str, Any]) -> None:
        """Replace the entire in-memory data structure."""
        self._data = new_data

    async def async_save(self) -> None:
        """Save the current data structure to storage asynchronously.

        Errors are logged and do not stop execution; the in-memory copy stays
        authoritative until the next successful save.
        """
        try:
            await self._store.async_save(self._data)
            const.LOGGER.debug("Data saved successfully to storage")
        except OSError as err:
            const.LOGGER.error(
                "Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
        except (TypeError, ValueError) as err:
            const.LOGGER.error(
                "Failed to save storage due to non-serializable data: %s", err
            )

    async def async_delete_storage(self) -> None:
        """Delete the storage file completely from disk."""
        self._data = CareSchedulerStore.get_default_structure()
        try:
            await self._store.async_remove()
            const.LOGGER.info("Storage file removed successfully: %s", self._store.path)
        except OSError as err:
            const.LOGGER.error(
                "Failed to remove storage file %s: %s. Check file permissions",
                self._store.path,
                err,
            )
