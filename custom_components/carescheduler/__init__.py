# File: __init__.py
"""Initialization file for the CareScheduler integration.

Handles setting up the integration, including loading configuration entries,
initializing data storage, and preparing the coordinator that runs the
periodic overdue/escalation sweep.

Key Features:
- Config entry setup and unload support.
- Coordinator initialization for the sweep.
- Storage management for persistent schedule data.
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady

from . import const
from .coordinator import CareSchedulerCoordinator
from .services import async_setup_services, async_unload_services
from .store import CareSchedulerStore
from .utils.dt_utils import set_default_timezone


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("Starting setup for CareScheduler entry: %s", entry.entry_id)

    # Must be set before any record is parsed or any day boundary computed
    set_default_timezone(ZoneInfo(hass.config.time_zone))

    store = CareSchedulerStore(hass, const.STORAGE_KEY)
    await store.async_initialize()

    coordinator = CareSchedulerCoordinator(hass, entry, store)

    try:
        await coordinator.async_config_entry_first_refresh()
    except ConfigEntryNotReady as e:
        const.LOGGER.error("Failed to refresh coordinator data: %s", e)
        raise

    hass.data.setdefault(const.DOMAIN, {})[entry.entry_id] = {
        const.COORDINATOR: coordinator,
        const.STORE: store,
    }

    async_setup_services(hass)

    await hass.config_entries.async_forward_entry_setups(entry, const.PLATFORMS)

    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    const.LOGGER.info("CareScheduler setup complete for entry: %s", entry.entry_id)
    return True


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry after its options changed."""
    const.LOGGER.debug("Options changed, reloading CareScheduler entry %s", entry.entry_id)
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("Unloading CareScheduler entry: %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, const.PLATFORMS)

    if unload_ok:
        entry_data = hass.data[const.DOMAIN].pop(entry.entry_id)
        # Flush pending writes so a reload starts from what was last persisted
        await entry_data[const.STORE].async_save()

        if not hass.data[const.DOMAIN]:
            await async_unload_services(hass)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry: delete its stored schedule data."""
    const.LOGGER.info("Removing CareScheduler entry: %s", entry.entry_id)

    if const.DOMAIN in hass.data and entry.entry_id in hass.data[const.DOMAIN]:
        store: CareSchedulerStore = hass.data[const.DOMAIN][entry.entry_id][const.STORE]
    else:
        store = CareSchedulerStore(hass, const.STORAGE_KEY)
    await store.async_delete_storage()

    const.LOGGER.info("CareScheduler entry data cleared: %s", entry.entry_id)
