"""Diagnostics support for CareScheduler integration.

The config entry diagnostics return the raw storage data together with the
active options, so a support dump can be compared directly against the
carescheduler_data file.
"""

from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from . import const
from .coordinator import CareSchedulerCoordinator


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator: CareSchedulerCoordinator = hass.data[const.DOMAIN][entry.entry_id][
        const.COORDINATOR
    ]

    return {
        "options": dict(entry.options),
        "storage_path": coordinator.store.get_storage_path(),
        "data": coordinator.store.data,
    }
