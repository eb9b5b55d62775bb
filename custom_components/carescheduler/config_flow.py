# File: config_flow.py
"""Config flow for the CareScheduler integration.

A single entry per Home Assistant instance. The user step only asks for a
name; sweep interval, default capacity, due window and notify target are
configured through the options flow.
"""

from __future__ import annotations

from typing import Any

from homeassistant import config_entries
from homeassistant.core import callback

from . import const
from .helpers import flow_helpers as fh
from .options_flow import CareSchedulerOptionsFlowHandler

# pylint: disable=abstract-method


class CareSchedulerConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for CareScheduler."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Create the single CareScheduler entry."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        if user_input is not None:
            title = str(user_input.get(const.CONF_NAME) or const.DEFAULT_NAME).strip()
            const.LOGGER.debug("Creating CareScheduler entry '%s'", title)
            return self.async_create_entry(
                title=title or const.DEFAULT_NAME,
                data={},
                options={
                    const.CONF_SWEEP_INTERVAL: const.DEFAULT_SWEEP_INTERVAL,
                    const.CONF_DEFAULT_CAPACITY_MINUTES: const.DEFAULT_CAPACITY_MINUTES,
                    const.CONF_DUE_WINDOW_MINUTES: const.DEFAULT_DUE_WINDOW_MINUTES,
                    const.CONF_NOTIFY_SERVICE: const.DEFAULT_NOTIFY_SERVICE,
                },
            )

        return self.async_show_form(
            step_id=const.CONFIG_FLOW_STEP_USER,
            data_schema=fh.build_user_schema(),
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> CareSchedulerOptionsFlowHandler:
        """Return the Options Flow."""
        return CareSchedulerOptionsFlowHandler()
