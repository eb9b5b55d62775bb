# File: options_flow.py
"""Options Flow for the CareScheduler integration.

Edits the general settings. Saving new options reloads the entry through the
update listener registered in __init__.py, which picks up a new sweep
interval.
"""

from __future__ import annotations

from typing import Any

from homeassistant import config_entries

from . import const
from .helpers import flow_helpers as fh


class CareSchedulerOptionsFlowHandler(config_entries.OptionsFlow):
    """Options Flow for general CareScheduler settings."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Show and validate the general settings form."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = fh.validate_general_options(user_input)
            if not errors:
                options = fh.normalize_general_options(user_input)
                const.LOGGER.debug("Updating CareScheduler options: %s", options)
                return self.async_create_entry(title="", data=options)

        defaults = dict(self.config_entry.options)
        if user_input is not None:
            defaults.update(user_input)

        return self.async_show_form(
            step_id=const.OPTIONS_FLOW_STEP_INIT,
            data_schema=fh.build_general_options_schema(defaults),
            errors=errors,
        )
