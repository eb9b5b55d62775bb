# File: helpers/flow_helpers.py
"""Config and options flow schema builders and validators."""

from __future__ import annotations

from typing import Any

from homeassistant.helpers import selector
import voluptuous as vol

from .. import const


def build_user_schema(default: dict[str, Any] | None = None) -> vol.Schema:
    """Build schema for the initial config step (integration name)."""
    default = default or {}
    return vol.Schema(
        {
            vol.Required(
                const.CONF_NAME, default=default.get(const.CONF_NAME, const.DEFAULT_NAME)
            ): str,
        }
    )


def build_general_options_schema(default: dict[str, Any] | None = None) -> vol.Schema:
    """Build schema for sweep interval, capacity, due window and notify target."""
    default = default or {}

    return vol.Schema(
        {
            vol.Required(
                const.CONF_SWEEP_INTERVAL,
                default=default.get(
                    const.CONF_SWEEP_INTERVAL, const.DEFAULT_SWEEP_INTERVAL
                ),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=const.MIN_SWEEP_INTERVAL,
                    max=const.MAX_SWEEP_INTERVAL,
                    step=1,
                    unit_of_measurement="min",
                )
            ),
            vol.Required(
                const.CONF_DEFAULT_CAPACITY_MINUTES,
                default=default.get(
                    const.CONF_DEFAULT_CAPACITY_MINUTES,
                    const.DEFAULT_CAPACITY_MINUTES,
                ),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=0,
                    step=1,
                    unit_of_measurement="min",
                )
            ),
            vol.Required(
                const.CONF_DUE_WINDOW_MINUTES,
                default=default.get(
                    const.CONF_DUE_WINDOW_MINUTES, const.DEFAULT_DUE_WINDOW_MINUTES
                ),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=0,
                    step=1,
                    unit_of_measurement="min",
                )
            ),
            vol.Optional(
                const.CONF_NOTIFY_SERVICE,
                default=default.get(
                    const.CONF_NOTIFY_SERVICE, const.DEFAULT_NOTIFY_SERVICE
                ),
            ): selector.TextSelector(selector.TextSelectorConfig(multiline=False)),
        }
    )


def validate_general_options(user_input: dict[str, Any]) -> dict[str, str]:
    """Validate general options input.

    Returns:
        Dict of errors: {field: translation_key}. Empty means valid.
    """
    errors: dict[str, str] = {}

    interval = user_input.get(const.CONF_SWEEP_INTERVAL)
    if interval is None or not (
        const.MIN_SWEEP_INTERVAL <= float(interval) <= const.MAX_SWEEP_INTERVAL
    ):
        errors[const.CONF_SWEEP_INTERVAL] = const.TRANS_KEY_ERROR_INVALID_SWEEP_INTERVAL

    notify_service = str(user_input.get(const.CONF_NOTIFY_SERVICE) or "").strip()
    if notify_service.startswith(f"{const.NOTIFY_DOMAIN}."):
        notify_service = notify_service.split(".", 1)[1]
    if notify_service and not notify_service.replace("_", "").isalnum():
        errors[const.CONF_NOTIFY_SERVICE] = const.TRANS_KEY_ERROR_INVALID_NOTIFY_SERVICE

    return errors


def normalize_general_options(user_input: dict[str, Any]) -> dict[str, Any]:
    """Coerce selector floats to ints and strip the notify domain prefix."""
    notify_service = str(user_input.get(const.CONF_NOTIFY_SERVICE) or "").strip()
    if notify_service.startswith(f"{const.NOTIFY_DOMAIN}."):
        notify_service = notify_service.split(".", 1)[1]

    return {
        const.CONF_SWEEP_INTERVAL: int(user_input[const.CONF_SWEEP_INTERVAL]),
        const.CONF_DEFAULT_CAPACITY_MINUTES: int(
            user_input[const.CONF_DEFAULT_CAPACITY_MINUTES]
        ),
        const.CONF_DUE_WINDOW_MINUTES: int(user_input[const.CONF_DUE_WINDOW_MINUTES]),
        const.CONF_NOTIFY_SERVICE: notify_service,
    }
