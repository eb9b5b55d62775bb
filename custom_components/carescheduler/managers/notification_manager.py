"""Notification Manager - delivers escalation alerts.

The alert sink receives (instance_id, reason, priority) plus context. Every
alert is fired on the Home Assistant bus as `carescheduler_escalation`; when a
notify service is configured it is also sent there. Delivery is
fire-and-forget: failures are logged and never propagate back into the sweep.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import CareSchedulerCoordinator


# =============================================================================
# Module-level helper for testability
# =============================================================================


async def async_send_notification(
    hass: HomeAssistant,
    service: str,
    title: str,
    message: str,
    extra_data: dict[str, Any] | None = None,
) -> None:
    """Send a notification via Home Assistant service call.

    Args:
        hass: Home Assistant instance
        service: Notification service as "notify.service_name" or just the name
        title: Notification title
        message: Notification message
        extra_data: Optional data payload (alert fields)
    """
    if "." in service:
        domain, svc = service.split(".", 1)
    else:
        domain = const.NOTIFY_DOMAIN
        svc = service

    payload: dict[str, Any] = {
        const.NOTIFY_TITLE: title,
        const.NOTIFY_MESSAGE: message,
    }
    if extra_data:
        payload[const.NOTIFY_DATA] = dict(extra_data)

    const.LOGGER.debug(
        "async_send_notification: %s.%s - title='%s', message='%s'",
        domain,
        svc,
        title,
        message,
    )
    await hass.services.async_call(domain, svc, payload, blocking=True)


class NotificationManager(BaseManager):
    """Manager for escalation alert delivery.

    Responsibilities:
    - Fire the escalation bus event
    - Send to the configured notify service, if any

    NOT responsible for:
    - Deciding what escalates (EscalationManager / EscalationEngine)
    """

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: CareSchedulerCoordinator,
    ) -> None:
        """Initialize the NotificationManager."""
        super().__init__(hass, coordinator)
        self._coordinator = coordinator

    async def async_setup(self) -> None:
        """Subscribe to ESCALATION_RAISED."""
        self.listen(
            const.SIGNAL_SUFFIX_ESCALATION_RAISED,
            self._on_escalation_raised,
        )

    async def _on_escalation_raised(self, payload: dict[str, Any]) -> None:
        await self.async_send_escalation(payload)

    async def async_send_escalation(self, payload: dict[str, Any]) -> None:
        """Deliver one escalation to the bus and the optional notify service."""
        event_data = {
            const.ATTR_INSTANCE_ID: payload.get("instance_id"),
            const.ATTR_REASON: payload.get("reason"),
            const.ATTR_PRIORITY: payload.get("priority"),
            const.ATTR_KIND: payload.get("kind"),
            const.ATTR_SCHEDULE_DAY_ID: payload.get("schedule_day_id"),
            const.ATTR_OVERDUE_MINUTES: payload.get("overdue_minutes", 0),
            const.ATTR_MISSED_OCCURRENCES: payload.get("missed_occurrences", 0),
        }
        self.hass.bus.async_fire(const.EVENT_ESCALATION, event_data)

        notify_service = self._coordinator.notify_service
        if not notify_service:
            return

        domain, _, service = (
            notify_service.partition(".")
            if "." in notify_service
            else (const.NOTIFY_DOMAIN, ".", notify_service)
        )
        if not self.hass.services.has_service(domain, service):
            const.LOGGER.warning(
                "Notification service '%s.%s' not available - skipping alert for %s",
                domain,
                service,
                event_data[const.ATTR_INSTANCE_ID],
            )
            return

        title, message = self._format_alert(event_data)
        try:
            await async_send_notification(
                self.hass, notify_service, title, message, event_data
            )
        except Exception as err:  # pylint: disable=broad-exception-caught
            # Background delivery: must not raise into the dispatcher task
            const.LOGGER.warning(
                "Failed to deliver escalation for %s via '%s.%s': %s",
                event_data[const.ATTR_INSTANCE_ID],
                domain,
                service,
                err,
            )

    @staticmethod
    def _format_alert(event_data: dict[str, Any]) -> tuple[str, str]:
        """Build the notification title and message for an alert."""
        reason = str(event_data[const.ATTR_REASON])
        priority = str(event_data[const.ATTR_PRIORITY])
        title = f"{const.CARESCHEDULER_TITLE}: {reason}"
        message = (
            f"{event_data[const.ATTR_KIND]} {event_data[const.ATTR_INSTANCE_ID]} "
            f"({priority} priority) needs attention: {reason}"
        )
        overdue = int(event_data.get(const.ATTR_OVERDUE_MINUTES) or 0)
        if overdue:
            message += f", overdue by {overdue} min"
        missed = int(event_data.get(const.ATTR_MISSED_OCCURRENCES) or 0)
        if missed:
            message += f", {missed} missed reading(s)"
        return title, message
