"""Escalation Manager - periodic overdue/escalation sweep.

This manager handles:
- The periodic sweep over all tasks and observations (from the coordinator)
- Immediate evaluation when an instance changes status
- Manual escalation requested by staff
- Deduplication through the last-escalated marker on each record

ARCHITECTURE:
- EscalationManager = STATEFUL sweep + markers
- EscalationEngine / DueEngine = pure rule evaluation (STATELESS)
- NotificationManager listens to ESCALATION_RAISED and delivers the alert
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import ServiceValidationError

from .. import const
from ..engines.due_engine import DueEngine
from ..engines.escalation_engine import EscalationEngine
from ..engines.recurrence_engine import UnknownFrequencyError
from ..utils.dt_utils import as_utc, dt_now_utc
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import CareSchedulerCoordinator
    from ..type_defs import EscalationDecision, SweepResult


__all__ = ["EscalationManager"]


class EscalationManager(BaseManager):
    """Manager for escalation sweeps and markers.

    Responsibilities:
    - Run the sweep and report evaluated / overdue / escalated / skipped
    - Isolate per-instance failures so one bad record never aborts a sweep
    - Emit SIGNAL_SUFFIX_ESCALATION_RAISED once per (instance, reason)
    - Trigger day archival at the end of a sweep
    """

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: CareSchedulerCoordinator,
    ) -> None:
        """Initialize the EscalationManager."""
        super().__init__(hass, coordinator)
        self._coordinator = coordinator

    async def async_setup(self) -> None:
        """Set up the EscalationManager.

        Subscribes to INSTANCE_TRANSITIONED so a task closed without its
        follow-up notes is flagged straight away instead of at the next sweep.
        """
        self.listen(
            const.SIGNAL_SUFFIX_INSTANCE_TRANSITIONED,
            self._on_instance_transitioned,
        )

    async def _on_instance_transitioned(self, payload: dict[str, Any]) -> None:
        """Re-evaluate an instance after a status change."""
        instance_id = payload.get("instance_id")
        if not instance_id:
            return
        await self.async_evaluate_instance(str(instance_id))

    # =========================================================================
    # Sweep
    # =========================================================================

    async def async_run_sweep(self, now: datetime | None = None) -> SweepResult:
        """Evaluate every instance, raise new escalations, archive finished days.

        Idempotent: re-running on unchanged data raises no new alerts, since a
        record whose last escalated reason already equals the decision's
        reason is skipped.

        Args:
            now: Evaluation instant (defaults to current UTC time)

        Returns:
            SweepResult with instance ids that are overdue, the decisions that
            were raised, and the ids skipped because of bad data.
        """
        now_utc = as_utc(now) if now is not None else dt_now_utc()
        result: SweepResult = {
            "evaluated": 0,
            "overdue": [],
            "escalated": [],
            "skipped": [],
            "archived_days": [],
        }

        for instance in list(self._coordinator.iter_instances()):
            instance_id = str(instance.get(const.DATA_INSTANCE_INTERNAL_ID))
            result["evaluated"] += 1
            try:
                status = str(instance.get(const.DATA_INSTANCE_STATUS))
                if DueEngine.is_open(status) and DueEngine.instance_is_overdue(
                    instance, now_utc
                ):
                    result["overdue"].append(instance_id)
                decision = EscalationEngine.evaluate(instance, now_utc)
            except (UnknownFrequencyError, ValueError, TypeError) as err:
                const.LOGGER.warning(
                    "Sweep skipped instance %s: %s", instance_id, err
                )
                result["skipped"].append({"instance_id": instance_id, "error": str(err)})
                continue

            if decision is not None and self._mark_escalated(
                instance, decision, now_utc
            ):
                result["escalated"].append(decision)

        result["archived_days"] = (
            await self._coordinator.schedule_manager.async_archive_elapsed_days(
                now_utc
            )
        )
        self._coordinator.meta_data[const.DATA_META_LAST_SWEEP] = now_utc.isoformat()
        self._coordinator._persist()

        const.LOGGER.info(
            "Sweep finished: %s evaluated, %s overdue, %s escalated, %s skipped, "
            "%s days archived",
            result["evaluated"],
            len(result["overdue"]),
            len(result["escalated"]),
            len(result["skipped"]),
            len(result["archived_days"]),
        )
        return result

    async def async_evaluate_instance(
        self, instance_id: str, now: datetime | None = None
    ) -> EscalationDecision | None:
        """Evaluate one instance and raise its escalation if it is new.

        Returns the decision when an alert was raised, otherwise None.
        """
        instance = self._coordinator.get_instance(instance_id)
        if instance is None:
            return None
        now_utc = as_utc(now) if now is not None else dt_now_utc()
        try:
            decision = EscalationEngine.evaluate(instance, now_utc)
        except UnknownFrequencyError as err:
            const.LOGGER.warning(
                "Escalation check skipped for %s: %s", instance_id, err
            )
            return None

        if decision is None or not self._mark_escalated(instance, decision, now_utc):
            return None
        self._coordinator._persist()
        return decision

    # =========================================================================
    # Manual escalation
    # =========================================================================

    async def async_escalate_instance(
        self, instance_id: str, actor: str | None = None
    ) -> EscalationDecision:
        """Escalate an open instance on staff request (e.g. a deferred item).

        Raises:
            HomeAssistantError: Instance not found
            ServiceValidationError: Instance already completed or cancelled
        """
        instance = self._coordinator.schedule_manager.get_instance(instance_id)
        status = str(instance.get(const.DATA_INSTANCE_STATUS))
        if DueEngine.is_terminal(status):
            raise ServiceValidationError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_INVALID_TRANSITION,
                translation_placeholders={
                    "id": instance_id,
                    "status": status,
                    "action": "escalate",
                    "reason": "terminal_state",
                },
            )

        now_utc = dt_now_utc()
        try:
            decision = EscalationEngine.build_decision(
                instance, const.ESCALATION_REASON_MANUAL, now_utc
            )
        except UnknownFrequencyError as err:
            raise ServiceValidationError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_UNKNOWN_FREQUENCY,
                translation_placeholders={"value": str(err.frequency)},
            ) from err
        self._record_marker(instance, decision["reason"], now_utc)
        self._coordinator._persist()
        self.emit(const.SIGNAL_SUFFIX_ESCALATION_RAISED, actor=actor, **decision)
        const.LOGGER.info("Instance %s escalated manually by %s", instance_id, actor)
        return decision

    # =========================================================================
    # Helpers
    # =========================================================================

    def _mark_escalated(
        self,
        instance: dict[str, Any],
        decision: EscalationDecision,
        now: datetime,
    ) -> bool:
        """Record the decision and emit it, unless it was already raised.

        Returns:
            True if a new escalation was raised.
        """
        if instance.get(const.DATA_INSTANCE_LAST_ESCALATED_REASON) == decision["reason"]:
            const.LOGGER.debug(
                "Instance %s already escalated for %s",
                decision["instance_id"],
                decision["reason"],
            )
            return False

        self._record_marker(instance, decision["reason"], now)
        self.emit(const.SIGNAL_SUFFIX_ESCALATION_RAISED, **decision)
        const.LOGGER.info(
            "Escalation raised for %s %s: %s (priority %s)",
            decision["kind"],
            decision["instance_id"],
            decision["reason"],
            decision["priority"],
        )
        return True

    @staticmethod
    def _record_marker(instance: dict[str, Any], reason: str, now: datetime) -> None:
        instance[const.DATA_INSTANCE_LAST_ESCALATED_REASON] = reason
        instance[const.DATA_INSTANCE_LAST_ESCALATED_AT] = now.isoformat()
