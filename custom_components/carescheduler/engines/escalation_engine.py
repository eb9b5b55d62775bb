"""Escalation Engine - decides which records need supervisory attention.

Rules are evaluated in order and the first match wins:

1. critical-overdue: priority critical/urgent, still open, overdue
2. missing-followup: follow-up required, terminal, no follow-up notes
3. missed-recurrence: clinically sensitive observation, still open, overdue
   by more than one full recurrence interval

Evaluation is read-only. Delivering the alert belongs to NotificationManager.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import dt_to_utc
from .due_engine import DueEngine
from .recurrence_engine import RecurrenceEngine

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..type_defs import EscalationDecision


class EscalationEngine:
    """Pure logic engine for escalation rules.

    All methods are static - no instance state.
    """

    @staticmethod
    def evaluate(
        instance: Mapping[str, Any], now: datetime
    ) -> EscalationDecision | None:
        """Evaluate the ordered escalation rules against one record.

        Args:
            instance: Care task or observation record (DATA_* keys)
            now: Current instant

        Returns:
            EscalationDecision for the first matching rule, or None.

        Raises:
            UnknownFrequencyError: Observation carries an unmapped frequency
                and rule 3 has to consult it
        """
        reason = EscalationEngine._match_reason(instance, now)
        if reason is None:
            return None
        return EscalationEngine.build_decision(instance, reason, now)

    @staticmethod
    def requires_escalation(instance: Mapping[str, Any], now: datetime) -> bool:
        """Return True if any escalation rule matches."""
        return EscalationEngine.evaluate(instance, now) is not None

    @staticmethod
    def build_decision(
        instance: Mapping[str, Any], reason: str, now: datetime
    ) -> EscalationDecision:
        """Build the alert payload for a record and reason."""
        overdue = DueEngine.instance_overdue_by(instance, now)
        return {
            "instance_id": str(instance.get(const.DATA_INSTANCE_INTERNAL_ID)),
            "reason": reason,
            "priority": str(
                instance.get(const.DATA_INSTANCE_PRIORITY) or const.DEFAULT_PRIORITY
            ),
            "kind": str(
                instance.get(const.DATA_INSTANCE_KIND, const.INSTANCE_KIND_CARE_TASK)
            ),
            "schedule_day_id": instance.get(const.DATA_INSTANCE_SCHEDULE_DAY_ID),
            "overdue_minutes": int(overdue.total_seconds() // 60),
            "missed_occurrences": EscalationEngine.missed_occurrences(instance, now),
        }

    @staticmethod
    def missed_occurrences(instance: Mapping[str, Any], now: datetime) -> int:
        """Count the recurrences of an open observation that passed unrecorded.

        Zero for care tasks, closed records and aperiodic frequencies.
        """
        if instance.get(const.DATA_INSTANCE_KIND) != const.INSTANCE_KIND_OBSERVATION:
            return 0
        status = str(instance.get(const.DATA_INSTANCE_STATUS, const.STATUS_SCHEDULED))
        scheduled = dt_to_utc(instance.get(const.DATA_INSTANCE_SCHEDULED_TIME))
        if not DueEngine.is_open(status) or scheduled is None:
            return 0
        return sum(
            1
            for _ in RecurrenceEngine.occurrences_between(
                str(instance.get(const.DATA_OBSERVATION_FREQUENCY, "")), scheduled, now
            )
        )

    # =========================================================================
    # Rules
    # =========================================================================

    @staticmethod
    def _match_reason(instance: Mapping[str, Any], now: datetime) -> str | None:
        status = str(instance.get(const.DATA_INSTANCE_STATUS, const.STATUS_SCHEDULED))
        is_open = DueEngine.is_open(status)

        # Rule 1
        priority = instance.get(const.DATA_INSTANCE_PRIORITY)
        if (
            priority in const.ESCALATING_PRIORITIES
            and is_open
            and DueEngine.instance_is_overdue(instance, now)
        ):
            return const.ESCALATION_REASON_CRITICAL_OVERDUE

        # Rule 2
        follow_up_notes = instance.get(const.DATA_INSTANCE_FOLLOW_UP_NOTES)
        if (
            instance.get(const.DATA_INSTANCE_FOLLOW_UP_REQUIRED)
            and DueEngine.is_terminal(status)
            and not (follow_up_notes and str(follow_up_notes).strip())
        ):
            return const.ESCALATION_REASON_MISSING_FOLLOWUP

        # Rule 3
        if (
            is_open
            and instance.get(const.DATA_INSTANCE_KIND)
            == const.INSTANCE_KIND_OBSERVATION
            and instance.get(const.DATA_OBSERVATION_TYPE)
            in const.CLINICALLY_SENSITIVE_OBSERVATIONS
            and EscalationEngine._missed_full_interval(instance, now)
        ):
            return const.ESCALATION_REASON_MISSED_RECURRENCE

        return None

    @staticmethod
    def _missed_full_interval(instance: Mapping[str, Any], now: datetime) -> bool:
        """Return True if overdue by strictly more than one recurrence interval."""
        interval = RecurrenceEngine.interval_for(
            str(instance.get(const.DATA_OBSERVATION_FREQUENCY, ""))
        )
        if interval is None:
            return False
        overdue: timedelta = DueEngine.instance_overdue_by(instance, now)
        return overdue > interval
