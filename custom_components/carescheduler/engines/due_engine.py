"""Due Engine - shared overdue/due evaluation for tasks and observations.

Overdue is a derived read-time fact, never a stored terminal state. Care tasks
and observations share this single implementation so the two record kinds can
not drift apart.

Timestamps are compared as UTC-normalized instants; "now" is always passed in
explicitly.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from .. import const
from ..utils.dt_utils import as_utc, dt_to_utc

if TYPE_CHECKING:
    from collections.abc import Mapping


class DueEngine:
    """Pure logic engine for due/overdue status.

    All methods are static - no instance state.
    """

    @staticmethod
    def is_terminal(status: str) -> bool:
        """Return True for statuses no transition can leave."""
        return status in const.TERMINAL_STATUSES

    @staticmethod
    def is_open(status: str) -> bool:
        """Return True for statuses that still expect staff action.

        A stored `overdue` status counts as open.
        """
        return status not in const.TERMINAL_STATUSES

    @staticmethod
    def is_overdue(status: str, scheduled_time: datetime, now: datetime) -> bool:
        """Determine whether an item is overdue.

        Args:
            status: Current lifecycle status
            scheduled_time: When the item was due
            now: Current instant

        Returns:
            False for completed items, otherwise True iff now > scheduled_time.
        """
        if status == const.STATUS_COMPLETED:
            return False
        return as_utc(now) > as_utc(scheduled_time)

    @staticmethod
    def overdue_by(status: str, scheduled_time: datetime, now: datetime) -> timedelta:
        """Return how long an item has been overdue (zero if it is not)."""
        if not DueEngine.is_overdue(status, scheduled_time, now):
            return timedelta(0)
        return as_utc(now) - as_utc(scheduled_time)

    @staticmethod
    def evaluate(
        status: str,
        scheduled_time: datetime,
        now: datetime,
        due_window: timedelta = timedelta(0),
    ) -> str:
        """Classify an item as on-time, due, overdue or closed.

        Args:
            status: Current lifecycle status
            scheduled_time: When the item is due
            now: Current instant
            due_window: How long before scheduled_time the item counts as due

        Returns:
            One of const.DUE_STATUS_* values.

        Examples:
            scheduled 09:00, now 08:30, window 15m -> on_time
            scheduled 09:00, now 08:50, window 15m -> due
            scheduled 09:00, now 09:01 -> overdue
            cancelled, any time -> closed
        """
        if DueEngine.is_terminal(status):
            return const.DUE_STATUS_CLOSED

        now_utc = as_utc(now)
        scheduled_utc = as_utc(scheduled_time)
        if DueEngine.is_overdue(status, scheduled_utc, now_utc):
            return const.DUE_STATUS_OVERDUE
        if now_utc >= scheduled_utc - due_window:
            return const.DUE_STATUS_DUE
        return const.DUE_STATUS_ON_TIME

    @staticmethod
    def instance_is_overdue(instance: Mapping[str, object], now: datetime) -> bool:
        """Apply is_overdue to a stored record.

        Records without a parseable scheduled time are never overdue.
        """
        scheduled = dt_to_utc(
            instance.get(const.DATA_INSTANCE_SCHEDULED_TIME)  # type: ignore[arg-type]
        )
        if scheduled is None:
            return False
        status = str(instance.get(const.DATA_INSTANCE_STATUS, const.STATUS_SCHEDULED))
        return DueEngine.is_overdue(status, scheduled, now)

    @staticmethod
    def instance_overdue_by(instance: Mapping[str, object], now: datetime) -> timedelta:
        """Apply overdue_by to a stored record."""
        scheduled = dt_to_utc(
            instance.get(const.DATA_INSTANCE_SCHEDULED_TIME)  # type: ignore[arg-type]
        )
        if scheduled is None:
            return timedelta(0)
        status = str(instance.get(const.DATA_INSTANCE_STATUS, const.STATUS_SCHEDULED))
        return DueEngine.overdue_by(status, scheduled, now)
