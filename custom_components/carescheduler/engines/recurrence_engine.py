"""Recurrence Engine - next occurrence calculation for observation frequencies.

Every periodic frequency maps to a fixed hour interval. The next occurrence is
the reference instant plus that interval, added as an absolute `timedelta` on
the UTC-normalized reference. Day, month and DST boundaries therefore never
shift the result: 4 hours after 2025-03-30T00:30Z is always 04:30Z.

`as_needed` and `continuous` are aperiodic. They have no deterministic next
occurrence and always yield None; they are never treated as a zero interval.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, ClassVar

from dateutil.rrule import HOURLY, rrule

from .. import const
from ..utils.dt_utils import as_utc, dt_to_utc

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping


class UnknownFrequencyError(Exception):
    """Raised when a frequency value has no entry in the interval table.

    Always a configuration/data error: reported, never retried.

    Attributes:
        frequency: The unrecognized frequency value
    """

    def __init__(self, frequency: object) -> None:
        """Initialize UnknownFrequencyError.

        Args:
            frequency: The unrecognized frequency value
        """
        self.frequency = frequency
        super().__init__(f"Unknown observation frequency: {frequency!r}")


class RecurrenceEngine:
    """Pure logic engine for observation recurrence.

    All methods are static - no instance state.
    """

    INTERVAL_HOURS: ClassVar[Mapping[str, int]] = const.FREQUENCY_INTERVAL_HOURS
    APERIODIC: ClassVar[frozenset[str]] = const.APERIODIC_FREQUENCIES

    @staticmethod
    def is_known(frequency: str) -> bool:
        """Return True if the frequency is periodic or explicitly aperiodic."""
        return (
            frequency in RecurrenceEngine.INTERVAL_HOURS
            or frequency in RecurrenceEngine.APERIODIC
        )

    @staticmethod
    def is_aperiodic(frequency: str) -> bool:
        """Return True for frequencies with no deterministic next occurrence.

        Raises:
            UnknownFrequencyError: If the frequency is not in the table
        """
        if not RecurrenceEngine.is_known(frequency):
            raise UnknownFrequencyError(frequency)
        return frequency in RecurrenceEngine.APERIODIC

    @staticmethod
    def interval_for(frequency: str) -> timedelta | None:
        """Return the fixed interval of a frequency, or None if aperiodic.

        Raises:
            UnknownFrequencyError: If the frequency is not in the table

        Examples:
            interval_for("weekly") -> timedelta(hours=168)
            interval_for("twice_weekly") -> timedelta(hours=84)
            interval_for("as_needed") -> None
        """
        if RecurrenceEngine.is_aperiodic(frequency):
            return None
        return timedelta(hours=RecurrenceEngine.INTERVAL_HOURS[frequency])

    @staticmethod
    def next_occurrence(frequency: str, reference_time: datetime) -> datetime | None:
        """Calculate the next due time after a reference time.

        Args:
            frequency: One of the const.FREQUENCY_* values
            reference_time: Reference instant (naive values use facility timezone)

        Returns:
            UTC datetime of the next occurrence, or None for aperiodic frequencies.

        Raises:
            UnknownFrequencyError: If the frequency is not in the table
        """
        interval = RecurrenceEngine.interval_for(frequency)
        if interval is None:
            return None
        return as_utc(reference_time) + interval

    @staticmethod
    def next_scheduled_time(observation: Mapping[str, object]) -> datetime | None:
        """Derive the next scheduled time of an observation record.

        Args:
            observation: Observation record (DATA_* keys)

        Returns:
            scheduled_time advanced by the frequency interval, or None when the
            frequency is aperiodic or the scheduled time is missing.

        Raises:
            UnknownFrequencyError: If the record carries an unmapped frequency
        """
        frequency = str(observation.get(const.DATA_OBSERVATION_FREQUENCY, ""))
        scheduled = dt_to_utc(
            observation.get(const.DATA_INSTANCE_SCHEDULED_TIME)  # type: ignore[arg-type]
        )
        if scheduled is None:
            # Still validate the frequency so bad data is never silent
            RecurrenceEngine.is_aperiodic(frequency)
            return None
        return RecurrenceEngine.next_occurrence(frequency, scheduled)

    @staticmethod
    def occurrences_between(
        frequency: str,
        anchor: datetime,
        end: datetime,
        limit: int = const.MAX_OCCURRENCE_ITERATIONS,
    ) -> Iterator[datetime]:
        """Yield occurrences strictly after anchor and up to (including) end.

        Used to count how many recurrences were missed since a scheduled time.
        The rule is built on the UTC anchor so every step is a fixed number of
        absolute hours.

        NOTE: rrule truncates microseconds, so the anchor is truncated too.

        Args:
            frequency: One of the const.FREQUENCY_* values
            anchor: First scheduled instant (not yielded)
            end: Last instant to consider
            limit: Safety limit on the number of yielded occurrences

        Raises:
            UnknownFrequencyError: If the frequency is not in the table
        """
        interval = RecurrenceEngine.interval_for(frequency)
        end_utc = as_utc(end)
        anchor_utc = as_utc(anchor).replace(microsecond=0)
        if interval is None or end_utc <= anchor_utc:
            return

        rule = rrule(
            HOURLY,
            interval=RecurrenceEngine.INTERVAL_HOURS[frequency],
            dtstart=anchor_utc,
            until=end_utc,
        )
        count = 0
        for occurrence in rule.xafter(anchor_utc, inc=False):
            if count >= limit:
                const.LOGGER.debug(
                    "RecurrenceEngine: occurrence limit %s reached for %s",
                    limit,
                    frequency,
                )
                return
            yield occurrence
            count += 1

