# File: helpers/entity_helpers.py
"""Signal naming helpers shared by managers."""

from __future__ import annotations

from .. import const


def get_event_signal(entry_id: str, suffix: str) -> str:
    """Build instance-scoped event signal name for dispatcher.

    Each config entry gets its own signal namespace, so two CareScheduler
    entries never receive each other's events.

    Format: 'carescheduler_{entry_id}_{suffix}'

    Args:
        entry_id: ConfigEntry.entry_id from coordinator
        suffix: Signal suffix constant from const.py

    Example:
        >>> get_event_signal("abc123", const.SIGNAL_SUFFIX_INSTANCE_CREATED)
        'carescheduler_abc123_instance_created'
    """
    return f"{const.SIGNAL_PREFIX}_{entry_id}_{suffix}"
