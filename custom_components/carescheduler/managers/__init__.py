"""Manager modules for CareScheduler integration.

Managers orchestrate workflows and coordinate between engines.
They are stateful, event-aware, and handle cross-cutting concerns.
"""

from .base_manager import BaseManager
from .escalation_manager import EscalationManager
from .notification_manager import NotificationManager
from .schedule_manager import ScheduleManager

__all__ = [
    "BaseManager",
    "EscalationManager",
    "NotificationManager",
    "ScheduleManager",
]
