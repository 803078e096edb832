"""Overdue notification feed.

Provides functionality for:
- Deriving overdue notifications from open loans
- Stable notification IDs and first-seen timestamps
- Per-user read and deleted flags
"""

from .models import NotificationState
from .notifier import OverdueNotifier
from .schemas import (
    NotificationRecord,
    NotificationStateSnapshot,
    NotificationType,
    overdue_notification_id,
)

__all__ = [
    "NotificationState",
    "OverdueNotifier",
    "NotificationRecord",
    "NotificationStateSnapshot",
    "NotificationType",
    "overdue_notification_id",
]
