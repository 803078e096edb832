"""Pydantic schemas for the notification feed."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ..db.schemas import BorrowerCategory

OVERDUE_PREFIX = "overdue-"


def overdue_notification_id(loan_id: str) -> str:
    """Stable feed ID for a loan's overdue notification."""
    return f"{OVERDUE_PREFIX}{loan_id}"


class NotificationType(str, Enum):
    """Severity of a notification."""

    OVERDUE = "overdue"
    WARNING = "warning"
    INFO = "info"


class NotificationRecord(BaseModel):
    """One entry of the notification feed."""

    id: str
    title: str
    message: str
    type: NotificationType
    read: bool = False
    created_at: datetime

    # Loan-derived fields (absent for other notification sources)
    loan_id: Optional[str] = None
    borrower_id: Optional[str] = None
    borrower_name: Optional[str] = None
    borrower_category: Optional[BorrowerCategory] = None
    title_id: Optional[str] = None
    title_name: Optional[str] = None
    copy_code: Optional[str] = None
    due_at: Optional[datetime] = None
    days_overdue: int = 0


@dataclass
class NotificationStateSnapshot:
    """Side-state of one user's feed."""

    read_ids: set[str] = field(default_factory=set)
    deleted_ids: set[str] = field(default_factory=set)
    creation_dates: dict[str, datetime] = field(default_factory=dict)
