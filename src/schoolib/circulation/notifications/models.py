"""SQLAlchemy models for notification side-state.

Tables:
- notification_states: Read/deleted flags and first-seen time per user and notification
"""

from typing import Optional

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, now_iso


class NotificationState(Base):
    """Persisted flags for one derived notification, for one user.

    The notification itself is recomputed from loan data on every scan;
    only these flags and the first-seen timestamp survive between scans.
    """

    __tablename__ = "notification_states"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    notification_id: Mapped[str] = mapped_column(String(100))
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[Optional[str]] = mapped_column(String(32))  # first seen
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    __table_args__ = (
        UniqueConstraint("user_id", "notification_id", name="uq_notification_state_user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationState(user_id={self.user_id}, "
            f"notification_id={self.notification_id}, read={self.read}, deleted={self.deleted})>"
        )
