"""Overdue notification feed.

There is no notification queue. Each scan derives the feed from the open
loans that are past due, then overlays the user's persisted flags. Only
the read/deleted flags and the first-seen timestamp are stored, so scans
can run as often as the caller likes.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..catalog.models import Title
from ..config import Config, get_config
from ..db.models import ensure_utc, from_iso, to_iso, utc_now
from ..db.schemas import BorrowerCategory
from ..db.sqlite import Database, get_db
from ..lending.ledger import Ledgers
from ..lending.schemas import LoanRecord
from ..registry.manager import RegistryManager
from .models import NotificationState
from .schemas import (
    NotificationRecord,
    NotificationStateSnapshot,
    NotificationType,
    overdue_notification_id,
)

logger = logging.getLogger(__name__)


class OverdueNotifier:
    """Derives the overdue feed and manages its per-user flags."""

    def __init__(
        self,
        db: Optional[Database] = None,
        config: Optional[Config] = None,
        ledgers: Optional[Ledgers] = None,
    ):
        """Initialize notifier.

        Args:
            db: Database instance
            config: Configuration (severity threshold)
            ledgers: Ledgers to read (built from ``db`` if not given)
        """
        self.db = db or get_db()
        self.config = config or get_config()
        self.ledgers = ledgers or Ledgers(self.db)
        self.registry = RegistryManager(self.db)

    # -------------------------------------------------------------------------
    # Feed
    # -------------------------------------------------------------------------

    def scan(
        self,
        user_id: str,
        category: Optional[BorrowerCategory] = None,
        now: Optional[datetime] = None,
        extra: Iterable[NotificationRecord] = (),
    ) -> list[NotificationRecord]:
        """Build the feed for a user.

        Args:
            user_id: Owner of the read/deleted flags
            category: Only loans of this borrower category (default: both)
            now: Evaluation time (default: current time)
            extra: Notifications from other sources to merge in

        Returns:
            Notifications, most recently first-seen first
        """
        now = ensure_utc(now) if now else utc_now()
        state = self.load_state(user_id)

        overdue = [
            loan for loan in self.ledgers.open_loans(category=category) if loan.is_overdue(now)
        ]
        titles = self._title_names({loan.title_id for loan in overdue})
        names = self._borrower_names({loan.borrower_category for loan in overdue})

        feed = [
            n.model_copy(update={"created_at": ensure_utc(n.created_at)}) for n in extra
        ]
        for loan in overdue:
            notification_id = overdue_notification_id(loan.id)
            if notification_id in state.deleted_ids:
                continue

            created_at = state.creation_dates.get(notification_id)
            if created_at is None:
                created_at = self._stamp_first_seen(user_id, notification_id, now)

            feed.append(
                self._build(
                    loan,
                    notification_id,
                    now=now,
                    created_at=created_at,
                    read=notification_id in state.read_ids,
                    title_name=titles.get(loan.title_id),
                    borrower_name=names.get((loan.borrower_category, loan.borrower_id)),
                )
            )

        feed.sort(key=lambda n: (n.created_at, n.days_overdue, n.id), reverse=True)
        logger.debug("Scan for %s produced %d notifications", user_id, len(feed))
        return feed

    def unread_count(
        self,
        user_id: str,
        category: Optional[BorrowerCategory] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Number of unread notifications in the current feed."""
        return sum(1 for n in self.scan(user_id, category=category, now=now) if not n.read)

    # -------------------------------------------------------------------------
    # Flags
    # -------------------------------------------------------------------------

    def mark_read(self, user_id: str, notification_id: str) -> None:
        """Flag a notification as read."""
        self._set_flags(user_id, notification_id, read=True)

    def mark_unread(self, user_id: str, notification_id: str) -> None:
        """Clear a notification's read flag."""
        self._set_flags(user_id, notification_id, read=False)

    def mark_all_read(
        self,
        user_id: str,
        category: Optional[BorrowerCategory] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Flag every unread notification of the current feed as read.

        Returns:
            Number of notifications changed
        """
        unread = [n.id for n in self.scan(user_id, category=category, now=now) if not n.read]
        for notification_id in unread:
            self.mark_read(user_id, notification_id)
        return len(unread)

    def delete(self, user_id: str, notification_id: str) -> None:
        """Hide a notification permanently. The loan is not touched."""
        self._set_flags(user_id, notification_id, deleted=True)

    def load_state(self, user_id: str) -> NotificationStateSnapshot:
        """Read a user's persisted flags."""
        snapshot = NotificationStateSnapshot()
        with self.db.get_session() as session:
            rows = session.execute(
                select(NotificationState).where(NotificationState.user_id == user_id)
            ).scalars().all()
            for row in rows:
                if row.read:
                    snapshot.read_ids.add(row.notification_id)
                if row.deleted:
                    snapshot.deleted_ids.add(row.notification_id)
                if row.created_at:
                    snapshot.creation_dates[row.notification_id] = from_iso(row.created_at)
        return snapshot

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _build(
        self,
        loan: LoanRecord,
        notification_id: str,
        now: datetime,
        created_at: datetime,
        read: bool,
        title_name: Optional[str],
        borrower_name: Optional[str],
    ) -> NotificationRecord:
        days = loan.days_overdue(now)
        book = title_name or "Unknown title"
        who = borrower_name or "Unknown borrower"
        severity = (
            NotificationType.OVERDUE
            if days > self.config.overdue_severe_days
            else NotificationType.WARNING
        )
        return NotificationRecord(
            id=notification_id,
            title=f'{who} is late returning "{book}"',
            message=(
                f"The loan was due on {loan.due_at:%Y-%m-%d}. "
                f"It is {days} day(s) overdue."
            ),
            type=severity,
            read=read,
            created_at=created_at,
            loan_id=loan.id,
            borrower_id=loan.borrower_id,
            borrower_name=borrower_name,
            borrower_category=loan.borrower_category,
            title_id=loan.title_id,
            title_name=title_name,
            copy_code=loan.copy_code,
            due_at=loan.due_at,
            days_overdue=days,
        )

    def _stamp_first_seen(self, user_id: str, notification_id: str, seen_at: datetime) -> datetime:
        """Record the first-seen time unless one is already stored.

        Returns:
            The stored first-seen time (which may predate ``seen_at`` if a
            concurrent scan got there first)
        """
        stamp = to_iso(seen_at)
        try:
            with self.db.get_session() as session:
                row = self._state_row(session, user_id, notification_id)
                if row is None:
                    session.add(
                        NotificationState(
                            user_id=user_id,
                            notification_id=notification_id,
                            created_at=stamp,
                        )
                    )
                    return seen_at

                session.execute(
                    update(NotificationState)
                    .where(
                        NotificationState.id == row.id,
                        NotificationState.created_at.is_(None),
                    )
                    .values(created_at=stamp)
                )
        except IntegrityError:
            logger.debug("First-seen row for %s created concurrently", notification_id)

        stored = self.load_state(user_id).creation_dates.get(notification_id)
        return stored or seen_at

    def _set_flags(self, user_id: str, notification_id: str, **flags: bool) -> None:
        try:
            with self.db.get_session() as session:
                row = self._state_row(session, user_id, notification_id)
                if row is None:
                    session.add(
                        NotificationState(
                            user_id=user_id,
                            notification_id=notification_id,
                            **flags,
                        )
                    )
                else:
                    for name, value in flags.items():
                        setattr(row, name, value)
        except IntegrityError:
            # Row appeared between our read and insert; apply to it instead.
            with self.db.get_session() as session:
                row = self._state_row(session, user_id, notification_id)
                for name, value in flags.items():
                    setattr(row, name, value)

    @staticmethod
    def _state_row(session, user_id: str, notification_id: str) -> Optional[NotificationState]:
        return session.execute(
            select(NotificationState).where(
                NotificationState.user_id == user_id,
                NotificationState.notification_id == notification_id,
            )
        ).scalar_one_or_none()

    def _title_names(self, title_ids: set[str]) -> dict[str, str]:
        if not title_ids:
            return {}
        with self.db.get_session() as session:
            rows = session.execute(
                select(Title.id, Title.name).where(Title.id.in_(title_ids))
            ).all()
            return {row.id: row.name for row in rows}

    def _borrower_names(
        self, categories: set[BorrowerCategory]
    ) -> dict[tuple[BorrowerCategory, str], str]:
        names = {}
        for category in categories:
            for borrower_id, name in self.registry.borrower_names(category).items():
                names[(category, borrower_id)] = name
        return names
