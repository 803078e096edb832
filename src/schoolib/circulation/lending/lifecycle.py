"""Loan lifecycle transitions.

    open --return--> returned   (terminal)
    open --cancel--> cancelled  (terminal, frees the copy at once)
    open --renew---> open       (due date moved, renewed_at stamped)

Every transition is a single-record write guarded by the loan still
being open, so no lock is needed. Title and copy code are never touched.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from ..db.models import ensure_utc, to_iso, utc_now
from ..db.schemas import BorrowerCategory, LoanStatus
from ..db.sqlite import Database, get_db
from ..errors import AlreadyReturned, InvalidTransition, LoanNotFound
from .ledger import Ledgers, LoanLedger
from .schemas import LoanRecord, ReadingCompletion

logger = logging.getLogger(__name__)


class LoanLifecycle:
    """Applies status transitions to individual loans."""

    def __init__(self, db: Optional[Database] = None, ledgers: Optional[Ledgers] = None):
        """Initialize lifecycle.

        Args:
            db: Database instance
            ledgers: Ledgers to write (built from ``db`` if not given)
        """
        self.db = db or get_db()
        self.ledgers = ledgers or Ledgers(self.db)

    def get_loan(self, loan_id: str) -> LoanRecord:
        """Get a loan from either ledger.

        Raises:
            LoanNotFound: if neither ledger has it
        """
        return self._locate(loan_id)[1]

    def return_loan(
        self,
        loan_id: str,
        completion: Optional[ReadingCompletion] = None,
        now: Optional[datetime] = None,
    ) -> LoanRecord:
        """Mark an open loan as returned.

        Args:
            loan_id: Loan ID
            completion: Reading progress to record with the return
            now: Return time (default: current time)

        Returns:
            Updated loan

        Raises:
            LoanNotFound: if the loan does not exist
            AlreadyReturned: if the loan was returned before
            InvalidTransition: if the loan was cancelled
        """
        returned_at = ensure_utc(now) if now else utc_now()
        values = {
            "status": LoanStatus.RETURNED.value,
            "returned_at": to_iso(returned_at),
        }
        if completion is not None:
            values.update(completion.model_dump(exclude_none=True))

        loan = self._transition(loan_id, "return", values)
        logger.info("Returned loan %s (copy %s of title %s)", loan_id, loan.copy_code, loan.title_id)
        return loan

    def cancel(self, loan_id: str, now: Optional[datetime] = None) -> LoanRecord:
        """Cancel an open loan as if it never happened.

        The copy is free again for the very next availability read.
        """
        cancelled_at = ensure_utc(now) if now else utc_now()
        loan = self._transition(
            loan_id,
            "cancel",
            {"status": LoanStatus.CANCELLED.value, "cancelled_at": to_iso(cancelled_at)},
        )
        logger.info("Cancelled loan %s (copy %s of title %s)", loan_id, loan.copy_code, loan.title_id)
        return loan

    def renew(
        self,
        loan_id: str,
        new_due_at: datetime,
        now: Optional[datetime] = None,
    ) -> LoanRecord:
        """Move an open loan's due date forward.

        Raises:
            ValueError: if ``new_due_at`` is not after ``now``
        """
        current = ensure_utc(now) if now else utc_now()
        new_due_at = ensure_utc(new_due_at)
        if new_due_at <= current:
            raise ValueError("New due date must be in the future")

        loan = self._transition(
            loan_id,
            "renew",
            {"due_at": to_iso(new_due_at), "renewed_at": to_iso(current)},
        )
        logger.info("Renewed loan %s until %s", loan_id, new_due_at.isoformat())
        return loan

    def recalculate_due_dates(
        self,
        duration_days: int,
        category: Optional[BorrowerCategory] = None,
    ) -> int:
        """Re-derive due dates of open loans after the loan duration changed.

        The new due date counts from the last renewal, or from checkout if
        the loan was never renewed. Loans already on ``duration_days`` are
        left alone, and so are loans without a due date (legacy staff rows),
        which never become overdue.

        Returns:
            Number of loans updated
        """
        if duration_days < 1:
            raise ValueError("duration_days must be at least 1")

        updated = 0
        for loan in self.ledgers.open_loans(category=category):
            if loan.due_at is None or loan.loan_duration_days == duration_days:
                continue
            start = loan.renewed_at or loan.opened_at
            ledger = self.ledgers.for_category(loan.borrower_category)
            changed = ledger.update_if_open(
                loan.id,
                {
                    "due_at": to_iso(start + timedelta(days=duration_days)),
                    "loan_duration_days": duration_days,
                },
            )
            if changed:
                updated += 1

        logger.info("Recalculated due dates for %d open loans", updated)
        return updated

    def purge_returned(self, category: Optional[BorrowerCategory] = None) -> int:
        """Delete returned loans from one or both ledgers."""
        ledgers = [self.ledgers.for_category(category)] if category else list(self.ledgers)
        return sum(ledger.purge_returned() for ledger in ledgers)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _locate(self, loan_id: str) -> tuple[LoanLedger, LoanRecord]:
        found = self.ledgers.find(loan_id)
        if found is None:
            raise LoanNotFound(loan_id)
        return found

    def _transition(self, loan_id: str, action: str, values: dict) -> LoanRecord:
        ledger, loan = self._locate(loan_id)
        self._require_open(loan, action)

        if not ledger.update_if_open(loan_id, values):
            # Lost a race with another transition; report what won.
            loan = ledger.get(loan_id)
            if loan is None:
                raise LoanNotFound(loan_id)
            self._require_open(loan, action)

        return ledger.get(loan_id)

    @staticmethod
    def _require_open(loan: LoanRecord, action: str) -> None:
        if loan.status == LoanStatus.OPEN:
            return
        if action == "return" and loan.status == LoanStatus.RETURNED:
            raise AlreadyReturned(loan.id)
        raise InvalidTransition(loan.id, loan.status.value, action)
