"""Checkout coordination.

Picks a free copy and writes the loan inside the title's lock. The
availability read is repeated under the lock, never reused from an
earlier read.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from ..catalog.codes import normalize_code
from ..config import Config, get_config
from ..db.models import utc_now, ensure_utc
from ..db.schemas import BorrowerCategory
from ..db.sqlite import Database, get_db
from ..errors import CirculationError, NoAvailableCopy
from ..registry.manager import RegistryManager
from .availability import AvailabilityResolver
from .ledger import Ledgers
from .locks import TitleLockTable, get_title_locks
from .schemas import (
    CheckoutBatchResult,
    CheckoutFailure,
    CheckoutRequest,
    LoanRecord,
)

logger = logging.getLogger(__name__)


class CheckoutCoordinator:
    """Creates loans without ever handing out the same copy twice."""

    def __init__(
        self,
        db: Optional[Database] = None,
        config: Optional[Config] = None,
        locks: Optional[TitleLockTable] = None,
    ):
        """Initialize checkout coordinator.

        Args:
            db: Database instance
            config: Configuration (loan duration, lock timeout)
            locks: Lock table (process-wide table if not provided)
        """
        self.db = db or get_db()
        self.config = config or get_config()
        self.locks = locks or get_title_locks()
        self.ledgers = Ledgers(self.db)
        self.resolver = AvailabilityResolver(self.db, self.ledgers)
        self.registry = RegistryManager(self.db)

    def checkout(
        self,
        title_id: str,
        borrower_id: str,
        borrower_category: BorrowerCategory,
        preferred_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LoanRecord:
        """Lend one copy of a title.

        Args:
            title_id: Title to lend
            borrower_id: Student or staff ID
            borrower_category: Which ledger the loan goes to
            preferred_code: Specific copy requested, if any
            now: Checkout time (default: current time)

        Returns:
            The new open loan

        Raises:
            BorrowerNotFound: if the borrower is not registered
            TitleNotFound: if the title does not exist
            NoAvailableCopy: if no copy (or not the preferred one) is free
            CheckoutTimeout: if the title's lock could not be acquired
        """
        category = BorrowerCategory(borrower_category)
        self.registry.require_borrower(borrower_id, category)
        if preferred_code is not None:
            preferred_code = normalize_code(preferred_code)

        opened_at = ensure_utc(now) if now else utc_now()
        duration = self.config.loan_duration_days
        ledger = self.ledgers.for_category(category)

        with self.locks.hold(title_id, timeout=self.config.checkout_lock_timeout):
            snapshot = self.resolver.resolve(title_id)

            if preferred_code is not None:
                if preferred_code not in snapshot.available_codes:
                    raise NoAvailableCopy(title_id, preferred_code)
                code = preferred_code
            else:
                code = snapshot.first_available()
                if code is None:
                    raise NoAvailableCopy(title_id)

            loan = ledger.add(
                title_id=title_id,
                copy_code=code,
                borrower_id=borrower_id,
                opened_at=opened_at,
                due_at=opened_at + timedelta(days=duration),
                loan_duration_days=duration,
            )

        logger.info(
            "Checked out copy %s of title %s to %s %s (loan %s)",
            code,
            title_id,
            category.value,
            borrower_id,
            loan.id,
        )
        return loan

    def checkout_many(
        self,
        requests: Iterable[CheckoutRequest],
        now: Optional[datetime] = None,
    ) -> CheckoutBatchResult:
        """Run several independent checkouts.

        A failure does not undo loans already created; the caller gets
        both lists back.
        """
        result = CheckoutBatchResult()
        for request in requests:
            try:
                loan = self.checkout(
                    title_id=request.title_id,
                    borrower_id=request.borrower_id,
                    borrower_category=request.borrower_category,
                    preferred_code=request.preferred_code,
                    now=now,
                )
            except (CirculationError, ValueError) as e:
                logger.info("Checkout of title %s failed: %s", request.title_id, e)
                result.failures.append(CheckoutFailure(request=request, error=e))
            else:
                result.loans.append(loan)
        return result
