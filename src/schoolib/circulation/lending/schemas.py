"""Pydantic schemas and result types for lending."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..db.schemas import BorrowerCategory, LoanStatus

SECONDS_PER_DAY = 24 * 60 * 60


class LoanRecord(BaseModel):
    """A loan as seen past the ledger boundary.

    Both ledgers map their native rows to this shape, so nothing downstream
    needs to know which schema a loan came from.
    """

    id: str
    title_id: str
    copy_code: Optional[str]
    borrower_id: str
    borrower_category: BorrowerCategory
    status: LoanStatus
    opened_at: datetime
    due_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    renewed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    loan_duration_days: Optional[int] = None
    reading_progress: Optional[int] = None
    completed: Optional[bool] = None

    @property
    def is_open(self) -> bool:
        return self.status == LoanStatus.OPEN

    def is_overdue(self, now: datetime) -> bool:
        """Open and past its due date at ``now``."""
        return self.is_open and self.due_at is not None and self.due_at < now

    def days_overdue(self, now: datetime) -> int:
        """Whole days late, rounded up (0 if not overdue)."""
        if not self.is_overdue(now):
            return 0
        return math.ceil((now - self.due_at).total_seconds() / SECONDS_PER_DAY)


class ReadingCompletion(BaseModel):
    """Optional reading metadata captured when a loan is returned."""

    reading_progress: Optional[int] = Field(None, ge=0, le=100)
    completed: Optional[bool] = None


class CheckoutRequest(BaseModel):
    """One title in a multi-item checkout."""

    title_id: str
    borrower_id: str
    borrower_category: BorrowerCategory
    preferred_code: Optional[str] = None


@dataclass
class CheckoutFailure:
    """A checkout in a batch that did not produce a loan."""

    request: CheckoutRequest
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class CheckoutBatchResult:
    """Result of a multi-item checkout.

    Loans created before a failure stay in place, so partial success is a
    normal outcome.
    """

    loans: list[LoanRecord] = field(default_factory=list)
    failures: list[CheckoutFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.failures) == 0

    @property
    def partial(self) -> bool:
        return bool(self.loans) and bool(self.failures)
