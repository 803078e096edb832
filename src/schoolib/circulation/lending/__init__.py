"""Loan ledgers, availability and the loan lifecycle.

Provides functionality for:
- Student and staff loan ledgers behind one record shape
- Per-copy availability derived from open loans
- Serialized checkout of copies
- Return, cancellation and renewal of loans
"""

from .availability import AvailabilityResolver, AvailabilitySnapshot, IntegrityIssue
from .checkout import CheckoutCoordinator
from .ledger import Ledgers, LoanLedger, StaffLedger, StudentLedger
from .lifecycle import LoanLifecycle
from .locks import TitleLockTable, get_title_locks
from .models import StaffLoan, StudentLoan
from .schemas import (
    CheckoutBatchResult,
    CheckoutFailure,
    CheckoutRequest,
    LoanRecord,
    ReadingCompletion,
)

__all__ = [
    "AvailabilityResolver",
    "AvailabilitySnapshot",
    "IntegrityIssue",
    "CheckoutCoordinator",
    "Ledgers",
    "LoanLedger",
    "StaffLedger",
    "StudentLedger",
    "LoanLifecycle",
    "TitleLockTable",
    "get_title_locks",
    "StaffLoan",
    "StudentLoan",
    "CheckoutBatchResult",
    "CheckoutFailure",
    "CheckoutRequest",
    "LoanRecord",
    "ReadingCompletion",
]
