"""Enums shared by every circulation table."""

from enum import Enum


class BorrowerCategory(str, Enum):
    """Which ledger a borrower's loans live in."""

    STUDENT = "student"
    STAFF = "staff"


class LoanStatus(str, Enum):
    """Common loan status tag, whatever the ledger's native schema."""

    OPEN = "open"
    RETURNED = "returned"
    CANCELLED = "cancelled"
