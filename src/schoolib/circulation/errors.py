"""Error types raised by the circulation core.

Every error is recoverable and reaches the caller as a typed exception.
``CheckoutTimeout`` is the only one that signals a system problem rather
than a state of the library.
"""

from typing import Optional


class CirculationError(Exception):
    """Base error for circulation operations."""

    pass


class NotFoundError(CirculationError):
    """A referenced record does not exist."""

    pass


class TitleNotFound(NotFoundError):
    """Catalog title does not exist."""

    def __init__(self, title_id: str):
        super().__init__(f"Title not found: {title_id}")
        self.title_id = title_id


class BorrowerNotFound(NotFoundError):
    """Student or staff member does not exist."""

    def __init__(self, borrower_id: str, category: Optional[str] = None):
        label = f"{category} " if category else ""
        super().__init__(f"Borrower not found: {label}{borrower_id}")
        self.borrower_id = borrower_id
        self.category = category


class LoanNotFound(NotFoundError):
    """Loan does not exist in either ledger."""

    def __init__(self, loan_id: str):
        super().__init__(f"Loan not found: {loan_id}")
        self.loan_id = loan_id


class ConflictError(CirculationError):
    """Operation conflicts with the current loan state."""

    pass


class NoAvailableCopy(ConflictError):
    """No copy of the title (or not the requested one) is free."""

    def __init__(self, title_id: str, code: Optional[str] = None):
        if code:
            message = f"Copy {code} of title {title_id} is not available"
        else:
            message = f"No available copy of title {title_id}"
        super().__init__(message)
        self.title_id = title_id
        self.code = code


class AlreadyReturned(ConflictError):
    """Loan was already returned."""

    def __init__(self, loan_id: str):
        super().__init__(f"Loan already returned: {loan_id}")
        self.loan_id = loan_id


class InvalidTransition(CirculationError):
    """Loan status does not allow the requested transition."""

    def __init__(self, loan_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} loan {loan_id} with status '{status}'")
        self.loan_id = loan_id
        self.status = status
        self.action = action


class InUseError(CirculationError):
    """Copy code is still referenced by an open loan."""

    def __init__(self, title_id: str, code: str):
        super().__init__(f"Copy {code} of title {title_id} is on loan")
        self.title_id = title_id
        self.code = code


class CheckoutTimeout(CirculationError):
    """Checkout lock for a title could not be acquired in time."""

    def __init__(self, title_id: str, timeout: float):
        super().__init__(
            f"Timed out after {timeout:.1f}s waiting to check out title {title_id}"
        )
        self.title_id = title_id
        self.timeout = timeout
