"""Loan ledgers.

Each borrower category keeps its loans in its own table with its own
schema. A ledger maps native rows onto ``LoanRecord`` and the common
``LoanStatus`` tag before anything else sees them.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterator, Optional

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.sql.elements import ColumnElement

from ..db.models import from_iso, to_iso
from ..db.schemas import BorrowerCategory, LoanStatus
from ..db.sqlite import Database, get_db
from .models import StaffLoan, StudentLoan
from .schemas import LoanRecord

logger = logging.getLogger(__name__)


class LoanLedger(ABC):
    """Store of loan records for one borrower category."""

    category: BorrowerCategory
    model: Any
    borrower_column: str

    def __init__(self, db: Optional[Database] = None):
        """Initialize ledger.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    # -------------------------------------------------------------------------
    # Read adapter
    # -------------------------------------------------------------------------

    @abstractmethod
    def status_of(self, row) -> LoanStatus:
        """Map a native row to the common status tag."""

    @abstractmethod
    def open_clause(self) -> ColumnElement[bool]:
        """SQL condition matching rows that ``status_of`` reports as open."""

    def to_record(self, row) -> LoanRecord:
        """Convert a native row into a ``LoanRecord``."""
        return LoanRecord(
            id=row.id,
            title_id=row.title_id,
            copy_code=row.copy_code,
            borrower_id=getattr(row, self.borrower_column),
            borrower_category=self.category,
            status=self.status_of(row),
            opened_at=from_iso(row.opened_at),
            due_at=from_iso(row.due_at),
            returned_at=from_iso(row.returned_at),
            renewed_at=from_iso(row.renewed_at),
            cancelled_at=from_iso(row.cancelled_at),
            loan_duration_days=row.loan_duration_days,
            reading_progress=row.reading_progress,
            completed=row.completed,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, loan_id: str) -> Optional[LoanRecord]:
        """Get a loan by ID.

        Args:
            loan_id: Loan ID

        Returns:
            LoanRecord or None
        """
        with self.db.get_session() as session:
            row = session.get(self.model, loan_id)
            return self.to_record(row) if row else None

    def open_loans(
        self,
        title_id: Optional[str] = None,
        borrower_id: Optional[str] = None,
    ) -> list[LoanRecord]:
        """Open loans, optionally restricted to a title or borrower."""
        stmt = select(self.model).where(self.open_clause())
        stmt = self._filtered(stmt, title_id=title_id, borrower_id=borrower_id)
        with self.db.get_session() as session:
            rows = session.execute(stmt.order_by(self.model.opened_at)).scalars().all()
            return [self.to_record(row) for row in rows]

    def list_loans(
        self,
        status: Optional[LoanStatus] = None,
        title_id: Optional[str] = None,
        borrower_id: Optional[str] = None,
    ) -> list[LoanRecord]:
        """List loans with optional filters, newest first.

        Args:
            status: Filter by common status tag
            title_id: Filter by title
            borrower_id: Filter by borrower

        Returns:
            List of loans
        """
        stmt = self._filtered(select(self.model), title_id=title_id, borrower_id=borrower_id)
        with self.db.get_session() as session:
            rows = session.execute(stmt.order_by(self.model.opened_at.desc())).scalars().all()
            records = [self.to_record(row) for row in rows]
        if status is not None:
            records = [r for r in records if r.status == status]
        return records

    def count_open(self, borrower_id: str) -> int:
        """Number of open loans held by a borrower."""
        borrower = getattr(self.model, self.borrower_column)
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(borrower == borrower_id, self.open_clause())
        )
        with self.db.get_session() as session:
            return session.execute(stmt).scalar() or 0

    def is_code_held(self, title_id: str, code: str) -> bool:
        """Whether an open loan in this ledger references the copy."""
        return any(loan.copy_code == code for loan in self.open_loans(title_id=title_id))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add(
        self,
        title_id: str,
        copy_code: str,
        borrower_id: str,
        opened_at: datetime,
        due_at: datetime,
        loan_duration_days: Optional[int] = None,
    ) -> LoanRecord:
        """Append a new open loan."""
        with self.db.get_session() as session:
            row = self.model(
                title_id=title_id,
                copy_code=copy_code,
                status=LoanStatus.OPEN.value,
                opened_at=to_iso(opened_at),
                due_at=to_iso(due_at),
                loan_duration_days=loan_duration_days,
                **{self.borrower_column: borrower_id},
            )
            session.add(row)
            session.flush()
            return self.to_record(row)

    def update_if_open(self, loan_id: str, values: dict[str, Any]) -> bool:
        """Write ``values`` to the loan only while it is still open.

        The status check and the write are one UPDATE statement, so two
        concurrent transitions on the same loan cannot both succeed.

        Returns:
            True if the row was updated
        """
        stmt = (
            update(self.model)
            .where(self.model.id == loan_id, self.open_clause())
            .values(**values)
        )
        with self.db.get_session() as session:
            return session.execute(stmt).rowcount == 1

    def purge_returned(self) -> int:
        """Delete returned loans. Returns number of rows removed."""
        stmt = delete(self.model).where(self.returned_clause())
        with self.db.get_session() as session:
            count = session.execute(stmt).rowcount
        logger.info("Purged %d returned %s loans", count, self.category.value)
        return count

    @abstractmethod
    def returned_clause(self) -> ColumnElement[bool]:
        """SQL condition matching rows that ``status_of`` reports as returned."""

    def _filtered(self, stmt, title_id: Optional[str], borrower_id: Optional[str]):
        if title_id:
            stmt = stmt.where(self.model.title_id == title_id)
        if borrower_id:
            stmt = stmt.where(getattr(self.model, self.borrower_column) == borrower_id)
        return stmt


class StudentLedger(LoanLedger):
    """Student loans: every row carries an explicit status."""

    category = BorrowerCategory.STUDENT
    model = StudentLoan
    borrower_column = "student_id"

    def status_of(self, row: StudentLoan) -> LoanStatus:
        return LoanStatus(row.status)

    def open_clause(self) -> ColumnElement[bool]:
        return StudentLoan.status == LoanStatus.OPEN.value

    def returned_clause(self) -> ColumnElement[bool]:
        return StudentLoan.status == LoanStatus.RETURNED.value


class StaffLedger(LoanLedger):
    """Staff loans: a missing status means open unless a return was recorded."""

    category = BorrowerCategory.STAFF
    model = StaffLoan
    borrower_column = "staff_id"

    def status_of(self, row: StaffLoan) -> LoanStatus:
        if row.status:
            return LoanStatus(row.status)
        if row.returned_at:
            return LoanStatus.RETURNED
        return LoanStatus.OPEN

    def open_clause(self) -> ColumnElement[bool]:
        return or_(
            StaffLoan.status == LoanStatus.OPEN.value,
            and_(StaffLoan.status.is_(None), StaffLoan.returned_at.is_(None)),
        )

    def returned_clause(self) -> ColumnElement[bool]:
        return or_(
            StaffLoan.status == LoanStatus.RETURNED.value,
            and_(StaffLoan.status.is_(None), StaffLoan.returned_at.isnot(None)),
        )

    def open_loans(
        self,
        title_id: Optional[str] = None,
        borrower_id: Optional[str] = None,
    ) -> list[LoanRecord]:
        """Open staff loans.

        Legacy rows cannot be trusted to carry a status, so this scans every
        row in scope and lets the read adapter decide.
        """
        stmt = self._filtered(select(StaffLoan), title_id=title_id, borrower_id=borrower_id)
        with self.db.get_session() as session:
            rows = session.execute(stmt.order_by(StaffLoan.opened_at)).scalars().all()
            records = [self.to_record(row) for row in rows]
        return [r for r in records if r.is_open]


class Ledgers:
    """The student and staff ledgers over one database."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()
        self.student = StudentLedger(self.db)
        self.staff = StaffLedger(self.db)

    def __iter__(self) -> Iterator[LoanLedger]:
        return iter((self.student, self.staff))

    def for_category(self, category: BorrowerCategory) -> LoanLedger:
        """Ledger holding loans for ``category``."""
        if BorrowerCategory(category) == BorrowerCategory.STUDENT:
            return self.student
        return self.staff

    def find(self, loan_id: str) -> Optional[tuple[LoanLedger, LoanRecord]]:
        """Locate a loan in whichever ledger holds it."""
        for ledger in self:
            record = ledger.get(loan_id)
            if record is not None:
                return ledger, record
        return None

    def open_loans(
        self,
        title_id: Optional[str] = None,
        category: Optional[BorrowerCategory] = None,
    ) -> list[LoanRecord]:
        """Open loans across ledgers (or just one category)."""
        ledgers = [self.for_category(category)] if category else list(self)
        loans: list[LoanRecord] = []
        for ledger in ledgers:
            loans.extend(ledger.open_loans(title_id=title_id))
        return loans

    def count_open(self, borrower_id: str, category: BorrowerCategory) -> int:
        return self.for_category(category).count_open(borrower_id)
