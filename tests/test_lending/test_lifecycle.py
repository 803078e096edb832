"""Tests for LoanLifecycle."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from schoolib.circulation.catalog import CatalogManager, TitleCreate
from schoolib.circulation.db import BorrowerCategory, LoanStatus
from schoolib.circulation.db.models import to_iso
from schoolib.circulation.errors import AlreadyReturned, InvalidTransition, LoanNotFound
from schoolib.circulation.lending import (
    AvailabilityResolver,
    CheckoutCoordinator,
    LoanLifecycle,
    ReadingCompletion,
    StaffLoan,
)
from schoolib.circulation.notifications import OverdueNotifier
from schoolib.circulation.registry import RegistryManager, StudentCreate

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def coordinator(db, config, locks):
    return CheckoutCoordinator(db, config, locks)


@pytest.fixture
def lifecycle(db):
    return LoanLifecycle(db)


@pytest.fixture
def open_loan(coordinator, title, student):
    """An open student loan on copy A."""
    return coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)


class TestReturn:
    """Tests for returning loans."""

    def test_return_loan(self, lifecycle, open_loan, db, title):
        """Test return closes the loan and frees the copy."""
        later = NOW + timedelta(days=3)
        loan = lifecycle.return_loan(open_loan.id, now=later)

        assert loan.status == LoanStatus.RETURNED
        assert loan.returned_at == later
        assert loan.copy_code == "A"
        assert loan.title_id == title.id
        assert AvailabilityResolver(db).compute_available(title.id) == {"A", "B"}

    def test_return_with_completion(self, lifecycle, open_loan):
        """Test reading progress is stored with the return."""
        loan = lifecycle.return_loan(
            open_loan.id,
            completion=ReadingCompletion(reading_progress=80, completed=False),
            now=NOW,
        )

        assert loan.reading_progress == 80
        assert loan.completed is False

    def test_return_twice(self, lifecycle, open_loan):
        """Test a second return raises AlreadyReturned and changes nothing."""
        first = lifecycle.return_loan(open_loan.id, now=NOW)

        with pytest.raises(AlreadyReturned):
            lifecycle.return_loan(open_loan.id, now=NOW + timedelta(days=1))
        assert lifecycle.get_loan(open_loan.id).returned_at == first.returned_at

    def test_return_cancelled(self, lifecycle, open_loan):
        lifecycle.cancel(open_loan.id, now=NOW)

        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle.return_loan(open_loan.id, now=NOW)
        assert exc_info.value.status == "cancelled"

    def test_return_missing(self, lifecycle):
        with pytest.raises(LoanNotFound):
            lifecycle.return_loan("nope")

    def test_return_legacy_staff_loan(self, db, lifecycle, title, staff_member):
        """Test a staff row without status can be returned."""
        with db.get_session() as session:
            row = StaffLoan(
                title_id=title.id,
                staff_id=staff_member.id,
                copy_code="B",
                opened_at=to_iso(NOW - timedelta(days=60)),
            )
            session.add(row)
            session.flush()
            loan_id = row.id

        loan = lifecycle.return_loan(loan_id, now=NOW)

        assert loan.status == LoanStatus.RETURNED
        assert loan.borrower_category == BorrowerCategory.STAFF


class TestConcurrentReturn:
    """Tests for returns racing on the same loan."""

    def test_only_one_return_wins(self, file_db, config, locks):
        """Test parallel returns of one loan succeed once and report the rest as already returned."""
        title = CatalogManager(file_db).create_title(TitleCreate(name="Holes", codes=["H1"]))
        student = RegistryManager(file_db).create_student(StudentCreate(name="Sam Lee"))
        loan = CheckoutCoordinator(file_db, config, locks).checkout(
            title.id, student.id, BorrowerCategory.STUDENT, now=NOW
        )
        lifecycle = LoanLifecycle(file_db)

        def attempt(_):
            try:
                lifecycle.return_loan(loan.id, now=NOW)
                return "ok"
            except AlreadyReturned:
                return "already"

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(8)))

        assert results.count("ok") == 1
        assert results.count("already") == 7
        assert lifecycle.get_loan(loan.id).status == LoanStatus.RETURNED

class TestCancel:
    """Tests for cancelling loans."""

    def test_cancel_frees_copy(self, lifecycle, open_loan, db, title):
        """Test a cancelled copy is available on the next read."""
        resolver = AvailabilityResolver(db)
        assert "A" not in resolver.compute_available(title.id)

        loan = lifecycle.cancel(open_loan.id, now=NOW)

        assert loan.status == LoanStatus.CANCELLED
        assert loan.cancelled_at == NOW
        assert "A" in resolver.compute_available(title.id)

    def test_cancel_then_checkout_again(self, lifecycle, coordinator, open_loan, title, student):
        lifecycle.cancel(open_loan.id, now=NOW)

        again = coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)
        assert again.copy_code == "A"
        assert again.id != open_loan.id

    def test_cancel_returned(self, lifecycle, open_loan):
        lifecycle.return_loan(open_loan.id, now=NOW)

        with pytest.raises(InvalidTransition):
            lifecycle.cancel(open_loan.id)

    def test_cancel_twice(self, lifecycle, open_loan):
        lifecycle.cancel(open_loan.id, now=NOW)

        with pytest.raises(InvalidTransition):
            lifecycle.cancel(open_loan.id)


class TestRenew:
    """Tests for renewing loans."""

    def test_renew(self, lifecycle, open_loan):
        """Test renewal moves the due date and stamps renewed_at."""
        new_due = NOW + timedelta(days=60)
        loan = lifecycle.renew(open_loan.id, new_due, now=NOW + timedelta(days=5))

        assert loan.status == LoanStatus.OPEN
        assert loan.due_at == new_due
        assert loan.renewed_at == NOW + timedelta(days=5)
        assert loan.copy_code == open_loan.copy_code

    def test_renew_past_date_rejected(self, lifecycle, open_loan):
        """Test the new due date must be after now."""
        with pytest.raises(ValueError, match="future"):
            lifecycle.renew(open_loan.id, NOW - timedelta(days=1), now=NOW)
        with pytest.raises(ValueError):
            lifecycle.renew(open_loan.id, NOW, now=NOW)

        assert lifecycle.get_loan(open_loan.id).due_at == open_loan.due_at

    def test_renew_naive_datetime_is_utc(self, lifecycle, open_loan):
        loan = lifecycle.renew(open_loan.id, datetime(2026, 6, 1), now=NOW)

        assert loan.due_at == datetime(2026, 6, 1, tzinfo=timezone.utc)

    def test_renew_returned(self, lifecycle, open_loan):
        lifecycle.return_loan(open_loan.id, now=NOW)

        with pytest.raises(InvalidTransition):
            lifecycle.renew(open_loan.id, NOW + timedelta(days=10), now=NOW)


class TestMaintenance:
    """Tests for bulk maintenance operations."""

    def test_recalculate_due_dates(self, lifecycle, open_loan):
        """Test open loans move to the new duration."""
        updated = lifecycle.recalculate_due_dates(14)

        assert updated == 1
        loan = lifecycle.get_loan(open_loan.id)
        assert loan.due_at == NOW + timedelta(days=14)
        assert loan.loan_duration_days == 14

    def test_recalculate_counts_from_renewal(self, lifecycle, open_loan):
        renewed_at = NOW + timedelta(days=10)
        lifecycle.renew(open_loan.id, NOW + timedelta(days=90), now=renewed_at)

        lifecycle.recalculate_due_dates(7)

        assert lifecycle.get_loan(open_loan.id).due_at == renewed_at + timedelta(days=7)

    def test_recalculate_skips_same_duration_and_closed(self, lifecycle, coordinator, title, student):
        """Test loans already on the duration and closed loans are untouched."""
        current = coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)
        closed = coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)
        lifecycle.return_loan(closed.id, now=NOW)

        assert lifecycle.recalculate_due_dates(30) == 0
        assert lifecycle.recalculate_due_dates(10) == 1
        assert lifecycle.get_loan(closed.id).due_at == closed.due_at
        assert lifecycle.get_loan(current.id).loan_duration_days == 10

    def test_recalculate_leaves_legacy_staff_loans(self, db, config, lifecycle, title, staff_member):
        """Test a staff row without a due date keeps none and stays off the overdue feed."""
        with db.get_session() as session:
            row = StaffLoan(
                title_id=title.id,
                staff_id=staff_member.id,
                copy_code="B",
                opened_at=to_iso(NOW - timedelta(days=90)),
            )
            session.add(row)
            session.flush()
            loan_id = row.id

        assert lifecycle.recalculate_due_dates(30) == 0

        loan = lifecycle.get_loan(loan_id)
        assert loan.due_at is None
        assert loan.is_open
        assert OverdueNotifier(db, config).scan("librarian", now=NOW) == []

    def test_recalculate_invalid_duration(self, lifecycle):
        with pytest.raises(ValueError):
            lifecycle.recalculate_due_dates(0)

    def test_purge_returned(self, lifecycle, coordinator, title, student, staff_member):
        """Test purge removes only returned loans from both ledgers."""
        kept = coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)
        gone = coordinator.checkout(title.id, staff_member.id, BorrowerCategory.STAFF, now=NOW)
        lifecycle.return_loan(gone.id, now=NOW)

        assert lifecycle.purge_returned() == 1
        with pytest.raises(LoanNotFound):
            lifecycle.get_loan(gone.id)
        assert lifecycle.get_loan(kept.id).is_open

    def test_purge_returned_by_category(self, lifecycle, coordinator, title, student):
        loan = coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)
        lifecycle.return_loan(loan.id, now=NOW)

        assert lifecycle.purge_returned(BorrowerCategory.STAFF) == 0
        assert lifecycle.purge_returned(BorrowerCategory.STUDENT) == 1
