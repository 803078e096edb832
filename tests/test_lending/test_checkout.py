"""Tests for CheckoutCoordinator."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from schoolib.circulation.catalog import CatalogManager, TitleCreate
from schoolib.circulation.db import BorrowerCategory, LoanStatus
from schoolib.circulation.errors import (
    BorrowerNotFound,
    CheckoutTimeout,
    NoAvailableCopy,
    TitleNotFound,
)
from schoolib.circulation.lending import (
    AvailabilityResolver,
    CheckoutCoordinator,
    CheckoutRequest,
    TitleLockTable,
)
from schoolib.circulation.registry import RegistryManager, StudentCreate

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def coordinator(db, config, locks):
    return CheckoutCoordinator(db, config, locks)


class TestCheckout:
    """Tests for single checkouts."""

    def test_checkout_picks_smallest_code(self, coordinator, title, student):
        """Test copies are handed out in code order until none are left."""
        first = coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)
        second = coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)

        assert first.copy_code == "A"
        assert second.copy_code == "B"

        with pytest.raises(NoAvailableCopy) as exc_info:
            coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)
        assert exc_info.value.code is None

    def test_checkout_record(self, coordinator, title, student):
        """Test the new loan's fields."""
        loan = coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)

        assert loan.status == LoanStatus.OPEN
        assert loan.title_id == title.id
        assert loan.borrower_id == student.id
        assert loan.borrower_category == BorrowerCategory.STUDENT
        assert loan.opened_at == NOW
        assert loan.due_at == NOW + timedelta(days=30)
        assert loan.loan_duration_days == 30

    def test_checkout_uses_configured_duration(self, db, config, locks, title, student):
        config.loan_duration_days = 14
        loan = CheckoutCoordinator(db, config, locks).checkout(
            title.id, student.id, BorrowerCategory.STUDENT, now=NOW
        )

        assert loan.due_at == NOW + timedelta(days=14)

    def test_checkout_staff(self, coordinator, db, title, staff_member):
        """Test staff loans go to the staff ledger."""
        loan = coordinator.checkout(title.id, staff_member.id, BorrowerCategory.STAFF, now=NOW)

        assert loan.borrower_category == BorrowerCategory.STAFF
        assert coordinator.ledgers.staff.get(loan.id) is not None
        assert coordinator.ledgers.student.get(loan.id) is None

    def test_checkout_preferred_code(self, coordinator, title, student):
        loan = coordinator.checkout(
            title.id, student.id, BorrowerCategory.STUDENT, preferred_code=" B ", now=NOW
        )

        assert loan.copy_code == "B"

    def test_checkout_preferred_code_taken(self, coordinator, title, student, staff_member):
        """Test a held preferred copy is refused even if another is free."""
        coordinator.checkout(
            title.id, staff_member.id, BorrowerCategory.STAFF, preferred_code="A", now=NOW
        )

        with pytest.raises(NoAvailableCopy) as exc_info:
            coordinator.checkout(
                title.id, student.id, BorrowerCategory.STUDENT, preferred_code="A", now=NOW
            )
        assert exc_info.value.code == "A"

    def test_checkout_preferred_code_unknown(self, coordinator, title, student):
        with pytest.raises(NoAvailableCopy):
            coordinator.checkout(
                title.id, student.id, BorrowerCategory.STUDENT, preferred_code="Z", now=NOW
            )

    def test_checkout_title_without_codes(self, coordinator, catalog, student):
        title = catalog.create_title(TitleCreate(name="Not Yet Shelved"))

        with pytest.raises(NoAvailableCopy):
            coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)

    def test_checkout_unknown_borrower(self, coordinator, title):
        with pytest.raises(BorrowerNotFound):
            coordinator.checkout(title.id, "ghost", BorrowerCategory.STUDENT, now=NOW)

    def test_checkout_wrong_category(self, coordinator, title, student):
        """Test a student ID is not a staff ID."""
        with pytest.raises(BorrowerNotFound):
            coordinator.checkout(title.id, student.id, BorrowerCategory.STAFF, now=NOW)

    def test_checkout_unknown_title(self, coordinator, student):
        with pytest.raises(TitleNotFound):
            coordinator.checkout("nope", student.id, BorrowerCategory.STUDENT, now=NOW)

    def test_checkout_lock_timeout(self, db, config, title, student):
        """Test a held title lock surfaces as CheckoutTimeout."""
        locks = TitleLockTable()
        config.checkout_lock_timeout = 0.05
        coordinator = CheckoutCoordinator(db, config, locks)

        with locks.hold(title.id):
            with pytest.raises(CheckoutTimeout):
                coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)

    def test_no_limit_on_loans_per_borrower(self, db, config, locks, catalog, student):
        """Test the per-borrower limit is not enforced by checkout itself."""
        config.max_loans_per_borrower = 1
        title = catalog.create_title(TitleCreate(name="Stack", codes=["S1", "S2", "S3"]))
        coordinator = CheckoutCoordinator(db, config, locks)

        loans = [
            coordinator.checkout(title.id, student.id, BorrowerCategory.STUDENT, now=NOW)
            for _ in range(3)
        ]
        assert [l.copy_code for l in loans] == ["S1", "S2", "S3"]


class TestConcurrentCheckout:
    """Tests for checkouts racing on the same title."""

    def test_single_copy_lent_once(self, file_db, config, locks):
        """Test only one of many concurrent checkouts gets the last copy."""
        title = CatalogManager(file_db).create_title(TitleCreate(name="Rare", codes=["ONLY"]))
        registry = RegistryManager(file_db)
        students = [
            registry.create_student(StudentCreate(name=f"Student {i}")) for i in range(8)
        ]
        coordinator = CheckoutCoordinator(file_db, config, locks)

        def attempt(student_id):
            try:
                return coordinator.checkout(title.id, student_id, BorrowerCategory.STUDENT)
            except NoAvailableCopy:
                return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, [s.id for s in students]))

        loans = [r for r in results if r is not None]
        assert len(loans) == 1
        assert loans[0].copy_code == "ONLY"
        assert AvailabilityResolver(file_db).compute_available(title.id) == set()

    def test_concurrent_checkouts_get_distinct_codes(self, file_db, config, locks):
        """Test N copies go to N borrowers with no duplicates."""
        codes = [f"C{i}" for i in range(5)]
        title = CatalogManager(file_db).create_title(TitleCreate(name="Popular", codes=codes))
        registry = RegistryManager(file_db)
        students = [
            registry.create_student(StudentCreate(name=f"Reader {i}")) for i in range(10)
        ]
        coordinator = CheckoutCoordinator(file_db, config, locks)

        def attempt(student_id):
            try:
                return coordinator.checkout(title.id, student_id, BorrowerCategory.STUDENT)
            except NoAvailableCopy:
                return None

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(attempt, [s.id for s in students]))

        lent = [r.copy_code for r in results if r is not None]
        assert sorted(lent) == codes


class TestCheckoutMany:
    """Tests for multi-item checkout."""

    def test_all_succeed(self, coordinator, catalog, title, student):
        other = catalog.create_title(TitleCreate(name="Frindle", codes=["F1"]))
        result = coordinator.checkout_many(
            [
                CheckoutRequest(
                    title_id=title.id,
                    borrower_id=student.id,
                    borrower_category=BorrowerCategory.STUDENT,
                ),
                CheckoutRequest(
                    title_id=other.id,
                    borrower_id=student.id,
                    borrower_category=BorrowerCategory.STUDENT,
                ),
            ],
            now=NOW,
        )

        assert result.success
        assert not result.partial
        assert [l.copy_code for l in result.loans] == ["A", "F1"]

    def test_partial_success_keeps_loans(self, coordinator, catalog, title, student):
        """Test a failing item does not undo the others."""
        lent_out = catalog.create_title(TitleCreate(name="Gone", codes=["G1"]))
        coordinator.checkout(lent_out.id, student.id, BorrowerCategory.STUDENT, now=NOW)

        result = coordinator.checkout_many(
            [
                CheckoutRequest(
                    title_id=title.id,
                    borrower_id=student.id,
                    borrower_category=BorrowerCategory.STUDENT,
                ),
                CheckoutRequest(
                    title_id=lent_out.id,
                    borrower_id=student.id,
                    borrower_category=BorrowerCategory.STUDENT,
                ),
                CheckoutRequest(
                    title_id="nope",
                    borrower_id=student.id,
                    borrower_category=BorrowerCategory.STUDENT,
                ),
            ],
            now=NOW,
        )

        assert result.partial
        assert not result.success
        assert len(result.loans) == 1
        assert isinstance(result.failures[0].error, NoAvailableCopy)
        assert isinstance(result.failures[1].error, TitleNotFound)
        assert "nope" in result.failures[1].message
        assert coordinator.ledgers.student.get(result.loans[0].id).is_open
