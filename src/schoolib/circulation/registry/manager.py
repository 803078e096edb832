"""Registry manager for students and staff."""

from typing import Optional, Union

from sqlalchemy import func, select

from ..db.schemas import BorrowerCategory
from ..db.sqlite import Database, get_db
from ..errors import BorrowerNotFound
from .models import StaffMember, Student
from .schemas import StaffCreate, StaffUpdate, StudentCreate, StudentUpdate

Borrower = Union[Student, StaffMember]


class RegistryManager:
    """Manages borrower records."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize registry manager.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    # -------------------------------------------------------------------------
    # Students
    # -------------------------------------------------------------------------

    def create_student(self, data: StudentCreate) -> Student:
        """Register a student.

        Args:
            data: Student creation data

        Returns:
            Created student
        """
        with self.db.get_session() as session:
            student = Student(
                name=data.name,
                class_name=data.class_name,
                guardian_contact=data.guardian_contact,
                notes=data.notes,
            )
            session.add(student)
            session.commit()
            session.refresh(student)
            session.expunge(student)
            return student

    def get_student(self, student_id: str) -> Optional[Student]:
        """Get a student by ID."""
        return self._get(Student, student_id)

    def list_students(self, class_name: Optional[str] = None) -> list[Student]:
        """List students, optionally for a single class."""
        with self.db.get_session() as session:
            stmt = select(Student).order_by(Student.name)
            if class_name:
                stmt = stmt.where(func.lower(Student.class_name) == class_name.lower())
            students = session.execute(stmt).scalars().all()
            for s in students:
                session.expunge(s)
            return list(students)

    def update_student(self, student_id: str, data: StudentUpdate) -> Optional[Student]:
        """Update a student. Returns None if not found."""
        return self._update(Student, student_id, data.model_dump(exclude_unset=True))

    def delete_student(self, student_id: str) -> bool:
        """Delete a student with no open loans.

        Raises:
            ValueError: if the student still holds a loan
        """
        return self._delete(Student, student_id, BorrowerCategory.STUDENT)

    # -------------------------------------------------------------------------
    # Staff
    # -------------------------------------------------------------------------

    def create_staff(self, data: StaffCreate) -> StaffMember:
        """Register a staff member."""
        with self.db.get_session() as session:
            member = StaffMember(name=data.name, role=data.role, email=data.email)
            session.add(member)
            session.commit()
            session.refresh(member)
            session.expunge(member)
            return member

    def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        """Get a staff member by ID."""
        return self._get(StaffMember, staff_id)

    def list_staff(self) -> list[StaffMember]:
        """List staff members by name."""
        with self.db.get_session() as session:
            members = session.execute(
                select(StaffMember).order_by(StaffMember.name)
            ).scalars().all()
            for m in members:
                session.expunge(m)
            return list(members)

    def update_staff(self, staff_id: str, data: StaffUpdate) -> Optional[StaffMember]:
        """Update a staff member. Returns None if not found."""
        return self._update(StaffMember, staff_id, data.model_dump(exclude_unset=True))

    def delete_staff(self, staff_id: str) -> bool:
        """Delete a staff member with no open loans."""
        return self._delete(StaffMember, staff_id, BorrowerCategory.STAFF)

    # -------------------------------------------------------------------------
    # Borrower lookups
    # -------------------------------------------------------------------------

    def get_borrower(self, borrower_id: str, category: BorrowerCategory) -> Optional[Borrower]:
        """Get a student or staff member depending on ``category``."""
        if BorrowerCategory(category) == BorrowerCategory.STUDENT:
            return self.get_student(borrower_id)
        return self.get_staff(borrower_id)

    def require_borrower(self, borrower_id: str, category: BorrowerCategory) -> Borrower:
        """Like ``get_borrower`` but raises ``BorrowerNotFound``."""
        borrower = self.get_borrower(borrower_id, category)
        if borrower is None:
            raise BorrowerNotFound(borrower_id, BorrowerCategory(category).value)
        return borrower

    def borrower_names(self, category: BorrowerCategory) -> dict[str, str]:
        """Map of borrower ID to name for one category."""
        model = Student if BorrowerCategory(category) == BorrowerCategory.STUDENT else StaffMember
        with self.db.get_session() as session:
            rows = session.execute(select(model.id, model.name)).all()
            return {row.id: row.name for row in rows}

    def open_loan_count(self, borrower_id: str, category: BorrowerCategory) -> int:
        """Open loans currently held by the borrower."""
        from ..lending.ledger import Ledgers

        return Ledgers(self.db).count_open(borrower_id, BorrowerCategory(category))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get(self, model, record_id: str):
        with self.db.get_session() as session:
            record = session.get(model, record_id)
            if record:
                session.expunge(record)
            return record

    def _update(self, model, record_id: str, update_data: dict):
        with self.db.get_session() as session:
            record = session.get(model, record_id)
            if not record:
                return None

            for field, value in update_data.items():
                if hasattr(record, field):
                    setattr(record, field, value)

            session.commit()
            session.refresh(record)
            session.expunge(record)
            return record

    def _delete(self, model, record_id: str, category: BorrowerCategory) -> bool:
        if self.open_loan_count(record_id, category) > 0:
            raise ValueError("Cannot delete borrower with open loans")

        with self.db.get_session() as session:
            record = session.get(model, record_id)
            if not record:
                return False
            session.delete(record)
            return True
