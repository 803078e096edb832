"""SQLAlchemy models for the two loan ledgers.

Tables:
- student_loans: Loans to students, always carrying an explicit status
- staff_loans: Loans to staff; legacy rows may lack status, code and due date
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, generate_uuid, now_iso


class StudentLoan(Base):
    """Student loan record."""

    __tablename__ = "student_loans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    title_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("titles.id"), nullable=False, index=True
    )
    copy_code: Mapped[str] = mapped_column(String(100), nullable=False)
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )

    status: Mapped[str] = mapped_column(String(20), default="open", index=True)

    # Dates (ISO timestamps)
    opened_at: Mapped[str] = mapped_column(String(32), nullable=False)
    due_at: Mapped[str] = mapped_column(String(32), nullable=False)
    returned_at: Mapped[Optional[str]] = mapped_column(String(32))
    renewed_at: Mapped[Optional[str]] = mapped_column(String(32))
    cancelled_at: Mapped[Optional[str]] = mapped_column(String(32))
    loan_duration_days: Mapped[Optional[int]] = mapped_column(Integer)

    # Reading completion, recorded on return
    reading_progress: Mapped[Optional[int]] = mapped_column(Integer)
    completed: Mapped[Optional[bool]] = mapped_column(Boolean)

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    def __repr__(self) -> str:
        return (
            f"<StudentLoan(id={self.id}, title_id={self.title_id}, "
            f"code={self.copy_code}, status={self.status})>"
        )


class StaffLoan(Base):
    """Staff loan record.

    Older rows were written without ``status``, ``copy_code`` or ``due_at``
    and were returned by setting ``returned_at``; the staff ledger maps them
    onto the common status tag.
    """

    __tablename__ = "staff_loans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    title_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("titles.id"), nullable=False, index=True
    )
    copy_code: Mapped[Optional[str]] = mapped_column(String(100))
    staff_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("staff_members.id"), nullable=False, index=True
    )

    status: Mapped[Optional[str]] = mapped_column(String(20))

    opened_at: Mapped[str] = mapped_column(String(32), nullable=False)
    due_at: Mapped[Optional[str]] = mapped_column(String(32))
    returned_at: Mapped[Optional[str]] = mapped_column(String(32))
    renewed_at: Mapped[Optional[str]] = mapped_column(String(32))
    cancelled_at: Mapped[Optional[str]] = mapped_column(String(32))
    loan_duration_days: Mapped[Optional[int]] = mapped_column(Integer)

    reading_progress: Mapped[Optional[int]] = mapped_column(Integer)
    completed: Mapped[Optional[bool]] = mapped_column(Boolean)

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    def __repr__(self) -> str:
        return (
            f"<StaffLoan(id={self.id}, title_id={self.title_id}, "
            f"code={self.copy_code}, status={self.status})>"
        )
