"""SQLAlchemy models for borrower registries.

Tables:
- students: Students who borrow through the student ledger
- staff_members: Teachers and staff who borrow through the staff ledger
"""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, generate_uuid, now_iso


class Student(Base):
    """Student model."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    class_name: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    guardian_contact: Mapped[Optional[str]] = mapped_column(String(200))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, name='{self.name}')>"


class StaffMember(Base):
    """Staff member model."""

    __tablename__ = "staff_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    role: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[Optional[str]] = mapped_column(String(200))

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    def __repr__(self) -> str:
        return f"<StaffMember(id={self.id}, name='{self.name}')>"
