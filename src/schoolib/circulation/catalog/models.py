"""SQLAlchemy models for the catalog.

Tables:
- titles: Catalog entries and their copy code manifests
"""

import json
from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, generate_uuid, now_iso
from .codes import CodeSet


class Title(Base):
    """Title model - one catalog entry owning a set of copy codes."""

    __tablename__ = "titles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[Optional[str]] = mapped_column(String(500))
    codes: Mapped[Optional[str]] = mapped_column(Text)  # JSON array

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    def __repr__(self) -> str:
        return f"<Title(id={self.id}, name='{self.name}')>"

    def get_codes(self) -> CodeSet:
        """Get copy codes as a CodeSet."""
        if self.codes:
            return CodeSet(json.loads(self.codes))
        return CodeSet()

    def set_codes(self, codes: CodeSet) -> None:
        """Set copy codes from a CodeSet."""
        self.codes = json.dumps(codes.sorted()) if len(codes) else None
