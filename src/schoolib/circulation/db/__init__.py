"""Database module for local SQLite storage."""

from .models import Base, generate_uuid
from .schemas import BorrowerCategory, LoanStatus
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Base",
    "generate_uuid",
    "BorrowerCategory",
    "LoanStatus",
    "Database",
    "get_db",
    "reset_db",
]
