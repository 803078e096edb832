"""Student and staff registries."""

from .manager import RegistryManager
from .models import StaffMember, Student
from .schemas import StaffCreate, StaffUpdate, StudentCreate, StudentUpdate

__all__ = [
    "RegistryManager",
    "Student",
    "StaffMember",
    "StudentCreate",
    "StudentUpdate",
    "StaffCreate",
    "StaffUpdate",
]
