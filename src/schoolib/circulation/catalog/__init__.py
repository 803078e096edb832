"""Catalog titles and copy codes."""

from .codes import CodeSet, next_generated_codes, normalize_code
from .manager import CatalogManager
from .models import Title
from .schemas import TitleAvailability, TitleCreate, TitleUpdate

__all__ = [
    "CodeSet",
    "next_generated_codes",
    "normalize_code",
    "CatalogManager",
    "Title",
    "TitleAvailability",
    "TitleCreate",
    "TitleUpdate",
]
