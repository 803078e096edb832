"""Pydantic schemas for the catalog."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .codes import normalize_code


class TitleCreate(BaseModel):
    """Schema for creating a title."""

    name: str = Field(..., min_length=1, max_length=500)
    author: Optional[str] = Field(None, max_length=500)
    codes: list[str] = Field(default_factory=list)

    @field_validator("codes")
    @classmethod
    def codes_distinct(cls, v):
        """Validate codes are non-empty and distinct."""
        normalized = [normalize_code(code) for code in v]
        if len(set(normalized)) != len(normalized):
            raise ValueError("codes must be distinct")
        return normalized


class TitleUpdate(BaseModel):
    """Schema for updating title details (codes change through the manager)."""

    name: Optional[str] = Field(None, min_length=1, max_length=500)
    author: Optional[str] = Field(None, max_length=500)


class TitleAvailability(BaseModel):
    """A title together with its currently free copy codes."""

    id: str
    name: str
    author: Optional[str]
    total_codes: int
    available_codes: list[str]

    @property
    def available_count(self) -> int:
        return len(self.available_codes)
