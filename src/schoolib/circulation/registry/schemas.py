"""Pydantic schemas for borrower registries."""

from typing import Optional

from pydantic import BaseModel, Field


class StudentCreate(BaseModel):
    """Schema for registering a student."""

    name: str = Field(..., min_length=1, max_length=200)
    class_name: Optional[str] = Field(None, max_length=100)
    guardian_contact: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None


class StudentUpdate(BaseModel):
    """Schema for updating a student."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    class_name: Optional[str] = Field(None, max_length=100)
    guardian_contact: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None


class StaffCreate(BaseModel):
    """Schema for registering a staff member."""

    name: str = Field(..., min_length=1, max_length=200)
    role: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=200)


class StaffUpdate(BaseModel):
    """Schema for updating a staff member."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    role: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=200)
