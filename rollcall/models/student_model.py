# /rollcall/models/student_model.py

# --- Core Imports ---
from pydantic import BaseModel, Field


class StudentBase(BaseModel):
    """Fields common to enrolling and reading a student."""
    name: str = Field(..., description="The full name of the student.")
    registrationNumber: str = Field(..., description="The instructor-provided registration number.")


class StudentCreate(StudentBase):
    """The payload for enrolling a student. Both fields are trimmed by the service."""
    pass


class Student(StudentBase):
    """A student as stored in the ledger and returned by the API."""
    id: str = Field(..., description="The unique, server-generated identifier for the student.")
    classId: str = Field(..., description="The ID of the class this student belongs to.")
