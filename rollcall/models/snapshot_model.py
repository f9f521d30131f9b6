# /rollcall/models/snapshot_model.py

"""
Response contracts for the full snapshot read and for every mutation.

Each mutation response carries the complete, server-computed slices the
client needs to replace in its cache, never a delta to merge.
"""

from typing import Dict, List

from pydantic import BaseModel, Field

from .attendance_model import AttendanceRecord
from .class_model import ClassSummary
from .student_model import Student


class DataSnapshot(BaseModel):
    """Everything one instructor owns. Every owned class id is a key in both maps."""
    classes: List[ClassSummary]
    studentsByClass: Dict[str, List[Student]] = Field(default_factory=dict)
    attendanceByClass: Dict[str, List[AttendanceRecord]] = Field(default_factory=dict)
    displayName: str
    userId: str


class ClassCreatedResponse(BaseModel):
    classes: List[ClassSummary]
    newClass: ClassSummary


class ClassListResponse(BaseModel):
    classes: List[ClassSummary]


class StudentEnrolledResponse(BaseModel):
    newStudent: Student
    students: List[Student]
    classes: List[ClassSummary]


class StudentDroppedResponse(BaseModel):
    students: List[Student]
    classes: List[ClassSummary]
    attendance: List[AttendanceRecord]


class AttendanceRecordedResponse(BaseModel):
    classes: List[ClassSummary]
    attendance: List[AttendanceRecord]
