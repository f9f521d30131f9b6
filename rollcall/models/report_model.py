# /rollcall/models/report_model.py

import datetime
from typing import List

from pydantic import BaseModel

from .class_model import ClassStats


class SessionMark(BaseModel):
    studentId: str
    studentName: str
    present: bool


class SessionReport(BaseModel):
    """All marks taken on one date."""
    date: datetime.date
    presentCount: int
    absentCount: int
    records: List[SessionMark]


class StudentAttendanceSummary(BaseModel):
    studentId: str
    name: str
    registrationNumber: str
    presentCount: int
    totalCount: int
    attendanceRate: int


class ClassReport(BaseModel):
    """The per-class attendance report: sessions newest first, then one line per student."""
    classId: str
    name: str
    stats: ClassStats
    sessions: List[SessionReport]
    students: List[StudentAttendanceSummary]
