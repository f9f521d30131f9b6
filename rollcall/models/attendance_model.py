# /rollcall/models/attendance_model.py

import datetime
from typing import List

from pydantic import BaseModel, Field


class AttendanceEntry(BaseModel):
    studentId: str
    present: bool


class AttendanceSubmission(BaseModel):
    """
    One attendance sheet for one day. Each entry replaces any earlier mark
    for the same student on the same date; students left out keep theirs.
    """
    date: datetime.date = Field(..., description="Calendar day of the session (YYYY-MM-DD).")
    records: List[AttendanceEntry] = Field(..., description="Present/absent marks for this day.")


class AttendanceRecord(BaseModel):
    classId: str
    studentId: str
    date: datetime.date
    present: bool
