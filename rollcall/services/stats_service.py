# /rollcall/services/stats_service.py

"""
The statistics aggregator.

Every function here is pure: it takes the students and attendance records of
one class (ORM rows, pydantic models or anything exposing the same
attributes) and returns derived numbers without touching the database. The
mutation service calls `compute_stats` after each write; the report and
export endpoints use the session and student breakdowns.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence

import pandas as pd

from ..models.class_model import ClassStats
from ..models.report_model import SessionMark, SessionReport, StudentAttendanceSummary

UNKNOWN_STUDENT = "Unknown Student"

EXPORT_COLUMNS = ["Date", "Student Name", "Registration Number", "Status"]


def attendance_rate(present: int, total: int) -> int:
    """
    Percentage of `present` out of `total`, rounded half up, in [0, 100].
    Integer arithmetic keeps e.g. 1/8 -> 12.5 -> 13 exact.
    """
    if total <= 0:
        return 0
    rate = (200 * present + total) // (2 * total)
    return max(0, min(100, rate))


def compute_stats(students: Sequence, records: Sequence) -> ClassStats:
    """Derives {studentCount, sessionCount, attendanceRate} for one class."""
    present = sum(1 for record in records if record.present is True)
    return ClassStats(
        studentCount=len(students),
        sessionCount=len({record.date for record in records}),
        attendanceRate=attendance_rate(present, len(records)),
    )


def _field(obj, snake: str, camel: str):
    # ORM rows use snake_case attributes, API models use camelCase.
    return getattr(obj, snake) if hasattr(obj, snake) else getattr(obj, camel)


def _record_student_id(record) -> str:
    return _field(record, "student_id", "studentId")


def summarize_sessions(students: Iterable, records: Iterable) -> List[SessionReport]:
    """Groups attendance by date, newest session first."""
    names = {student.id: student.name for student in students}
    by_date: Dict = defaultdict(list)
    for record in records:
        by_date[record.date].append(record)

    sessions = []
    for session_date in sorted(by_date, reverse=True):
        day_records = by_date[session_date]
        marks = [
            SessionMark(
                studentId=_record_student_id(record),
                studentName=names.get(_record_student_id(record), UNKNOWN_STUDENT),
                present=bool(record.present),
            )
            for record in day_records
        ]
        marks.sort(key=lambda mark: (mark.studentName, mark.studentId))
        present_count = sum(1 for mark in marks if mark.present)
        sessions.append(SessionReport(
            date=session_date,
            presentCount=present_count,
            absentCount=len(marks) - present_count,
            records=marks,
        ))
    return sessions


def summarize_students(students: Iterable, records: Iterable) -> List[StudentAttendanceSummary]:
    """Per-student present/total counts, in roster order."""
    present_counts: Dict[str, int] = defaultdict(int)
    total_counts: Dict[str, int] = defaultdict(int)
    for record in records:
        student_id = _record_student_id(record)
        total_counts[student_id] += 1
        if record.present:
            present_counts[student_id] += 1

    return [
        StudentAttendanceSummary(
            studentId=student.id,
            name=student.name,
            registrationNumber=_field(student, "registration_number", "registrationNumber"),
            presentCount=present_counts[student.id],
            totalCount=total_counts[student.id],
            attendanceRate=attendance_rate(present_counts[student.id], total_counts[student.id]),
        )
        for student in students
    ]


def attendance_frame(students: Iterable, records: Iterable) -> pd.DataFrame:
    """The attendance sheet as a DataFrame, one row per record, sorted by date then name."""
    roster = {
        student.id: (student.name, _field(student, "registration_number", "registrationNumber"))
        for student in students
    }
    rows = []
    for record in records:
        name, registration_number = roster.get(_record_student_id(record), (UNKNOWN_STUDENT, ""))
        rows.append({
            "Date": record.date.isoformat(),
            "Student Name": name,
            "Registration Number": registration_number,
            "Status": "Present" if record.present else "Absent",
        })

    if not rows:
        return pd.DataFrame(columns=EXPORT_COLUMNS)
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS).sort_values(["Date", "Student Name"], kind="stable").reset_index(drop=True)
