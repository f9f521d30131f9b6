# /rollcall/services/class_helpers/crud.py

"""
Ledger-level write operations for classes, students and attendance.

These helpers validate their own input and write through the
`DatabaseService`, but they neither authorize nor commit: the caller runs
them inside `db.class_transaction(...)` after checking ownership.
"""

import uuid
from datetime import date
from typing import Iterable, List, Optional

from ...core.exceptions import ValidationError
from ...db.models.ledger_models import AttendanceRecord, ClassRoom, Student
from ...models.attendance_model import AttendanceEntry
from ...models.class_model import ClassStats
from .. import stats_service
from ..database_service import DatabaseService


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def require_text(value: Optional[str], label: str) -> str:
    """Returns `value` trimmed, or raises ValidationError if nothing is left."""
    trimmed = (value or "").strip()
    if not trimmed:
        raise ValidationError(f"{label} is required.")
    return trimmed


# --- CLASS-RELATED CORE LOGIC ---

def create_class(owner_id: str, name: str, db: DatabaseService, class_id: Optional[str] = None) -> ClassRoom:
    clean_name = require_text(name, "Class name")
    record = {
        "id": class_id or new_id("cls"),
        "user_id": owner_id,
        "name": clean_name,
        "student_count": 0,
        "session_count": 0,
        "attendance_rate": 0,
    }
    return db.add_class(record)


def delete_class(class_id: str, db: DatabaseService) -> bool:
    """Removes the class, its students and its attendance in the current transaction."""
    return db.delete_class(class_id)


def refresh_class_stats(db_class: ClassRoom, db: DatabaseService) -> ClassStats:
    """Recomputes the cached stats of `db_class` from what is stored right now."""
    stats = stats_service.compute_stats(
        db.get_students_by_class_id(db_class.id),
        db.get_attendance_by_class_id(db_class.id),
    )
    db.update_class_stats(db_class, stats.studentCount, stats.sessionCount, stats.attendanceRate)
    return stats


# --- STUDENT-RELATED CORE LOGIC ---

def enroll_student(class_id: str, name: str, registration_number: str, db: DatabaseService) -> Student:
    record = {
        "id": new_id("stu"),
        "class_id": class_id,
        "name": require_text(name, "Student name"),
        "registration_number": require_text(registration_number, "Registration number"),
    }
    return db.add_student(record)


def drop_student(class_id: str, student_id: str, db: DatabaseService) -> bool:
    return db.delete_student(class_id=class_id, student_id=student_id)


# --- ATTENDANCE CORE LOGIC ---

def record_attendance(class_id: str, on_date: date, entries: Iterable[AttendanceEntry], db: DatabaseService) -> List[AttendanceRecord]:
    """
    Upserts one mark per student for `on_date`.

    If a student appears twice in `entries`, the later mark wins. Every
    student must currently be enrolled in the class.
    """
    marks = {}
    for entry in entries:
        marks[require_text(entry.studentId, "Student ID")] = bool(entry.present)
    if on_date is None or not marks:
        raise ValidationError("Date and attendance records are required.")

    enrolled = {student.id for student in db.get_students_by_class_id(class_id)}
    unknown = sorted(student_id for student_id in marks if student_id not in enrolled)
    if unknown:
        raise ValidationError(f"Students not enrolled in this class: {', '.join(unknown)}")

    return db.upsert_attendance(class_id, on_date, marks)
