# /rollcall/services/class_service.py

"""
This service module is the mutation service for classes, students and
attendance, and the read side that assembles snapshots and reports.

Every public function takes the verified `user_id` of the caller. Class-scoped
operations follow the same sequence inside one class transaction:

1. load the class and check that `user_id` owns it,
2. validate and write through the `crud` helpers,
3. recompute the class's cached stats,
4. assemble the slices the client needs to replace in its cache.

A class that does not exist and a class owned by somebody else produce the
same `NotFoundOrUnauthorized` error.
"""

import logging
import re
from collections import defaultdict
from typing import Dict, List, Tuple

from ..core.exceptions import AuthError, NotFoundOrUnauthorized
from ..db.models.ledger_models import AttendanceRecord, ClassRoom, Student, User
from ..models import attendance_model, class_model, student_model
from ..models.report_model import ClassReport
from ..models.snapshot_model import (
    AttendanceRecordedResponse,
    ClassCreatedResponse,
    ClassListResponse,
    DataSnapshot,
    StudentDroppedResponse,
    StudentEnrolledResponse,
)
from . import stats_service
from .class_helpers import crud
from .database_service import DatabaseService

logger = logging.getLogger(__name__)


# --- Serialization Helpers ---

def to_class_summary(db_class: ClassRoom) -> class_model.ClassSummary:
    return class_model.ClassSummary(
        id=db_class.id,
        ownerUserId=db_class.user_id,
        name=db_class.name,
        createdAt=db_class.created_at,
        stats=class_model.ClassStats(
            studentCount=db_class.student_count,
            sessionCount=db_class.session_count,
            attendanceRate=db_class.attendance_rate,
        ),
    )


def to_student(db_student: Student) -> student_model.Student:
    return student_model.Student(
        id=db_student.id,
        classId=db_student.class_id,
        name=db_student.name,
        registrationNumber=db_student.registration_number,
    )


def to_attendance_record(record: AttendanceRecord) -> attendance_model.AttendanceRecord:
    return attendance_model.AttendanceRecord(
        classId=record.class_id,
        studentId=record.student_id,
        date=record.date,
        present=record.present,
    )


# --- Ownership ---

def require_user(user_id: str, db: DatabaseService) -> User:
    """The verified token may outlive the account it names."""
    user = db.get_user_by_id(user_id)
    if user is None:
        raise AuthError("Account not found. Please log in again.", reason="missing")
    return user


def get_owned_class(class_id: str, user_id: str, db: DatabaseService) -> ClassRoom:
    db_class = db.get_class_by_id(class_id)
    if db_class is None:
        # No lock is kept for a class id that does not exist.
        db.forget_class_lock(class_id)
        raise NotFoundOrUnauthorized()
    if db_class.user_id != user_id:
        raise NotFoundOrUnauthorized()
    return db_class


def _class_summaries(user_id: str, db: DatabaseService) -> List[class_model.ClassSummary]:
    return [to_class_summary(c) for c in db.get_classes_by_owner(user_id)]


def _students_of(class_id: str, db: DatabaseService) -> List[student_model.Student]:
    return [to_student(s) for s in db.get_students_by_class_id(class_id)]


def _attendance_of(class_id: str, db: DatabaseService) -> List[attendance_model.AttendanceRecord]:
    return [to_attendance_record(r) for r in db.get_attendance_by_class_id(class_id)]


# --- Mutations ---

def create_class(class_data: class_model.ClassCreate, user_id: str, db: DatabaseService) -> ClassCreatedResponse:
    require_user(user_id, db)
    class_id = crud.new_id("cls")
    with db.class_transaction(class_id):
        db_class = crud.create_class(owner_id=user_id, name=class_data.name, db=db, class_id=class_id)
        crud.refresh_class_stats(db_class, db)
        response = ClassCreatedResponse(
            classes=_class_summaries(user_id, db),
            newClass=to_class_summary(db_class),
        )
    logger.info("Class %s created by %s", class_id, user_id)
    return response


def delete_class(class_id: str, user_id: str, db: DatabaseService) -> ClassListResponse:
    with db.class_transaction(class_id):
        get_owned_class(class_id, user_id, db)
        crud.delete_class(class_id, db)
        response = ClassListResponse(classes=_class_summaries(user_id, db))
    db.forget_class_lock(class_id)
    logger.info("Class %s deleted by %s", class_id, user_id)
    return response


def enroll_student(
    class_id: str,
    student_data: student_model.StudentCreate,
    user_id: str,
    db: DatabaseService,
) -> StudentEnrolledResponse:
    with db.class_transaction(class_id):
        db_class = get_owned_class(class_id, user_id, db)
        new_student = crud.enroll_student(class_id, student_data.name, student_data.registrationNumber, db)
        crud.refresh_class_stats(db_class, db)
        response = StudentEnrolledResponse(
            newStudent=to_student(new_student),
            students=_students_of(class_id, db),
            classes=_class_summaries(user_id, db),
        )
    logger.info("Student %s enrolled in class %s", response.newStudent.id, class_id)
    return response


def drop_student(class_id: str, student_id: str, user_id: str, db: DatabaseService) -> StudentDroppedResponse:
    with db.class_transaction(class_id):
        db_class = get_owned_class(class_id, user_id, db)
        if not crud.drop_student(class_id, student_id, db):
            raise NotFoundOrUnauthorized("Student not found in this class.")
        crud.refresh_class_stats(db_class, db)
        response = StudentDroppedResponse(
            students=_students_of(class_id, db),
            classes=_class_summaries(user_id, db),
            attendance=_attendance_of(class_id, db),
        )
    logger.info("Student %s dropped from class %s", student_id, class_id)
    return response


def record_attendance(
    class_id: str,
    submission: attendance_model.AttendanceSubmission,
    user_id: str,
    db: DatabaseService,
) -> AttendanceRecordedResponse:
    with db.class_transaction(class_id):
        db_class = get_owned_class(class_id, user_id, db)
        written = crud.record_attendance(class_id, submission.date, submission.records, db)
        crud.refresh_class_stats(db_class, db)
        response = AttendanceRecordedResponse(
            classes=_class_summaries(user_id, db),
            attendance=_attendance_of(class_id, db),
        )
    logger.info("Recorded %d marks for class %s on %s", len(written), class_id, submission.date)
    return response


# --- Reads ---

def get_snapshot(user_id: str, db: DatabaseService) -> DataSnapshot:
    """The full per-user view used to rebuild a client cache from scratch."""
    user = require_user(user_id, db)
    classes = _class_summaries(user_id, db)

    students_by_class: Dict[str, List[student_model.Student]] = defaultdict(list)
    for db_student in db.get_students_for_owner(user_id):
        students_by_class[db_student.class_id].append(to_student(db_student))

    attendance_by_class: Dict[str, List[attendance_model.AttendanceRecord]] = defaultdict(list)
    for record in db.get_attendance_for_owner(user_id):
        attendance_by_class[record.class_id].append(to_attendance_record(record))

    return DataSnapshot(
        classes=classes,
        studentsByClass={c.id: students_by_class.get(c.id, []) for c in classes},
        attendanceByClass={c.id: attendance_by_class.get(c.id, []) for c in classes},
        displayName=user.display_name,
        userId=user.id,
    )


def get_class_report(class_id: str, user_id: str, db: DatabaseService) -> ClassReport:
    db_class = get_owned_class(class_id, user_id, db)
    students = db.get_students_by_class_id(class_id)
    records = db.get_attendance_by_class_id(class_id)
    return ClassReport(
        classId=db_class.id,
        name=db_class.name,
        stats=stats_service.compute_stats(students, records),
        sessions=stats_service.summarize_sessions(students, records),
        students=stats_service.summarize_students(students, records),
    )


def export_attendance_csv(class_id: str, user_id: str, db: DatabaseService) -> Tuple[str, str]:
    """
    Returns `(file_name, csv_text)` for the class's attendance sheet,
    one row per record.
    """
    db_class = get_owned_class(class_id, user_id, db)
    df = stats_service.attendance_frame(
        db.get_students_by_class_id(class_id),
        db.get_attendance_by_class_id(class_id),
    )
    slug = re.sub(r"[^a-z0-9]+", "_", db_class.name.lower()).strip("_") or "class"
    file_name = f"attendance_{slug}.csv"
    return file_name, df.to_csv(index=False)
