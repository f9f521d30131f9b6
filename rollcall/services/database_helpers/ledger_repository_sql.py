# /rollcall/services/database_helpers/ledger_repository_sql.py

"""
This module contains all the raw SQLAlchemy queries for the User, ClassRoom,
Student and AttendanceRecord tables. It is the direct interface to the
database for all ledger data.

Unlike a self-contained repository, nothing here commits. Every write is
flushed so that later queries in the same transaction see it, and the
`DatabaseService` decides when the whole unit of work is committed or rolled
back.
"""

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from rollcall.db.models.ledger_models import AttendanceRecord, ClassRoom, Student, User


class LedgerRepositorySQL:
    def __init__(self, db_session: Session):
        self.db = db_session

    # --- User Methods ---

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Emails are stored lower-cased, so the lookup is case-insensitive."""
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def add_user(self, record: Dict) -> User:
        new_user = User(**record)
        self.db.add(new_user)
        self.db.flush()
        return new_user

    def update_user(self, user: User, data: Dict) -> User:
        for key, value in data.items():
            setattr(user, key, value)
        self.db.flush()
        return user

    # --- Class Methods ---

    def get_classes_by_owner(self, user_id: str) -> List[ClassRoom]:
        return (
            self.db.query(ClassRoom)
            .filter(ClassRoom.user_id == user_id)
            .order_by(ClassRoom.created_at, ClassRoom.id)
            .all()
        )

    def get_class_by_id(self, class_id: str) -> Optional[ClassRoom]:
        return self.db.query(ClassRoom).filter(ClassRoom.id == class_id).first()

    def add_class(self, record: Dict) -> ClassRoom:
        new_class = ClassRoom(**record)
        self.db.add(new_class)
        self.db.flush()
        return new_class

    def update_class_stats(self, db_class: ClassRoom, student_count: int, session_count: int, attendance_rate: int) -> ClassRoom:
        db_class.student_count = student_count
        db_class.session_count = session_count
        db_class.attendance_rate = attendance_rate
        self.db.flush()
        return db_class

    def delete_class(self, class_id: str) -> bool:
        """
        Removes a class together with its students and attendance records.
        Children are deleted explicitly, leaves first, so the cascade does
        not depend on which relationships happen to be loaded.
        """
        db_class = self.get_class_by_id(class_id)
        if not db_class:
            return False
        self.db.query(AttendanceRecord).filter(AttendanceRecord.class_id == class_id).delete(synchronize_session="fetch")
        self.db.query(Student).filter(Student.class_id == class_id).delete(synchronize_session="fetch")
        self.db.expire(db_class)
        self.db.delete(db_class)
        self.db.flush()
        return True

    # --- Student Methods ---

    def get_students_by_class_id(self, class_id: str) -> List[Student]:
        return (
            self.db.query(Student)
            .filter(Student.class_id == class_id)
            .order_by(Student.name, Student.id)
            .all()
        )

    def get_student_in_class(self, class_id: str, student_id: str) -> Optional[Student]:
        return self.db.query(Student).filter(Student.id == student_id, Student.class_id == class_id).first()

    def get_students_for_owner(self, user_id: str) -> List[Student]:
        """All students across every class owned by `user_id`."""
        return (
            self.db.query(Student)
            .join(ClassRoom, Student.class_id == ClassRoom.id)
            .filter(ClassRoom.user_id == user_id)
            .order_by(Student.name, Student.id)
            .all()
        )

    def add_student(self, record: Dict) -> Student:
        new_student = Student(**record)
        self.db.add(new_student)
        self.db.flush()
        return new_student

    def delete_student(self, class_id: str, student_id: str) -> bool:
        """Removes a student and every attendance record that references it."""
        db_student = self.get_student_in_class(class_id=class_id, student_id=student_id)
        if not db_student:
            return False
        self.db.query(AttendanceRecord).filter(
            AttendanceRecord.class_id == class_id,
            AttendanceRecord.student_id == student_id,
        ).delete(synchronize_session="fetch")
        self.db.expire(db_student)
        self.db.delete(db_student)
        self.db.flush()
        return True

    # --- Attendance Methods ---

    def get_attendance_by_class_id(self, class_id: str) -> List[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
            .filter(AttendanceRecord.class_id == class_id)
            .order_by(AttendanceRecord.date, AttendanceRecord.student_id)
            .all()
        )

    def get_attendance_for_owner(self, user_id: str) -> List[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
            .join(ClassRoom, AttendanceRecord.class_id == ClassRoom.id)
            .filter(ClassRoom.user_id == user_id)
            .order_by(AttendanceRecord.date, AttendanceRecord.student_id)
            .all()
        )

    def upsert_attendance(self, class_id: str, on_date: date, marks: Dict[str, bool]) -> List[AttendanceRecord]:
        """
        Writes one record per (student, on_date) in `marks`. Existing records
        for those keys are updated in place; records for other students on
        the same day are left alone.
        """
        existing = {
            record.student_id: record
            for record in self.db.query(AttendanceRecord).filter(
                AttendanceRecord.class_id == class_id,
                AttendanceRecord.date == on_date,
                AttendanceRecord.student_id.in_(list(marks)),
            )
        }
        written = []
        for student_id, present in marks.items():
            record = existing.get(student_id)
            if record is None:
                record = AttendanceRecord(class_id=class_id, student_id=student_id, date=on_date, present=present)
                self.db.add(record)
            else:
                record.present = present
            written.append(record)
        self.db.flush()
        return written
