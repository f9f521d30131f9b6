# /rollcall/db/models/ledger_models.py

"""
SQLAlchemy ORM models for the attendance ledger: the instructor (`User`),
the classes they own (`ClassRoom`), the students enrolled in each class and
the per-day attendance records.

Ownership flows strictly downwards. A User owns ClassRooms, a ClassRoom owns
its Students and AttendanceRecords, and a Student owns its own
AttendanceRecords. Deleting a parent removes its children both through the
ORM cascade and through ON DELETE CASCADE at the database level.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..base_class import Base


def _utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    """An instructor account. Emails are stored lower-cased."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=False)

    classes = relationship("ClassRoom", back_populates="owner", cascade="all, delete-orphan")


class ClassRoom(Base):
    """
    A class owned by a single instructor.

    The three stats columns are a cache of the aggregator's output. They are
    rewritten inside the same transaction as every write that touches the
    class's students or attendance, and are never set from client input.
    """
    __tablename__ = "classes"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    student_count = Column(Integer, default=0, nullable=False)
    session_count = Column(Integer, default=0, nullable=False)
    attendance_rate = Column(Integer, default=0, nullable=False)

    owner = relationship("User", back_populates="classes")
    students = relationship("Student", back_populates="class_", cascade="all, delete-orphan")
    attendance = relationship("AttendanceRecord", back_populates="class_", cascade="all, delete-orphan")


# Table name comes from the Base default ("students").
class Student(Base):
    id = Column(String, primary_key=True, index=True)
    class_id = Column(String, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    registration_number = Column(String, nullable=False)

    class_ = relationship("ClassRoom", back_populates="students")
    attendance = relationship("AttendanceRecord", back_populates="student", cascade="all, delete-orphan")


class AttendanceRecord(Base):
    """
    One student's present/absent mark for one class on one calendar day.
    The unique constraint makes a second mark for the same day an update,
    never a duplicate row.
    """
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("class_id", "student_id", "date", name="uq_attendance_class_student_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    class_id = Column(String, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(String, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    present = Column(Boolean, nullable=False)

    class_ = relationship("ClassRoom", back_populates="attendance")
    student = relationship("Student", back_populates="attendance")
