# /tests/test_database_service.py

import threading
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from rollcall.core.exceptions import NotFoundOrUnauthorized, StorageError, ValidationError
from rollcall.db.database import build_engine, init_db
from rollcall.models.attendance_model import AttendanceEntry
from rollcall.models.student_model import StudentCreate
from rollcall.services import class_service
from rollcall.services.class_helpers import crud
from rollcall.services.database_service import DatabaseService, LockRegistry, class_lock_key

# --- Helpers ---

@pytest.fixture
def owner(db_service):
    with db_service.transaction("user:owner"):
        user = db_service.add_user({
            "id": "usr_owner",
            "name": "Owner",
            "email": "owner@example.com",
            "password_hash": "x",
            "display_name": "Owner",
        })
    return user.id


@pytest.fixture
def algebra(db_service, owner):
    """A class with two enrolled students."""
    with db_service.class_transaction("cls_algebra"):
        crud.create_class(owner, "Algebra", db_service, class_id="cls_algebra")
        ada = crud.enroll_student("cls_algebra", "Ada", "R-001", db_service)
        blaise = crud.enroll_student("cls_algebra", "Blaise", "R-002", db_service)
    return {"class_id": "cls_algebra", "ada": ada.id, "blaise": blaise.id}


def _mark(db, class_id, on_date, **marks):
    with db.class_transaction(class_id):
        crud.record_attendance(
            class_id, on_date, [AttendanceEntry(studentId=k, present=v) for k, v in marks.items()], db
        )


def _marks_on(db, class_id, on_date):
    return {r.student_id: r.present for r in db.get_attendance_by_class_id(class_id) if r.date == on_date}

# --- Classes ---

def test_create_class_trims_name(db_service, owner):
    with db_service.class_transaction("cls_1"):
        db_class = crud.create_class(owner, "  History  ", db_service, class_id="cls_1")
    assert db_class.name == "History"
    assert db_service.get_class_by_id("cls_1").user_id == owner


@pytest.mark.parametrize("name", ["", "   ", None])
def test_create_class_rejects_blank_name(db_service, owner, name):
    with pytest.raises(ValidationError):
        with db_service.class_transaction("cls_blank"):
            crud.create_class(owner, name, db_service, class_id="cls_blank")
    assert db_service.get_classes_by_owner(owner) == []


def test_delete_class_cascades(db_service, algebra):
    class_id = algebra["class_id"]
    _mark(db_service, class_id, date(2025, 1, 1), **{algebra["ada"]: True, algebra["blaise"]: False})

    with db_service.class_transaction(class_id):
        assert crud.delete_class(class_id, db_service) is True

    assert db_service.get_class_by_id(class_id) is None
    assert db_service.get_students_by_class_id(class_id) == []
    assert db_service.get_attendance_by_class_id(class_id) == []


def test_delete_missing_class_returns_false(db_service, owner):
    with db_service.class_transaction("cls_nope"):
        assert crud.delete_class("cls_nope", db_service) is False

# --- Students ---

@pytest.mark.parametrize("name, reg", [("", "R-9"), ("Eve", "  "), (None, "R-9")])
def test_enroll_rejects_blank_fields(db_service, algebra, name, reg):
    with pytest.raises(ValidationError):
        with db_service.class_transaction(algebra["class_id"]):
            crud.enroll_student(algebra["class_id"], name, reg, db_service)
    assert len(db_service.get_students_by_class_id(algebra["class_id"])) == 2


def test_drop_student_removes_only_their_records(db_service, algebra):
    class_id = algebra["class_id"]
    _mark(db_service, class_id, date(2025, 1, 1), **{algebra["ada"]: True, algebra["blaise"]: True})
    _mark(db_service, class_id, date(2025, 1, 2), **{algebra["ada"]: False, algebra["blaise"]: True})

    with db_service.class_transaction(class_id):
        assert crud.drop_student(class_id, algebra["ada"], db_service) is True

    remaining = db_service.get_attendance_by_class_id(class_id)
    assert {r.student_id for r in remaining} == {algebra["blaise"]}
    assert len(remaining) == 2

# --- Attendance ---

def test_record_attendance_upserts_per_student(db_service, algebra):
    class_id, ada, blaise = algebra["class_id"], algebra["ada"], algebra["blaise"]
    day = date(2025, 1, 1)
    _mark(db_service, class_id, day, **{ada: True, blaise: True})
    _mark(db_service, class_id, day, **{ada: False})

    assert _marks_on(db_service, class_id, day) == {ada: False, blaise: True}
    assert len(db_service.get_attendance_by_class_id(class_id)) == 2


def test_duplicate_entries_in_one_submission_keep_the_last(db_service, algebra):
    class_id, ada = algebra["class_id"], algebra["ada"]
    entries = [AttendanceEntry(studentId=ada, present=True), AttendanceEntry(studentId=ada, present=False)]
    with db_service.class_transaction(class_id):
        crud.record_attendance(class_id, date(2025, 1, 3), entries, db_service)
    assert _marks_on(db_service, class_id, date(2025, 1, 3)) == {ada: False}


def test_record_attendance_rejects_unknown_student(db_service, algebra):
    class_id = algebra["class_id"]
    with pytest.raises(ValidationError):
        _mark(db_service, class_id, date(2025, 1, 1), **{algebra["ada"]: True, "stu_ghost": True})
    # Nothing from the rejected sheet was written.
    assert db_service.get_attendance_by_class_id(class_id) == []


def test_record_attendance_requires_entries(db_service, algebra):
    with pytest.raises(ValidationError):
        with db_service.class_transaction(algebra["class_id"]):
            crud.record_attendance(algebra["class_id"], date(2025, 1, 1), [], db_service)


def test_refresh_class_stats_updates_cached_columns(db_service, algebra):
    class_id = algebra["class_id"]
    _mark(db_service, class_id, date(2025, 1, 1), **{algebra["ada"]: True, algebra["blaise"]: True})
    _mark(db_service, class_id, date(2025, 1, 2), **{algebra["ada"]: True, algebra["blaise"]: False})

    with db_service.class_transaction(class_id):
        stats = crud.refresh_class_stats(db_service.get_class_by_id(class_id), db_service)

    db_class = db_service.get_class_by_id(class_id)
    assert (stats.studentCount, stats.sessionCount, stats.attendanceRate) == (2, 2, 75)
    assert (db_class.student_count, db_class.session_count, db_class.attendance_rate) == (2, 2, 75)

# --- Transactions and Locking ---

def test_failed_commit_rolls_back(db_service, algebra, mocker):
    class_id = algebra["class_id"]
    mocker.patch.object(
        db_service.db, "commit",
        side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error")),
    )
    with pytest.raises(StorageError):
        _mark(db_service, class_id, date(2025, 1, 1), **{algebra["ada"]: True})
    mocker.stopall()

    assert db_service.get_attendance_by_class_id(class_id) == []


def test_lock_timeout_raises_storage_error(db_service, algebra):
    db_service.lock_timeout = 0.05
    lock = db_service.locks.get(class_lock_key(algebra["class_id"]))
    lock.acquire()
    try:
        with pytest.raises(StorageError):
            with db_service.class_transaction(algebra["class_id"]):
                pass
    finally:
        lock.release()


def test_missing_class_does_not_keep_a_lock(db_service, owner):
    student = StudentCreate(name="Ada", registrationNumber="R-1")
    with pytest.raises(NotFoundOrUnauthorized):
        class_service.enroll_student("cls_ghost", student, owner, db_service)
    assert class_lock_key("cls_ghost") not in db_service.locks


def test_foreign_class_keeps_its_lock(db_service, algebra):
    student = StudentCreate(name="Eve", registrationNumber="R-9")
    with pytest.raises(NotFoundOrUnauthorized):
        class_service.enroll_student(algebra["class_id"], student, "usr_someone_else", db_service)
    assert class_lock_key(algebra["class_id"]) in db_service.locks


def test_concurrent_drop_and_record_leave_no_orphans(tmp_path):
    """
    A drop and an attendance write for the same student race from two
    threads, each with its own session. Whichever wins, no attendance record
    may point at the dropped student.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    init_db(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    locks = LockRegistry()

    setup = DatabaseService(Session(), locks=locks)
    with setup.transaction("user:race"):
        setup.add_user({"id": "usr_r", "name": "R", "email": "r@example.com", "password_hash": "x", "display_name": "R"})
    with setup.class_transaction("cls_race"):
        crud.create_class("usr_r", "Race", setup, class_id="cls_race")
        student_ids = [crud.enroll_student("cls_race", f"S{i}", f"R{i}", setup).id for i in range(20)]
    setup.db.close()

    errors = []

    def drop(student_id):
        db = DatabaseService(Session(), locks=locks)
        try:
            with db.class_transaction("cls_race"):
                crud.drop_student("cls_race", student_id, db)
        except Exception as e:
            errors.append(e)
        finally:
            db.db.close()

    def record(student_id, day):
        db = DatabaseService(Session(), locks=locks)
        try:
            with db.class_transaction("cls_race"):
                crud.record_attendance("cls_race", date(2025, 1, day), [AttendanceEntry(studentId=student_id, present=True)], db)
        except ValidationError:
            # The drop won; the student is no longer enrolled.
            pass
        except Exception as e:
            errors.append(e)
        finally:
            db.db.close()

    threads = []
    for i, student_id in enumerate(student_ids):
        threads.append(threading.Thread(target=record, args=(student_id, 1 + i % 5)))
        threads.append(threading.Thread(target=drop, args=(student_id,)))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    check = DatabaseService(Session(), locks=locks)
    assert errors == []
    assert check.get_students_by_class_id("cls_race") == []
    assert check.get_attendance_by_class_id("cls_race") == []
    check.db.close()
    engine.dispose()
