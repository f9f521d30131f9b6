# /rollcall/services/database_service.py

"""
The ledger store facade.

`DatabaseService` delegates every query to `LedgerRepositorySQL` and owns the
transaction boundary. All writes happen inside `transaction()` (or its
class-scoped shortcut `class_transaction()`), which:

- takes a process-wide lock for the key, so two writers on the same class
  never interleave,
- commits once at the end, so readers never see a half-finished cascade,
- rolls back on any failure and converts database errors into the domain
  error taxonomy.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Generator, Iterator, List, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.exceptions import ConflictError, RollcallError, StorageError
from ..db.database import get_db
from ..db.models.ledger_models import AttendanceRecord, ClassRoom, Student, User
from .database_helpers.ledger_repository_sql import LedgerRepositorySQL

logger = logging.getLogger(__name__)


class LockRegistry:
    """Hands out one lock per key, creating it on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def discard(self, key: str):
        with self._guard:
            self._locks.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._guard:
            return key in self._locks


# Shared by every DatabaseService instance in the process.
write_locks = LockRegistry()


def class_lock_key(class_id: str) -> str:
    return f"class:{class_id}"


class DatabaseService:
    def __init__(self, db_session: Session, lock_timeout: Optional[float] = None, locks: Optional[LockRegistry] = None):
        self.db = db_session
        self.ledger_repo = LedgerRepositorySQL(db_session)
        self.lock_timeout = get_settings().lock_timeout_seconds if lock_timeout is None else lock_timeout
        self.locks = locks or write_locks

    # --- TRANSACTIONS ---

    @contextmanager
    def transaction(self, lock_key: str) -> Iterator["DatabaseService"]:
        lock = self.locks.get(lock_key)
        if not lock.acquire(timeout=self.lock_timeout):
            logger.error("Timed out after %.1fs waiting for write lock %s", self.lock_timeout, lock_key)
            raise StorageError("The class is busy; please retry.")
        try:
            # Anything loaded before the lock was taken may be stale.
            self.db.expire_all()
            yield self
            self.db.commit()
        except RollcallError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Integrity violation under %s: %s", lock_key, e.orig)
            raise ConflictError() from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Storage failure under %s", lock_key)
            raise StorageError() from e
        except Exception:
            self.db.rollback()
            raise
        finally:
            lock.release()

    def class_transaction(self, class_id: str):
        return self.transaction(class_lock_key(class_id))

    def forget_class_lock(self, class_id: str):
        self.locks.discard(class_lock_key(class_id))

    # --- USER METHODS (DELEGATED) ---
    def get_user_by_id(self, user_id: str) -> Optional[User]: return self.ledger_repo.get_user_by_id(user_id)
    def get_user_by_email(self, email: str) -> Optional[User]: return self.ledger_repo.get_user_by_email(email)
    def add_user(self, user_record: Dict) -> User: return self.ledger_repo.add_user(user_record)
    def update_user(self, user: User, data: Dict) -> User: return self.ledger_repo.update_user(user, data)

    # --- CLASS METHODS (DELEGATED) ---
    def get_classes_by_owner(self, user_id: str) -> List[ClassRoom]: return self.ledger_repo.get_classes_by_owner(user_id)
    def get_class_by_id(self, class_id: str) -> Optional[ClassRoom]: return self.ledger_repo.get_class_by_id(class_id)
    def add_class(self, class_record: Dict) -> ClassRoom: return self.ledger_repo.add_class(class_record)
    def delete_class(self, class_id: str) -> bool: return self.ledger_repo.delete_class(class_id)
    def update_class_stats(self, db_class: ClassRoom, student_count: int, session_count: int, attendance_rate: int) -> ClassRoom:
        return self.ledger_repo.update_class_stats(db_class, student_count, session_count, attendance_rate)

    # --- STUDENT METHODS (DELEGATED) ---
    def get_students_by_class_id(self, class_id: str) -> List[Student]: return self.ledger_repo.get_students_by_class_id(class_id)
    def get_student_in_class(self, class_id: str, student_id: str) -> Optional[Student]: return self.ledger_repo.get_student_in_class(class_id, student_id)
    def get_students_for_owner(self, user_id: str) -> List[Student]: return self.ledger_repo.get_students_for_owner(user_id)
    def add_student(self, student_record: Dict) -> Student: return self.ledger_repo.add_student(student_record)
    def delete_student(self, class_id: str, student_id: str) -> bool: return self.ledger_repo.delete_student(class_id=class_id, student_id=student_id)

    # --- ATTENDANCE METHODS (DELEGATED) ---
    def get_attendance_by_class_id(self, class_id: str) -> List[AttendanceRecord]: return self.ledger_repo.get_attendance_by_class_id(class_id)
    def get_attendance_for_owner(self, user_id: str) -> List[AttendanceRecord]: return self.ledger_repo.get_attendance_for_owner(user_id)
    def upsert_attendance(self, class_id: str, on_date: date, marks: Dict[str, bool]) -> List[AttendanceRecord]:
        return self.ledger_repo.upsert_attendance(class_id, on_date, marks)


def get_db_service(db: Session = Depends(get_db)) -> Generator[DatabaseService, None, None]:
    """FastAPI dependency that provides a DatabaseService bound to the request's session."""
    yield DatabaseService(db_session=db)
