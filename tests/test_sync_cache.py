# /tests/test_sync_cache.py

from datetime import date, timedelta

import pytest

from rollcall.client.sync_cache import (
    NEW_CLASS_KEY,
    FileCredentialStore,
    MemoryCredentialStore,
    MutationInProgress,
    NotAuthenticated,
    SessionExpired,
    SyncCache,
    SyncError,
)
from rollcall.core import security


@pytest.fixture
def cache(client):
    cache = SyncCache(client)
    cache.register("Valerie Frizzle", "instructor@example.com", "s3cret", "Ms. Frizzle")
    return cache


@pytest.fixture
def algebra(cache):
    """A class with Ada and Blaise enrolled, built through the cache."""
    new_class = cache.create_class("Algebra")
    ada = cache.enroll_student(new_class.id, "Ada", "R-1")
    blaise = cache.enroll_student(new_class.id, "Blaise", "R-2")
    return new_class.id, ada.id, blaise.id

# --- Session ---

def test_register_loads_profile(cache):
    assert cache.is_authenticated
    assert cache.profile.display_name == "Ms. Frizzle"
    assert cache.profile.email == "instructor@example.com"
    assert cache.profile.user_id.startswith("usr_")
    assert cache.classes == []


def test_login_resyncs_existing_data(client, cache, algebra):
    class_id, _, _ = algebra
    fresh = SyncCache(client)
    fresh.login("instructor@example.com", "s3cret")
    assert [c.id for c in fresh.classes] == [class_id]
    assert [s.name for s in fresh.students_by_class[class_id]] == ["Ada", "Blaise"]
    assert fresh.attendance_by_class[class_id] == []


def test_login_failure_leaves_cache_empty(client):
    cache = SyncCache(client)
    with pytest.raises(SyncError) as exc_info:
        cache.login("nobody@example.com", "wrong")
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid email or password."
    assert not cache.is_authenticated
    assert cache.credentials.load() is None


def test_start_session_without_credential(client):
    cache = SyncCache(client)
    assert cache.start_session() is False
    assert cache.profile is None


def test_start_session_with_stored_credential(client, cache, algebra):
    restored = SyncCache(client, credential_store=MemoryCredentialStore(cache.credentials.load()))
    assert restored.start_session() is True
    assert restored.get_class(algebra[0]).name == "Algebra"


def test_start_session_with_rejected_credential(client):
    store = MemoryCredentialStore("not-a-token")
    cache = SyncCache(client, credential_store=store)
    assert cache.start_session() is False
    assert store.load() is None
    assert cache.classes == []


def test_expired_session_clears_everything(client, cache, algebra):
    stale = security.issue_token(cache.profile.user_id, expires_delta=timedelta(seconds=-1))
    cache.credentials.save(stale)

    with pytest.raises(SessionExpired) as exc_info:
        cache.create_class("Geometry")
    assert exc_info.value.status_code == 401
    assert cache.classes == []
    assert cache.students_by_class == {}
    assert cache.credentials.load() is None
    assert not cache.is_authenticated


def test_mutation_without_login_is_refused(client):
    cache = SyncCache(client)
    with pytest.raises(NotAuthenticated):
        cache.create_class("Geometry")


def test_logout_clears_cache(cache, algebra):
    cache.logout()
    assert cache.classes == []
    assert cache.attendance_by_class == {}
    assert cache.profile is None
    assert cache.credentials.load() is None

# --- Mutations ---

def test_create_class_adds_empty_slices(cache):
    new_class = cache.create_class("Geometry")
    assert cache.get_class(new_class.id).stats.studentCount == 0
    assert cache.students_by_class[new_class.id] == []
    assert cache.attendance_by_class[new_class.id] == []


def test_enroll_replaces_roster_and_stats(cache, algebra):
    class_id, _, _ = algebra
    assert [s.name for s in cache.students_by_class[class_id]] == ["Ada", "Blaise"]
    assert cache.stats_for(class_id).studentCount == 2


def test_record_attendance_updates_stats(cache, algebra):
    class_id, ada, blaise = algebra
    cache.record_attendance(class_id, date(2025, 1, 1), {ada: True, blaise: True})
    cache.record_attendance(class_id, date(2025, 1, 2), [
        {"studentId": ada, "present": True},
        {"studentId": blaise, "present": False},
    ])

    stats = cache.stats_for(class_id)
    assert (stats.studentCount, stats.sessionCount, stats.attendanceRate) == (2, 2, 75)
    assert len(cache.attendance_by_class[class_id]) == 4


def test_drop_student_replaces_three_slices(cache, algebra):
    class_id, ada, blaise = algebra
    cache.record_attendance(class_id, date(2025, 1, 1), {ada: False, blaise: True})

    cache.drop_student(class_id, ada)

    assert [s.id for s in cache.students_by_class[class_id]] == [blaise]
    assert {r.studentId for r in cache.attendance_by_class[class_id]} == {blaise}
    assert cache.stats_for(class_id).attendanceRate == 100


def test_delete_class_removes_slices(cache, algebra):
    class_id, _, _ = algebra
    cache.delete_class(class_id)
    assert cache.get_class(class_id) is None
    assert class_id not in cache.students_by_class
    assert class_id not in cache.attendance_by_class


def test_failed_mutation_leaves_cache_untouched(cache, algebra):
    class_id, ada, _ = algebra
    before = (list(cache.classes), list(cache.students_by_class[class_id]), list(cache.attendance_by_class[class_id]))

    with pytest.raises(SyncError) as exc_info:
        cache.record_attendance(class_id, date(2025, 1, 1), {ada: True, "stu_ghost": True})
    assert exc_info.value.status_code == 400
    with pytest.raises(SyncError):
        cache.enroll_student(class_id, "", "R-3")

    after = (list(cache.classes), list(cache.students_by_class[class_id]), list(cache.attendance_by_class[class_id]))
    assert after == before
    assert cache.is_authenticated


def test_busy_class_rejects_second_mutation(cache, algebra):
    class_id, ada, _ = algebra
    with cache._mutating(class_id):
        assert cache.is_busy(class_id)
        with pytest.raises(MutationInProgress):
            cache.record_attendance(class_id, date(2025, 1, 1), {ada: True})
    assert not cache.is_busy(class_id)
    assert cache.attendance_by_class[class_id] == []


def test_busy_flag_is_per_class(cache, algebra):
    class_id, _, _ = algebra
    with cache._mutating(class_id):
        other = cache.create_class("Geometry")
    assert cache.get_class(other.id) is not None


def test_busy_flag_released_after_error(cache, algebra):
    class_id, _, _ = algebra
    with pytest.raises(SyncError):
        cache.enroll_student(class_id, "", "")
    assert not cache.is_busy(class_id)


def test_create_class_uses_shared_key(cache):
    with cache._mutating(NEW_CLASS_KEY):
        with pytest.raises(MutationInProgress):
            cache.create_class("Geometry")

# --- Profile ---

def test_update_display_name(cache):
    assert cache.update_display_name(" Valerie ") == "Valerie"
    assert cache.profile.display_name == "Valerie"


def test_change_password_keeps_session(cache):
    with pytest.raises(SyncError) as exc_info:
        cache.change_password("wrong", "new-pass")
    assert not isinstance(exc_info.value, SessionExpired)
    assert cache.is_authenticated

    assert cache.change_password("s3cret", "new-pass") == "Password updated successfully."

# --- Credential Stores ---

def test_file_credential_store(tmp_path):
    store = FileCredentialStore(tmp_path / "nested" / "token")
    assert store.load() is None
    store.save("abc.def.ghi")
    assert store.load() == "abc.def.ghi"
    store.clear()
    assert store.load() is None
    store.clear()


def test_file_store_survives_restart(client, cache, tmp_path):
    path = tmp_path / "token"
    FileCredentialStore(path).save(cache.credentials.load())

    restored = SyncCache(client, credential_store=FileCredentialStore(path))
    assert restored.start_session() is True
    assert restored.profile.display_name == "Ms. Frizzle"

# --- Ordering ---

class _BusyWatchDict(dict):
    """Records whether the class was still busy when its slice was written."""

    def __init__(self, cache, *args):
        super().__init__(*args)
        self.cache = cache
        self.busy_on_write = []

    def __setitem__(self, key, value):
        self.busy_on_write.append(self.cache.is_busy(key))
        super().__setitem__(key, value)


def test_response_is_applied_while_class_is_busy(cache, algebra):
    class_id, ada, _ = algebra
    cache.students_by_class = _BusyWatchDict(cache, cache.students_by_class)
    cache.attendance_by_class = _BusyWatchDict(cache, cache.attendance_by_class)

    cache.enroll_student(class_id, "Cleo", "R-3")
    cache.record_attendance(class_id, date(2025, 1, 1), {ada: True})
    cache.drop_student(class_id, ada)

    assert cache.students_by_class.busy_on_write == [True, True]
    assert cache.attendance_by_class.busy_on_write == [True, True]


def test_overlapping_mutation_on_same_class_is_refused(cache, algebra):
    class_id, _, _ = algebra
    attempts = []

    class _Reentrant(dict):
        def __setitem__(self, key, value):
            super().__setitem__(key, value)
            if not attempts:
                try:
                    cache.enroll_student(class_id, "Dora", "R-4")
                except MutationInProgress as e:
                    attempts.append(e)

    cache.students_by_class = _Reentrant(cache.students_by_class)
    cache.enroll_student(class_id, "Cleo", "R-3")

    assert len(attempts) == 1
    assert [s.name for s in cache.students_by_class[class_id]] == ["Ada", "Blaise", "Cleo"]


def test_mutation_replaces_only_its_own_class_entry(cache, algebra):
    class_id, _, _ = algebra
    other = cache.create_class("Geometry")
    # A newer view of the other class that this mutation must not clobber.
    newer = other.model_copy(update={"name": "Geometry (renamed locally)"})
    cache.classes = [newer if c.id == other.id else c for c in cache.classes]

    cache.enroll_student(class_id, "Cleo", "R-3")

    assert [c.id for c in cache.classes] == [class_id, other.id]
    assert cache.get_class(other.id).name == "Geometry (renamed locally)"
    assert cache.stats_for(class_id).studentCount == 3


def test_delete_class_keeps_other_entries(cache, algebra):
    class_id, _, _ = algebra
    other = cache.create_class("Geometry")
    cache.delete_class(class_id)
    assert [c.id for c in cache.classes] == [other.id]
