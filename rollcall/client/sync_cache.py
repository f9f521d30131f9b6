# /rollcall/client/sync_cache.py

"""
Client-side mirror of one instructor's data.

`SyncCache` keeps the last snapshot the server returned and never edits it
locally. A successful mutation replaces the slices the server sent back
(classes list, one class's students, one class's attendance); a failed one
leaves the cache exactly as it was. Session start and login run one full
resync from `GET /data`.

Mutations against the same class are serialized with a busy flag: while one
is in flight, another against that class raises `MutationInProgress`
without reaching the network.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

import httpx

from ..core.security import preview_claims
from ..models.attendance_model import AttendanceRecord
from ..models.class_model import ClassStats, ClassSummary
from ..models.snapshot_model import (
    AttendanceRecordedResponse,
    ClassCreatedResponse,
    ClassListResponse,
    DataSnapshot,
    StudentDroppedResponse,
    StudentEnrolledResponse,
)
from ..models.student_model import Student
from ..models.user_model import ProfileResponse, TokenResponse

logger = logging.getLogger(__name__)

# Busy key for creating a class, which has no class id yet.
NEW_CLASS_KEY = "*new*"


# --- Errors ---

class SyncError(Exception):
    """A call failed; `message` is meant to be shown to the user."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SessionExpired(SyncError):
    """The stored credential was rejected. Cache and credential are already cleared."""


class NotAuthenticated(SyncError):
    pass


class MutationInProgress(SyncError):
    pass


# --- Credential Stores ---

class MemoryCredentialStore:
    def __init__(self, token: Optional[str] = None):
        self._token = token

    def load(self) -> Optional[str]:
        return self._token

    def save(self, token: str):
        self._token = token

    def clear(self):
        self._token = None


class FileCredentialStore:
    """Keeps the token as the only line of a text file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def save(self, token: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token + "\n", encoding="utf-8")

    def clear(self):
        self.path.unlink(missing_ok=True)


@dataclass
class Profile:
    user_id: str
    display_name: str
    # From the unverified token body. Display only.
    name: Optional[str] = None
    email: Optional[str] = None


class SyncCache:
    def __init__(self, http: httpx.Client, credential_store=None, api_prefix: str = "/api"):
        self.http = http
        self.credentials = credential_store if credential_store is not None else MemoryCredentialStore()
        self.api_prefix = api_prefix.rstrip("/")

        self.classes: List[ClassSummary] = []
        self.students_by_class: Dict[str, List[Student]] = {}
        self.attendance_by_class: Dict[str, List[AttendanceRecord]] = {}
        self.profile: Optional[Profile] = None

        self._busy: Set[str] = set()
        self._busy_guard = threading.Lock()

    # --- State ---

    @property
    def is_authenticated(self) -> bool:
        return self.profile is not None and self.credentials.load() is not None

    def is_busy(self, class_id: str) -> bool:
        with self._busy_guard:
            return class_id in self._busy

    def get_class(self, class_id: str) -> Optional[ClassSummary]:
        return next((c for c in self.classes if c.id == class_id), None)

    def stats_for(self, class_id: str) -> Optional[ClassStats]:
        found = self.get_class(class_id)
        return found.stats if found else None

    def clear(self):
        self.classes = []
        self.students_by_class = {}
        self.attendance_by_class = {}
        self.profile = None

    # --- Transport ---

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase or f"Request failed with status {response.status_code}."

    def _request(self, method: str, path: str, json: Any = None, authenticated: bool = True) -> Any:
        headers = {}
        if authenticated:
            token = self.credentials.load()
            if not token:
                raise NotAuthenticated("Please log in first.")
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.http.request(method, f"{self.api_prefix}{path}", json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise SyncError("Could not connect to the server.") from e

        if authenticated and response.status_code in (401, 403):
            message = self._error_message(response)
            logger.info("Session rejected by server (%s); clearing cache.", response.status_code)
            self._end_session()
            raise SessionExpired(message, response.status_code)
        if response.is_error:
            raise SyncError(self._error_message(response), response.status_code)
        return response.json()

    def _end_session(self):
        self.credentials.clear()
        self.clear()

    @contextmanager
    def _mutating(self, key: str):
        with self._busy_guard:
            if key in self._busy:
                raise MutationInProgress("Please wait for the previous change to finish.")
            self._busy.add(key)
        try:
            yield
        finally:
            with self._busy_guard:
                self._busy.discard(key)

    # --- Session ---

    def start_session(self) -> bool:
        """
        Restores a stored session by reading the full snapshot. Returns False
        (with cache and credential cleared) when there is no usable credential.
        """
        if not self.credentials.load():
            self.clear()
            return False
        try:
            self.resync()
        except SessionExpired:
            return False
        return True

    def resync(self) -> DataSnapshot:
        """Replaces the whole cache with the server's snapshot."""
        snapshot = DataSnapshot.model_validate(self._request("GET", "/data"))
        claims = preview_claims(self.credentials.load() or "")
        self.classes = list(snapshot.classes)
        self.students_by_class = {class_id: list(items) for class_id, items in snapshot.studentsByClass.items()}
        self.attendance_by_class = {class_id: list(items) for class_id, items in snapshot.attendanceByClass.items()}
        self.profile = Profile(
            user_id=snapshot.userId,
            display_name=snapshot.displayName,
            name=claims.get("name"),
            email=claims.get("email"),
        )
        return snapshot

    def _adopt_token(self, payload: Any) -> DataSnapshot:
        tokens = TokenResponse.model_validate(payload)
        self.credentials.save(tokens.token)
        return self.resync()

    def login(self, email: str, password: str) -> DataSnapshot:
        payload = self._request("POST", "/login", json={"email": email, "password": password}, authenticated=False)
        return self._adopt_token(payload)

    def register(self, name: str, email: str, password: str, display_name: str) -> DataSnapshot:
        payload = self._request(
            "POST",
            "/register",
            json={"name": name, "email": email, "password": password, "displayName": display_name},
            authenticated=False,
        )
        return self._adopt_token(payload)

    def logout(self):
        self._end_session()

    # --- Mutations ---
    # Slices are applied while the busy flag is still held, so a later
    # mutation on the same class can never be overwritten by an earlier
    # response. Only the affected class's entry in `classes` is replaced;
    # mutations on other classes may be in flight at the same time.

    def _replace_class(self, class_id: str, classes: List[ClassSummary]):
        updated = next((c for c in classes if c.id == class_id), None)
        with self._busy_guard:
            kept = [c for c in self.classes if c.id != class_id]
            if updated is None:
                self.classes = kept
                return
            position = next((i for i, c in enumerate(self.classes) if c.id == class_id), len(kept))
            kept.insert(position, updated)
            self.classes = kept

    def create_class(self, name: str) -> ClassSummary:
        with self._mutating(NEW_CLASS_KEY):
            result = ClassCreatedResponse.model_validate(self._request("POST", "/classes", json={"name": name}))
            self.students_by_class[result.newClass.id] = []
            self.attendance_by_class[result.newClass.id] = []
            self._replace_class(result.newClass.id, [result.newClass])
        return result.newClass

    def delete_class(self, class_id: str):
        with self._mutating(class_id):
            ClassListResponse.model_validate(self._request("DELETE", f"/classes/{class_id}"))
            self.students_by_class.pop(class_id, None)
            self.attendance_by_class.pop(class_id, None)
            self._replace_class(class_id, [])

    def enroll_student(self, class_id: str, name: str, registration_number: str) -> Student:
        with self._mutating(class_id):
            result = StudentEnrolledResponse.model_validate(self._request(
                "POST",
                f"/classes/{class_id}/students",
                json={"name": name, "registrationNumber": registration_number},
            ))
            self.students_by_class[class_id] = list(result.students)
            self._replace_class(class_id, result.classes)
        return result.newStudent

    def drop_student(self, class_id: str, student_id: str):
        with self._mutating(class_id):
            result = StudentDroppedResponse.model_validate(
                self._request("DELETE", f"/classes/{class_id}/students/{student_id}")
            )
            self.students_by_class[class_id] = list(result.students)
            self.attendance_by_class[class_id] = list(result.attendance)
            self._replace_class(class_id, result.classes)

    def record_attendance(self, class_id: str, on_date: date, marks: Union[Mapping[str, bool], Iterable[Dict[str, Any]]]):
        """
        `marks` is either {studentId: present} or a list of
        {"studentId": ..., "present": ...} entries.
        """
        if isinstance(marks, Mapping):
            records = [{"studentId": student_id, "present": bool(present)} for student_id, present in marks.items()]
        else:
            records = [dict(entry) for entry in marks]
        body = {"date": on_date.isoformat(), "records": records}
        with self._mutating(class_id):
            result = AttendanceRecordedResponse.model_validate(
                self._request("POST", f"/classes/{class_id}/attendance", json=body)
            )
            self.attendance_by_class[class_id] = list(result.attendance)
            self._replace_class(class_id, result.classes)

    def update_display_name(self, display_name: str) -> str:
        result = ProfileResponse.model_validate(self._request("POST", "/profile", json={"displayName": display_name}))
        if self.profile is not None:
            self.profile.display_name = result.displayName
        return result.displayName

    def change_password(self, current_password: str, new_password: str) -> str:
        payload = self._request(
            "POST",
            "/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        return payload["message"]
