from __future__ import annotations

import math
import threading
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Callable

from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator, validate_email

from tracker.services.api_client import RemoteRatingChange, RemoteSubmission, RemoteUserProfile

validate_handle = RegexValidator(
    regex=r"^[A-Za-z0-9_.\-]{3,24}$",
    message="Codeforces handles are 3-24 characters of letters, digits, '_', '-' or '.'.",
)


@dataclass(frozen=True)
class RemoteSnapshot:
    profile: RemoteUserProfile
    submissions: tuple[RemoteSubmission, ...] = ()
    rating_history: tuple[RemoteRatingChange, ...] = ()


@dataclass(frozen=True)
class StudentRecord:
    id: str
    name: str
    email: str
    phone: str
    handle: str
    current_rating: int = 0
    max_rating: int = 0
    last_data_sync: datetime | None = None
    is_data_syncing: bool = False
    last_submission_date: datetime | None = None
    is_inactive: bool = False
    inactivity_detected_at: datetime | None = None
    last_reminder_sent: datetime | None = None
    remote_data: RemoteSnapshot | None = field(default=None, compare=False, repr=False)


def _clean_fields(values: dict[str, str], required: bool) -> dict[str, str]:
    errors = {}
    cleaned = {}
    for name, value in values.items():
        if value is None:
            if required:
                errors[name] = ["This field is required."]
            continue
        value = value.strip()
        if not value and name != "phone":
            errors[name] = ["This field cannot be blank."]
            continue
        try:
            if name == "email":
                validate_email(value)
            elif name == "handle":
                validate_handle(value)
        except ValidationError as exc:
            errors[name] = exc.messages
            continue
        cleaned[name] = value
    if errors:
        raise ValidationError(errors)
    return cleaned


@dataclass(frozen=True)
class StudentInput:
    """The fields a caller supplies when adding a student."""

    name: str
    email: str
    phone: str
    handle: str

    def clean(self) -> "StudentInput":
        return StudentInput(**_clean_fields(
            {"name": self.name, "email": self.email, "phone": self.phone, "handle": self.handle},
            required=True,
        ))


@dataclass(frozen=True)
class StudentChanges:
    """Partial update of the user-editable fields; ``None`` means unchanged."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    handle: str | None = None

    def clean(self) -> dict[str, str]:
        return _clean_fields(
            {"name": self.name, "email": self.email, "phone": self.phone, "handle": self.handle},
            required=False,
        )


_UPDATABLE_FIELDS = frozenset(f.name for f in fields(StudentRecord)) - {"id"}


def _new_id() -> str:
    return uuid.uuid4().hex


class StudentRepository:
    """
    In-memory roster. Records are immutable; every mutation swaps in a new
    record under the lock, so readers only ever see whole records.
    """

    def __init__(self, id_factory: Callable[[], str] = _new_id):
        self._id_factory = id_factory
        self._records: dict[str, StudentRecord] = {}
        self._lock = threading.RLock()

    def add(self, data: StudentInput) -> StudentRecord:
        with self._lock:
            student_id = self._id_factory()
            while student_id in self._records:
                student_id = self._id_factory()
            record = StudentRecord(
                id=student_id,
                name=data.name,
                email=data.email,
                phone=data.phone,
                handle=data.handle,
            )
            self._records[student_id] = record
            return record

    def get(self, student_id: str) -> StudentRecord | None:
        with self._lock:
            return self._records.get(student_id)

    def list(self) -> list[StudentRecord]:
        with self._lock:
            return list(self._records.values())

    def update(self, student_id: str, **changes) -> StudentRecord | None:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        return self.apply(student_id, lambda record: replace(record, **changes))

    def apply(
        self,
        student_id: str,
        fn: Callable[[StudentRecord], StudentRecord],
    ) -> StudentRecord | None:
        with self._lock:
            record = self._records.get(student_id)
            if record is None:
                return None
            updated = fn(record)
            if updated.id != student_id:
                raise ValueError("Student id is immutable.")
            self._records[student_id] = updated
            return updated

    def remove(self, student_id: str) -> bool:
        with self._lock:
            return self._records.pop(student_id, None) is not None

    def mark_reminder_sent(self, student_id: str, at: datetime) -> StudentRecord | None:
        return self.update(student_id, last_reminder_sent=at)

    def drop_remote_data(self) -> None:
        with self._lock:
            for student_id, record in list(self._records.items()):
                if record.remote_data is not None:
                    self._records[student_id] = replace(record, remote_data=None)

    def active(self) -> list[StudentRecord]:
        return [record for record in self.list() if not record.is_inactive]

    def inactive(self) -> list[StudentRecord]:
        return [record for record in self.list() if record.is_inactive]

    def average_rating(self) -> int:
        records = self.list()
        if not records:
            return 0
        total = sum(record.current_rating for record in records)
        return math.floor(total / len(records) + 0.5)

    def in_rating_range(self, min_rating: int, max_rating: int) -> list[StudentRecord]:
        return [
            record
            for record in self.list()
            if min_rating <= record.current_rating <= max_rating
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
