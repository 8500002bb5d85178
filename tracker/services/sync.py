import logging
import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Callable, Sequence

from django.conf import settings
from django.utils import timezone

from tracker.exceptions import NotFoundError, RemoteError, RemoteServiceError, SyncCancelled
from tracker.services.api_client import CodeforcesClient, RemoteSubmission
from tracker.services.scheduling import FixedDelayPacer
from tracker.students import RemoteSnapshot, StudentRecord, StudentRepository

logger = logging.getLogger(__name__)


def latest_submission_time(submissions: Sequence[RemoteSubmission]) -> datetime | None:
    if not submissions:
        return None
    latest = max(sub.creation_time_seconds for sub in submissions)
    return datetime.fromtimestamp(latest, tz=dt_timezone.utc)


def apply_inactivity(
    record: StudentRecord,
    submissions: Sequence[RemoteSubmission],
    now: datetime,
    window: timedelta,
) -> StudentRecord:
    """
    A student with submissions, none of them inside the trailing window, is
    inactive. No submissions at all counts as active.

    ``inactivity_detected_at`` keeps the first detection time until the student
    becomes active again.
    """
    cutoff = int((now - window).timestamp())
    has_recent = any(sub.creation_time_seconds >= cutoff for sub in submissions)
    if submissions and not has_recent:
        return replace(
            record,
            is_inactive=True,
            inactivity_detected_at=record.inactivity_detected_at or now,
        )
    return replace(record, is_inactive=False, inactivity_detected_at=None)


class SyncOrchestrator:
    def __init__(
        self,
        repository: StudentRepository,
        client: CodeforcesClient,
        pacer: FixedDelayPacer | None = None,
        clock: Callable[[], datetime] = timezone.now,
        submissions_count: int | None = None,
        inactivity_window: timedelta | None = None,
    ):
        self.repository = repository
        self.client = client
        if pacer is None:
            pacer = FixedDelayPacer(getattr(settings, "SYNC_PACING_DELAY_MS", 500) / 1000)
        self.pacer = pacer
        self._clock = clock
        if submissions_count is None:
            submissions_count = int(getattr(settings, "CF_SYNC_SUBMISSIONS_COUNT", 1000))
        self.submissions_count = submissions_count
        if inactivity_window is None:
            inactivity_window = timedelta(days=getattr(settings, "INACTIVITY_WINDOW_DAYS", 30))
        self.inactivity_window = inactivity_window
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

    def is_syncing(self, student_id: str) -> bool:
        with self._in_flight_lock:
            return student_id in self._in_flight

    def _claim(self, student_id: str) -> bool:
        with self._in_flight_lock:
            if student_id in self._in_flight:
                return False
            self._in_flight.add(student_id)
            return True

    def _release(self, student_id: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(student_id)

    def sync_one(self, student_id: str, cancel: threading.Event | None = None) -> StudentRecord | None:
        """
        Pull profile, submissions and rating history for one student and merge
        them into the roster.

        Returns the updated record, or ``None`` when a sync for this student was
        already running or the student was deleted before the result landed.
        Remote errors are re-raised and leave the record's data untouched.
        If the handle changes while the fetches run, their result is dropped
        and the student is synced again under the new handle.
        """
        if not self._claim(student_id):
            logger.debug("Sync already in flight for student_id=%s; skipping.", student_id)
            return None

        try:
            record = self.repository.update(student_id, is_data_syncing=True)
            if record is None:
                raise NotFoundError(student_id)

            handle = record.handle
            started = time.monotonic()

            def _check_cancel():
                if cancel is not None and cancel.is_set():
                    raise SyncCancelled(f"Sync cancelled for student {student_id}.")

            _check_cancel()
            profiles = self.client.fetch_profiles([handle])
            if not profiles:
                raise RemoteServiceError(f"No profile returned for {handle}", endpoint="user.info")
            profile = profiles[0]
            _check_cancel()
            submissions = self.client.fetch_submissions(handle, offset=1, limit=self.submissions_count)
            _check_cancel()
            rating_history = self.client.fetch_rating_history(handle)

            now = self._clock()
            last_submission = latest_submission_time(submissions)
            snapshot = RemoteSnapshot(
                profile=profile,
                submissions=tuple(submissions),
                rating_history=tuple(rating_history),
            )

            handle_changed = False

            def _merge(current: StudentRecord) -> StudentRecord:
                nonlocal handle_changed
                if current.handle != handle:
                    handle_changed = True
                    return current
                merged = replace(
                    current,
                    current_rating=profile.rating,
                    max_rating=profile.max_rating,
                    last_submission_date=last_submission or current.last_submission_date,
                    last_data_sync=now,
                    is_data_syncing=False,
                    remote_data=snapshot,
                )
                return apply_inactivity(merged, submissions, now, self.inactivity_window)

            updated = self.repository.apply(student_id, _merge)
            if updated is None:
                logger.debug("Student %s was removed during sync; discarding result.", student_id)
                return None

            if not handle_changed:
                duration_ms = int((time.monotonic() - started) * 1000)
                logger.info(
                    "Synced %s (%s): rating=%s max=%s submissions=%s inactive=%s duration_ms=%s",
                    updated.name,
                    handle,
                    updated.current_rating,
                    updated.max_rating,
                    len(submissions),
                    updated.is_inactive,
                    duration_ms,
                )
                return updated

            logger.info(
                "Handle for student %s changed from %s to %s during sync; discarding result and syncing again.",
                student_id,
                handle,
                updated.handle,
            )
        finally:
            self.repository.update(student_id, is_data_syncing=False)
            self._release(student_id)

        # The record now carries a different handle; sync it under the new one.
        return self.sync_one(student_id, cancel=cancel)

    def sync_all(self, cancel: threading.Event | None = None) -> None:
        """
        Sync every student one after another, pausing between them.

        One student's failure is logged and does not stop the loop.
        """
        student_ids = [record.id for record in self.repository.list()]
        for position, student_id in enumerate(student_ids):
            if cancel is not None and cancel.is_set():
                logger.info("Roster sync cancelled after %s of %s students.", position, len(student_ids))
                return
            if position:
                self.pacer.wait()
            try:
                self.sync_one(student_id, cancel=cancel)
            except NotFoundError:
                logger.info("Student %s was removed before its turn; skipping.", student_id)
            except SyncCancelled:
                logger.info("Roster sync cancelled during student %s.", student_id)
                return
            except RemoteError as exc:
                logger.warning("Failed to sync student %s: %s", student_id, exc)
            except Exception:
                logger.exception("Unexpected error while syncing student %s", student_id)
