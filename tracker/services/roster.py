import logging
import threading
from datetime import timedelta
from typing import Iterable

from django.conf import settings
from django.utils import timezone

from tracker.exceptions import NotFoundError
from tracker.seed import SEED_STUDENTS
from tracker.services import submission_stats
from tracker.services.api_client import CodeforcesClient
from tracker.services.scheduling import FixedDelayPacer, SyncQueue
from tracker.services.sync import SyncOrchestrator
from tracker.students import StudentChanges, StudentInput, StudentRecord, StudentRepository

logger = logging.getLogger(__name__)


class RosterService:
    """Entry points used by the dashboard, Celery tasks and management commands."""

    def __init__(
        self,
        repository: StudentRepository,
        orchestrator: SyncOrchestrator,
        queue: SyncQueue | None = None,
    ):
        self.repository = repository
        self.orchestrator = orchestrator
        if queue is None:
            queue = SyncQueue(orchestrator.sync_one, orchestrator.pacer)
        self.queue = queue

    def seed(self, entries: Iterable[StudentInput]) -> list[StudentRecord]:
        return [self.repository.add(entry.clean()) for entry in entries]

    def list_students(self) -> list[StudentRecord]:
        return self.repository.list()

    def get_student(self, student_id: str) -> StudentRecord:
        record = self.repository.get(student_id)
        if record is None:
            raise NotFoundError(student_id)
        return record

    def add_student(self, data: StudentInput) -> StudentRecord:
        record = self.repository.add(data.clean())
        logger.info("Added student %s (%s); first sync queued.", record.name, record.handle)
        self.queue.submit(record.id)
        return record

    def update_student(self, student_id: str, changes: StudentChanges) -> StudentRecord:
        cleaned = changes.clean()
        previous = self.get_student(student_id)
        record = self.repository.update(student_id, **cleaned)
        if record is None:
            raise NotFoundError(student_id)
        if "handle" in cleaned and cleaned["handle"] != previous.handle:
            logger.info("Handle changed for %s (%s -> %s); re-sync queued.", record.name, previous.handle, record.handle)
            self.queue.submit(student_id)
        return record

    def delete_student(self, student_id: str) -> bool:
        removed = self.repository.remove(student_id)
        if removed:
            logger.info("Removed student %s.", student_id)
        return removed

    def sync_student(self, student_id: str) -> StudentRecord | None:
        return self.orchestrator.sync_one(student_id)

    def sync_all(self, cancel: threading.Event | None = None) -> None:
        self.orchestrator.sync_all(cancel=cancel)

    def schedule_sync_all(self) -> int:
        student_ids = [record.id for record in self.repository.list()]
        for student_id in student_ids:
            self.queue.submit(student_id)
        return len(student_ids)

    def submission_activity(self, student_id: str, days: int = 365, now=None) -> dict:
        """Heatmap rows, solved-by-rating buckets and recent volume from the last synced submissions."""
        record = self.get_student(student_id)
        submissions = record.remote_data.submissions if record.remote_data else ()
        now = now or timezone.now()
        return {
            "daily": submission_stats.daily_submission_counts(submissions, days=days, now=now),
            "solved_by_rating": submission_stats.solved_by_rating(submissions),
            "recent_count": len(submission_stats.recent_submissions(submissions, now=now)),
        }

    def active_students(self) -> list[StudentRecord]:
        return self.repository.active()

    def inactive_students(self) -> list[StudentRecord]:
        return self.repository.inactive()

    def average_rating(self) -> int:
        return self.repository.average_rating()

    def students_in_rating_range(self, min_rating: int, max_rating: int) -> list[StudentRecord]:
        return self.repository.in_rating_range(min_rating, max_rating)


def build_roster_service(
    client: CodeforcesClient | None = None,
    pacer: FixedDelayPacer | None = None,
    clock=timezone.now,
    seed: Iterable[StudentInput] = (),
) -> RosterService:
    if client is None:
        client = CodeforcesClient(clock=clock)
    if pacer is None:
        pacer = FixedDelayPacer(getattr(settings, "SYNC_PACING_DELAY_MS", 500) / 1000)
    repository = StudentRepository()
    orchestrator = SyncOrchestrator(
        repository,
        client,
        pacer=pacer,
        clock=clock,
        submissions_count=int(getattr(settings, "CF_SYNC_SUBMISSIONS_COUNT", 1000)),
        inactivity_window=timedelta(days=getattr(settings, "INACTIVITY_WINDOW_DAYS", 30)),
    )
    service = RosterService(repository, orchestrator)
    service.seed(seed)
    return service


_roster_service: RosterService | None = None
_roster_service_lock = threading.Lock()


def get_roster_service() -> RosterService:
    global _roster_service
    with _roster_service_lock:
        if _roster_service is None:
            seed = SEED_STUDENTS if getattr(settings, "ROSTER_SEED_ON_STARTUP", True) else ()
            _roster_service = build_roster_service(seed=seed)
            if getattr(settings, "ROSTER_SYNC_ON_STARTUP", False):
                queued = _roster_service.schedule_sync_all()
                logger.info("Queued initial sync for %s students.", queued)
        return _roster_service
