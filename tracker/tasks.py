import logging

from celery import shared_task

from .exceptions import NotFoundError, RemoteError
from .services.roster import get_roster_service

logger = logging.getLogger(__name__)


@shared_task
def sync_student(student_id):
    service = get_roster_service()
    try:
        record = service.sync_student(student_id)
    except NotFoundError:
        return f"Student with ID {student_id} not found."
    except RemoteError as e:
        logger.warning("sync_student failed for %s: %s", student_id, e)
        return f"Error updating student {student_id}: {e}"

    if record is None:
        return f"Sync already running for student {student_id}."
    return f"Updated {record.name}: rating {record.current_rating} (max {record.max_rating}), inactive={record.is_inactive}."


@shared_task
def sync_all_students():
    service = get_roster_service()
    service.sync_all()
    students = service.list_students()
    inactive = sum(1 for student in students if student.is_inactive)
    return f"Synced {len(students)} students ({inactive} inactive)."
