from django.core.management.base import BaseCommand, CommandError

from tracker.exceptions import NotFoundError, RemoteError
from tracker.services.roster import get_roster_service


class Command(BaseCommand):
    help = "Sync the roster with Codeforces and print each student's rating and activity."

    def add_arguments(self, parser):
        parser.add_argument(
            "--student-id",
            help="Sync only this student.",
        )
        parser.add_argument(
            "--handle",
            help="Sync only the student with this Codeforces handle.",
        )

    def handle(self, *args, **options):
        service = get_roster_service()
        student_id = options.get("student_id")
        handle = options.get("handle")

        if handle:
            matches = [s for s in service.list_students() if s.handle.lower() == handle.lower()]
            if not matches:
                raise CommandError(f"No student with handle {handle}.")
            student_id = matches[0].id

        if student_id:
            try:
                service.sync_student(student_id)
            except NotFoundError as exc:
                raise CommandError(str(exc)) from exc
            except RemoteError as exc:
                raise CommandError(f"Sync failed: {exc}") from exc
            students = [service.get_student(student_id)]
        else:
            service.sync_all()
            students = service.list_students()

        for student in students:
            status = "inactive" if student.is_inactive else "active"
            line = f"{student.name} ({student.handle}): {student.current_rating}/{student.max_rating} {status}"
            if student.last_data_sync is None:
                self.stdout.write(self.style.WARNING(f"{line} [never synced]"))
            else:
                self.stdout.write(line)

        self.stdout.write(
            self.style.SUCCESS(
                f"Sync concluded for {len(students)} students. Average rating: {service.average_rating()}."
            )
        )
