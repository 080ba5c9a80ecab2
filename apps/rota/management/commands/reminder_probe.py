"""
Insert a shift that should trigger the backend's reminder job soon.

The reminder cron runs every five minutes and notifies employees whose
shift starts ``ROTA_REMINDER_MINUTES_BEFORE`` minutes later. The probe puts
a one-hour shift for today exactly that far past the next tick.
"""

from datetime import datetime

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from apps.core.client import BackendError
from apps.core.timeutils import MINUTES_PER_DAY, to_hhmm
from apps.rota.entities import Role

from ._backend import admin_service, ensure_general_department

CRON_STEP_MINUTES = 5
PROBE_LENGTH_MINUTES = 60


def reminder_window(now: datetime, minutes_ahead: int) -> tuple[int, int] | None:
    """
    Start/end minutes of the probe shift, or None when it would fall past today.
    """
    now_minutes = now.hour * 60 + now.minute
    next_tick = (now_minutes // CRON_STEP_MINUTES + 1) * CRON_STEP_MINUTES
    start = next_tick + minutes_ahead
    if start >= MINUTES_PER_DAY:
        return None
    return start, min(MINUTES_PER_DAY - 1, start + PROBE_LENGTH_MINUTES)


class Command(BaseCommand):
    help = "Create a shift for today that the reminder job should pick up on its next runs"

    def add_arguments(self, parser):
        parser.add_argument(
            "--minutes-before",
            type=int,
            default=None,
            help="Reminder lead time in minutes (default: ROTA_REMINDER_MINUTES_BEFORE)",
        )

    def handle(self, *args, **options):
        minutes_ahead = options["minutes_before"]
        if minutes_ahead is None:
            minutes_ahead = settings.ROTA_REMINDER_MINUTES_BEFORE

        now = timezone.localtime()
        window = reminder_window(now, minutes_ahead)
        if window is None:
            self.stdout.write(self.style.WARNING("Target is beyond today; try earlier in the day."))
            return
        start, end = window

        service = admin_service()
        today = now.date()
        try:
            department = ensure_general_department(service)
            employees = service.employees()
            employee = (
                next((e for e in employees if e.role == Role.EMPLOYEE and e.active), None)
                or next((e for e in employees if e.email.lower() == settings.ROTA_SEED_EMAIL.lower()), None)
            )
            if employee is None:
                employee = service.create_employee("Temp User", "temp@example.com", Role.EMPLOYEE, department.id, True)

            roster = service.ensure_roster(department.id, today, today)
            try:
                service.create_assignment(roster.id, employee.id, today, start, end)
            except BackendError as exc:
                if not exc.is_conflict:
                    raise
                self.stdout.write("Assignment already exists")
        except BackendError as exc:
            raise CommandError(f"Probe failed: {exc.message}") from exc

        self.stdout.write(self.style.SUCCESS("Inserted assignment for today"))
        self.stdout.write(f"  Employee: {employee.full_name} {employee.email}")
        self.stdout.write(f"  Window: {minutes_ahead} minutes ahead of next cron tick")
        self.stdout.write(f"  Start: {to_hhmm(start)}")
        self.stdout.write(f"  End  : {to_hhmm(end)}")
