"""
Seed the scheduling backend with a small demo data set.

Safe to run repeatedly: everything is looked up before it is created.
"""

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from apps.core.client import BackendError
from apps.core.timeutils import next_monday
from apps.rota.entities import Role

from ._backend import admin_service, ensure_general_department

DEMO_EMPLOYEES = [
    ("alice@example.com", "Alice Worker"),
    ("bob@example.com", "Bob Teammate"),
]

# code, name, start, end, color
DEMO_TEMPLATES = [
    ("G", "Morning", "09:00", "17:00", "#FEF3C7"),
    ("A", "Evening", "13:00", "21:00", "#FED7AA"),
    ("N", "Night", "00:00", "08:00", "#E9D5FF"),
]


class Command(BaseCommand):
    help = "Create demo departments, employees, templates and next week's roster through the backend API"

    def add_arguments(self, parser):
        parser.add_argument("--email", help="Admin e-mail (default: ROTA_SEED_EMAIL)")
        parser.add_argument("--password", help="Admin password (default: ROTA_SEED_PASSWORD)")

    def handle(self, *args, **options):
        service = admin_service(options.get("email"), options.get("password"))
        try:
            self._seed(service)
        except BackendError as exc:
            raise CommandError(f"Seeding failed: {exc.message}") from exc
        self.stdout.write(self.style.SUCCESS("Seed complete"))

    def _seed(self, service):
        department = ensure_general_department(service)
        self.stdout.write(f"Department: {department.name}")

        existing = {e.email.lower(): e for e in service.employees()}
        employees = []
        for email, full_name in DEMO_EMPLOYEES:
            employee = existing.get(email)
            if employee is None:
                employee = service.create_employee(full_name, email, Role.EMPLOYEE, department.id, True)
                self.stdout.write(f"  created employee {email}")
            employees.append(employee)

        by_code = {t.code: t for t in service.templates() if t.department_id == department.id}
        templates = []
        for code, name, start, end, color in DEMO_TEMPLATES:
            template = by_code.get(code)
            if template is None:
                template = service.create_template(name, code, start, end, color, department.id)
                self.stdout.write(f"  created template {code} {name}")
            templates.append(template)

        start = next_monday(timezone.localdate())
        end = start + timedelta(days=6)
        roster = service.ensure_roster(department.id, start, end)
        self.stdout.write(f"Roster {roster.id}: {start} - {end} ({roster.status})")

        taken = {
            (a.employee_id, a.date, a.start_minutes, a.end_minutes)
            for a in service.assignments(start, end, department.id)
        }
        created = 0
        for i in range(7):
            day = start + timedelta(days=i)
            employee = employees[i % len(employees)]
            template = templates[i % len(templates)]
            key = (employee.id, day, template.start_minutes, template.end_minutes)
            if key in taken:
                continue
            service.create_assignment(
                roster.id, employee.id, day, template.start_minutes, template.end_minutes, template_id=template.id
            )
            created += 1
        self.stdout.write(f"  {created} assignment(s) created")

