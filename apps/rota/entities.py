# entities.py - local copies of the backend's scheduling records
#
# The backend owns these; we only render them and mutate local copies.
# Built from backend JSON by apps.api.serializers.

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime

from apps.core.timeutils import format_window, to_hhmm

DEFAULT_CHIP_COLOR = "#EEF2FF"
GENERAL_DEPARTMENT_NAMES = ("genel", "general")


class Role:
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    choices = [(ADMIN, "Admin"), (EMPLOYEE, "Employee")]


class RosterStatus:
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class RequestStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SwapStatus:
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELED = "CANCELED"


class ShiftType:
    REGULAR = "REGULAR"
    OVERTIME = "OVERTIME"
    choices = [(REGULAR, "Regular"), (OVERTIME, "Overtime")]


@dataclass
class Department:
    id: str
    name: str
    color: str = ""
    description: str = ""

    @property
    def is_general(self) -> bool:
        return self.name.strip().lower() in GENERAL_DEPARTMENT_NAMES


@dataclass
class Employee:
    id: str
    email: str
    full_name: str
    role: str = Role.EMPLOYEE
    department_id: str | None = None
    active: bool = True


@dataclass
class ShiftTemplate:
    id: str
    department_id: str
    code: str
    name: str
    start_minutes: int
    end_minutes: int
    color: str = ""

    @property
    def window(self) -> str:
        return format_window(self.start_minutes, self.end_minutes)


@dataclass
class Roster:
    id: str
    department_id: str
    start_date: date
    end_date: date
    status: str = RosterStatus.DRAFT
    locked: bool = False
    version: int | None = None
    published_at: datetime | None = None

    @property
    def is_locked(self) -> bool:
        return self.locked or self.status == RosterStatus.PUBLISHED


@dataclass
class Assignment:
    id: str
    roster_id: str
    employee_id: str
    date: date
    start_minutes: int
    end_minutes: int
    template_id: str | None = None
    created_at: datetime | None = None

    @property
    def window(self) -> str:
        return format_window(self.start_minutes, self.end_minutes)

    def moved(self, employee_id: str, day: date) -> "Assignment":
        return replace(self, employee_id=employee_id, date=day)

    @property
    def crosses_midnight(self) -> bool:
        return self.end_minutes < self.start_minutes


@dataclass(frozen=True)
class PendingCreate:
    """An assignment queued on the board but not yet sent to the backend."""

    employee_id: str
    date: date
    template_id: str | None = None
    start_minutes: int | None = None
    end_minutes: int | None = None

    @property
    def has_window(self) -> bool:
        return self.start_minutes is not None and self.end_minutes is not None

    def matches(self, other: "PendingCreate") -> bool:
        """Same employee and day, and either the same template or the same ad-hoc window."""
        if self.employee_id != other.employee_id or self.date != other.date:
            return False
        same_template = bool(self.template_id) and self.template_id == other.template_id
        same_window = (
            self.has_window
            and other.has_window
            and self.start_minutes == other.start_minutes
            and self.end_minutes == other.end_minutes
        )
        return same_template or same_window


@dataclass
class AvailabilityRequest:
    id: str
    employee_id: str
    date: date
    status: str = RequestStatus.PENDING
    start_minutes: int | None = None
    end_minutes: int | None = None
    note: str | None = None
    created_at: datetime | None = None
    decided_at: datetime | None = None
    employee: dict | None = None

    @property
    def is_full_day(self) -> bool:
        return self.start_minutes is None or self.end_minutes is None

    @property
    def window(self) -> str:
        if self.is_full_day:
            return "-"
        return f"{to_hhmm(self.start_minutes)}-{to_hhmm(self.end_minutes)}"

    @property
    def employee_name(self) -> str:
        return (self.employee or {}).get("fullName") or self.employee_id

    @property
    def department_id(self) -> str | None:
        return (self.employee or {}).get("departmentId")


@dataclass
class SwapSide:
    id: str
    date: date
    start_minutes: int
    end_minutes: int
    employee_id: str
    employee: dict | None = None

    @property
    def employee_name(self) -> str:
        return (self.employee or {}).get("fullName") or self.employee_id

    @property
    def label(self) -> str:
        return f"{self.date.isoformat()} {to_hhmm(self.start_minutes)}-{to_hhmm(self.end_minutes)}"


@dataclass
class SwapRequest:
    id: str
    status: str
    requested_by_id: str
    from_assignment: SwapSide
    to_assignment: SwapSide
    requested_by: dict | None = None
    created_at: datetime | None = None
    decided_at: datetime | None = None

    @property
    def requester_name(self) -> str:
        return (self.requested_by or {}).get("fullName") or self.requested_by_id

    @property
    def is_pending(self) -> bool:
        return self.status == SwapStatus.PENDING


@dataclass
class EmployeeTotals:
    employee_id: str
    full_name: str
    assignment_count: int
    department_id: str | None = None
    hours: float = 0
    overtime_hours: float = 0


@dataclass
class TemplateTotals:
    template_id: str
    code: str
    name: str
    count: int
    department_id: str | None = None
    hours: float = 0


@dataclass
class ReportSummary:
    start_date: date | None
    end_date: date | None
    total_assignments: int
    total_hours: float
    overtime_hours: float
    by_employee: list[EmployeeTotals] = field(default_factory=list)
    by_template: list[TemplateTotals] = field(default_factory=list)
