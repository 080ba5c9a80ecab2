"""
Weekly roster board state.

A board merges the assignments fetched from the backend with the user's
pending (unsaved) creates, derives what each employee/day cell shows, and
applies add/move/delete optimistically: the local copy changes first, the
backend call follows, and the previous list is restored if the call fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable

from apps.api.serializers import (
    AssignmentSerializer,
    EmployeeSerializer,
    RosterSerializer,
    ShiftTemplateSerializer,
    decode,
    encode,
)
from apps.core.client import BackendError
from apps.core.context_processors import ALL_DEPARTMENTS
from apps.core.timeutils import format_window, overlaps, week_dates

from .entities import (
    DEFAULT_CHIP_COLOR,
    Assignment,
    AvailabilityRequest,
    Employee,
    PendingCreate,
    Roster,
    ShiftTemplate,
)

logger = logging.getLogger(__name__)


class BoardError(Exception):
    """A board operation that cannot be applied."""


class RosterLocked(BoardError):
    def __init__(self):
        super().__init__("The roster is published and locked.")


class MoveConflict(BoardError):
    """The backend refused a move because the target slot is taken."""

    def __init__(self, error: BackendError):
        self.error = error
        super().__init__("Conflict: another assignment already occupies the target day/time.")


def templates_for_department(
    templates: Iterable[ShiftTemplate], department_id: str | None, general_department_id: str | None
) -> list[ShiftTemplate]:
    """Templates offered in a department: its own plus the general department's."""
    if department_id == ALL_DEPARTMENTS:
        return list(templates)
    return [
        t
        for t in templates
        if t.department_id == department_id
        or (general_department_id and t.department_id == general_department_id)
    ]


@dataclass
class CellEntry:
    label: str
    color: str
    pending: bool = False
    assignment: Assignment | None = None
    create: PendingCreate | None = None
    swap_requested: bool = False


@dataclass
class Cell:
    employee_id: str
    day: date
    entries: list[CellEntry] = field(default_factory=list)

    @property
    def key(self) -> str:
        """Drop-target id: ``<employee>:<YYYY-MM-DD>``."""
        return f"{self.employee_id}:{self.day.isoformat()}"


@dataclass
class Row:
    employee: Employee
    cells: list[Cell]


class RosterBoard:
    def __init__(
        self,
        *,
        week_start: date,
        employees: Iterable[Employee],
        templates: Iterable[ShiftTemplate],
        assignments: Iterable[Assignment],
        roster: Roster | None = None,
        pending: Iterable[PendingCreate] = (),
        department_id: str = ALL_DEPARTMENTS,
        general_department_id: str | None = None,
        swap_requested: Iterable[str] = (),
    ):
        self.week_start = week_start
        self.all_employees = list(employees)
        self.all_templates = list(templates)
        self.assignments = list(assignments)
        self.roster = roster
        self.pending = list(pending)
        self.department_id = department_id or ALL_DEPARTMENTS
        self.general_department_id = general_department_id
        self.swap_requested = set(swap_requested)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self) -> dict:
        """JSON-safe copy of the server-side half of the board (pending excluded)."""
        return {
            "roster": encode(RosterSerializer, self.roster) if self.roster else None,
            "employees": encode(EmployeeSerializer, self.all_employees, many=True),
            "templates": encode(ShiftTemplateSerializer, self.all_templates, many=True),
            "assignments": encode(AssignmentSerializer, self.assignments, many=True),
            "general_department_id": self.general_department_id,
            "swap_requested": sorted(self.swap_requested),
        }

    @classmethod
    def from_snapshot(cls, data: dict, *, week_start: date, department_id: str, pending=()) -> "RosterBoard":
        return cls(
            week_start=week_start,
            employees=decode(EmployeeSerializer, data["employees"], many=True),
            templates=decode(ShiftTemplateSerializer, data["templates"], many=True),
            assignments=decode(AssignmentSerializer, data["assignments"], many=True),
            roster=decode(RosterSerializer, data["roster"]) if data.get("roster") else None,
            pending=pending,
            department_id=department_id,
            general_department_id=data.get("general_department_id"),
            swap_requested=data.get("swap_requested", ()),
        )

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    @property
    def days(self) -> list[date]:
        return week_dates(self.week_start)

    @property
    def is_locked(self) -> bool:
        return self.roster is not None and self.roster.is_locked

    @property
    def employees(self) -> list[Employee]:
        if self.department_id == ALL_DEPARTMENTS:
            return self.all_employees
        return [e for e in self.all_employees if e.department_id == self.department_id]

    @property
    def templates(self) -> list[ShiftTemplate]:
        return self.templates_for(self.department_id)

    def templates_for(self, department_id: str | None) -> list[ShiftTemplate]:
        return templates_for_department(self.all_templates, department_id, self.general_department_id)

    def target_department(self, employee_id: str, fallback_department_id: str | None = None) -> str | None:
        """
        Department whose roster receives a new assignment for the employee:
        the selected one, else the employee's own, else the fallback.
        """
        if self.department_id != ALL_DEPARTMENTS:
            return self.department_id
        employee = self.employee(employee_id)
        return (employee.department_id if employee else None) or fallback_department_id

    def roster_for(self, department_id: str, ensure_roster: Callable[[str], Roster]) -> Roster:
        """The board's roster when it belongs to the department, else ``ensure_roster``'s."""
        if self.roster is not None and self.roster.department_id == department_id:
            return self.roster
        roster = ensure_roster(department_id)
        if self.department_id == department_id:
            self.roster = roster
        return roster

    def template(self, template_id: str | None) -> ShiftTemplate | None:
        if not template_id:
            return None
        return next((t for t in self.all_templates if t.id == template_id), None)

    def employee(self, employee_id: str) -> Employee | None:
        return next((e for e in self.all_employees if e.id == employee_id), None)

    def assignment(self, assignment_id: str) -> Assignment | None:
        return next((a for a in self.assignments if a.id == assignment_id), None)

    def _saved_entry(self, assignment: Assignment) -> CellEntry:
        tpl = self.template(assignment.template_id)
        return CellEntry(
            label=tpl.code if tpl else assignment.window,
            color=(tpl.color if tpl else "") or DEFAULT_CHIP_COLOR,
            assignment=assignment,
            swap_requested=assignment.id in self.swap_requested,
        )

    def _pending_entry(self, create: PendingCreate) -> CellEntry:
        tpl = self.template(create.template_id)
        if tpl:
            label = tpl.code
        elif create.has_window:
            label = format_window(create.start_minutes, create.end_minutes)
        else:
            label = "+"
        return CellEntry(
            label=label,
            color=(tpl.color if tpl else "") or DEFAULT_CHIP_COLOR,
            pending=True,
            create=create,
        )

    def cell(self, employee_id: str, day: date) -> Cell:
        """Saved assignments first, then the pending creates for the same cell."""
        entries = [
            self._saved_entry(a)
            for a in self.assignments
            if a.employee_id == employee_id and a.date == day
        ]
        entries += [
            self._pending_entry(p)
            for p in self.pending
            if p.employee_id == employee_id and p.date == day
        ]
        return Cell(employee_id=employee_id, day=day, entries=entries)

    def rows(self) -> list[Row]:
        days = self.days
        return [Row(employee=e, cells=[self.cell(e.id, d) for d in days]) for e in self.employees]

    def swap_candidates(self, assignment_id: str) -> list[Assignment]:
        """Other employees' assignments on the same day in the same roster."""
        source = self.assignment(assignment_id)
        if source is None:
            return []
        return [
            a
            for a in self.assignments
            if a.id != source.id
            and a.date == source.date
            and a.roster_id == source.roster_id
            and a.employee_id != source.employee_id
        ]

    # -------------------------------------------------------------------------
    # Pending creates
    # -------------------------------------------------------------------------

    def _ensure_unlocked(self) -> None:
        if self.is_locked:
            raise RosterLocked()

    def add_pending(self, create: PendingCreate) -> None:
        """Queue a create. Several per cell are allowed."""
        self._ensure_unlocked()
        self.pending.append(create)

    def remove_pending(self, create: PendingCreate) -> int:
        before = len(self.pending)
        self.pending = [p for p in self.pending if not p.matches(create)]
        return before - len(self.pending)

    def save_pending(
        self,
        create: Callable[[Roster, PendingCreate, ShiftTemplate | None], Assignment | None],
        ensure_roster: Callable[[str], Roster],
        fallback_department_id: str | None = None,
    ) -> list[Assignment]:
        """
        Send every pending create to the backend, in order.

        Each entry's roster is resolved once per department: the selected
        department when one is selected, otherwise the employee's own (or
        ``fallback_department_id``). Entries whose employee or template is
        gone are dropped. Entries already saved leave the pending list even
        when a later one fails; the failure is re-raised.
        """
        rosters: dict[str, Roster] = {}
        created: list[Assignment] = []
        remaining = list(self.pending)

        def cached_roster(department_id: str) -> Roster:
            if department_id not in rosters:
                rosters[department_id] = self.roster_for(department_id, ensure_roster)
            return rosters[department_id]

        try:
            for entry in list(remaining):
                employee = self.employee(entry.employee_id)
                tpl = self.template(entry.template_id)
                if employee is None or (entry.template_id and tpl is None):
                    remaining.remove(entry)
                    continue
                if tpl is None and not entry.has_window:
                    remaining.remove(entry)
                    continue
                department_id = self.target_department(employee.id, fallback_department_id)
                if not department_id:
                    raise BoardError("No department found. Please add a department first.")

                saved = create(cached_roster(department_id), entry, tpl)
                remaining.remove(entry)
                if saved is not None:
                    created.append(saved)
        finally:
            self.pending = remaining
            self.assignments = created + self.assignments

        logger.info("Saved %d pending assignment(s)", len(created))
        return created

    # -------------------------------------------------------------------------
    # Optimistic mutations
    # -------------------------------------------------------------------------

    def add(self, assignment: Assignment) -> None:
        """Show a freshly created assignment first in its cell."""
        self.assignments.insert(0, assignment)

    def move(
        self,
        assignment_id: str,
        employee_id: str,
        day: date,
        persist: Callable[[str, str, date], Assignment | None],
    ) -> Assignment | None:
        """
        Move an assignment to another employee/day.

        Returns the backend's copy, or None when nothing needed to change.
        On failure the previous list is restored before the error propagates.
        """
        current = self.assignment(assignment_id)
        if current is None:
            return None
        if current.employee_id == employee_id and current.date == day:
            return None
        self._ensure_unlocked()

        previous = list(self.assignments)
        self.assignments = [a.moved(employee_id, day) if a.id == assignment_id else a for a in self.assignments]
        try:
            updated = persist(assignment_id, employee_id, day)
        except BackendError as exc:
            self.assignments = previous
            if exc.is_conflict:
                raise MoveConflict(exc) from exc
            raise
        if updated is None:
            self.assignments = previous
            return None
        self.assignments = [updated if a.id == assignment_id else a for a in self.assignments]
        return updated

    def delete(self, assignment_id: str, persist: Callable[[str], None]) -> bool:
        for index, current in enumerate(self.assignments):
            if current.id == assignment_id:
                break
        else:
            return False

        del self.assignments[index]
        try:
            persist(assignment_id)
        except BackendError:
            self.assignments.insert(index, current)
            raise
        self.swap_requested.discard(assignment_id)
        return True

    def mark_swap_requested(self, assignment_id: str) -> None:
        self.swap_requested.add(assignment_id)

    def apply_availability(self, request: AvailabilityRequest) -> int:
        """
        Drop the employee's assignments covered by an approved request.

        A request without a window covers the whole day.
        """
        def covered(a: Assignment) -> bool:
            if a.employee_id != request.employee_id or a.date != request.date:
                return False
            if request.is_full_day:
                return True
            return overlaps(a.start_minutes, a.end_minutes, request.start_minutes, request.end_minutes)

        before = len(self.assignments)
        self.assignments = [a for a in self.assignments if not covered(a)]
        return before - len(self.assignments)
