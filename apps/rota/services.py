"""
Typed access to the scheduling backend.

Wraps ``BackendClient`` with one method per endpoint the screens use,
decoding responses into entities and building camelCase request bodies.
"""

from __future__ import annotations

import logging
from datetime import date

from apps.api.serializers import (
    AssignmentSerializer,
    AvailabilityRequestSerializer,
    DepartmentSerializer,
    EmployeeSerializer,
    ReportSummarySerializer,
    RosterSerializer,
    ShiftTemplateSerializer,
    SwapRequestSerializer,
    decode,
)
from apps.core.client import BackendClient
from apps.core.context_processors import ALL_DEPARTMENTS
from apps.core.timeutils import iso_datetime, to_hhmm

from .entities import (
    Assignment,
    AvailabilityRequest,
    Department,
    Employee,
    PendingCreate,
    ReportSummary,
    Roster,
    ShiftTemplate,
    SwapRequest,
)

logger = logging.getLogger(__name__)


def _range_params(start: date, end: date, department_id: str | None = None, hour: int = 0, **extra) -> dict:
    params = {"startDate": iso_datetime(start, hour), "endDate": iso_datetime(end, hour)}
    if department_id and department_id != ALL_DEPARTMENTS:
        params["departmentId"] = department_id
    params.update(extra)
    return params


class RotaService:
    def __init__(self, client: BackendClient):
        self.client = client

    @classmethod
    def for_request(cls, request) -> "RotaService":
        return cls(BackendClient.for_request(request))

    # =========================================================================
    # Departments
    # =========================================================================

    def departments(self) -> list[Department]:
        return decode(DepartmentSerializer, self.client.get("/departments"), many=True)

    def general_department_id(self, departments: list[Department] | None = None) -> str | None:
        """Id of the department named Genel/General; its templates apply everywhere."""
        if departments is None:
            departments = self.departments()
        return next((d.id for d in departments if d.is_general), None)

    def create_department(self, name: str, color: str, description: str) -> Department:
        body = {"name": name, "color": color, "description": description}
        department = decode(DepartmentSerializer, self.client.post("/departments", body))
        logger.info("Created department %s", department.id)
        return department

    def update_department(self, department_id: str, name: str, color: str, description: str) -> Department:
        body = {"name": name, "color": color, "description": description}
        return decode(DepartmentSerializer, self.client.put(f"/departments/{department_id}", body))

    def delete_department(self, department_id: str) -> None:
        self.client.delete(f"/departments/{department_id}")
        logger.info("Deleted department %s", department_id)

    # =========================================================================
    # Employees
    # =========================================================================

    def employees(self) -> list[Employee]:
        return decode(EmployeeSerializer, self.client.get("/employees"), many=True)

    def _employee_body(self, full_name, email, role, department_id, active) -> dict:
        return {
            "fullName": full_name,
            "email": email,
            "role": role,
            "departmentId": department_id or None,
            "active": active,
        }

    def create_employee(self, full_name: str, email: str, role: str, department_id: str | None, active: bool = True) -> Employee:
        body = self._employee_body(full_name, email, role, department_id, active)
        employee = decode(EmployeeSerializer, self.client.post("/employees", body))
        logger.info("Created employee %s", employee.id)
        return employee

    def update_employee(self, employee_id: str, full_name: str, email: str, role: str, department_id: str | None, active: bool) -> Employee:
        body = self._employee_body(full_name, email, role, department_id, active)
        return decode(EmployeeSerializer, self.client.patch(f"/employees/{employee_id}", body))

    def delete_employee(self, employee_id: str) -> None:
        self.client.delete(f"/employees/{employee_id}")
        logger.info("Deleted employee %s", employee_id)

    def set_employee_password(self, employee_id: str, password: str) -> None:
        self.client.post(f"/employees/{employee_id}/password", {"password": password})
        logger.info("Password reset for employee %s", employee_id)

    # =========================================================================
    # Shift templates
    # =========================================================================

    def templates(self) -> list[ShiftTemplate]:
        return decode(ShiftTemplateSerializer, self.client.get("/shift-templates"), many=True)

    def _template_body(self, name, code, start, end, color, department_id) -> dict:
        # The backend accepts start/end as HH:mm
        return {
            "name": name,
            "code": code.upper(),
            "color": color,
            "departmentId": department_id,
            "start": start,
            "end": end,
        }

    def create_template(self, name: str, code: str, start: str, end: str, color: str, department_id: str) -> ShiftTemplate:
        body = self._template_body(name, code, start, end, color, department_id)
        return decode(ShiftTemplateSerializer, self.client.post("/shift-templates", body))

    def update_template(self, template_id: str, name: str, code: str, start: str, end: str, color: str, department_id: str) -> ShiftTemplate:
        body = self._template_body(name, code, start, end, color, department_id)
        return decode(ShiftTemplateSerializer, self.client.patch(f"/shift-templates/{template_id}", body))

    def delete_template(self, template_id: str) -> None:
        self.client.delete(f"/shift-templates/{template_id}")

    # =========================================================================
    # Rosters
    # =========================================================================

    def rosters(self, start: date, end: date, department_id: str | None = None) -> list[Roster]:
        """Rosters overlapping the range."""
        payload = self.client.get("/rosters", _range_params(start, end, department_id))
        return decode(RosterSerializer, payload, many=True)

    def create_draft_roster(self, department_id: str, start: date, end: date) -> Roster:
        body = {"departmentId": department_id, "startDate": iso_datetime(start), "endDate": iso_datetime(end)}
        roster = decode(RosterSerializer, self.client.post("/rosters/draft", body))
        logger.info("Created draft roster %s for department %s", roster.id, department_id)
        return roster

    def ensure_roster(self, department_id: str, start: date, end: date) -> Roster:
        """Reuse a roster overlapping the range, or create a draft for it."""
        existing = self.rosters(start, end, department_id)
        if existing:
            return existing[0]
        return self.create_draft_roster(department_id, start, end)

    def publish_roster(self, roster_id: str) -> Roster:
        roster = decode(RosterSerializer, self.client.post(f"/rosters/{roster_id}/publish"))
        logger.info("Published roster %s", roster_id)
        return roster

    def clone_roster(self, roster_id: str) -> Roster:
        roster = decode(RosterSerializer, self.client.post(f"/rosters/{roster_id}/clone"))
        logger.info("Cloned roster %s into draft %s", roster_id, roster.id)
        return roster

    # =========================================================================
    # Assignments
    # =========================================================================

    def assignments(self, start: date, end: date, department_id: str | None = None, employee_id: str | None = None, hour: int = 0) -> list[Assignment]:
        params = _range_params(start, end, department_id, hour=hour)
        if employee_id:
            params["employeeId"] = employee_id
        return decode(AssignmentSerializer, self.client.get("/assignments", params), many=True)

    def create_assignment(
        self,
        roster_id: str,
        employee_id: str,
        day: date,
        start_minutes: int,
        end_minutes: int,
        template_id: str | None = None,
        shift_type: str | None = None,
    ) -> Assignment:
        body = {
            "rosterId": roster_id,
            "employeeId": employee_id,
            "date": iso_datetime(day),
            "start": to_hhmm(start_minutes),
            "end": to_hhmm(end_minutes),
        }
        if template_id:
            body["templateId"] = template_id
        if shift_type:
            body["type"] = shift_type
        return decode(AssignmentSerializer, self.client.post("/assignments", body))

    def create_from_pending(self, roster: Roster, create: PendingCreate, template: ShiftTemplate | None) -> Assignment:
        if template is not None:
            return self.create_assignment(
                roster.id, create.employee_id, create.date,
                template.start_minutes, template.end_minutes, template_id=template.id,
            )
        return self.create_assignment(
            roster.id, create.employee_id, create.date, create.start_minutes, create.end_minutes,
        )

    def move_assignment(self, assignment_id: str, employee_id: str, day: date) -> Assignment | None:
        payload = self.client.put(
            f"/assignments/{assignment_id}",
            {"employeeId": employee_id, "date": iso_datetime(day)},
        )
        if not payload:
            return None
        return decode(AssignmentSerializer, payload)

    def delete_assignment(self, assignment_id: str) -> None:
        self.client.delete(f"/assignments/{assignment_id}")

    # =========================================================================
    # Availability requests
    # =========================================================================

    def availability_requests(
        self,
        start: date,
        end: date,
        department_id: str | None = None,
        status: str | None = None,
        employee_id: str | None = None,
    ) -> list[AvailabilityRequest]:
        params = _range_params(start, end, department_id, hour=12, status=status, employeeId=employee_id)
        payload = self.client.get("/availability-requests", params)
        return decode(AvailabilityRequestSerializer, payload, many=True)

    def create_availability_request(
        self, day: date, start: str | None = None, end: str | None = None, note: str | None = None
    ) -> AvailabilityRequest:
        body = {"date": iso_datetime(day, 12)}
        if start:
            body["start"] = start
        if end:
            body["end"] = end
        if note:
            body["note"] = note
        return decode(AvailabilityRequestSerializer, self.client.post("/availability-requests", body))

    def decide_availability_request(self, request_id: str, approve: bool) -> AvailabilityRequest:
        action = "approve" if approve else "reject"
        payload = self.client.post(f"/availability-requests/{request_id}/{action}")
        logger.info("Availability request %s: %s", request_id, action)
        return decode(AvailabilityRequestSerializer, payload)

    # =========================================================================
    # Swap requests
    # =========================================================================

    def swap_requests(self) -> list[SwapRequest]:
        return decode(SwapRequestSerializer, self.client.get("/swap-requests"), many=True)

    def create_swap_request(self, from_assignment_id: str, to_assignment_id: str) -> None:
        self.client.post(
            "/swap-requests",
            {"fromAssignmentId": from_assignment_id, "toAssignmentId": to_assignment_id},
        )
        logger.info("Swap requested: %s <-> %s", from_assignment_id, to_assignment_id)

    def decide_swap_request(self, request_id: str, action: str) -> None:
        """``action`` is one of accept, decline, cancel."""
        self.client.post(f"/swap-requests/{request_id}/{action}")
        logger.info("Swap request %s: %s", request_id, action)

    # =========================================================================
    # Reports
    # =========================================================================

    def report_summary(self, start: date, end: date, department_id: str | None = None) -> ReportSummary:
        payload = self.client.get("/reports/summary", _range_params(start, end, department_id, hour=12))
        return decode(ReportSummarySerializer, payload)
