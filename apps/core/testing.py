"""
In-memory scheduling backend for tests.

``FakeBackend`` answers the REST endpoints Rota uses, keeping records in
their camelCase wire form, and is served to ``BackendClient`` through an
``httpx.MockTransport``:

    backend = FakeBackend()
    with mock.patch.object(BackendClient, "transport", backend.transport()):
        ...

``BackendTestMixin`` does the patching for Django ``TestCase`` classes.
"""

from __future__ import annotations

import itertools
import json
import re
import time
from datetime import date, datetime
from datetime import timezone as dt_timezone
from unittest import mock

import httpx
from jose import jwt

from .client import BackendClient
from .timeutils import iso_datetime, overlaps, to_minutes

SIGNING_KEY = "fake-backend-secret"


def _day(value) -> date | None:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


def _now_iso() -> str:
    return datetime.now(dt_timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


class FakeBackend:
    def __init__(self, prefix: str = "/api"):
        self.prefix = prefix
        self.departments: dict[str, dict] = {}
        self.employees: dict[str, dict] = {}
        self.passwords: dict[str, str] = {}
        self.templates: dict[str, dict] = {}
        self.rosters: dict[str, dict] = {}
        self.assignments: dict[str, dict] = {}
        self.availability: dict[str, dict] = {}
        self.swaps: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.requests: list[httpx.Request] = []
        self.down = False
        self._failures: list[dict] = []
        self._ids = itertools.count(1)
        self._routes = [
            ("POST", r"/auth/login", self._login),
            ("GET", r"/departments", self._list_departments),
            ("POST", r"/departments", self._create_department),
            ("PUT", r"/departments/(?P<pk>[^/]+)", self._update_department),
            ("DELETE", r"/departments/(?P<pk>[^/]+)", self._delete_department),
            ("GET", r"/employees", self._list_employees),
            ("POST", r"/employees", self._create_employee),
            ("PATCH", r"/employees/(?P<pk>[^/]+)", self._update_employee),
            ("DELETE", r"/employees/(?P<pk>[^/]+)", self._delete_employee),
            ("POST", r"/employees/(?P<pk>[^/]+)/password", self._set_password),
            ("GET", r"/shift-templates", self._list_templates),
            ("POST", r"/shift-templates", self._create_template),
            ("PATCH", r"/shift-templates/(?P<pk>[^/]+)", self._update_template),
            ("DELETE", r"/shift-templates/(?P<pk>[^/]+)", self._delete_template),
            ("GET", r"/rosters", self._list_rosters),
            ("POST", r"/rosters/draft", self._create_roster),
            ("POST", r"/rosters/(?P<pk>[^/]+)/publish", self._publish_roster),
            ("POST", r"/rosters/(?P<pk>[^/]+)/clone", self._clone_roster),
            ("GET", r"/assignments", self._list_assignments),
            ("POST", r"/assignments", self._create_assignment),
            ("PUT", r"/assignments/(?P<pk>[^/]+)", self._move_assignment),
            ("DELETE", r"/assignments/(?P<pk>[^/]+)", self._delete_assignment),
            ("GET", r"/availability-requests", self._list_availability),
            ("POST", r"/availability-requests", self._create_availability),
            ("POST", r"/availability-requests/(?P<pk>[^/]+)/(?P<action>approve|reject)", self._decide_availability),
            ("GET", r"/swap-requests", self._list_swaps),
            ("POST", r"/swap-requests", self._create_swap),
            ("POST", r"/swap-requests/(?P<pk>[^/]+)/(?P<action>accept|decline|cancel)", self._decide_swap),
            ("GET", r"/reports/summary", self._report_summary),
        ]

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def fail(self, method: str, path: str, status: int = 500, error: str = "Internal error", times: int = 1) -> None:
        """Answer the next ``times`` matching calls with an error. ``path`` is a regex."""
        self._failures.append({"method": method, "path": path, "status": status, "error": error, "times": times})

    def calls_to(self, method: str, path: str) -> int:
        return sum(1 for m, p in self.calls if m == method and re.fullmatch(path, p))

    def _next_id(self, kind: str) -> str:
        return f"{kind}-{next(self._ids)}"

    def handle(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("Connection refused", request=request)

        path = request.url.path
        if path.startswith(self.prefix):
            path = path[len(self.prefix):]
        method = request.method
        self.calls.append((method, path))
        self.requests.append(request)

        for failure in self._failures:
            if failure["times"] and failure["method"] == method and re.fullmatch(failure["path"], path):
                failure["times"] -= 1
                return httpx.Response(failure["status"], json={"error": failure["error"]})

        for route_method, pattern, handler in self._routes:
            match = re.fullmatch(pattern, path)
            if route_method == method and match:
                break
        else:
            return httpx.Response(404, json={"error": f"No route for {method} {path}"})

        caller = None
        if handler != self._login:
            caller = self._caller(request)
            if caller is None:
                return httpx.Response(401, json={"error": "Unauthorized"})

        body = json.loads(request.content) if request.content else {}
        params = dict(request.url.params)
        status, payload = handler(caller=caller, body=body, params=params, **match.groupdict())
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    def _caller(self, request: httpx.Request) -> dict | None:
        header = request.headers.get("Authorization", "")
        token = header[len("Bearer "):] if header.startswith("Bearer ") else ""
        employee_id = self.tokens.get(token)
        return self.employees.get(employee_id) if employee_id else None

    # -------------------------------------------------------------------------
    # Seeding helpers
    # -------------------------------------------------------------------------

    def issue_token(self, employee: dict, ttl: int = 3600) -> str:
        claims = {"sub": employee["id"], "role": employee["role"], "exp": int(time.time()) + ttl}
        token = jwt.encode(claims, SIGNING_KEY, algorithm="HS256")
        self.tokens[token] = employee["id"]
        return token

    def add_department(self, name: str, color: str = "#3B82F6", description: str = "") -> dict:
        record = {"id": self._next_id("dep"), "name": name, "color": color, "description": description}
        self.departments[record["id"]] = record
        return record

    def add_employee(
        self,
        email: str,
        full_name: str,
        role: str = "EMPLOYEE",
        department_id: str | None = None,
        password: str | None = None,
        active: bool = True,
    ) -> dict:
        record = {
            "id": self._next_id("emp"),
            "email": email,
            "fullName": full_name,
            "role": role,
            "departmentId": department_id,
            "active": active,
        }
        self.employees[record["id"]] = record
        if password:
            self.passwords[email.lower()] = password
        return record

    def add_template(self, department_id: str, code: str, name: str, start: str, end: str, color: str = "") -> dict:
        record = {
            "id": self._next_id("tpl"),
            "departmentId": department_id,
            "code": code,
            "name": name,
            "startMinutes": to_minutes(start),
            "endMinutes": to_minutes(end),
            "color": color,
        }
        self.templates[record["id"]] = record
        return record

    def add_roster(self, department_id: str, start: date, end: date, status: str = "DRAFT") -> dict:
        record = {
            "id": self._next_id("ros"),
            "departmentId": department_id,
            "startDate": iso_datetime(start),
            "endDate": iso_datetime(end),
            "status": status,
            "locked": status == "PUBLISHED",
            "version": 1,
            "publishedAt": _now_iso() if status == "PUBLISHED" else None,
        }
        self.rosters[record["id"]] = record
        return record

    def add_assignment(
        self,
        roster: dict,
        employee: dict,
        day: date,
        start: str,
        end: str,
        template: dict | None = None,
        shift_type: str = "REGULAR",
    ) -> dict:
        record = {
            "id": self._next_id("asg"),
            "rosterId": roster["id"],
            "employeeId": employee["id"],
            "date": iso_datetime(day),
            "startMinutes": to_minutes(start),
            "endMinutes": to_minutes(end),
            "templateId": template["id"] if template else None,
            "type": shift_type,
            "createdAt": _now_iso(),
        }
        self.assignments[record["id"]] = record
        return record

    def add_availability(
        self, employee: dict, day: date, start: str | None = None, end: str | None = None, status: str = "PENDING", note: str | None = None
    ) -> dict:
        record = {
            "id": self._next_id("req"),
            "employeeId": employee["id"],
            "date": iso_datetime(day, 12),
            "startMinutes": to_minutes(start) if start else None,
            "endMinutes": to_minutes(end) if end else None,
            "note": note,
            "status": status,
            "createdAt": _now_iso(),
            "decidedAt": None,
        }
        self.availability[record["id"]] = record
        return record

    def add_swap(self, requested_by: dict, from_assignment: dict, to_assignment: dict, status: str = "PENDING") -> dict:
        record = {
            "id": self._next_id("swp"),
            "status": status,
            "requestedById": requested_by["id"],
            "fromAssignmentId": from_assignment["id"],
            "toAssignmentId": to_assignment["id"],
            "createdAt": _now_iso(),
            "decidedAt": None,
        }
        self.swaps[record["id"]] = record
        return record

    # -------------------------------------------------------------------------
    # Shared checks
    # -------------------------------------------------------------------------

    @staticmethod
    def _error(status: int, message: str):
        return status, {"error": message}

    def _in_range(self, value, params: dict) -> bool:
        day = _day(value)
        start, end = _day(params.get("startDate")), _day(params.get("endDate"))
        return (start is None or day >= start) and (end is None or day <= end)

    def _roster_locked(self, roster_id: str) -> bool:
        roster = self.rosters.get(roster_id)
        return bool(roster and (roster["locked"] or roster["status"] == "PUBLISHED"))

    def _slot_taken(self, employee_id: str, day: date, start: int, end: int, exclude: str | None = None) -> bool:
        for a in self.assignments.values():
            if a["id"] == exclude or a["employeeId"] != employee_id or _day(a["date"]) != day:
                continue
            if (a["startMinutes"], a["endMinutes"]) == (start, end) or overlaps(a["startMinutes"], a["endMinutes"], start, end):
                return True
        return False

    def _department_of_assignment(self, assignment: dict) -> str | None:
        roster = self.rosters.get(assignment["rosterId"])
        return roster["departmentId"] if roster else None

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    def _login(self, caller, body, params):
        email = (body.get("email") or "").lower()
        employee = next((e for e in self.employees.values() if e["email"].lower() == email), None)
        if employee is None or self.passwords.get(email) != body.get("password"):
            return self._error(401, "Invalid credentials")
        return 200, {
            "token": self.issue_token(employee),
            "user": {
                "id": employee["id"],
                "email": employee["email"],
                "fullName": employee["fullName"],
                "role": employee["role"],
            },
        }

    # -------------------------------------------------------------------------
    # Departments
    # -------------------------------------------------------------------------

    def _list_departments(self, caller, body, params):
        return 200, list(self.departments.values())

    def _create_department(self, caller, body, params):
        if not body.get("name"):
            return self._error(400, "name is required")
        if any(d["name"] == body["name"] for d in self.departments.values()):
            return self._error(409, "Department name already exists")
        return 201, self.add_department(body["name"], body.get("color") or "", body.get("description") or "")

    def _update_department(self, caller, body, params, pk):
        record = self.departments.get(pk)
        if record is None:
            return self._error(404, "Department not found")
        record.update({k: body[k] for k in ("name", "color", "description") if k in body})
        return 200, record

    def _delete_department(self, caller, body, params, pk):
        if self.departments.pop(pk, None) is None:
            return self._error(404, "Department not found")
        return 204, None

    # -------------------------------------------------------------------------
    # Employees
    # -------------------------------------------------------------------------

    def _list_employees(self, caller, body, params):
        return 200, list(self.employees.values())

    def _create_employee(self, caller, body, params):
        if not body.get("email") or not body.get("fullName"):
            return self._error(400, "email and fullName are required")
        if any(e["email"].lower() == body["email"].lower() for e in self.employees.values()):
            return self._error(409, "Email already exists")
        record = self.add_employee(
            body["email"], body["fullName"], body.get("role") or "EMPLOYEE", body.get("departmentId"),
            active=body.get("active", True),
        )
        return 201, record

    def _update_employee(self, caller, body, params, pk):
        record = self.employees.get(pk)
        if record is None:
            return self._error(404, "Employee not found")
        record.update({k: body[k] for k in ("email", "fullName", "role", "departmentId", "active") if k in body})
        return 200, record

    def _delete_employee(self, caller, body, params, pk):
        if self.employees.pop(pk, None) is None:
            return self._error(404, "Employee not found")
        return 204, None

    def _set_password(self, caller, body, params, pk):
        record = self.employees.get(pk)
        if record is None:
            return self._error(404, "Employee not found")
        if len(body.get("password") or "") < 6:
            return self._error(400, "Password too short")
        self.passwords[record["email"].lower()] = body["password"]
        return 204, None

    # -------------------------------------------------------------------------
    # Shift templates
    # -------------------------------------------------------------------------

    def _list_templates(self, caller, body, params):
        return 200, list(self.templates.values())

    def _template_fields(self, body) -> dict:
        fields = {k: body[k] for k in ("name", "code", "color", "departmentId") if k in body}
        if "start" in body:
            fields["startMinutes"] = to_minutes(body["start"])
        if "end" in body:
            fields["endMinutes"] = to_minutes(body["end"])
        return fields

    def _create_template(self, caller, body, params):
        if not body.get("departmentId") or not body.get("code"):
            return self._error(400, "departmentId and code are required")
        record = self.add_template(
            body["departmentId"], body["code"], body.get("name") or body["code"],
            body.get("start") or "00:00", body.get("end") or "00:00", body.get("color") or "",
        )
        return 201, record

    def _update_template(self, caller, body, params, pk):
        record = self.templates.get(pk)
        if record is None:
            return self._error(404, "Template not found")
        record.update(self._template_fields(body))
        return 200, record

    def _delete_template(self, caller, body, params, pk):
        if self.templates.pop(pk, None) is None:
            return self._error(404, "Template not found")
        return 204, None

    # -------------------------------------------------------------------------
    # Rosters
    # -------------------------------------------------------------------------

    def _list_rosters(self, caller, body, params):
        start, end = _day(params.get("startDate")), _day(params.get("endDate"))
        department_id = params.get("departmentId")
        found = [
            r
            for r in self.rosters.values()
            if (not department_id or r["departmentId"] == department_id)
            and (end is None or _day(r["startDate"]) <= end)
            and (start is None or _day(r["endDate"]) >= start)
        ]
        return 200, found

    def _create_roster(self, caller, body, params):
        if body.get("departmentId") not in self.departments:
            return self._error(400, "Unknown department")
        return 201, self.add_roster(body["departmentId"], _day(body["startDate"]), _day(body["endDate"]))

    def _publish_roster(self, caller, body, params, pk):
        record = self.rosters.get(pk)
        if record is None:
            return self._error(404, "Roster not found")
        record.update({"status": "PUBLISHED", "locked": True, "publishedAt": _now_iso()})
        return 200, record

    def _clone_roster(self, caller, body, params, pk):
        source = self.rosters.get(pk)
        if source is None:
            return self._error(404, "Roster not found")
        draft = self.add_roster(source["departmentId"], _day(source["startDate"]), _day(source["endDate"]))
        draft["version"] = (source.get("version") or 1) + 1
        for a in list(self.assignments.values()):
            if a["rosterId"] == pk:
                a["rosterId"] = draft["id"]
        return 201, draft

    # -------------------------------------------------------------------------
    # Assignments
    # -------------------------------------------------------------------------

    def _list_assignments(self, caller, body, params):
        department_id = params.get("departmentId")
        employee_id = params.get("employeeId")
        found = [
            a
            for a in self.assignments.values()
            if self._in_range(a["date"], params)
            and (not employee_id or a["employeeId"] == employee_id)
            and (not department_id or self._department_of_assignment(a) == department_id)
        ]
        found.sort(key=lambda a: (a["date"][:10], a["startMinutes"]))
        return 200, found

    def _create_assignment(self, caller, body, params):
        roster_id = body.get("rosterId")
        if roster_id not in self.rosters:
            return self._error(400, "Unknown roster")
        if self._roster_locked(roster_id):
            return self._error(400, "Roster is published and locked")
        employee = self.employees.get(body.get("employeeId"))
        if employee is None:
            return self._error(400, "Unknown employee")
        day = _day(body.get("date"))
        start, end = to_minutes(body["start"]), to_minutes(body["end"])
        if self._slot_taken(employee["id"], day, start, end):
            return self._error(409, "Conflict: assignment already exists")
        template = self.templates.get(body.get("templateId")) if body.get("templateId") else None
        record = self.add_assignment(
            self.rosters[roster_id], employee, day, body["start"], body["end"], template, body.get("type") or "REGULAR"
        )
        return 201, record

    def _move_assignment(self, caller, body, params, pk):
        record = self.assignments.get(pk)
        if record is None:
            return self._error(404, "Assignment not found")
        if self._roster_locked(record["rosterId"]):
            return self._error(400, "Roster is published and locked")
        employee_id = body.get("employeeId", record["employeeId"])
        day = _day(body.get("date")) or _day(record["date"])
        if self._slot_taken(employee_id, day, record["startMinutes"], record["endMinutes"], exclude=pk):
            return self._error(409, "Conflict: target slot is taken")
        record.update({"employeeId": employee_id, "date": iso_datetime(day)})
        return 200, record

    def _delete_assignment(self, caller, body, params, pk):
        record = self.assignments.get(pk)
        if record is None:
            return self._error(404, "Assignment not found")
        if self._roster_locked(record["rosterId"]):
            return self._error(400, "Roster is published and locked")
        del self.assignments[pk]
        return 204, None

    # -------------------------------------------------------------------------
    # Availability requests
    # -------------------------------------------------------------------------

    def _with_employee(self, request: dict) -> dict:
        employee = self.employees.get(request["employeeId"]) or {}
        return {
            **request,
            "employee": {"fullName": employee.get("fullName"), "departmentId": employee.get("departmentId")},
        }

    def _list_availability(self, caller, body, params):
        department_id = params.get("departmentId")
        found = [
            self._with_employee(r)
            for r in self.availability.values()
            if self._in_range(r["date"], params)
            and (not params.get("status") or r["status"] == params["status"])
            and (not params.get("employeeId") or r["employeeId"] == params["employeeId"])
            and (not department_id or (self.employees.get(r["employeeId"]) or {}).get("departmentId") == department_id)
        ]
        return 200, found

    def _create_availability(self, caller, body, params):
        day = _day(body.get("date"))
        if day is None:
            return self._error(400, "date is required")
        record = self.add_availability(caller, day, body.get("start"), body.get("end"), note=body.get("note"))
        return 201, self._with_employee(record)

    def _decide_availability(self, caller, body, params, pk, action):
        record = self.availability.get(pk)
        if record is None:
            return self._error(404, "Request not found")
        if record["status"] != "PENDING":
            return self._error(400, "Request already decided")
        record.update({"status": "APPROVED" if action == "approve" else "REJECTED", "decidedAt": _now_iso()})
        return 200, self._with_employee(record)

    # -------------------------------------------------------------------------
    # Swap requests
    # -------------------------------------------------------------------------

    def _swap_side(self, assignment_id: str) -> dict:
        a = self.assignments.get(assignment_id) or {}
        employee = self.employees.get(a.get("employeeId")) or {}
        return {
            "id": assignment_id,
            "date": a.get("date"),
            "startMinutes": a.get("startMinutes"),
            "endMinutes": a.get("endMinutes"),
            "employeeId": a.get("employeeId"),
            "employee": {"fullName": employee.get("fullName")},
        }

    def _render_swap(self, swap: dict) -> dict:
        requester = self.employees.get(swap["requestedById"]) or {}
        return {
            "id": swap["id"],
            "status": swap["status"],
            "requestedById": swap["requestedById"],
            "requestedBy": {"fullName": requester.get("fullName")},
            "fromAssignment": self._swap_side(swap["fromAssignmentId"]),
            "toAssignment": self._swap_side(swap["toAssignmentId"]),
            "createdAt": swap["createdAt"],
            "decidedAt": swap["decidedAt"],
        }

    def _list_swaps(self, caller, body, params):
        return 200, [
            self._render_swap(s)
            for s in self.swaps.values()
            if s["fromAssignmentId"] in self.assignments and s["toAssignmentId"] in self.assignments
        ]

    def _create_swap(self, caller, body, params):
        source = self.assignments.get(body.get("fromAssignmentId"))
        target = self.assignments.get(body.get("toAssignmentId"))
        if source is None or target is None:
            return self._error(400, "Unknown assignment")
        return 201, self._render_swap(self.add_swap(caller, source, target))

    def _decide_swap(self, caller, body, params, pk, action):
        swap = self.swaps.get(pk)
        if swap is None:
            return self._error(404, "Swap request not found")
        if swap["status"] != "PENDING":
            return self._error(400, "Swap request already decided")
        if action == "accept":
            source = self.assignments[swap["fromAssignmentId"]]
            target = self.assignments[swap["toAssignmentId"]]
            source["employeeId"], target["employeeId"] = target["employeeId"], source["employeeId"]
        swap["status"] = {"accept": "ACCEPTED", "decline": "DECLINED", "cancel": "CANCELED"}[action]
        swap["decidedAt"] = _now_iso()
        return 200, self._render_swap(swap)

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def _report_summary(self, caller, body, params):
        _, assignments = self._list_assignments(caller, body, params)
        by_employee: dict[str, dict] = {}
        by_template: dict[str, dict] = {}
        total = 0
        for a in assignments:
            minutes = (a["endMinutes"] - a["startMinutes"]) % (24 * 60)
            total += minutes
            employee = self.employees.get(a["employeeId"]) or {}
            row = by_employee.setdefault(a["employeeId"], {
                "employeeId": a["employeeId"],
                "fullName": employee.get("fullName") or a["employeeId"],
                "departmentId": employee.get("departmentId"),
                "minutes": 0,
                "overtimeMinutes": 0,
                "assignmentCount": 0,
            })
            row["minutes"] += minutes
            row["assignmentCount"] += 1
            if a.get("type") == "OVERTIME":
                row["overtimeMinutes"] += minutes
            template = self.templates.get(a.get("templateId") or "")
            if template:
                t_row = by_template.setdefault(template["id"], {
                    "templateId": template["id"],
                    "code": template["code"],
                    "name": template["name"],
                    "departmentId": template["departmentId"],
                    "count": 0,
                    "minutes": 0,
                })
                t_row["count"] += 1
                t_row["minutes"] += minutes

        start, end = _day(params.get("startDate")), _day(params.get("endDate"))
        return 200, {
            "range": {
                "startDate": start.isoformat() if start else None,
                "endDate": end.isoformat() if end else None,
            },
            "totals": {"totalAssignments": len(assignments), "totalMinutes": total},
            "byEmployee": list(by_employee.values()),
            "byTemplate": list(by_template.values()),
        }


class BackendTestMixin:
    """
    Serve a fresh ``FakeBackend`` to every ``BackendClient`` during a test.

    ``sign_in`` logs the test client in through the real authentication
    backend, so the session carries a token the fake accepts.
    """

    def setUp(self):
        super().setUp()
        self.backend = FakeBackend()
        patcher = mock.patch.object(BackendClient, "transport", self.backend.transport())
        patcher.start()
        self.addCleanup(patcher.stop)

    def sign_in(self, employee: dict, password: str = "secret123"):
        self.backend.passwords[employee["email"].lower()] = password
        logged_in = self.client.login(username=employee["email"], password=password)
        assert logged_in, f"could not sign in {employee['email']}"
        return logged_in
