"""
Views for Rota - the administration screens and the employee's own week.

Everything reads from and writes to the scheduling backend through
RotaService. A failing backend call is rendered into the page as ``error``
(or, after a redirect, as a flash message); forms collect ``errors``.
The schedule board lives in ``schedule.py``.
"""

import logging
from datetime import timedelta

from django.contrib import messages
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from apps.core.auth import backend_view
from apps.core.client import SESSION_EMPLOYEE_KEY, BackendError
from apps.core.context_processors import ALL_DEPARTMENTS, selected_department
from apps.core.timeutils import (
    end_of_month,
    end_of_week,
    monday_of,
    parse_day,
    parse_hhmm,
    start_of_month,
    to_hhmm,
    week_dates,
)

from . import stats
from .board import templates_for_department
from .entities import RequestStatus, Role, SwapStatus
from .services import RotaService
from .state import apply_approval_to_boards

logger = logging.getLogger(__name__)

DEPARTMENT_COLORS = ["#3B82F6", "#10B981", "#8B5CF6", "#F59E0B", "#EF4444", "#EC4899", "#6366F1", "#14B8A6"]
TEMPLATE_COLORS = ["#FEF3C7", "#FED7AA", "#E9D5FF", "#DBEAFE", "#D1FAE5", "#FEE2E2"]
MIN_PASSWORD_LENGTH = 6
DASHBOARD_WINDOW_DAYS = 30
REQUEST_STATUSES = [RequestStatus.PENDING, RequestStatus.APPROVED, RequestStatus.REJECTED]
SWAP_ACTIONS = {
    "accept": SwapStatus.ACCEPTED,
    "decline": SwapStatus.DECLINED,
    "cancel": SwapStatus.CANCELED,
}


def _department_names(departments) -> dict:
    return {d.id: d.name for d in departments}


@backend_view()
@require_GET
def home(request: HttpRequest) -> HttpResponse:
    """Admins land on the dashboard, employees on their own week."""
    if request.user.is_staff:
        return redirect("rota:dashboard")
    return redirect("rota:my_week")


# =============================================================================
# Dashboard
# =============================================================================

@backend_view(admin=True)
@require_GET
def dashboard(request: HttpRequest) -> HttpResponse:
    service = RotaService.for_request(request)
    now = timezone.localtime()
    today = now.date()
    department_id = selected_department(request)

    try:
        departments = service.departments()
        employees = service.employees()
        templates = service.templates()
        assignments = service.assignments(
            today - timedelta(days=DASHBOARD_WINDOW_DAYS),
            today + timedelta(days=DASHBOARD_WINDOW_DAYS),
            department_id,
        )
    except BackendError as exc:
        return render(request, "rota/dashboard.html", {"error": exc.message, "today": today})

    if department_id != ALL_DEPARTMENTS:
        employees = [e for e in employees if e.department_id == department_id]

    names = {e.id: e.full_name for e in employees}
    templates_by_id = {t.id: t for t in templates}

    def describe(items):
        return [
            {
                "assignment": a,
                "employee_name": names.get(a.employee_id, a.employee_id),
                "template": templates_by_id.get(a.template_id),
            }
            for a in items
        ]

    return render(request, "rota/dashboard.html", {
        "today": today,
        "department_count": len(departments),
        "employee_count": len(employees),
        "active_now": stats.active_shift_count(assignments, now),
        "today_assignments": describe(stats.assignments_on(assignments, today)),
        "recent_assignments": describe(stats.recent_assignments(assignments)),
        "distribution": stats.shift_distribution(assignments, templates),
    })


# =============================================================================
# Departments
# =============================================================================

@backend_view(admin=True)
@require_GET
def department_list(request: HttpRequest) -> HttpResponse:
    try:
        departments = RotaService.for_request(request).departments()
    except BackendError as exc:
        return render(request, "rota/departments/list.html", {"departments": [], "error": exc.message})
    return render(request, "rota/departments/list.html", {"departments": departments})


def _department_form(request: HttpRequest, department=None) -> HttpResponse:
    service = RotaService.for_request(request)

    if request.method == "POST":
        name = request.POST.get("name", "").strip()
        color = request.POST.get("color", "").strip() or DEPARTMENT_COLORS[0]
        description = request.POST.get("description", "").strip()

        errors = []
        if not name:
            errors.append("Name is required")

        if not errors:
            try:
                if department is None:
                    service.create_department(name, color, description)
                else:
                    service.update_department(department.id, name, color, description)
            except BackendError as exc:
                errors.append(exc.message)
            else:
                return redirect("rota:departments")

        return render(request, "rota/departments/form.html", {
            "department": department,
            "errors": errors,
            "name": name,
            "color": color,
            "description": description,
            "colors": DEPARTMENT_COLORS,
        })

    return render(request, "rota/departments/form.html", {
        "department": department,
        "name": department.name if department else "",
        "color": (department.color if department else "") or DEPARTMENT_COLORS[0],
        "description": department.description if department else "",
        "colors": DEPARTMENT_COLORS,
    })


@backend_view(admin=True)
@require_http_methods(["GET", "POST"])
def department_add(request: HttpRequest) -> HttpResponse:
    return _department_form(request)


@backend_view(admin=True)
@require_http_methods(["GET", "POST"])
def department_edit(request: HttpRequest, pk: str) -> HttpResponse:
    try:
        departments = RotaService.for_request(request).departments()
    except BackendError as exc:
        messages.error(request, exc.message)
        return redirect("rota:departments")
    department = next((d for d in departments if d.id == pk), None)
    if department is None:
        return redirect("rota:departments")
    return _department_form(request, department)


@backend_view(admin=True)
@require_POST
def department_delete(request: HttpRequest, pk: str) -> HttpResponse:
    try:
        RotaService.for_request(request).delete_department(pk)
    except BackendError as exc:
        messages.error(request, f"Delete failed: {exc.message}")
    else:
        messages.success(request, "Department deleted.")
    return redirect("rota:departments")


# =============================================================================
# Employees
# =============================================================================

def filter_employees(employees, department_id: str, query: str):
    """Department filter plus a case-insensitive search over name, e-mail and role."""
    if department_id != ALL_DEPARTMENTS:
        employees = [e for e in employees if e.department_id == department_id]
    q = query.strip().lower()
    if not q:
        return employees
    return [
        e
        for e in employees
        if q in e.full_name.lower() or q in e.email.lower() or q in e.role.lower()
    ]


@backend_view(admin=True)
@require_GET
def employee_list(request: HttpRequest) -> HttpResponse:
    service = RotaService.for_request(request)
    query = request.GET.get("q", "")
    try:
        employees = service.employees()
        departments = service.departments()
    except BackendError as exc:
        return render(request, "rota/employees/list.html", {"rows": [], "q": query, "error": exc.message})

    names = _department_names(departments)
    rows = [
        {"employee": e, "department_name": names.get(e.department_id, "")}
        for e in filter_employees(employees, selected_department(request), query)
    ]
    context = {"rows": rows, "q": query, "departments": departments}
    if request.htmx:
        return render(request, "rota/employees/partials/_rows.html", context)
    return render(request, "rota/employees/list.html", context)


def _employee_form(request: HttpRequest, employee=None) -> HttpResponse:
    service = RotaService.for_request(request)
    try:
        departments = service.departments()
    except BackendError as exc:
        messages.error(request, exc.message)
        return redirect("rota:employees")

    if request.method == "POST":
        full_name = request.POST.get("full_name", "").strip()
        email = request.POST.get("email", "").strip()
        role = request.POST.get("role", Role.EMPLOYEE)
        department_id = request.POST.get("department", "").strip()
        active = request.POST.get("active") == "on"

        errors = []
        if not full_name:
            errors.append("Full name is required")
        if not email:
            errors.append("E-mail is required")
        if role not in (Role.ADMIN, Role.EMPLOYEE):
            errors.append("Unknown role")

        if not errors:
            try:
                if employee is None:
                    service.create_employee(full_name, email, role, department_id or None, active)
                else:
                    service.update_employee(employee.id, full_name, email, role, department_id or None, active)
            except BackendError as exc:
                errors.append(exc.message)
            else:
                return redirect("rota:employees")

        return render(request, "rota/employees/form.html", {
            "employee": employee,
            "errors": errors,
            "full_name": full_name,
            "email": email,
            "role": role,
            "department_id": department_id,
            "active": active,
            "departments": departments,
            "roles": Role.choices,
        })

    return render(request, "rota/employees/form.html", {
        "employee": employee,
        "full_name": employee.full_name if employee else "",
        "email": employee.email if employee else "",
        "role": employee.role if employee else Role.EMPLOYEE,
        "department_id": (employee.department_id or "") if employee else "",
        "active": employee.active if employee else True,
        "departments": departments,
        "roles": Role.choices,
    })


def _find_employee(request: HttpRequest, pk: str):
    employees = RotaService.for_request(request).employees()
    return next((e for e in employees if e.id == pk), None)


@backend_view(admin=True)
@require_http_methods(["GET", "POST"])
def employee_add(request: HttpRequest) -> HttpResponse:
    return _employee_form(request)


@backend_view(admin=True)
@require_http_methods(["GET", "POST"])
def employee_edit(request: HttpRequest, pk: str) -> HttpResponse:
    try:
        employee = _find_employee(request, pk)
    except BackendError as exc:
        messages.error(request, exc.message)
        return redirect("rota:employees")
    if employee is None:
        return redirect("rota:employees")
    return _employee_form(request, employee)


@backend_view(admin=True)
@require_POST
def employee_delete(request: HttpRequest, pk: str) -> HttpResponse:
    try:
        RotaService.for_request(request).delete_employee(pk)
    except BackendError as exc:
        messages.error(request, f"Delete failed: {exc.message}")
    else:
        messages.success(request, "Employee deleted.")
    return redirect("rota:employees")


@backend_view(admin=True)
@require_http_methods(["GET", "POST"])
def employee_password(request: HttpRequest, pk: str) -> HttpResponse:
    """Set a new password for an employee's backend account."""
    try:
        employee = _find_employee(request, pk)
    except BackendError as exc:
        messages.error(request, exc.message)
        return redirect("rota:employees")
    if employee is None:
        return redirect("rota:employees")

    errors = []
    if request.method == "POST":
        password = request.POST.get("password", "")
        if len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        else:
            try:
                RotaService.for_request(request).set_employee_password(employee.id, password)
            except BackendError as exc:
                errors.append(f"Password update failed: {exc.message}")
            else:
                messages.success(request, "Password updated.")
                return redirect("rota:employees")

    return render(request, "rota/employees/password.html", {"employee": employee, "errors": errors})


# =============================================================================
# Shift templates
# =============================================================================

@backend_view(admin=True)
@require_GET
def template_list(request: HttpRequest) -> HttpResponse:
    service = RotaService.for_request(request)
    try:
        templates = service.templates()
        departments = service.departments()
    except BackendError as exc:
        return render(request, "rota/templates/list.html", {"rows": [], "error": exc.message})

    names = _department_names(departments)
    visible = templates_for_department(
        templates, selected_department(request), service.general_department_id(departments)
    )
    rows = [{"template": t, "department_name": names.get(t.department_id, "")} for t in visible]
    return render(request, "rota/templates/list.html", {"rows": rows})


def _template_form(request: HttpRequest, template=None) -> HttpResponse:
    service = RotaService.for_request(request)
    try:
        departments = service.departments()
    except BackendError as exc:
        messages.error(request, exc.message)
        return redirect("rota:templates")

    if request.method == "POST":
        name = request.POST.get("name", "").strip()
        code = request.POST.get("code", "").strip()
        start = request.POST.get("start", "").strip()
        end = request.POST.get("end", "").strip()
        color = request.POST.get("color", "").strip() or TEMPLATE_COLORS[0]
        department_id = request.POST.get("department", "").strip()

        errors = []
        if not name:
            errors.append("Name is required")
        if not code:
            errors.append("Code is required")
        if parse_hhmm(start) is None or parse_hhmm(end) is None:
            errors.append("Invalid time format. e.g. 09:00")
        if not department_id:
            errors.append("Department is required")

        if not errors:
            try:
                if template is None:
                    service.create_template(name, code, start, end, color, department_id)
                else:
                    service.update_template(template.id, name, code, start, end, color, department_id)
            except BackendError as exc:
                errors.append(exc.message)
            else:
                return redirect("rota:templates")

        return render(request, "rota/templates/form.html", {
            "template": template,
            "errors": errors,
            "name": name,
            "code": code,
            "start": start,
            "end": end,
            "color": color,
            "department_id": department_id,
            "departments": departments,
            "colors": TEMPLATE_COLORS,
        })

    preselected = selected_department(request)
    return render(request, "rota/templates/form.html", {
        "template": template,
        "name": template.name if template else "",
        "code": template.code if template else "",
        "start": to_hhmm(template.start_minutes) if template else "09:00",
        "end": to_hhmm(template.end_minutes) if template else "17:00",
        "color": (template.color if template else "") or TEMPLATE_COLORS[0],
        "department_id": template.department_id if template else (preselected if preselected != ALL_DEPARTMENTS else ""),
        "departments": departments,
        "colors": TEMPLATE_COLORS,
    })


@backend_view(admin=True)
@require_http_methods(["GET", "POST"])
def template_add(request: HttpRequest) -> HttpResponse:
    return _template_form(request)


@backend_view(admin=True)
@require_http_methods(["GET", "POST"])
def template_edit(request: HttpRequest, pk: str) -> HttpResponse:
    try:
        templates = RotaService.for_request(request).templates()
    except BackendError as exc:
        messages.error(request, exc.message)
        return redirect("rota:templates")
    template = next((t for t in templates if t.id == pk), None)
    if template is None:
        return redirect("rota:templates")
    return _template_form(request, template)


@backend_view(admin=True)
@require_POST
def template_delete(request: HttpRequest, pk: str) -> HttpResponse:
    try:
        RotaService.for_request(request).delete_template(pk)
    except BackendError as exc:
        messages.error(request, f"Delete failed: {exc.message}")
    return redirect("rota:templates")


# =============================================================================
# Availability requests (admin)
# =============================================================================

def _availability_filters(request: HttpRequest) -> dict:
    today = timezone.localdate()
    status = request.GET.get("status", "")
    start = parse_day(request.GET.get("start"), monday_of(today))
    end = parse_day(request.GET.get("end"), end_of_week(today))
    return {
        "status": status if status in REQUEST_STATUSES else "",
        "start": start,
        "end": end,
        "department_id": selected_department(request),
    }


@backend_view(admin=True)
@require_GET
def availability_list(request: HttpRequest) -> HttpResponse:
    filters = _availability_filters(request)
    service = RotaService.for_request(request)
    context = {"filters": filters, "statuses": REQUEST_STATUSES, "requests": [], "departments": []}
    try:
        context["departments"] = service.departments()
        context["requests"] = service.availability_requests(
            filters["start"], filters["end"], filters["department_id"], status=filters["status"]
        )
    except BackendError as exc:
        context["error"] = exc.message
    context["department_names"] = _department_names(context["departments"])

    if request.htmx:
        return render(request, "rota/availability/partials/_list.html", context)
    return render(request, "rota/availability/list.html", context)


@backend_view(admin=True)
@require_POST
def availability_decide(request: HttpRequest, pk: str, action: str) -> HttpResponse:
    """Approve or reject a pending request; approval clears the covered shifts from cached boards."""
    if action not in ("approve", "reject"):
        return HttpResponse(status=400)

    service = RotaService.for_request(request)
    try:
        decided = service.decide_availability_request(pk, approve=action == "approve")
    except BackendError as exc:
        if request.htmx:
            return render(request, "rota/partials/_error.html", {"error": exc.message})
        messages.error(request, exc.message)
        return redirect("rota:availability")

    if decided.status == RequestStatus.APPROVED:
        removed = apply_approval_to_boards(request.session, request.user, decided)
        logger.info("Approved request %s cleared %d cached assignment(s)", decided.id, removed)

    if request.htmx:
        return render(request, "rota/availability/partials/_row.html", {"req": decided})
    return redirect("rota:availability")


# =============================================================================
# Swap requests
# =============================================================================

@backend_view()
@require_GET
def swap_list(request: HttpRequest) -> HttpResponse:
    try:
        swaps = RotaService.for_request(request).swap_requests()
    except BackendError as exc:
        return render(request, "rota/swaps/list.html", {"swaps": [], "error": exc.message})
    return render(request, "rota/swaps/list.html", {"swaps": swaps})


@backend_view()
@require_POST
def swap_decide(request: HttpRequest, pk: str, action: str) -> HttpResponse:
    """
    Accept, decline or cancel a swap request.

    The row shows the new status straight away; when the backend refuses,
    the list is fetched again so it reflects the server.
    """
    if action not in SWAP_ACTIONS:
        return HttpResponse(status=400)

    service = RotaService.for_request(request)
    error = None
    try:
        swaps = service.swap_requests()
        service.decide_swap_request(pk, action)
    except BackendError as exc:
        error = exc.message
        try:
            swaps = service.swap_requests()
        except BackendError:
            swaps = []
    else:
        for swap in swaps:
            if swap.id == pk:
                swap.status = SWAP_ACTIONS[action]

    if request.htmx:
        return render(request, "rota/swaps/partials/_list.html", {"swaps": swaps, "error": error})
    if error:
        messages.error(request, error)
    return redirect("rota:swaps")


# =============================================================================
# Reports
# =============================================================================

@backend_view(admin=True)
@require_GET
def reports(request: HttpRequest) -> HttpResponse:
    """Hours summary for a range: this week by default, or ``?preset=month``."""
    today = timezone.localdate()
    if request.GET.get("preset") == "month":
        start, end = start_of_month(today), end_of_month(today)
    else:
        start = parse_day(request.GET.get("start"), monday_of(today))
        end = parse_day(request.GET.get("end"), end_of_week(today))

    service = RotaService.for_request(request)
    context = {"start": start, "end": end, "summary": None}
    try:
        context["summary"] = service.report_summary(start, end, selected_department(request))
        context["department_names"] = _department_names(service.departments())
    except BackendError as exc:
        context["error"] = exc.message
    return render(request, "rota/reports.html", context)


# =============================================================================
# My week (employee)
# =============================================================================

def _my_week_context(request: HttpRequest, service: RotaService, week_start) -> dict:
    context = {
        "week_start": week_start,
        "week_end": week_start + timedelta(days=6),
        "prev_week": week_start - timedelta(days=7),
        "next_week": week_start + timedelta(days=7),
        "days": [],
    }
    employee_id = request.session.get(SESSION_EMPLOYEE_KEY)
    try:
        employees = service.employees()
        templates = service.templates()
    except BackendError as exc:
        context["error"] = exc.message
        return context

    me = next((e for e in employees if e.id == employee_id), None)
    if me is None:
        context["error"] = "User not found"
        return context
    context["me"] = me

    week_end = week_start + timedelta(days=6)
    try:
        assignments = service.assignments(week_start, week_end, employee_id=me.id, hour=12)
        requests = service.availability_requests(week_start, week_end, employee_id=me.id)
    except BackendError as exc:
        context["error"] = exc.message
        return context

    templates_by_id = {t.id: t for t in templates}
    for day in week_dates(week_start):
        visible = stats.visible_assignments(assignments, requests, day)
        context["days"].append({
            "date": day,
            "entries": [{"assignment": a, "template": templates_by_id.get(a.template_id)} for a in visible],
            "request": next((r for r in requests if r.date == day), None),
        })
    context["assignments"] = assignments
    return context


@backend_view()
@require_GET
def my_week(request: HttpRequest) -> HttpResponse:
    week_start = monday_of(parse_day(request.GET.get("week"), timezone.localdate()))
    context = _my_week_context(request, RotaService.for_request(request), week_start)
    return render(request, "rota/my_week.html", context)


@backend_view()
@require_POST
def my_request(request: HttpRequest) -> HttpResponse:
    """
    File an availability request for a day.

    Either a free ``start``/``end`` window (both optional, none = full day)
    or ``assignment``: the window of one of the employee's shifts.
    """
    service = RotaService.for_request(request)
    day = parse_day(request.POST.get("date"))
    week_start = monday_of(parse_day(request.POST.get("week"), day or timezone.localdate()))
    start = request.POST.get("start", "").strip()
    end = request.POST.get("end", "").strip()
    note = request.POST.get("note", "").strip()
    assignment_id = request.POST.get("assignment", "").strip()

    errors = []
    if day is None:
        errors.append("Please choose a date.")
    if (start and parse_hhmm(start) is None) or (end and parse_hhmm(end) is None):
        errors.append("Invalid time format. e.g. 09:00")

    if not errors:
        if assignment_id:
            try:
                mine = service.assignments(
                    day, day, employee_id=request.session.get(SESSION_EMPLOYEE_KEY), hour=12
                )
            except BackendError as exc:
                mine = []
                errors.append(exc.message)
            chosen = next((a for a in mine if a.id == assignment_id), None)
            if chosen is not None:
                start, end = to_hhmm(chosen.start_minutes), to_hhmm(chosen.end_minutes)

    if not errors:
        try:
            service.create_availability_request(day, start or None, end or None, note or None)
        except BackendError as exc:
            errors.append(exc.message)

    if errors:
        context = _my_week_context(request, service, week_start)
        context["errors"] = errors
        return render(request, "rota/my_week.html", context)

    messages.success(request, "Your request has been sent.")
    return redirect(f"{reverse('rota:my_week')}?week={week_start.isoformat()}")
