"""
Views for the weekly schedule board.

The page load fetches the board from the backend; the HTMX endpoints below
work on the session copy (see ``state.py``) and answer with the re-rendered
grid. Without HTMX they redirect back to the board page.
"""

import logging
from datetime import date, timedelta
from urllib.parse import urlencode

from django.contrib import messages
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST

from apps.core.auth import backend_view
from apps.core.client import BackendError
from apps.core.context_processors import ALL_DEPARTMENTS, selected_department
from apps.core.timeutils import monday_of, parse_day, parse_hhmm

from .board import BoardError, MoveConflict, RosterBoard, RosterLocked
from .entities import PendingCreate, ShiftType
from .services import RotaService
from .state import current_board, fetch_board, save_board, store_board

logger = logging.getLogger(__name__)


def _board_params(request: HttpRequest) -> tuple[str, date]:
    """Department and week for a board request, from POST or GET."""
    data = request.POST if request.method == "POST" else request.GET
    department_id = data.get("department") or selected_department(request)
    week_start = monday_of(parse_day(data.get("week"), timezone.localdate()))
    return department_id, week_start


def _board_url(department_id: str, week_start: date) -> str:
    query = urlencode({"department": department_id, "week": week_start.isoformat()})
    return f"{reverse('rota:schedule')}?{query}"


def _grid_context(board: RosterBoard, **extra) -> dict:
    week_start = board.week_start
    context = {
        "board": board,
        "rows": board.rows(),
        "days": board.days,
        "templates": board.templates,
        "week_start": week_start,
        "week_end": week_start + timedelta(days=6),
        "prev_week": week_start - timedelta(days=7),
        "next_week": week_start + timedelta(days=7),
        "department_id": board.department_id,
        "pending_count": len(board.pending),
        "shift_types": ShiftType.choices,
    }
    context.update(extra)
    return context


def _board_response(request: HttpRequest, board: RosterBoard, error: str | None = None, message: str | None = None) -> HttpResponse:
    if request.htmx:
        return render(request, "rota/schedule/partials/_grid.html", _grid_context(board, error=error, message=message))
    if error:
        messages.error(request, error)
    elif message:
        messages.success(request, message)
    return redirect(_board_url(board.department_id, board.week_start))


def _first_department_id(service: RotaService) -> str | None:
    departments = service.departments()
    return departments[0].id if departments else None


def _load(request: HttpRequest):
    """The board for this request, or an error response when it cannot be loaded."""
    department_id, week_start = _board_params(request)
    service = RotaService.for_request(request)
    try:
        return service, current_board(request, service, department_id, week_start), None
    except (BackendError, BoardError) as exc:
        error = exc.message if isinstance(exc, BackendError) else str(exc)
        if request.htmx:
            return service, None, render(request, "rota/partials/_error.html", {"error": error})
        messages.error(request, error)
        return service, None, redirect("rota:dashboard")


# =============================================================================
# Board page
# =============================================================================

@backend_view(admin=True)
@require_GET
def schedule(request: HttpRequest) -> HttpResponse:
    """Board page. Always refetches so navigation shows the server's state."""
    department_id, week_start = _board_params(request)
    service = RotaService.for_request(request)
    context = {"week_start": week_start, "department_id": department_id}
    try:
        departments = service.departments()
        board = fetch_board(service, request.user, department_id, week_start, departments)
    except BackendError as exc:
        context["error"] = exc.message
        return render(request, "rota/schedule/board.html", context)
    except BoardError as exc:
        context["error"] = str(exc)
        return render(request, "rota/schedule/board.html", context)

    store_board(request.session, board)
    context = _grid_context(board, departments=departments)
    if request.htmx:
        return render(request, "rota/schedule/partials/_grid.html", context)
    return render(request, "rota/schedule/board.html", context)


# =============================================================================
# Pending creates
# =============================================================================

def _pending_from_post(request: HttpRequest) -> tuple[PendingCreate | None, str | None]:
    employee_id = request.POST.get("employee", "").strip()
    day = parse_day(request.POST.get("date"))
    template_id = request.POST.get("template", "").strip()
    if not employee_id or day is None:
        return None, "Please choose an employee and a day."
    if template_id:
        return PendingCreate(employee_id=employee_id, date=day, template_id=template_id), None

    start = parse_hhmm(request.POST.get("start"))
    end = parse_hhmm(request.POST.get("end"))
    if start is None or end is None or start == end:
        return None, "Invalid time window."
    return PendingCreate(employee_id=employee_id, date=day, start_minutes=start, end_minutes=end), None


@backend_view(admin=True)
@require_POST
def pending_add(request: HttpRequest) -> HttpResponse:
    """Queue a create by template or by an ad-hoc ``start``/``end`` window."""
    _, board, failure = _load(request)
    if failure:
        return failure

    create, error = _pending_from_post(request)
    if create is None:
        return _board_response(request, board, error=error)
    try:
        board.add_pending(create)
    except RosterLocked as exc:
        return _board_response(request, board, error=str(exc))
    save_board(request, board)
    return _board_response(request, board)


@backend_view(admin=True)
@require_POST
def pending_remove(request: HttpRequest) -> HttpResponse:
    _, board, failure = _load(request)
    if failure:
        return failure

    create, error = _pending_from_post(request)
    if create is None:
        return _board_response(request, board, error=error)
    board.remove_pending(create)
    save_board(request, board)
    return _board_response(request, board)


@backend_view(admin=True)
@require_POST
def pending_save(request: HttpRequest) -> HttpResponse:
    """Send the queued creates to the backend in one batch."""
    service, board, failure = _load(request)
    if failure:
        return failure
    if not board.pending:
        return _board_response(request, board)

    week_end = board.week_start + timedelta(days=6)
    error = None
    try:
        fallback = _first_department_id(service) if board.department_id == ALL_DEPARTMENTS else None
        created = board.save_pending(
            service.create_from_pending,
            lambda department_id: service.ensure_roster(department_id, board.week_start, week_end),
            fallback_department_id=fallback,
        )
    except BackendError as exc:
        error = f"Save failed: {exc.message}"
        message = None
    except BoardError as exc:
        error = str(exc)
        message = None
    else:
        message = f"{len(created)} assignment(s) saved."
    save_board(request, board)
    return _board_response(request, board, error=error, message=message)


# =============================================================================
# Assignments
# =============================================================================

@backend_view(admin=True)
@require_POST
def assignment_add(request: HttpRequest) -> HttpResponse:
    """Create one assignment immediately (the add-shift dialog)."""
    service, board, failure = _load(request)
    if failure:
        return failure

    employee_id = request.POST.get("employee", "").strip()
    day = parse_day(request.POST.get("date"))
    template_id = request.POST.get("template", "").strip()
    shift_type = request.POST.get("type", ShiftType.REGULAR)
    template = board.template(template_id)

    errors = []
    if not employee_id or day is None:
        errors.append("Please choose an employee and a day.")
    if template is None:
        errors.append("Please choose a shift template.")
    if shift_type not in (ShiftType.REGULAR, ShiftType.OVERTIME):
        errors.append("Unknown shift type.")

    start_text = request.POST.get("start", "").strip()
    end_text = request.POST.get("end", "").strip()
    start = parse_hhmm(start_text) if start_text else (template.start_minutes if template else None)
    end = parse_hhmm(end_text) if end_text else (template.end_minutes if template else None)
    if template is not None:
        if start is None or end is None:
            errors.append("Invalid time format. e.g. 09:00")
        elif start >= end:
            errors.append("Start time must be before end time.")

    if errors:
        return _board_response(request, board, error=" ".join(errors))

    week_end = board.week_start + timedelta(days=6)
    try:
        department_id = board.target_department(employee_id) or _first_department_id(service)
        if not department_id:
            return _board_response(request, board, error="No department found. Please add a department first.")
        if template not in board.templates_for(department_id):
            return _board_response(request, board, error="Please choose a shift template.")
        roster = board.roster_for(
            department_id, lambda dept: service.ensure_roster(dept, board.week_start, week_end)
        )
        if roster.is_locked:
            return _board_response(request, board, error=str(RosterLocked()))
        created = service.create_assignment(
            roster.id, employee_id, day, start, end, template_id=template.id, shift_type=shift_type
        )
    except BackendError as exc:
        return _board_response(request, board, error=exc.message)
    board.add(created)
    store_board(request.session, board)
    return _board_response(request, board)


@backend_view(admin=True)
@require_POST
def assignment_delete(request: HttpRequest, pk: str) -> HttpResponse:
    service, board, failure = _load(request)
    if failure:
        return failure
    try:
        board.delete(pk, service.delete_assignment)
    except BackendError as exc:
        return _board_response(request, board, error=f"Delete failed: {exc.message}")
    store_board(request.session, board)
    return _board_response(request, board)


@backend_view(admin=True)
@require_POST
def assignment_move(request: HttpRequest, pk: str) -> HttpResponse:
    """
    Drop an assignment on another cell.

    The target comes as ``target=<employee>:<YYYY-MM-DD>`` (the cell key) or
    as separate ``employee`` and ``date`` fields.
    """
    service, board, failure = _load(request)
    if failure:
        return failure

    target = request.POST.get("target", "")
    if target:
        employee_id, _, day_text = target.rpartition(":")
    else:
        employee_id, day_text = request.POST.get("employee", ""), request.POST.get("date", "")
    day = parse_day(day_text)
    if not employee_id or day is None:
        return _board_response(request, board, error="Invalid drop target.")

    try:
        board.move(pk, employee_id, day, service.move_assignment)
    except (RosterLocked, MoveConflict) as exc:
        return _board_response(request, board, error=str(exc))
    except BackendError as exc:
        return _board_response(request, board, error=f"Move failed: {exc.message}")
    store_board(request.session, board)
    return _board_response(request, board)


# =============================================================================
# Roster lifecycle
# =============================================================================

@backend_view(admin=True)
@require_POST
def roster_publish(request: HttpRequest) -> HttpResponse:
    service, board, failure = _load(request)
    if failure:
        return failure
    if board.roster is None:
        return _board_response(request, board, error="No roster for this week.")
    try:
        board.roster = service.publish_roster(board.roster.id)
    except BackendError as exc:
        return _board_response(request, board, error=f"Publish failed: {exc.message}")
    store_board(request.session, board)
    return _board_response(request, board, message="Roster published.")


@backend_view(admin=True)
@require_POST
def roster_clone(request: HttpRequest) -> HttpResponse:
    """Copy the roster into a new draft and reload the week's assignments."""
    service, board, failure = _load(request)
    if failure:
        return failure
    if board.roster is None:
        return _board_response(request, board, error="No roster for this week.")
    try:
        board.roster = service.clone_roster(board.roster.id)
        board.assignments = service.assignments(
            board.week_start, board.week_start + timedelta(days=6), board.department_id
        )
    except BackendError as exc:
        return _board_response(request, board, error=f"Clone failed: {exc.message}")
    store_board(request.session, board)
    return _board_response(request, board, message="A new draft was created from this roster.")


# =============================================================================
# Swap requests from the board
# =============================================================================

@backend_view(admin=True)
@require_GET
def swap_candidates(request: HttpRequest, pk: str) -> HttpResponse:
    """Dialog listing the assignments this one can be swapped with."""
    _, board, failure = _load(request)
    if failure:
        return failure
    source = board.assignment(pk)
    candidates = [
        {"assignment": a, "employee": board.employee(a.employee_id), "template": board.template(a.template_id)}
        for a in board.swap_candidates(pk)
    ]
    return render(request, "rota/schedule/partials/_swap_dialog.html", {
        "board": board,
        "source": source,
        "source_employee": board.employee(source.employee_id) if source else None,
        "candidates": candidates,
        "week_start": board.week_start,
        "department_id": board.department_id,
    })


@backend_view(admin=True)
@require_POST
def swap_request(request: HttpRequest, pk: str) -> HttpResponse:
    service, board, failure = _load(request)
    if failure:
        return failure
    if board.is_locked:
        return _board_response(request, board, error=str(RosterLocked()))

    target_id = request.POST.get("target", "").strip()
    if board.assignment(pk) is None or board.assignment(target_id) is None:
        return _board_response(request, board, error="Choose an assignment to swap with.")
    try:
        service.create_swap_request(pk, target_id)
    except BackendError as exc:
        return _board_response(request, board, error=f"Swap request failed: {exc.message}")
    board.mark_swap_requested(pk)
    store_board(request.session, board)
    return _board_response(request, board, message="Swap request sent.")
