"""
Loading and keeping schedule boards between requests.

A full page load fetches everything from the backend and stores a snapshot
in the session. The HTMX endpoints (move, delete, queue, save...) work on
that snapshot, the way the browser kept its local copy, and write it back.
Pending creates come from ``PendingAssignment`` rather than the snapshot.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from apps.core.client import BackendError
from apps.core.context_processors import ALL_DEPARTMENTS

from .board import BoardError, RosterBoard
from .entities import AvailabilityRequest
from .models import PendingAssignment
from .services import RotaService

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "rota.board."


def snapshot_key(department_id: str, week_start: date) -> str:
    return f"{SNAPSHOT_PREFIX}{department_id}.{week_start.isoformat()}"


def fetch_board(service: RotaService, user, department_id: str, week_start: date, departments=None) -> RosterBoard:
    """
    Build a board from the backend.

    Creates a draft roster when none overlaps the week. With no department
    selected the draft goes to the first department, else the first
    employee's.
    """
    week_end = week_start + timedelta(days=6)
    if departments is None:
        departments = service.departments()
    employees = service.employees()
    templates = service.templates()

    rosters = service.rosters(week_start, week_end, department_id)
    if rosters:
        roster = rosters[0]
    else:
        target = department_id if department_id != ALL_DEPARTMENTS else None
        if target is None:
            target = departments[0].id if departments else (employees[0].department_id if employees else None)
        if not target:
            raise BoardError("No department found. Please add a department first.")
        roster = service.create_draft_roster(target, week_start, week_end)

    assignments = service.assignments(week_start, week_end, department_id)

    return RosterBoard(
        week_start=week_start,
        employees=employees,
        templates=templates,
        assignments=assignments,
        roster=roster,
        pending=PendingAssignment.load(user, week_start),
        department_id=department_id,
        general_department_id=service.general_department_id(departments),
    )


def store_board(session, board: RosterBoard) -> None:
    session[snapshot_key(board.department_id, board.week_start)] = board.snapshot()


def restore_board(session, user, department_id: str, week_start: date) -> RosterBoard | None:
    data = session.get(snapshot_key(department_id, week_start))
    if not data:
        return None
    return RosterBoard.from_snapshot(
        data,
        week_start=week_start,
        department_id=department_id,
        pending=PendingAssignment.load(user, week_start),
    )


def current_board(request, service: RotaService, department_id: str, week_start: date) -> RosterBoard:
    """The session's board for this department/week, fetched when missing."""
    board = restore_board(request.session, request.user, department_id, week_start)
    if board is None:
        board = fetch_board(service, request.user, department_id, week_start)
        store_board(request.session, board)
    return board


def save_board(request, board: RosterBoard) -> None:
    """Persist both halves of the board state."""
    store_board(request.session, board)
    PendingAssignment.sync(request.user, board.week_start, board.pending)


def apply_approval_to_boards(session, user, approved: AvailabilityRequest) -> int:
    """Remove the approved window's assignments from every cached board."""
    removed = 0
    for key in [k for k in session.keys() if k.startswith(SNAPSHOT_PREFIX)]:
        department_id, _, week = key[len(SNAPSHOT_PREFIX):].rpartition(".")
        try:
            week_start = date.fromisoformat(week)
            board = restore_board(session, user, department_id, week_start)
        except (ValueError, KeyError, BackendError):
            logger.warning("Dropping unreadable board snapshot %s", key)
            del session[key]
            continue
        if board is None:
            continue
        count = board.apply_availability(approved)
        if count:
            store_board(session, board)
            removed += count
    return removed
