"""
Tests for the Rota (shift scheduling) application.

This module tests:
- The roster board: cell derivation, pending creates, optimistic move/delete
- Pending creates kept in the database
- Dashboard and my-week figures
- Decoding backend payloads
- Views against the in-memory backend (HTMX partials and full pages)
- Management commands

Uses Django TestCase with pytest-django compatibility.
"""

from datetime import date, datetime, timedelta
from io import StringIO
from unittest.mock import Mock, patch

import httpx

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from apps.api.serializers import (
    AssignmentSerializer,
    DepartmentSerializer,
    MalformedPayload,
    ReportSummarySerializer,
    SwapRequestSerializer,
    decode,
)
from apps.core.client import BackendClient, BackendError
from apps.core.testing import BackendTestMixin
from apps.core.timeutils import monday_of

from .board import BoardError, MoveConflict, RosterBoard, RosterLocked
from .entities import (
    DEFAULT_CHIP_COLOR,
    Assignment,
    AvailabilityRequest,
    Employee,
    PendingCreate,
    Roster,
    ShiftTemplate,
)
from .management.commands.reminder_probe import reminder_window
from .models import PendingAssignment
from .state import snapshot_key
from . import stats

User = get_user_model()

MONDAY = date(2026, 10, 19)
TUESDAY = MONDAY + timedelta(days=1)


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def make_employee(id="emp-1", full_name="Alice Worker", department_id="dep-1", **kwargs):
    """Create and return an Employee entity."""
    return Employee(id=id, email=f"{id}@example.com", full_name=full_name, department_id=department_id, **kwargs)


def make_template(id="tpl-1", code="G", start=540, end=1020, department_id="dep-1", color="#FEF3C7"):
    """Create and return a ShiftTemplate entity."""
    return ShiftTemplate(
        id=id, department_id=department_id, code=code, name=code, start_minutes=start, end_minutes=end, color=color
    )


def make_roster(id="ros-1", department_id="dep-1", locked=False):
    """Create and return a Roster entity covering the test week."""
    return Roster(
        id=id,
        department_id=department_id,
        start_date=MONDAY,
        end_date=MONDAY + timedelta(days=6),
        status="PUBLISHED" if locked else "DRAFT",
        locked=locked,
    )


def make_assignment(id="asg-1", employee_id="emp-1", day=MONDAY, start=540, end=1020, template_id="tpl-1", **kwargs):
    """Create and return an Assignment entity."""
    return Assignment(
        id=id,
        roster_id=kwargs.pop("roster_id", "ros-1"),
        employee_id=employee_id,
        date=day,
        start_minutes=start,
        end_minutes=end,
        template_id=template_id,
        **kwargs,
    )


def make_board(assignments=(), pending=(), locked=False, department_id="dep-1", **kwargs):
    """Create a board with two employees in dep-1, one in dep-2 and a general template."""
    employees = kwargs.pop("employees", [
        make_employee("emp-1", "Alice Worker"),
        make_employee("emp-2", "Bob Teammate"),
        make_employee("emp-3", "Cem Other", department_id="dep-2"),
    ])
    templates = kwargs.pop("templates", [
        make_template("tpl-1", "G"),
        make_template("tpl-2", "N", start=0, end=480, department_id="dep-gen"),
        make_template("tpl-3", "X", department_id="dep-2"),
    ])
    return RosterBoard(
        week_start=MONDAY,
        employees=employees,
        templates=templates,
        assignments=list(assignments),
        roster=kwargs.pop("roster", make_roster(locked=locked)),
        pending=list(pending),
        department_id=department_id,
        general_department_id="dep-gen",
        **kwargs,
    )


def conflict():
    return BackendError(409, "Conflict", "target slot is taken")


# =============================================================================
# BOARD DERIVATION TESTS
# =============================================================================


class BoardCellTests(SimpleTestCase):
    """Tests for what the board shows per employee/day cell."""

    def test_saved_entries_come_before_pending(self):
        board = make_board(
            assignments=[make_assignment()],
            pending=[PendingCreate(employee_id="emp-1", date=MONDAY, start_minutes=600, end_minutes=660)],
        )

        entries = board.cell("emp-1", MONDAY).entries

        self.assertEqual([e.label for e in entries], ["G", "10:00 - 11:00"])
        self.assertFalse(entries[0].pending)
        self.assertTrue(entries[1].pending)

    def test_untemplated_assignment_shows_window_and_default_color(self):
        board = make_board(assignments=[make_assignment(template_id=None, start=600, end=720)])

        entry = board.cell("emp-1", MONDAY).entries[0]

        self.assertEqual(entry.label, "10:00 - 12:00")
        self.assertEqual(entry.color, DEFAULT_CHIP_COLOR)

    def test_cell_key_is_employee_and_date(self):
        self.assertEqual(make_board().cell("emp-2", TUESDAY).key, "emp-2:2026-10-20")

    def test_rows_follow_selected_department(self):
        board = make_board()

        self.assertEqual([r.employee.id for r in board.rows()], ["emp-1", "emp-2"])
        self.assertEqual(len(board.rows()[0].cells), 7)

    def test_all_departments_shows_everyone(self):
        board = make_board(department_id="all")

        self.assertEqual(len(board.employees), 3)
        self.assertEqual(len(board.templates), 3)

    def test_templates_include_general_department(self):
        board = make_board()

        self.assertEqual([t.code for t in board.templates], ["G", "N"])
        self.assertEqual([t.code for t in board.templates_for("dep-2")], ["N", "X"])

    def test_swap_candidates_share_day_and_roster(self):
        board = make_board(assignments=[
            make_assignment("a1", "emp-1"),
            make_assignment("a2", "emp-2"),
            make_assignment("a3", "emp-2", day=TUESDAY),
            make_assignment("a4", "emp-2", roster_id="ros-9"),
            make_assignment("a5", "emp-1", start=1020, end=1200),
        ])

        self.assertEqual([a.id for a in board.swap_candidates("a1")], ["a2"])
        self.assertEqual(board.swap_candidates("missing"), [])

    def test_target_department_prefers_selection_then_employee(self):
        self.assertEqual(make_board().target_department("emp-3"), "dep-1")

        board = make_board(department_id="all")
        self.assertEqual(board.target_department("emp-3"), "dep-2")
        self.assertEqual(board.target_department("missing", "dep-9"), "dep-9")

    def test_roster_for_reuses_matching_roster(self):
        board = make_board(department_id="all")
        other = make_roster("ros-2", department_id="dep-2")
        ensure = Mock(return_value=other)

        self.assertEqual(board.roster_for("dep-1", ensure).id, "ros-1")
        self.assertEqual(board.roster_for("dep-2", ensure), other)
        ensure.assert_called_once_with("dep-2")
        self.assertEqual(board.roster.id, "ros-1")

    def test_locked_follows_roster(self):
        self.assertTrue(make_board(locked=True).is_locked)
        self.assertFalse(make_board(roster=None).is_locked)


# =============================================================================
# PENDING CREATE TESTS
# =============================================================================


class BoardPendingTests(SimpleTestCase):
    """Tests for queueing and saving pending creates."""

    def test_add_pending_allows_several_per_cell(self):
        board = make_board()
        board.add_pending(PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-1"))
        board.add_pending(PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-2"))

        self.assertEqual(len(board.cell("emp-1", MONDAY).entries), 2)

    def test_add_pending_refused_on_locked_roster(self):
        board = make_board(locked=True)

        with self.assertRaises(RosterLocked):
            board.add_pending(PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-1"))
        self.assertEqual(board.pending, [])

    def test_remove_pending_matches_template_or_window(self):
        by_template = PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-1")
        by_window = PendingCreate(employee_id="emp-1", date=MONDAY, start_minutes=600, end_minutes=660)
        other_day = PendingCreate(employee_id="emp-1", date=TUESDAY, template_id="tpl-1")
        board = make_board(pending=[by_template, by_window, other_day])

        removed = board.remove_pending(PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-1"))

        self.assertEqual(removed, 1)
        self.assertEqual(board.pending, [by_window, other_day])

    def test_save_pending_resolves_roster_once_per_department(self):
        board = make_board(
            roster=None,
            pending=[
                PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-1"),
                PendingCreate(employee_id="emp-2", date=TUESDAY, start_minutes=600, end_minutes=660),
            ],
        )
        roster = make_roster("ros-new")
        ensure_roster = Mock(return_value=roster)
        created = iter([make_assignment("n1"), make_assignment("n2", "emp-2", day=TUESDAY)])
        create = Mock(side_effect=lambda r, entry, tpl: next(created))

        saved = board.save_pending(create, ensure_roster)

        ensure_roster.assert_called_once_with("dep-1")
        self.assertEqual([a.id for a in saved], ["n1", "n2"])
        self.assertEqual(board.pending, [])
        self.assertEqual(board.roster, roster)
        # Template entries pass their template, ad-hoc ones None
        self.assertEqual(create.call_args_list[0].args[2].id, "tpl-1")
        self.assertIsNone(create.call_args_list[1].args[2])

    def test_save_pending_keeps_unsaved_entries_on_failure(self):
        first = PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-1")
        second = PendingCreate(employee_id="emp-2", date=MONDAY, template_id="tpl-1")
        board = make_board(pending=[first, second])
        create = Mock(side_effect=[make_assignment("n1"), BackendError(500, "Internal Server Error", "db down")])

        with self.assertRaises(BackendError):
            board.save_pending(create, Mock())

        self.assertEqual(board.pending, [second])
        self.assertEqual([a.id for a in board.assignments], ["n1"])

    def test_save_pending_drops_entries_with_missing_template_or_employee(self):
        board = make_board(pending=[
            PendingCreate(employee_id="emp-1", date=MONDAY, template_id="gone"),
            PendingCreate(employee_id="ghost", date=MONDAY, template_id="tpl-1"),
        ])
        create = Mock()

        saved = board.save_pending(create, Mock())

        self.assertEqual(saved, [])
        self.assertEqual(board.pending, [])
        create.assert_not_called()

    def test_save_pending_across_departments_uses_employee_department(self):
        board = make_board(
            department_id="all",
            roster=None,
            pending=[PendingCreate(employee_id="emp-3", date=MONDAY, template_id="tpl-3")],
        )
        ensure_roster = Mock(return_value=make_roster("ros-2", department_id="dep-2"))

        board.save_pending(Mock(return_value=make_assignment("n1", "emp-3")), ensure_roster)

        ensure_roster.assert_called_once_with("dep-2")

    def test_save_pending_without_any_department_fails(self):
        board = make_board(
            department_id="all",
            employees=[make_employee("emp-1", department_id=None)],
            pending=[PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-1")],
        )

        with self.assertRaises(BoardError):
            board.save_pending(Mock(), Mock())


# =============================================================================
# OPTIMISTIC MUTATION TESTS
# =============================================================================


class BoardMutationTests(SimpleTestCase):
    """Tests for move/delete with rollback."""

    def test_move_applies_backend_copy(self):
        board = make_board(assignments=[make_assignment("a1")])
        moved = make_assignment("a1", "emp-2", day=TUESDAY)
        persist = Mock(return_value=moved)

        result = board.move("a1", "emp-2", TUESDAY, persist)

        persist.assert_called_once_with("a1", "emp-2", TUESDAY)
        self.assertEqual(result, moved)
        self.assertEqual(board.cell("emp-2", TUESDAY).entries[0].assignment, moved)
        self.assertEqual(board.cell("emp-1", MONDAY).entries, [])

    def test_move_to_same_cell_is_a_no_op(self):
        board = make_board(assignments=[make_assignment("a1")])
        persist = Mock()

        self.assertIsNone(board.move("a1", "emp-1", MONDAY, persist))
        persist.assert_not_called()

    def test_move_unknown_assignment_is_a_no_op(self):
        board = make_board(assignments=[make_assignment("a1")])
        persist = Mock()

        self.assertIsNone(board.move("missing", "emp-2", TUESDAY, persist))
        persist.assert_not_called()
        self.assertEqual(board.cell("emp-1", MONDAY).entries[0].assignment.id, "a1")

    def test_move_without_backend_copy_restores_previous_list(self):
        original = make_assignment("a1")
        board = make_board(assignments=[original])
        persist = Mock(return_value=None)

        result = board.move("a1", "emp-2", TUESDAY, persist)

        self.assertIsNone(result)
        persist.assert_called_once_with("a1", "emp-2", TUESDAY)
        self.assertEqual(board.cell("emp-1", MONDAY).entries[0].assignment, original)
        self.assertEqual(board.cell("emp-2", TUESDAY).entries, [])

    def test_move_conflict_restores_previous_list(self):
        original = make_assignment("a1")
        board = make_board(assignments=[original, make_assignment("a2", "emp-2")])

        with self.assertRaises(MoveConflict) as ctx:
            board.move("a1", "emp-2", MONDAY, Mock(side_effect=conflict()))

        self.assertIn("Conflict", str(ctx.exception))
        self.assertEqual(board.assignment("a1"), original)

    def test_move_other_failure_propagates_backend_error(self):
        original = make_assignment("a1")
        board = make_board(assignments=[original])

        with self.assertRaises(BackendError) as ctx:
            board.move("a1", "emp-2", MONDAY, Mock(side_effect=BackendError(500, "Internal Server Error")))

        self.assertNotIsInstance(ctx.exception, MoveConflict)
        self.assertEqual(board.assignment("a1"), original)

    def test_move_on_locked_roster_is_refused(self):
        board = make_board(assignments=[make_assignment("a1")], locked=True)
        persist = Mock()

        with self.assertRaises(RosterLocked):
            board.move("a1", "emp-2", MONDAY, persist)
        persist.assert_not_called()

    def test_delete_rolls_back_at_same_position(self):
        board = make_board(assignments=[make_assignment("a1"), make_assignment("a2", "emp-2")])

        with self.assertRaises(BackendError):
            board.delete("a1", Mock(side_effect=BackendError(500, "Internal Server Error")))

        self.assertEqual([a.id for a in board.assignments], ["a1", "a2"])

    def test_delete_removes_assignment(self):
        board = make_board(assignments=[make_assignment("a1")], swap_requested=["a1"])

        self.assertTrue(board.delete("a1", Mock()))
        self.assertEqual(board.assignments, [])
        self.assertEqual(board.swap_requested, set())
        self.assertFalse(board.delete("a1", Mock()))

    def test_add_puts_new_assignment_first(self):
        board = make_board(assignments=[make_assignment("a1")])
        board.add(make_assignment("a2", start=1020, end=1200))

        self.assertEqual([e.assignment.id for e in board.cell("emp-1", MONDAY).entries], ["a2", "a1"])

    def test_full_day_approval_clears_the_day(self):
        board = make_board(assignments=[
            make_assignment("a1"),
            make_assignment("a2", start=1020, end=1200),
            make_assignment("a3", day=TUESDAY),
        ])
        approved = AvailabilityRequest(id="r1", employee_id="emp-1", date=MONDAY, status="APPROVED")

        self.assertEqual(board.apply_availability(approved), 2)
        self.assertEqual([a.id for a in board.assignments], ["a3"])

    def test_windowed_approval_clears_overlapping_shifts_only(self):
        board = make_board(assignments=[make_assignment("a1"), make_assignment("a2", start=1020, end=1200)])
        approved = AvailabilityRequest(
            id="r1", employee_id="emp-1", date=MONDAY, status="APPROVED", start_minutes=1080, end_minutes=1140
        )

        self.assertEqual(board.apply_availability(approved), 1)
        self.assertEqual([a.id for a in board.assignments], ["a1"])

    def test_snapshot_restores_server_state(self):
        board = make_board(assignments=[make_assignment("a1")], swap_requested=["a1"])

        restored = RosterBoard.from_snapshot(board.snapshot(), week_start=MONDAY, department_id="dep-1")

        self.assertEqual(restored.assignments, board.assignments)
        self.assertEqual(restored.roster, board.roster)
        self.assertEqual(restored.swap_requested, {"a1"})
        self.assertEqual(restored.general_department_id, "dep-gen")


# =============================================================================
# PENDING ASSIGNMENT MODEL TESTS
# =============================================================================


class PendingAssignmentModelTests(TestCase):
    """Tests for the PendingAssignment model."""

    def setUp(self):
        self.user = User.objects.create_user(username="admin@example.com")

    def test_sync_replaces_the_week(self):
        PendingAssignment.sync(self.user, MONDAY, [PendingCreate(employee_id="emp-1", date=MONDAY, template_id="tpl-1")])
        PendingAssignment.sync(self.user, MONDAY, [
            PendingCreate(employee_id="emp-2", date=TUESDAY, start_minutes=600, end_minutes=660),
        ])

        self.assertEqual(
            PendingAssignment.load(self.user, MONDAY),
            [PendingCreate(employee_id="emp-2", date=TUESDAY, start_minutes=600, end_minutes=660)],
        )

    def test_sync_leaves_other_weeks_alone(self):
        next_week = MONDAY + timedelta(days=7)
        PendingAssignment.sync(self.user, next_week, [PendingCreate(employee_id="emp-1", date=next_week, template_id="tpl-1")])

        PendingAssignment.sync(self.user, MONDAY, [])

        self.assertEqual(len(PendingAssignment.load(self.user, next_week)), 1)

    def test_load_maps_blank_template_to_none(self):
        PendingAssignment.objects.create(user=self.user, employee_id="emp-1", date=MONDAY, start_minutes=600, end_minutes=660)

        pending = PendingAssignment.load(self.user, MONDAY)[0]

        self.assertIsNone(pending.template_id)
        self.assertTrue(pending.has_window)

    def test_str_describes_entry(self):
        row = PendingAssignment.objects.create(user=self.user, employee_id="emp-1", date=MONDAY, template_id="tpl-1")

        self.assertEqual(str(row), "admin@example.com emp-1 2026-10-19 tpl-1")

    def test_queue_is_deleted_with_user(self):
        PendingAssignment.objects.create(user=self.user, employee_id="emp-1", date=MONDAY, template_id="tpl-1")

        self.user.delete()

        self.assertEqual(PendingAssignment.objects.count(), 0)


# =============================================================================
# STATS TESTS
# =============================================================================


class StatsTests(SimpleTestCase):
    """Tests for dashboard and my-week figures."""

    def test_day_shift_is_active_inside_window(self):
        shift = make_assignment(start=540, end=1020)

        self.assertTrue(stats.is_active(shift, datetime(2026, 10, 19, 9, 0)))
        self.assertFalse(stats.is_active(shift, datetime(2026, 10, 19, 17, 0)))

    def test_overnight_shift_spills_into_next_day(self):
        night = make_assignment(start=1320, end=360)

        self.assertTrue(stats.is_active(night, datetime(2026, 10, 19, 23, 0)))
        self.assertTrue(stats.is_active(night, datetime(2026, 10, 20, 5, 59)))
        self.assertFalse(stats.is_active(night, datetime(2026, 10, 20, 6, 0)))
        self.assertFalse(stats.is_active(night, datetime(2026, 10, 19, 21, 0)))

    def test_assignments_on_sorts_by_start(self):
        items = [make_assignment("late", start=1020, end=1200), make_assignment("early", start=300, end=500)]

        self.assertEqual([a.id for a in stats.assignments_on(items, MONDAY)], ["early", "late"])

    def test_recent_assignments_newest_first(self):
        created = timezone.now()
        items = [
            make_assignment(f"a{i}", created_at=created + timedelta(minutes=i)) for i in range(7)
        ]

        self.assertEqual([a.id for a in stats.recent_assignments(items)], ["a6", "a5", "a4", "a3", "a2"])

    def test_shift_distribution_percentages(self):
        items = [
            make_assignment("a1", template_id="tpl-1"),
            make_assignment("a2", template_id="tpl-1"),
            make_assignment("a3", template_id="gone"),
            make_assignment("a4", template_id=None),
        ]

        shares = stats.shift_distribution(items, [make_template("tpl-1", "G")])

        self.assertEqual([(s.name, s.count, s.percent) for s in shares], [("G", 2, 67), ("Unknown", 1, 33)])
        self.assertEqual(shares[1].color, stats.UNKNOWN_TEMPLATE_COLOR)
        self.assertEqual(stats.shift_distribution([], []), [])

    def test_visible_assignments_hide_approved_requests(self):
        items = [make_assignment("a1"), make_assignment("a2", start=1020, end=1200)]
        pending = AvailabilityRequest(id="r0", employee_id="emp-1", date=MONDAY)
        windowed = AvailabilityRequest(
            id="r1", employee_id="emp-1", date=MONDAY, status="APPROVED", start_minutes=540, end_minutes=600
        )
        full_day = AvailabilityRequest(id="r2", employee_id="emp-1", date=MONDAY, status="APPROVED")

        self.assertEqual(len(stats.visible_assignments(items, [pending], MONDAY)), 2)
        self.assertEqual([a.id for a in stats.visible_assignments(items, [windowed], MONDAY)], ["a2"])
        self.assertEqual(stats.visible_assignments(items, [full_day], MONDAY), [])


# =============================================================================
# PAYLOAD DECODING TESTS
# =============================================================================


class PayloadDecodingTests(SimpleTestCase):
    """Tests for turning backend JSON into entities."""

    def test_assignment_keeps_calendar_date_only(self):
        assignment = decode(AssignmentSerializer, {
            "id": "a1",
            "rosterId": "r1",
            "employeeId": "e1",
            "date": "2026-10-19T00:00:00.000Z",
            "startMinutes": 540,
            "endMinutes": 1020,
            "templateId": None,
        })

        self.assertEqual(assignment.date, MONDAY)
        self.assertIsNone(assignment.template_id)
        self.assertIsNone(assignment.created_at)

    def test_department_null_fields_become_blank(self):
        department = decode(DepartmentSerializer, {"id": "d1", "name": "Genel", "color": None})

        self.assertEqual(department.color, "")
        self.assertEqual(department.description, "")
        self.assertTrue(department.is_general)

    def test_malformed_payload_is_a_backend_error(self):
        with self.assertRaises(MalformedPayload) as ctx:
            decode(AssignmentSerializer, [{"id": "a1"}], many=True)

        self.assertIsInstance(ctx.exception, BackendError)
        self.assertIn("AssignmentSerializer", ctx.exception.message)

    def test_swap_request_nests_both_sides(self):
        side = {"date": "2026-10-19", "startMinutes": 540, "endMinutes": 1020}
        swap = decode(SwapRequestSerializer, {
            "id": "s1",
            "status": "PENDING",
            "requestedById": "e1",
            "requestedBy": {"fullName": "Alice Worker"},
            "fromAssignment": {**side, "id": "a1", "employeeId": "e1"},
            "toAssignment": {**side, "id": "a2", "employeeId": "e2"},
        })

        self.assertEqual(swap.from_assignment.id, "a1")
        self.assertEqual(swap.to_assignment.employee_id, "e2")
        self.assertEqual(swap.requester_name, "Alice Worker")
        self.assertTrue(swap.is_pending)

    def test_report_summary_converts_minutes(self):
        summary = decode(ReportSummarySerializer, {
            "range": {"startDate": "2026-10-19", "endDate": "2026-10-25"},
            "totals": {"totalAssignments": 3, "totalMinutes": 1440},
            "byEmployee": [
                {"employeeId": "e1", "fullName": "Alice", "minutes": 960, "overtimeMinutes": 480, "assignmentCount": 2},
                {"employeeId": "e2", "fullName": "Bob", "hours": 8, "assignmentCount": 1},
            ],
            "byTemplate": [{"templateId": "t1", "code": "G", "name": "Morning", "count": 3, "minutes": 1440}],
        })

        self.assertEqual(summary.start_date, MONDAY)
        self.assertEqual(summary.total_hours, 24)
        self.assertEqual(summary.overtime_hours, 8)
        self.assertEqual([e.hours for e in summary.by_employee], [16, 8])
        self.assertEqual(summary.by_template[0].hours, 24)

    def test_empty_report_summary(self):
        summary = decode(ReportSummarySerializer, {})

        self.assertEqual(summary.total_assignments, 0)
        self.assertEqual(summary.total_hours, 0)
        self.assertEqual(summary.by_employee, [])


# =============================================================================
# VIEW TESTS
# =============================================================================


class RotaViewTestCase(BackendTestMixin, TestCase):
    """Backend with a department, a general department, staff and templates."""

    def setUp(self):
        super().setUp()
        b = self.backend
        self.general = b.add_department("Genel")
        self.kitchen = b.add_department("Kitchen", "#10B981")
        self.admin = b.add_employee("admin@example.com", "Ada Admin", role="ADMIN", department_id=self.general["id"])
        self.alice = b.add_employee("alice@example.com", "Alice Worker", department_id=self.kitchen["id"])
        self.bob = b.add_employee("bob@example.com", "Bob Teammate", department_id=self.kitchen["id"])
        self.morning = b.add_template(self.kitchen["id"], "G", "Morning", "09:00", "17:00", "#FEF3C7")
        self.night = b.add_template(self.general["id"], "N", "Night", "00:00", "08:00", "#E9D5FF")
        self.week = monday_of(timezone.localdate())
        self.sign_in(self.admin)

    def board_data(self, **extra):
        return {"department": self.kitchen["id"], "week": self.week.isoformat(), **extra}

    def htmx_post(self, name, data, *args):
        return self.client.post(reverse(name, args=args), data, headers={"HX-Request": "true"})

    def add_roster(self, locked=False):
        return self.backend.add_roster(
            self.kitchen["id"], self.week, self.week + timedelta(days=6), status="PUBLISHED" if locked else "DRAFT"
        )

    def snapshot(self):
        return self.client.session[snapshot_key(self.kitchen["id"], self.week)]


class DashboardViewTests(RotaViewTestCase):
    """Tests for the dashboard view."""

    def test_dashboard_counts(self):
        roster = self.add_roster()
        self.backend.add_assignment(roster, self.alice, timezone.localdate(), "00:00", "23:59", self.morning)

        response = self.client.get(reverse("rota:dashboard"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["department_count"], 2)
        self.assertEqual(response.context["employee_count"], 3)
        self.assertEqual(len(response.context["today_assignments"]), 1)
        self.assertEqual(response.context["distribution"][0].name, "Morning")

    def test_dashboard_filters_employees_by_department(self):
        response = self.client.get(reverse("rota:dashboard"), {"department": self.kitchen["id"]})

        self.assertEqual(response.context["employee_count"], 2)

    def test_dashboard_renders_backend_error(self):
        self.backend.fail("GET", "/employees", status=500, error="db down")

        response = self.client.get(reverse("rota:dashboard"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["error"], "500 Internal Server Error - db down")


class DepartmentViewTests(RotaViewTestCase):
    """Tests for the department screens."""

    def test_list(self):
        response = self.client.get(reverse("rota:departments"))

        self.assertEqual([d.name for d in response.context["departments"]], ["Genel", "Kitchen"])

    def test_list_renders_non_json_answer(self):
        html = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>proxy login</html>"))

        with patch.object(BackendClient, "transport", html):
            response = self.client.get(reverse("rota:departments"))

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context["error"].startswith("Malformed payload"))

    def test_add_creates_department(self):
        response = self.client.post(reverse("rota:department_add"), {"name": "Bar", "color": "#EF4444"})

        self.assertRedirects(response, reverse("rota:departments"), fetch_redirect_response=False)
        self.assertIn("Bar", [d["name"] for d in self.backend.departments.values()])

    def test_add_requires_name(self):
        response = self.client.post(reverse("rota:department_add"), {"name": "  "})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["errors"], ["Name is required"])

    def test_add_shows_backend_error(self):
        response = self.client.post(reverse("rota:department_add"), {"name": "Kitchen"})

        self.assertIn("409 Conflict - Department name already exists", response.context["errors"])

    def test_edit_updates_department(self):
        self.client.post(
            reverse("rota:department_edit", args=[self.kitchen["id"]]),
            {"name": "Kitchen", "color": "#10B981", "description": "Hot line"},
        )

        self.assertEqual(self.backend.departments[self.kitchen["id"]]["description"], "Hot line")

    def test_delete(self):
        response = self.client.post(reverse("rota:department_delete", args=[self.kitchen["id"]]))

        self.assertRedirects(response, reverse("rota:departments"), fetch_redirect_response=False)
        self.assertNotIn(self.kitchen["id"], self.backend.departments)

    def test_delete_requires_post(self):
        response = self.client.get(reverse("rota:department_delete", args=[self.kitchen["id"]]))

        self.assertEqual(response.status_code, 405)


class EmployeeViewTests(RotaViewTestCase):
    """Tests for the employee screens."""

    def test_search_returns_rows_partial_for_htmx(self):
        response = self.client.get(reverse("rota:employees"), {"q": "ALI"}, headers={"HX-Request": "true"})

        self.assertTemplateUsed(response, "rota/employees/partials/_rows.html")
        self.assertEqual([r["employee"].full_name for r in response.context["rows"]], ["Alice Worker"])
        self.assertEqual(response.context["rows"][0]["department_name"], "Kitchen")

    def test_search_matches_role(self):
        response = self.client.get(reverse("rota:employees"), {"q": "admin"})

        self.assertEqual([r["employee"].email for r in response.context["rows"]], ["admin@example.com"])

    def test_add_employee(self):
        response = self.client.post(reverse("rota:employee_add"), {
            "full_name": "Cem New",
            "email": "cem@example.com",
            "role": "EMPLOYEE",
            "department": self.kitchen["id"],
            "active": "on",
        })

        self.assertRedirects(response, reverse("rota:employees"), fetch_redirect_response=False)
        created = [e for e in self.backend.employees.values() if e["email"] == "cem@example.com"][0]
        self.assertEqual(created["departmentId"], self.kitchen["id"])
        self.assertTrue(created["active"])

    def test_add_employee_validates(self):
        response = self.client.post(reverse("rota:employee_add"), {"full_name": "", "email": "", "role": "BOSS"})

        self.assertEqual(
            response.context["errors"], ["Full name is required", "E-mail is required", "Unknown role"]
        )

    def test_edit_can_deactivate(self):
        self.client.post(reverse("rota:employee_edit", args=[self.bob["id"]]), {
            "full_name": "Bob Teammate",
            "email": "bob@example.com",
            "role": "EMPLOYEE",
            "department": self.kitchen["id"],
        })

        self.assertFalse(self.backend.employees[self.bob["id"]]["active"])

    def test_password_too_short(self):
        response = self.client.post(reverse("rota:employee_password", args=[self.bob["id"]]), {"password": "abc"})

        self.assertEqual(response.context["errors"], ["Password must be at least 6 characters."])

    def test_password_reset(self):
        response = self.client.post(reverse("rota:employee_password", args=[self.bob["id"]]), {"password": "newpass1"})

        self.assertRedirects(response, reverse("rota:employees"), fetch_redirect_response=False)
        self.assertEqual(self.backend.passwords["bob@example.com"], "newpass1")

    def test_unknown_employee_redirects(self):
        response = self.client.get(reverse("rota:employee_edit", args=["nobody"]))

        self.assertRedirects(response, reverse("rota:employees"), fetch_redirect_response=False)


class TemplateViewTests(RotaViewTestCase):
    """Tests for the shift template screens."""

    def test_list_includes_general_templates(self):
        response = self.client.get(reverse("rota:templates"), {"department": self.kitchen["id"]})

        self.assertEqual([r["template"].code for r in response.context["rows"]], ["G", "N"])

    def test_add_template(self):
        self.client.post(reverse("rota:template_add"), {
            "name": "Evening",
            "code": "a",
            "start": "13:00",
            "end": "21:00",
            "department": self.kitchen["id"],
        })

        created = [t for t in self.backend.templates.values() if t["name"] == "Evening"][0]
        self.assertEqual(created["code"], "A")
        self.assertEqual((created["startMinutes"], created["endMinutes"]), (780, 1260))

    def test_add_template_validates(self):
        response = self.client.post(reverse("rota:template_add"), {"name": "x", "code": "X", "start": "25:00", "end": "9"})

        self.assertEqual(
            response.context["errors"], ["Invalid time format. e.g. 09:00", "Department is required"]
        )

    def test_delete_template(self):
        self.client.post(reverse("rota:template_delete", args=[self.morning["id"]]))

        self.assertNotIn(self.morning["id"], self.backend.templates)


class SchedulePageTests(RotaViewTestCase):
    """Tests for loading the schedule board."""

    def test_missing_roster_creates_draft(self):
        response = self.client.get(reverse("rota:schedule"), self.board_data())

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.backend.rosters), 1)
        roster = list(self.backend.rosters.values())[0]
        self.assertEqual(roster["departmentId"], self.kitchen["id"])
        self.assertEqual([r.employee.full_name for r in response.context["rows"]], ["Alice Worker", "Bob Teammate"])

    def test_existing_roster_is_reused_and_shown(self):
        roster = self.add_roster()
        self.backend.add_assignment(roster, self.alice, self.week, "09:00", "17:00", self.morning)

        response = self.client.get(reverse("rota:schedule"), self.board_data())

        self.assertEqual(len(self.backend.rosters), 1)
        first_cell = response.context["rows"][0].cells[0]
        self.assertEqual([e.label for e in first_cell.entries], ["G"])
        self.assertEqual(len(self.snapshot()["assignments"]), 1)

    def test_htmx_navigation_returns_grid(self):
        response = self.client.get(reverse("rota:schedule"), self.board_data(), headers={"HX-Request": "true"})

        self.assertTemplateUsed(response, "rota/schedule/partials/_grid.html")
        self.assertTemplateNotUsed(response, "base.html")

    def test_no_department_at_all(self):
        self.backend.departments.clear()
        for employee in self.backend.employees.values():
            employee["departmentId"] = None

        response = self.client.get(reverse("rota:schedule"))

        self.assertEqual(response.context["error"], "No department found. Please add a department first.")

    def test_employee_cannot_open_board(self):
        self.sign_in(self.alice)

        response = self.client.get(reverse("rota:schedule"))

        self.assertRedirects(response, reverse("rota:my_week"), fetch_redirect_response=False)


class PendingCreateViewTests(RotaViewTestCase):
    """Tests for queueing and saving creates on the board."""

    def test_queue_by_template(self):
        response = self.htmx_post("rota:pending_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"]
        ))

        self.assertTemplateUsed(response, "rota/schedule/partials/_grid.html")
        self.assertEqual(response.context["pending_count"], 1)
        self.assertEqual(PendingAssignment.objects.count(), 1)
        self.assertEqual(self.backend.assignments, {})

    def test_queue_custom_window_validates(self):
        response = self.htmx_post("rota:pending_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), start="10:00", end="10:00"
        ))

        self.assertEqual(response.context["error"], "Invalid time window.")
        self.assertEqual(PendingAssignment.objects.count(), 0)

    def test_queue_on_locked_roster(self):
        self.add_roster(locked=True)

        response = self.htmx_post("rota:pending_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"]
        ))

        self.assertEqual(response.context["error"], "The roster is published and locked.")
        self.assertEqual(PendingAssignment.objects.count(), 0)

    def test_remove_pending(self):
        data = self.board_data(employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"])
        self.htmx_post("rota:pending_add", data)

        response = self.htmx_post("rota:pending_remove", data)

        self.assertEqual(response.context["pending_count"], 0)
        self.assertEqual(PendingAssignment.objects.count(), 0)

    def test_save_sends_pending_to_backend(self):
        self.htmx_post("rota:pending_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"]
        ))
        self.htmx_post("rota:pending_add", self.board_data(
            employee=self.bob["id"], date=self.week.isoformat(), start="18:00", end="22:00"
        ))

        response = self.htmx_post("rota:pending_save", self.board_data())

        self.assertEqual(response.context["message"], "2 assignment(s) saved.")
        self.assertEqual(PendingAssignment.objects.count(), 0)
        windows = sorted((a["startMinutes"], a["endMinutes"]) for a in self.backend.assignments.values())
        self.assertEqual(windows, [(540, 1020), (1080, 1320)])

    def test_save_failure_keeps_queue(self):
        self.htmx_post("rota:pending_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"]
        ))
        self.backend.fail("POST", "/assignments", status=500, error="db down")

        response = self.htmx_post("rota:pending_save", self.board_data())

        self.assertEqual(response.context["error"], "Save failed: 500 Internal Server Error - db down")
        self.assertEqual(PendingAssignment.objects.count(), 1)

    def test_save_without_htmx_redirects_with_message(self):
        self.htmx_post("rota:pending_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"]
        ))

        response = self.client.post(reverse("rota:pending_save"), self.board_data())

        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse("rota:schedule"), response["Location"])


class AssignmentViewTests(RotaViewTestCase):
    """Tests for immediate add, move and delete on the board."""

    def setUp(self):
        super().setUp()
        self.roster = self.add_roster()
        self.a1 = self.backend.add_assignment(self.roster, self.alice, self.week, "09:00", "17:00", self.morning)
        self.a2 = self.backend.add_assignment(self.roster, self.bob, self.week, "09:00", "17:00", self.morning)

    def test_add_with_template_window(self):
        day = self.week + timedelta(days=2)

        response = self.htmx_post("rota:assignment_add", self.board_data(
            employee=self.alice["id"], date=day.isoformat(), template=self.night["id"], type="OVERTIME"
        ))

        self.assertIsNone(response.context["error"])
        created = [a for a in self.backend.assignments.values() if a["date"].startswith(day.isoformat())][0]
        self.assertEqual((created["startMinutes"], created["endMinutes"], created["type"]), (0, 480, "OVERTIME"))

    def test_add_rejects_reversed_window(self):
        response = self.htmx_post("rota:assignment_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"], start="17:00", end="09:00"
        ))

        self.assertEqual(response.context["error"], "Start time must be before end time.")

    def test_add_requires_template(self):
        response = self.htmx_post("rota:assignment_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat()
        ))

        self.assertEqual(response.context["error"], "Please choose a shift template.")

    def test_add_duplicate_reports_conflict(self):
        response = self.htmx_post("rota:assignment_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"]
        ))

        self.assertEqual(response.context["error"], "409 Conflict - Conflict: assignment already exists")

    def test_move_to_free_cell(self):
        target = f"{self.alice['id']}:{(self.week + timedelta(days=1)).isoformat()}"

        response = self.htmx_post("rota:assignment_move", self.board_data(target=target), self.a1["id"])

        self.assertIsNone(response.context["error"])
        self.assertTrue(self.backend.assignments[self.a1["id"]]["date"].startswith((self.week + timedelta(days=1)).isoformat()))

    def test_move_onto_taken_slot_rolls_back(self):
        target = f"{self.bob['id']}:{self.week.isoformat()}"

        response = self.htmx_post("rota:assignment_move", self.board_data(target=target), self.a1["id"])

        self.assertTrue(response.context["error"].startswith("Conflict"))
        self.assertEqual(self.backend.assignments[self.a1["id"]]["employeeId"], self.alice["id"])
        moved = [a for a in self.snapshot()["assignments"] if a["id"] == self.a1["id"]][0]
        self.assertEqual(moved["employeeId"], self.alice["id"])

    def test_move_with_bad_target(self):
        response = self.htmx_post("rota:assignment_move", self.board_data(target="nonsense"), self.a1["id"])

        self.assertEqual(response.context["error"], "Invalid drop target.")

    def test_delete(self):
        self.htmx_post("rota:assignment_delete", self.board_data(), self.a1["id"])

        self.assertNotIn(self.a1["id"], self.backend.assignments)
        self.assertNotIn(self.a1["id"], [a["id"] for a in self.snapshot()["assignments"]])

    def test_delete_failure_restores(self):
        self.backend.fail("DELETE", r"/assignments/.+", status=500, error="db down")

        response = self.htmx_post("rota:assignment_delete", self.board_data(), self.a1["id"])

        self.assertEqual(response.context["error"], "Delete failed: 500 Internal Server Error - db down")
        self.assertIn(self.a1["id"], [a["id"] for a in self.snapshot()["assignments"]])

    def test_board_endpoints_reuse_session_snapshot(self):
        self.client.get(reverse("rota:schedule"), self.board_data())
        fetched = self.backend.calls_to("GET", "/assignments")

        self.htmx_post("rota:assignment_delete", self.board_data(), self.a1["id"])

        self.assertEqual(self.backend.calls_to("GET", "/assignments"), fetched)


class AllDepartmentsAddTests(RotaViewTestCase):
    """Immediate add while the board shows every department."""

    def add_rosters(self, general_status="DRAFT", kitchen_status="DRAFT"):
        end = self.week + timedelta(days=6)
        self.general_roster = self.backend.add_roster(self.general["id"], self.week, end, status=general_status)
        self.kitchen_roster = self.backend.add_roster(self.kitchen["id"], self.week, end, status=kitchen_status)

    def add_for_alice(self, template=None):
        return self.htmx_post("rota:assignment_add", self.board_data(
            department="all",
            employee=self.alice["id"],
            date=self.week.isoformat(),
            template=(template or self.morning)["id"],
        ))

    def created(self):
        return [a for a in self.backend.assignments.values() if a["employeeId"] == self.alice["id"]]

    def test_add_goes_to_employee_department_roster(self):
        self.add_rosters()

        response = self.add_for_alice()

        self.assertIsNone(response.context["error"])
        self.assertEqual([a["rosterId"] for a in self.created()], [self.kitchen_roster["id"]])

    def test_published_roster_elsewhere_does_not_block(self):
        self.add_rosters(general_status="PUBLISHED")

        response = self.add_for_alice()

        self.assertIsNone(response.context["error"])
        self.assertEqual([a["rosterId"] for a in self.created()], [self.kitchen_roster["id"]])

    def test_published_employee_roster_blocks(self):
        self.add_rosters(kitchen_status="PUBLISHED")

        response = self.add_for_alice()

        self.assertEqual(response.context["error"], "The roster is published and locked.")
        self.assertEqual(self.created(), [])

    def test_missing_department_roster_gets_a_draft(self):
        end = self.week + timedelta(days=6)
        self.backend.add_roster(self.general["id"], self.week, end)

        response = self.add_for_alice()

        self.assertIsNone(response.context["error"])
        roster = self.backend.rosters[self.created()[0]["rosterId"]]
        self.assertEqual((roster["departmentId"], roster["status"]), (self.kitchen["id"], "DRAFT"))

    def test_template_from_another_department_is_refused(self):
        self.add_rosters()
        other = self.backend.add_department("Bar")
        cocktail = self.backend.add_template(other["id"], "C", "Cocktail", "18:00", "23:00")

        response = self.add_for_alice(cocktail)

        self.assertEqual(response.context["error"], "Please choose a shift template.")
        self.assertEqual(self.created(), [])


class RosterLifecycleViewTests(RotaViewTestCase):
    """Tests for publish, clone and swap requests from the board."""

    def setUp(self):
        super().setUp()
        self.roster = self.add_roster()
        self.a1 = self.backend.add_assignment(self.roster, self.alice, self.week, "09:00", "17:00", self.morning)
        self.a2 = self.backend.add_assignment(self.roster, self.bob, self.week, "13:00", "21:00")

    def test_publish_locks_board(self):
        response = self.htmx_post("rota:roster_publish", self.board_data())

        self.assertEqual(response.context["message"], "Roster published.")
        self.assertTrue(self.backend.rosters[self.roster["id"]]["locked"])

        response = self.htmx_post("rota:pending_add", self.board_data(
            employee=self.alice["id"], date=self.week.isoformat(), template=self.morning["id"]
        ))
        self.assertEqual(response.context["error"], "The roster is published and locked.")

    def test_clone_creates_new_draft(self):
        self.htmx_post("rota:roster_publish", self.board_data())

        response = self.htmx_post("rota:roster_clone", self.board_data())

        board = response.context["board"]
        self.assertFalse(board.is_locked)
        self.assertNotEqual(board.roster.id, self.roster["id"])
        self.assertEqual(len(board.assignments), 2)

    def test_swap_dialog_lists_same_day_candidates(self):
        response = self.client.get(
            reverse("rota:swap_candidates", args=[self.a1["id"]]),
            {"department": self.kitchen["id"], "week": self.week.isoformat()},
            headers={"HX-Request": "true"},
        )

        self.assertTemplateUsed(response, "rota/schedule/partials/_swap_dialog.html")
        self.assertEqual([c["assignment"].id for c in response.context["candidates"]], [self.a2["id"]])

    def test_swap_request(self):
        response = self.htmx_post("rota:swap_request", self.board_data(target=self.a2["id"]), self.a1["id"])

        self.assertEqual(response.context["message"], "Swap request sent.")
        swap = list(self.backend.swaps.values())[0]
        self.assertEqual((swap["fromAssignmentId"], swap["toAssignmentId"]), (self.a1["id"], self.a2["id"]))
        self.assertEqual(self.snapshot()["swap_requested"], [self.a1["id"]])

    def test_swap_request_needs_target(self):
        response = self.htmx_post("rota:swap_request", self.board_data(), self.a1["id"])

        self.assertEqual(response.context["error"], "Choose an assignment to swap with.")
        self.assertEqual(self.backend.swaps, {})


class AvailabilityViewTests(RotaViewTestCase):
    """Tests for the availability request screens."""

    def setUp(self):
        super().setUp()
        self.roster = self.add_roster()
        self.shift = self.backend.add_assignment(self.roster, self.alice, self.week, "09:00", "17:00", self.morning)
        self.request_ = self.backend.add_availability(self.alice, self.week, note="Doctor")

    def test_list_filters_by_status(self):
        self.backend.add_availability(self.bob, self.week, status="REJECTED")

        response = self.client.get(reverse("rota:availability"), {"status": "PENDING"})

        self.assertEqual([r.note for r in response.context["requests"]], ["Doctor"])
        self.assertEqual(response.context["requests"][0].employee_name, "Alice Worker")

    def test_unknown_status_filter_means_all(self):
        self.backend.add_availability(self.bob, self.week, status="REJECTED")

        response = self.client.get(reverse("rota:availability"), {"status": "MAYBE"})

        self.assertEqual(response.context["filters"]["status"], "")
        self.assertEqual(len(response.context["requests"]), 2)

    def test_approve_clears_cached_board(self):
        self.client.get(reverse("rota:schedule"), self.board_data())
        self.assertEqual(len(self.snapshot()["assignments"]), 1)

        response = self.client.post(reverse("rota:availability_decide", args=[self.request_["id"], "approve"]))

        self.assertRedirects(response, reverse("rota:availability"), fetch_redirect_response=False)
        self.assertEqual(self.backend.availability[self.request_["id"]]["status"], "APPROVED")
        self.assertEqual(self.snapshot()["assignments"], [])

    def test_reject_returns_row_for_htmx(self):
        response = self.htmx_post("rota:availability_decide", {}, self.request_["id"], "reject")

        self.assertTemplateUsed(response, "rota/availability/partials/_row.html")
        self.assertEqual(response.context["req"].status, "REJECTED")

    def test_decided_request_cannot_be_decided_again(self):
        self.backend.availability[self.request_["id"]]["status"] = "APPROVED"

        response = self.htmx_post("rota:availability_decide", {}, self.request_["id"], "reject")

        self.assertTemplateUsed(response, "rota/partials/_error.html")
        self.assertEqual(response.context["error"], "400 Bad Request - Request already decided")

    def test_unknown_action(self):
        response = self.client.post(reverse("rota:availability_decide", args=[self.request_["id"], "maybe"]))

        self.assertEqual(response.status_code, 400)


class SwapViewTests(RotaViewTestCase):
    """Tests for the swap request screens."""

    def setUp(self):
        super().setUp()
        roster = self.add_roster()
        self.a1 = self.backend.add_assignment(roster, self.alice, self.week, "09:00", "17:00", self.morning)
        self.a2 = self.backend.add_assignment(roster, self.bob, self.week, "13:00", "21:00")
        self.swap = self.backend.add_swap(self.alice, self.a1, self.a2)

    def test_list(self):
        response = self.client.get(reverse("rota:swaps"))

        swaps = response.context["swaps"]
        self.assertEqual(len(swaps), 1)
        self.assertEqual(swaps[0].from_assignment.employee_id, self.alice["id"])

    def test_accept_swaps_employees(self):
        response = self.htmx_post("rota:swap_decide", {}, self.swap["id"], "accept")

        self.assertTemplateUsed(response, "rota/swaps/partials/_list.html")
        self.assertEqual(response.context["swaps"][0].status, "ACCEPTED")
        self.assertEqual(self.backend.assignments[self.a1["id"]]["employeeId"], self.bob["id"])
        self.assertEqual(self.backend.assignments[self.a2["id"]]["employeeId"], self.alice["id"])

    def test_failure_refetches_list(self):
        self.backend.swaps[self.swap["id"]]["status"] = "CANCELED"

        response = self.htmx_post("rota:swap_decide", {}, self.swap["id"], "decline")

        self.assertEqual(response.context["error"], "400 Bad Request - Swap request already decided")
        self.assertEqual(response.context["swaps"][0].status, "CANCELED")

    def test_employee_can_cancel_own_request(self):
        self.sign_in(self.alice)

        response = self.client.post(reverse("rota:swap_decide", args=[self.swap["id"], "cancel"]))

        self.assertRedirects(response, reverse("rota:swaps"), fetch_redirect_response=False)
        self.assertEqual(self.backend.swaps[self.swap["id"]]["status"], "CANCELED")

    def test_unknown_action(self):
        response = self.client.post(reverse("rota:swap_decide", args=[self.swap["id"], "ignore"]))

        self.assertEqual(response.status_code, 400)


class ReportViewTests(RotaViewTestCase):
    """Tests for the reports screen."""

    def test_week_summary(self):
        roster = self.add_roster()
        self.backend.add_assignment(roster, self.alice, self.week, "09:00", "17:00", self.morning)
        self.backend.add_assignment(roster, self.bob, self.week, "09:00", "17:00", self.morning, shift_type="OVERTIME")

        response = self.client.get(reverse("rota:reports"))

        summary = response.context["summary"]
        self.assertEqual(response.context["start"], self.week)
        self.assertEqual(summary.total_assignments, 2)
        self.assertEqual(summary.total_hours, 16)
        self.assertEqual(summary.overtime_hours, 8)
        self.assertEqual(summary.by_template[0].code, "G")

    def test_month_preset(self):
        today = timezone.localdate()

        response = self.client.get(reverse("rota:reports"), {"preset": "month"})

        self.assertEqual(response.context["start"], today.replace(day=1))
        self.assertEqual(response.context["end"].month, today.month)

    def test_backend_error(self):
        self.backend.fail("GET", "/reports/summary", status=500, error="db down")

        response = self.client.get(reverse("rota:reports"))

        self.assertEqual(response.context["error"], "500 Internal Server Error - db down")


class MyWeekViewTests(RotaViewTestCase):
    """Tests for the employee's own week."""

    def setUp(self):
        super().setUp()
        roster = self.add_roster()
        self.monday_shift = self.backend.add_assignment(roster, self.alice, self.week, "09:00", "17:00", self.morning)
        self.backend.add_assignment(roster, self.alice, self.week + timedelta(days=1), "09:00", "17:00", self.morning)
        self.backend.add_assignment(roster, self.bob, self.week, "09:00", "17:00", self.morning)
        self.sign_in(self.alice)

    def test_shows_own_shifts(self):
        response = self.client.get(reverse("rota:my_week"), {"week": self.week.isoformat()})

        days = response.context["days"]
        self.assertEqual(response.context["me"].id, self.alice["id"])
        self.assertEqual([len(d["entries"]) for d in days[:3]], [1, 1, 0])

    def test_approved_full_day_request_hides_shift(self):
        self.backend.add_availability(self.alice, self.week, status="APPROVED")

        response = self.client.get(reverse("rota:my_week"), {"week": self.week.isoformat()})

        days = response.context["days"]
        self.assertEqual(days[0]["entries"], [])
        self.assertEqual(days[0]["request"].status, "APPROVED")
        self.assertEqual(len(days[1]["entries"]), 1)

    def test_file_request_with_window(self):
        response = self.client.post(reverse("rota:my_request"), {
            "date": self.week.isoformat(),
            "start": "09:00",
            "end": "12:00",
            "note": "Dentist",
        })

        self.assertRedirects(
            response, f"{reverse('rota:my_week')}?week={self.week.isoformat()}", fetch_redirect_response=False
        )
        filed = list(self.backend.availability.values())[0]
        self.assertEqual(filed["employeeId"], self.alice["id"])
        self.assertEqual((filed["startMinutes"], filed["endMinutes"], filed["note"]), (540, 720, "Dentist"))

    def test_file_request_for_a_shift(self):
        self.client.post(reverse("rota:my_request"), {
            "date": self.week.isoformat(),
            "assignment": self.monday_shift["id"],
        })

        filed = list(self.backend.availability.values())[0]
        self.assertEqual((filed["startMinutes"], filed["endMinutes"]), (540, 1020))

    def test_full_day_request(self):
        self.client.post(reverse("rota:my_request"), {"date": self.week.isoformat()})

        filed = list(self.backend.availability.values())[0]
        self.assertIsNone(filed["startMinutes"])
        self.assertIsNone(filed["endMinutes"])

    def test_request_validates(self):
        response = self.client.post(reverse("rota:my_request"), {"date": "", "start": "9am"})

        self.assertEqual(
            response.context["errors"], ["Please choose a date.", "Invalid time format. e.g. 09:00"]
        )
        self.assertEqual(self.backend.availability, {})


# =============================================================================
# MANAGEMENT COMMAND TESTS
# =============================================================================


class ReminderWindowTests(SimpleTestCase):
    """Tests for the reminder probe's target window."""

    def test_window_starts_after_next_tick(self):
        self.assertEqual(reminder_window(datetime(2026, 10, 19, 10, 2), 60), (665, 725))

    def test_exact_tick_moves_to_the_following_one(self):
        self.assertEqual(reminder_window(datetime(2026, 10, 19, 10, 0), 30), (635, 695))

    def test_end_is_capped_before_midnight(self):
        self.assertEqual(reminder_window(datetime(2026, 10, 19, 22, 40), 60), (1425, 1439))

    def test_past_today_is_none(self):
        self.assertIsNone(reminder_window(datetime(2026, 10, 19, 23, 30), 60))


@override_settings(ROTA_SEED_EMAIL="admin@example.com", ROTA_SEED_PASSWORD="admin123")
class CommandTests(BackendTestMixin, TestCase):
    """Tests for seed_demo and reminder_probe."""

    def setUp(self):
        super().setUp()
        self.admin = self.backend.add_employee("admin@example.com", "Ada Admin", role="ADMIN", password="admin123")

    def test_seed_demo_creates_data(self):
        out = StringIO()

        call_command("seed_demo", stdout=out)

        self.assertIn("Seed complete", out.getvalue())
        self.assertEqual([d["name"] for d in self.backend.departments.values()], ["Genel"])
        self.assertEqual(sorted(t["code"] for t in self.backend.templates.values()), ["A", "G", "N"])
        self.assertEqual(len(self.backend.rosters), 1)
        self.assertEqual(len(self.backend.assignments), 7)

    def test_seed_demo_is_idempotent(self):
        call_command("seed_demo", stdout=StringIO())
        call_command("seed_demo", stdout=StringIO())

        self.assertEqual(len(self.backend.departments), 1)
        self.assertEqual(len(self.backend.employees), 3)
        self.assertEqual(len(self.backend.templates), 3)
        self.assertEqual(len(self.backend.assignments), 7)

    def test_seed_demo_bad_credentials(self):
        with self.assertRaises(CommandError):
            call_command("seed_demo", "--password", "wrong", stdout=StringIO())

    def test_reminder_probe_inserts_shift(self):
        worker = self.backend.add_employee("alice@example.com", "Alice Worker")
        now = timezone.localtime().replace(hour=10, minute=2)
        out = StringIO()

        with patch("apps.rota.management.commands.reminder_probe.timezone.localtime", return_value=now):
            call_command("reminder_probe", "--minutes-before", "60", stdout=out)

        created = list(self.backend.assignments.values())[0]
        self.assertEqual(created["employeeId"], worker["id"])
        self.assertEqual((created["startMinutes"], created["endMinutes"]), (665, 725))
        self.assertIn("Start: 11:05", out.getvalue())

    def test_reminder_probe_reports_existing_shift(self):
        self.backend.add_employee("alice@example.com", "Alice Worker")
        now = timezone.localtime().replace(hour=10, minute=2)

        with patch("apps.rota.management.commands.reminder_probe.timezone.localtime", return_value=now):
            call_command("reminder_probe", stdout=StringIO())
            out = StringIO()
            call_command("reminder_probe", stdout=out)

        self.assertIn("Assignment already exists", out.getvalue())
        self.assertEqual(len(self.backend.assignments), 1)

    def test_reminder_probe_too_late(self):
        now = timezone.localtime().replace(hour=23, minute=50)
        out = StringIO()

        with patch("apps.rota.management.commands.reminder_probe.timezone.localtime", return_value=now):
            call_command("reminder_probe", stdout=out)

        self.assertIn("beyond today", out.getvalue())
        self.assertEqual(self.backend.calls, [])
