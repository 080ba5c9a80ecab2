"""
Tests for the JSON endpoints.

Uses the pytest fixtures from the project conftest: ``backend`` serves the
in-memory scheduling backend, ``admin_client`` is signed in through it.
"""

from datetime import timedelta

import pytest
from django.urls import reverse

from apps.rota.models import PendingAssignment


def board_url(department, week):
    return f"{reverse('api:board')}?department={department['id']}&week={week.isoformat()}"


# =============================================================================
# HEALTH
# =============================================================================


@pytest.mark.django_db
def test_health_check_is_public(api_client):
    response = api_client.get(reverse("api:health"))

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "rota"}


# =============================================================================
# BOARD STATE
# =============================================================================


@pytest.mark.django_db
def test_board_requires_sign_in(api_client, backend):
    response = api_client.get(reverse("api:board"))

    assert response.status_code == 403
    assert backend.calls == []


def test_board_lists_cells(admin_client, backend, department, employee, shift_template, roster, week):
    backend.add_assignment(roster, employee, week, "09:00", "17:00", shift_template)

    response = admin_client.get(board_url(department, week))

    assert response.status_code == 200
    data = response.json()
    assert data["weekStart"] == week.isoformat()
    assert data["department"] == department["id"]
    assert data["locked"] is False
    assert data["roster"]["id"] == roster["id"]
    assert [row["fullName"] for row in data["rows"]] == ["Alice Worker"]

    monday = data["rows"][0]["cells"][0]
    assert monday["key"] == f"{employee['id']}:{week.isoformat()}"
    entry = monday["entries"][0]
    assert entry["label"] == "G"
    assert entry["pending"] is False
    assert entry["assignment"]["startMinutes"] == 540
    assert entry["pendingCreate"] is None


def test_board_includes_pending_creates(admin_client, admin_user, department, employee, shift_template, roster, week):
    PendingAssignment.objects.create(
        user=admin_user, employee_id=employee["id"], date=week, template_id=shift_template["id"]
    )

    data = admin_client.get(board_url(department, week)).json()

    assert data["pendingCount"] == 1
    entry = data["rows"][0]["cells"][0]["entries"][0]
    assert entry["pending"] is True
    assert entry["pendingCreate"]["templateId"] == shift_template["id"]
    assert entry["pendingCreate"]["date"] == week.isoformat()


def test_board_reports_published_roster(admin_client, backend, department, employee, week):
    backend.add_roster(department["id"], week, week + timedelta(days=6), status="PUBLISHED")

    data = admin_client.get(board_url(department, week)).json()

    assert data["locked"] is True
    assert data["roster"]["status"] == "PUBLISHED"


def test_board_rejected_token(admin_client, backend, department, week):
    backend.tokens.clear()

    response = admin_client.get(board_url(department, week))

    assert response.status_code == 401


def test_board_backend_failure(admin_client, backend, department, week):
    backend.fail("GET", "/employees", status=500, error="db down")

    response = admin_client.get(board_url(department, week))

    assert response.status_code == 502
    assert "db down" in response.json()["detail"]


def test_board_for_employee_account(employee_client, department, employee, roster, week):
    response = employee_client.get(board_url(department, week))

    assert response.status_code == 200
    assert response.json()["rows"][0]["employeeId"] == employee["id"]
