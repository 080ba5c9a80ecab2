"""
Pytest configuration and shared fixtures for the Rota project.

This module provides reusable fixtures for testing views and API endpoints
against the in-memory scheduling backend. Fixtures are designed to work with
pytest-django.
"""

import pytest
from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import Client
from django.utils import timezone

from rest_framework.test import APIClient

from apps.core.client import BackendClient
from apps.core.testing import FakeBackend
from apps.core.timeutils import monday_of


User = get_user_model()


# =============================================================================
# BACKEND FIXTURES
# =============================================================================


@pytest.fixture
def backend():
    """Serve a fresh in-memory backend to every BackendClient."""
    fake = FakeBackend()
    with patch.object(BackendClient, "transport", fake.transport()):
        yield fake


@pytest.fixture
def department(backend):
    """Create and return a department record."""
    return backend.add_department("Kitchen", "#10B981")


@pytest.fixture
def general_department(backend):
    """Create and return the general department whose templates apply everywhere."""
    return backend.add_department("Genel")


@pytest.fixture
def admin_employee(backend, general_department):
    """Create and return an ADMIN account."""
    return backend.add_employee(
        "admin@example.com",
        "Ada Admin",
        role="ADMIN",
        department_id=general_department["id"],
        password="admin123",
    )


@pytest.fixture
def employee(backend, department):
    """Create and return an EMPLOYEE account in the department."""
    return backend.add_employee(
        "alice@example.com",
        "Alice Worker",
        department_id=department["id"],
        password="alice123",
    )


@pytest.fixture
def shift_template(backend, department):
    """Create and return a 09:00-17:00 template."""
    return backend.add_template(department["id"], "G", "Morning", "09:00", "17:00", "#FEF3C7")


@pytest.fixture
def week():
    """Monday of the current week."""
    return monday_of(timezone.localdate())


@pytest.fixture
def roster(backend, department, week):
    """Create and return a draft roster for the current week."""
    return backend.add_roster(department["id"], week, week + timedelta(days=6))


# =============================================================================
# CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def client():
    """Provide a Django test client."""
    return Client()


@pytest.fixture
def admin_client(db, client, admin_employee):
    """Provide a Django test client signed in through the backend as the admin."""
    assert client.login(username="admin@example.com", password="admin123")
    return client


@pytest.fixture
def employee_client(db, client, employee):
    """Provide a Django test client signed in through the backend as an employee."""
    assert client.login(username="alice@example.com", password="alice123")
    return client


@pytest.fixture
def admin_user(db, admin_client):
    """The local user mirroring the admin account."""
    return User.objects.get(username="admin@example.com")


@pytest.fixture
def api_client():
    """Provide a DRF API test client."""
    return APIClient()

