"""Shared helpers for commands that talk to the scheduling backend."""

from django.conf import settings
from django.core.management.base import CommandError

from apps.core.client import BackendAuthError, BackendClient, BackendError
from apps.rota.entities import GENERAL_DEPARTMENT_NAMES, Department
from apps.rota.services import RotaService

GENERAL_DEPARTMENT = "Genel"
GENERAL_DEPARTMENT_COLOR = "#3B82F6"


def admin_service(email: str | None = None, password: str | None = None) -> RotaService:
    """Sign in with the seed credentials and return a service carrying the token."""
    email = email or settings.ROTA_SEED_EMAIL
    password = password or settings.ROTA_SEED_PASSWORD
    try:
        payload = BackendClient().login(email, password)
    except BackendAuthError as exc:
        raise CommandError(f"Backend refused the credentials for {email}") from exc
    except BackendError as exc:
        raise CommandError(f"Backend login failed: {exc.message}") from exc
    token = (payload or {}).get("token")
    if not token:
        raise CommandError("Backend login returned no token")
    return RotaService(BackendClient(token=token))


def ensure_general_department(service: RotaService) -> Department:
    for department in service.departments():
        if department.name.strip().lower() in GENERAL_DEPARTMENT_NAMES:
            return department
    return service.create_department(GENERAL_DEPARTMENT, GENERAL_DEPARTMENT_COLOR, "")
