"""
Context processors for the Rota project.
"""

import logging
from datetime import datetime
from pathlib import Path

from django.conf import settings
from django.utils.functional import SimpleLazyObject

logger = logging.getLogger(__name__)

ALL_DEPARTMENTS = "all"
SESSION_DEPARTMENT_KEY = "rota.department"


def version_info(request):
    """
    Add version information to template context.

    Returns:
        dict with 'app_version' and 'app_version_date' keys
    """
    version_file = Path(settings.BASE_DIR) / "version.txt"

    version = "0.0.0"
    version_date = None

    if version_file.exists():
        version = version_file.read_text().strip()
        # Get file modification time as version date
        mtime = version_file.stat().st_mtime
        version_date = datetime.fromtimestamp(mtime)

    return {
        "app_version": version,
        "app_version_date": version_date,
    }


def selected_department(request) -> str:
    """
    The department filter shared by every screen.

    A ``?department=`` query parameter wins and is remembered in the session.
    """
    session = getattr(request, "session", None)
    chosen = request.GET.get("department")
    if chosen:
        if session is not None:
            session[SESSION_DEPARTMENT_KEY] = chosen
        return chosen
    if session is not None:
        return session.get(SESSION_DEPARTMENT_KEY, ALL_DEPARTMENTS)
    return ALL_DEPARTMENTS


def _filter_departments(request) -> list:
    from apps.rota.services import RotaService

    from .client import SESSION_TOKEN_KEY, BackendAuthError, BackendError

    if not request.user.is_authenticated or not request.session.get(SESSION_TOKEN_KEY):
        return []
    try:
        return RotaService.for_request(request).departments()
    except (BackendError, BackendAuthError) as exc:
        logger.warning("Department filter unavailable: %s", exc)
        return []


def department_filter(request):
    """
    The selected department, plus the departments to choose from.

    The list is only fetched from the backend when a template renders it.
    """
    return {
        "selected_department": selected_department(request),
        "filter_departments": SimpleLazyObject(lambda: _filter_departments(request)),
    }
