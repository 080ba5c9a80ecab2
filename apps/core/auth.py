"""
Sign-in against the scheduling backend.

The backend issues a JWT on ``POST /auth/login``. We never hold the signing
key, so the token's claims are read unverified and only used for routing
decisions (expiry, employee id). The backend re-validates every request.
"""

from __future__ import annotations

import logging
import time
from functools import wraps

from django.contrib.auth import get_user_model, logout
from django.contrib.auth.backends import BaseBackend
from django.contrib.auth.decorators import login_required
from django.contrib.auth.signals import user_logged_in
from django.dispatch import receiver
from django.shortcuts import redirect
from jose import JWTError, jwt

from .client import (
    SESSION_EMPLOYEE_KEY,
    SESSION_TOKEN_KEY,
    BackendAuthError,
    BackendClient,
    BackendError,
)

logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"


def token_claims(token: str | None) -> dict:
    """Decode the JWT payload without verifying the signature."""
    if not token:
        return {}
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return {}


def token_expired(token: str | None, now: float | None = None) -> bool:
    exp = token_claims(token).get("exp")
    if exp is None:
        return False
    try:
        expires_at = float(exp)
    except (TypeError, ValueError):
        return True
    return expires_at <= (now if now is not None else time.time())


class BackendAuthentication(BaseBackend):
    """
    Authenticate e-mail/password against the backend's ``/auth/login``.

    A local Django user mirrors the backend account (username = e-mail) so
    that sessions, ``login_required`` and the admin keep working. The bearer
    token rides on the returned user and is moved into the session by the
    ``user_logged_in`` receiver below.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        email = (username or kwargs.get("email") or "").strip()
        if not email or not password:
            return None

        try:
            payload = BackendClient().login(email, password)
        except BackendAuthError:
            logger.info("Backend login refused for %s: bad credentials", email)
            return None
        except BackendError as exc:
            logger.info("Backend login refused for %s: %s", email, exc.message)
            return None

        token = (payload or {}).get("token")
        if not token:
            logger.warning("Backend login for %s returned no token", email)
            return None

        claims = token_claims(token)
        profile = payload.get("user") or {}
        role = profile.get("role") or claims.get("role") or ""
        full_name = profile.get("fullName") or ""
        first_name, _, last_name = full_name.partition(" ")

        User = get_user_model()
        user, created = User.objects.update_or_create(
            username=(profile.get("email") or email).lower(),
            defaults={
                "email": profile.get("email") or email,
                "first_name": first_name[:150],
                "last_name": last_name[:150],
                "is_staff": role.upper() == ADMIN_ROLE,
            },
        )
        if created:
            user.set_unusable_password()
            user.save(update_fields=["password"])

        user.backend_token = token
        user.backend_employee_id = str(profile.get("id") or claims.get("sub") or "")
        logger.info("Signed in %s (role=%s)", user.username, role or "?")
        return user

    def get_user(self, user_id):
        User = get_user_model()
        return User.objects.filter(pk=user_id).first()


@receiver(user_logged_in)
def store_backend_token(sender, request, user, **kwargs):
    """Keep the backend token in the session once Django has rotated it."""
    token = getattr(user, "backend_token", None)
    if token and request is not None:
        request.session[SESSION_TOKEN_KEY] = token
        request.session[SESSION_EMPLOYEE_KEY] = getattr(user, "backend_employee_id", "")


def backend_view(admin: bool = False):
    """
    Decorator for views that talk to the backend on the user's behalf.

    Requires a logged-in user with a live backend token. Admin-only views
    send employees to their own week. A 401 from the backend ends the session.
    """

    def decorator(view_func):
        @login_required
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            token = request.session.get(SESSION_TOKEN_KEY)
            if not token or token_expired(token):
                logout(request)
                return redirect("login")
            if admin and not request.user.is_staff:
                return redirect("rota:my_week")
            try:
                return view_func(request, *args, **kwargs)
            except BackendAuthError:
                logger.info("Backend token rejected for %s; signing out", request.user)
                logout(request)
                return redirect("login")

        return wrapper

    return decorator
